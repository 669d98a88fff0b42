"""
领域异常模块。
包含领域模型中使用的各种异常类，按错误类别划分：
数据验证、实体不存在、授权、冲突、非法状态迁移和操作取消。
"""
from typing import Any, Optional


class DomainException(Exception):
    """
    领域异常基类。
    所有领域模型中的异常都应继承自此类。
    """

    def __init__(self, message: str):
        """
        初始化领域异常。

        Args:
            message: 异常消息
        """
        self.message = message
        super().__init__(self.message)


class ValidationException(DomainException):
    """
    数据验证异常。
    值对象或聚合构造时输入非法（坐标越界、负金额、文本超长等）时抛出。
    """

    def __init__(self, field_name: Optional[str] = None, message: str = "数据验证失败"):
        """
        初始化数据验证异常。

        Args:
            field_name: 字段名称
            message: 异常消息
        """
        if field_name:
            full_message = f"字段'{field_name}'验证失败: {message}"
        else:
            full_message = message
        super().__init__(full_message)
        self.field_name = field_name
        self.reason = message


class CurrencyMismatchException(ValidationException):
    """两个金额的货币单位不一致时抛出。"""

    def __init__(self, left_currency: str, right_currency: str):
        super().__init__("currency", f"货币单位不一致: {left_currency} != {right_currency}")
        self.left_currency = left_currency
        self.right_currency = right_currency


class EntityNotFoundException(DomainException):
    """
    实体未找到异常。
    当请求的实体（刊登、物品、分类）不存在时抛出。
    """

    def __init__(self, entity_name: str, entity_id: Any):
        """
        初始化实体未找到异常。

        Args:
            entity_name: 实体名称
            entity_id: 实体ID
        """
        message = f"无法找到{entity_name}: ID={entity_id}"
        super().__init__(message)
        self.entity_name = entity_name
        self.entity_id = entity_id


class AuthorizationException(DomainException):
    """
    授权异常。
    当用户没有执行操作的权限时抛出，例如非物品所有者尝试刊登该物品。
    """

    def __init__(self, user_id: Any, operation: str, resource: Optional[str] = None):
        """
        初始化授权异常。

        Args:
            user_id: 用户ID
            operation: 操作名称
            resource: 资源名称
        """
        if resource:
            message = f"用户(ID={user_id})没有权限执行'{operation}'操作，资源: {resource}"
        else:
            message = f"用户(ID={user_id})没有权限执行'{operation}'操作"
        super().__init__(message)
        self.user_id = user_id
        self.operation = operation
        self.resource = resource


class ConflictException(DomainException):
    """
    冲突异常。
    当请求与现有数据冲突时抛出，例如同一物品已存在有效刊登。
    """

    def __init__(self, message: str, resource: Optional[str] = None):
        """
        初始化冲突异常。

        Args:
            message: 异常消息
            resource: 发生冲突的资源描述
        """
        super().__init__(message)
        self.resource = resource


class DuplicateListingException(ConflictException):
    """同一物品已存在未删除的刊登。"""

    def __init__(self, item_id: Any):
        super().__init__(f"物品(ID={item_id})已存在有效刊登", resource=f"item:{item_id}")
        self.item_id = item_id


class ConcurrencyException(ConflictException):
    """
    并发异常。
    乐观锁版本比对失败时抛出，表示聚合已被另一个事务修改。
    """

    def __init__(self, entity_name: str, entity_id: Any, expected_version: Optional[int] = None):
        """
        初始化并发异常。

        Args:
            entity_name: 实体名称
            entity_id: 实体ID
            expected_version: 期望的版本号
        """
        message = f"{entity_name}(ID={entity_id})已被另一个事务修改"
        if expected_version is not None:
            message = f"{message}，期望版本: {expected_version}"
        super().__init__(message, resource=f"{entity_name}:{entity_id}")
        self.entity_name = entity_name
        self.entity_id = entity_id
        self.expected_version = expected_version


class InvalidStateTransitionException(DomainException):
    """
    非法状态迁移异常。
    当聚合处于不允许执行某操作的状态时抛出。
    """

    def __init__(self, entity_name: str, current_state: Any, operation: str, reason: Optional[str] = None):
        """
        初始化非法状态迁移异常。

        Args:
            entity_name: 实体名称
            current_state: 当前状态
            operation: 尝试执行的操作
            reason: 补充说明
        """
        message = f"{entity_name}当前状态为{current_state}，不能执行'{operation}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.entity_name = entity_name
        self.current_state = current_state
        self.operation = operation


class OperationCancelledException(DomainException):
    """操作在完成前被取消（客户端断开或超时）。"""

    def __init__(self, operation: str = "操作"):
        super().__init__(f"{operation}已被取消")
        self.operation = operation
