"""
API视图基类。
提供统一的API视图类，用于规范API响应格式和处理通用逻辑。
"""
import uuid

from rest_framework import status
from rest_framework.exceptions import NotAuthenticated
from rest_framework.views import APIView

from core.domain.exceptions import DomainException
from core.infrastructure.exception_handler import domain_exception_response
from core.infrastructure.response import ApiResponseBuilder, StatusCode


class ApiBaseView(APIView):
    """API视图基类，提供统一的响应方法"""

    def success_response(self, data=None, message="操作成功", code=StatusCode.SUCCESS, metadata=None):
        """
        成功响应

        Args:
            data: 响应数据
            message: 响应消息
            code: 业务状态码
            metadata: 元数据

        Returns:
            Response: 统一格式的响应
        """
        return ApiResponseBuilder.success(data=data, message=message, code=code, metadata=metadata)

    def created_response(self, data=None, message="创建成功", code=StatusCode.CREATED, metadata=None, location=None):
        """创建成功响应，可附带Location头"""
        headers = {"Location": location} if location else None
        return ApiResponseBuilder.created(data=data, message=message, code=code, metadata=metadata, headers=headers)

    def failed_response(self, message="操作失败", code=StatusCode.BAD_REQUEST,
                        data=None, http_code=status.HTTP_400_BAD_REQUEST, metadata=None):
        """
        失败响应

        Args:
            message: 错误消息
            code: 业务状态码
            data: 错误详情数据
            http_code: HTTP状态码
            metadata: 元数据

        Returns:
            Response: 统一格式的响应
        """
        return ApiResponseBuilder.fail(
            message=message, code=code, data=data, http_code=http_code, metadata=metadata
        )

    def domain_failure_response(self, error: DomainException):
        """把Result中携带的领域异常转换为失败响应"""
        return domain_exception_response(error)

    def paginated_response(self, items, total, page, page_size,
                           message="查询成功", code=StatusCode.SUCCESS, metadata=None):
        """分页响应，data为{items, totalCount, pageNumber, pageSize}"""
        return ApiResponseBuilder.paginated(
            items=items, total=total, page=page, page_size=page_size,
            message=message, code=code, metadata=metadata
        )

    def current_user_id(self, request) -> uuid.UUID:
        """
        获取已认证请求方的用户ID。

        Raises:
            NotAuthenticated: 请求未携带有效身份时抛出
        """
        user = getattr(request, "user", None)
        if user is None or not getattr(user, "is_authenticated", False):
            raise NotAuthenticated()
        return user.id
