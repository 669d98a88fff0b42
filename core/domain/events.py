"""
领域事件模块。
包含DomainEvent基类和DomainEvents管理器，用于领域事件的发布和订阅。
事件可以序列化为JSON友好的负载写入发件箱，再由分发器还原后发布。
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type
import uuid


def to_primitive(value: Any) -> Any:
    """
    将事件属性转换为可JSON序列化的基本类型。

    Args:
        value: 任意属性值

    Returns:
        基本类型表示
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): to_primitive(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_primitive(v) for v in value]
    if hasattr(value, "to_dict"):
        return to_primitive(value.to_dict())
    return str(value)


class DomainEvent:
    """
    领域事件基类。
    领域事件表示领域模型中发生的重要事件，供待办生成、通知、搜索索引等外部订阅者消费。
    子类在定义时自动登记到事件类型表，便于从发件箱负载还原。
    """

    _registry: Dict[str, Type['DomainEvent']] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        DomainEvent._registry[cls.__name__] = cls

    def __init__(self):
        """
        初始化领域事件。
        自动设置事件ID和发生时间（UTC）。
        """
        self.id = uuid.uuid4()
        self.occurred_on = datetime.now(timezone.utc)

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def to_payload(self) -> Dict[str, Any]:
        """
        返回事件业务数据的JSON友好表示（不含事件ID和发生时间）。

        Returns:
            事件负载字典
        """
        return {
            key: to_primitive(value)
            for key, value in self.__dict__.items()
            if key not in ("id", "occurred_on")
        }

    @classmethod
    def resolve_type(cls, event_type: str) -> Optional[Type['DomainEvent']]:
        """根据事件类型名查找事件类。"""
        return cls._registry.get(event_type)

    @classmethod
    def from_payload(
        cls,
        event_type: str,
        payload: Dict[str, Any],
        event_id: Any = None,
        occurred_on: Optional[datetime] = None
    ) -> 'DomainEvent':
        """
        从发件箱负载还原事件实例。
        还原后的属性保持负载中的基本类型（字符串形式的ID和金额等）。

        Args:
            event_type: 事件类型名
            payload: 事件负载
            event_id: 原事件ID
            occurred_on: 原发生时间

        Returns:
            事件实例

        Raises:
            ValueError: 事件类型未登记时抛出
        """
        event_class = cls.resolve_type(event_type)
        if event_class is None:
            raise ValueError(f"未知的领域事件类型: {event_type}")
        event = event_class.__new__(event_class)
        event.id = uuid.UUID(str(event_id)) if event_id else uuid.uuid4()
        event.occurred_on = occurred_on or datetime.now(timezone.utc)
        for key, value in payload.items():
            setattr(event, key, value)
        return event

    def __repr__(self) -> str:
        return f"<{self.event_type} id={self.id}>"


# 事件处理器类型
EventHandler = Callable[[DomainEvent], None]


class DomainEvents:
    """
    领域事件管理器。
    负责事件的发布和订阅。处理器抛出的异常会向上传播，
    由发件箱分发器记录失败并稍后重试。
    """

    # 事件处理器字典，键为事件类型，值为处理器列表
    _handlers: Dict[Type[DomainEvent], List[EventHandler]] = {}

    @classmethod
    def register(cls, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        """
        注册事件处理器。

        Args:
            event_type: 事件类型
            handler: 事件处理器函数
        """
        handlers = cls._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    @classmethod
    def unregister(cls, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        """
        取消注册事件处理器。

        Args:
            event_type: 事件类型
            handler: 事件处理器函数
        """
        if event_type in cls._handlers:
            cls._handlers[event_type].remove(handler)
            if not cls._handlers[event_type]:
                del cls._handlers[event_type]

    @classmethod
    def publish(cls, event: DomainEvent) -> int:
        """
        发布事件。
        调用所有注册到该事件类型（含父类）的处理器。

        Args:
            event: 要发布的事件

        Returns:
            被调用的处理器数量
        """
        called = 0
        for event_type in type(event).__mro__:
            for handler in list(cls._handlers.get(event_type, [])):
                handler(event)
                called += 1
        return called

    @classmethod
    def clear_handlers(cls) -> None:
        """
        清除所有事件处理器。
        通常用于测试环境的重置。
        """
        cls._handlers.clear()
