"""
聚合根模块。
包含AggregateRoot基类，用于定义领域聚合的边界和不变性规则。
"""
from typing import Any, List
from core.domain.base import Entity
from core.domain.events import DomainEvent


class AggregateRoot(Entity):
    """
    聚合根基类。
    聚合根是一个特殊的实体，它定义了一个聚合的边界，
    并负责维护聚合内部对象的不变性规则。
    状态变更产生的领域事件暂存在聚合内部（发件箱），
    由仓储在同一事务中写入持久化发件箱表。
    """

    def __init__(self, id: Any = None):
        """
        初始化聚合根。

        Args:
            id: 聚合根标识，如果未提供，将自动生成UUID
        """
        super().__init__(id)
        self._domain_events: List[DomainEvent] = []
        self._version: int = 0

    @property
    def version(self) -> int:
        """
        获取聚合根的持久化版本号，用于乐观锁比对。

        Returns:
            聚合根的版本号，新建未保存的聚合为0
        """
        return self._version

    def mark_persisted(self, version: int) -> None:
        """
        由仓储在写入成功后回填数据库中的版本号。

        Args:
            version: 数据库中的当前版本号
        """
        self._version = version

    def add_domain_event(self, event: DomainEvent) -> None:
        """
        添加领域事件到事件列表中，等待发布。

        Args:
            event: 要添加的领域事件
        """
        self._domain_events.append(event)

    @property
    def domain_events(self) -> List[DomainEvent]:
        """未发布的领域事件副本。"""
        return list(self._domain_events)

    def clear_domain_events(self) -> List[DomainEvent]:
        """
        清除并返回所有未发布的领域事件。

        Returns:
            未发布的领域事件列表
        """
        events = self._domain_events.copy()
        self._domain_events.clear()
        return events
