"""
事务发件箱模块。
领域事件与业务数据在同一事务中写入发件箱，提交后由分发器读取并发布，
发布成功才标记为已分发，从而保证至少一次投递。
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import threading
import uuid

from loguru import logger

from core.domain.events import DomainEvent, DomainEvents


class OutboxStatus(str, Enum):
    """发件箱记录状态"""
    PENDING = "PENDING"
    DISPATCHED = "DISPATCHED"
    FAILED = "FAILED"


@dataclass
class OutboxRecord:
    """发件箱记录，与业务数据一起持久化。"""
    event_type: str
    aggregate_type: str
    aggregate_id: str
    payload: Dict[str, Any]
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: OutboxStatus = OutboxStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    dispatched_at: Optional[datetime] = None

    @classmethod
    def from_event(cls, event: DomainEvent, aggregate_type: str, aggregate_id: Any) -> 'OutboxRecord':
        """
        由领域事件创建发件箱记录，沿用事件ID作为记录ID，便于订阅方去重。

        Args:
            event: 领域事件
            aggregate_type: 聚合类型名
            aggregate_id: 聚合ID

        Returns:
            发件箱记录
        """
        return cls(
            id=event.id,
            event_type=event.event_type,
            aggregate_type=aggregate_type,
            aggregate_id=str(aggregate_id),
            payload=event.to_payload(),
            occurred_on=event.occurred_on,
        )

    def to_event(self) -> DomainEvent:
        """将记录还原为领域事件。"""
        return DomainEvent.from_payload(
            self.event_type,
            self.payload,
            event_id=self.id,
            occurred_on=self.occurred_on,
        )


class OutboxRepository(ABC):
    """发件箱仓储接口。"""

    @abstractmethod
    def add(self, record: OutboxRecord) -> None:
        """在当前事务中写入一条记录。"""

    @abstractmethod
    def get_pending(self, limit: int = 100) -> List[OutboxRecord]:
        """按发生顺序读取待分发记录。"""

    @abstractmethod
    def mark_dispatched(self, record_id: uuid.UUID) -> None:
        """标记记录已分发。"""

    @abstractmethod
    def mark_failed(self, record_id: uuid.UUID, error: str, max_attempts: int) -> None:
        """
        记录一次分发失败，达到最大尝试次数后标记为FAILED。

        Args:
            record_id: 记录ID
            error: 错误信息
            max_attempts: 最大尝试次数
        """


class InMemoryOutboxRepository(OutboxRepository):
    """
    内存发件箱仓储。
    配合NoOpTransactionManager使用时，事务回滚会撤销本事务写入的记录。
    """

    def __init__(self, transaction_manager=None):
        self._records: Dict[uuid.UUID, OutboxRecord] = {}
        self._lock = threading.RLock()
        self.transaction_manager = transaction_manager

    def add(self, record: OutboxRecord) -> None:
        with self._lock:
            self._records[record.id] = record
        if self.transaction_manager is not None:
            self.transaction_manager.on_rollback(lambda: self._discard(record.id))

    def _discard(self, record_id: uuid.UUID) -> None:
        with self._lock:
            self._records.pop(record_id, None)

    def get_pending(self, limit: int = 100) -> List[OutboxRecord]:
        with self._lock:
            pending = [r for r in self._records.values() if r.status == OutboxStatus.PENDING]
        pending.sort(key=lambda r: r.occurred_on)
        return [replace(r) for r in pending[:limit]]

    def mark_dispatched(self, record_id: uuid.UUID) -> None:
        with self._lock:
            record = self._records[record_id]
            record.status = OutboxStatus.DISPATCHED
            record.attempts += 1
            record.dispatched_at = datetime.now(timezone.utc)

    def mark_failed(self, record_id: uuid.UUID, error: str, max_attempts: int) -> None:
        with self._lock:
            record = self._records[record_id]
            record.attempts += 1
            record.last_error = error
            if record.attempts >= max_attempts:
                record.status = OutboxStatus.FAILED

    def all(self) -> List[OutboxRecord]:
        with self._lock:
            return sorted(self._records.values(), key=lambda r: r.occurred_on)


EventPublisher = Callable[[DomainEvent], Any]


class OutboxDispatcher:
    """
    发件箱分发器。
    读取待分发记录，还原为领域事件后交给发布函数（默认DomainEvents.publish）。
    """

    def __init__(
        self,
        outbox_repository: OutboxRepository,
        publisher: Optional[EventPublisher] = None,
        batch_size: int = 100,
        max_attempts: int = 5
    ):
        """
        初始化发件箱分发器。

        Args:
            outbox_repository: 发件箱仓储
            publisher: 事件发布函数
            batch_size: 每批读取的记录数
            max_attempts: 单条记录最大尝试次数
        """
        self.outbox_repository = outbox_repository
        self.publisher = publisher or DomainEvents.publish
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self._lock = threading.Lock()

    def dispatch_pending(self) -> int:
        """
        分发一批待分发记录。

        Returns:
            成功分发的记录数
        """
        # 同一进程内串行分发，跨进程的重复投递由订阅方按事件ID去重
        with self._lock:
            records = self.outbox_repository.get_pending(self.batch_size)
            dispatched = 0
            for record in records:
                try:
                    self.publisher(record.to_event())
                except Exception as e:
                    logger.error(f"发件箱事件分发失败: id={record.id}, type={record.event_type}, error={e}")
                    self.outbox_repository.mark_failed(record.id, str(e), self.max_attempts)
                    continue
                self.outbox_repository.mark_dispatched(record.id)
                dispatched += 1
            if records:
                logger.debug(f"发件箱分发完成: {dispatched}/{len(records)}")
            return dispatched
