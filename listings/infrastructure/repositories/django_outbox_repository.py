"""
基于Django ORM的发件箱仓储实现。
记录与刊登数据使用同一个数据库连接，因此随业务事务一起提交或回滚。
"""
from datetime import datetime, timezone
from typing import List
import uuid

from django.db.models import F

from core.infrastructure.outbox import OutboxRecord, OutboxRepository, OutboxStatus
from listings.infrastructure.models.listing_models import OutboxMessage


class DjangoOutboxRepository(OutboxRepository):
    """
    基于Django ORM的发件箱仓储实现。
    """

    def add(self, record: OutboxRecord) -> None:
        OutboxMessage.objects.create(
            id=record.id,
            event_type=record.event_type,
            aggregate_type=record.aggregate_type,
            aggregate_id=record.aggregate_id,
            payload=record.payload,
            occurred_on=record.occurred_on,
            status=record.status.value,
            attempts=record.attempts,
        )

    def get_pending(self, limit: int = 100) -> List[OutboxRecord]:
        messages = OutboxMessage.objects.filter(
            status=OutboxMessage.StatusChoices.PENDING
        ).order_by('occurred_on', 'id')[:limit]
        return [self._to_record(message) for message in messages]

    def mark_dispatched(self, record_id: uuid.UUID) -> None:
        OutboxMessage.objects.filter(id=record_id).update(
            status=OutboxMessage.StatusChoices.DISPATCHED,
            attempts=F('attempts') + 1,
            dispatched_at=datetime.now(timezone.utc),
        )

    def mark_failed(self, record_id: uuid.UUID, error: str, max_attempts: int) -> None:
        """
        记录一次分发失败，达到最大尝试次数后标记为FAILED。

        Args:
            record_id: 记录ID
            error: 错误信息
            max_attempts: 最大尝试次数
        """
        OutboxMessage.objects.filter(id=record_id).update(attempts=F('attempts') + 1, last_error=error)
        OutboxMessage.objects.filter(id=record_id, attempts__gte=max_attempts).update(
            status=OutboxMessage.StatusChoices.FAILED
        )

    @staticmethod
    def _to_record(message: OutboxMessage) -> OutboxRecord:
        return OutboxRecord(
            id=message.id,
            event_type=message.event_type,
            aggregate_type=message.aggregate_type,
            aggregate_id=message.aggregate_id,
            payload=message.payload,
            occurred_on=message.occurred_on,
            status=OutboxStatus(message.status),
            attempts=message.attempts,
            last_error=message.last_error,
            dispatched_at=message.dispatched_at,
        )
