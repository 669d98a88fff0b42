"""
分发发件箱中待发布的领域事件。
可由定时任务反复执行，重复投递由订阅方按事件ID去重。
"""
from django.core.management.base import BaseCommand
from loguru import logger

from core.infrastructure.outbox import OutboxDispatcher
from listings.domain import config
from listings.infrastructure.repositories.django_outbox_repository import DjangoOutboxRepository


class Command(BaseCommand):
    help = "分发发件箱中待发布的领域事件"

    def add_arguments(self, parser):
        parser.add_argument('--batch-size', type=int, default=config.OUTBOX_BATCH_SIZE, help="每批读取的记录数")
        parser.add_argument('--max-batches', type=int, default=10, help="本次最多处理的批数")

    def handle(self, *args, **options):
        dispatcher = OutboxDispatcher(
            outbox_repository=DjangoOutboxRepository(),
            batch_size=options['batch_size'],
            max_attempts=config.OUTBOX_MAX_ATTEMPTS,
        )
        total = 0
        for _ in range(options['max_batches']):
            dispatched = dispatcher.dispatch_pending()
            total += dispatched
            if dispatched < options['batch_size']:
                break
        logger.info(f"发件箱分发结束: 共分发{total}条事件")
        self.stdout.write(self.style.SUCCESS(f"已分发{total}条事件"))
