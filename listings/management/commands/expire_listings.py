"""
把已超过过期时间的有效刊登标记为过期。
由外部定时任务触发。
"""
from django.core.management.base import BaseCommand

from listings.infrastructure.factory import build_listing_service


class Command(BaseCommand):
    help = "将超过过期时间的有效刊登标记为过期"

    def add_arguments(self, parser):
        parser.add_argument('--limit', type=int, default=500, help="本次最多处理的刊登数")

    def handle(self, *args, **options):
        expired = build_listing_service().expire_due_listings(limit=options['limit'])
        self.stdout.write(self.style.SUCCESS(f"已标记{expired}条刊登过期"))
