"""
刊登模块配置文件。
领域常量固定在代码中；部署相关的参数从Django设置LISTING_SETTINGS读取。
"""
from datetime import timedelta
from decimal import Decimal

from django.conf import settings

# 获取刊登模块配置，如果不存在则使用默认值
LISTING_SETTINGS = getattr(settings, 'LISTING_SETTINGS', {})

# 文本长度限制
MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 5000
MAX_SEARCH_TERM_LENGTH = 100
MAX_CATEGORY_NAME_LENGTH = 100

# 刊登有效期
FREE_LISTING_DURATION = timedelta(days=30)
MIN_AUCTION_DURATION = timedelta(hours=1)
MAX_AUCTION_DURATION = timedelta(days=30)
DEFAULT_AUCTION_DURATION = timedelta(days=7)

# 最小加价幅度：起拍价的5%，不低于1.00
MIN_BID_INCREMENT_RATE = Decimal("0.05")
MIN_BID_INCREMENT_FLOOR = Decimal("1.00")

DEFAULT_CURRENCY = "USD"

# 查询限制
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
MAX_SEARCH_RADIUS_KM = 100.0
DEFAULT_NEARBY_RADIUS_KM = 10.0
MAX_SPATIAL_RESULTS = 1000
MAX_TOTAL_COUNT = 10000
MAX_BOUNDING_BOX_SPAN_DEGREES = 10.0

# 查询缓存有效期（秒），限制在5到15分钟之间
MIN_CACHE_TIMEOUT = 300
MAX_CACHE_TIMEOUT = 900
CACHE_TIMEOUT = min(max(LISTING_SETTINGS.get('CACHE_TIMEOUT', 600), MIN_CACHE_TIMEOUT), MAX_CACHE_TIMEOUT)

# 缓存后端: redis / memory / none
CACHE_BACKEND = LISTING_SETTINGS.get('CACHE_BACKEND', 'redis')

# 单次写请求的超时秒数，超时后取消令牌触发
REQUEST_TIMEOUT = LISTING_SETTINGS.get('REQUEST_TIMEOUT', 30)

# 事务发件箱
OUTBOX_BATCH_SIZE = LISTING_SETTINGS.get('OUTBOX_BATCH_SIZE', 100)
OUTBOX_MAX_ATTEMPTS = LISTING_SETTINGS.get('OUTBOX_MAX_ATTEMPTS', 5)
DISPATCH_EVENTS_ON_COMMIT = LISTING_SETTINGS.get('DISPATCH_EVENTS_ON_COMMIT', True)
