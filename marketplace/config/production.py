"""
生产环境配置文件。
持久化数据库连接，Redis设置超时，日志按大小轮转。
"""
from .base import *
from .env import *

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': DB_ENGINE,
        'NAME': DB_NAME,
        'USER': DB_USER,
        'PASSWORD': DB_PASSWORD,
        'HOST': DB_HOST,
        'PORT': DB_PORT,
        'CONN_MAX_AGE': 60,
    }
}
if DB_ENGINE.endswith('mysql'):
    DATABASES['default']['OPTIONS'] = {'charset': 'utf8mb4'}

CACHES = {
    'default': {
        'BACKEND': 'django_redis.cache.RedisCache',
        'LOCATION': REDIS_URL,
        'OPTIONS': {
            'CLIENT_CLASS': 'django_redis.client.DefaultClient',
            'CONNECTION_POOL_KWARGS': {'max_connections': REDIS_MAX_CONNECTIONS},
            'PASSWORD': REDIS_PASSWORD,
            'SOCKET_TIMEOUT': 5,
            'SOCKET_CONNECT_TIMEOUT': 5,
            # 缓存不可用时降级为未命中
            'IGNORE_EXCEPTIONS': True,
        },
        'KEY_PREFIX': REDIS_KEY_PREFIX,
        'TIMEOUT': LISTING_CACHE_TIMEOUT,
    }
}


def _rotating(filename, level):
    return {
        'level': level,
        'class': 'logging.handlers.RotatingFileHandler',
        'filename': str(LOG_DIR / filename),
        'maxBytes': 10 * 1024 * 1024,
        'backupCount': 10,
        'formatter': 'verbose',
    }


LOGGING = build_logging(
    console_level='WARNING',
    app_level='INFO',
    file_handlers={
        'file': _rotating('marketplace.log', 'INFO'),
        'error_file': _rotating('error.log', 'ERROR'),
    },
)

# 安全设置
SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_HSTS_SECONDS = 31536000
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_SSL_REDIRECT = get_env('SECURE_SSL_REDIRECT', default=True, cast_type=bool)

# 限流：匿名请求按IP，网关用户按用户ID
REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = [
    'rest_framework.throttling.AnonRateThrottle',
    'rest_framework.throttling.UserRateThrottle',
]
REST_FRAMEWORK['DEFAULT_THROTTLE_RATES'] = {
    'anon': get_env('THROTTLE_ANON_RATE', default='1000/hour'),
    'user': get_env('THROTTLE_USER_RATE', default='10000/hour'),
}
