"""
开发环境配置文件。
本地MySQL与Redis，输出DEBUG级别日志。
"""
from .base import *
from .env import *

DEBUG = True

DATABASES = {
    'default': {
        'ENGINE': DB_ENGINE,
        'NAME': DB_NAME,
        'USER': DB_USER,
        'PASSWORD': DB_PASSWORD,
        'HOST': DB_HOST,
        'PORT': DB_PORT,
    }
}
if DB_ENGINE.endswith('mysql'):
    DATABASES['default']['OPTIONS'] = {'charset': 'utf8mb4'}

# 本地Redis，不设置超时便于断点调试
CACHES = {
    'default': {
        'BACKEND': 'django_redis.cache.RedisCache',
        'LOCATION': REDIS_URL,
        'OPTIONS': {
            'CLIENT_CLASS': 'django_redis.client.DefaultClient',
            'PASSWORD': REDIS_PASSWORD,
        },
        'KEY_PREFIX': f'{REDIS_KEY_PREFIX}:dev',
    }
}

LOGGING = build_logging(
    console_level='DEBUG',
    app_level='DEBUG',
    file_handlers={
        'file': {
            'level': 'INFO',
            'class': 'logging.FileHandler',
            'filename': str(LOG_DIR / 'marketplace-dev.log'),
            'formatter': 'verbose',
        },
    },
)

REST_FRAMEWORK['DEFAULT_RENDERER_CLASSES'] = [
    'rest_framework.renderers.JSONRenderer',
    'rest_framework.renderers.BrowsableAPIRenderer',
]

# 开发环境直接在请求线程内分发事件，无需运行dispatch_outbox
LISTING_SETTINGS['DISPATCH_EVENTS_ON_COMMIT'] = True
