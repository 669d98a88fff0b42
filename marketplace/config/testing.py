"""
测试环境配置文件。
包含测试环境特定的Django配置。
"""
from .base import *
from .env import *

# 测试环境禁用调试模式
DEBUG = False
SECRET_KEY = 'marketplace-testing-secret-key'
ALLOWED_HOSTS = ['testserver', 'localhost']

# 使用内存数据库加速测试
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

# 测试环境不依赖Redis
CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

# 简化日志配置
LOGGING = {
    'version': 1,
    'disable_existing_loggers': True,
    'handlers': {
        'console': {
            'level': 'ERROR',
            'class': 'logging.StreamHandler',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'ERROR',
            'propagate': False,
        },
        'listings': {
            'handlers': ['console'],
            'level': 'ERROR',
            'propagate': False,
        },
        'core': {
            'handlers': ['console'],
            'level': 'ERROR',
            'propagate': False,
        },
    },
}

REST_FRAMEWORK['TEST_REQUEST_DEFAULT_FORMAT'] = 'json'

# 刊登模块测试环境配置：内存缓存，提交后同步分发事件
LISTING_SETTINGS = {
    'CACHE_BACKEND': 'memory',
    'CACHE_TIMEOUT': 300,
    'REQUEST_TIMEOUT': 30,
    'OUTBOX_BATCH_SIZE': 100,
    'OUTBOX_MAX_ATTEMPTS': 3,
    'DISPATCH_EVENTS_ON_COMMIT': True,
}
