"""
基础配置文件。
包含所有环境共享的Django配置。
"""
import os

from .env import *

ROOT_URLCONF = 'marketplace.urls'
WSGI_APPLICATION = 'marketplace.wsgi.application'

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'rest_framework',
    'listings',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
            ],
        },
    },
]

# 国际化
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# REST framework配置
REST_FRAMEWORK = {
    'EXCEPTION_HANDLER': 'core.infrastructure.exception_handler.unified_exception_handler',
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'listings.api.authentication.GatewayHeaderAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
    'UNAUTHENTICATED_USER': None,
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    'COERCE_DECIMAL_TO_STRING': True,
}

# 刊登模块配置
LISTING_SETTINGS = {
    'CACHE_BACKEND': LISTING_CACHE_BACKEND,
    'CACHE_TIMEOUT': LISTING_CACHE_TIMEOUT,
    'REQUEST_TIMEOUT': LISTING_REQUEST_TIMEOUT,
    'OUTBOX_BATCH_SIZE': LISTING_OUTBOX_BATCH_SIZE,
    'OUTBOX_MAX_ATTEMPTS': LISTING_OUTBOX_MAX_ATTEMPTS,
    'DISPATCH_EVENTS_ON_COMMIT': LISTING_DISPATCH_EVENTS_ON_COMMIT,
}

# 日志目录
LOG_DIR = BASE_DIR / 'logs'
LOG_FORMAT = '{levelname} {asctime} {name} {process:d} {thread:d} {message}'
APP_LOGGERS = ('listings', 'core')


def build_logging(console_level, app_level, file_handlers):
    """
    构建各环境共用的LOGGING字典

    Args:
        console_level: 控制台输出级别
        app_level: listings与core日志器级别
        file_handlers: 文件处理器，键为处理器名称

    Returns:
        dict: 可直接赋值给LOGGING的配置
    """
    if file_handlers:
        os.makedirs(LOG_DIR, exist_ok=True)
    handlers = {
        'console': {
            'level': console_level,
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
        **file_handlers,
    }
    names = list(handlers)
    loggers = {'django': {'handlers': names, 'level': 'INFO', 'propagate': True}}
    for logger in APP_LOGGERS:
        loggers[logger] = {'handlers': names, 'level': app_level, 'propagate': False}
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {'verbose': {'format': LOG_FORMAT, 'style': '{'}},
        'handlers': handlers,
        'loggers': loggers,
    }
