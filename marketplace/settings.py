"""
marketplace项目配置入口。

按环境变量DJANGO_ENV选择config下的配置模块：production、testing，其余取development。
"""
import os

DJANGO_ENV = os.environ.get('DJANGO_ENV', 'development')

if DJANGO_ENV == 'production':
    from .config.production import *
elif DJANGO_ENV == 'testing':
    from .config.testing import *
else:
    from .config.development import *
