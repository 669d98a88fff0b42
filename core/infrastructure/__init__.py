"""
基础设施层包。
提供事务管理、缓存服务、事务发件箱、取消令牌等基础设施组件。
"""

# 事务管理
from core.infrastructure.transaction import (
    TransactionManager,
    DjangoTransactionManager,
    NoOpTransactionManager
)

# 缓存服务
from core.infrastructure.cache import (
    CacheService,
    RedisCacheService,
    MemoryCacheService,
    NoCacheService
)

# 事务发件箱
from core.infrastructure.outbox import (
    OutboxStatus,
    OutboxRecord,
    OutboxRepository,
    InMemoryOutboxRepository,
    OutboxDispatcher,
)

# 取消令牌
from core.infrastructure.cancellation import CancellationToken

__all__ = [
    # 事务管理
    'TransactionManager',
    'DjangoTransactionManager',
    'NoOpTransactionManager',

    # 缓存服务
    'CacheService',
    'RedisCacheService',
    'MemoryCacheService',
    'NoCacheService',

    # 事务发件箱
    'OutboxStatus',
    'OutboxRecord',
    'OutboxRepository',
    'InMemoryOutboxRepository',
    'OutboxDispatcher',

    # 取消令牌
    'CancellationToken',
]
