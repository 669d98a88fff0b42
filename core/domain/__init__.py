"""
领域模型包。
提供实体、值对象、聚合根、领域事件、结果对象等领域驱动设计(DDD)的核心概念。
"""

# 基础类
from core.domain.base import Entity
from core.domain.value_objects import ValueObject, Money
from core.domain.aggregates import AggregateRoot
from core.domain.result import Result

# 领域事件
from core.domain.events import DomainEvent, DomainEvents

# 领域异常
from core.domain.exceptions import (
    DomainException,
    ValidationException,
    CurrencyMismatchException,
    EntityNotFoundException,
    AuthorizationException,
    ConflictException,
    DuplicateListingException,
    ConcurrencyException,
    InvalidStateTransitionException,
    OperationCancelledException,
)

# 仓储接口
from core.domain.repositories import Repository, SearchableRepository

__all__ = [
    # 基础类
    'Entity',
    'ValueObject',
    'Money',
    'AggregateRoot',
    'Result',

    # 领域事件
    'DomainEvent',
    'DomainEvents',

    # 领域异常
    'DomainException',
    'ValidationException',
    'CurrencyMismatchException',
    'EntityNotFoundException',
    'AuthorizationException',
    'ConflictException',
    'DuplicateListingException',
    'ConcurrencyException',
    'InvalidStateTransitionException',
    'OperationCancelledException',

    # 仓储接口
    'Repository',
    'SearchableRepository',
]
