"""
刊登领域模型包。
提供刊登相关的值对象、聚合根、实体、事件、查询条件、仓储接口和领域服务。
"""

# 值对象
from listings.domain.value_objects import ListingType, ListingStatus, Location, AuctionSettings

# 聚合根
from listings.domain.aggregates import Listing

# 实体
from listings.domain.entities import Category

# 领域事件
from listings.domain.events import (
    ListingCreated,
    ListingConvertedToAuction,
    ListingLocationUpdated,
    ListingUpdated,
    ListingExpired,
    ListingCompleted,
    ListingSoftDeleted,
    ListingRestored,
)

# 查询条件
from listings.domain.search import ListingSearchCriteria, BoundingBox, SortField, SortDirection

# 仓储接口
from listings.domain.repositories import ListingRepository, CategoryRepository, ItemOwnershipService

# 领域服务
from listings.domain.services import ListingDomainService, CategoryService

__all__ = [
    # 值对象
    'ListingType',
    'ListingStatus',
    'Location',
    'AuctionSettings',

    # 聚合根
    'Listing',

    # 实体
    'Category',

    # 领域事件
    'ListingCreated',
    'ListingConvertedToAuction',
    'ListingLocationUpdated',
    'ListingUpdated',
    'ListingExpired',
    'ListingCompleted',
    'ListingSoftDeleted',
    'ListingRestored',

    # 查询条件
    'ListingSearchCriteria',
    'BoundingBox',
    'SortField',
    'SortDirection',

    # 仓储接口
    'ListingRepository',
    'CategoryRepository',
    'ItemOwnershipService',

    # 领域服务
    'ListingDomainService',
    'CategoryService',
]
