"""
刊登基础设施服务包。
"""
from listings.infrastructure.services.item_ownership_service import DjangoItemOwnershipService
from listings.infrastructure.services.cache_manager import ListingCacheManager

__all__ = [
    'DjangoItemOwnershipService',
    'ListingCacheManager',
]
