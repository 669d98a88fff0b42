"""
刊登仓储实现包。
"""
from listings.infrastructure.repositories.django_listing_repository import DjangoListingRepository
from listings.infrastructure.repositories.django_category_repository import DjangoCategoryRepository
from listings.infrastructure.repositories.django_outbox_repository import DjangoOutboxRepository
from listings.infrastructure.repositories.memory_repositories import (
    InMemoryListingRepository,
    InMemoryCategoryRepository,
    InMemoryItemOwnershipService,
)

__all__ = [
    'DjangoListingRepository',
    'DjangoCategoryRepository',
    'DjangoOutboxRepository',
    'InMemoryListingRepository',
    'InMemoryCategoryRepository',
    'InMemoryItemOwnershipService',
]
