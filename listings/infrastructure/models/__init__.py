"""
刊登基础设施层数据库模型包。
"""
from listings.infrastructure.models.listing_models import Category, Listing, ItemOwnership, OutboxMessage

__all__ = ['Category', 'Listing', 'ItemOwnership', 'OutboxMessage']
