"""
物品所有权查询服务。
读取本地的物品所有权投影表，该表由物品服务发布的数据同步而来。
"""
from typing import Any, Optional
import uuid

from loguru import logger

from listings.domain.repositories import ItemOwnershipService
from listings.infrastructure.models.listing_models import ItemOwnership


class DjangoItemOwnershipService(ItemOwnershipService):
    """
    基于Django ORM的物品所有权查询服务。
    """

    def get_owner_id(self, item_id: Any) -> Optional[uuid.UUID]:
        """
        获取物品所有者ID。

        Args:
            item_id: 物品ID

        Returns:
            所有者的卖家ID；物品不存在时返回None
        """
        try:
            return ItemOwnership.objects.filter(item_id=item_id).values_list('seller_id', flat=True).first()
        except (ValueError, TypeError):
            return None

    def register(self, item_id: Any, seller_id: Any) -> None:
        """登记或更新物品归属"""
        ItemOwnership.objects.update_or_create(item_id=item_id, defaults={'seller_id': seller_id})
        logger.debug(f"物品所有权已登记: item_id={item_id}, seller_id={seller_id}")
