"""
刊登领域模型中的仓储接口。
定义用于持久化和检索刊登聚合、分类实体的仓储接口，以及外部物品所有权查询接口。
"""
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple
import uuid

from core.domain.repositories import Repository, SearchableRepository
from listings.domain.aggregates import Listing
from listings.domain.entities import Category
from listings.domain.search import ListingSearchCriteria


class ListingRepository(SearchableRepository[Listing, ListingSearchCriteria]):
    """
    刊登仓储接口。
    add/save在同一事务中把聚合上待发布的领域事件写入发件箱。
    """

    @abstractmethod
    def get_by_id(self, id: Any) -> Optional[Listing]:
        """
        根据ID获取刊登，包括已软删除的刊登。

        Args:
            id: 刊登ID

        Returns:
            找到的刊登，如果不存在则返回None
        """

    @abstractmethod
    def get_active_by_item(self, item_id: Any) -> Optional[Listing]:
        """获取物品当前未删除的刊登"""

    @abstractmethod
    def exists_active_for_item(self, item_id: Any) -> bool:
        """
        检查物品是否已有未删除的刊登。

        Args:
            item_id: 物品ID

        Returns:
            存在未删除刊登时返回True
        """

    @abstractmethod
    def add(self, listing: Listing) -> Listing:
        """
        新增刊登。

        Raises:
            DuplicateListingException: 存储层唯一约束冲突时抛出
        """

    @abstractmethod
    def save(self, listing: Listing) -> Listing:
        """
        按版本号比对更新刊登。

        Raises:
            ConcurrencyException: 版本号不匹配时抛出
            DuplicateListingException: 恢复的刊登与物品现有刊登冲突时抛出
        """

    @abstractmethod
    def search(self, criteria: ListingSearchCriteria) -> Tuple[List[Listing], int]:
        """
        按条件分页搜索刊登。

        Args:
            criteria: 已校验的查询条件

        Returns:
            当前页刊登和（可能被截断的）总数
        """

    @abstractmethod
    def find_expired(self, now, limit: int = 500) -> List[Listing]:
        """
        查找已超过过期时间但仍为Active的刊登。

        Args:
            now: 当前时间
            limit: 最多返回的数量
        """


class CategoryRepository(Repository[Category]):
    """
    分类仓储接口。
    """

    @abstractmethod
    def get_by_id(self, id: Any) -> Optional[Category]:
        """根据ID获取分类"""

    @abstractmethod
    def get_parent_id(self, category_id: Any) -> Optional[uuid.UUID]:
        """
        只读取分类的父分类ID，用于祖先遍历。

        Args:
            category_id: 分类ID

        Returns:
            父分类ID；根分类或分类不存在时返回None
        """

    @abstractmethod
    def get_children(self, parent_id: Any) -> List[Category]:
        """获取直接子分类"""

    @abstractmethod
    def exists(self, category_id: Any) -> bool:
        """检查分类是否存在"""


class ItemOwnershipService(ABC):
    """
    物品所有权查询接口。
    物品由外部的物品服务管理，这里只需要知道物品归属哪个卖家。
    """

    @abstractmethod
    def get_owner_id(self, item_id: Any) -> Optional[uuid.UUID]:
        """
        获取物品所有者ID。

        Args:
            item_id: 物品ID

        Returns:
            所有者的卖家ID；物品不存在时返回None
        """
