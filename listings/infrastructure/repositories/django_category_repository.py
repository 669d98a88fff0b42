"""
基于Django ORM的分类仓储实现。
实现领域仓储接口，处理领域对象与数据库模型之间的转换。
"""
from typing import Any, List, Optional
import uuid

from django.db import transaction
from loguru import logger

from listings.domain.entities import Category as DomainCategory
from listings.domain.repositories import CategoryRepository
from listings.infrastructure.models.listing_models import Category as CategoryModel


class DjangoCategoryRepository(CategoryRepository):
    """
    基于Django ORM的分类仓储实现。
    """

    def get_by_id(self, id: Any) -> Optional[DomainCategory]:
        """
        根据ID获取分类。

        Args:
            id: 分类ID

        Returns:
            找到的分类，如果不存在则返回None
        """
        try:
            category_model = CategoryModel.objects.get(id=id)
        except (CategoryModel.DoesNotExist, ValueError, TypeError):
            return None
        return self._to_domain_entity(category_model)

    def get_parent_id(self, category_id: Any) -> Optional[uuid.UUID]:
        try:
            return CategoryModel.objects.filter(id=category_id).values_list('parent_id', flat=True).first()
        except (ValueError, TypeError):
            return None

    def get_children(self, parent_id: Any) -> List[DomainCategory]:
        """
        获取直接子分类，按名称排序。

        Args:
            parent_id: 父分类ID

        Returns:
            子分类列表
        """
        try:
            category_models = CategoryModel.objects.filter(parent_id=parent_id).order_by('name')
            return [self._to_domain_entity(model) for model in category_models]
        except (ValueError, TypeError):
            return []

    def exists(self, category_id: Any) -> bool:
        try:
            return CategoryModel.objects.filter(id=category_id).exists()
        except (ValueError, TypeError):
            return False

    def add(self, category: DomainCategory) -> DomainCategory:
        CategoryModel.objects.create(id=category.id, **self._to_model_fields(category))
        logger.debug(f"分类已新增: {category.id} ({category.name})")
        return category

    def save(self, category: DomainCategory) -> DomainCategory:
        """
        保存分类，不存在时新增。

        Args:
            category: 要保存的分类

        Returns:
            保存后的分类
        """
        with transaction.atomic():
            updated = CategoryModel.objects.filter(id=category.id).update(**self._to_model_fields(category))
            if updated == 0:
                return self.add(category)
        logger.debug(f"分类已更新: {category.id} ({category.name})")
        return category

    @staticmethod
    def _to_model_fields(category: DomainCategory):
        return {
            "name": category.name,
            "description": category.description,
            "parent_id": category.parent_id,
            "is_active": category.is_active,
            "created_at": category.created_at,
            "updated_at": category.updated_at,
        }

    @staticmethod
    def _to_domain_entity(category_model: CategoryModel) -> DomainCategory:
        """
        将数据库模型转换为领域实体。

        Args:
            category_model: 分类数据库模型

        Returns:
            分类领域实体
        """
        return DomainCategory(
            id=category_model.id,
            name=category_model.name,
            description=category_model.description,
            parent_id=category_model.parent_id,
            is_active=category_model.is_active,
            created_at=category_model.created_at,
            updated_at=category_model.updated_at,
        )
