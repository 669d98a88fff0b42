"""
刊登领域模型中的实体。
包含刊登分类实体。分类组成一棵树，刊登通过category_id引用叶子或任意节点。
"""
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from core.domain import Entity, ValidationException
from listings.domain import config


def validate_category_name(name: Any) -> str:
    text = str(name).strip() if name is not None else ""
    if not text:
        raise ValidationException("name", "分类名称不能为空")
    if len(text) > config.MAX_CATEGORY_NAME_LENGTH:
        raise ValidationException("name", f"分类名称长度不能超过{config.MAX_CATEGORY_NAME_LENGTH}个字符")
    return text


class Category(Entity):
    """
    刊登分类实体。
    """

    def __init__(
        self,
        id: Any = None,
        name: str = "",
        description: str = "",
        parent_id: Any = None,
        is_active: bool = True,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        """
        初始化分类实体。

        Args:
            id: 分类ID，如果未提供则自动生成
            name: 分类名称
            description: 分类描述
            parent_id: 父分类ID，根分类为None
            is_active: 是否启用
            created_at: 创建时间
            updated_at: 更新时间

        Raises:
            ValidationException: 名称为空或超长时抛出
        """
        super().__init__(id)
        self.name = validate_category_name(name)
        self.description = (description or "").strip()
        self.parent_id = parent_id
        self.is_active = is_active
        now = datetime.now(timezone.utc)
        self.created_at = created_at or now
        self.updated_at = updated_at or now

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def rename(self, name: str, description: Optional[str] = None) -> None:
        self.name = validate_category_name(name)
        if description is not None:
            self.description = description.strip()
        self.updated_at = datetime.now(timezone.utc)

    def move_to(self, parent_id: Any) -> None:
        """
        修改父分类。环路检测由CategoryService负责。
        """
        self.parent_id = parent_id
        self.updated_at = datetime.now(timezone.utc)

    def category_path(self, ancestor_names: Iterable[str] = ()) -> str:
        """
        返回从根到当前分类的路径。

        Args:
            ancestor_names: 祖先分类名称，根在前

        Returns:
            形如"root/child/name"的路径
        """
        return "/".join([*ancestor_names, self.name])

    def to_dict(self):
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "parent_id": str(self.parent_id) if self.parent_id else None,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
