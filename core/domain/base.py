"""
核心领域模型基类模块。
包含Entity基类，用于所有具有唯一标识的领域对象（刊登、分类等）。
"""
from typing import Any
import uuid


class Entity:
    """
    实体基类。
    实体是具有唯一标识的领域对象，其相等性通过标识而非属性值判断。
    同一标识的两个实体实例，即使属性不同，也表示同一个业务对象的不同时刻。
    """

    def __init__(self, id: Any = None):
        """
        初始化实体。

        Args:
            id: 实体标识，如果未提供，将自动生成UUID
        """
        self.id = id if id is not None else uuid.uuid4()

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Entity) or type(self) is not type(other):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id}>"
