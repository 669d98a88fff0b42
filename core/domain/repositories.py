"""
仓储接口模块。
定义仓储接口，用于持久化和检索聚合。
聚合不做物理删除，因此基础接口只有读取、新增和更新。
"""
from abc import ABC, abstractmethod
from typing import Any, Generic, List, Optional, Tuple, TypeVar

T = TypeVar('T')
C = TypeVar('C')


class Repository(Generic[T], ABC):
    """
    仓储接口。
    定义了所有聚合仓储必须实现的基本操作。
    """

    @abstractmethod
    def get_by_id(self, id: Any) -> Optional[T]:
        """
        根据ID获取聚合。

        Args:
            id: 聚合ID

        Returns:
            找到的聚合，如果不存在则返回None
        """

    @abstractmethod
    def add(self, aggregate: T) -> T:
        """
        新增聚合，并把聚合上的待发布事件写入发件箱。

        Args:
            aggregate: 新建的聚合

        Returns:
            保存后的聚合
        """

    @abstractmethod
    def save(self, aggregate: T) -> T:
        """
        更新已存在的聚合，按版本号做乐观锁比对。

        Args:
            aggregate: 已修改的聚合

        Returns:
            保存后的聚合

        Raises:
            ConcurrencyException: 版本号不匹配时抛出
        """


class SearchableRepository(Repository[T], Generic[T, C], ABC):
    """
    可搜索仓储接口。
    扩展仓储，添加基于查询条件对象的分页搜索。
    """

    @abstractmethod
    def search(self, criteria: C) -> Tuple[List[T], int]:
        """
        搜索聚合。

        Args:
            criteria: 查询条件

        Returns:
            当前页的聚合列表和（可能被截断的）总数
        """
