"""
刊登缓存管理服务。
缓存单条刊登详情和搜索结果页。缓存键带有代际标记：读取方在查库之前取得键，
写操作提交后更换代际，查库期间被并发写入覆盖的旧数据只会落在旧代际的键上，不会再被读到。
"""
from typing import Any, Optional
import uuid

from loguru import logger

from core.infrastructure.cache import CacheService
from listings.domain import config


class ListingCacheManager:
    """
    刊登缓存管理服务。
    """

    # 缓存键前缀
    KEY_LISTING = "listing:"        # 单条刊登缓存键前缀
    KEY_SEARCH = "search:"          # 搜索结果缓存键前缀
    KEY_GENERATION = "generation:"  # 代际标记键前缀

    def __init__(self, cache_service: CacheService, ttl: int = config.CACHE_TIMEOUT):
        """
        初始化缓存管理服务。

        Args:
            cache_service: 缓存服务
            ttl: 缓存过期时间（秒）
        """
        self.cache_service = cache_service
        self.ttl = ttl
        # 代际标记必须比它管理的缓存项活得更久
        self.generation_ttl = max(ttl, config.MAX_CACHE_TIMEOUT)

    def _generation(self, scope: str) -> str:
        key = f"{self.KEY_GENERATION}{scope}"
        generation = self.cache_service.get(key)
        if generation is None:
            generation = uuid.uuid4().hex[:12]
            self.cache_service.set(key, generation, self.generation_ttl)
        return generation

    def _renew_generation(self, scope: str) -> None:
        self.cache_service.set(f"{self.KEY_GENERATION}{scope}", uuid.uuid4().hex[:12], self.generation_ttl)

    def listing_key(self, listing_id: Any) -> str:
        """单条刊登的当前缓存键，必须在查库之前取得"""
        scope = f"{self.KEY_LISTING}{listing_id}"
        return f"{scope}:{self._generation(scope)}"

    def page_key(self, criteria_key: str) -> str:
        """
        搜索结果页的当前缓存键，必须在查库之前取得。

        Args:
            criteria_key: 查询条件计算出的键，形如search:<digest>
        """
        return f"{criteria_key}:{self._generation(self.KEY_SEARCH)}"

    def get(self, key: str) -> Optional[Any]:
        return self.cache_service.get(key)

    def set(self, key: str, value: Any) -> None:
        self.cache_service.set(key, value, self.ttl)

    def invalidate_listing(self, listing_id: Any) -> None:
        """
        使单条刊登缓存和所有搜索缓存失效。

        Args:
            listing_id: 刊登ID
        """
        scope = f"{self.KEY_LISTING}{listing_id}"
        self._renew_generation(scope)
        self.cache_service.delete_pattern(f"{scope}:*")
        self.invalidate_search_cache()
        logger.debug(f"刊登缓存已失效: {listing_id}")

    def invalidate_search_cache(self) -> None:
        self._renew_generation(self.KEY_SEARCH)
        self.cache_service.delete_pattern(f"{self.KEY_SEARCH}*")
