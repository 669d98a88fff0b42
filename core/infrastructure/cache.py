"""
缓存服务模块。
提供缓存服务的接口和实现：Redis（跨进程共享）、内存（单进程/测试）和空实现。
"""
from abc import ABC, abstractmethod
import fnmatch
import pickle
import threading
import time
from typing import Any, Optional

from cachetools import TTLCache
from loguru import logger
import redis


class CacheService(ABC):
    """
    缓存服务接口。
    定义缓存操作的抽象方法。键模式使用glob语法（如"search:*"）。
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """
        从缓存中获取值。

        Args:
            key: 缓存键

        Returns:
            缓存值，如果不存在则返回None
        """

    @abstractmethod
    def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        """
        将值存入缓存。

        Args:
            key: 缓存键
            value: 要缓存的值
            ttl: 过期时间（秒）

        Returns:
            是否成功
        """

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        从缓存中删除键。

        Args:
            key: 缓存键

        Returns:
            键是否存在并被删除
        """

    @abstractmethod
    def delete_pattern(self, pattern: str) -> int:
        """
        删除匹配模式的所有键。

        Args:
            pattern: glob键模式

        Returns:
            删除的键数量
        """

    @abstractmethod
    def exists(self, key: str) -> bool:
        """检查键是否存在。"""

    @abstractmethod
    def clear(self) -> bool:
        """清空本服务管理的全部键。"""


class RedisCacheService(CacheService):
    """
    基于Redis的缓存服务实现。
    所有进程共享同一份数据，写操作后的失效对其他进程立即可见。
    """

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "marketplace:"):
        """
        初始化Redis缓存服务。

        Args:
            redis_client: Redis客户端
            key_prefix: 键前缀
        """
        self.redis_client = redis_client
        self.key_prefix = key_prefix

    def _get_full_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def get(self, key: str) -> Optional[Any]:
        full_key = self._get_full_key(key)
        try:
            value = self.redis_client.get(full_key)
            if value is not None:
                logger.debug(f"Redis缓存命中: {key}")
                return pickle.loads(value)
        except (redis.RedisError, pickle.PickleError) as e:
            logger.error(f"Redis缓存读取错误: {e}")
            return None

        logger.debug(f"缓存未命中: {key}")
        return None

    def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        full_key = self._get_full_key(key)
        try:
            serialized = pickle.dumps(value)
            result = self.redis_client.setex(full_key, ttl, serialized)
            logger.debug(f"缓存已设置: {key}, TTL: {ttl}秒")
            return bool(result)
        except (redis.RedisError, pickle.PickleError) as e:
            logger.error(f"Redis缓存写入错误: {e}")
            return False

    def delete(self, key: str) -> bool:
        full_key = self._get_full_key(key)
        try:
            result = self.redis_client.delete(full_key)
            logger.debug(f"缓存已删除: {key}")
            return result > 0
        except redis.RedisError as e:
            logger.error(f"Redis缓存删除错误: {e}")
            return False

    def delete_pattern(self, pattern: str) -> int:
        """
        删除匹配模式的所有键。
        使用SCAN分批遍历，避免KEYS阻塞Redis。
        """
        full_pattern = self._get_full_key(pattern)
        count = 0
        try:
            batch = []
            for full_key in self.redis_client.scan_iter(match=full_pattern, count=500):
                batch.append(full_key)
                if len(batch) >= 500:
                    count += self.redis_client.delete(*batch)
                    batch = []
            if batch:
                count += self.redis_client.delete(*batch)
            logger.debug(f"已删除匹配模式 {pattern} 的 {count} 个键")
            return count
        except redis.RedisError as e:
            logger.error(f"Redis缓存模式删除错误: {e}")
            return count

    def exists(self, key: str) -> bool:
        full_key = self._get_full_key(key)
        try:
            return bool(self.redis_client.exists(full_key))
        except redis.RedisError as e:
            logger.error(f"Redis缓存检查错误: {e}")
            return False

    def clear(self) -> bool:
        deleted = self.delete_pattern("*")
        logger.debug(f"缓存已清空, 删除了 {deleted} 个键")
        return True


class MemoryCacheService(CacheService):
    """
    基于内存的缓存服务实现。
    使用TTLCache限制容量和最长存活时间，每个键另外记录自己的过期时刻，
    适用于单进程部署和测试。
    """

    def __init__(self, maxsize: int = 1000, default_ttl: int = 300, max_ttl: int = 3600):
        """
        初始化内存缓存服务。

        Args:
            maxsize: 最大缓存项数
            default_ttl: 默认TTL（秒）
            max_ttl: 允许的最长TTL（秒）
        """
        self.cache = TTLCache(maxsize=maxsize, ttl=max_ttl)
        self.default_ttl = default_ttl
        self.max_ttl = max_ttl
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self.cache.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if time.monotonic() >= expires_at:
                self.cache.pop(key, None)
                return None
            return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if ttl is None:
            ttl = self.default_ttl
        ttl = min(ttl, self.max_ttl)
        with self._lock:
            self.cache[key] = (time.monotonic() + ttl, value)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self.cache.pop(key, None) is not None

    def delete_pattern(self, pattern: str) -> int:
        with self._lock:
            keys_to_delete = [k for k in list(self.cache.keys()) if fnmatch.fnmatchcase(k, pattern)]
            for key in keys_to_delete:
                self.cache.pop(key, None)
        return len(keys_to_delete)

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> bool:
        with self._lock:
            self.cache.clear()
        return True


class NoCacheService(CacheService):
    """
    空缓存服务实现。
    不进行实际缓存，适用于禁用缓存的场景。
    """

    def get(self, key: str) -> Optional[Any]:
        return None

    def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        return True

    def delete(self, key: str) -> bool:
        return False

    def delete_pattern(self, pattern: str) -> int:
        return 0

    def exists(self, key: str) -> bool:
        return False

    def clear(self) -> bool:
        return True
