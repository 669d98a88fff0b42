"""
取消令牌模块。
在一次请求内传递取消信号，长流程在各步骤之间检查并提前终止。
"""
import threading
import time
from typing import Optional

from core.domain.exceptions import OperationCancelledException


class CancellationToken:
    """
    线程安全的取消令牌，可选截止时间。

    Example:
        token = CancellationToken.with_timeout(5)
        token.raise_if_cancelled("创建刊登")
    """

    def __init__(self, deadline: Optional[float] = None):
        """
        初始化取消令牌。

        Args:
            deadline: 基于time.monotonic()的截止时间，None表示不超时
        """
        self._event = threading.Event()
        self._deadline = deadline

    @classmethod
    def none(cls) -> 'CancellationToken':
        """返回一个永不取消的令牌。"""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: Optional[float]) -> 'CancellationToken':
        """
        创建在指定秒数后自动取消的令牌。

        Args:
            seconds: 超时秒数，None或非正数表示不超时
        """
        if not seconds or seconds <= 0:
            return cls()
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def raise_if_cancelled(self, operation: str = "操作") -> None:
        """
        已取消时抛出OperationCancelledException。

        Args:
            operation: 操作名称，用于异常消息
        """
        if self.is_cancelled:
            raise OperationCancelledException(operation)
