"""
事务管理器模块。
提供事务控制的接口和实现，以及提交后/回滚时的回调登记。
"""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Generator, Optional
import threading

from django.db import transaction as django_transaction
from loguru import logger

Callback = Callable[[], None]


class TransactionManager(ABC):
    """
    事务管理器接口。
    定义开启事务、登记提交后回调的抽象方法。
    """

    @abstractmethod
    @contextmanager
    def start(self) -> Generator[None, None, None]:
        """
        开启一个事务。
        返回一个上下文管理器，作用域正常结束时提交，抛出异常时回滚。

        Yields:
            None
        """

    @abstractmethod
    def on_commit(self, callback: Callback) -> None:
        """
        登记一个在当前事务成功提交后执行的回调。
        不在事务中时立即执行。

        Args:
            callback: 无参回调
        """

    def on_rollback(self, callback: Callback) -> None:
        """
        登记一个在当前事务回滚时执行的补偿回调。
        存储本身支持回滚时（如数据库）无需任何操作。

        Args:
            callback: 无参回调
        """


class DjangoTransactionManager(TransactionManager):
    """
    基于Django的事务管理器实现。
    使用Django的atomic()机制来管理事务，嵌套调用时使用保存点。
    """

    def __init__(self, using: Optional[str] = None):
        """
        初始化Django事务管理器。

        Args:
            using: 数据库别名，默认使用default
        """
        self.using = using

    @contextmanager
    def start(self) -> Generator[None, None, None]:
        try:
            with django_transaction.atomic(using=self.using):
                logger.debug("事务已开启")
                yield
                logger.debug("事务已提交")
        except Exception as e:
            logger.warning(f"事务回滚: {e}")
            raise

    def on_commit(self, callback: Callback) -> None:
        # robust=True: 回调失败只记录日志，不影响已提交的请求
        django_transaction.on_commit(callback, using=self.using, robust=True)


class NoOpTransactionManager(TransactionManager):
    """
    内存事务管理器。
    用于单元测试和内存仓储：不控制任何数据库连接，
    但会在最外层作用域结束时执行提交回调，或在异常时按逆序执行补偿回调。
    状态按线程隔离。
    """

    def __init__(self):
        self._local = threading.local()

    def _state(self):
        if not hasattr(self._local, "depth"):
            self._local.depth = 0
            self._local.commit_callbacks = []
            self._local.rollback_callbacks = []
        return self._local

    @contextmanager
    def start(self) -> Generator[None, None, None]:
        state = self._state()
        state.depth += 1
        if state.depth == 1:
            logger.debug("模拟事务已开启")
        try:
            yield
        except Exception:
            state.depth -= 1
            if state.depth == 0:
                self._rollback(state)
            raise
        state.depth -= 1
        if state.depth == 0:
            self._commit(state)

    def _commit(self, state) -> None:
        callbacks = state.commit_callbacks
        state.commit_callbacks = []
        state.rollback_callbacks = []
        logger.debug("模拟事务已提交")
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"事务提交后回调执行失败: {e}")

    def _rollback(self, state) -> None:
        callbacks = state.rollback_callbacks
        state.commit_callbacks = []
        state.rollback_callbacks = []
        logger.debug("模拟事务已回滚")
        for callback in reversed(callbacks):
            try:
                callback()
            except Exception as e:
                logger.error(f"回滚补偿回调执行失败: {e}")

    @property
    def in_transaction(self) -> bool:
        return self._state().depth > 0

    def on_commit(self, callback: Callback) -> None:
        state = self._state()
        if state.depth == 0:
            callback()
            return
        state.commit_callbacks.append(callback)

    def on_rollback(self, callback: Callback) -> None:
        state = self._state()
        if state.depth > 0:
            state.rollback_callbacks.append(callback)
