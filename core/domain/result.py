"""
结果对象模块。
用显式的成功/失败值表达预期内的业务失败，而不是抛出异常。
"""
from typing import Any, Generic, Optional, TypeVar

from core.domain.exceptions import DomainException

T = TypeVar('T')


class Result(Generic[T]):
    """
    操作结果。
    成功时携带值；失败时携带领域异常，调用方可据异常类型映射传输层状态码。
    """

    __slots__ = ("_value", "_error")

    def __init__(self, value: Optional[T] = None, error: Optional[DomainException] = None):
        if value is not None and error is not None:
            raise ValueError("结果不能同时包含值和错误")
        self._value = value
        self._error = error

    @classmethod
    def success(cls, value: T) -> 'Result[T]':
        return cls(value=value)

    @classmethod
    def failure(cls, error: DomainException) -> 'Result[T]':
        if error is None:
            raise ValueError("失败结果必须包含错误")
        return cls(error=error)

    @property
    def is_success(self) -> bool:
        return self._error is None

    @property
    def is_failure(self) -> bool:
        return self._error is not None

    @property
    def value(self) -> T:
        if self._error is not None:
            raise ValueError(f"失败结果没有值: {self._error}")
        return self._value

    @property
    def error(self) -> Optional[DomainException]:
        return self._error

    @property
    def error_message(self) -> Optional[str]:
        return self._error.message if self._error is not None else None

    def unwrap(self) -> T:
        """返回值；失败时重新抛出携带的领域异常。"""
        if self._error is not None:
            raise self._error
        return self._value

    def __repr__(self) -> str:
        if self._error is not None:
            return f"Result.failure({self._error.__class__.__name__}: {self._error})"
        return f"Result.success({self._value!r})"


__all__ = ["Result"]
