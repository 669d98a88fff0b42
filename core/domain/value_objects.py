"""
值对象模块。
包含ValueObject基类和通用值对象Money。
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Union

from core.domain.exceptions import CurrencyMismatchException, ValidationException

AmountLike = Union[Decimal, int, float, str]

TWO_PLACES = Decimal("0.01")


class ValueObject:
    """
    值对象基类。
    值对象是通过其属性值而非标识定义的不可变对象。
    相同属性值的值对象被视为相等。属性在构造时赋值后不可再修改。
    """

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self.__dict__:
            raise AttributeError(f"{type(self).__name__}是不可变对象，不能修改属性'{name}'")
        super().__setattr__(name, value)

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"{type(self).__name__}是不可变对象，不能删除属性'{name}'")

    def __eq__(self, other: Any) -> bool:
        """
        判断两个值对象是否相等，通过比较它们的属性值。

        Args:
            other: 另一个值对象

        Returns:
            如果两个值对象的属性值相等，则返回True；否则返回False
        """
        if not isinstance(other, self.__class__):
            return False
        return self.__dict__ == other.__dict__

    def __hash__(self) -> int:
        # 将__dict__转换为可哈希类型(frozenset)
        items = frozenset((k, hash(v)) for k, v in self.__dict__.items())
        return hash(items)

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.__dict__.items())
        return f"{type(self).__name__}({fields})"


class Money(ValueObject):
    """
    金额值对象，表示带有货币单位的非负金额。
    加减和比较运算要求货币单位一致，否则抛出CurrencyMismatchException。
    """

    DEFAULT_CURRENCY = "USD"

    def __init__(self, amount: AmountLike, currency: str = DEFAULT_CURRENCY):
        """
        初始化金额值对象。

        Args:
            amount: 金额数值，将被转换为Decimal
            currency: ISO货币代码，默认为美元(USD)

        Raises:
            ValidationException: 金额非法、为负数或货币代码为空时抛出
        """
        try:
            value = Decimal(str(amount)) if not isinstance(amount, Decimal) else amount
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationException("amount", f"无效的金额: {amount}")
        if not value.is_finite():
            raise ValidationException("amount", f"无效的金额: {amount}")
        if value < 0:
            raise ValidationException("amount", "金额不能为负数")
        if currency is None or not str(currency).strip():
            raise ValidationException("currency", "货币代码不能为空")

        self.amount = value
        self.currency = str(currency).strip().upper()

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> 'Money':
        """返回指定货币的零金额。"""
        return cls(Decimal("0"), currency)

    @classmethod
    def from_cents(cls, cents: int, currency: str = DEFAULT_CURRENCY) -> 'Money':
        """
        由整数分值创建金额，避免浮点误差。

        Args:
            cents: 以分为单位的整数金额
            currency: 货币代码

        Returns:
            金额值对象
        """
        if isinstance(cents, bool) or not isinstance(cents, int):
            raise ValidationException("cents", f"分值必须为整数: {cents}")
        return cls(Decimal(cents) / Decimal(100), currency)

    def to_cents(self) -> int:
        """返回以分为单位的整数金额（四舍五入）。"""
        return int((self.amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def rounded(self) -> 'Money':
        """返回保留两位小数的金额。"""
        return Money(self.amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP), self.currency)

    def is_zero(self) -> bool:
        return self.amount == 0

    def _ensure_same_currency(self, other: 'Money') -> None:
        if not isinstance(other, Money):
            raise TypeError(f"不能与{type(other).__name__}进行金额运算")
        if self.currency != other.currency:
            raise CurrencyMismatchException(self.currency, other.currency)

    def __add__(self, other: 'Money') -> 'Money':
        """
        金额加法运算。

        Raises:
            CurrencyMismatchException: 当两个金额的货币单位不同时抛出
        """
        self._ensure_same_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        """
        金额减法运算。

        Raises:
            CurrencyMismatchException: 当两个金额的货币单位不同时抛出
            ValidationException: 当结果为负数时抛出
        """
        self._ensure_same_currency(other)
        result = self.amount - other.amount
        if result < 0:
            raise ValidationException("amount", f"金额相减结果不能为负数: {self} - {other}")
        return Money(result, self.currency)

    def __mul__(self, multiplier: AmountLike) -> 'Money':
        return Money(self.amount * Decimal(str(multiplier)), self.currency)

    def __lt__(self, other: 'Money') -> bool:
        self._ensure_same_currency(other)
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        self._ensure_same_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        self._ensure_same_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        self._ensure_same_currency(other)
        return self.amount >= other.amount

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Money):
            return False
        return self.currency == other.currency and self.amount == other.amount

    def __hash__(self) -> int:
        return hash((self.amount, self.currency))

    def __str__(self) -> str:
        return f"{self.currency} {self.amount:.2f}"

    def to_dict(self) -> Dict[str, Any]:
        """
        将金额转换为字典表示。

        Returns:
            包含金额和货币单位的字典
        """
        return {
            "amount": str(self.amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)),
            "currency": self.currency
        }
