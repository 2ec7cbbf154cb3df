"""
支付值对象 - 金额、支付方式、支付状态
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Union

from domain.common.exceptions import DomainValidationException


class PaymentMethod(str, Enum):
    """支付方式枚举"""
    MINI_PROGRAM = "mini_program"  # 小程序支付
    JSAPI = "jsapi"                # 公众号支付
    NATIVE = "native"              # 扫码支付
    H5 = "h5"                      # 外部浏览器支付

    @property
    def requires_payer(self) -> bool:
        """JSAPI 类下单必须携带 payer.openid"""
        return self in (PaymentMethod.MINI_PROGRAM, PaymentMethod.JSAPI)

    def __str__(self) -> str:
        return self.value


class PaymentState(str, Enum):
    """支付状态枚举"""
    PENDING = "pending"        # 待支付
    PROCESSING = "processing"  # 支付中
    SUCCEEDED = "succeeded"    # 支付成功
    FAILED = "failed"          # 支付失败
    REFUNDED = "refunded"      # 已退款
    CLOSED = "closed"          # 已关闭

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Money:
    """
    货币金额（以分为单位，避免浮点精度问题）

    金额始终是整数分，比较与存储都不经过浮点数。
    """

    amount_cents: int

    def __post_init__(self) -> None:
        if isinstance(self.amount_cents, bool) or not isinstance(self.amount_cents, int):
            raise DomainValidationException(
                f"Amount must be an integer number of cents: {self.amount_cents!r}",
                field="amount",
            )

    @classmethod
    def from_major(cls, amount: Union[int, Decimal]) -> "Money":
        """由元构造；Decimal 必须恰好是整数分"""
        if isinstance(amount, bool) or not isinstance(amount, (int, Decimal)):
            raise DomainValidationException(f"Unsupported amount type: {type(amount).__name__}", field="amount")
        cents = Decimal(amount) * 100
        if cents != cents.to_integral_value():
            raise DomainValidationException(f"Amount has sub-cent precision: {amount}", field="amount")
        return cls(int(cents))

    @classmethod
    def from_minor(cls, cents: int) -> "Money":
        return cls(cents)

    def to_minor(self) -> int:
        return self.amount_cents

    def to_major(self) -> Decimal:
        return (Decimal(self.amount_cents) / 100).quantize(Decimal("0.01"))

    def is_positive(self) -> bool:
        return self.amount_cents > 0

    def __str__(self) -> str:
        return f"¥{self.to_major()}"
