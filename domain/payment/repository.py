"""
支付订单仓储端口 - 定义订单数据访问的能力接口

Orchestration depends on this Protocol; infrastructure provides adapters and
tests provide in-memory doubles, without any shared base class.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from .entity import PaymentOrder


@runtime_checkable
class PaymentOrderRepository(Protocol):
    """支付订单仓储 - 只定义能做什么，不管怎么做

    Contract:
    - ``save`` raises DuplicateOrderException when out_order_no already exists.
    - ``update`` is conditional on ``order.version``: a lost race raises
      StaleOrderException, a missing row raises OrderNotFoundException. On
      success the order's version is advanced.
    - ``delete`` raises OrderNotFoundException when the id is unknown.
    """

    async def save(self, order: PaymentOrder) -> None: ...

    async def find_by_id(self, order_id: str) -> Optional[PaymentOrder]: ...

    async def find_by_out_order_no(self, out_order_no: str) -> Optional[PaymentOrder]: ...

    async def find_by_transaction_id(self, transaction_id: str) -> Optional[PaymentOrder]: ...

    async def update(self, order: PaymentOrder) -> None: ...

    async def delete(self, order_id: str) -> None: ...
