"""
支付领域实体 - 支付订单聚合根
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
import uuid

from domain.common.exceptions import (
    DomainValidationException,
    InvalidAmountException,
    InvalidStateException,
)
from .events import (
    PaymentClosed,
    PaymentEvent,
    PaymentFailed,
    PaymentOrderCreated,
    PaymentSucceeded,
)
from .value_objects import Money, PaymentMethod, PaymentState


OUT_ORDER_NO_MAX_LEN = 64
DESCRIPTION_MAX_LEN = 127
CLIENT_IP_MAX_LEN = 45

_FINISHED_STATES = (PaymentState.SUCCEEDED, PaymentState.FAILED, PaymentState.CLOSED)
_TERMINAL_STATES = _FINISHED_STATES + (PaymentState.REFUNDED,)


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_length(value: Optional[str], field_name: str, max_len: int) -> None:
    if not value or len(value) > max_len:
        raise DomainValidationException(
            f"{field_name} must be 1-{max_len} characters",
            field=field_name,
        )


@dataclass
class PaymentOrder:
    """
    支付订单聚合根 - 管理支付生命周期

    业务规则：
    1. 商户订单号唯一，1-64 个字符
    2. 金额必须大于0，创建后不可变
    3. 状态只能通过 mark_* 方法按状态机转换
    4. paid_at 仅在支付成功时设置；transaction_id 仅由成功转换写入
    """

    id: str
    out_order_no: str
    amount: Money
    payment_method: PaymentMethod
    state: PaymentState
    description: str
    client_ip: str
    payer_id: Optional[str] = None
    attach: Optional[str] = None
    transaction_id: Optional[str] = None
    prepay_token: Optional[str] = None

    # 时间戳
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    # 乐观锁版本（持久化元数据）
    version: int = 1

    _events: List[PaymentEvent] = field(default_factory=list, repr=False, compare=False)

    def __post_init__(self):
        """初始化后规范化时间戳"""
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.paid_at = _ensure_utc(self.paid_at)

    @classmethod
    def create(
        cls,
        out_order_no: str,
        amount: Money,
        payment_method: PaymentMethod,
        description: str,
        client_ip: str,
        payer_id: Optional[str] = None,
        attach: Optional[str] = None,
    ) -> "PaymentOrder":
        """创建新的待支付订单，校验失败时不产生任何副作用"""
        if not amount.is_positive():
            raise InvalidAmountException(amount.to_minor())
        _check_length(out_order_no, "out_order_no", OUT_ORDER_NO_MAX_LEN)
        _check_length(description, "description", DESCRIPTION_MAX_LEN)
        _check_length(client_ip, "client_ip", CLIENT_IP_MAX_LEN)
        if payment_method.requires_payer and not payer_id:
            raise DomainValidationException(
                f"payer_id is required for {payment_method.value} payment",
                field="payer_id",
            )

        now = _utcnow()
        order = cls(
            id=str(uuid.uuid4()),
            out_order_no=out_order_no,
            amount=amount,
            payment_method=payment_method,
            state=PaymentState.PENDING,
            description=description,
            client_ip=client_ip,
            payer_id=payer_id,
            attach=attach,
            created_at=now,
            updated_at=now,
        )
        order._record(PaymentOrderCreated(order_id=order.id, out_order_no=out_order_no, amount_cents=amount.to_minor()))
        return order

    def mark_processing(self) -> None:
        """标记为处理中"""
        if self.state != PaymentState.PENDING:
            raise InvalidStateException(PaymentState.PENDING.value, self.state.value, out_order_no=self.out_order_no)
        self.state = PaymentState.PROCESSING
        self.updated_at = _utcnow()

    def mark_succeeded(self, transaction_id: str) -> None:
        """
        标记支付成功

        业务规则：只能从 pending 或 processing 转为 succeeded
        """
        self._require_open()
        if not transaction_id:
            raise DomainValidationException("transaction_id is required", field="transaction_id")
        self.state = PaymentState.SUCCEEDED
        self.transaction_id = transaction_id
        self.paid_at = _utcnow()
        self.updated_at = self.paid_at
        self._record(PaymentSucceeded(
            order_id=self.id,
            out_order_no=self.out_order_no,
            transaction_id=transaction_id,
            amount_cents=self.amount.to_minor(),
        ))

    def mark_failed(self, reason: str = "") -> None:
        """
        标记支付失败

        业务规则：只能从 pending 或 processing 转为 failed
        """
        self._require_open()
        self.state = PaymentState.FAILED
        self.updated_at = _utcnow()
        self._record(PaymentFailed(order_id=self.id, out_order_no=self.out_order_no, reason=reason))

    def mark_closed(self) -> None:
        """
        关闭订单

        业务规则：已支付或已退款的订单不能关闭
        """
        if self.state in (PaymentState.SUCCEEDED, PaymentState.REFUNDED):
            raise InvalidStateException(
                "pending or processing or failed or closed",
                self.state.value,
                out_order_no=self.out_order_no,
            )
        self.state = PaymentState.CLOSED
        self.updated_at = _utcnow()
        self._record(PaymentClosed(order_id=self.id, out_order_no=self.out_order_no))

    def set_prepay_token(self, token: str) -> None:
        """保存网关预下单凭证"""
        self.prepay_token = token
        self.updated_at = _utcnow()

    def can_pay(self) -> bool:
        return self.state == PaymentState.PENDING

    def is_finished(self) -> bool:
        """成功、失败或已关闭"""
        return self.state in _FINISHED_STATES

    def is_terminal(self) -> bool:
        """终态订单不再向网关查询"""
        return self.state in _TERMINAL_STATES

    def pull_events(self) -> List[PaymentEvent]:
        """取出并清空待发布的领域事件"""
        events, self._events = self._events, []
        return events

    def _require_open(self) -> None:
        if self.state not in (PaymentState.PENDING, PaymentState.PROCESSING):
            raise InvalidStateException(
                "pending or processing",
                self.state.value,
                out_order_no=self.out_order_no,
            )

    def _record(self, event: PaymentEvent) -> None:
        self._events.append(event)
