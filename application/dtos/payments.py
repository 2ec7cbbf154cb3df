"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from domain.payment.entity import PaymentOrder
from domain.payment.value_objects import PaymentMethod


class CreatePaymentRequest(BaseModel):
    """创建支付请求；金额以分为单位"""

    out_order_no: str
    amount: int = Field(..., description="支付金额（分）")
    payment_method: PaymentMethod = Field(
        default=PaymentMethod.MINI_PROGRAM,
        validation_alias=AliasChoices("payment_method", "method"),
    )
    description: str
    client_ip: Optional[str] = None
    payer_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("payer_id", "openid"),
    )
    attach: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("payment_method", mode="before")
    @classmethod
    def _normalize_method(cls, v: Any) -> Any:
        if isinstance(v, str):
            # accept MiniProgram / mini-program / MINI_PROGRAM
            return v.strip().replace("-", "_").lower().replace("miniprogram", "mini_program")
        return v


class MiniProgramPayParams(BaseModel):
    """小程序 wx.requestPayment 所需参数"""

    time_stamp: str
    nonce_str: str
    package: str
    sign_type: str = "RSA"
    pay_sign: str


class PaymentResponse(BaseModel):
    order_id: str
    out_order_no: str
    amount: int
    prepay_id: Optional[str] = None
    pay_params: Optional[MiniProgramPayParams] = None
    state: str
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None

    @classmethod
    def from_order(
        cls,
        order: PaymentOrder,
        pay_params: Optional[MiniProgramPayParams] = None,
    ) -> "PaymentResponse":
        return cls(
            order_id=order.id,
            out_order_no=order.out_order_no,
            amount=order.amount.to_minor(),
            prepay_id=order.prepay_token,
            pay_params=pay_params,
            state=order.state.value,
            transaction_id=order.transaction_id,
            paid_at=order.paid_at,
        )


class GatewayOrderRequest(BaseModel):
    """网关下单请求（与持久化无关的瞬时数据）"""

    out_order_no: str
    description: str
    amount_cents: int
    payment_method: PaymentMethod
    client_ip: str
    payer_id: Optional[str] = None
    attach: Optional[str] = None

    @classmethod
    def from_order(cls, order: PaymentOrder) -> "GatewayOrderRequest":
        return cls(
            out_order_no=order.out_order_no,
            description=order.description,
            amount_cents=order.amount.to_minor(),
            payment_method=order.payment_method,
            client_ip=order.client_ip,
            payer_id=order.payer_id,
            attach=order.attach,
        )


class PrepayResult(BaseModel):
    # prepay_id for jsapi/mini program, code_url for native, h5_url for h5
    prepay_token: str


class TradeQueryResult(BaseModel):
    trade_state: str
    transaction_id: Optional[str] = None
    trade_state_desc: Optional[str] = None


class NotificationResource(BaseModel):
    algorithm: str
    ciphertext: str
    nonce: str
    associated_data: str = ""
    original_type: Optional[str] = None


class PaymentNotification(BaseModel):
    """回调通知信封，resource 为加密数据"""

    id: str
    event_type: str
    resource: NotificationResource
    create_time: Optional[str] = None
    resource_type: Optional[str] = None
    summary: Optional[str] = None


class WebhookHeaders(BaseModel):
    timestamp: str
    nonce: str
    signature: str
    serial: Optional[str] = None
