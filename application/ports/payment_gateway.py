"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.payments import (
    GatewayOrderRequest,
    MiniProgramPayParams,
    NotificationResource,
    PrepayResult,
    TradeQueryResult,
    WebhookHeaders,
)


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for the WeChat Pay v3 API.

    Every outbound call carries a freshly computed authorization header.
    Implementations should be async and side-effect free beyond IO.
    """

    provider: str

    async def create_order(self, req: GatewayOrderRequest) -> PrepayResult: ...

    async def query_order(self, out_order_no: str) -> TradeQueryResult: ...

    async def close_order(self, out_order_no: str) -> None: ...

    def mini_program_payment_params(self, prepay_token: str) -> MiniProgramPayParams: ...

    def verify_notification(self, headers: WebhookHeaders, body: str) -> None: ...

    def decrypt_notification(self, resource: NotificationResource) -> str: ...
