"""
Retry policy layered above the PaymentGateway port.

Only idempotent reads/closes are retried, and only for retryable gateway
errors (transport failures, HTTP 429/5xx). Order creation is never retried.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from application.dtos.payments import (
    GatewayOrderRequest,
    MiniProgramPayParams,
    NotificationResource,
    PrepayResult,
    TradeQueryResult,
    WebhookHeaders,
)
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from domain.common.exceptions import GatewayException


logger = get_logger(__name__)

T = TypeVar("T")


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, GatewayException) and exc.retryable


class RetryingPaymentGateway:
    def __init__(
        self,
        inner: PaymentGateway,
        *,
        max_retries: int = 2,
        base_backoff: float = 0.2,
        max_backoff: float = 2.0,
    ) -> None:
        self.inner = inner
        self.provider = inner.provider
        self._max_retries = max_retries
        self._base_backoff = base_backoff
        self._max_backoff = max_backoff

    async def _retry(self, op: str, fn: Callable[[], Awaitable[T]]) -> T:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_retries + 1),
            wait=wait_exponential(multiplier=self._base_backoff, max=self._max_backoff),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info("payment_gateway_retry", op=op, attempt=attempt.retry_state.attempt_number)
                return await fn()

    async def create_order(self, req: GatewayOrderRequest) -> PrepayResult:
        return await self.inner.create_order(req)

    async def query_order(self, out_order_no: str) -> TradeQueryResult:
        return await self._retry("query_order", lambda: self.inner.query_order(out_order_no))

    async def close_order(self, out_order_no: str) -> None:
        await self._retry("close_order", lambda: self.inner.close_order(out_order_no))

    def mini_program_payment_params(self, prepay_token: str) -> MiniProgramPayParams:
        return self.inner.mini_program_payment_params(prepay_token)

    def verify_notification(self, headers: WebhookHeaders, body: str) -> None:
        self.inner.verify_notification(headers, body)

    def decrypt_notification(self, resource: NotificationResource) -> str:
        return self.inner.decrypt_notification(resource)

    async def aclose(self) -> None:
        close: Optional[Callable[[], Awaitable[Any]]] = getattr(self.inner, "aclose", None)
        if callable(close):
            await close()
