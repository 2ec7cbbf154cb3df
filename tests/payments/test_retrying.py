import pytest

from application.dtos.payments import GatewayOrderRequest, TradeQueryResult
from domain.common.exceptions import GatewayException
from domain.payment.value_objects import PaymentMethod
from infrastructure.external.payments.retrying import RetryingPaymentGateway
from tests.conftest import StubGateway


class FlakyGateway(StubGateway):
    """Fails the first ``failures`` query/close calls with ``error``."""

    def __init__(self, failures: int, error: Exception) -> None:
        super().__init__()
        self.failures = failures
        self.error = error
        self.closed = False

    async def query_order(self, out_order_no: str) -> TradeQueryResult:
        self.calls.append(("query_order", out_order_no))
        if self.failures > 0:
            self.failures -= 1
            raise self.error
        return TradeQueryResult(trade_state="SUCCESS", transaction_id="tx1")

    async def close_order(self, out_order_no: str) -> None:
        self.calls.append(("close_order", out_order_no))
        if self.failures > 0:
            self.failures -= 1
            raise self.error

    async def aclose(self) -> None:
        self.closed = True


def _retrying(inner, max_retries: int = 2) -> RetryingPaymentGateway:
    return RetryingPaymentGateway(inner, max_retries=max_retries, base_backoff=0.001, max_backoff=0.002)


@pytest.mark.asyncio
async def test_query_retried_on_retryable_error():
    inner = FlakyGateway(2, GatewayException("busy", status_code=503, retryable=True))
    result = await _retrying(inner).query_order("T1")
    assert result.trade_state == "SUCCESS"
    assert inner.calls.count(("query_order", "T1")) == 3


@pytest.mark.asyncio
async def test_query_gives_up_after_max_retries():
    inner = FlakyGateway(5, GatewayException("busy", status_code=500, retryable=True))
    with pytest.raises(GatewayException):
        await _retrying(inner, max_retries=1).query_order("T1")
    assert inner.calls.count(("query_order", "T1")) == 2


@pytest.mark.asyncio
async def test_non_retryable_error_raised_immediately():
    inner = FlakyGateway(1, GatewayException("bad request", status_code=400))
    with pytest.raises(GatewayException):
        await _retrying(inner).close_order("T1")
    assert inner.calls == [("close_order", "T1")]


@pytest.mark.asyncio
async def test_close_retried():
    inner = FlakyGateway(1, GatewayException("timeout", retryable=True))
    await _retrying(inner).close_order("T1")
    assert inner.calls == [("close_order", "T1"), ("close_order", "T1")]


@pytest.mark.asyncio
async def test_create_order_never_retried():
    inner = StubGateway()
    inner.create_error = GatewayException("busy", status_code=503, retryable=True)
    req = GatewayOrderRequest(
        out_order_no="T1",
        description="item",
        amount_cents=1000,
        payment_method=PaymentMethod.NATIVE,
        client_ip="127.0.0.1",
    )
    with pytest.raises(GatewayException):
        await _retrying(inner).create_order(req)
    assert inner.calls == [("create_order", "T1")]


@pytest.mark.asyncio
async def test_sync_operations_and_close_delegate():
    inner = FlakyGateway(0, GatewayException("unused"))
    gateway = _retrying(inner)
    assert gateway.provider == inner.provider
    assert gateway.mini_program_payment_params("pp_1").package == "prepay_id=pp_1"
    await gateway.aclose()
    assert inner.closed is True
