import pytest

from domain.common.exceptions import (
    DomainValidationException,
    InvalidAmountException,
    InvalidStateException,
)
from domain.payment.entity import PaymentOrder
from domain.payment.events import PaymentClosed, PaymentFailed, PaymentOrderCreated, PaymentSucceeded
from domain.payment.value_objects import Money, PaymentMethod, PaymentState


def _order(**overrides) -> PaymentOrder:
    kwargs = dict(
        out_order_no="T1",
        amount=Money.from_minor(1000),
        payment_method=PaymentMethod.MINI_PROGRAM,
        description="item",
        client_ip="127.0.0.1",
        payer_id="oid1",
    )
    kwargs.update(overrides)
    return PaymentOrder.create(**kwargs)


def _in_state(state: PaymentState) -> PaymentOrder:
    order = _order()
    order.state = state
    return order


def test_create_sets_pending_and_records_event():
    order = _order()
    assert order.state == PaymentState.PENDING
    assert order.created_at == order.updated_at
    assert order.paid_at is None
    assert order.transaction_id is None
    assert order.prepay_token is None
    assert order.version == 1
    events = order.pull_events()
    assert [type(e) for e in events] == [PaymentOrderCreated]
    assert events[0].amount_cents == 1000
    assert order.pull_events() == []


@pytest.mark.parametrize("cents", [0, -1])
def test_create_rejects_non_positive_amount(cents):
    with pytest.raises(InvalidAmountException):
        _order(amount=Money.from_minor(cents))


@pytest.mark.parametrize(
    "overrides",
    [
        {"out_order_no": ""},
        {"out_order_no": "x" * 65},
        {"description": ""},
        {"description": "d" * 128},
        {"client_ip": ""},
        {"payer_id": None},
    ],
)
def test_create_rejects_out_of_bounds_fields(overrides):
    with pytest.raises(DomainValidationException):
        _order(**overrides)


def test_create_accepts_boundary_lengths():
    order = _order(out_order_no="x" * 64, description="d" * 127)
    assert len(order.out_order_no) == 64


def test_native_order_does_not_require_payer():
    order = _order(payment_method=PaymentMethod.NATIVE, payer_id=None)
    assert order.payer_id is None


def test_mark_processing_only_from_pending():
    order = _order()
    order.mark_processing()
    assert order.state == PaymentState.PROCESSING
    with pytest.raises(InvalidStateException) as exc_info:
        order.mark_processing()
    assert exc_info.value.expected == "pending"
    assert exc_info.value.actual == "processing"


@pytest.mark.parametrize("start", [PaymentState.PENDING, PaymentState.PROCESSING])
def test_mark_succeeded_sets_transaction_and_paid_at(start):
    order = _in_state(start)
    order.pull_events()
    order.mark_succeeded("tx1")
    assert order.state == PaymentState.SUCCEEDED
    assert order.transaction_id == "tx1"
    assert order.paid_at is not None
    assert order.updated_at == order.paid_at
    assert [type(e) for e in order.pull_events()] == [PaymentSucceeded]


def test_mark_succeeded_twice_is_invalid_state():
    order = _order()
    order.mark_succeeded("tx1")
    paid_at = order.paid_at
    with pytest.raises(InvalidStateException):
        order.mark_succeeded("tx2")
    assert order.transaction_id == "tx1"
    assert order.paid_at == paid_at


def test_mark_succeeded_requires_transaction_id():
    order = _order()
    with pytest.raises(DomainValidationException):
        order.mark_succeeded("")
    assert order.state == PaymentState.PENDING


@pytest.mark.parametrize("start", [PaymentState.SUCCEEDED, PaymentState.FAILED, PaymentState.CLOSED, PaymentState.REFUNDED])
def test_mark_failed_rejected_outside_open_states(start):
    order = _in_state(start)
    with pytest.raises(InvalidStateException):
        order.mark_failed()
    assert order.state == start


def test_mark_failed_records_reason():
    order = _order()
    order.pull_events()
    order.mark_failed("PAYERROR")
    events = order.pull_events()
    assert order.state == PaymentState.FAILED
    assert isinstance(events[0], PaymentFailed) and events[0].reason == "PAYERROR"


@pytest.mark.parametrize("start", [PaymentState.SUCCEEDED, PaymentState.REFUNDED])
def test_mark_closed_rejected_after_payment(start):
    order = _in_state(start)
    with pytest.raises(InvalidStateException):
        order.mark_closed()


@pytest.mark.parametrize("start", [PaymentState.PENDING, PaymentState.PROCESSING, PaymentState.FAILED, PaymentState.CLOSED])
def test_mark_closed_allowed_otherwise(start):
    order = _in_state(start)
    order.pull_events()
    order.mark_closed()
    assert order.state == PaymentState.CLOSED
    assert isinstance(order.pull_events()[0], PaymentClosed)


def test_set_prepay_token_always_legal():
    order = _in_state(PaymentState.SUCCEEDED)
    before = order.updated_at
    order.set_prepay_token("pp_1")
    assert order.prepay_token == "pp_1"
    assert order.updated_at >= before


@pytest.mark.parametrize(
    "state,finished,terminal,payable",
    [
        (PaymentState.PENDING, False, False, True),
        (PaymentState.PROCESSING, False, False, False),
        (PaymentState.SUCCEEDED, True, True, False),
        (PaymentState.FAILED, True, True, False),
        (PaymentState.CLOSED, True, True, False),
        (PaymentState.REFUNDED, False, True, False),
    ],
)
def test_predicates(state, finished, terminal, payable):
    order = _in_state(state)
    assert order.is_finished() is finished
    assert order.is_terminal() is terminal
    assert order.can_pay() is payable
