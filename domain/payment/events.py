"""
Payment domain events.

Dataclass events record important order lifecycle facts for downstream handling
(logging today, messaging later). Domain remains free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import uuid


@dataclass
class PaymentEvent:
    order_id: str
    out_order_no: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def event_type(self) -> str:
        return type(self).__name__


@dataclass
class PaymentOrderCreated(PaymentEvent):
    amount_cents: int = 0


@dataclass
class PaymentSucceeded(PaymentEvent):
    transaction_id: str = ""
    amount_cents: int = 0


@dataclass
class PaymentFailed(PaymentEvent):
    reason: str = ""


@dataclass
class PaymentClosed(PaymentEvent):
    pass
