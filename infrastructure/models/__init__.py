"""Infrastructure models package exports."""
from .base import Base, metadata
from .payment import PaymentOrderModel

__all__ = [
    "Base",
    "metadata",
    "PaymentOrderModel",
]
