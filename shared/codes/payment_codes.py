"""
Payment specific codes and gateway trade state mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    SIGNATURE_ERROR = 60002
    CRYPTO_ERROR = 60005

    # Order lifecycle errors (61xxx)
    INVALID_AMOUNT = 61000
    ORDER_NOT_FOUND = 61001
    INVALID_STATE = 61002
    ORDER_CONFLICT = 61003


# WeChat trade_state -> local order state token. States missing here
# (NOTPAY, USERPAYING, REFUND, ...) leave the local order unchanged.
WECHAT_TRADE_STATE_TO_INTERNAL = {
    "SUCCESS": "succeeded",
    "CLOSED": "closed",
    "PAYERROR": "failed",
}

# Notification event types
EVENT_TRANSACTION_SUCCESS = "TRANSACTION.SUCCESS"
