"""Pytest bootstrap configuration.

Environment variables are set before test collection and any module import
that reads application settings (the engine is created at import time).
"""
import os

os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BASE_URL", "https://merchant.example.com")

import base64
import json
from dataclasses import replace
from types import MappingProxyType
from typing import Optional

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from application.dtos.payments import (
    GatewayOrderRequest,
    MiniProgramPayParams,
    NotificationResource,
    PrepayResult,
    TradeQueryResult,
    WebhookHeaders,
)
from domain.common.exceptions import (
    DuplicateOrderException,
    OrderNotFoundException,
    StaleOrderException,
)
from domain.payment.entity import PaymentOrder
from infrastructure.external.payments.notification import NotificationCodec
from infrastructure.external.payments.signer import GatewaySigner, MerchantCredentials


NOW = 1_700_000_000
API_V3_KEY = b"0123456789abcdefghijklmnopqrstuv"
PLATFORM_SERIAL = "5157F09EFDC096DE15EBE81A47057A7232F1B8E1"
MCH_ID = "1900000109"
MCH_SERIAL = "3775B6A45ACD588826D15E583A95F5DD"
APP_ID = "wxd678efh567hg6787"


class InMemoryPaymentOrderRepository:
    """Honors out_order_no uniqueness and row versions like the SQL adapter."""

    def __init__(self) -> None:
        self.rows: dict[str, PaymentOrder] = {}
        self.calls: list[str] = []

    @staticmethod
    def _copy(order: PaymentOrder) -> PaymentOrder:
        return replace(order, _events=[])

    async def save(self, order: PaymentOrder) -> None:
        self.calls.append("save")
        if any(o.out_order_no == order.out_order_no for o in self.rows.values()):
            raise DuplicateOrderException(order.out_order_no)
        self.rows[order.id] = self._copy(order)

    async def find_by_id(self, order_id: str) -> Optional[PaymentOrder]:
        stored = self.rows.get(order_id)
        return self._copy(stored) if stored else None

    async def find_by_out_order_no(self, out_order_no: str) -> Optional[PaymentOrder]:
        for stored in self.rows.values():
            if stored.out_order_no == out_order_no:
                return self._copy(stored)
        return None

    async def find_by_transaction_id(self, transaction_id: str) -> Optional[PaymentOrder]:
        for stored in self.rows.values():
            if stored.transaction_id == transaction_id:
                return self._copy(stored)
        return None

    async def update(self, order: PaymentOrder) -> None:
        self.calls.append("update")
        stored = self.rows.get(order.id)
        if stored is None:
            raise OrderNotFoundException(order.out_order_no)
        if stored.version != order.version:
            raise StaleOrderException(order.id, order.version)
        order.version += 1
        self.rows[order.id] = self._copy(order)

    async def delete(self, order_id: str) -> None:
        self.calls.append("delete")
        if self.rows.pop(order_id, None) is None:
            raise OrderNotFoundException(order_id)

    def overwrite(self, order: PaymentOrder) -> None:
        """Simulate a concurrent writer: store ``order`` and bump the row version."""
        self.rows[order.id] = replace(order, _events=[], version=order.version + 1)


class StubGateway:
    provider = "stub"

    def __init__(self) -> None:
        self.prepay_token = "pp_1"
        self.trade = TradeQueryResult(trade_state="NOTPAY")
        self.calls: list[tuple] = []
        self.create_error: Optional[Exception] = None
        self.verify_error: Optional[Exception] = None

    async def create_order(self, req: GatewayOrderRequest) -> PrepayResult:
        self.calls.append(("create_order", req.out_order_no))
        if self.create_error is not None:
            raise self.create_error
        return PrepayResult(prepay_token=self.prepay_token)

    async def query_order(self, out_order_no: str) -> TradeQueryResult:
        self.calls.append(("query_order", out_order_no))
        return self.trade

    async def close_order(self, out_order_no: str) -> None:
        self.calls.append(("close_order", out_order_no))

    def mini_program_payment_params(self, prepay_token: str) -> MiniProgramPayParams:
        return MiniProgramPayParams(
            time_stamp=str(NOW),
            nonce_str="NONCE",
            package=f"prepay_id={prepay_token}",
            pay_sign="SIGNATURE",
        )

    def verify_notification(self, headers: WebhookHeaders, body: str) -> None:
        self.calls.append(("verify_notification", headers.serial))
        if self.verify_error is not None:
            raise self.verify_error

    def decrypt_notification(self, resource: NotificationResource) -> str:
        # the stub treats ciphertext as plaintext
        return resource.ciphertext


@pytest.fixture(scope="session")
def merchant_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def platform_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def credentials(merchant_key, platform_key):
    return MerchantCredentials(
        mch_id=MCH_ID,
        cert_serial_no=MCH_SERIAL,
        private_key=merchant_key,
        api_v3_key=API_V3_KEY,
        app_id=APP_ID,
        platform_public_keys=MappingProxyType({PLATFORM_SERIAL: platform_key.public_key()}),
    )


@pytest.fixture
def signer(credentials):
    return GatewaySigner(
        credentials,
        clock=lambda: NOW,
        nonce_factory=lambda: "593BEC0C930BF1AFEB40B4A08C8FB242",
        tolerance_seconds=300,
    )


@pytest.fixture
def codec():
    return NotificationCodec(API_V3_KEY)


@pytest.fixture
def platform_sign(platform_key):
    """Sign ``timestamp\\nnonce\\nbody\\n`` the way the gateway does."""

    def _sign(timestamp: str, nonce: str, body) -> str:
        body_bytes = body if isinstance(body, bytes) else body.encode("utf-8")
        message = f"{timestamp}\n{nonce}\n".encode("utf-8") + body_bytes + b"\n"
        signature = platform_key.sign(message, padding.PKCS1v15(), hashes.SHA256())
        return base64.b64encode(signature).decode("ascii")

    return _sign


@pytest.fixture
def encrypt_resource():
    """Build an encrypted notification resource block."""

    def _encrypt(payload: dict, associated_data: str = "transaction", nonce: str = "fdasflkja484") -> dict:
        plaintext = json.dumps(payload).encode("utf-8")
        ciphertext = AESGCM(API_V3_KEY).encrypt(nonce.encode(), plaintext, associated_data.encode())
        return {
            "algorithm": "AEAD_AES_256_GCM",
            "ciphertext": base64.b64encode(ciphertext).decode("ascii"),
            "nonce": nonce,
            "associated_data": associated_data,
            "original_type": "transaction",
        }

    return _encrypt


@pytest.fixture
def repository():
    return InMemoryPaymentOrderRepository()


@pytest.fixture
def gateway():
    return StubGateway()
