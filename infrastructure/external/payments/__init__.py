"""
Factory for the payment gateway client.
"""
from __future__ import annotations

from typing import Optional

import httpx

from core.settings import PaymentSettings, payment_settings
from application.ports.payment_gateway import PaymentGateway
from .notification import NotificationCodec
from .retrying import RetryingPaymentGateway
from .signer import GatewaySigner, MerchantCredentials
from .wechatpay_client import WechatPayClient


def get_payment_gateway(
    cfg: Optional[PaymentSettings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PaymentGateway:
    """凭证只在这里加载一次，签名器与解密器共享同一份只读凭证"""
    cfg = cfg or payment_settings
    credentials = MerchantCredentials.from_settings(cfg.wechat)
    signer = GatewaySigner(credentials, tolerance_seconds=cfg.webhook.tolerance_seconds)
    client = WechatPayClient(
        signer,
        NotificationCodec(credentials.api_v3_key),
        gateway=cfg.wechat.gateway,
        notify_url=cfg.wechat.notify_url,
        timeouts=cfg.timeouts.model_dump(),
        transport=transport,
    )
    if cfg.retry.max > 0:
        return RetryingPaymentGateway(client, max_retries=cfg.retry.max, base_backoff=cfg.retry.base_backoff)
    return client
