"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings; read with the PAYMENT__ prefix, e.g.
PAYMENT__WECHAT__MCH_ID or PAYMENT__RETRY__MAX.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymentTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 3.0
    write: float = 3.0
    total: float = 5.0


class PaymentRetry(BaseModel):
    # 0 disables the retrying decorator above the gateway client
    max: int = 2
    base_backoff: float = 0.2


class WebhookSettings(BaseModel):
    # replay window for Wechatpay-Timestamp
    tolerance_seconds: int = 300


class WechatSettings(BaseModel):
    mch_id: Optional[str] = None
    mch_cert_serial_no: Optional[str] = None
    # PKCS#8 PEM, either a file path or the inline content
    private_key_path: Optional[str] = None
    private_key: Optional[str] = None
    api_v3_key: Optional[str] = None
    appid: Optional[str] = None
    # 平台证书：单个 PEM 文件或目录
    platform_cert_path: Optional[str] = None
    # 微信支付公钥模式
    platform_public_key_path: Optional[str] = None
    platform_public_key_id: Optional[str] = None
    gateway: str = "https://api.mch.weixin.qq.com"
    # overrides BASE_URL + /api/webhooks/wechat when set
    notify_url: Optional[str] = None


class PaymentSettings(BaseSettings):
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    wechat: WechatSettings = Field(default_factory=WechatSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PAYMENT__",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
