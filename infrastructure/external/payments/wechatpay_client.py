"""
WeChat Pay v3 adapter over httpx.

Features used:
- Request signing with the merchant private key (WECHATPAY2-SHA256-RSA2048)
- Response and notification verification with platform public keys
- Notification resource decryption (AEAD_AES_256_GCM)
- JSAPI / mini program, NATIVE and H5 order flows
"""
from __future__ import annotations

import json
from typing import Any, Optional
from urllib.parse import quote, urlencode

import httpx

from application.dtos.payments import (
    GatewayOrderRequest,
    MiniProgramPayParams,
    NotificationResource,
    PrepayResult,
    TradeQueryResult,
    WebhookHeaders,
)
from core.config import settings
from core.settings import payment_settings
from domain.common.exceptions import (
    ConfigurationException,
    CryptoException,
    GatewayException,
    SignatureVerificationException,
)
from domain.payment.value_objects import PaymentMethod
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.notification import AEAD_ALGORITHM, NotificationCodec
from infrastructure.external.payments.signer import GatewaySigner


CURRENCY = "CNY"

# 下单接口路径与应答中预下单凭证字段
_ORDER_ENDPOINTS: dict[PaymentMethod, tuple[str, str]] = {
    PaymentMethod.MINI_PROGRAM: ("/v3/pay/transactions/jsapi", "prepay_id"),
    PaymentMethod.JSAPI: ("/v3/pay/transactions/jsapi", "prepay_id"),
    PaymentMethod.NATIVE: ("/v3/pay/transactions/native", "code_url"),
    PaymentMethod.H5: ("/v3/pay/transactions/h5", "h5_url"),
}


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def _error_fields(resp: httpx.Response) -> tuple[Optional[str], str]:
    try:
        data = resp.json()
    except ValueError:
        return None, f"WeChat Pay returned HTTP {resp.status_code}"
    if not isinstance(data, dict):
        return None, f"WeChat Pay returned HTTP {resp.status_code}"
    code = data.get("code")
    message = data.get("message") or f"WeChat Pay returned HTTP {resp.status_code}"
    return (str(code) if code is not None else None), str(message)


class WechatPayClient(BasePaymentClient):
    provider = "wechat"

    def __init__(
        self,
        signer: GatewaySigner,
        codec: NotificationCodec,
        *,
        gateway: Optional[str] = None,
        notify_url: Optional[str] = None,
        timeouts: Optional[dict[str, float]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            base_url=gateway or payment_settings.wechat.gateway,
            timeouts=timeouts or payment_settings.timeouts.model_dump(),
            transport=transport,
        )
        self.signer = signer
        self.codec = codec
        self.notify_url = (
            notify_url
            or payment_settings.wechat.notify_url
            or f"{settings.BASE_URL}/api/webhooks/wechat"
        )

    @property
    def mch_id(self) -> str:
        return self.signer.credentials.mch_id

    async def create_order(self, req: GatewayOrderRequest) -> PrepayResult:
        app_id = self.signer.credentials.app_id
        if not app_id:
            raise ConfigurationException("appid is required to create WeChat Pay orders")
        path, token_field = _ORDER_ENDPOINTS[req.payment_method]

        body: dict[str, Any] = {
            "appid": app_id,
            "mchid": self.mch_id,
            "description": req.description,
            "out_trade_no": req.out_order_no,
            "notify_url": self.notify_url,
            "amount": {"total": req.amount_cents, "currency": CURRENCY},
        }
        if req.attach:
            body["attach"] = req.attach
        if req.payment_method.requires_payer:
            body["payer"] = {"openid": req.payer_id}
        scene_info: dict[str, Any] = {"payer_client_ip": req.client_ip}
        if req.payment_method == PaymentMethod.H5:
            scene_info["h5_info"] = {"type": "Wap"}
        body["scene_info"] = scene_info

        self._log("wechatpay_create_order", out_order_no=req.out_order_no, method=req.payment_method.value)
        data = await self._request("POST", path, payload=body)
        token = data.get(token_field) if isinstance(data, dict) else None
        if not token or not isinstance(token, str):
            raise GatewayException(f"WeChat Pay response missing {token_field}")
        return PrepayResult(prepay_token=token)

    async def query_order(self, out_order_no: str) -> TradeQueryResult:
        path = f"/v3/pay/transactions/out-trade-no/{quote(out_order_no, safe='')}"
        data = await self._request("GET", path, params={"mchid": self.mch_id})
        if not isinstance(data, dict) or not data.get("trade_state"):
            raise GatewayException("WeChat Pay query response missing trade_state")
        return TradeQueryResult(
            trade_state=str(data["trade_state"]),
            transaction_id=data.get("transaction_id") or None,
            trade_state_desc=data.get("trade_state_desc"),
        )

    async def close_order(self, out_order_no: str) -> None:
        path = f"/v3/pay/transactions/out-trade-no/{quote(out_order_no, safe='')}/close"
        await self._request("POST", path, payload={"mchid": self.mch_id})
        self._log("wechatpay_order_closed", out_order_no=out_order_no)

    def mini_program_payment_params(self, prepay_token: str) -> MiniProgramPayParams:
        return self.signer.mini_program_payment_params(prepay_token)

    def verify_notification(self, headers: WebhookHeaders, body: str) -> None:
        self.signer.verify_response_signature(
            headers.timestamp,
            headers.nonce,
            body,
            headers.signature,
            headers.serial,
        )

    def decrypt_notification(self, resource: NotificationResource) -> str:
        if resource.algorithm != AEAD_ALGORITHM:
            raise CryptoException(f"unsupported notification algorithm: {resource.algorithm}")
        return self.codec.decrypt(resource.ciphertext, resource.associated_data, resource.nonce)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, str]] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> Any:
        # the signed url is path + query, never the absolute url
        url_path = f"{path}?{urlencode(params)}" if params else path
        body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False) if payload is not None else ""
        headers = {
            "Authorization": self.signer.authorization_header(method, url_path, body),
            "Accept": "application/json",
        }
        if payload is not None:
            headers["Content-Type"] = "application/json"

        try:
            resp = await self.http.request(
                method,
                url_path,
                content=body.encode("utf-8") if body else None,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            self._log("wechatpay_transport_error", method=method, path=path, error=str(exc))
            raise GatewayException(f"WeChat Pay transport error: {exc}", retryable=True) from exc

        if not resp.is_success:
            gateway_code, message = _error_fields(resp)
            self._log(
                "wechatpay_error_response",
                method=method,
                path=path,
                status_code=resp.status_code,
                gateway_code=gateway_code,
            )
            raise GatewayException(
                message,
                status_code=resp.status_code,
                gateway_code=gateway_code,
                retryable=_is_retryable_status(resp.status_code),
            )

        self._verify_response(resp)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise GatewayException("WeChat Pay returned an unparseable response", status_code=resp.status_code) from exc

    def _verify_response(self, resp: httpx.Response) -> None:
        timestamp = resp.headers.get("Wechatpay-Timestamp")
        nonce = resp.headers.get("Wechatpay-Nonce")
        signature = resp.headers.get("Wechatpay-Signature")
        if not (timestamp and nonce and signature):
            raise SignatureVerificationException("WeChat Pay response is missing signature headers")
        self.signer.verify_response_signature(
            timestamp,
            nonce,
            resp.content,
            signature,
            resp.headers.get("Wechatpay-Serial"),
        )
