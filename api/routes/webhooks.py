"""
WeChat Pay notification endpoint.

Replies use the gateway's own ack format ({"code": "SUCCESS"|"FAIL", ...})
instead of the unified error envelope; any non-2xx makes WeChat redeliver.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from api.dependencies import get_payment_orchestrator
from application.dtos.payments import WebhookHeaders
from core.logging_config import get_logger
from core.response import WebhookAck
from domain.common.exceptions import (
    BusinessException,
    DomainValidationException,
    SignatureVerificationException,
)


router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
logger = get_logger(__name__)


def _header(request: Request, *names: str) -> Optional[str]:
    for name in names:
        value = request.headers.get(name)
        if value:
            return value.strip()
    return None


def _fail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=WebhookAck.failure(message).model_dump())


@router.post("/wechat")
async def wechat_webhook(request: Request):
    timestamp = _header(request, "Wechatpay-Timestamp", "Timestamp")
    nonce = _header(request, "Wechatpay-Nonce", "Nonce")
    signature = _header(request, "Wechatpay-Signature", "Signature")
    if not (timestamp and nonce and signature):
        logger.warning("payment_webhook_missing_headers")
        return _fail(status.HTTP_400_BAD_REQUEST, "缺少签名头")
    headers = WebhookHeaders(
        timestamp=timestamp,
        nonce=nonce,
        signature=signature,
        serial=_header(request, "Wechatpay-Serial"),
    )

    try:
        body = (await request.body()).decode("utf-8")
    except UnicodeDecodeError:
        return _fail(status.HTTP_400_BAD_REQUEST, "请求体不是 UTF-8")

    try:
        service = await get_payment_orchestrator(request)
        await service.handle_webhook(headers, body)
    except SignatureVerificationException as exc:
        logger.warning("payment_webhook_signature_failed", error=exc.message, details=exc.details)
        return _fail(status.HTTP_401_UNAUTHORIZED, "验签失败")
    except DomainValidationException as exc:
        logger.warning("payment_webhook_invalid", error=exc.message, field=exc.field)
        return _fail(status.HTTP_400_BAD_REQUEST, exc.message)
    except BusinessException as exc:
        logger.error(
            "payment_webhook_failed",
            error=exc.message,
            error_type=exc.error_type,
            details=exc.details,
        )
        return _fail(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)
    except Exception as exc:
        logger.error("payment_webhook_failed", error=str(exc), exc_info=True)
        return _fail(status.HTTP_500_INTERNAL_SERVER_ERROR, "处理失败")

    return WebhookAck.success().model_dump()
