"""
HTTP 响应体

业务接口成功时直接返回 DTO；失败时统一返回 ErrorResponse。
微信支付回调只认 {"code": "SUCCESS"|"FAIL", "message": ...}，单独建模。
"""
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_serializer

from domain.common.exceptions import BusinessException


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ErrorDetail(BaseModel):
    type: str
    field: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @field_serializer("timestamp")
    def _as_utc_z(self, value: datetime) -> str:
        # naive 时间按 UTC 处理，统一以 Z 结尾
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class ErrorResponse(BaseModel):
    code: int
    message: str
    data: None = None
    error: ErrorDetail

    @classmethod
    def of(
        cls,
        code: int,
        message: str,
        error_type: str,
        *,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> "ErrorResponse":
        return cls(
            code=int(code),
            message=message,
            error=ErrorDetail(type=error_type, field=field, details=details, request_id=request_id),
        )

    @classmethod
    def from_exception(cls, exc: BusinessException, request_id: Optional[str] = None) -> "ErrorResponse":
        return cls.of(
            exc.code,
            exc.message,
            exc.error_type,
            field=exc.field,
            details=exc.details,
            request_id=request_id,
        )


class WebhookAck(BaseModel):
    """微信支付回调应答；非 2xx 会触发重投"""

    code: Literal["SUCCESS", "FAIL"]
    message: str

    @classmethod
    def success(cls) -> "WebhookAck":
        return cls(code="SUCCESS", message="成功")

    @classmethod
    def failure(cls, message: str) -> "WebhookAck":
        return cls(code="FAIL", message=message)
