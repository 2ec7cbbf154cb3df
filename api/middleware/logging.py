"""
访问日志中间件

每个请求记录开始/结束两条日志，结束日志按状态码分级并带耗时；
请求体只在显式开启时记录，且经过 core.logging_config.redact 打码。
"""
import json
import time
from typing import Any, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.config import settings
from core.logging_config import get_logger, redact


logger = get_logger(__name__)

_TRUTHY = {"true", "1", "yes"}
_FALSY = {"false", "0", "no"}

# (最低状态码, 日志级别, 事件名)，按顺序匹配
_OUTCOMES = (
    (500, "error", "request_server_error"),
    (400, "warning", "request_client_error"),
    (0, "info", "request_completed"),
)


class LoggingMiddleware(BaseHTTPMiddleware):
    QUIET_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})
    # 回调请求体是 AEAD 密文，记录无意义
    OPAQUE_BODY_PREFIXES = ("/api/webhooks/",)

    def __init__(
        self,
        app: ASGIApp,
        *,
        log_body: Optional[bool] = None,
        max_body_bytes: Optional[int] = None,
    ):
        super().__init__(app)
        self.log_body = (
            settings.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT and settings.DEBUG
            if log_body is None else log_body
        )
        self.max_body_bytes = max_body_bytes or settings.LOG_REQUEST_BODY_MAX_BYTES

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        fields = await self._request_fields(request)
        logger.info("request_started", **fields)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration_ms=_elapsed_ms(started),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
                **fields,
            )
            raise

        duration_ms = _elapsed_ms(started)
        response.headers["X-Process-Time"] = f"{duration_ms / 1000:.3f}"
        for floor, level, event in _OUTCOMES:
            if response.status_code >= floor:
                getattr(logger, level)(event, status_code=response.status_code, duration_ms=duration_ms, **fields)
                break
        return response

    async def _request_fields(self, request: Request) -> dict[str, Any]:
        fields: dict[str, Any] = {"method": request.method, "path": request.url.path}
        if request.query_params:
            fields["query_params"] = dict(request.query_params)
        user_agent = request.headers.get("User-Agent")
        if user_agent:
            fields["user_agent"] = user_agent
        if request.method in ("POST", "PUT", "PATCH") and self._wants_body(request):
            fields["body"] = await self._body_snippet(request)
        return fields

    def _wants_body(self, request: Request) -> bool:
        if request.url.path.startswith(self.OPAQUE_BODY_PREFIXES):
            return False
        # X-Log-Body 请求头可覆盖默认开关
        override = (request.headers.get("X-Log-Body") or "").lower()
        if override in _TRUTHY:
            return True
        if override in _FALSY:
            return False
        return self.log_body

    async def _body_snippet(self, request: Request) -> Any:
        raw = await request.body()
        if not raw:
            return None
        text = raw[: self.max_body_bytes].decode("utf-8", errors="replace")
        if "application/json" not in request.headers.get("content-type", "").lower():
            return text
        try:
            return redact(json.loads(text))
        except ValueError:
            # 截断后不是合法 JSON
            return text


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 1)
