"""
Request ID 中间件

透传或生成 X-Request-ID，解析付款人 IP，并绑定到 structlog 上下文。
"""
import ipaddress
import uuid
from typing import Optional

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


UNKNOWN_IP = "unknown"


class RequestIDMiddleware(BaseHTTPMiddleware):
    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        client_ip = resolve_client_ip(request)

        request.state.request_id = request_id
        request.state.client_ip = client_ip

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=client_ip,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[self.HEADER_NAME] = request_id
        return response


def _valid_ip(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    candidate = value.strip()
    try:
        ipaddress.ip_address(candidate)
    except ValueError:
        return None
    return candidate


def resolve_client_ip(request: Request) -> str:
    """
    付款人 IP（下单时作为 scene_info.payer_client_ip）

    依次取 X-Forwarded-For 首个地址、X-Real-IP、连接地址；
    不是合法 IPv4/IPv6 的值会被跳过。
    """
    forwarded = request.headers.get("X-Forwarded-For")
    candidates = [
        forwarded.split(",")[0] if forwarded else None,
        request.headers.get("X-Real-IP"),
        request.client.host if request.client else None,
    ]
    for candidate in candidates:
        ip = _valid_ip(candidate)
        if ip:
            return ip
    return UNKNOWN_IP
