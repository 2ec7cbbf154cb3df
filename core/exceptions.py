"""
业务码到 HTTP 状态码的映射与全局异常处理器
"""
import traceback
import uuid
from typing import Any, Iterable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.logging_config import get_logger
from core.response import ErrorResponse
from domain.common.exceptions import BusinessException, InternalException
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


logger = get_logger(__name__)

_HTTP_STATUS_BY_CODE = {
    BusinessCode.PARAM_ERROR: status.HTTP_400_BAD_REQUEST,
    BusinessCode.PARAM_VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    BusinessCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BusinessCode.SYSTEM_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.DATABASE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.CONFIGURATION_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.SERIALIZATION_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    PaymentCode.INVALID_AMOUNT: status.HTTP_400_BAD_REQUEST,
    PaymentCode.ORDER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    PaymentCode.INVALID_STATE: status.HTTP_409_CONFLICT,
    PaymentCode.ORDER_CONFLICT: status.HTTP_409_CONFLICT,
    PaymentCode.SIGNATURE_ERROR: status.HTTP_401_UNAUTHORIZED,
    PaymentCode.PROVIDER_ERROR: status.HTTP_502_BAD_GATEWAY,
    PaymentCode.CRYPTO_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# 框架抛出的 HTTPException 状态码对应的业务码
_CODE_BY_HTTP_STATUS = {
    status.HTTP_400_BAD_REQUEST: BusinessCode.PARAM_ERROR,
    status.HTTP_404_NOT_FOUND: BusinessCode.NOT_FOUND,
    status.HTTP_503_SERVICE_UNAVAILABLE: BusinessCode.SERVICE_UNAVAILABLE,
}


def http_status_for(code: int) -> int:
    """未登记的业务码按客户端错误处理"""
    return _HTTP_STATUS_BY_CODE.get(code, status.HTTP_400_BAD_REQUEST)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _json(status_code: int, body: ErrorResponse, headers: Any = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


def _plain_errors(errors: Iterable[dict]) -> list[dict]:
    # ctx/input 可能含异常对象或原始字节，无法序列化
    return [{k: v for k, v in e.items() if k not in ("ctx", "input", "url")} for e in errors]


async def handle_business_exception(request: Request, exc: BusinessException) -> JSONResponse:
    request_id = _request_id(request)
    status_code = http_status_for(exc.code)
    if status_code >= 500:
        logger.error(
            "business_exception",
            request_id=request_id,
            code=int(exc.code),
            error_type=exc.error_type,
            error=exc.message,
            details=exc.details,
        )
    return _json(status_code, ErrorResponse.from_exception(exc, request_id))


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = _plain_errors(exc.errors())
    first = errors[0] if errors else {}
    # loc 首段是 body/query/path
    field = ".".join(str(part) for part in first.get("loc", ())[1:]) or None
    body = ErrorResponse.of(
        BusinessCode.PARAM_VALIDATION_ERROR,
        f"Validation failed: {first.get('msg', 'unknown')}",
        "ValidationError",
        field=field,
        details={"errors": errors},
        request_id=_request_id(request),
    )
    return _json(status.HTTP_400_BAD_REQUEST, body)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    body = ErrorResponse.of(
        _CODE_BY_HTTP_STATUS.get(exc.status_code, BusinessCode.SYSTEM_ERROR),
        str(exc.detail),
        "HTTPError",
        details={"status_code": exc.status_code},
        request_id=_request_id(request),
    )
    return _json(exc.status_code, body, headers=getattr(exc, "headers", None))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BusinessException, handle_business_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        request_id = _request_id(request)
        logger.error("unhandled_exception", request_id=request_id, error=str(exc), exc_info=True)
        # 仅 DEBUG 下回传堆栈
        details = {"exception": str(exc), "traceback": traceback.format_exc()} if app.debug else None
        body = ErrorResponse.from_exception(InternalException(details=details), request_id)
        return _json(status.HTTP_500_INTERNAL_SERVER_ERROR, body)
