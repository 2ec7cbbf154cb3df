"""领域层业务异常定义，供领域、应用与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="ValidationError",
            details=details,
            field=field,
        )


class InvalidAmountException(BusinessException):
    def __init__(self, amount_cents: int | None, reason: str = "Amount must be greater than 0"):
        super().__init__(
            code=PaymentCode.INVALID_AMOUNT,
            message=f"Invalid amount: {reason}",
            error_type="InvalidAmount",
            details={"amount_cents": amount_cents},
            field="amount",
        )


class OrderNotFoundException(BusinessException):
    def __init__(self, identifier: str):
        super().__init__(
            code=PaymentCode.ORDER_NOT_FOUND,
            message=f"Payment order not found: {identifier}",
            error_type="OrderNotFound",
            details={"identifier": identifier},
        )


class InvalidStateException(BusinessException):
    def __init__(self, expected: str, actual: str, *, out_order_no: str | None = None):
        self.expected = expected
        self.actual = actual
        details = {"expected": expected, "actual": actual}
        if out_order_no is not None:
            details["out_order_no"] = out_order_no
        super().__init__(
            code=PaymentCode.INVALID_STATE,
            message=f"Invalid payment state: expected {expected}, got {actual}",
            error_type="InvalidState",
            details=details,
        )


class OrderConflictException(BusinessException):
    """存储层冲突（唯一约束或乐观锁版本不匹配）"""

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(
            code=PaymentCode.ORDER_CONFLICT,
            message=message,
            error_type="Conflict",
            details=details,
        )


class DuplicateOrderException(OrderConflictException):
    def __init__(self, out_order_no: str):
        super().__init__(
            f"Payment order already exists: {out_order_no}",
            details={"out_order_no": out_order_no},
        )


class StaleOrderException(OrderConflictException):
    def __init__(self, order_id: str, version: int):
        super().__init__(
            f"Payment order {order_id} was modified concurrently",
            details={"order_id": order_id, "version": version},
        )


class SignatureVerificationException(BusinessException):
    def __init__(self, message: str = "Signature verification failed", *, details: Optional[dict] = None):
        super().__init__(
            code=PaymentCode.SIGNATURE_ERROR,
            message=message,
            error_type="SignatureVerificationFailed",
            details=details,
        )


class GatewayException(BusinessException):
    """支付网关返回非 2xx、响应格式错误或网络异常"""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        gateway_code: str | None = None,
        retryable: bool = False,
    ):
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(
            code=PaymentCode.PROVIDER_ERROR,
            message=message,
            error_type="GatewayError",
            details={"status_code": status_code, "gateway_code": gateway_code},
        )


class CryptoException(BusinessException):
    def __init__(self, message: str):
        super().__init__(
            code=PaymentCode.CRYPTO_ERROR,
            message=f"Cryptography error: {message}",
            error_type="CryptoError",
        )


class StorageException(BusinessException):
    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.DATABASE_ERROR,
            message=f"Database error: {message}",
            error_type="StorageError",
            details=details,
        )


class SerializationException(BusinessException):
    def __init__(self, message: str):
        super().__init__(
            code=BusinessCode.SERIALIZATION_ERROR,
            message=f"Serialization error: {message}",
            error_type="SerializationError",
        )


class ConfigurationException(BusinessException):
    def __init__(self, message: str):
        super().__init__(
            code=BusinessCode.CONFIGURATION_ERROR,
            message=f"Configuration error: {message}",
            error_type="ConfigurationError",
        )



class InternalException(BusinessException):
    def __init__(self, message: str = "Internal server error", *, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.SYSTEM_ERROR,
            message=message,
            error_type="InternalError",
            details=details,
        )
