"""
API依赖项 - 支付编排服务的装配与注入
"""
from typing import Optional

from fastapi import Request

from application.ports.payment_gateway import PaymentGateway
from application.services.payment_service import PaymentOrchestrator
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException, ConfigurationException
from infrastructure.database import AsyncSessionLocal
from infrastructure.external.payments import get_payment_gateway
from infrastructure.repositories.payment_repository import SQLAlchemyPaymentOrderRepository


logger = get_logger(__name__)


def build_payment_gateway() -> Optional[PaymentGateway]:
    """启动时构建网关；配置缺失时记录日志并返回None，健康检查仍可用"""
    try:
        return get_payment_gateway()
    except BusinessException as exc:
        logger.error("payment_gateway_init_failed", error=exc.message, error_type=exc.error_type)
        return None


def build_payment_orchestrator(gateway: Optional[PaymentGateway]) -> Optional[PaymentOrchestrator]:
    if gateway is None:
        return None
    repository = SQLAlchemyPaymentOrderRepository(AsyncSessionLocal)
    return PaymentOrchestrator(repository=repository, gateway=gateway)


async def get_payment_orchestrator(request: Request) -> PaymentOrchestrator:
    orchestrator = getattr(request.app.state, "payment_orchestrator", None)
    if orchestrator is None:
        raise ConfigurationException("payment gateway is not configured")
    return orchestrator
