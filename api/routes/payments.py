"""
Payments API routes.

Thin layer over PaymentOrchestrator: create, query, close, and the
administrative delete. No gateway details here.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status

from api.dependencies import get_payment_orchestrator
from api.middleware import resolve_client_ip
from application.dtos.payments import CreatePaymentRequest, PaymentResponse
from application.services.payment_service import PaymentOrchestrator


router = APIRouter(prefix="/payments", tags=["Payments"])
admin_router = APIRouter(prefix="/admin/payments", tags=["Admin"])


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payload: CreatePaymentRequest,
    request: Request,
    service: PaymentOrchestrator = Depends(get_payment_orchestrator),
) -> PaymentResponse:
    """创建支付订单；未传 client_ip 时取请求来源地址"""
    if not payload.client_ip:
        client_ip = getattr(request.state, "client_ip", None) or resolve_client_ip(request)
        payload = payload.model_copy(update={"client_ip": client_ip})
    return await service.create_payment(payload)


@router.get("/{out_order_no}", response_model=PaymentResponse)
async def query_payment(
    out_order_no: str,
    service: PaymentOrchestrator = Depends(get_payment_orchestrator),
) -> PaymentResponse:
    return await service.query_payment(out_order_no)


@router.post("/{out_order_no}/close", response_model=PaymentResponse)
async def close_payment(
    out_order_no: str,
    service: PaymentOrchestrator = Depends(get_payment_orchestrator),
) -> PaymentResponse:
    return await service.close_payment(out_order_no)


@admin_router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment(
    order_id: str,
    service: PaymentOrchestrator = Depends(get_payment_orchestrator),
) -> Response:
    await service.delete_payment(order_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
