"""
Application service orchestrating payment use-cases.

The orchestrator depends only on the PaymentOrderRepository and PaymentGateway
ports. Implementations are provided by infrastructure and injected from the
composition root (API lifespan), keeping dependencies one-way.
"""
from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import ValidationError

from application.dtos.payments import (
    CreatePaymentRequest,
    GatewayOrderRequest,
    MiniProgramPayParams,
    PaymentNotification,
    PaymentResponse,
    WebhookHeaders,
)
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from domain.common.exceptions import (
    DomainValidationException,
    GatewayException,
    InvalidStateException,
    OrderNotFoundException,
    SerializationException,
    StaleOrderException,
)
from domain.payment.entity import PaymentOrder
from domain.payment.repository import PaymentOrderRepository
from domain.payment.value_objects import Money, PaymentState
from shared.codes.payment_codes import EVENT_TRANSACTION_SUCCESS, WECHAT_TRADE_STATE_TO_INTERNAL


logger = get_logger(__name__)


class PaymentOrchestrator:
    def __init__(self, repository: PaymentOrderRepository, gateway: PaymentGateway) -> None:
        self.repository = repository
        self.gateway = gateway

    async def create_payment(self, req: CreatePaymentRequest) -> PaymentResponse:
        """
        创建支付订单

        流程：校验并构造订单 -> 保存 -> 网关预下单 -> 保存预下单凭证 -> 生成支付参数。
        保存之后的任何失败都会让订单停留在 pending 且没有预下单凭证。
        """
        order = PaymentOrder.create(
            out_order_no=req.out_order_no,
            amount=Money.from_minor(req.amount),
            payment_method=req.payment_method,
            description=req.description,
            client_ip=req.client_ip or "",
            payer_id=req.payer_id,
            attach=req.attach,
        )
        logger.info(
            "payment_create_request",
            out_order_no=order.out_order_no,
            amount_cents=order.amount.to_minor(),
            payment_method=order.payment_method.value,
        )

        await self.repository.save(order)
        self._publish_events(order)

        try:
            prepay = await self.gateway.create_order(GatewayOrderRequest.from_order(order))
        except Exception as exc:
            logger.warning(
                "payment_gateway_create_failed",
                out_order_no=order.out_order_no,
                error=str(exc),
            )
            raise

        order.set_prepay_token(prepay.prepay_token)
        try:
            await self.repository.update(order)
        except StaleOrderException:
            # a notification landed between save and update; keep its state
            order = await self._reload(order)
            order.set_prepay_token(prepay.prepay_token)
            await self.repository.update(order)

        pay_params: Optional[MiniProgramPayParams] = None
        if order.payment_method.requires_payer:
            pay_params = self.gateway.mini_program_payment_params(prepay.prepay_token)

        logger.info(
            "payment_created",
            order_id=order.id,
            out_order_no=order.out_order_no,
            state=order.state.value,
        )
        return PaymentResponse.from_order(order, pay_params)

    async def query_payment(self, out_order_no: str) -> PaymentResponse:
        """查询订单；未终结的订单向网关同步最新交易状态"""
        logger.info("payment_query_request", out_order_no=out_order_no)
        order = await self._load(out_order_no)
        if order.is_terminal():
            return PaymentResponse.from_order(order)

        result = await self.gateway.query_order(out_order_no)
        target = WECHAT_TRADE_STATE_TO_INTERNAL.get(result.trade_state)
        prior = order.state

        if target == PaymentState.SUCCEEDED.value:
            if not result.transaction_id:
                raise GatewayException(
                    f"Trade state SUCCESS without transaction_id for {out_order_no}",
                    gateway_code=result.trade_state,
                )
            order.mark_succeeded(result.transaction_id)
        elif target == PaymentState.CLOSED.value:
            order.mark_closed()
        elif target == PaymentState.FAILED.value:
            order.mark_failed(result.trade_state_desc or result.trade_state)
        else:
            logger.debug("payment_query_unchanged", out_order_no=out_order_no, trade_state=result.trade_state)
            return PaymentResponse.from_order(order)

        order = await self._persist_transition(order, prior)
        logger.info(
            "payment_query_reconciled",
            out_order_no=out_order_no,
            trade_state=result.trade_state,
            state=order.state.value,
        )
        return PaymentResponse.from_order(order)

    async def close_payment(self, out_order_no: str) -> PaymentResponse:
        """关闭订单：已支付/已退款不可关闭，已关闭直接返回"""
        logger.info("payment_close_request", out_order_no=out_order_no)
        order = await self._load(out_order_no)
        if order.state in (PaymentState.SUCCEEDED, PaymentState.REFUNDED):
            raise InvalidStateException(
                "pending or processing or failed",
                order.state.value,
                out_order_no=out_order_no,
            )
        if order.state == PaymentState.CLOSED:
            return PaymentResponse.from_order(order)

        await self.gateway.close_order(out_order_no)
        prior = order.state
        order.mark_closed()
        order = await self._persist_transition(order, prior)
        logger.info("payment_closed", out_order_no=out_order_no, order_id=order.id)
        return PaymentResponse.from_order(order)

    async def delete_payment(self, order_id: str) -> None:
        """管理端物理删除订单"""
        await self.repository.delete(order_id)
        logger.info("payment_deleted", order_id=order_id)

    async def handle_webhook(self, headers: WebhookHeaders, body: str) -> None:
        """验签后解析通知信封，再交给 handle_notification"""
        self.gateway.verify_notification(headers, body)
        try:
            notification = PaymentNotification.model_validate_json(body)
        except ValidationError as exc:
            raise DomainValidationException(
                "Malformed notification body",
                details={"errors": exc.errors(include_url=False, include_context=False)},
            ) from exc
        logger.info(
            "payment_webhook_parsed",
            notification_id=notification.id,
            event_type=notification.event_type,
        )
        await self.handle_notification(notification)

    async def handle_notification(self, notification: PaymentNotification) -> None:
        """
        处理支付结果通知

        重复投递是正常现象：已成功且交易号一致（或缺失）的通知直接确认，
        交易号不一致则视为状态冲突。
        """
        plaintext = self.gateway.decrypt_notification(notification.resource)
        data = _parse_resource(plaintext)

        out_order_no = data.get("out_trade_no")
        if not out_order_no or not isinstance(out_order_no, str):
            raise DomainValidationException("Missing out_trade_no in notification", field="out_trade_no")
        order = await self._load(out_order_no)

        if notification.event_type != EVENT_TRANSACTION_SUCCESS:
            logger.info(
                "notification_event_ignored",
                out_order_no=out_order_no,
                event_type=notification.event_type,
            )
            return

        transaction_id = data.get("transaction_id")
        if not isinstance(transaction_id, str) or not transaction_id:
            transaction_id = None

        total = _notified_total(data)
        if total is not None and total != order.amount.to_minor():
            raise DomainValidationException(
                "Notified amount does not match order amount",
                field="amount",
                details={"out_order_no": out_order_no, "notified": total, "expected": order.amount.to_minor()},
            )

        if order.state == PaymentState.SUCCEEDED:
            if transaction_id is None or order.transaction_id in (None, transaction_id):
                logger.info(
                    "notification_duplicate_ignored",
                    out_order_no=out_order_no,
                    transaction_id=transaction_id,
                )
                return
            raise InvalidStateException(
                "pending or processing",
                order.state.value,
                out_order_no=out_order_no,
            )

        if transaction_id is None:
            raise DomainValidationException("Missing transaction_id in notification", field="transaction_id")

        prior = order.state
        order.mark_succeeded(transaction_id)
        await self._persist_transition(order, prior)
        logger.info(
            "payment_succeeded_via_notification",
            out_order_no=out_order_no,
            transaction_id=transaction_id,
        )

    async def _load(self, out_order_no: str) -> PaymentOrder:
        order = await self.repository.find_by_out_order_no(out_order_no)
        if order is None:
            raise OrderNotFoundException(out_order_no)
        return order

    async def _reload(self, order: PaymentOrder) -> PaymentOrder:
        stored = await self.repository.find_by_id(order.id)
        if stored is None:
            raise OrderNotFoundException(order.out_order_no)
        return stored

    async def _persist_transition(self, order: PaymentOrder, prior: PaymentState) -> PaymentOrder:
        """
        持久化一次状态转换

        乐观锁冲突时重新加载：若已存储的订单已经是目标状态（成功时交易号一致），
        冲突按幂等处理并返回已存储订单；否则视为状态冲突。
        """
        try:
            await self.repository.update(order)
        except StaleOrderException:
            stored = await self._reload(order)
            same_outcome = stored.state == order.state and (
                order.state != PaymentState.SUCCEEDED or stored.transaction_id == order.transaction_id
            )
            if same_outcome:
                logger.info(
                    "payment_update_conflict_ignored",
                    out_order_no=order.out_order_no,
                    state=stored.state.value,
                )
                return stored
            raise InvalidStateException(prior.value, stored.state.value, out_order_no=order.out_order_no)
        self._publish_events(order)
        return order

    def _publish_events(self, order: PaymentOrder) -> None:
        for event in order.pull_events():
            logger.info(
                "payment_domain_event",
                event_type=event.event_type,
                event_id=event.event_id,
                order_id=event.order_id,
                out_order_no=event.out_order_no,
            )


def _parse_resource(plaintext: str) -> dict[str, Any]:
    try:
        data = json.loads(plaintext)
    except json.JSONDecodeError as exc:
        raise SerializationException(f"notification resource is not JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise SerializationException("notification resource is not a JSON object")
    return data


def _notified_total(data: dict[str, Any]) -> Optional[int]:
    amount = data.get("amount")
    if not isinstance(amount, dict):
        return None
    total = amount.get("total")
    if isinstance(total, bool) or not isinstance(total, int):
        return None
    return total
