"""
支付订单仓储实现 - 使用SQLAlchemy实现数据访问

每次端口调用使用独立会话与事务；更新以行版本号为条件（乐观锁）。
"""
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.logging_config import get_logger
from domain.common.exceptions import (
    DuplicateOrderException,
    OrderNotFoundException,
    StaleOrderException,
    StorageException,
)
from domain.payment.entity import PaymentOrder
from domain.payment.value_objects import Money, PaymentMethod, PaymentState
from infrastructure.models.payment import PaymentOrderModel


logger = get_logger(__name__)


class SQLAlchemyPaymentOrderRepository:
    """支付订单仓储的SQLAlchemy实现"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _to_entity(self, model: PaymentOrderModel) -> PaymentOrder:
        """将数据库模型转换为领域实体；未知的状态/方式视为存储错误"""
        try:
            state = PaymentState(model.state)
            method = PaymentMethod(model.payment_method)
        except ValueError as e:
            raise StorageException(
                f"unknown persisted token for order {model.out_order_no}",
                details={"state": model.state, "payment_method": model.payment_method},
            ) from e
        return PaymentOrder(
            id=model.id,
            out_order_no=model.out_order_no,
            amount=Money.from_minor(int(model.amount_cents)),
            payment_method=method,
            state=state,
            description=model.description,
            client_ip=model.client_ip,
            payer_id=model.payer_id,
            attach=model.attach,
            transaction_id=model.transaction_id,
            prepay_token=model.prepay_token,
            created_at=model.created_at,
            updated_at=model.updated_at,
            paid_at=model.paid_at,
            version=model.version,
        )

    def _to_model(self, entity: PaymentOrder) -> PaymentOrderModel:
        """将领域实体转换为数据库模型"""
        return PaymentOrderModel(
            id=entity.id,
            out_order_no=entity.out_order_no,
            transaction_id=entity.transaction_id,
            amount_cents=entity.amount.to_minor(),
            payment_method=entity.payment_method.value,
            state=entity.state.value,
            description=entity.description,
            payer_id=entity.payer_id,
            client_ip=entity.client_ip,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            paid_at=entity.paid_at,
            attach=entity.attach,
            prepay_token=entity.prepay_token,
            version=entity.version,
        )

    async def save(self, order: PaymentOrder) -> None:
        """创建订单记录；商户订单号重复时抛出 DuplicateOrderException"""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(self._to_model(order))
        except IntegrityError as e:
            logger.warning("payment_order_create_conflict", out_order_no=order.out_order_no)
            raise DuplicateOrderException(order.out_order_no) from e
        except SQLAlchemyError as e:
            raise StorageException(str(e)) from e
        logger.info("payment_order_saved", order_id=order.id, out_order_no=order.out_order_no)

    async def find_by_id(self, order_id: str) -> Optional[PaymentOrder]:
        return await self._find_one(PaymentOrderModel.id == order_id)

    async def find_by_out_order_no(self, out_order_no: str) -> Optional[PaymentOrder]:
        return await self._find_one(PaymentOrderModel.out_order_no == out_order_no)

    async def find_by_transaction_id(self, transaction_id: str) -> Optional[PaymentOrder]:
        return await self._find_one(PaymentOrderModel.transaction_id == transaction_id)

    async def update(self, order: PaymentOrder) -> None:
        """
        条件更新：仅当数据库版本号与实体一致时写入

        只写入可变字段（状态、交易号、预下单凭证、时间戳）；成功后实体版本号加一。
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        update(PaymentOrderModel)
                        .where(
                            PaymentOrderModel.id == order.id,
                            PaymentOrderModel.version == order.version,
                        )
                        .values(
                            state=order.state.value,
                            transaction_id=order.transaction_id,
                            prepay_token=order.prepay_token,
                            updated_at=order.updated_at,
                            paid_at=order.paid_at,
                            version=order.version + 1,
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 0:
                        exists = await session.scalar(
                            select(PaymentOrderModel.id).where(PaymentOrderModel.id == order.id)
                        )
                        if exists is None:
                            raise OrderNotFoundException(order.out_order_no)
                        logger.warning(
                            "payment_order_stale_update",
                            order_id=order.id,
                            version=order.version,
                        )
                        raise StaleOrderException(order.id, order.version)
        except SQLAlchemyError as e:
            raise StorageException(str(e)) from e

        order.version += 1
        logger.info(
            "payment_order_updated",
            order_id=order.id,
            out_order_no=order.out_order_no,
            state=order.state.value,
            version=order.version,
        )

    async def delete(self, order_id: str) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(PaymentOrderModel)
                        .where(PaymentOrderModel.id == order_id)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 0:
                        raise OrderNotFoundException(order_id)
        except SQLAlchemyError as e:
            raise StorageException(str(e)) from e
        logger.info("payment_order_deleted", order_id=order_id)

    async def _find_one(self, *criteria) -> Optional[PaymentOrder]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(PaymentOrderModel).where(*criteria))
                model = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageException(str(e)) from e
        return self._to_entity(model) if model else None
