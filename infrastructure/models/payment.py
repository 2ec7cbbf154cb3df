"""
支付订单数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import BigInteger, Column, DateTime, Integer, String, Text
from datetime import datetime, timezone

from .base import Base


class PaymentOrderModel(Base):
    """
    支付订单数据库模型

    这是数据库表的映射，不包含业务逻辑
    所有业务规则都在 domain.payment.entity.PaymentOrder 中
    """
    __tablename__ = "payment_orders"

    # 主键（uuid 字符串）
    id = Column(String(36), primary_key=True, comment="订单ID")

    # 商户订单号
    out_order_no = Column(String(64), unique=True, index=True, nullable=False, comment="商户订单号")

    # 微信支付订单号
    transaction_id = Column(String(64), nullable=True, index=True, comment="微信支付订单号")

    # 金额（分）
    amount_cents = Column(BigInteger, nullable=False, comment="支付金额（分）")

    payment_method = Column(String(32), nullable=False, comment="支付方式: mini_program/jsapi/native/h5")
    state = Column(
        String(32),
        nullable=False,
        default="pending",
        index=True,
        comment="订单状态: pending/processing/succeeded/failed/refunded/closed"
    )

    description = Column(String(127), nullable=False, comment="商品描述")
    payer_id = Column(String(128), nullable=True, comment="用户OpenID")
    client_ip = Column(String(45), nullable=False, comment="客户端IP")

    # 时间戳
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )
    paid_at = Column(DateTime(timezone=True), nullable=True, comment="支付完成时间")

    attach = Column(Text, nullable=True, comment="附加数据")
    # prepay_id / code_url / h5_url
    prepay_token = Column(String(512), nullable=True, comment="预下单凭证")

    # 乐观锁版本号
    version = Column(Integer, nullable=False, default=1, comment="行版本")

    def __repr__(self):
        return (
            f"<PaymentOrderModel(id='{self.id}', out_order_no='{self.out_order_no}', "
            f"amount_cents={self.amount_cents}, state='{self.state}')>"
        )
