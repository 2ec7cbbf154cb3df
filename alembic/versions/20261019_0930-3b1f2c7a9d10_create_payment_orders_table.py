"""create_payment_orders_table

Revision ID: 3b1f2c7a9d10
Revises:
Create Date: 2026-10-19 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3b1f2c7a9d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'payment_orders',
        sa.Column('id', sa.String(length=36), nullable=False, comment='订单ID'),
        sa.Column('out_order_no', sa.String(length=64), nullable=False, comment='商户订单号'),
        sa.Column('transaction_id', sa.String(length=64), nullable=True, comment='微信支付订单号'),
        sa.Column('amount_cents', sa.BigInteger(), nullable=False, comment='支付金额（分）'),
        sa.Column('payment_method', sa.String(length=32), nullable=False, comment='支付方式: mini_program/jsapi/native/h5'),
        sa.Column('state', sa.String(length=32), nullable=False, server_default='pending',
                  comment='订单状态: pending/processing/succeeded/failed/refunded/closed'),
        sa.Column('description', sa.String(length=127), nullable=False, comment='商品描述'),
        sa.Column('payer_id', sa.String(length=128), nullable=True, comment='用户OpenID'),
        sa.Column('client_ip', sa.String(length=45), nullable=False, comment='客户端IP'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='更新时间'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True, comment='支付完成时间'),
        sa.Column('attach', sa.Text(), nullable=True, comment='附加数据'),
        sa.Column('prepay_token', sa.String(length=512), nullable=True, comment='预下单凭证'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1', comment='行版本'),
        sa.PrimaryKeyConstraint('id'),
        comment='支付订单表',
        mysql_engine='InnoDB',
        mysql_charset='utf8mb4',
    )

    op.create_index('ix_payment_orders_out_order_no', 'payment_orders', ['out_order_no'], unique=True)
    op.create_index('ix_payment_orders_transaction_id', 'payment_orders', ['transaction_id'], unique=False)
    op.create_index('ix_payment_orders_state', 'payment_orders', ['state'], unique=False)
    op.create_index('ix_payment_orders_created_at', 'payment_orders', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_payment_orders_created_at', table_name='payment_orders')
    op.drop_index('ix_payment_orders_state', table_name='payment_orders')
    op.drop_index('ix_payment_orders_transaction_id', table_name='payment_orders')
    op.drop_index('ix_payment_orders_out_order_no', table_name='payment_orders')

    op.drop_table('payment_orders')
