"""create_payment_core_tables

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2025-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'bookings',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('requester_id', sa.String(length=64), nullable=False, comment='下单用户ID'),
        sa.Column('provider_id', sa.String(length=64), nullable=False, comment='服务提供者ID'),
        sa.Column('service_id', sa.String(length=64), nullable=False, comment='服务ID'),
        sa.Column('service_type', sa.String(length=20), nullable=False, comment='HEALTH/BTP/EDUCATION'),
        sa.Column('appointment_date', sa.DateTime(timezone=True), nullable=False, comment='预约时间'),
        sa.Column('timeslot', sa.String(length=50), nullable=True),
        sa.Column('consultation_mode', sa.String(length=20), nullable=True),
        sa.Column('recipient', sa.JSON(), nullable=True, comment='受益人信息'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING'),
        sa.Column('payment_provider', sa.String(length=50), nullable=True),
        sa.Column('payment_intent_id', sa.String(length=200), nullable=True),
        sa.Column('transaction_id', sa.String(length=200), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bookings_requester_id', 'bookings', ['requester_id'], unique=False)
    op.create_index('ix_bookings_provider_id', 'bookings', ['provider_id'], unique=False)
    op.create_index('ix_bookings_status', 'bookings', ['status'], unique=False)
    op.create_index('ix_bookings_payment_intent_id', 'bookings', ['payment_intent_id'], unique=False)
    op.create_index('ix_bookings_requester_status', 'bookings', ['requester_id', 'status'], unique=False)

    op.create_table(
        'transactions',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('payer_id', sa.String(length=64), nullable=False),
        sa.Column('beneficiary_id', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False, comment='交易金额'),
        sa.Column('currency', sa.String(length=3), nullable=False, comment='货币代码 ISO-4217'),
        sa.Column('service_type', sa.String(length=20), nullable=False),
        sa.Column('service_id', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('provider', sa.String(length=50), nullable=False, comment='支付提供商: stripe/paypal'),
        sa.Column('payment_intent_id', sa.String(length=200), nullable=True),
        sa.Column('provider_ref', sa.String(length=200), nullable=True, comment='渠道扣款ID'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='COMPLETED'),
        sa.Column('refund_ref', sa.String(length=200), nullable=True),
        sa.Column('refund_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_transactions_payer_id', 'transactions', ['payer_id'], unique=False)
    op.create_index('ix_transactions_beneficiary_id', 'transactions', ['beneficiary_id'], unique=False)
    op.create_index('ix_transactions_status', 'transactions', ['status'], unique=False)
    op.create_index('ix_transactions_created_at', 'transactions', ['created_at'], unique=False)
    op.create_index('ix_transactions_provider_intent', 'transactions', ['provider', 'payment_intent_id'], unique=False)

    op.create_table(
        'invoices',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('invoice_number', sa.String(length=40), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('transaction_id', sa.String(length=200), nullable=True, comment='渠道扣款ID'),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('lines', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='ISSUED'),
        sa.Column('issued_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'], unique=True)
    op.create_index('ix_invoices_user_id', 'invoices', ['user_id'], unique=False)
    op.create_index('ix_invoices_transaction_id', 'invoices', ['transaction_id'], unique=False)


def downgrade() -> None:
    op.drop_table('invoices')
    op.drop_table('transactions')
    op.drop_table('bookings')
