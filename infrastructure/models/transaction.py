"""
交易数据库模型 - SQLAlchemy ORM模型
"""
from sqlalchemy import Column, String, Numeric, DateTime, Text, JSON, Index
from datetime import datetime, timezone

from .base import Base


class TransactionModel(Base):
    __tablename__ = "transactions"

    id = Column(String(32), primary_key=True)

    payer_id = Column(String(64), nullable=False, index=True)
    beneficiary_id = Column(String(64), nullable=False, index=True)

    # 金额信息（使用 Numeric 存储精确金额）
    amount = Column(Numeric(precision=15, scale=2), nullable=False, comment="交易金额")
    currency = Column(String(3), nullable=False, comment="货币代码 ISO-4217")

    service_type = Column(String(20), nullable=False)
    service_id = Column(String(64), nullable=False)
    description = Column(Text, nullable=True)

    provider = Column(String(50), nullable=False, comment="支付提供商: stripe/paypal")
    payment_intent_id = Column(String(200), nullable=True)
    provider_ref = Column(String(200), nullable=True, comment="渠道扣款ID")

    status = Column(String(20), nullable=False, default="COMPLETED", index=True)
    refund_ref = Column(String(200), nullable=True)
    refund_reason = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    refunded_at = Column(DateTime(timezone=True), nullable=True)

    extra_metadata = Column("metadata", JSON, nullable=True)

    __table_args__ = (
        Index("ix_transactions_provider_intent", "provider", "payment_intent_id"),
    )

    def __repr__(self):
        return (
            f"<TransactionModel(id='{self.id}', provider='{self.provider}', "
            f"amount={self.amount}, status='{self.status}')>"
        )
