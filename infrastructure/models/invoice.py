"""
发票数据库模型 - SQLAlchemy ORM模型
"""
from sqlalchemy import Column, String, Numeric, DateTime, JSON
from datetime import datetime, timezone

from .base import Base


class InvoiceModel(Base):
    __tablename__ = "invoices"

    id = Column(String(32), primary_key=True)
    invoice_number = Column(String(40), unique=True, nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    transaction_id = Column(String(200), nullable=True, index=True, comment="渠道扣款ID")

    amount = Column(Numeric(precision=15, scale=2), nullable=False)
    currency = Column(String(3), nullable=False)
    lines = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default="ISSUED")

    issued_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    extra_metadata = Column("metadata", JSON, nullable=True)

    def __repr__(self):
        return f"<InvoiceModel(id='{self.id}', number='{self.invoice_number}')>"
