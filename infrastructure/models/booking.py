"""
预约数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import Column, String, DateTime, Text, JSON, Index
from datetime import datetime, timezone

from .base import Base


class BookingModel(Base):
    """
    预约数据库模型

    所有业务规则都在 domain.booking.entity.Booking 中
    """
    __tablename__ = "bookings"

    id = Column(String(32), primary_key=True)

    requester_id = Column(String(64), nullable=False, index=True, comment="下单用户ID")
    provider_id = Column(String(64), nullable=False, index=True, comment="服务提供者ID")
    service_id = Column(String(64), nullable=False, comment="服务ID")
    service_type = Column(String(20), nullable=False, comment="HEALTH/BTP/EDUCATION")

    appointment_date = Column(DateTime(timezone=True), nullable=False, comment="预约时间")
    timeslot = Column(String(50), nullable=True)
    consultation_mode = Column(String(20), nullable=True)
    recipient = Column(JSON, nullable=True, comment="受益人信息")

    status = Column(String(20), nullable=False, default="PENDING", index=True)

    payment_provider = Column(String(50), nullable=True)
    payment_intent_id = Column(String(200), nullable=True, index=True)
    transaction_id = Column(String(200), nullable=True)

    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # 使用 extra_metadata 避免与 SQLAlchemy 的 metadata 冲突
    extra_metadata = Column("metadata", JSON, nullable=True)

    __table_args__ = (
        Index("ix_bookings_requester_status", "requester_id", "status"),
    )

    def __repr__(self):
        return f"<BookingModel(id='{self.id}', status='{self.status}')>"
