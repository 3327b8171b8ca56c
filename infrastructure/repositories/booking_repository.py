"""
预约仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.booking.entity import Booking, BookingStatus, ServiceType
from domain.booking.repository import BookingRepository
from domain.common.exceptions import BookingNotFoundException
from infrastructure.models.booking import BookingModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyBookingRepository(BookingRepository):
    """预约仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: BookingModel) -> Booking:
        """将数据库模型转换为领域实体"""
        return Booking(
            id=model.id,
            requester_id=model.requester_id,
            provider_id=model.provider_id,
            service_id=model.service_id,
            service_type=ServiceType(model.service_type),
            appointment_date=model.appointment_date,
            status=BookingStatus(model.status),
            timeslot=model.timeslot,
            consultation_mode=model.consultation_mode,
            recipient=model.recipient,
            payment_provider=model.payment_provider,
            payment_intent_id=model.payment_intent_id,
            transaction_id=model.transaction_id,
            cancellation_reason=model.cancellation_reason,
            created_at=model.created_at,
            updated_at=model.updated_at,
            cancelled_at=model.cancelled_at,
            metadata=model.extra_metadata or {},
        )

    def _to_model(self, entity: Booking) -> BookingModel:
        """将领域实体转换为数据库模型"""
        return BookingModel(
            id=entity.id,
            requester_id=entity.requester_id,
            provider_id=entity.provider_id,
            service_id=entity.service_id,
            service_type=entity.service_type.value,
            appointment_date=entity.appointment_date,
            status=entity.status.value,
            timeslot=entity.timeslot,
            consultation_mode=entity.consultation_mode,
            recipient=entity.recipient,
            payment_provider=entity.payment_provider,
            payment_intent_id=entity.payment_intent_id,
            transaction_id=entity.transaction_id,
            cancellation_reason=entity.cancellation_reason,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            cancelled_at=entity.cancelled_at,
            extra_metadata=entity.metadata,
        )

    async def create(self, booking: Booking) -> Booking:
        """创建预约"""
        db_booking = self._to_model(booking)
        self.session.add(db_booking)
        await self.session.flush()
        await self.session.refresh(db_booking)
        logger.info(
            "booking_created",
            booking_id=db_booking.id,
            requester_id=db_booking.requester_id,
            provider_id=db_booking.provider_id,
        )
        return self._to_entity(db_booking)

    async def get_by_id(self, booking_id: str) -> Optional[Booking]:
        """根据ID获取预约"""
        result = await self.session.execute(
            select(BookingModel).where(BookingModel.id == booking_id)
        )
        db_booking = result.scalar_one_or_none()
        return self._to_entity(db_booking) if db_booking else None

    async def update(self, booking: Booking) -> Booking:
        """更新预约"""
        result = await self.session.execute(
            select(BookingModel).where(BookingModel.id == booking.id)
        )
        db_booking = result.scalar_one_or_none()
        if not db_booking:
            raise BookingNotFoundException(booking.id)

        db_booking.status = booking.status.value
        db_booking.payment_provider = booking.payment_provider
        db_booking.payment_intent_id = booking.payment_intent_id
        db_booking.transaction_id = booking.transaction_id
        db_booking.cancellation_reason = booking.cancellation_reason
        db_booking.cancelled_at = booking.cancelled_at
        db_booking.updated_at = booking.updated_at
        db_booking.extra_metadata = booking.metadata

        await self.session.flush()
        await self.session.refresh(db_booking)
        logger.info("booking_updated", booking_id=db_booking.id, status=db_booking.status)
        return self._to_entity(db_booking)
