from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from application.dtos.payments import PaymentResult
from application.services.invoice_service import InvoiceService
from domain.booking.entity import Booking, BookingStatus, ServiceType
from domain.common.exceptions import BookingNotFoundException, DomainValidationException
from domain.payment.entity import Transaction, TransactionStatus
from infrastructure.models import Base
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from fakes import make_payment_data


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def sql_uow(session_factory):
    def factory(*, readonly: bool = False) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory=session_factory, readonly=readonly)
    return factory


def _booking() -> Booking:
    return Booking.open(
        requester_id="user_1",
        provider_id="tutor_2",
        service_id="maths_101",
        service_type=ServiceType.EDUCATION,
        appointment_date=datetime.now(timezone.utc) + timedelta(days=2),
        recipient={"id": "nephew_1"},
        metadata={"source": "app"},
    )


@pytest.mark.asyncio
async def test_booking_roundtrip_and_update(sql_uow):
    async with sql_uow() as uow:
        created = await uow.booking_repository.create(_booking())

    async with sql_uow() as uow:
        booking = await uow.booking_repository.get_by_id(created.id)
        booking.attach_payment(provider="stripe", payment_intent_id="pi_9", transaction_id="ch_9")
        booking.transition_to(BookingStatus.CONFIRMED)
        await uow.booking_repository.update(booking)

    async with sql_uow(readonly=True) as uow:
        stored = await uow.booking_repository.get_by_id(created.id)

    assert stored.status == BookingStatus.CONFIRMED
    assert stored.service_type == ServiceType.EDUCATION
    assert stored.transaction_id == "ch_9"
    assert stored.recipient == {"id": "nephew_1"}
    assert stored.metadata == {"source": "app"}
    assert stored.appointment_date.tzinfo is not None


@pytest.mark.asyncio
async def test_exception_rolls_back(sql_uow):
    booking = _booking()
    with pytest.raises(RuntimeError):
        async with sql_uow() as uow:
            await uow.booking_repository.create(booking)
            raise RuntimeError("abort")

    async with sql_uow(readonly=True) as uow:
        assert await uow.booking_repository.get_by_id(booking.id) is None


@pytest.mark.asyncio
async def test_update_missing_booking(sql_uow):
    with pytest.raises(BookingNotFoundException):
        async with sql_uow() as uow:
            await uow.booking_repository.update(_booking())


@pytest.mark.asyncio
async def test_transaction_lookup_and_refund(sql_uow):
    transaction = Transaction.record(
        payer_id="user_1",
        beneficiary_id="mother_1",
        amount=Decimal("75.50"),
        currency="eur",
        service_type="HEALTH",
        service_id="consult",
        provider="stripe",
        payment_intent_id="pi_1",
        provider_ref="ch_1",
    )
    async with sql_uow() as uow:
        await uow.transaction_repository.create(transaction)

    async with sql_uow() as uow:
        found = await uow.transaction_repository.get_by_payment_intent("stripe", "pi_1")
        found.mark_refunded("re_1", "undo")
        await uow.transaction_repository.update(found)

    async with sql_uow(readonly=True) as uow:
        stored = await uow.transaction_repository.get_by_id(transaction.id)
        assert await uow.transaction_repository.get_by_payment_intent("paypal", "pi_1") is None

    assert stored.currency == "EUR"
    assert stored.amount == Decimal("75.50")
    assert stored.status == TransactionStatus.REFUNDED
    assert stored.refund_ref == "re_1"
    assert stored.can_refund() is False


@pytest.mark.asyncio
async def test_invoice_service_persists_invoice(sql_uow):
    service = InvoiceService(sql_uow)
    result = PaymentResult(success=True, transaction_id="ch_1", payment_intent_id="pi_1", provider="stripe")
    ref = await service.generate(result, make_payment_data(amount=Decimal("30")))

    assert ref.invoice_number.startswith("INV-")
    async with sql_uow(readonly=True) as uow:
        invoice = await uow.invoice_repository.get_by_id(ref.invoice_id)
    assert invoice.amount == Decimal("30.00")
    assert invoice.lines[0].description == "Consultation"
    assert invoice.transaction_id == "ch_1"
    assert invoice.metadata["provider"] == "stripe"


@pytest.mark.asyncio
async def test_invoice_service_refuses_failed_payment(sql_uow):
    with pytest.raises(DomainValidationException):
        await InvoiceService(sql_uow).generate(PaymentResult.failed("declined"), make_payment_data())
