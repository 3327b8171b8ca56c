"""
BookingFacade - 预约与支付的编排门面

create booking (CRITICAL) → charge (CRITICAL, failures folded into the
result) → apply payment outcome → notify requester and provider
(BEST_EFFORT).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from application.dtos.bookings import BookingChange, BookingFacadeData, BookingFacadeResult, BookingView
from application.dtos.payments import PaymentFacadeData, PaymentResult, RefundOutcome
from application.facades.payment_facade import PaymentFacade
from application.facades.steps import Step, StepKind, run_steps
from application.ports.notifications import Notifier
from core.logging_config import get_logger
from domain.booking.entity import Booking, BookingStatus
from domain.common.exceptions import (
    BookingNotFoundException,
    BusinessException,
    InvalidBookingTransitionException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


logger = get_logger(__name__)

TEMPLATE_BOOKING_CONFIRMATION = "booking_confirmation"
TEMPLATE_BOOKING_RECEIVED = "booking_received"


@dataclass
class _BookingRun:
    data: BookingFacadeData
    idempotency_key: Optional[str]
    booking: Optional[Booking] = None
    payment_result: Optional[PaymentResult] = None
    # business code of a charge that raised instead of returning a result
    failure_code: Optional[int] = None

    @property
    def has_payment(self) -> bool:
        return self.data.payment is not None

    @property
    def succeeded(self) -> bool:
        if self.booking is None:
            return False
        if self.payment_result is None:
            return True
        return self.payment_result.success or self.payment_result.requires_action

    def resolved_failure_code(self) -> int:
        if self.failure_code is not None:
            return self.failure_code
        result = self.payment_result
        # no gateway object means the input was rejected before charging
        if result is not None and result.payment_intent_id:
            return PaymentCode.DECLINED
        return PaymentCode.VALIDATION_ERROR


def _booking_log_fields(run: _BookingRun) -> dict:
    result = run.payment_result
    return {
        "booking_id": run.booking.id if run.booking else None,
        "provider": result.provider if result else None,
        "payment_intent_id": result.payment_intent_id if result else None,
        "transaction_id": result.transaction_id if result else None,
    }


class BookingFacade:
    def __init__(
        self,
        *,
        uow_factory: Callable[..., AbstractUnitOfWork],
        payment_facade: PaymentFacade,
        notifier: Notifier,
    ) -> None:
        self._uow_factory = uow_factory
        self._payments = payment_facade
        self._notifier = notifier

    async def create_booking_with_payment(
        self,
        data: BookingFacadeData,
        *,
        idempotency_key: Optional[str] = None,
    ) -> BookingFacadeResult:
        run = _BookingRun(data=data, idempotency_key=idempotency_key)
        steps = [
            Step("create_booking", StepKind.CRITICAL, self._create_booking),
            Step("charge", StepKind.CRITICAL, self._charge, when=lambda r: r.has_payment),
            Step("apply_payment_outcome", StepKind.BEST_EFFORT, self._apply_payment_outcome, when=lambda r: r.has_payment),
            Step("notify_requester", StepKind.BEST_EFFORT, self._notify_requester, when=lambda r: r.succeeded),
            Step("notify_provider", StepKind.BEST_EFFORT, self._notify_provider, when=lambda r: r.succeeded),
        ]
        await run_steps(steps, run, log_fields=_booking_log_fields)

        booking = BookingView.from_entity(run.booking) if run.booking else None
        if run.succeeded:
            logger.info("booking_flow_completed", status=booking.status if booking else None, **_booking_log_fields(run))
            return BookingFacadeResult(success=True, booking=booking, payment_result=run.payment_result)
        error = run.payment_result.error if run.payment_result else "Booking failed"
        logger.info("booking_payment_failed", error=error, **_booking_log_fields(run))
        return BookingFacadeResult(
            success=False,
            booking=booking,
            payment_result=run.payment_result,
            error=error,
            failure_code=run.resolved_failure_code(),
        )

    async def _create_booking(self, run: _BookingRun) -> None:
        data = run.data
        booking = Booking.open(
            requester_id=data.requester_id,
            provider_id=data.provider_id,
            service_id=data.service_id,
            service_type=data.service_type,
            appointment_date=data.appointment_date,
            timeslot=data.timeslot,
            consultation_mode=data.consultation_mode,
            recipient=data.recipient,
            metadata=dict(data.metadata),
        )
        async with self._uow_factory() as uow:
            run.booking = await uow.booking_repository.create(booking)

    def _payment_data(self, run: _BookingRun) -> PaymentFacadeData:
        data, payment, booking = run.data, run.data.payment, run.booking
        assert payment is not None and booking is not None
        recipient = data.recipient or {}
        metadata = dict(data.metadata)
        metadata.update({"booking_id": booking.id, "provider_id": data.provider_id})
        return PaymentFacadeData(
            amount=payment.amount,
            currency=payment.currency,
            customer_id=data.requester_id,
            payment_method_id=payment.payment_method_id,
            payer_id=data.requester_id,
            beneficiary_id=str(recipient.get("id") or data.requester_id),
            service_type=data.service_type,
            service_id=data.service_id,
            description=f"{data.service_type.value} booking {booking.id}",
            metadata=metadata,
            country=payment.country,
            provider=payment.provider,
            create_invoice=payment.create_invoice,
            send_notification=False,
        )

    async def _charge(self, run: _BookingRun) -> None:
        try:
            run.payment_result = await self._payments.process_payment(
                self._payment_data(run), idempotency_key=run.idempotency_key
            )
        except BusinessException as exc:
            logger.error("booking_payment_error", error=exc.message, code=int(exc.code), **_booking_log_fields(run))
            run.failure_code = int(exc.code)
            run.payment_result = PaymentResult.failed(exc.message)
        except Exception as exc:
            logger.error("booking_payment_error", error=str(exc), exc_info=True, **_booking_log_fields(run))
            run.failure_code = int(BusinessCode.SYSTEM_ERROR)
            run.payment_result = PaymentResult.failed("Payment processing failed")

    async def _apply_payment_outcome(self, run: _BookingRun) -> None:
        booking, result = run.booking, run.payment_result
        assert booking is not None and result is not None
        if result.success:
            booking.attach_payment(
                provider=result.provider,
                payment_intent_id=result.payment_intent_id,
                transaction_id=result.transaction_id,
            )
            booking.transition_to(BookingStatus.CONFIRMED)
        elif result.requires_action:
            # stays PENDING until the customer completes the action
            booking.attach_payment(provider=result.provider, payment_intent_id=result.payment_intent_id)
        else:
            booking.transition_to(BookingStatus.FAILED)
        async with self._uow_factory() as uow:
            await uow.booking_repository.update(booking)

    def _notification_payload(self, run: _BookingRun) -> dict:
        booking, result = run.booking, run.payment_result
        assert booking is not None
        return {
            "booking_id": booking.id,
            "status": booking.status.value,
            "service_type": booking.service_type.value,
            "service_id": booking.service_id,
            "appointment_date": booking.appointment_date.isoformat(),
            "timeslot": booking.timeslot,
            "consultation_mode": booking.consultation_mode,
            "requires_action": bool(result and result.requires_action),
            "invoice_id": result.invoice_id if result else None,
        }

    async def _send(self, recipient: str, template: str, run: _BookingRun) -> None:
        sent = await self._notifier.send(recipient, template, self._notification_payload(run))
        if not sent:
            logger.warning("booking_notification_not_sent", template=template, **_booking_log_fields(run))

    async def _notify_requester(self, run: _BookingRun) -> None:
        recipient = run.data.metadata.get("requester_email") or run.data.requester_id
        await self._send(recipient, TEMPLATE_BOOKING_CONFIRMATION, run)

    async def _notify_provider(self, run: _BookingRun) -> None:
        recipient = run.data.metadata.get("provider_email") or run.data.provider_id
        await self._send(recipient, TEMPLATE_BOOKING_RECEIVED, run)

    # ---- lifecycle ---------------------------------------------------------

    async def get_booking(self, booking_id: str) -> Booking:
        async with self._uow_factory(readonly=True) as uow:
            booking = await uow.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundException(booking_id)
        return booking

    async def cancel_booking(self, booking_id: str, reason: Optional[str] = None) -> BookingChange:
        async with self._uow_factory() as uow:
            booking = await uow.booking_repository.get_by_id(booking_id)
            if booking is None:
                raise BookingNotFoundException(booking_id)
            previous = booking.status
            booking.cancel(reason)
            booking = await uow.booking_repository.update(booking)
        logger.info("booking_cancelled", booking_id=booking_id, previous_status=previous.value, reason=reason)
        return BookingChange(booking=BookingView.from_entity(booking), previous_status=previous.value)

    async def update_booking_status(self, booking_id: str, status: BookingStatus) -> BookingChange:
        async with self._uow_factory() as uow:
            booking = await uow.booking_repository.get_by_id(booking_id)
            if booking is None:
                raise BookingNotFoundException(booking_id)
            previous = booking.status
            booking.transition_to(status)
            booking = await uow.booking_repository.update(booking)
        logger.info("booking_status_updated", booking_id=booking_id, previous_status=previous.value, status=booking.status.value)
        return BookingChange(booking=BookingView.from_entity(booking), previous_status=previous.value)

    async def restore_booking_status(
        self,
        booking_id: str,
        status: BookingStatus,
        *,
        expected: BookingStatus,
    ) -> BookingView:
        """Put back ``status`` if the booking is still in ``expected``, the status the compensated command set."""
        async with self._uow_factory() as uow:
            booking = await uow.booking_repository.get_by_id(booking_id)
            if booking is None:
                raise BookingNotFoundException(booking_id)
            booking.restore(status, expected=expected)
            booking = await uow.booking_repository.update(booking)
        logger.info("booking_status_restored", booking_id=booking_id, status=booking.status.value)
        return BookingView.from_entity(booking)

    async def release_booking(self, booking_id: str, *, reason: str = "undo") -> tuple[BookingView, Optional[RefundOutcome]]:
        """Refund the booking's own payment (if it was charged) and cancel it."""
        booking = await self.get_booking(booking_id)
        if booking.status != BookingStatus.CANCELLED and not booking.can_transition_to(BookingStatus.CANCELLED):
            raise InvalidBookingTransitionException(booking.status.value, BookingStatus.CANCELLED.value)
        refund: Optional[RefundOutcome] = None
        if booking.is_paid and booking.payment_provider and not booking.metadata.get("refund_id"):
            refund = await self._payments.refund_payment(
                provider=booking.payment_provider,
                payment_intent_id=booking.payment_intent_id,
                transaction_id=booking.transaction_id,
                reason=reason,
            )

        async with self._uow_factory() as uow:
            booking = await uow.booking_repository.get_by_id(booking_id)
            if booking is None:
                raise BookingNotFoundException(booking_id)
            if refund is not None:
                booking.metadata = {**booking.metadata, "refund_id": refund.refund_id}
            if booking.status != BookingStatus.CANCELLED:
                booking.cancel(reason)
            booking = await uow.booking_repository.update(booking)
        logger.info("booking_released", booking_id=booking_id, refund_id=refund.refund_id if refund else None)
        return BookingView.from_entity(booking), refund
