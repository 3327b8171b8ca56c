"""
PaymentFacade - 支付编排门面

charge (CRITICAL) → record transaction → invoice → notification (BEST_EFFORT).
Once the charge succeeded the caller always gets a success result, even if
the bookkeeping steps afterwards fail; those gaps are logged for operators.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from application.dtos.payments import PaymentData, PaymentFacadeData, PaymentResult, RefundOutcome
from application.facades.steps import Step, StepKind, run_steps
from application.ports.notifications import InvoiceGenerator, Notifier
from application.ports.payment_processor import PaymentProcessor, ProcessorResolver
from application.services.payment_pipeline import process_payment
from core.logging_config import get_logger
from domain.common.exceptions import DomainValidationException, TransactionNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import Transaction, TransactionStatus


logger = get_logger(__name__)

TEMPLATE_PAYMENT_CONFIRMATION = "payment_confirmation"
TEMPLATE_PAYMENT_FAILED = "payment_failed"


def notification_recipient(data: PaymentData) -> str:
    """Email from metadata when the caller supplied one, otherwise the customer id."""
    return data.metadata.get("customer_email") or data.customer_id


@dataclass
class _PaymentRun:
    data: PaymentFacadeData
    payment_data: PaymentData
    idempotency_key: Optional[str]
    processor: Optional[PaymentProcessor] = None
    result: Optional[PaymentResult] = None
    transaction_record_id: Optional[str] = None

    @property
    def charged(self) -> bool:
        return bool(self.result and self.result.success)

    @property
    def declined(self) -> bool:
        return bool(self.result and not self.result.success and not self.result.requires_action)


@dataclass
class _RefundRun:
    provider: str
    payment_intent_id: Optional[str]
    transaction_id: Optional[str]
    amount: Optional[Decimal]
    currency: Optional[str]
    reason: Optional[str]
    outcome: Optional[RefundOutcome] = None


def _payment_log_fields(run: _PaymentRun) -> dict:
    result = run.result
    return {
        "provider": result.provider if result else None,
        "payment_intent_id": result.payment_intent_id if result else None,
        "transaction_id": result.transaction_id if result else None,
    }


def _refund_log_fields(run: _RefundRun) -> dict:
    return {
        "provider": run.provider,
        "payment_intent_id": run.payment_intent_id,
        "transaction_id": run.transaction_id,
        "refund_id": run.outcome.refund_id if run.outcome else None,
    }


async def _close(processor: Optional[PaymentProcessor]) -> None:
    close = getattr(processor, "aclose", None)
    if callable(close):
        await close()


class PaymentFacade:
    def __init__(
        self,
        *,
        processors: ProcessorResolver,
        uow_factory: Callable[..., AbstractUnitOfWork],
        invoice_generator: InvoiceGenerator,
        notifier: Notifier,
    ) -> None:
        self._processors = processors
        self._uow_factory = uow_factory
        self._invoices = invoice_generator
        self._notifier = notifier

    # ---- process -----------------------------------------------------------

    async def process_payment(
        self,
        data: PaymentFacadeData,
        *,
        idempotency_key: Optional[str] = None,
    ) -> PaymentResult:
        run = _PaymentRun(
            data=data,
            payment_data=data.to_payment_data(),
            idempotency_key=idempotency_key or data.idempotency_key,
        )
        steps = [
            Step("resolve_processor", StepKind.CRITICAL, self._resolve_processor),
            Step("charge", StepKind.CRITICAL, self._charge),
            Step("record_transaction", StepKind.BEST_EFFORT, self._record_transaction, when=lambda r: r.charged),
            Step(
                "create_invoice",
                StepKind.BEST_EFFORT,
                self._create_invoice,
                when=lambda r: r.charged and r.data.create_invoice,
            ),
            Step(
                "send_notification",
                StepKind.BEST_EFFORT,
                self._notify,
                when=lambda r: r.data.send_notification and (r.charged or r.declined),
            ),
        ]
        try:
            await run_steps(steps, run, log_fields=_payment_log_fields)
        finally:
            await _close(run.processor)
        return run.result  # type: ignore[return-value]

    async def _resolve_processor(self, run: _PaymentRun) -> None:
        if run.data.provider:
            run.processor = self._processors.create_processor(run.data.provider)
        else:
            run.processor = self._processors.get_best_processor(run.data.currency, run.data.country)

    async def _charge(self, run: _PaymentRun) -> None:
        assert run.processor is not None
        run.result = await process_payment(run.processor, run.payment_data, idempotency_key=run.idempotency_key)

    async def _record_transaction(self, run: _PaymentRun) -> None:
        data, result = run.payment_data, run.result
        assert result is not None
        transaction = Transaction.record(
            payer_id=data.effective_payer_id,
            beneficiary_id=data.effective_beneficiary_id,
            amount=data.amount,
            currency=data.currency,
            service_type=data.service_type.value,
            service_id=data.service_id,
            provider=result.provider or "",
            payment_intent_id=result.payment_intent_id,
            provider_ref=result.transaction_id,
            status=TransactionStatus.COMPLETED,
            description=data.description or None,
            metadata=dict(data.metadata),
        )
        async with self._uow_factory() as uow:
            saved = await uow.transaction_repository.create(transaction)
        run.transaction_record_id = saved.id

    async def _create_invoice(self, run: _PaymentRun) -> None:
        assert run.result is not None
        ref = await self._invoices.generate(run.result, run.payment_data)
        run.result = run.result.model_copy(update={"invoice_id": ref.invoice_id})

    async def _notify(self, run: _PaymentRun) -> None:
        result, data = run.result, run.payment_data
        assert result is not None
        template = TEMPLATE_PAYMENT_CONFIRMATION if result.success else TEMPLATE_PAYMENT_FAILED
        payload = {
            "amount": str(data.amount),
            "currency": data.currency,
            "service_type": data.service_type.value,
            "service_id": data.service_id,
            "transaction_id": result.transaction_id,
            "invoice_id": result.invoice_id,
            "error": result.error,
        }
        sent = await self._notifier.send(notification_recipient(data), template, payload)
        if not sent:
            logger.warning("payment_notification_not_sent", template=template, **_payment_log_fields(run))

    # ---- refund ------------------------------------------------------------

    async def refund_payment(
        self,
        *,
        provider: str,
        payment_intent_id: Optional[str],
        transaction_id: Optional[str],
        amount: Optional[Decimal] = None,
        currency: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> RefundOutcome:
        """Refund through the processor that made the charge, then mark the record REFUNDED."""
        run = _RefundRun(
            provider=provider,
            payment_intent_id=payment_intent_id,
            transaction_id=transaction_id,
            amount=amount,
            currency=currency,
            reason=reason,
        )
        steps = [
            Step("refund", StepKind.CRITICAL, self._refund),
            Step("mark_transaction_refunded", StepKind.BEST_EFFORT, self._mark_refunded),
        ]
        await run_steps(steps, run, log_fields=_refund_log_fields)
        logger.info("payment_refunded", **_refund_log_fields(run))
        return run.outcome  # type: ignore[return-value]

    async def refund_transaction(
        self,
        transaction_id: str,
        *,
        reason: Optional[str] = None,
        payer_id: Optional[str] = None,
    ) -> RefundOutcome:
        """Refund a recorded transaction; with ``payer_id`` only the payer's own."""
        async with self._uow_factory(readonly=True) as uow:
            transaction = await uow.transaction_repository.get_by_id(transaction_id)
        # someone else's transaction looks the same as a missing one
        if transaction is None or (payer_id is not None and transaction.payer_id != payer_id):
            raise TransactionNotFoundException(transaction_id)
        if not transaction.can_refund():
            raise DomainValidationException(
                f"Transaction in status {transaction.status.value} cannot be refunded",
                field="status",
            )
        return await self.refund_payment(
            provider=transaction.provider,
            payment_intent_id=transaction.payment_intent_id,
            transaction_id=transaction.provider_ref,
            reason=reason,
        )

    async def _refund(self, run: _RefundRun) -> None:
        processor = self._processors.create_processor(run.provider)
        try:
            run.outcome = await processor.refund_charge(
                payment_intent_id=run.payment_intent_id,
                transaction_id=run.transaction_id,
                amount=run.amount,
                currency=run.currency,
                reason=run.reason,
            )
        finally:
            await _close(processor)

    async def _mark_refunded(self, run: _RefundRun) -> None:
        if not run.payment_intent_id:
            return
        async with self._uow_factory() as uow:
            transaction = await uow.transaction_repository.get_by_payment_intent(run.provider, run.payment_intent_id)
            if transaction is None:
                raise TransactionNotFoundException(run.payment_intent_id)
            if transaction.can_refund():
                transaction.mark_refunded(run.outcome.refund_id if run.outcome else None, run.reason)
                await uow.transaction_repository.update(transaction)
