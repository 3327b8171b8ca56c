from decimal import Decimal

import pytest

from application.facades import PaymentFacade, Step, StepKind, run_steps
from domain.payment.entity import TransactionStatus
from infrastructure.external.payments.exceptions import UnsupportedProviderError
from fakes import RecordingInvoiceGenerator, RecordingLogger, RecordingNotifier, make_facade_data


@pytest.fixture
def step_logger(monkeypatch):
    recorder = RecordingLogger()
    monkeypatch.setattr("application.facades.steps.logger", recorder)
    return recorder


@pytest.mark.asyncio
async def test_full_success_records_invoices_and_notifies(payment_facade, store, notifier, invoices):
    data = make_facade_data(metadata={"customer_email": "amina@example.com"}, payer_id="payer_9")
    result = await payment_facade.process_payment(data)

    assert result.success is True
    assert result.invoice_id == "inv_1"
    (transaction,) = store.transactions.values()
    assert transaction.status == TransactionStatus.COMPLETED
    assert transaction.provider_ref == result.transaction_id
    assert transaction.payment_intent_id == result.payment_intent_id
    assert transaction.payer_id == "payer_9"
    assert transaction.beneficiary_id == "cust_1"
    assert notifier.sent[0][0] == "amina@example.com"
    assert notifier.templates == ["payment_confirmation"]
    assert notifier.sent[0][2]["invoice_id"] == "inv_1"


@pytest.mark.asyncio
async def test_invoice_failure_keeps_success(resolver, uow_factory, notifier, step_logger):
    facade = PaymentFacade(
        processors=resolver,
        uow_factory=uow_factory,
        invoice_generator=RecordingInvoiceGenerator(fail=True),
        notifier=notifier,
    )
    result = await facade.process_payment(make_facade_data(amount=Decimal("100"), currency="EUR"))

    assert result.success is True
    assert result.invoice_id is None
    assert result.transaction_id
    errors = [(event, fields) for level, event, fields in step_logger.records if level == "error"]
    assert errors[0][0] == "payment_step_failed"
    assert errors[0][1]["step"] == "create_invoice"
    assert errors[0][1]["transaction_id"] == result.transaction_id
    assert notifier.templates == ["payment_confirmation"]


@pytest.mark.asyncio
async def test_transaction_record_failure_keeps_success(payment_facade, store, step_logger):
    store.fail_transactions = True
    result = await payment_facade.process_payment(make_facade_data())

    assert result.success is True
    assert store.transactions == {}
    assert step_logger.records[0][2]["step"] == "record_transaction"


@pytest.mark.asyncio
async def test_decline_sends_failure_notice_only(payment_facade, processor, store, notifier, invoices):
    processor.outcome = "declined"
    result = await payment_facade.process_payment(make_facade_data())

    assert result.success is False
    assert result.error == "Your card was declined."
    assert store.transactions == {}
    assert invoices.calls == []
    assert notifier.templates == ["payment_failed"]
    assert notifier.sent[0][0] == "cust_1"


@pytest.mark.asyncio
async def test_requires_action_runs_no_side_effects(payment_facade, processor, store, notifier, invoices):
    processor.outcome = "requires_action"
    result = await payment_facade.process_payment(make_facade_data())

    assert result.requires_action is True
    assert store.transactions == {}
    assert invoices.calls == []
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_flags_disable_invoice_and_notification(payment_facade, notifier, invoices):
    result = await payment_facade.process_payment(make_facade_data(create_invoice=False, send_notification=False))

    assert result.success is True
    assert invoices.calls == []
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_unsent_notification_does_not_fail(resolver, uow_factory, invoices):
    facade = PaymentFacade(
        processors=resolver,
        uow_factory=uow_factory,
        invoice_generator=invoices,
        notifier=RecordingNotifier(result=False),
    )
    assert (await facade.process_payment(make_facade_data())).success is True


@pytest.mark.asyncio
async def test_processor_selection(payment_facade, resolver):
    await payment_facade.process_payment(make_facade_data(country="fr"))
    assert resolver.best_calls == [("EUR", "FR")]

    await payment_facade.process_payment(make_facade_data(provider="stub"))
    assert len(resolver.best_calls) == 1

    with pytest.raises(UnsupportedProviderError):
        await payment_facade.process_payment(make_facade_data(provider="bitcoin"))


@pytest.mark.asyncio
async def test_processor_crash_propagates(payment_facade, processor):
    processor.outcome = "boom"
    with pytest.raises(RuntimeError):
        await payment_facade.process_payment(make_facade_data())


@pytest.mark.asyncio
async def test_run_steps_skips_and_isolates(step_logger):
    seen = []

    async def ok(ctx):
        seen.append("ok")

    async def broken(ctx):
        raise ValueError("nope")

    async def critical(ctx):
        raise KeyError("stop")

    await run_steps(
        [
            Step("skipped", StepKind.CRITICAL, critical, when=lambda ctx: False),
            Step("broken", StepKind.BEST_EFFORT, broken),
            Step("ok", StepKind.CRITICAL, ok),
        ],
        {},
        log_fields=lambda ctx: {"run": "t"},
    )
    assert seen == ["ok"]
    assert step_logger.records[0][2]["error_type"] == "ValueError"
    assert step_logger.records[0][2]["run"] == "t"

    with pytest.raises(KeyError):
        await run_steps([Step("critical", StepKind.CRITICAL, critical)], {}, log_fields=lambda ctx: {})
