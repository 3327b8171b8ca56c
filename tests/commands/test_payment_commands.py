from decimal import Decimal

import pytest

from application.commands import CreatePaymentCommand, ErrorKind, RefundPayload, RefundPaymentCommand
from domain.payment.entity import TransactionStatus
from fakes import make_facade_data


@pytest.mark.asyncio
async def test_identical_commands_are_two_charges(handler, payment_facade, processor):
    data = make_facade_data()
    first = CreatePaymentCommand(data, facade=payment_facade)
    second = CreatePaymentCommand(data, facade=payment_facade)

    r1 = await handler.execute(first)
    r2 = await handler.execute(second)

    assert r1.success and r2.success
    assert r1.data.transaction_id != r2.data.transaction_id
    keys = [call.idempotency_key for call in processor.create_calls]
    assert keys == [first.command_id, second.command_id]


@pytest.mark.asyncio
async def test_declined_payment_is_a_declined_failure(handler, payment_facade, processor):
    processor.outcome = "declined"
    command = CreatePaymentCommand(make_facade_data(), facade=payment_facade)
    result = await handler.execute(command)

    assert result.success is False
    assert result.error_kind == ErrorKind.DECLINED
    assert result.error == "Your card was declined."
    assert (await handler.undo(command.command_id)).error_kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_requires_action_is_not_recorded(handler, payment_facade, processor):
    processor.outcome = "requires_action"
    command = CreatePaymentCommand(make_facade_data(), facade=payment_facade)
    result = await handler.execute(command)

    assert result.success is False
    assert result.requires_action is True
    assert result.error_kind is None
    assert result.data.next_action.url == "https://bank.example/3ds"
    assert await handler.history() == []


@pytest.mark.asyncio
async def test_invalid_amount_never_reaches_gateway(handler, payment_facade, processor):
    command = CreatePaymentCommand(make_facade_data(amount=Decimal("-5")), facade=payment_facade)
    result = await handler.execute(command)

    assert result.success is False
    assert result.error_kind == ErrorKind.VALIDATION
    assert "amount" in result.error.lower()
    assert processor.create_calls == []


@pytest.mark.asyncio
async def test_undo_refunds_and_marks_transaction(handler, payment_facade, processor, store):
    command = CreatePaymentCommand(make_facade_data(amount=Decimal("80")), facade=payment_facade)
    await handler.execute(command)

    result = await handler.undo(command.command_id)

    assert result.success is True
    assert result.data.refund_id == "re_1"
    call = processor.refund_calls[0]
    assert call["payment_intent_id"] == "pi_1"
    assert call["transaction_id"] == "ch_1"
    assert call["amount"] == Decimal("80")
    assert call["reason"] == f"undo {command.command_id}"
    (transaction,) = store.transactions.values()
    assert transaction.status == TransactionStatus.REFUNDED
    assert transaction.refund_ref == "re_1"


@pytest.mark.asyncio
async def test_refund_command_by_transaction_record(handler, payment_facade, processor, store):
    await handler.execute(CreatePaymentCommand(make_facade_data(), facade=payment_facade))
    (record_id,) = store.transactions.keys()

    command = RefundPaymentCommand(RefundPayload(transaction_id=record_id, reason="duplicate"), facade=payment_facade)
    result = await handler.execute(command)

    assert result.success is True
    assert store.transactions[record_id].status == TransactionStatus.REFUNDED
    assert (await handler.undo(command.command_id)).error_kind == ErrorKind.CONFLICT

    again = await handler.execute(
        RefundPaymentCommand(RefundPayload(transaction_id=record_id), facade=payment_facade)
    )
    assert again.success is False
    assert again.error_kind == ErrorKind.VALIDATION
    assert len(processor.refund_calls) == 1


@pytest.mark.asyncio
async def test_refund_unknown_transaction(handler, payment_facade):
    result = await handler.execute(
        RefundPaymentCommand(RefundPayload(transaction_id="missing"), facade=payment_facade)
    )
    assert result.error_kind == ErrorKind.NOT_FOUND
