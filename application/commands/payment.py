"""Payment commands."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from application.commands.base import Command, CommandResult, ErrorKind
from application.dtos.payments import PaymentFacadeData, PaymentResult
from application.facades.payment_facade import PaymentFacade


class CreatePaymentCommand(Command):
    """Charge a customer.

    The command id is sent to the gateway as idempotency key, so two
    commands built from identical data are two distinct charges.
    """

    name = "create_payment"

    def __init__(
        self,
        data: PaymentFacadeData,
        *,
        facade: PaymentFacade,
        command_id: Optional[str] = None,
        issued_by: Optional[str] = None,
    ) -> None:
        super().__init__(data, command_id=command_id, issued_by=issued_by)
        self._facade = facade

    @property
    def data(self) -> PaymentFacadeData:
        return self.payload

    async def execute(self) -> CommandResult:
        result = await self._facade.process_payment(self.data, idempotency_key=self.command_id)
        if result.success:
            return CommandResult.ok(result)
        if result.requires_action:
            return CommandResult(success=False, data=result, requires_action=True)
        # no gateway object means the input was rejected before charging
        kind = ErrorKind.DECLINED if result.payment_intent_id else ErrorKind.VALIDATION
        return CommandResult.fail(result.error or "Payment failed", kind, data=result)

    async def undo(self, result: CommandResult) -> CommandResult:
        payment: PaymentResult = result.data
        if not payment.provider:
            return CommandResult.fail("Payment has no processor reference", ErrorKind.CONFLICT)
        outcome = await self._facade.refund_payment(
            provider=payment.provider,
            payment_intent_id=payment.payment_intent_id,
            transaction_id=payment.transaction_id,
            amount=self.data.amount,
            currency=self.data.currency,
            reason=f"undo {self.command_id}",
        )
        return CommandResult.ok(outcome)


class RefundPayload(BaseModel):
    transaction_id: str
    reason: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class RefundPaymentCommand(Command):
    name = "refund_payment"
    can_undo = False

    def __init__(
        self,
        payload: RefundPayload,
        *,
        facade: PaymentFacade,
        command_id: Optional[str] = None,
        issued_by: Optional[str] = None,
    ) -> None:
        super().__init__(payload, command_id=command_id, issued_by=issued_by)
        self._facade = facade

    async def execute(self) -> CommandResult:
        outcome = await self._facade.refund_transaction(
            self.payload.transaction_id,
            reason=self.payload.reason,
            payer_id=self.issued_by,
        )
        return CommandResult.ok(outcome)
