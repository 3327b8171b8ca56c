"""Booking commands."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from application.commands.base import Command, CommandResult, ErrorKind, error_kind_for
from application.dtos.bookings import BookingChange, BookingFacadeData, BookingFacadeResult
from application.facades.booking_facade import BookingFacade
from domain.booking.entity import BookingStatus


class CreateBookingCommand(Command):
    name = "create_booking"

    def __init__(
        self,
        data: BookingFacadeData,
        *,
        facade: BookingFacade,
        command_id: Optional[str] = None,
        issued_by: Optional[str] = None,
    ) -> None:
        super().__init__(data, command_id=command_id, issued_by=issued_by)
        self._facade = facade

    async def execute(self) -> CommandResult:
        result = await self._facade.create_booking_with_payment(self.payload, idempotency_key=self.command_id)
        if not result.success:
            kind = error_kind_for(result.failure_code) if result.failure_code is not None else ErrorKind.SYSTEM
            return CommandResult.fail(result.error or "Booking failed", kind, data=result)
        return CommandResult(success=True, data=result, requires_action=result.requires_action)

    async def undo(self, result: CommandResult) -> CommandResult:
        created: BookingFacadeResult = result.data
        if created.booking is None:
            return CommandResult.fail("Booking reference missing", ErrorKind.CONFLICT)
        booking, refund = await self._facade.release_booking(created.booking.id, reason=f"undo {self.command_id}")
        return CommandResult.ok({"booking": booking, "refund": refund})


class CancelBookingPayload(BaseModel):
    booking_id: str
    reason: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class CancelBookingCommand(Command):
    name = "cancel_booking"

    def __init__(
        self,
        payload: CancelBookingPayload,
        *,
        facade: BookingFacade,
        command_id: Optional[str] = None,
        issued_by: Optional[str] = None,
    ) -> None:
        super().__init__(payload, command_id=command_id, issued_by=issued_by)
        self._facade = facade

    async def execute(self) -> CommandResult:
        change = await self._facade.cancel_booking(self.payload.booking_id, self.payload.reason)
        return CommandResult.ok(change)

    async def undo(self, result: CommandResult) -> CommandResult:
        change: BookingChange = result.data
        view = await self._facade.restore_booking_status(
            self.payload.booking_id,
            BookingStatus(change.previous_status),
            expected=BookingStatus(change.booking.status),
        )
        return CommandResult.ok(view)


class UpdateBookingStatusPayload(BaseModel):
    booking_id: str
    status: BookingStatus

    model_config = ConfigDict(frozen=True)


class UpdateBookingStatusCommand(Command):
    name = "update_booking_status"

    def __init__(
        self,
        payload: UpdateBookingStatusPayload,
        *,
        facade: BookingFacade,
        command_id: Optional[str] = None,
        issued_by: Optional[str] = None,
    ) -> None:
        super().__init__(payload, command_id=command_id, issued_by=issued_by)
        self._facade = facade

    async def execute(self) -> CommandResult:
        change = await self._facade.update_booking_status(self.payload.booking_id, self.payload.status)
        return CommandResult.ok(change)

    async def undo(self, result: CommandResult) -> CommandResult:
        change: BookingChange = result.data
        view = await self._facade.restore_booking_status(
            self.payload.booking_id,
            BookingStatus(change.previous_status),
            expected=BookingStatus(change.booking.status),
        )
        return CommandResult.ok(view)
