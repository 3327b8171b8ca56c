from .base import (
    Command,
    CommandHandler,
    CommandResult,
    CommandState,
    ErrorKind,
    error_kind_for,
    get_command_handler,
)
from .history import HistoryEntry, HistoryStore, InMemoryHistoryStore
from .payment import CreatePaymentCommand, RefundPaymentCommand, RefundPayload
from .booking import (
    CancelBookingCommand,
    CancelBookingPayload,
    CreateBookingCommand,
    UpdateBookingStatusCommand,
    UpdateBookingStatusPayload,
)

__all__ = [
    "Command",
    "CommandHandler",
    "CommandResult",
    "CommandState",
    "ErrorKind",
    "error_kind_for",
    "get_command_handler",
    "HistoryEntry",
    "HistoryStore",
    "InMemoryHistoryStore",
    "CreatePaymentCommand",
    "RefundPaymentCommand",
    "RefundPayload",
    "CreateBookingCommand",
    "CancelBookingCommand",
    "CancelBookingPayload",
    "UpdateBookingStatusCommand",
    "UpdateBookingStatusPayload",
]
