"""
Command / CommandHandler: the single choke point for mutating operations.

Every command exposes execute/undo; the handler runs it, normalises any
exception into a CommandResult, and records successful executions so they
can be undone later by id.
"""
from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from application.commands.history import HistoryEntry, HistoryStore, InMemoryHistoryStore
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


logger = get_logger(__name__)


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    DECLINED = "declined"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    SYSTEM = "system"


class CommandState(str, Enum):
    CREATED = "CREATED"
    EXECUTING = "EXECUTING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    UNDO_REQUESTED = "UNDO_REQUESTED"
    UNDONE = "UNDONE"
    UNDO_FAILED = "UNDO_FAILED"


UNDOABLE_STATES = frozenset({CommandState.SUCCEEDED, CommandState.UNDO_FAILED})

_NOT_FOUND_CODES = {
    BusinessCode.NOT_FOUND,
    BusinessCode.BOOKING_NOT_FOUND,
    BusinessCode.TRANSACTION_NOT_FOUND,
    BusinessCode.COMMAND_NOT_FOUND,
}
_CONFLICT_CODES = {
    BusinessCode.BOOKING_INVALID_TRANSITION,
    BusinessCode.COMMAND_ALREADY_EXECUTED,
    BusinessCode.COMMAND_NOT_UNDOABLE,
}
_SYSTEM_CODES = {
    PaymentCode.PROVIDER_ERROR,
    PaymentCode.PROVIDER_RECOVERABLE,
    PaymentCode.CONFIGURATION_ERROR,
}


def error_kind_for(code: int) -> ErrorKind:
    """Map a business code to the caller-facing failure category."""
    if code == PaymentCode.DECLINED:
        return ErrorKind.DECLINED
    if code in _NOT_FOUND_CODES:
        return ErrorKind.NOT_FOUND
    if code in _CONFLICT_CODES:
        return ErrorKind.CONFLICT
    if code in _SYSTEM_CODES or 40000 <= code < 50000 or code >= 60000:
        return ErrorKind.SYSTEM
    return ErrorKind.VALIDATION


class CommandResult(BaseModel):
    success: bool
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    requires_action: bool = False
    command_id: Optional[str] = None
    command_name: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def ok(cls, data: Any = None) -> "CommandResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(
        cls,
        error: str,
        kind: ErrorKind = ErrorKind.VALIDATION,
        *,
        data: Any = None,
        requires_action: bool = False,
    ) -> "CommandResult":
        return cls(success=False, error=error, error_kind=kind, data=data, requires_action=requires_action)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "CommandResult":
        if isinstance(exc, BusinessException):
            return cls.fail(exc.message, error_kind_for(int(exc.code)))
        return cls.fail("Internal error", ErrorKind.SYSTEM)

    def stamped(self, command: "Command") -> "CommandResult":
        return self.model_copy(update={"command_id": command.command_id, "command_name": command.name})


class Command(ABC):
    """
    命令基类 - 一次用户意图级别的操作及其逆操作

    构造后不可变：payload 使用冻结模型，执行结果由 CommandHandler 保存。
    """

    name: str = "command"
    can_undo: bool = True

    def __init__(self, payload: Any, *, command_id: Optional[str] = None, issued_by: Optional[str] = None) -> None:
        self._command_id = command_id or uuid.uuid4().hex
        self._issued_by = issued_by
        self._created_at = datetime.now(timezone.utc)
        self._payload = payload

    @property
    def command_id(self) -> str:
        return self._command_id

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def issued_by(self) -> Optional[str]:
        """调用方ID；为空表示内部发起，不做归属校验"""
        return self._issued_by

    @property
    def payload(self) -> Any:
        return self._payload

    @abstractmethod
    async def execute(self) -> CommandResult:
        ...

    async def undo(self, result: CommandResult) -> CommandResult:
        return CommandResult.fail(f"{self.name} does not support undo", ErrorKind.CONFLICT)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.command_id}>"


class CommandHandler:
    """执行命令、规范化错误并记录可撤销历史"""

    def __init__(self, store: Optional[HistoryStore] = None, *, max_size: int = 100) -> None:
        self._store: HistoryStore = store if store is not None else InMemoryHistoryStore(max_size)
        # Every command id the handler has started, including failed ones
        self._states: "OrderedDict[str, CommandState]" = OrderedDict()
        self._states_limit = max(max_size * 10, 1000)

    @property
    def store(self) -> HistoryStore:
        return self._store

    def state_of(self, command_id: str) -> CommandState:
        return self._states.get(command_id, CommandState.CREATED)

    def _set_state(self, command_id: str, state: CommandState) -> None:
        self._states[command_id] = state
        self._states.move_to_end(command_id)
        while len(self._states) > self._states_limit:
            self._states.popitem(last=False)

    async def execute(self, command: Command) -> CommandResult:
        if command.command_id in self._states:
            logger.warning("command_already_executed", command_id=command.command_id, command_name=command.name)
            return CommandResult.fail(
                "Command has already been executed", ErrorKind.CONFLICT
            ).stamped(command)

        self._set_state(command.command_id, CommandState.EXECUTING)
        try:
            result = await command.execute()
        except BusinessException as exc:
            logger.info(
                "command_rejected",
                command_id=command.command_id,
                command_name=command.name,
                code=int(exc.code),
                error=exc.message,
            )
            result = CommandResult.from_exception(exc)
        except Exception as exc:
            logger.error(
                "command_crashed",
                command_id=command.command_id,
                command_name=command.name,
                error=str(exc),
                exc_info=True,
            )
            result = CommandResult.from_exception(exc)

        result = result.stamped(command)
        if result.success:
            self._set_state(command.command_id, CommandState.SUCCEEDED)
            await self._store.append(HistoryEntry(command=command, result=result, state=CommandState.SUCCEEDED))
            logger.info("command_executed", command_id=command.command_id, command_name=command.name)
        else:
            self._set_state(command.command_id, CommandState.FAILED)
            logger.info(
                "command_failed",
                command_id=command.command_id,
                command_name=command.name,
                error_kind=result.error_kind.value if result.error_kind else None,
                requires_action=result.requires_action,
            )
        return result

    async def undo(self, command_id: str, *, caller_id: Optional[str] = None) -> CommandResult:
        """Undo a recorded command.

        With ``caller_id`` set, commands issued by someone else are reported
        exactly like unknown ids.
        """
        entry = await self._store.find(command_id)
        if entry is not None and caller_id is not None and entry.command.issued_by not in (None, caller_id):
            logger.warning("command_undo_foreign_caller", command_id=command_id, caller_id=caller_id)
            entry = None
        if entry is None:
            logger.info("command_undo_not_found", command_id=command_id)
            return CommandResult(
                success=False,
                error="Command not found or not undoable",
                error_kind=ErrorKind.NOT_FOUND,
                command_id=command_id,
            )

        command = entry.command
        if entry.state not in UNDOABLE_STATES:
            message = "Command has already been undone" if entry.state == CommandState.UNDONE else (
                f"Command cannot be undone in state {entry.state.value}"
            )
            return CommandResult.fail(message, ErrorKind.CONFLICT).stamped(command)
        if not command.can_undo:
            return CommandResult.fail(f"{command.name} does not support undo", ErrorKind.CONFLICT).stamped(command)

        await self._store.update_state(command_id, CommandState.UNDO_REQUESTED)
        self._set_state(command_id, CommandState.UNDO_REQUESTED)
        try:
            result = await command.undo(entry.result)
        except BusinessException as exc:
            logger.info("command_undo_rejected", command_id=command_id, command_name=command.name, error=exc.message)
            result = CommandResult.from_exception(exc)
        except Exception as exc:
            logger.error(
                "command_undo_crashed",
                command_id=command_id,
                command_name=command.name,
                error=str(exc),
                exc_info=True,
            )
            result = CommandResult.from_exception(exc)

        result = result.stamped(command)
        state = CommandState.UNDONE if result.success else CommandState.UNDO_FAILED
        await self._store.update_state(command_id, state, undo_result=result)
        self._set_state(command_id, state)
        logger.info(
            "command_undone" if result.success else "command_undo_failed",
            command_id=command_id,
            command_name=command.name,
            error=result.error,
        )
        return result

    async def history(self) -> list[HistoryEntry]:
        return await self._store.entries()

    async def clear_history(self) -> None:
        await self._store.clear()
        self._states.clear()


_handler: Optional[CommandHandler] = None


def get_command_handler() -> CommandHandler:
    """进程级命令处理器（惰性创建）"""
    global _handler
    if _handler is None:
        from core.config import settings

        _handler = CommandHandler(max_size=settings.COMMAND_HISTORY_MAX_SIZE)
    return _handler
