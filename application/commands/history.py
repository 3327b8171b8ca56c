"""
Command execution history.

Handlers talk to a ``HistoryStore``; the default in-process store is bounded
and lost on restart, so an undo issued after a restart reports not_found.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

from core.logging_config import get_logger

if TYPE_CHECKING:
    from application.commands.base import Command, CommandResult, CommandState


logger = get_logger(__name__)


@dataclass
class HistoryEntry:
    command: "Command"
    result: "CommandResult"
    state: "CommandState"
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    undo_result: Optional["CommandResult"] = None

    @property
    def command_id(self) -> str:
        return self.command.command_id


@runtime_checkable
class HistoryStore(Protocol):
    async def append(self, entry: HistoryEntry) -> None: ...

    async def find(self, command_id: str) -> Optional[HistoryEntry]: ...

    async def update_state(
        self,
        command_id: str,
        state: "CommandState",
        *,
        undo_result: Optional["CommandResult"] = None,
    ) -> None: ...

    async def entries(self) -> list[HistoryEntry]: ...

    async def clear(self) -> None: ...


class InMemoryHistoryStore:
    """进程内有界历史记录，超过 max_size 时淘汰最早的条目"""

    def __init__(self, max_size: int = 100) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._max_size = max_size
        self._entries: "OrderedDict[str, HistoryEntry]" = OrderedDict()

    @property
    def max_size(self) -> int:
        return self._max_size

    async def append(self, entry: HistoryEntry) -> None:
        self._entries[entry.command_id] = entry
        while len(self._entries) > self._max_size:
            evicted_id, _ = self._entries.popitem(last=False)
            logger.debug("command_history_evicted", command_id=evicted_id)

    async def find(self, command_id: str) -> Optional[HistoryEntry]:
        return self._entries.get(command_id)

    async def update_state(self, command_id, state, *, undo_result=None) -> None:
        entry = self._entries.get(command_id)
        if entry is None:
            return
        entry.state = state
        if undo_result is not None:
            entry.undo_result = undo_result

    async def entries(self) -> list[HistoryEntry]:
        return list(self._entries.values())

    async def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
