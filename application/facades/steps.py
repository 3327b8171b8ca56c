"""
Facade step runner.

A CRITICAL step that raises stops the run and the exception propagates.
A BEST_EFFORT step that raises is logged as ``payment_step_failed`` and the
run continues; it never changes the outcome already reached.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Iterable, TypeVar

from core.logging_config import get_logger


logger = get_logger(__name__)

Ctx = TypeVar("Ctx")


class StepKind(str, Enum):
    CRITICAL = "critical"
    BEST_EFFORT = "best_effort"


def _always(_: Any) -> bool:
    return True


@dataclass(frozen=True)
class Step(Generic[Ctx]):
    name: str
    kind: StepKind
    action: Callable[[Ctx], Awaitable[None]]
    when: Callable[[Ctx], bool] = _always


async def run_steps(steps: Iterable[Step[Ctx]], ctx: Ctx, *, log_fields: Callable[[Ctx], dict]) -> Ctx:
    for step in steps:
        if not step.when(ctx):
            continue
        if step.kind is StepKind.CRITICAL:
            await step.action(ctx)
            continue
        try:
            await step.action(ctx)
        except Exception as exc:
            logger.error(
                "payment_step_failed",
                step=step.name,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
                **log_fields(ctx),
            )
    return ctx
