import pytest

from application.commands import (
    Command,
    CommandHandler,
    CommandResult,
    CommandState,
    ErrorKind,
    InMemoryHistoryStore,
    error_kind_for,
)
from domain.common.exceptions import BookingNotFoundException, DomainValidationException
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class Recorder(Command):
    """Succeeds or raises depending on ``behaviour``; counts undo calls."""

    name = "recorder"

    def __init__(self, behaviour="ok", *, undo_behaviour="ok", command_id=None):
        super().__init__({"behaviour": behaviour}, command_id=command_id)
        self.behaviour = behaviour
        self.undo_behaviour = undo_behaviour
        self.undo_calls = 0

    async def execute(self):
        if self.behaviour == "crash":
            raise RuntimeError("database exploded")
        if self.behaviour == "business":
            raise DomainValidationException("service_id is required", field="service_id")
        if self.behaviour == "missing":
            raise BookingNotFoundException("b-1")
        if self.behaviour == "fail":
            return CommandResult.fail("nope", ErrorKind.DECLINED)
        return CommandResult.ok({"value": 42})

    async def undo(self, result):
        self.undo_calls += 1
        if self.undo_behaviour == "crash":
            raise RuntimeError("refund api down")
        if self.undo_behaviour == "fail":
            return CommandResult.fail("refund refused", ErrorKind.SYSTEM)
        return CommandResult.ok(result.data)


class OneWay(Recorder):
    name = "one_way"
    can_undo = False


@pytest.mark.asyncio
async def test_success_is_recorded_and_stamped(handler):
    command = Recorder()
    result = await handler.execute(command)

    assert result.success is True
    assert result.data == {"value": 42}
    assert result.command_id == command.command_id
    assert result.command_name == "recorder"
    history = await handler.history()
    assert [e.command_id for e in history] == [command.command_id]
    assert handler.state_of(command.command_id) == CommandState.SUCCEEDED


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_system_failure(handler):
    result = await handler.execute(Recorder("crash"))

    assert result.success is False
    assert result.error == "Internal error"
    assert result.error_kind == ErrorKind.SYSTEM
    assert "database" not in result.error
    assert await handler.history() == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "behaviour, kind, message",
    [
        ("business", ErrorKind.VALIDATION, "service_id is required"),
        ("missing", ErrorKind.NOT_FOUND, "Booking not found"),
        ("fail", ErrorKind.DECLINED, "nope"),
    ],
)
async def test_business_failures_keep_message_and_kind(handler, behaviour, kind, message):
    command = Recorder(behaviour)
    result = await handler.execute(command)

    assert result.success is False
    assert result.error == message
    assert result.error_kind == kind
    assert handler.state_of(command.command_id) == CommandState.FAILED
    assert await handler.history() == []


@pytest.mark.asyncio
async def test_same_command_cannot_run_twice(handler):
    command = Recorder()
    await handler.execute(command)
    again = await handler.execute(command)

    assert again.success is False
    assert again.error_kind == ErrorKind.CONFLICT
    assert len(await handler.history()) == 1


@pytest.mark.asyncio
async def test_failed_command_id_cannot_be_reused(handler):
    await handler.execute(Recorder("fail", command_id="cmd-1"))
    retry = await handler.execute(Recorder(command_id="cmd-1"))
    assert retry.error_kind == ErrorKind.CONFLICT


@pytest.mark.asyncio
async def test_undo_unknown_command(handler):
    result = await handler.undo("does-not-exist")
    assert result.success is False
    assert result.error_kind == ErrorKind.NOT_FOUND
    assert result.error == "Command not found or not undoable"


@pytest.mark.asyncio
async def test_undo_of_failed_command_is_not_found_and_never_runs(handler):
    command = Recorder("fail")
    await handler.execute(command)
    result = await handler.undo(command.command_id)

    assert result.error_kind == ErrorKind.NOT_FOUND
    assert command.undo_calls == 0


@pytest.mark.asyncio
async def test_undo_runs_once(handler):
    command = Recorder()
    await handler.execute(command)

    first = await handler.undo(command.command_id)
    second = await handler.undo(command.command_id)

    assert first.success is True
    assert handler.state_of(command.command_id) == CommandState.UNDONE
    assert second.success is False
    assert second.error_kind == ErrorKind.CONFLICT
    assert "already been undone" in second.error
    assert command.undo_calls == 1


@pytest.mark.asyncio
async def test_failed_undo_can_be_retried(handler):
    command = Recorder(undo_behaviour="crash")
    await handler.execute(command)

    failed = await handler.undo(command.command_id)
    assert failed.success is False
    assert failed.error == "Internal error"
    entry = (await handler.history())[0]
    assert entry.state == CommandState.UNDO_FAILED
    assert entry.undo_result.error == "Internal error"

    command.undo_behaviour = "ok"
    retried = await handler.undo(command.command_id)
    assert retried.success is True
    assert command.undo_calls == 2


@pytest.mark.asyncio
async def test_non_undoable_command(handler):
    command = OneWay()
    await handler.execute(command)
    result = await handler.undo(command.command_id)

    assert result.error_kind == ErrorKind.CONFLICT
    assert command.undo_calls == 0


@pytest.mark.asyncio
async def test_history_is_bounded():
    handler = CommandHandler(max_size=2)
    commands = [Recorder() for _ in range(3)]
    for command in commands:
        await handler.execute(command)

    assert [e.command_id for e in await handler.history()] == [c.command_id for c in commands[1:]]
    evicted = await handler.undo(commands[0].command_id)
    assert evicted.error_kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_clear_history(handler):
    command = Recorder()
    await handler.execute(command)
    await handler.clear_history()

    assert await handler.history() == []
    assert handler.state_of(command.command_id) == CommandState.CREATED


def test_store_rejects_empty_bound():
    with pytest.raises(ValueError):
        InMemoryHistoryStore(0)


@pytest.mark.parametrize(
    "code, kind",
    [
        (PaymentCode.DECLINED, ErrorKind.DECLINED),
        (PaymentCode.VALIDATION_ERROR, ErrorKind.VALIDATION),
        (BusinessCode.PARAM_VALIDATION_ERROR, ErrorKind.VALIDATION),
        (BusinessCode.TRANSACTION_NOT_FOUND, ErrorKind.NOT_FOUND),
        (BusinessCode.BOOKING_INVALID_TRANSITION, ErrorKind.CONFLICT),
        (PaymentCode.PROVIDER_ERROR, ErrorKind.SYSTEM),
        (PaymentCode.CONFIGURATION_ERROR, ErrorKind.SYSTEM),
        (BusinessCode.DATABASE_ERROR, ErrorKind.SYSTEM),
    ],
)
def test_error_kind_mapping(code, kind):
    assert error_kind_for(int(code)) == kind
