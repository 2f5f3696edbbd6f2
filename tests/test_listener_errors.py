import logging

import pytest

from announcement import Announcement, DispatchPolicy

pytestmark = pytest.mark.anyio


def flatten(group):
    for exc in group.exceptions:
        if isinstance(exc, BaseExceptionGroup):
            yield from flatten(exc)
        else:
            yield exc


@pytest.mark.parametrize("policy", [DispatchPolicy.SERIALIZED, DispatchPolicy.CONCURRENT])
async def test_failing_listener_is_isolated(policy, caplog):
    calls = []

    def broken(value):
        raise RuntimeError("broken listener")

    async with Announcement(policy=policy) as announcement:
        announcement.on("e", broken)
        announcement.on("e", lambda value: calls.append(value))

        with caplog.at_level(logging.ERROR, logger="announcement"):
            announcement.emit("e", 1)
            announcement.emit("e", 2)
            await announcement.join()

    assert sorted(calls) == [1, 2]
    failures = [record for record in caplog.records if "failed while handling event 'e'" in record.getMessage()]
    assert len(failures) == 2
    assert failures[0].exc_info[0] is RuntimeError


async def test_failing_async_command_handler_is_isolated(caplog):
    class Boom:
        pass

    calls = []

    async def broken(cmd):
        raise ValueError("nope")

    async with Announcement() as announcement:
        announcement.on(Boom, broken)
        announcement.on(Boom, lambda cmd: calls.append(cmd))

        with caplog.at_level(logging.ERROR, logger="announcement"):
            announcement.emit(Boom())
            await announcement.join()

    assert len(calls) == 1
    assert any("command Boom" in record.getMessage() for record in caplog.records)


async def test_unsuppressed_listener_error_stops_dispatcher():
    def broken():
        raise RuntimeError("broken listener")

    announcement = Announcement(suppress_listener_errors=False)

    with pytest.raises(BaseExceptionGroup) as excinfo:
        async with announcement:
            announcement.on("e", broken)
            announcement.emit("e")
            await announcement.join()

    assert any(isinstance(exc, RuntimeError) for exc in flatten(excinfo.value))
    assert not announcement.running


async def test_unsuppressed_listener_error_while_exiting():
    def broken():
        raise RuntimeError("broken listener")

    announcement = Announcement(suppress_listener_errors=False)

    with pytest.raises(BaseExceptionGroup) as excinfo:
        async with announcement:
            announcement.on("e", broken)
            announcement.emit("e")

    assert any(isinstance(exc, RuntimeError) for exc in flatten(excinfo.value))


async def test_unsuppressed_error_in_concurrent_listener_task_stops_dispatcher():
    async def broken():
        raise RuntimeError("broken listener")

    announcement = Announcement(policy=DispatchPolicy.CONCURRENT, suppress_listener_errors=False)

    with pytest.raises(BaseExceptionGroup) as excinfo:
        async with announcement:
            announcement.on("e", broken)
            announcement.emit("e")
            await announcement.join()

    assert any(isinstance(exc, RuntimeError) for exc in flatten(excinfo.value))
    assert not announcement.running


async def test_exit_without_start_raises():
    announcement = Announcement()

    with pytest.raises(RuntimeError):
        await announcement.__aexit__(None, None, None)
