import pytest

from announcement.handler import CommandHandler
from announcement.registry import Registry


class Command:
    pass


class SubCommand(Command):
    pass


class OtherCommand:
    pass


def noop(*args):
    return None


def test_register_events():
    registry = Registry()
    registry.add_listener("user-registered", noop)

    assert isinstance(registry.events["user-registered"], list)
    assert registry.events["user-registered"] == [noop]


def test_register_handlers():
    registry = Registry()
    handler = registry.add_handler(Command, noop)

    assert list(registry.handlers) == [handler]
    assert isinstance(handler, CommandHandler)


def test_bucket_is_kept_after_last_removal():
    registry = Registry()
    registry.add_listener("e", noop)

    assert registry.remove_listener("e", noop) is True
    assert registry.events["e"] == []
    assert registry.event_names() == []


def test_remove_missing_listener():
    registry = Registry()

    assert registry.remove_listener("missing", noop) is False

    registry.add_listener("e", noop)
    assert registry.remove_listener("e", lambda: None) is False
    assert registry.events["e"] == [noop]


def test_remove_handler_by_identity():
    registry = Registry()
    first = registry.add_handler(Command, noop)
    second = registry.add_handler(Command, noop)

    assert registry.remove_handler(first) is True
    assert registry.remove_handler(first) is False
    assert list(registry.handlers) == [second]


def test_handler_collection_rejects_duplicate_objects():
    registry = Registry()
    handler = CommandHandler(Command, noop)

    registry.insert_handler(handler)
    registry.insert_handler(handler)

    assert len(registry.handlers) == 1


def test_handlers_for_uses_isinstance():
    registry = Registry()
    base = registry.add_handler(Command, noop)
    sub = registry.add_handler(SubCommand, noop)
    other = registry.add_handler(OtherCommand, noop)

    assert registry.handlers_for(SubCommand()) == [base, sub]
    assert registry.handlers_for(Command()) == [base]
    assert registry.handlers_for(OtherCommand()) == [other]
    assert registry.handlers_for(object()) == []


def test_snapshots_are_copies():
    registry = Registry()
    registry.add_listener("e", noop)

    snapshot = registry.listeners("e")
    registry.add_listener("e", noop)

    assert snapshot == [noop]
    assert registry.listeners("missing") == []


def test_remove_handlers_by_command():
    registry = Registry()

    def other(*args):
        return None

    registry.add_handler(Command, noop)
    registry.add_handler(Command, other)
    sub = registry.add_handler(SubCommand, noop)

    assert registry.remove_handlers(Command, other) is True
    assert [h.callback for h in registry.command_handlers(Command)] == [noop]

    assert registry.remove_handlers(Command) is True
    assert registry.remove_handlers(Command) is False
    assert list(registry.handlers) == [sub]


def test_clear():
    registry = Registry()
    registry.add_listener("a", noop)
    registry.add_listener("b", noop)
    registry.add_handler(Command, noop)
    registry.add_handler(OtherCommand, noop)

    registry.clear("a")
    assert registry.event_names() == ["b"]

    registry.clear(Command)
    assert [h.command for h in registry.handlers] == [OtherCommand]

    registry.clear()
    assert registry.event_names() == []
    assert not registry.handlers


def test_non_callable_listener_rejected():
    registry = Registry()

    with pytest.raises(TypeError):
        registry.add_listener("e", None)
