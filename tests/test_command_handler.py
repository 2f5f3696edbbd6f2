import pytest

from announcement.handler import CommandHandler


class Animal:
    pass


class Dog(Animal):
    pass


class Rock:
    pass


def test_matches_exact_type_and_subclasses():
    handler = CommandHandler(Animal, lambda message: None)

    assert handler.matches(Animal())
    assert handler.matches(Dog())
    assert not handler.matches(Rock())


def test_handle_invokes_callback_only_for_matches():
    seen = []
    handler = CommandHandler(Dog, lambda message: seen.append(message) or "handled")
    dog = Dog()

    assert handler.handle(dog) == "handled"
    assert handler.handle(Animal()) is None
    assert seen == [dog]


def test_handlers_compare_by_identity():
    def callback(message):
        return None

    first = CommandHandler(Animal, callback)
    second = CommandHandler(Animal, callback)

    assert first != second
    assert len({first, second}) == 2


def test_requires_class_and_callable():
    with pytest.raises(TypeError):
        CommandHandler("Animal", lambda message: None)

    with pytest.raises(TypeError):
        CommandHandler(Animal, None)


def test_repr_names_command_and_callback():
    def bark(message):
        return None

    assert repr(CommandHandler(Dog, bark)) == (
        "CommandHandler(command=Dog, callback=test_repr_names_command_and_callback.<locals>.bark)"
    )
