from typing import Any, Awaitable, Callable, Union

Callback = Callable[..., Union[Any, Awaitable[Any]]]
"""
A listener callback. Either a synchronous callable or one returning an
awaitable (coroutine functions included). Its return value is ignored.
"""


class CommandHandler:
    """
    Pairs a command type with the callback that handles its instances.

    Handlers compare and hash by identity: the object returned from
    registration is the handle used to remove it, two registrations of the
    same (command, callback) pair are two distinct handlers.
    """

    __slots__ = ("command", "callback")

    def __init__(self, command: type, callback: Callback) -> None:
        if not isinstance(command, type):
            raise TypeError(f"Command type must be a class, got {command!r}.")
        if not callable(callback):
            raise TypeError(f"Callback must be callable, got {callback!r}.")
        self.command = command
        self.callback = callback

    def matches(self, message: Any) -> bool:
        """
        True when `message` is an instance of the command type or of a
        subclass of it.
        """
        return isinstance(message, self.command)

    def handle(self, message: Any) -> Any:
        """
        Invokes the callback with `message` if it matches.

        Returns whatever the callback returns (possibly an awaitable), or
        None when the message is of another type.
        """
        if self.matches(message):
            return self.callback(message)
        return None

    def __repr__(self) -> str:
        name = getattr(self.callback, "__qualname__", repr(self.callback))
        return f"CommandHandler(command={self.command.__qualname__}, callback={name})"
