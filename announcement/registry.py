from typing import Any, Dict, List, Optional, Union

from announcement.handler import Callback, CommandHandler


class Registry:
    """
    Storage for named event listeners and typed command handlers.

    Event listeners live in per-name lists kept in registration order. A
    bucket is created on first registration and is kept, possibly empty,
    once its last listener is removed. Command handlers live in an
    insertion-ordered set (a dict keyed by handler), so the same handler
    object can never be stored twice.

    Nothing here is asynchronous. The dispatcher reads the registry through
    the snapshot methods (`listeners`, `handlers_for`) which always return
    copies, so callbacks may mutate the registry while a batch is running.
    """

    def __init__(self) -> None:
        self.events: Dict[str, List[Callback]] = {}
        self.handlers: Dict[CommandHandler, None] = {}

    def add_listener(self, event: str, callback: Callback) -> Callback:
        if not callable(callback):
            raise TypeError(f"Listener must be callable, got {callback!r}.")
        self.events.setdefault(event, []).append(callback)
        return callback

    def add_handler(self, command: type, callback: Callback) -> CommandHandler:
        return self.insert_handler(CommandHandler(command, callback))

    def insert_handler(self, handler: CommandHandler) -> CommandHandler:
        self.handlers[handler] = None
        return handler

    def remove_listener(self, event: str, callback: Callback) -> bool:
        """
        Removes the first listener of `event` equal to `callback`, or that
        wraps it (a once registration exposes its target as `listener`).
        """
        listeners = self.events.get(event)
        if not listeners:
            return False

        for index, registered in enumerate(listeners):
            if registered == callback or getattr(registered, "listener", None) == callback:
                del listeners[index]
                return True
        return False

    def remove_handler(self, handler: CommandHandler) -> bool:
        if handler not in self.handlers:
            return False
        del self.handlers[handler]
        return True

    def remove_handlers(self, command: type, callback: Optional[Callback] = None) -> bool:
        """
        Removes every handler registered for exactly `command`, narrowed to
        `callback` (or a once wrapper around it) when given.
        """
        doomed = [
            handler
            for handler in self.handlers
            if handler.command is command
            and (
                callback is None
                or handler.callback == callback
                or getattr(handler.callback, "listener", None) == callback
            )
        ]
        for handler in doomed:
            del self.handlers[handler]
        return bool(doomed)

    def listeners(self, event: str) -> List[Callback]:
        return list(self.events.get(event, ()))

    def handlers_for(self, message: Any) -> List[CommandHandler]:
        return [handler for handler in self.handlers if handler.matches(message)]

    def command_handlers(self, command: type) -> List[CommandHandler]:
        return [handler for handler in self.handlers if handler.command is command]

    def event_names(self) -> List[str]:
        return [name for name, listeners in self.events.items() if listeners]

    def clear(self, key: Union[str, type, None] = None) -> None:
        """
        Drops the listeners of one event name, the handlers of one command
        type, or everything when `key` is None.
        """
        if key is None:
            for listeners in self.events.values():
                listeners.clear()
            self.handlers.clear()
        elif isinstance(key, str):
            if key in self.events:
                self.events[key].clear()
        else:
            self.remove_handlers(key)
