import functools
import inspect
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple, Union

import anyio
import anyio.lowlevel
from anyio.abc import TaskGroup
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from announcement.conf import settings
from announcement.enums import DispatchPolicy
from announcement.handler import Callback, CommandHandler
from announcement.logging import logger, setup_logging
from announcement.registry import Registry

Key = Union[str, type]
"""
A registration key: an event name, or the class of the commands to handle.
"""


@dataclass
class Emission:
    """
    One queued `emit` call waiting for its turn on the dispatcher.
    """

    # The event name, or the command instance for typed emissions.
    key: Any
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)

    @property
    def typed(self) -> bool:
        return not isinstance(self.key, str)

    def describe(self) -> str:
        if self.typed:
            return f"command {type(self.key).__name__}"
        return f"event '{self.key}'"


class Announcement:
    """
    An asynchronous event emitter and command dispatcher.

    Listeners are registered either under an event name (a string) or under
    a command type (a class). `emit` never blocks: it queues the emission on
    an internal memory stream, and a drain task running inside the
    dispatcher's AnyIO task group picks the emissions up one at a time.

    For each emission the drain task takes a snapshot of the matching
    listeners and invokes them in registration order. With the serialized
    policy (the default) every listener runs to completion before the next
    one starts, and the whole batch finishes before the next emission is
    dequeued. While a batch is running `pending` is True and any further
    `emit`, including one issued by a listener, waits in the queue behind it.
    With the concurrent policy each listener is started as its own task and
    no completion order is guaranteed.

    The dispatcher must be entered as an async context manager to run:

        async with Announcement() as announcement:
            announcement.on("user-registered", send_welcome_mail)
            announcement.emit("user-registered", user)
            await announcement.join()

    Emissions made before entering are buffered and delivered once the
    dispatcher starts. An instance can only be run once.
    """

    def __init__(
        self,
        policy: Union[DispatchPolicy, str, None] = None,
        suppress_listener_errors: Optional[bool] = None,
    ) -> None:
        """
        Args:
            policy: The dispatch policy. Defaults to `settings.dispatch_policy`.
            suppress_listener_errors: Whether a failing listener is logged
                and isolated (True) or allowed to abort the dispatcher
                (False). Defaults to `settings.suppress_listener_errors`.
        """
        self.registry = Registry()
        self.policy = DispatchPolicy(policy if policy is not None else settings.dispatch_policy)
        self.suppress_listener_errors: bool = (
            settings.suppress_listener_errors
            if suppress_listener_errors is None
            else suppress_listener_errors
        )

        # Emissions made before the dispatcher starts.
        self._backlog: Deque[Emission] = deque()
        self._send_stream: Optional[MemoryObjectSendStream[Emission]] = None
        self._receive_stream: Optional[MemoryObjectReceiveStream[Emission]] = None

        self._task_group: Optional[TaskGroup] = None
        self._closed: bool = False
        self._pending: bool = False
        # Queued emissions plus, under the concurrent policy, running listener tasks.
        self._outstanding: int = 0
        self._idle: Optional[anyio.Event] = None

    @property
    def pending(self) -> bool:
        """
        True while an emission batch is being dispatched.
        """
        return self._pending

    @property
    def running(self) -> bool:
        return self._task_group is not None

    async def __aenter__(self) -> "Announcement":
        if self._task_group is not None or self._closed:
            raise RuntimeError("An Announcement instance can only be started once.")

        if not settings.is_logging_setup:
            setup_logging()
            settings.is_logging_setup = True

        self._send_stream, self._receive_stream = anyio.create_memory_object_stream(math.inf)
        while self._backlog:
            self._send_stream.send_nowait(self._backlog.popleft())

        task_group = anyio.create_task_group()
        await task_group.__aenter__()
        self._task_group = task_group
        task_group.start_soon(self._drain, self._receive_stream)
        logger.debug(f"Announcement dispatcher started with the {self.policy} policy.")
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> Optional[bool]:
        task_group = self._task_group
        if task_group is None:
            raise RuntimeError("The dispatcher was never started.")

        # A listener failing while we drain cancels us; the task group must
        # still see that cancellation to turn it into the listener's error.
        interrupted: Optional[BaseException] = None
        if exc_type is None:
            try:
                await self.join()
            except BaseException as error:
                interrupted = error
                exc_type, exc, tb = type(error), error, error.__traceback__

        self._closed = True
        if self._send_stream is not None:
            self._send_stream.close()

        try:
            suppressed = await task_group.__aexit__(exc_type, exc, tb)
        finally:
            self._task_group = None
            if self._receive_stream is not None:
                self._receive_stream.close()
            logger.debug("Announcement dispatcher stopped.")

        if interrupted is not None and not suppressed:
            raise interrupted
        return suppressed

    def on(self, key: Key, callback: Optional[Callback] = None) -> Any:
        """
        Registers a listener for an event name or a command type.

        Used without a callback, returns a decorator registering the
        decorated function and handing it back unchanged:

            @announcement.on("user-registered")
            async def send_welcome_mail(user): ...

        Args:
            key: The event name, or the class whose instances the callback
                 handles (subclass instances included).
            callback: A sync or async callable. Receives the payload of a
                      named event, or the command instance.

        Returns:
            The callback itself for event names, or the `CommandHandler`
            created for a command type. Either can be passed to `off`.
        """
        if callback is None:
            return self._decorator(self.on, key)

        if isinstance(key, str):
            handle = self.registry.add_listener(key, callback)
        else:
            self._check_command(key)
            handle = self.registry.add_handler(key, callback)

        logger.debug(f"Registered {self._name(callback)} for {self._describe_key(key)}.")
        return handle

    def once(self, key: Key, callback: Optional[Callback] = None) -> Any:
        """
        Registers a listener that fires at most once.

        The registered wrapper removes itself from the registry before it
        calls `callback`, so no later emission can select it again. The
        wrapper exposes `callback` as its `listener` attribute, which lets
        `off(key, callback)` remove it before it has fired.

        Returns:
            The same kind of handle as `on`.
        """
        if callback is None:
            return self._decorator(self.once, key)

        if not callable(callback):
            raise TypeError(f"Listener must be callable, got {callback!r}.")
        if not isinstance(key, str):
            self._check_command(key)

        fired = False
        handle: Any = None

        @functools.wraps(callback)
        def once_wrapper(*args: Any, **kwargs: Any) -> Any:
            nonlocal fired
            if fired:
                return None
            fired = True
            if isinstance(key, str):
                self.registry.remove_listener(key, once_wrapper)
            else:
                self.registry.remove_handler(handle)
            return callback(*args, **kwargs)

        once_wrapper.listener = callback  # type: ignore[attr-defined]

        if isinstance(key, str):
            handle = self.registry.add_listener(key, once_wrapper)
        else:
            handle = self.registry.insert_handler(CommandHandler(key, once_wrapper))

        logger.debug(f"Registered {self._name(callback)} once for {self._describe_key(key)}.")
        return handle

    def off(self, key: Union[Key, CommandHandler], callback: Optional[Callback] = None) -> bool:
        """
        Removes listeners. Never raises for something that is not registered.

        - `off(event, callback)` removes the first registration of `callback`.
        - `off(event)` removes every listener of `event`.
        - `off(handler)` removes the `CommandHandler` returned by `on`.
        - `off(CommandType)` and `off(CommandType, callback)` remove the
          handlers registered for exactly that type.

        Already scheduled invocations are not retracted.

        Returns:
            True if anything was removed.
        """
        if isinstance(key, CommandHandler):
            removed = self.registry.remove_handler(key)
        elif isinstance(key, str):
            if callback is None:
                removed = bool(self.registry.listeners(key))
                self.registry.clear(key)
            else:
                removed = self.registry.remove_listener(key, callback)
        elif isinstance(key, type):
            removed = self.registry.remove_handlers(key, callback)
        else:
            removed = False

        if removed:
            logger.debug(f"Removed listener(s) for {self._describe_key(key)}.")
        return removed

    def emit(self, event: Any, *args: Any, **kwargs: Any) -> None:
        """
        Queues an emission and returns immediately.

        Args:
            event: An event name, followed by the payload handed to each
                   listener, or a command instance, with no payload.

        Raises:
            TypeError: If a command instance is emitted with a payload, or a
                       class is emitted instead of an instance.
            RuntimeError: If the dispatcher has already been stopped.
        """
        if not isinstance(event, str):
            if isinstance(event, type):
                raise TypeError(f"Emit an instance of {event.__qualname__}, not the class itself.")
            if args or kwargs:
                raise TypeError("Command emissions take no extra payload; the instance is the payload.")

        emission = Emission(event, args, kwargs)
        if self._closed:
            raise RuntimeError(f"Cannot emit {emission.describe()}: the dispatcher is stopped.")

        if self._send_stream is None:
            self._backlog.append(emission)
        else:
            try:
                self._send_stream.send_nowait(emission)
            except (anyio.ClosedResourceError, anyio.BrokenResourceError):
                raise RuntimeError(f"Cannot emit {emission.describe()}: the dispatcher is stopped.") from None
        self._outstanding += 1

    async def join(self) -> None:
        """
        Waits until every queued emission has been dispatched, including
        those emitted by listeners along the way.

        Must not be awaited from inside a listener: the running batch counts
        as outstanding until the listener returns.
        """
        if self._outstanding and self._task_group is None:
            raise RuntimeError("The dispatcher is not running; queued emissions would never drain.")

        while self._outstanding:
            if self._idle is None or self._idle.is_set():
                self._idle = anyio.Event()
            await self._idle.wait()

    def listeners(self, key: Key) -> List[Callback]:
        """
        Returns a copy of the callbacks registered for an event name or a
        command type, in registration order.
        """
        if isinstance(key, str):
            return self.registry.listeners(key)
        return [handler.callback for handler in self.registry.command_handlers(key)]

    def listener_count(self, key: Key) -> int:
        return len(self.listeners(key))

    def event_names(self) -> List[str]:
        return self.registry.event_names()

    def remove_all_listeners(self, key: Optional[Key] = None) -> None:
        self.registry.clear(key)

    async def _drain(self, receive_stream: MemoryObjectReceiveStream[Emission]) -> None:
        async with receive_stream:
            async for emission in receive_stream:
                self._pending = True
                try:
                    await self._dispatch(emission)
                finally:
                    self._pending = False
                    self._settle()

    async def _dispatch(self, emission: Emission) -> None:
        if emission.typed:
            targets = [handler.callback for handler in self.registry.handlers_for(emission.key)]
            args: Tuple[Any, ...] = (emission.key,)
            kwargs: Dict[str, Any] = {}
        else:
            targets = self.registry.listeners(emission.key)
            args, kwargs = emission.args, emission.kwargs

        if not targets:
            logger.debug(f"No listeners for {emission.describe()}.")
            return

        logger.debug(f"Dispatching {emission.describe()} to {len(targets)} listener(s).")

        if self.policy is DispatchPolicy.CONCURRENT:
            assert self._task_group is not None
            for callback in targets:
                self._outstanding += 1
                self._task_group.start_soon(self._run_task, emission, callback, args, kwargs)
            return

        for callback in targets:
            await self._invoke(emission, callback, args, kwargs)
            await anyio.lowlevel.checkpoint()

    async def _run_task(
        self,
        emission: Emission,
        callback: Callback,
        args: Tuple[Any, ...],
        kwargs: Dict[str, Any],
    ) -> None:
        try:
            await self._invoke(emission, callback, args, kwargs)
        finally:
            self._settle()

    async def _invoke(
        self,
        emission: Emission,
        callback: Callback,
        args: Tuple[Any, ...],
        kwargs: Dict[str, Any],
    ) -> None:
        try:
            result = callback(*args, **kwargs)
            if inspect.isawaitable(result):
                await result
        except Exception:
            if not self.suppress_listener_errors:
                raise
            logger.exception(f"Listener {self._name(callback)} failed while handling {emission.describe()}.")

    def _settle(self) -> None:
        self._outstanding -= 1
        if not self._outstanding and self._idle is not None:
            self._idle.set()

    @staticmethod
    def _decorator(register: Callable[[Key, Callback], Any], key: Key) -> Callable[[Callback], Callback]:
        def decorator(callback: Callback) -> Callback:
            register(key, callback)
            return callback

        return decorator

    @staticmethod
    def _check_command(key: Any) -> None:
        if not isinstance(key, type):
            raise TypeError(f"Listeners are keyed by an event name or a command class, got {key!r}.")

    @staticmethod
    def _describe_key(key: Any) -> str:
        if isinstance(key, str):
            return f"event '{key}'"
        if isinstance(key, CommandHandler):
            return f"command {key.command.__name__}"
        return f"command {getattr(key, '__name__', repr(key))}"

    @staticmethod
    def _name(callback: Any) -> str:
        return getattr(callback, "__qualname__", repr(callback))
