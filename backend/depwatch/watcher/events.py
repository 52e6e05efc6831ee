"""
depwatch Event Signals.

One Signal per event kind; listeners subscribe explicitly and receive a
Subscription they dispose to stop listening.
Requires Python 3.11+.
"""

import asyncio
import inspect
from collections.abc import Callable
from typing import Any, Generic, ParamSpec

from depwatch.utils.logger import LoggerMixin

P = ParamSpec("P")


class Subscription:
    """Handle returned by a subscription; ``dispose()`` is idempotent."""

    def __init__(self, on_dispose: Callable[[], None]) -> None:
        self._on_dispose: Callable[[], None] | None = on_dispose

    @property
    def disposed(self) -> bool:
        return self._on_dispose is None

    def dispose(self) -> None:
        """Stop receiving notifications."""
        on_dispose, self._on_dispose = self._on_dispose, None
        if on_dispose is not None:
            on_dispose()


class _Listener:
    __slots__ = ("callback", "once")

    def __init__(self, callback: Callable[..., Any], once: bool) -> None:
        self.callback = callback
        self.once = once


class Signal(Generic[P], LoggerMixin):
    """
    A typed event channel.

    Listeners run synchronously in registration order. A listener that
    returns an awaitable has it scheduled on the running event loop. A
    failing listener is logged and does not stop the others.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: list[_Listener] = []
        self._tasks: set[asyncio.Future[Any]] = set()

    def connect(self, callback: Callable[P, Any], *, once: bool = False) -> Subscription:
        """
        Register a listener.

        Args:
            callback: Called with the event arguments
            once: Disconnect automatically after the first event

        Returns:
            Subscription that removes the listener when disposed
        """
        listener = _Listener(callback, once)
        self._listeners.append(listener)
        return Subscription(lambda: self._remove(listener))

    def emit(self, *args: P.args, **kwargs: P.kwargs) -> int:
        """
        Deliver an event to every listener.

        Returns:
            Number of listeners notified
        """
        listeners = list(self._listeners)
        for listener in listeners:
            if listener.once:
                self._remove(listener)
            try:
                result = listener.callback(*args, **kwargs)
            except Exception:
                self.log.exception("listener_failed", signal=self.name)
                continue
            if inspect.isawaitable(result):
                self._track(result)
        return len(listeners)

    def clear(self) -> None:
        """Remove every listener."""
        self._listeners.clear()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _remove(self, listener: _Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _track(self, awaitable: Any) -> None:
        future = asyncio.ensure_future(awaitable)
        self._tasks.add(future)
        future.add_done_callback(self._finish)

    def _finish(self, future: "asyncio.Future[Any]") -> None:
        self._tasks.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self.log.error("listener_failed", signal=self.name, error=str(error))
