"""Transport boundary — what the chat core consumes from a connection.

A concrete transport (connection, encryption, server discovery, session)
lives outside this package. It only has to provide:

- ``call(request)``: typed request/response, raising on failure
- ``subscribe(kind)``: a fresh, cancellable stream of notifications of one
  type, consumable independently of any other subscriber

NotificationHub is a ready-made asyncio fan-out that transports can use to
implement ``subscribe``.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, Optional, TypeVar

logger = logging.getLogger("kether.transport")

T = TypeVar("T")


class Subscription(ABC, Generic[T]):
    """Async iterator over notifications. Close it to release the stream.

    A stream-level failure is raised from ``__anext__``; a normal end
    raises StopAsyncIteration.
    """

    def __aiter__(self) -> "Subscription[T]":
        return self

    @abstractmethod
    async def __anext__(self) -> T:
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the subscription. Idempotent."""
        ...

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()


class Transport(ABC):
    """Request/response and notification primitives of a connection."""

    @abstractmethod
    async def call(self, request: Any) -> Any:
        """Send a typed request and return the typed response."""
        ...

    @abstractmethod
    def subscribe(self, kind: type[T]) -> Subscription[T]:
        """Open a new subscription to notifications of the given type."""
        ...


# ============================================================
# FAN-OUT HUB
# ============================================================

class _Failure:
    __slots__ = ("error",)

    def __init__(self, error: BaseException):
        self.error = error


_END = object()


class _QueueSubscription(Subscription[T]):
    def __init__(self, hub: "NotificationHub", kind: type[T]):
        self._hub = hub
        self.kind = kind
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def _deliver(self, item: Any) -> None:
        if not self._closed:
            self._queue.put_nowait(item)

    async def __anext__(self) -> T:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self.close()
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            raise item.error
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._hub._remove(self)


class NotificationHub:
    """Broadcasts published notifications to every open subscription of a matching type.

    Each subscriber owns an unbounded queue, so a slow or abandoned
    subscriber never blocks delivery to the others.
    """

    def __init__(self):
        self._subscribers: list[_QueueSubscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, kind: type[T]) -> Subscription[T]:
        sub = _QueueSubscription(self, kind)
        self._subscribers.append(sub)
        logger.debug(f"Subscribed to {kind.__name__} ({len(self._subscribers)} open)")
        return sub

    def publish(self, item: Any) -> int:
        """Deliver item to matching subscribers. Returns the number reached."""
        targets = [s for s in self._subscribers if isinstance(item, s.kind)]
        for sub in targets:
            sub._deliver(item)
        return len(targets)

    def fail(self, error: BaseException, kind: Optional[type] = None) -> None:
        """Surface a stream failure to subscribers (all, or those of one kind)."""
        for sub in list(self._subscribers):
            if kind is None or issubclass(kind, sub.kind):
                sub._deliver(_Failure(error))

    def end(self, kind: Optional[type] = None) -> None:
        """End the streams of subscribers (all, or those of one kind)."""
        for sub in list(self._subscribers):
            if kind is None or issubclass(kind, sub.kind):
                sub._deliver(_END)

    def _remove(self, sub: _QueueSubscription) -> None:
        try:
            self._subscribers.remove(sub)
        except ValueError:
            return
        logger.debug(f"Released {sub.kind.__name__} subscription ({len(self._subscribers)} open)")
