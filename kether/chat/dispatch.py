"""Notification dispatch — long-lived consumers of a notification stream.

Usage:
    stream = NotificationStream(transport.subscribe(IncomingChatMessageNotification))
    await stream.for_each(handler, build=EnhancedGroupChatMessage.from_notification)

Items are handled strictly in delivery order; a handler failure stops the
loop, a stream failure stops it after a fixed backoff. The loop never
reconnects: start a new one if you want to keep listening.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

from ..errors import KetherError
from .transport import Subscription

logger = logging.getLogger("kether.dispatch")

T = TypeVar("T")

DEFAULT_THROTTLE = 0.025
DEFAULT_BACKOFF = 0.25


class NotificationDispatchError(KetherError):
    """Base class for dispatch loop failures."""
    pass

class StreamError(NotificationDispatchError):
    """The notification stream itself failed."""
    pass

class CallbackError(NotificationDispatchError):
    """A handler reported failure while processing an item."""
    pass


class NotificationHandler(ABC, Generic[T]):
    """Handles one item. Return normally to continue, raise to stop the loop."""

    @abstractmethod
    async def handle(self, item: T) -> None:
        ...


class FunctionHandler(NotificationHandler[T]):
    """Adapts a plain or async callable to NotificationHandler."""

    def __init__(self, func: Callable[[T], Union[None, Awaitable[None]]]):
        self.func = func

    async def handle(self, item: T) -> None:
        result = self.func(item)
        if inspect.isawaitable(result):
            await result


def as_handler(handler: Union[NotificationHandler, Callable]) -> NotificationHandler:
    if isinstance(handler, NotificationHandler):
        return handler
    if callable(handler):
        return FunctionHandler(handler)
    raise TypeError(f"not a notification handler: {handler!r}")


class NotificationStream(Generic[T]):
    """Throttled view over a subscription with a stop-on-error dispatch loop."""

    def __init__(
        self,
        subscription: Subscription[T],
        throttle: float = DEFAULT_THROTTLE,
        backoff: float = DEFAULT_BACKOFF,
    ):
        self._subscription = subscription
        self.throttle = throttle
        self.backoff = backoff
        self._last_emit: Optional[float] = None

    def __aiter__(self) -> "NotificationStream[T]":
        return self

    async def __anext__(self) -> T:
        item = await self._subscription.__anext__()
        if self.throttle > 0:
            loop = asyncio.get_running_loop()
            if self._last_emit is not None:
                wait = self._last_emit + self.throttle - loop.time()
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_emit = loop.time()
        return item

    def close(self) -> None:
        self._subscription.close()

    async def for_each(
        self,
        handler: Union[NotificationHandler, Callable],
        build: Optional[Callable[[T], Any]] = None,
    ) -> int:
        """Dispatch every item to handler until the stream ends or something fails.

        Args:
            handler: NotificationHandler or callable (sync or async)
            build: Optional converter from raw notification to the handler's record

        Returns:
            Number of items handled when the stream ends normally.

        Raises:
            CallbackError: building the record or the handler failed (original exception chained)
            StreamError: the stream failed (raised after the backoff sleep)
        """
        handler = as_handler(handler)
        handled = 0
        try:
            while True:
                try:
                    raw = await self.__anext__()
                except StopAsyncIteration:
                    logger.debug(f"Notification stream ended after {handled} item(s)")
                    return handled
                except Exception as e:
                    logger.warning(f"Notification stream error: {e}; stopping after {self.backoff}s backoff")
                    await asyncio.sleep(self.backoff)
                    raise StreamError(f"notification stream error: {e}") from e

                try:
                    item = build(raw) if build is not None else raw
                    await handler.handle(item)
                except Exception as e:
                    logger.debug(f"Notification handler failed: {e}")
                    raise CallbackError("notification callback failed") from e
                handled += 1
        finally:
            self.close()
