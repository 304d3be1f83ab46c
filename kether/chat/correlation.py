"""Delivery correlation — recover metadata the send acknowledgement lacked.

The synchronous response to a group send may omit the message ordinal.
When the sender asked for an echo, the server also pushes the message
back as a notification, and that notification carries the ordinal.

State machine per send:
    SENT -> DONE                   response already has an ordinal, or no echo requested
    SENT -> AWAITING_ECHO -> DONE  first matching echo within the timeout wins;
                                   on timeout the ordinal stays None and a warning is recorded

Matching is by (chat_group_id, chat_id) only. Two concurrent sends into
the same room from one process can pick up each other's echo; swap in a
different EchoMatcher to change that.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional

from ..communication.preprocessing import AnnotatedMessage
from .messages import IncomingChatMessageNotification, SendChatMessageRequest

logger = logging.getLogger("kether.correlation")

DEFAULT_ECHO_TIMEOUT = 5.0

ECHO_TIMEOUT_WARNING = "Timeout waiting for echo notification; ordinal not available for deletion"
ECHO_STREAM_ENDED_WARNING = "Notification stream ended before echo arrived; ordinal not available for deletion"


class DeliveryState(Enum):
    SENT = "sent"
    AWAITING_ECHO = "awaiting_echo"
    DONE = "done"


_ECHO_PATH = (DeliveryState.SENT, DeliveryState.AWAITING_ECHO, DeliveryState.DONE)


class EchoMatcher(ABC):
    """Decides whether a notification is the echo of a given send."""

    @abstractmethod
    def matches(
        self,
        notification: IncomingChatMessageNotification,
        request: SendChatMessageRequest,
    ) -> bool:
        ...


class RoomPairMatcher(EchoMatcher):
    """Accepts any notification for the same (group, room) pair."""

    def matches(self, notification, request) -> bool:
        return (
            notification.chat_group_id == request.chat_group_id
            and notification.chat_id == request.chat_id
        )


@dataclass
class DeliveryOutcome:
    state: DeliveryState
    echo: Optional[IncomingChatMessageNotification] = None
    warning: Optional[str] = None
    history: tuple[DeliveryState, ...] = ()

    @property
    def matched(self) -> bool:
        return self.echo is not None


class DeliveryCorrelator:
    """Completes one send's record from its echo notification."""

    def __init__(
        self,
        matcher: Optional[EchoMatcher] = None,
        timeout: float = DEFAULT_ECHO_TIMEOUT,
    ):
        self.matcher = matcher or RoomPairMatcher()
        self.timeout = timeout

    def needs_echo(self, request: SendChatMessageRequest, message: AnnotatedMessage) -> bool:
        return request.echo_to_sender and message.sequence_ordinal is None

    async def await_echo(
        self,
        notifications: AsyncIterator[IncomingChatMessageNotification],
        request: SendChatMessageRequest,
    ) -> Optional[IncomingChatMessageNotification]:
        """First matching notification within the timeout, or None."""
        echo, _ = await self._await_echo(notifications, request)
        return echo

    async def _await_echo(self, notifications, request) -> tuple[Optional[IncomingChatMessageNotification], Optional[str]]:
        async def scan():
            async for notification in notifications:
                if self.matcher.matches(notification, request):
                    return notification
            return None

        try:
            echo = await asyncio.wait_for(scan(), timeout=self.timeout)
        except asyncio.TimeoutError:
            return None, ECHO_TIMEOUT_WARNING
        except Exception as e:
            logger.warning(f"Notification stream failed while awaiting echo: {e}")
            return None, ECHO_STREAM_ENDED_WARNING
        if echo is None:
            return None, ECHO_STREAM_ENDED_WARNING
        return echo, None

    async def complete(
        self,
        message: AnnotatedMessage,
        request: SendChatMessageRequest,
        notifications: AsyncIterator[IncomingChatMessageNotification],
    ) -> DeliveryOutcome:
        """Run the state machine for one send, backfilling message in place."""
        if not self.needs_echo(request, message):
            return DeliveryOutcome(DeliveryState.DONE, history=(DeliveryState.SENT, DeliveryState.DONE))

        logger.debug(
            f"Awaiting echo for group {request.chat_group_id} chat {request.chat_id} "
            f"(timeout {self.timeout}s)"
        )
        echo, warning = await self._await_echo(notifications, request)

        if echo is None:
            message.warnings.append(warning)
            logger.warning(f"{warning} (group {request.chat_group_id}, chat {request.chat_id})")
            return DeliveryOutcome(DeliveryState.DONE, warning=warning, history=_ECHO_PATH)

        message.backfill_delivery(echo.ordinal, echo.timestamp)
        logger.debug(f"Echo matched: ordinal={echo.ordinal} timestamp={echo.timestamp}")
        return DeliveryOutcome(DeliveryState.DONE, echo=echo, history=_ECHO_PATH)
