"""Chat room client — group and friend messaging over a Transport.

Every message sent or received goes through the MessagePreprocessor, so
callers always get AnnotatedMessage records with parsed markup and
mentions attached.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

from ..communication.preprocessing import AnnotatedMessage, MessagePreprocessor
from ..communication.tags import TagParser
from ..config import KetherSettings, load_settings
from ..ids import UserId
from .correlation import DeliveryCorrelator, EchoMatcher
from .dispatch import NotificationHandler, NotificationStream, as_handler
from .messages import (
    DeleteChatMessagesRequest,
    DeleteChatMessagesResponse,
    GetChatRoomGroupStateRequest,
    GetChatRoomGroupStateResponse,
    GetMyChatRoomGroupsRequest,
    IncomingChatMessageNotification,
    IncomingFriendMessageNotification,
    JoinChatRoomGroupRequest,
    JoinChatRoomGroupResponse,
    LeaveChatRoomGroupRequest,
    MessageIdentifier,
    SendChatMessageRequest,
    SendChatMessageResponse,
    SendFriendMessageRequest,
)
from .transport import Transport

logger = logging.getLogger("kether.chat")

Handler = Union[NotificationHandler, Callable]


# ============================================================
# RECORDS
# ============================================================

@dataclass
class ChatRoomInfo:
    chat_group_id: int
    chat_id: int
    chat_name: str
    chat_group_name: str
    is_joined: bool = True


@dataclass
class GroupChatMessage:
    chat_group_id: int
    chat_id: int
    sender: UserId
    message: str
    timestamp: int
    chat_name: str
    ordinal: int


@dataclass
class EnhancedGroupChatMessage(GroupChatMessage):
    """Group message with its annotation attached."""
    annotated: Optional[AnnotatedMessage] = None

    @classmethod
    def from_notification(
        cls,
        notification: IncomingChatMessageNotification,
        preprocessor: Optional[MessagePreprocessor] = None,
    ) -> "EnhancedGroupChatMessage":
        preprocessor = preprocessor or MessagePreprocessor()
        annotated = preprocessor.annotate_response(
            notification.message,
            notification.message,
            notification.timestamp,
            notification.ordinal,
        )
        return cls(
            chat_group_id=notification.chat_group_id,
            chat_id=notification.chat_id,
            sender=UserId(notification.steamid_sender),
            message=notification.message,
            timestamp=notification.timestamp,
            chat_name=notification.chat_name,
            ordinal=notification.ordinal,
            annotated=annotated,
        )


@dataclass
class FriendMessage:
    sender: UserId
    message: str
    timestamp: int
    chat_entry_type: int
    annotated: Optional[AnnotatedMessage] = None

    @classmethod
    def from_notification(
        cls,
        notification: IncomingFriendMessageNotification,
        preprocessor: Optional[MessagePreprocessor] = None,
    ) -> "FriendMessage":
        preprocessor = preprocessor or MessagePreprocessor()
        return cls(
            sender=UserId(notification.steamid_friend),
            message=notification.message,
            timestamp=notification.rtime32_server_timestamp,
            chat_entry_type=notification.chat_entry_type,
            annotated=preprocessor.annotate_response(
                notification.message,
                notification.message,
                notification.rtime32_server_timestamp,
                None,
            ),
        )


@dataclass
class SendGroupMessageParams:
    """Parameters for a group send. Echo to sender is off by default."""
    chat_group_id: int
    chat_id: int
    message: str
    echo_to_sender: bool = False

    def with_echo_to_sender(self, echo: bool = True) -> "SendGroupMessageParams":
        self.echo_to_sender = echo
        return self


# ============================================================
# CLIENT
# ============================================================

class ChatRoomClient:
    """Entry point for chat operations over a shared Transport."""

    def __init__(
        self,
        transport: Transport,
        settings: Optional[KetherSettings] = None,
        matcher: Optional[EchoMatcher] = None,
    ):
        self.transport = transport
        self.settings = settings or load_settings()
        self.preprocessor = MessagePreprocessor(TagParser(self.settings.allowed_tags))
        self.correlator = DeliveryCorrelator(matcher=matcher, timeout=self.settings.echo_timeout)

    def groups(self) -> "ChatRoomGroups":
        return ChatRoomGroups(self)

    def messaging(self) -> "ChatRoomMessaging":
        return ChatRoomMessaging(self)

    def notifications(self) -> "ChatRoomNotifications":
        return ChatRoomNotifications(self)

    # ── Convenience delegates ──

    async def get_my_chat_rooms(self) -> list[ChatRoomInfo]:
        return await self.groups().get_my_chat_rooms()

    async def join_chat_room(self, chat_group_id: int, chat_id: int, invite_code: Optional[str] = None) -> JoinChatRoomGroupResponse:
        return await self.groups().join_chat_room(chat_group_id, chat_id, invite_code)

    async def leave_chat_room(self, chat_group_id: int) -> None:
        await self.groups().leave_chat_room(chat_group_id)

    async def get_chat_room_state(self, chat_group_id: int) -> GetChatRoomGroupStateResponse:
        return await self.groups().get_chat_room_state(chat_group_id)

    async def send_group_message(self, params: SendGroupMessageParams) -> AnnotatedMessage:
        return await self.messaging().send_group_message(params)

    async def send_friend_message(self, friend: UserId, message: str, chat_entry_type: int = 1) -> AnnotatedMessage:
        return await self.messaging().send_friend_message(friend, message, chat_entry_type)

    async def delete_group_messages(self, chat_group_id: int, chat_id: int, messages: Sequence[tuple[int, int]]) -> DeleteChatMessagesResponse:
        return await self.messaging().delete_group_messages(chat_group_id, chat_id, messages)

    async def delete_group_messages_from_annotated(self, chat_group_id: int, chat_id: int, messages: Sequence[AnnotatedMessage]) -> DeleteChatMessagesResponse:
        return await self.messaging().delete_group_messages_from_annotated(chat_group_id, chat_id, messages)

    async def listen_for_group_messages(self, callback: Handler) -> int:
        return await self.notifications().listen_for_group_messages(callback)

    async def listen_for_friend_messages(self, callback: Handler) -> int:
        return await self.notifications().listen_for_friend_messages(callback)


class ChatRoomGroups:
    """Joining, leaving and listing chat room groups."""

    def __init__(self, client: ChatRoomClient):
        self._client = client

    async def get_my_chat_rooms(self) -> list[ChatRoomInfo]:
        response = await self._client.transport.call(GetMyChatRoomGroupsRequest())
        return [
            ChatRoomInfo(
                chat_group_id=group.chat_group_id,
                chat_id=group.default_chat_id,
                chat_name=group.chat_group_name,
                chat_group_name=group.chat_group_name,
                is_joined=True,
            )
            for group in response.chat_room_groups
        ]

    async def join_chat_room(self, chat_group_id: int, chat_id: int, invite_code: Optional[str] = None) -> JoinChatRoomGroupResponse:
        request = JoinChatRoomGroupRequest(chat_group_id, chat_id, invite_code)
        response = await self._client.transport.call(request)
        logger.info(f"Joined chat group {chat_group_id} (chat {chat_id})")
        return response

    async def leave_chat_room(self, chat_group_id: int) -> None:
        await self._client.transport.call(LeaveChatRoomGroupRequest(chat_group_id))
        logger.info(f"Left chat group {chat_group_id}")

    async def get_chat_room_state(self, chat_group_id: int) -> GetChatRoomGroupStateResponse:
        return await self._client.transport.call(GetChatRoomGroupStateRequest(chat_group_id))


class ChatRoomMessaging:
    """Sending and deleting messages."""

    def __init__(self, client: ChatRoomClient):
        self._client = client

    def build_send_message_request(self, params: SendGroupMessageParams) -> SendChatMessageRequest:
        return SendChatMessageRequest(
            chat_group_id=params.chat_group_id,
            chat_id=params.chat_id,
            message=self._client.preprocessor.prepare_for_sending(params.message),
            echo_to_sender=params.echo_to_sender,
        )

    def process_send_message_response(
        self,
        params: SendGroupMessageParams,
        request: SendChatMessageRequest,
        response: SendChatMessageResponse,
    ) -> AnnotatedMessage:
        # An empty modified_message means the server kept our wire text
        server_text = response.modified_message or request.message
        return self._client.preprocessor.annotate_response(
            params.message,
            server_text,
            response.server_timestamp,
            response.ordinal,
        )

    async def send_group_message(self, params: SendGroupMessageParams) -> AnnotatedMessage:
        """Send a group message and return its annotated record.

        With echo_to_sender, a response lacking the ordinal is completed from
        the echo notification. If no echo arrives in time the record is still
        returned, with ``sequence_ordinal`` None and a warning recorded.

        Raises:
            Whatever the transport raises for a failed send.
        """
        client = self._client
        request = self.build_send_message_request(params)

        # Subscribe before sending so an echo racing the response is not lost
        echo_subscription = None
        if params.echo_to_sender:
            echo_subscription = client.transport.subscribe(IncomingChatMessageNotification)

        try:
            response = await client.transport.call(request)
            message = self.process_send_message_response(params, request, response)
            if echo_subscription is not None:
                stream = NotificationStream(
                    echo_subscription,
                    throttle=client.settings.notification_throttle,
                )
                await client.correlator.complete(message, request, stream)
        finally:
            if echo_subscription is not None:
                echo_subscription.close()

        logger.debug(
            f"Group message dispatched: group={params.chat_group_id} chat={params.chat_id} "
            f"ordinal={message.sequence_ordinal}"
        )
        return message

    async def send_friend_message(self, friend: UserId, message: str, chat_entry_type: int = 1) -> AnnotatedMessage:
        request = SendFriendMessageRequest(
            steamid=friend.raw,
            message=message,
            chat_entry_type=chat_entry_type,
            echo_to_sender=True,
        )
        response = await self._client.transport.call(request)
        logger.debug(f"Friend message dispatched: friend={friend} chat_entry_type={chat_entry_type}")
        return self._client.preprocessor.annotate_response(
            message,
            response.modified_message or message,
            response.server_timestamp,
            response.ordinal,
        )

    async def delete_group_messages(
        self,
        chat_group_id: int,
        chat_id: int,
        messages: Sequence[tuple[int, int]],
    ) -> DeleteChatMessagesResponse:
        """Delete messages identified by (server_timestamp, ordinal) pairs."""
        if not messages:
            raise ValueError("Cannot delete empty list of messages")

        request = DeleteChatMessagesRequest(
            chat_group_id=chat_group_id,
            chat_id=chat_id,
            messages=[MessageIdentifier(ts, ordinal) for ts, ordinal in messages],
        )
        response = await self._client.transport.call(request)
        logger.debug(f"Deleted {len(messages)} message(s) from group {chat_group_id} chat {chat_id}")
        return response

    async def delete_group_messages_from_annotated(
        self,
        chat_group_id: int,
        chat_id: int,
        messages: Sequence[AnnotatedMessage],
    ) -> DeleteChatMessagesResponse:
        """Delete previously sent messages, skipping those without delivery metadata."""
        identifiers = []
        skipped = 0
        for msg in messages:
            if msg.is_deliverable:
                identifiers.append((msg.server_timestamp, msg.sequence_ordinal))
            else:
                skipped += 1
                logger.warning("Skipping message deletion: missing server_timestamp or ordinal")

        if not identifiers:
            if skipped:
                raise ValueError(f"All {len(messages)} message(s) had missing server_timestamp or ordinal")
            raise ValueError("Cannot delete empty list of messages")

        if skipped:
            logger.warning(f"Skipped {skipped} of {len(messages)} message(s) with missing identifiers")

        return await self.delete_group_messages(chat_group_id, chat_id, identifiers)


class ChatRoomNotifications:
    """Long-lived listeners for incoming group and friend messages."""

    def __init__(self, client: ChatRoomClient):
        self._client = client

    def _stream(self, kind: type) -> NotificationStream:
        settings = self._client.settings
        return NotificationStream(
            self._client.transport.subscribe(kind),
            throttle=settings.notification_throttle,
            backoff=settings.stream_backoff,
        )

    def group_stream(self) -> NotificationStream[IncomingChatMessageNotification]:
        return self._stream(IncomingChatMessageNotification)

    def friend_stream(self) -> NotificationStream[IncomingFriendMessageNotification]:
        return self._stream(IncomingFriendMessageNotification)

    async def listen_for_group_messages_with(self, handler: Handler) -> int:
        """Dispatch group messages until the handler fails or the stream ends.

        Raises:
            CallbackError: the handler raised
            StreamError: the notification stream failed
        """
        preprocessor = self._client.preprocessor
        return await self.group_stream().for_each(
            handler,
            build=lambda n: EnhancedGroupChatMessage.from_notification(n, preprocessor),
        )

    async def listen_for_friend_messages_with(self, handler: Handler) -> int:
        preprocessor = self._client.preprocessor
        return await self.friend_stream().for_each(
            handler,
            build=lambda n: FriendMessage.from_notification(n, preprocessor),
        )

    async def listen_for_group_messages(self, callback: Handler) -> int:
        """Like listen_for_group_messages_with(), but callback failures are logged and skipped."""
        return await self.listen_for_group_messages_with(_lenient(callback, "group"))

    async def listen_for_friend_messages(self, callback: Handler) -> int:
        return await self.listen_for_friend_messages_with(_lenient(callback, "friend"))


def _lenient(callback: Handler, label: str) -> Callable:
    handler = as_handler(callback)

    async def _wrapped(item) -> None:
        try:
            await handler.handle(item)
        except Exception:
            logger.exception(f"{label.capitalize()} message callback failed; continuing")

    return _wrapped
