"""Tests for ChatRoomClient flows over an in-memory transport."""

import asyncio

import pytest

from kether.chat.client import (
    ChatRoomClient,
    EnhancedGroupChatMessage,
    FriendMessage,
    SendGroupMessageParams,
)
from kether.chat.correlation import ECHO_TIMEOUT_WARNING
from kether.chat.dispatch import CallbackError
from kether.chat.messages import (
    ChatRoomGroupSummary,
    DeleteChatMessagesRequest,
    DeleteChatMessagesResponse,
    GetChatRoomGroupStateRequest,
    GetChatRoomGroupStateResponse,
    GetMyChatRoomGroupsRequest,
    GetMyChatRoomGroupsResponse,
    IncomingChatMessageNotification,
    IncomingFriendMessageNotification,
    JoinChatRoomGroupRequest,
    JoinChatRoomGroupResponse,
    LeaveChatRoomGroupRequest,
    LeaveChatRoomGroupResponse,
    SendChatMessageRequest,
    SendChatMessageResponse,
    SendFriendMessageRequest,
    SendFriendMessageResponse,
)
from kether.communication.preprocessing import annotate_response
from kether.communication.tags import TagNode
from kether.errors import ConnectionDropped
from kether.ids import UserId

ME = UserId.parse("[U:1:1531059355]")
FRIEND = UserId.parse("[U:1:42]")


def _echo_of(request, ordinal=7, timestamp=1700000001) -> IncomingChatMessageNotification:
    return IncomingChatMessageNotification(
        request.chat_group_id, request.chat_id, ME.raw, request.message, timestamp, ordinal,
    )


# ── Groups ──────────────────────────────────────────────────

class TestGroups:
    @pytest.mark.asyncio
    async def test_get_my_chat_rooms(self, client, transport):
        transport.respond(GetMyChatRoomGroupsRequest, GetMyChatRoomGroupsResponse([
            ChatRoomGroupSummary(10, "Raid night", 100),
            ChatRoomGroupSummary(11, "Trading", 110),
        ]))
        rooms = await client.get_my_chat_rooms()
        assert [(r.chat_group_id, r.chat_id, r.chat_group_name) for r in rooms] == [
            (10, 100, "Raid night"),
            (11, 110, "Trading"),
        ]
        assert all(r.is_joined for r in rooms)

    @pytest.mark.asyncio
    async def test_join_and_leave(self, client, transport):
        transport.respond(JoinChatRoomGroupRequest, JoinChatRoomGroupResponse(10, 100))
        transport.respond(LeaveChatRoomGroupRequest, LeaveChatRoomGroupResponse())

        response = await client.join_chat_room(10, 100, invite_code="abc")
        await client.leave_chat_room(10)

        assert response.join_chat_id == 100
        assert transport.requests == [
            JoinChatRoomGroupRequest(10, 100, "abc"),
            LeaveChatRoomGroupRequest(10),
        ]

    @pytest.mark.asyncio
    async def test_get_chat_room_state(self, client, transport):
        transport.respond(GetChatRoomGroupStateRequest, GetChatRoomGroupStateResponse(10, "Raid night", 4, [100]))
        state = await client.get_chat_room_state(10)
        assert state.member_count == 4


# ── Sending ─────────────────────────────────────────────────

class TestSendGroupMessage:
    @pytest.mark.asyncio
    async def test_without_echo(self, client, transport):
        transport.respond(SendChatMessageRequest, SendChatMessageResponse("[code] @all", 1700000000, 3))
        params = SendGroupMessageParams(10, 100, r"\[code\] @all")

        message = await client.send_group_message(params)

        sent = transport.requests[0]
        assert sent.message == "[code] @all"
        assert sent.echo_to_sender is False
        assert message.original_text == r"\[code\] @all"
        assert message.parsed_content[0] == TagNode("code")
        assert message.mentions.mentions_everyone
        assert message.sequence_ordinal == 3
        assert transport.hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_echo_backfills_missing_ordinal(self, client, transport):
        transport.respond(SendChatMessageRequest, SendChatMessageResponse("hi", 1700000000, None))
        # Echo published while the response is still in flight
        transport.on_call = lambda request: transport.hub.publish(_echo_of(request, ordinal=7))

        params = SendGroupMessageParams(10, 100, "hi").with_echo_to_sender()
        message = await client.send_group_message(params)

        assert transport.requests[0].echo_to_sender is True
        assert message.sequence_ordinal == 7
        assert message.server_timestamp == 1700000001
        assert message.is_deliverable
        assert message.warnings == []
        assert transport.hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_echo_not_awaited_when_ordinal_present(self, client, transport):
        transport.respond(SendChatMessageRequest, SendChatMessageResponse("hi", 1700000000, 0))
        params = SendGroupMessageParams(10, 100, "hi").with_echo_to_sender()

        message = await asyncio.wait_for(client.send_group_message(params), timeout=0.1)

        assert message.sequence_ordinal == 0
        assert transport.hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_echo_timeout_is_soft(self, client, transport):
        transport.respond(SendChatMessageRequest, SendChatMessageResponse("hi", 1700000000))
        params = SendGroupMessageParams(10, 100, "hi").with_echo_to_sender()

        message = await client.send_group_message(params)

        assert message.sequence_ordinal is None
        assert message.server_timestamp == 1700000000
        assert message.warnings == [ECHO_TIMEOUT_WARNING]
        assert transport.hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_send_failure_propagates(self, client, transport):
        transport.respond(SendChatMessageRequest, ConnectionDropped("socket closed"))
        params = SendGroupMessageParams(10, 100, "hi").with_echo_to_sender()

        with pytest.raises(ConnectionDropped):
            await client.send_group_message(params)
        assert transport.hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_cancellation_releases_echo_subscription(self, client, transport):
        transport.respond(SendChatMessageRequest, SendChatMessageResponse("hi", 1700000000))
        client.correlator.timeout = 10
        params = SendGroupMessageParams(10, 100, "hi").with_echo_to_sender()

        task = asyncio.create_task(client.send_group_message(params))
        await asyncio.sleep(0.01)
        assert transport.hub.subscriber_count == 1
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert transport.hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_empty_modified_message_keeps_wire_text(self, client, transport):
        transport.respond(SendChatMessageRequest, SendChatMessageResponse("", 1700000000, 1))
        message = await client.send_group_message(SendGroupMessageParams(10, 100, r"\[x\]"))
        assert message.wire_text == "[x]"


class TestSendFriendMessage:
    @pytest.mark.asyncio
    async def test_sends_with_echo(self, client, transport):
        transport.respond(SendFriendMessageRequest, SendFriendMessageResponse("yo [U:1:42]", 1700000000, 2))

        message = await client.send_friend_message(FRIEND, "yo [U:1:42]")

        request = transport.requests[0]
        assert request.steamid == FRIEND.raw
        assert request.echo_to_sender is True
        assert request.chat_entry_type == 1
        assert message.mentions.mentioned_ids == [FRIEND]
        assert message.sequence_ordinal == 2


# ── Deleting ────────────────────────────────────────────────

class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_group_messages(self, client, transport):
        transport.respond(DeleteChatMessagesRequest, DeleteChatMessagesResponse())
        await client.delete_group_messages(10, 100, [(1700000000, 0), (1700000001, 1)])
        request = transport.requests[0]
        assert [(m.server_timestamp, m.ordinal) for m in request.messages] == [(1700000000, 0), (1700000001, 1)]

    @pytest.mark.asyncio
    async def test_delete_empty_list(self, client, transport):
        with pytest.raises(ValueError):
            await client.delete_group_messages(10, 100, [])
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_from_annotated_skips_incomplete(self, client, transport, caplog):
        transport.respond(DeleteChatMessagesRequest, DeleteChatMessagesResponse())
        messages = [
            annotate_response("a", "a", 1700000000, 0),
            annotate_response("b", "b", 1700000001, None),
            annotate_response("c", "c", 1700000002, 5),
        ]
        await client.delete_group_messages_from_annotated(10, 100, messages)

        request = transport.requests[0]
        assert [(m.server_timestamp, m.ordinal) for m in request.messages] == [(1700000000, 0), (1700000002, 5)]
        assert "missing" in caplog.text

    @pytest.mark.asyncio
    async def test_from_annotated_none_usable(self, client, transport):
        with pytest.raises(ValueError):
            await client.delete_group_messages_from_annotated(10, 100, [annotate_response("a", "a", 1, None)])
        with pytest.raises(ValueError):
            await client.delete_group_messages_from_annotated(10, 100, [])
        assert transport.requests == []


# ── Listening ───────────────────────────────────────────────

def _incoming(ordinal: int, text: str = "hello") -> IncomingChatMessageNotification:
    return IncomingChatMessageNotification(10, 100, ME.raw, text, 1700000000 + ordinal, ordinal, "general")


class TestListen:
    @pytest.mark.asyncio
    async def test_group_messages_are_annotated(self, client, transport):
        received = []
        task = asyncio.create_task(client.notifications().listen_for_group_messages_with(received.append))
        await asyncio.sleep(0)

        transport.hub.publish(_incoming(0, "@here [spoiler]"))
        transport.hub.publish(_incoming(1))
        transport.hub.end()
        handled = await asyncio.wait_for(task, timeout=1)

        assert handled == 2
        first = received[0]
        assert isinstance(first, EnhancedGroupChatMessage)
        assert first.sender == ME
        assert first.chat_name == "general"
        assert first.annotated.mentions.mentions_present
        assert first.annotated.parsed_content[1] == TagNode("spoiler")
        assert first.annotated.sequence_ordinal == 0
        assert [m.ordinal for m in received] == [0, 1]

    @pytest.mark.asyncio
    async def test_strict_listener_stops_on_callback_error(self, client, transport):
        def callback(message):
            raise RuntimeError("handler broke")

        task = asyncio.create_task(client.notifications().listen_for_group_messages_with(callback))
        await asyncio.sleep(0)
        transport.hub.publish(_incoming(0))

        with pytest.raises(CallbackError):
            await asyncio.wait_for(task, timeout=1)
        assert transport.hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_lenient_listener_continues(self, client, transport, caplog):
        seen = []

        async def callback(message):
            seen.append(message.ordinal)
            if message.ordinal == 0:
                raise RuntimeError("handler broke")

        task = asyncio.create_task(client.listen_for_group_messages(callback))
        await asyncio.sleep(0)
        transport.hub.publish(_incoming(0))
        transport.hub.publish(_incoming(1))
        transport.hub.end()
        await asyncio.wait_for(task, timeout=1)

        assert seen == [0, 1]
        assert "callback failed" in caplog.text

    @pytest.mark.asyncio
    async def test_friend_messages(self, client, transport):
        received = []
        task = asyncio.create_task(client.listen_for_friend_messages(received.append))
        await asyncio.sleep(0)
        transport.hub.publish(IncomingFriendMessageNotification(FRIEND.raw, "@all hi", 1700000000))
        transport.hub.publish(_incoming(5))  # group traffic is not delivered here
        transport.hub.end()
        await asyncio.wait_for(task, timeout=1)

        assert len(received) == 1
        message = received[0]
        assert isinstance(message, FriendMessage)
        assert message.sender == FRIEND
        assert message.timestamp == 1700000000
        assert message.annotated.mentions.mentions_everyone


class TestClientConstruction:
    def test_allow_list_from_settings(self, transport):
        from kether.config import KetherSettings

        client = ChatRoomClient(transport, KetherSettings(allowed_tags=["shout"]))
        assert client.preprocessor.parser.allowed_tags == frozenset({"shout"})

    def test_echo_timeout_from_settings(self, client, settings):
        assert client.correlator.timeout == settings.echo_timeout

    def test_facets(self, client):
        assert client.groups()._client is client
        assert client.messaging()._client is client
        assert client.notifications()._client is client
