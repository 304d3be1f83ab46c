"""Typed request, response and notification structures exchanged with a Transport."""

from dataclasses import dataclass, field
from typing import Optional


# ── Groups ──────────────────────────────────────────────────

@dataclass
class ChatRoomGroupSummary:
    chat_group_id: int
    chat_group_name: str
    default_chat_id: int


@dataclass
class GetMyChatRoomGroupsRequest:
    pass


@dataclass
class GetMyChatRoomGroupsResponse:
    chat_room_groups: list[ChatRoomGroupSummary] = field(default_factory=list)


@dataclass
class JoinChatRoomGroupRequest:
    chat_group_id: int
    chat_id: int
    invite_code: Optional[str] = None


@dataclass
class JoinChatRoomGroupResponse:
    chat_group_id: int
    join_chat_id: int


@dataclass
class LeaveChatRoomGroupRequest:
    chat_group_id: int


@dataclass
class LeaveChatRoomGroupResponse:
    pass


@dataclass
class GetChatRoomGroupStateRequest:
    chat_group_id: int


@dataclass
class GetChatRoomGroupStateResponse:
    chat_group_id: int
    chat_group_name: str = ""
    member_count: int = 0
    chat_ids: list[int] = field(default_factory=list)


# ── Group messages ──────────────────────────────────────────

@dataclass
class SendChatMessageRequest:
    chat_group_id: int
    chat_id: int
    message: str
    echo_to_sender: bool = False


@dataclass
class SendChatMessageResponse:
    """Synchronous send acknowledgement. ``ordinal`` may be missing."""
    modified_message: str
    server_timestamp: int
    ordinal: Optional[int] = None


@dataclass
class MessageIdentifier:
    server_timestamp: int
    ordinal: int


@dataclass
class DeleteChatMessagesRequest:
    chat_group_id: int
    chat_id: int
    messages: list[MessageIdentifier] = field(default_factory=list)


@dataclass
class DeleteChatMessagesResponse:
    pass


@dataclass
class IncomingChatMessageNotification:
    chat_group_id: int
    chat_id: int
    steamid_sender: int
    message: str
    timestamp: int
    ordinal: int = 0
    chat_name: str = ""


# ── Friend messages ─────────────────────────────────────────

@dataclass
class SendFriendMessageRequest:
    steamid: int
    message: str
    chat_entry_type: int = 1
    echo_to_sender: bool = True


@dataclass
class SendFriendMessageResponse:
    modified_message: str
    server_timestamp: int
    ordinal: Optional[int] = None


@dataclass
class IncomingFriendMessageNotification:
    steamid_friend: int
    message: str
    rtime32_server_timestamp: int
    chat_entry_type: int = 1
