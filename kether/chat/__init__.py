"""Chat room sub-core — transport boundary, client, dispatch and delivery correlation."""

from .client import (
    ChatRoomClient,
    ChatRoomGroups,
    ChatRoomInfo,
    ChatRoomMessaging,
    ChatRoomNotifications,
    EnhancedGroupChatMessage,
    FriendMessage,
    GroupChatMessage,
    SendGroupMessageParams,
)
from .correlation import (
    DeliveryCorrelator,
    DeliveryOutcome,
    DeliveryState,
    EchoMatcher,
    RoomPairMatcher,
)
from .dispatch import (
    CallbackError,
    FunctionHandler,
    NotificationDispatchError,
    NotificationHandler,
    NotificationStream,
    StreamError,
)
from .transport import NotificationHub, Subscription, Transport

__all__ = [
    # Client
    "ChatRoomClient",
    "ChatRoomGroups",
    "ChatRoomInfo",
    "ChatRoomMessaging",
    "ChatRoomNotifications",
    "EnhancedGroupChatMessage",
    "FriendMessage",
    "GroupChatMessage",
    "SendGroupMessageParams",
    # Correlation
    "DeliveryCorrelator",
    "DeliveryOutcome",
    "DeliveryState",
    "EchoMatcher",
    "RoomPairMatcher",
    # Dispatch
    "CallbackError",
    "FunctionHandler",
    "NotificationDispatchError",
    "NotificationHandler",
    "NotificationStream",
    "StreamError",
    # Transport
    "NotificationHub",
    "Subscription",
    "Transport",
]
