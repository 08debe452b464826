from .user import Identity, UserRecord, LoginRequest, OWNER_ROLE
from .chat import (
    ChatMessage,
    InboundChatFrame,
    HistoryFrame,
    MessageFrame,
    ErrorFrame
)

__all__ = [
    "Identity",
    "UserRecord",
    "LoginRequest",
    "OWNER_ROLE",
    "ChatMessage",
    "InboundChatFrame",
    "HistoryFrame",
    "MessageFrame",
    "ErrorFrame"
]
