"""
Chat channel client with authentication, channel switching and reconnection.
"""

from tmichat.chat.session import ChannelSession
from tmichat.chat.models import ChatMessage, ConnectionState
from tmichat.chat.http import TokenInfo, validate_token
from tmichat.chat.exceptions import (
    TmiChatError,
    ConnectionError,
    ConnectionLostError,
    AuthenticationError,
    InvalidStateTransitionError,
)

__all__ = [
    "ChannelSession",
    "ChatMessage",
    "ConnectionState",
    "TokenInfo",
    "validate_token",
    "TmiChatError",
    "ConnectionError",
    "ConnectionLostError",
    "AuthenticationError",
    "InvalidStateTransitionError",
]
