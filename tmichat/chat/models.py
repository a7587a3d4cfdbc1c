"""
Message and event models for the chat protocol.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union


class ConnectionState(str, Enum):
    """Connection states of a channel session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    JOINING = "joining"
    JOINED = "joined"


@dataclass(frozen=True)
class ChatMessage:
    """A chat line received from the server or sent by this client."""
    id: int
    username: str
    text: str
    color: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class Ping:
    """Server keepalive; must be answered with PONG."""


@dataclass(frozen=True)
class AuthAck:
    """Numeric 001 welcome reply."""


@dataclass(frozen=True)
class JoinAck:
    """JOIN echoed back by the server."""
    channel: Optional[str] = None
    login: Optional[str] = None


@dataclass(frozen=True)
class PrivmsgEvent:
    """
    A parsed PRIVMSG line.

    Carries no id or timestamp; the session stamps those when it turns the
    event into a ChatMessage.
    """
    username: str
    text: str
    color: Optional[str] = None
    channel: Optional[str] = None
    login: Optional[str] = None


ParsedEvent = Union[Ping, AuthAck, JoinAck, PrivmsgEvent]
