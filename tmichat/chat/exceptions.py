"""
Custom exceptions for the chat channel client.
"""


class TmiChatError(Exception):
    """Base exception for all chat client errors."""
    pass


class ConnectionError(TmiChatError):
    """Failed to establish WebSocket connection."""
    pass


class ConnectionLostError(TmiChatError):
    """WebSocket connection was lost."""
    pass


class AuthenticationError(TmiChatError):
    """Bearer token was rejected."""
    pass


class InvalidStateTransitionError(TmiChatError):
    """Session attempted a transition its state machine does not allow."""
    pass
