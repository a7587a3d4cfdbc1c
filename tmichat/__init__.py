"""tmichat - Chat channel client for Twitch streams."""

__version__ = "0.1.0"
