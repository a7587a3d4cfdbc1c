"""Data models and schemas for tmichat."""

from typing import Optional

from pydantic import BaseModel, Field


class Config(BaseModel):
    """Configuration model."""

    # Identity
    login: Optional[str] = None
    channel: Optional[str] = None

    # Reconnect settings
    max_reconnect_attempts: int = Field(default=5, ge=0)
    initial_backoff_sec: float = Field(default=1.0, gt=0)
    max_backoff_sec: float = Field(default=30.0, gt=0)

    # Display settings
    self_color: str = "#9147ff"

    # Logging
    log_level: str = "INFO"
