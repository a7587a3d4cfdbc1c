"""
Reconnection policy with exponential backoff.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class ReconnectionManager:
    """
    Tracks reconnection attempts and computes backoff delays.

    Implements the strategy:
    - 2s → 4s → 8s → 16s → 30s (max), then give up
    - Reset counter only on a confirmed successful open
    """

    def __init__(
        self,
        initial_backoff: float = 1.0,
        max_backoff: float = 30.0,
        max_attempts: int = 5,
    ):
        """
        Initialize reconnection manager.

        Args:
            initial_backoff: Base backoff time in seconds
            max_backoff: Maximum backoff time in seconds
            max_attempts: Maximum number of reconnection attempts (0 = unlimited)
        """
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._max_attempts = max_attempts

        self._attempts = 0

    def next_delay(self) -> Optional[float]:
        """
        Register an unplanned close and compute the delay before reconnecting.

        Returns:
            Delay in seconds, or None if max attempts exceeded
        """
        self._attempts += 1

        if self._max_attempts > 0 and self._attempts > self._max_attempts:
            logger.error(
                f"Max reconnection attempts ({self._max_attempts}) exceeded"
            )
            return None

        delay = min(self._initial_backoff * 2 ** self._attempts, self._max_backoff)

        logger.info(
            f"Reconnection attempt {self._attempts}"
            + (f"/{self._max_attempts}" if self._max_attempts > 0 else "")
            + f" in {delay:.1f}s"
        )
        return delay

    def reset(self) -> None:
        """Reset reconnection state after successful connection."""
        if self._attempts > 0:
            logger.info(
                f"Connection established after {self._attempts} attempts, "
                "resetting reconnection state"
            )

        self._attempts = 0

    @property
    def attempts(self) -> int:
        """Get the number of reconnection attempts."""
        return self._attempts

    @property
    def exhausted(self) -> bool:
        """Check if no further reconnect will be scheduled."""
        return self._max_attempts > 0 and self._attempts > self._max_attempts
