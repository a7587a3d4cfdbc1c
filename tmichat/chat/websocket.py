"""
WebSocket connection management for the chat server.
"""

import aiohttp
import asyncio
import logging
from typing import Optional, AsyncIterator

from tmichat.chat.exceptions import (
    ConnectionError as TmiConnectionError,
    ConnectionLostError,
)

logger = logging.getLogger(__name__)

TMI_URL = "wss://irc-ws.chat.twitch.tv:443"


class TmiWebSocket:
    """
    Text-frame WebSocket connection to the chat server.

    Outbound lines are queued and written in order by a background writer
    task, so send_line() never blocks the caller.
    """

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._ws = ws
        self._session = session
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._writer = asyncio.get_running_loop().create_task(self._drain_outbox())
        self._closed = False

    @classmethod
    async def connect(
        cls,
        url: str = TMI_URL,
        timeout: float = 10.0,
    ) -> "TmiWebSocket":
        """
        Open the WebSocket connection.

        Args:
            url: Chat server endpoint
            timeout: Connection timeout in seconds

        Returns:
            Connected TmiWebSocket instance

        Raises:
            ConnectionError: If the connection fails or times out
        """
        logger.info(f"Connecting to {url}")

        session = aiohttp.ClientSession()
        try:
            ws = await asyncio.wait_for(session.ws_connect(url), timeout=timeout)
        except aiohttp.ClientError as e:
            await session.close()
            raise TmiConnectionError(f"WebSocket connection failed: {e}")
        except asyncio.TimeoutError:
            await session.close()
            raise TmiConnectionError("Connection timeout")
        except BaseException:
            await session.close()
            raise

        logger.info("WebSocket connected")
        return cls(ws=ws, session=session)

    def send_line(self, line: str) -> None:
        """
        Queue one protocol line for transmission.

        Raises:
            ConnectionLostError: If the connection is already closed
        """
        if self._closed:
            raise ConnectionLostError("Cannot send on a closed connection")
        self._outbox.put_nowait(line)

    async def _drain_outbox(self) -> None:
        while True:
            line = await self._outbox.get()
            try:
                await self._ws.send_str(line)
            except Exception as e:
                # The reader sees the broken socket and reports the loss
                logger.error(f"Failed to send line: {e}")
                return

    async def poll_lines(self) -> AsyncIterator[str]:
        """
        Yield inbound text payloads until the connection ends.

        A payload may bundle several CRLF-separated protocol lines.

        Raises:
            ConnectionLostError: If the server closes the socket or it errors
        """
        while not self._closed:
            try:
                msg = await self._ws.receive()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error receiving message: {e}")
                raise ConnectionLostError(f"Error receiving message: {e}")

            if msg.type == aiohttp.WSMsgType.TEXT:
                yield msg.data
            elif msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                logger.warning("WebSocket closed by server")
                raise ConnectionLostError("WebSocket closed by server")
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.error(f"WebSocket error: {self._ws.exception()}")
                raise ConnectionLostError(f"WebSocket error: {self._ws.exception()}")
            else:
                logger.warning(f"Unexpected message type: {msg.type}")

    async def close(self) -> None:
        """Close the WebSocket connection."""
        if self._closed:
            return

        self._closed = True
        self._writer.cancel()

        try:
            if not self._ws.closed:
                await self._ws.close()
        except Exception as e:
            logger.warning(f"Error closing WebSocket: {e}")

        try:
            if self._session is not None:
                await self._session.close()
        except Exception as e:
            logger.warning(f"Error closing session: {e}")

        logger.info("WebSocket connection closed")

    @property
    def closed(self) -> bool:
        """Check if connection is closed."""
        return self._closed
