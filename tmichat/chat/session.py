"""
Chat channel session: connection state machine with reconnection logic.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Set

from tmichat.chat import codec
from tmichat.chat.exceptions import (
    ConnectionError as TmiConnectionError,
    ConnectionLostError,
    InvalidStateTransitionError,
)
from tmichat.chat.models import (
    AuthAck,
    ChatMessage,
    ConnectionState,
    JoinAck,
    Ping,
    PrivmsgEvent,
)
from tmichat.chat.reconnect import ReconnectionManager
from tmichat.chat.websocket import TMI_URL, TmiWebSocket
from tmichat.models import Config

logger = logging.getLogger(__name__)

SELF_COLOR = "#9147ff"

MessageCallback = Callable[[ChatMessage], Any]
ConnectionCallback = Callable[[bool], Any]
TransportFactory = Callable[[str], Awaitable[TmiWebSocket]]

_TRANSITIONS = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {
        ConnectionState.AUTHENTICATING,
        ConnectionState.DISCONNECTED,
    },
    ConnectionState.AUTHENTICATING: {
        ConnectionState.JOINING,
        ConnectionState.DISCONNECTED,
    },
    ConnectionState.JOINING: {
        ConnectionState.JOINED,
        ConnectionState.DISCONNECTED,
    },
    ConnectionState.JOINED: {
        ConnectionState.JOINING,
        ConnectionState.DISCONNECTED,
    },
}


class ChannelSession:
    """
    One chat connection bound to a bearer token and login.

    All public methods are synchronous and must be called from inside the
    running event loop that owns the session. Transport events and the
    reconnect timer run as tasks on that same loop, so handlers never
    overlap.

    Usage:
        session = ChannelSession(token, "mylogin")
        session.connect("somechannel", on_message, on_connection_change)
        ...
        session.send_message("hello")
        session.disconnect()
    """

    def __init__(
        self,
        token: str,
        login: str,
        *,
        max_reconnect_attempts: int = 5,
        initial_backoff: float = 1.0,
        max_backoff: float = 30.0,
        self_color: str = SELF_COLOR,
        url: str = TMI_URL,
        transport_factory: Optional[TransportFactory] = None,
    ):
        """
        Initialize a channel session.

        Args:
            token: OAuth bearer token, with or without the "oauth:" prefix
            login: Login name of the token owner
            max_reconnect_attempts: Unplanned closes tolerated before giving up
            initial_backoff: Base backoff time in seconds
            max_backoff: Maximum backoff time in seconds
            self_color: Display color attached to self-echoed messages
            url: Chat server endpoint
            transport_factory: Coroutine opening a transport for a URL
        """
        self._token = token
        self._login = login.lower()
        self._self_color = self_color
        self._url = url
        self._transport_factory = transport_factory or TmiWebSocket.connect

        self._reconnect = ReconnectionManager(
            initial_backoff=initial_backoff,
            max_backoff=max_backoff,
            max_attempts=max_reconnect_attempts,
        )

        self._state = ConnectionState.DISCONNECTED
        self._channel: Optional[str] = None
        self._on_message: Optional[MessageCallback] = None
        self._on_connection_change: Optional[ConnectionCallback] = None

        self._transport: Optional[TmiWebSocket] = None
        self._connection_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._callback_tasks: Set[asyncio.Task] = set()

        # Advanced on every connection attempt and teardown; continuations
        # from an older generation do nothing.
        self._generation = 0
        self._message_counter = 0

    @classmethod
    def from_config(cls, config: Config, token: str, login: str, **kwargs) -> "ChannelSession":
        """Create a session using the reconnect and display settings of a Config."""
        return cls(
            token,
            login,
            max_reconnect_attempts=config.max_reconnect_attempts,
            initial_backoff=config.initial_backoff_sec,
            max_backoff=config.max_backoff_sec,
            self_color=config.self_color,
            **kwargs,
        )

    # Public contract

    def connect(
        self,
        channel: str,
        on_message: MessageCallback,
        on_connection_change: Optional[ConnectionCallback] = None,
    ) -> None:
        """
        Open a connection and join a channel.

        Returns immediately; progress is reported through the callbacks.
        Calling this on a session that already has a connection tears the
        old one down first.

        Raises:
            ValueError: If the channel name is empty
        """
        new_channel = codec.normalize_channel(channel)
        if not new_channel:
            raise ValueError(f"Invalid channel name: {channel!r}")

        if self._state is not ConnectionState.DISCONNECTED or self._reconnect_task:
            logger.info(f"Replacing existing connection to #{self._channel}")
        self._teardown()

        self._channel = new_channel
        self._on_message = on_message
        self._on_connection_change = on_connection_change

        self._open()

    def send_message(self, text: str) -> bool:
        """
        Send a chat message to the current channel.

        Returns:
            True if the message was transmitted, False if not joined
        """
        transport = self._transport
        if (
            self._state is not ConnectionState.JOINED
            or transport is None
            or transport.closed
            or not self._channel
        ):
            logger.warning("Cannot send message: not connected")
            return False

        text = codec.sanitize_text(text)
        if not self._transmit(codec.render_privmsg(self._channel, text)):
            return False

        # The server does not echo our own messages back to us
        self._deliver_message(
            ChatMessage(
                id=self._next_message_id(),
                username=self._login,
                text=text,
                color=self._self_color,
            )
        )
        return True

    def change_channel(self, channel: str) -> None:
        """
        Switch channels on the existing authenticated connection.

        Sends PART for the old channel and JOIN for the new one without
        reopening the transport. Before authentication completes the new
        channel is simply stored and joined once the server welcomes us.
        """
        new_channel = codec.normalize_channel(channel)

        if self._on_message is None:
            logger.warning("change_channel called on an inactive session, ignoring")
            return

        if not new_channel:
            logger.warning(f"Ignoring change to invalid channel name {channel!r}")
            return

        old_channel = self._channel

        if self._state in (ConnectionState.JOINING, ConnectionState.JOINED):
            if old_channel:
                self._transmit(codec.render_part(old_channel))
            self._channel = new_channel
            self._set_state(ConnectionState.JOINING)
            self._transmit(codec.render_join(new_channel))
            logger.info(f"Switching channel #{old_channel} -> #{new_channel}")
        else:
            self._channel = new_channel
            if self._reconnect.exhausted and self._reconnect_task is None:
                logger.warning(
                    f"Channel set to #{new_channel}, but reconnection was abandoned; "
                    "call connect() to reconnect"
                )
            else:
                logger.info(f"Channel set to #{new_channel}, joining once connected")

    def disconnect(self) -> None:
        """
        Close the connection and stop reconnecting.

        Safe to call in any state, any number of times. Reconnect and
        message counters are kept.
        """
        self._teardown()
        self._channel = None
        self._on_message = None
        self._on_connection_change = None

    # Properties

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def current_channel(self) -> Optional[str]:
        return self._channel

    @property
    def login(self) -> str:
        return self._login

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect.attempts

    @property
    def is_joined(self) -> bool:
        return self._state is ConnectionState.JOINED

    # State machine

    def _set_state(self, new_state: ConnectionState) -> None:
        if new_state is self._state:
            return
        if new_state not in _TRANSITIONS[self._state]:
            raise InvalidStateTransitionError(
                f"{self._state.value} -> {new_state.value}"
            )
        logger.debug(f"State {self._state.value} -> {new_state.value}")
        self._state = new_state

    def _open(self) -> None:
        self._generation += 1
        self._set_state(ConnectionState.CONNECTING)
        loop = asyncio.get_running_loop()
        self._connection_task = loop.create_task(self._run_connection(self._generation))

    def _teardown(self) -> None:
        """Drop the transport and any pending reconnect; no callbacks fire."""
        self._generation += 1

        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            self._reconnect_task = None

        task = self._connection_task
        self._connection_task = None
        if task is not None and task is not asyncio.current_task():
            # The task's cleanup closes the transport
            task.cancel()

        self._transport = None
        self._set_state(ConnectionState.DISCONNECTED)

    async def _run_connection(self, generation: int) -> None:
        transport = None
        try:
            transport = await self._transport_factory(self._url)

            if generation != self._generation:
                return

            self._transport = transport
            self._reconnect.reset()
            self._set_state(ConnectionState.AUTHENTICATING)
            logger.info(f"Connected, authenticating as {self._login}")

            for line in codec.render_auth(self._token, self._login):
                transport.send_line(line)

            async for payload in transport.poll_lines():
                for line in codec.split_lines(payload):
                    self._handle_line(line)
                    if generation != self._generation:
                        return

            raise ConnectionLostError("Connection closed")

        except (TmiConnectionError, ConnectionLostError) as e:
            logger.warning(f"Connection lost: {e}")
        except Exception as e:
            logger.error(f"Unexpected error: {e}", exc_info=True)
        finally:
            if transport is not None:
                await transport.close()

        if generation == self._generation:
            self._handle_unplanned_close()

    def _handle_unplanned_close(self) -> None:
        generation = self._generation
        self._transport = None
        self._connection_task = None
        self._set_state(ConnectionState.DISCONNECTED)
        self._notify_connection(False)

        if generation != self._generation:
            # A callback reconnected or disconnected us
            return

        delay = self._reconnect.next_delay()
        if delay is None:
            logger.error("Giving up on reconnection, waiting for a new connect()")
            return

        loop = asyncio.get_running_loop()
        self._reconnect_task = loop.create_task(self._reconnect_after(delay, generation))

    async def _reconnect_after(self, delay: float, generation: int) -> None:
        await asyncio.sleep(delay)

        if (
            generation != self._generation
            or not self._channel
            or self._on_message is None
        ):
            return

        self._reconnect_task = None
        logger.info(f"Reconnecting to #{self._channel}")
        self._open()

    def _handle_line(self, line: str) -> None:
        event = codec.parse_line(line)
        if event is None:
            return

        if isinstance(event, Ping):
            self._transmit(codec.render_pong())

        elif isinstance(event, AuthAck):
            # First welcome per connection wins
            if self._state is not ConnectionState.AUTHENTICATING:
                logger.debug("Ignoring repeated welcome reply")
                return
            logger.info(f"Authenticated, joining #{self._channel}")
            self._set_state(ConnectionState.JOINING)
            self._transmit(codec.render_join(self._channel))

        elif isinstance(event, JoinAck):
            if self._state is not ConnectionState.JOINING:
                return
            if event.channel and event.channel != self._channel:
                return
            if event.login and event.login != self._login:
                return
            logger.info(f"Joined #{self._channel}")
            self._set_state(ConnectionState.JOINED)
            self._notify_connection(True)

        elif isinstance(event, PrivmsgEvent):
            if event.channel and event.channel != self._channel:
                logger.debug(f"Dropping message for #{event.channel}")
                return
            self._deliver_message(
                ChatMessage(
                    id=self._next_message_id(),
                    username=event.username,
                    text=event.text,
                    color=event.color,
                )
            )

    def _transmit(self, line: str) -> bool:
        transport = self._transport
        if transport is None or transport.closed:
            return False
        try:
            transport.send_line(line)
        except ConnectionLostError as e:
            logger.warning(f"Failed to send line: {e}")
            return False
        return True

    def _next_message_id(self) -> int:
        self._message_counter += 1
        return self._message_counter

    # Callbacks

    def _deliver_message(self, message: ChatMessage) -> None:
        if self._on_message is not None:
            self._invoke("on_message", self._on_message, message)

    def _notify_connection(self, connected: bool) -> None:
        if self._on_connection_change is not None:
            self._invoke("on_connection_change", self._on_connection_change, connected)

    def _invoke(self, name: str, callback: Callable, *args) -> None:
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._callback_tasks.add(task)
                task.add_done_callback(self._callback_done)
        except Exception as e:
            logger.error(f"Error in callback {name}: {e}", exc_info=True)

    def _callback_done(self, task: asyncio.Task) -> None:
        self._callback_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                f"Error in async callback: {task.exception()}",
                exc_info=task.exception(),
            )
