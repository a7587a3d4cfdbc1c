"""Command-line interface for tmichat."""

import asyncio
import logging
import sys
import threading
from pathlib import Path
from typing import AsyncIterator, Optional, TextIO

import click

from tmichat.chat import AuthenticationError, ChannelSession, ChatMessage, validate_token
from tmichat.config import load_config
from tmichat.models import Config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

JOIN_COMMAND = "/join "
QUIT_COMMAND = "/quit"


def _hex_to_rgb(color: Optional[str]) -> Optional[tuple[int, int, int]]:
    """Convert '#RRGGBB' to an RGB tuple for click.style."""
    if not color or len(color) != 7 or not color.startswith("#"):
        return None
    try:
        return tuple(int(color[i:i + 2], 16) for i in (1, 3, 5))
    except ValueError:
        return None


def format_message(message: ChatMessage) -> str:
    """Render a chat message as one terminal line."""
    timestamp = message.timestamp.astimezone().strftime("%H:%M:%S")
    username = click.style(message.username, fg=_hex_to_rgb(message.color), bold=True)
    return f"[{timestamp}] {username}: {message.text}"


def _print_message(message: ChatMessage) -> None:
    click.echo(format_message(message))


def _print_connection(connected: bool) -> None:
    if connected:
        click.echo(click.style("* joined", fg="green"))
    else:
        click.echo(click.style("* disconnected", fg="red"), err=True)


def start_line_reader(
    stream: TextIO, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue
) -> threading.Thread:
    """
    Read lines from a blocking stream on a daemon thread.

    Each line is handed to the queue on the loop; an empty string marks EOF.
    The thread never keeps the process alive on exit.
    """

    def _read() -> None:
        while True:
            line = stream.readline()
            try:
                loop.call_soon_threadsafe(queue.put_nowait, line)
            except RuntimeError:
                # Loop already closed
                return
            if not line:
                return

    thread = threading.Thread(target=_read, name="stdin-reader", daemon=True)
    thread.start()
    return thread


async def read_lines(stream: TextIO) -> AsyncIterator[str]:
    """Yield lines from a blocking stream without tying up the executor."""
    queue: asyncio.Queue = asyncio.Queue()
    start_line_reader(stream, asyncio.get_running_loop(), queue)
    while True:
        line = await queue.get()
        if not line:
            return
        yield line


async def _run_chat(token: str, login: Optional[str], channel: str, cfg: Config) -> None:
    if not login:
        info = await validate_token(token)
        login = info.login

    session = ChannelSession.from_config(cfg, token, login)
    session.connect(channel, _print_message, _print_connection)

    try:
        async for line in read_lines(sys.stdin):
            line = line.strip()
            if not line:
                continue
            if line == QUIT_COMMAND:
                break
            if line.startswith(JOIN_COMMAND):
                session.change_channel(line[len(JOIN_COMMAND):])
                continue

            if not session.send_message(line):
                click.echo("Not connected, message not sent", err=True)
    finally:
        session.disconnect()


@click.group()
@click.version_option(version="0.1.0")
def cli():
    """tmichat - Chat channel client for Twitch streams."""
    pass


@cli.command()
@click.argument("channel", required=False)
@click.option(
    "--token",
    envvar="TWITCH_OAUTH_TOKEN",
    required=True,
    help="OAuth bearer token (or set TWITCH_OAUTH_TOKEN)",
)
@click.option("--login", help="Login name of the token owner (looked up if omitted)")
@click.option(
    "--config",
    type=click.Path(path_type=Path),
    default="config.yaml",
    help="Path to config YAML file",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def chat(channel: Optional[str], token: str, login: Optional[str], config: Path, verbose: bool):
    """Join a channel, print its chat and send lines typed on stdin.

    Type '/join <channel>' to switch channels and '/quit' to exit.
    """
    cfg = load_config(config)
    logging.getLogger().setLevel(logging.DEBUG if verbose else cfg.log_level)

    channel = channel or cfg.channel
    if not channel:
        logger.error("No channel given. Pass CHANNEL or set 'channel' in config.yaml")
        sys.exit(1)

    login = login or cfg.login
    logger.info(f"Starting chat for #{channel}")

    try:
        asyncio.run(_run_chat(token, login, channel, cfg))
    except AuthenticationError as e:
        logger.error(f"Authentication failed: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, stopping chat")


@cli.command()
@click.option(
    "--token",
    envvar="TWITCH_OAUTH_TOKEN",
    required=True,
    help="OAuth bearer token (or set TWITCH_OAUTH_TOKEN)",
)
def validate(token: str):
    """Validate a bearer token and show who it belongs to."""
    try:
        info = asyncio.run(validate_token(token))
    except AuthenticationError as e:
        logger.error(f"Authentication failed: {e}")
        sys.exit(1)

    click.echo(f"Login: {info.login}")
    click.echo(f"User ID: {info.user_id}")
    click.echo(f"Scopes: {', '.join(info.scopes) or '(none)'}")
    if info.expires_in is not None:
        click.echo(f"Expires in: {info.expires_in}s")


if __name__ == "__main__":
    cli()
