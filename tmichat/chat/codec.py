"""
Translation between raw chat protocol lines and structured events.

Pure functions only: nothing here touches the network or keeps state.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from tmichat.chat.models import AuthAck, JoinAck, ParsedEvent, Ping, PrivmsgEvent

logger = logging.getLogger(__name__)

LINE_DELIMITER = "\r\n"
SERVER_HOST_TOKEN = "tmi.twitch.tv"
CAPABILITIES = ("twitch.tv/tags", "twitch.tv/commands")
UNKNOWN_USERNAME = "unknown"

_TAG_ESCAPES = {":": ";", "s": " ", "\\": "\\", "r": "\r", "n": "\n"}
_TAG_ESCAPE_RE = re.compile(r"\\(.?)")
_LINE_BREAK_RE = re.compile(r"[\r\n]+")


def split_lines(payload: str) -> List[str]:
    """Split one inbound transmission into non-empty protocol lines, in order."""
    return [line for line in payload.split(LINE_DELIMITER) if line]


def normalize_channel(name: str) -> str:
    """Lower-case a channel name and strip any leading '#'."""
    return name.strip().lstrip("#").lower()


def sanitize_text(text: str) -> str:
    """Collapse line breaks so a message can never carry a second command."""
    return _LINE_BREAK_RE.sub(" ", text)


def _unescape_tag_value(value: str) -> str:
    return _TAG_ESCAPE_RE.sub(
        lambda m: _TAG_ESCAPES.get(m.group(1), m.group(1)), value
    )


def _parse_tags(raw_tags: str) -> Dict[str, str]:
    tags = {}
    for pair in raw_tags.split(";"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        tags[key] = _unescape_tag_value(value)
    return tags


def _split_source(line: str) -> Tuple[Dict[str, str], Optional[str], str]:
    """Peel the optional tag block and prefix off a line."""
    tags: Dict[str, str] = {}
    rest = line

    if rest.startswith("@"):
        raw_tags, _, rest = rest[1:].partition(" ")
        tags = _parse_tags(raw_tags)

    prefix = None
    if rest.startswith(":"):
        prefix, _, rest = rest[1:].partition(" ")

    return tags, prefix, rest.lstrip(" ")


def _login_from_prefix(prefix: Optional[str]) -> Optional[str]:
    if not prefix or "!" not in prefix:
        return None
    login = prefix.split("!", 1)[0]
    return login or None


def _channel_param(param: str) -> Optional[str]:
    param = param.strip()
    if not param.startswith("#"):
        return None
    return normalize_channel(param) or None


def _parse_privmsg(
    tags: Dict[str, str], prefix: Optional[str], rest: str
) -> Optional[PrivmsgEvent]:
    separator = rest.find(" :")
    if separator == -1:
        logger.debug(f"Dropping PRIVMSG without trailing text: {rest!r}")
        return None

    text = rest[separator + 2:]
    channel = _channel_param(rest[len("PRIVMSG"):separator])

    color = tags.get("color") or None
    display_name = tags.get("display-name") or None
    login = _login_from_prefix(prefix)

    return PrivmsgEvent(
        username=display_name or login or UNKNOWN_USERNAME,
        text=text,
        color=color,
        channel=channel,
        login=login,
    )


def parse_line(raw: str) -> Optional[ParsedEvent]:
    """
    Classify a single protocol line.

    Args:
        raw: One line, without the trailing CRLF

    Returns:
        The parsed event, or None when the line carries nothing the
        session acts on (including malformed PRIVMSG lines)
    """
    # Pings may arrive in any connection phase
    if raw.startswith("PING"):
        return Ping()

    tags, prefix, rest = _split_source(raw)
    command, _, params = rest.partition(" ")

    if command == "001":
        return AuthAck()

    if command == "JOIN":
        return JoinAck(
            channel=_channel_param(params.split(" ", 1)[0]),
            login=_login_from_prefix(prefix),
        )

    if command == "PRIVMSG":
        return _parse_privmsg(tags, prefix, rest)

    return None


def render_auth(token: str, login: str) -> List[str]:
    """Render the PASS/NICK/CAP REQ sequence sent right after the socket opens."""
    if token.startswith("oauth:"):
        token = token[len("oauth:"):]
    return [
        f"PASS oauth:{token}",
        f"NICK {login.lower()}",
        f"CAP REQ :{' '.join(CAPABILITIES)}",
    ]


def render_join(channel: str) -> str:
    return f"JOIN #{normalize_channel(channel)}"


def render_part(channel: str) -> str:
    return f"PART #{normalize_channel(channel)}"


def render_privmsg(channel: str, text: str) -> str:
    return f"PRIVMSG #{normalize_channel(channel)} :{text}"


def render_pong() -> str:
    return f"PONG :{SERVER_HOST_TOKEN}"
