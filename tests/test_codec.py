"""Tests for the chat protocol codec."""

from tmichat.chat.codec import (
    normalize_channel,
    parse_line,
    render_auth,
    render_join,
    render_part,
    render_pong,
    render_privmsg,
    sanitize_text,
    split_lines,
)
from tmichat.chat.models import AuthAck, JoinAck, Ping, PrivmsgEvent

TAGGED_PRIVMSG = (
    "@display-name=Alice;color=#FF0000 "
    ":alice!alice@alice.tmi.twitch.tv PRIVMSG #zelda :gg wp"
)


def test_split_lines_drops_empty_segments():
    """Test splitting a bundled transmission on CRLF."""
    payload = "PING :tmi.twitch.tv\r\n\r\n:tmi.twitch.tv 001 me :Welcome\r\n"

    assert split_lines(payload) == [
        "PING :tmi.twitch.tv",
        ":tmi.twitch.tv 001 me :Welcome",
    ]


def test_split_lines_only_splits_on_crlf():
    """Test that a bare LF does not split a line."""
    assert split_lines("a\nb\r\nc") == ["a\nb", "c"]


def test_parse_ping():
    """Test that any line starting with PING is a ping."""
    assert parse_line("PING :tmi.twitch.tv") == Ping()
    assert parse_line("PING") == Ping()


def test_parse_welcome():
    """Test parsing the numeric 001 reply."""
    assert parse_line(":tmi.twitch.tv 001 mylogin :Welcome, GLHF!") == AuthAck()


def test_parse_join():
    """Test parsing a JOIN echo."""
    event = parse_line(":mylogin!mylogin@mylogin.tmi.twitch.tv JOIN #Zelda")

    assert event == JoinAck(channel="zelda", login="mylogin")


def test_parse_tagged_privmsg():
    """Test parsing a PRIVMSG with display-name and color tags."""
    event = parse_line(TAGGED_PRIVMSG)

    assert isinstance(event, PrivmsgEvent)
    assert event.username == "Alice"
    assert event.color == "#FF0000"
    assert event.text == "gg wp"
    assert event.channel == "zelda"
    assert event.login == "alice"


def test_parse_privmsg_falls_back_to_prefix_login():
    """Test username falls back to the prefix login without display-name."""
    event = parse_line(
        "@color=#FF0000 :alice!alice@alice.tmi.twitch.tv PRIVMSG #zelda :gg wp"
    )

    assert event.username == "alice"
    assert event.color == "#FF0000"


def test_parse_privmsg_without_tags_or_prefix():
    """Test username is 'unknown' when neither tags nor prefix name the sender."""
    event = parse_line("PRIVMSG #zelda :gg wp")

    assert event.username == "unknown"
    assert event.color is None
    assert event.text == "gg wp"


def test_parse_privmsg_without_trailing_text():
    """Test that a PRIVMSG without ' :' yields no event."""
    assert parse_line(":alice!alice@alice.tmi.twitch.tv PRIVMSG #zelda") is None


def test_parse_privmsg_empty_text():
    """Test that an empty message body is kept as an empty string."""
    event = parse_line(":alice!alice@alice.tmi.twitch.tv PRIVMSG #zelda :")

    assert event.text == ""


def test_parse_privmsg_keeps_colons_in_text():
    """Test that only the first ' :' separates the body."""
    event = parse_line(":bob!bob@bob.tmi.twitch.tv PRIVMSG #zelda :time is 10 :30")

    assert event.text == "time is 10 :30"


def test_parse_privmsg_empty_tags_are_absent():
    """Test that empty tag values are treated as missing."""
    event = parse_line(
        "@badges=;color=;display-name= :bob!bob@bob.tmi.twitch.tv PRIVMSG #zelda :hi"
    )

    assert event.color is None
    assert event.username == "bob"


def test_parse_privmsg_unescapes_tag_values():
    """Test IRCv3 tag value unescaping."""
    event = parse_line(
        "@display-name=Foo\\sBar :foo!foo@foo.tmi.twitch.tv PRIVMSG #zelda :hi"
    )

    assert event.username == "Foo Bar"


def test_privmsg_mentioning_welcome_code_is_a_message():
    """Test that '001' inside chat text does not look like a welcome reply."""
    event = parse_line(":bob!bob@bob.tmi.twitch.tv PRIVMSG #zelda :agent 001 JOIN")

    assert isinstance(event, PrivmsgEvent)
    assert event.text == "agent 001 JOIN"


def test_parse_ignores_other_commands():
    """Test that unrelated lines produce no event."""
    assert parse_line("@badge-info=;badges= :tmi.twitch.tv USERSTATE #zelda") is None
    assert parse_line(":tmi.twitch.tv CAP * ACK :twitch.tv/tags twitch.tv/commands") is None
    assert parse_line(":mylogin.tmi.twitch.tv 353 mylogin = #zelda :mylogin") is None
    assert parse_line("") is None


def test_render_auth():
    """Test the authentication command sequence."""
    assert render_auth("abc123", "MyLogin") == [
        "PASS oauth:abc123",
        "NICK mylogin",
        "CAP REQ :twitch.tv/tags twitch.tv/commands",
    ]


def test_render_auth_does_not_double_prefix():
    """Test that an already-prefixed token is passed through."""
    assert render_auth("oauth:abc123", "me")[0] == "PASS oauth:abc123"


def test_render_channel_commands():
    """Test JOIN/PART/PRIVMSG/PONG rendering."""
    assert render_join("Zelda") == "JOIN #zelda"
    assert render_part("#Zelda") == "PART #zelda"
    assert render_privmsg("Zelda", "hello there") == "PRIVMSG #zelda :hello there"
    assert render_pong() == "PONG :tmi.twitch.tv"


def test_normalize_channel():
    """Test channel name normalization."""
    assert normalize_channel("  #ZeLdA ") == "zelda"


def test_sanitize_text():
    """Test that line breaks cannot smuggle extra commands."""
    assert sanitize_text("hi\r\nJOIN #other") == "hi JOIN #other"
    assert sanitize_text("plain") == "plain"
