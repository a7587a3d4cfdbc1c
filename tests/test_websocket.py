"""Tests for the WebSocket transport against a local aiohttp server."""

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from tmichat.chat.exceptions import ConnectionError as TmiConnectionError
from tmichat.chat.exceptions import ConnectionLostError
from tmichat.chat.websocket import TmiWebSocket


async def start_echo_server() -> TestServer:
    """Echo every line back, close the socket on QUIT."""

    async def handler(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        async for msg in ws:
            if msg.data == "QUIT":
                await ws.close()
                break
            await ws.send_str(f"echo {msg.data}\r\n")
        return ws

    app = web.Application()
    app.router.add_get("/", handler)
    server = TestServer(app)
    await server.start_server()
    return server


def ws_url(server: TestServer) -> str:
    return str(server.make_url("/")).replace("http://", "ws://", 1)


@pytest.mark.asyncio
async def test_lines_are_sent_in_order():
    """Test queued lines reach the server in order."""
    server = await start_echo_server()
    try:
        ws = await TmiWebSocket.connect(ws_url(server))
        ws.send_line("one")
        ws.send_line("two")

        received = []
        async for payload in ws.poll_lines():
            received.append(payload)
            if len(received) == 2:
                break

        assert received == ["echo one\r\n", "echo two\r\n"]

        await ws.close()
        assert ws.closed
        with pytest.raises(ConnectionLostError):
            ws.send_line("late")

        # Closing twice is harmless
        await ws.close()
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_server_close_raises_connection_lost():
    """Test that a server-side close ends polling with ConnectionLostError."""
    server = await start_echo_server()
    try:
        ws = await TmiWebSocket.connect(ws_url(server))
        ws.send_line("QUIT")

        with pytest.raises(ConnectionLostError):
            async for _ in ws.poll_lines():
                pass

        await ws.close()
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_connect_failure():
    """Test that a refused connection raises ConnectionError."""
    with pytest.raises(TmiConnectionError):
        await TmiWebSocket.connect("ws://127.0.0.1:1/", timeout=2.0)
