"""Tests for the WebSocket channel adapter with a mocked ``websockets`` connection."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from websockets.exceptions import ConnectionClosedError, InvalidStatus
from websockets.frames import Close

from gradium.channel import WebSocketChannel, connect_websocket
from gradium.exceptions import ConnectionError

URL = "wss://eu.api.gradium.ai/api/speech/tts"


class FakeWebSocket:
    """Stand-in for a websockets client connection."""

    def __init__(
        self,
        frames: list[str],
        close_code: int | None = 1000,
        close_reason: str = "",
        error: Exception | None = None,
    ) -> None:
        self.frames = frames
        self.close_code = close_code
        self.close_reason = close_reason
        self.error = error
        self.send = AsyncMock()
        self.close = AsyncMock()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame
        if self.error is not None:
            raise self.error


@pytest.fixture
def listener() -> MagicMock:
    return MagicMock()


class TestWebSocketChannel:
    """Tests for WebSocketChannel."""

    @pytest.mark.asyncio
    async def test_open_requires_listener(self) -> None:
        with pytest.raises(RuntimeError, match="Bind a listener"):
            await WebSocketChannel(URL).open()

    @pytest.mark.asyncio
    async def test_frames_forwarded_then_closed(self, listener: MagicMock) -> None:
        ws = FakeWebSocket(['{"type": "ready"}', '{"type": "end_of_stream"}'])
        channel = WebSocketChannel(URL, {"x-api-key": "k"}, open_timeout=2.0)
        channel.bind(listener)

        with patch("gradium.channel.websockets.connect", AsyncMock(return_value=ws)) as connect:
            await channel.open()
            await channel._receive_task

        connect.assert_awaited_once_with(URL, additional_headers={"x-api-key": "k"}, open_timeout=2.0)
        assert [c.args[0] for c in listener.on_message.call_args_list] == [
            '{"type": "ready"}',
            '{"type": "end_of_stream"}',
        ]
        listener.on_close.assert_called_once_with(1000, "", True)
        assert not channel.is_open

    @pytest.mark.asyncio
    async def test_listener_failure_does_not_stop_receive_loop(self, listener: MagicMock) -> None:
        ws = FakeWebSocket(['{"type": "ready"}', '{"type": "end_of_stream"}'])
        listener.on_message.side_effect = [RuntimeError("handler bug"), None]
        channel = WebSocketChannel(URL)
        channel.bind(listener)

        with patch("gradium.channel.websockets.connect", AsyncMock(return_value=ws)):
            await channel.open()
            await channel._receive_task
            await channel.close()

        assert channel._receive_task.exception() is None
        assert listener.on_message.call_count == 2
        listener.on_close.assert_called_once_with(1000, "", True)

    @pytest.mark.asyncio
    async def test_send_writes_frame(self, listener: MagicMock) -> None:
        ws = FakeWebSocket([])
        channel = WebSocketChannel(URL)
        channel.bind(listener)

        with patch("gradium.channel.websockets.connect", AsyncMock(return_value=ws)):
            await channel.open()
            # Receive loop has not run yet, so the channel is still open
            await channel.send('{"type": "text", "text": "hi"}')

        ws.send.assert_awaited_once_with('{"type": "text", "text": "hi"}')

    @pytest.mark.asyncio
    async def test_handshake_rejected(self, listener: MagicMock) -> None:
        channel = WebSocketChannel(URL)
        channel.bind(listener)
        error = InvalidStatus(MagicMock(status_code=401))

        with patch("gradium.channel.websockets.connect", AsyncMock(side_effect=error)):
            with pytest.raises(ConnectionError) as exc_info:
                await channel.open()

        assert exc_info.value.code == 401
        assert "HTTP 401" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_network_failure(self, listener: MagicMock) -> None:
        channel = WebSocketChannel(URL)
        channel.bind(listener)

        with patch(
            "gradium.channel.websockets.connect",
            AsyncMock(side_effect=OSError("Name or service not known")),
        ):
            with pytest.raises(ConnectionError, match="Name or service not known"):
                await channel.open()

    @pytest.mark.asyncio
    async def test_unclean_close(self, listener: MagicMock) -> None:
        ws = FakeWebSocket(
            ['{"type": "ready"}'],
            close_code=1011,
            close_reason="internal error",
            error=ConnectionClosedError(Close(1011, "internal error"), None),
        )
        channel = WebSocketChannel(URL)
        channel.bind(listener)

        with patch("gradium.channel.websockets.connect", AsyncMock(return_value=ws)):
            await channel.open()
            await channel._receive_task

        listener.on_error.assert_not_called()
        listener.on_close.assert_called_once_with(1011, "internal error", False)

    @pytest.mark.asyncio
    async def test_missing_close_code_is_abnormal(self, listener: MagicMock) -> None:
        ws = FakeWebSocket([], close_code=None, error=OSError("reset by peer"))
        channel = WebSocketChannel(URL)
        channel.bind(listener)

        with patch("gradium.channel.websockets.connect", AsyncMock(return_value=ws)):
            await channel.open()
            await channel._receive_task

        error = listener.on_error.call_args.args[0]
        assert isinstance(error, ConnectionError)
        listener.on_close.assert_called_once_with(1006, "", False)

    @pytest.mark.asyncio
    async def test_close_before_open_reports_once(self, listener: MagicMock) -> None:
        channel = WebSocketChannel(URL)
        channel.bind(listener)

        await channel.close()
        await channel.close()

        listener.on_close.assert_called_once_with(1000, "", True)

    @pytest.mark.asyncio
    async def test_send_when_not_open(self, listener: MagicMock) -> None:
        channel = WebSocketChannel(URL)
        channel.bind(listener)

        with pytest.raises(ConnectionError, match="not open"):
            await channel.send("{}")

    @pytest.mark.asyncio
    async def test_close_closes_socket(self, listener: MagicMock) -> None:
        ws = FakeWebSocket([])
        channel = WebSocketChannel(URL)
        channel.bind(listener)

        with patch("gradium.channel.websockets.connect", AsyncMock(return_value=ws)):
            await channel.open()
            await channel.close()

        ws.close.assert_awaited_once()
        listener.on_close.assert_called_once_with(1000, "", True)

    def test_factory_builds_unopened_channel(self) -> None:
        channel = connect_websocket(URL, {"x-api-key": "k"}, open_timeout=1.0)
        assert isinstance(channel, WebSocketChannel)
        assert channel.url == URL
        assert not channel.is_open
