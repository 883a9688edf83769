"""Tests for the gradium command line interface."""

from __future__ import annotations

import httpx
import pytest

from gradium import Gradium, cli


@pytest.fixture
def no_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("GRADIUM_API_KEY", "GRADIUM_REGION", "GRADIUM_BASE_URL", "GRADIUM_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def streaming_cli(monkeypatch: pytest.MonkeyPatch, channel_factory, no_env):
    """Route the CLI's client through the in-memory channel."""

    def make(api_key=None, **kwargs):
        return Gradium(api_key, channel_factory=channel_factory, **kwargs)

    monkeypatch.setattr(cli, "Gradium", make)
    return channel_factory


@pytest.fixture
def rest_cli(monkeypatch: pytest.MonkeyPatch, no_env):
    """Route the CLI's REST calls through an httpx.MockTransport handler."""
    routes: dict[str, httpx.Response] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        return routes.get(request.url.path, httpx.Response(404, json={"detail": "Not found"}))

    def make(api_key=None, **kwargs):
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return Gradium(api_key, http_client=http, **kwargs)

    monkeypatch.setattr(cli, "Gradium", make)
    return routes


class TestParser:
    """Tests for build_parser."""

    def test_tts_arguments(self) -> None:
        args = cli.build_parser().parse_args(
            ["tts", "--voice-id", "v1", "--text", "Hi", "--output", "out.wav"]
        )
        assert args.command == "tts"
        assert args.output_format == "wav"
        assert str(args.output) == "out.wav"

    def test_stt_format_choices(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["stt", "a.raw", "--format", "mp3"])

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestMain:
    """Tests for main exit codes and output."""

    def test_tts_writes_audio(self, streaming_cli, tts_responder, tmp_path, capsys) -> None:
        streaming_cli.respond = tts_responder([b"RIFF", b"data"])
        output = tmp_path / "hello.wav"

        code = cli.main(
            ["--api-key", "k", "tts", "--voice-id", "v1", "--text", "Hello", "--output", str(output)]
        )

        assert code == 0
        assert output.read_bytes() == b"RIFFdata"
        assert "[done] Wrote 8 bytes (48000 Hz)" in capsys.readouterr().out

    def test_stt_prints_text(self, streaming_cli, stt_responder, tmp_path, capsys) -> None:
        streaming_cli.respond = stt_responder(["good", "morning"])
        audio = tmp_path / "speech.raw"
        audio.write_bytes(b"\x00" * 5000)

        code = cli.main(["--api-key", "k", "stt", str(audio)])

        assert code == 0
        assert capsys.readouterr().out.strip() == "good morning"
        assert streaming_cli.last.sent_types.count("audio") == 2

    def test_server_error_exit_code(self, streaming_cli, tmp_path, capsys) -> None:
        def respond(channel, message) -> None:
            if message["type"] == "setup":
                channel.push({"type": "error", "message": "Voice not found", "code": 404})

        streaming_cli.respond = respond

        code = cli.main(
            ["--api-key", "k", "tts", "--voice-id", "x", "--text", "Hi", "--output", str(tmp_path / "o.wav")]
        )

        assert code == 1
        assert "Error: Voice not found" in capsys.readouterr().err

    def test_voices(self, rest_cli, capsys) -> None:
        rest_cli["/api/voices/"] = httpx.Response(
            200,
            json=[
                {"uid": "v1", "name": "Emma", "language": "en", "start_s": 0, "filename": "e.wav"},
                {"uid": "v2", "name": "Noah", "start_s": 0, "filename": "n.wav"},
            ],
        )

        code = cli.main(["--api-key", "k", "voices", "--include-catalog"])

        assert code == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines == ["v1  Emma [en]", "v2  Noah"]

    def test_credits(self, rest_cli, capsys) -> None:
        rest_cli["/api/usages/credits"] = httpx.Response(
            200,
            json={"remaining_credits": 5, "allocated_credits": 10, "billing_period": "2026-10"},
        )

        assert cli.main(["--api-key", "k", "credits"]) == 0
        assert '"remaining_credits": 5' in capsys.readouterr().out

    def test_missing_api_key(self, rest_cli, capsys) -> None:
        assert cli.main(["credits"]) == 1
        assert "API key is required" in capsys.readouterr().err

    def test_unexpected_error(self, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
        def broken(*args, **kwargs):
            raise RuntimeError("kaboom")

        monkeypatch.setattr(cli, "Gradium", broken)

        assert cli.main(["--api-key", "k", "credits"]) == 2
        assert "Unexpected error: kaboom" in capsys.readouterr().err
