"""
Command line interface for the gradium SDK.

Subcommands:
- gradium tts: synthesize text to an audio file
- gradium stt: transcribe an audio file
- gradium voices: list available voices
- gradium credits: show the credit balance

The API key is read from ``GRADIUM_API_KEY`` unless ``--api-key`` is given.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from . import __version__
from .client import Gradium
from .exceptions import GradiumError
from .stt import INPUT_FORMATS, STTSetupParams
from .tts import OUTPUT_FORMATS, TTSSetupParams

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="gradium",
        description="Text-to-speech and speech-to-text with the Gradium API.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("--api-key", default=None, help="API key (default: $GRADIUM_API_KEY).")
    parser.add_argument("--region", choices=["eu", "us"], default=None, help="API region.")
    parser.add_argument("--base-url", default=None, help="Override the API base URL.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ============================================================================
    # tts subcommand
    # ============================================================================
    p_tts = subparsers.add_parser("tts", help="Synthesize text to an audio file.")
    p_tts.add_argument("--voice-id", required=True, help="Voice to synthesize with.")
    p_tts.add_argument(
        "--format",
        dest="output_format",
        choices=OUTPUT_FORMATS,
        default="wav",
        help="Output audio format (default: wav).",
    )
    p_tts.add_argument("--text", required=True, help="Text to synthesize.")
    p_tts.add_argument("--output", type=Path, required=True, help="Where to write the audio.")
    p_tts.add_argument("--model", default=None, help="Model name (default: default).")

    # ============================================================================
    # stt subcommand
    # ============================================================================
    p_stt = subparsers.add_parser("stt", help="Transcribe an audio file.")
    p_stt.add_argument("audio", type=Path, help="Audio file to transcribe.")
    p_stt.add_argument(
        "--format",
        dest="input_format",
        choices=INPUT_FORMATS,
        default="pcm",
        help="Input audio format (default: pcm).",
    )
    p_stt.add_argument("--model", default=None, help="Model name (default: default).")

    # ============================================================================
    # voices / credits subcommands
    # ============================================================================
    p_voices = subparsers.add_parser("voices", help="List available voices.")
    p_voices.add_argument(
        "--include-catalog",
        action="store_true",
        help="Include public catalog voices.",
    )
    p_voices.add_argument("--limit", type=int, default=None, help="Maximum number of voices.")

    subparsers.add_parser("credits", help="Show the credit balance.")

    return parser


async def _run_tts(client: Gradium, args: argparse.Namespace) -> int:
    params = TTSSetupParams(voice_id=args.voice_id, output_format=args.output_format)
    if args.model:
        params.model_name = args.model
    result = await client.tts.create(params, args.text)
    args.output.write_bytes(result.raw_data)
    print(
        f"[done] Wrote {len(result.raw_data)} bytes ({result.sample_rate} Hz) to {args.output}"
    )
    return 0


async def _run_stt(client: Gradium, args: argparse.Namespace) -> int:
    params = STTSetupParams(input_format=args.input_format)
    if args.model:
        params.model_name = args.model
    text = await client.stt.transcribe(args.audio.read_bytes(), params)
    print(text)
    return 0


async def _run_voices(client: Gradium, args: argparse.Namespace) -> int:
    voices = await client.voices.list(include_catalog=args.include_catalog or None, limit=args.limit)
    for voice in voices:
        language = f" [{voice.language}]" if voice.language else ""
        print(f"{voice.uid}  {voice.name}{language}")
    return 0


async def _run_credits(client: Gradium, args: argparse.Namespace) -> int:
    summary = await client.credits.get()
    print(json.dumps(summary.to_dict(), indent=2))
    return 0


_COMMANDS = {
    "tts": _run_tts,
    "stt": _run_stt,
    "voices": _run_voices,
    "credits": _run_credits,
}


async def _dispatch(args: argparse.Namespace) -> int:
    async with Gradium(args.api_key, region=args.region, base_url=args.base_url) as client:
        return await _COMMANDS[args.command](client, args)


def main(argv: Sequence[str] | None = None) -> int:
    """
    Main CLI entry point.

    Returns:
        0 on success, 1 on GradiumError, 2 on unexpected error.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return asyncio.run(_dispatch(args))

    except GradiumError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except Exception as e:
        logger.debug("Unexpected error", exc_info=True)
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
