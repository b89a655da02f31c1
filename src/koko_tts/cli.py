"""
Command-Line Interface for koko.

Usage Examples:
    # Text to a WAV file (default mode)
    koko text "Hello world. This is a test!" -o hello.wav
    echo "Hello from stdin." | koko

    # One WAV per non-blank line: tmp/output_0.wav, tmp/output_2.wav, ...
    koko file lines.txt -o "tmp/output_{line}.wav"

    # stdin lines -> one continuous WAV stream on stdout
    koko stream | aplay

    # OpenAI-compatible server with 4 model instances
    koko --instances 4 openai --ip 0.0.0.0 --port 3000

    # Voice blend, slower, mono
    koko -s af_sarah.4+af_nicole.6 -p 0.9 --mono text "Blended voice."

Global options override config/settings.yaml and KOKO_* variables.

Exit Codes:
    0  success
    1  missing input, missing model/voices file, synthesis failure
    2  invalid arguments or configuration
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from koko_tts import __version__
from koko_tts.core.config import ConfigValidationError, Defaults, KokoConfig, load_settings
from koko_tts.core.errors import ConfigurationError, InferenceFailure, KokoError
from koko_tts.core.logging import configure_logging, get_logger, info, set_request_id
from koko_tts.tts.engine import SynthesisEngine, SynthesisRequest
from koko_tts.utils.audio import StreamHeader, write_audio_chunk, write_wav
from koko_tts.utils.timeit import timeit

_LOG = get_logger("koko.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="koko",
        description="Kokoro text-to-speech: files, stdin streams and an OpenAI-compatible server",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    # Synthesis options (None = fall through to settings / environment)
    parser.add_argument("-l", "--lan", help=f"espeak language (default: {Defaults.LANGUAGE})")
    parser.add_argument("-m", "--model", help=f"Kokoro ONNX model (default: {Defaults.MODEL_PATH})")
    parser.add_argument("-d", "--data", help=f"voices NPZ file (default: {Defaults.VOICES_PATH})")
    parser.add_argument("-s", "--style", help=f"voice or blend, e.g. af_sky or af_sarah.4+af_nicole.6 (default: {Defaults.STYLE})")
    parser.add_argument("-p", "--speed", type=float, help=f"speaking rate (default: {Defaults.SPEED})")
    parser.add_argument("--mono", action="store_true", default=None, help="write mono WAV files instead of stereo")
    parser.add_argument("--initial-silence", type=int, metavar="N", help="silence tokens before each chunk")
    parser.add_argument("--instances", type=int, metavar="N", help=f"model instances for the server (default: {Defaults.INSTANCES})")
    parser.add_argument("--config", metavar="PATH", help="settings YAML (default: $KOKO_SETTINGS or config/settings.yaml)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v per-chunk timing, -vv phonemes and tokens")

    sub = parser.add_subparsers(dest="mode", metavar="MODE")

    text = sub.add_parser("text", aliases=["t"], help="speak a string of text (default mode)")
    text.add_argument("text", nargs="?", help="text to speak; read from stdin when omitted")
    text.add_argument("-o", "--output", default="tmp/output.wav", help="WAV path (default: tmp/output.wav)")

    file_mode = sub.add_parser("file", aliases=["f"], help="one WAV per line of a text file")
    file_mode.add_argument("input_path", help="text file to read lines from")
    file_mode.add_argument(
        "-o", "--output",
        default="tmp/output_{line}.wav",
        help="path format, {line} is the zero-based line number (default: tmp/output_{line}.wav)",
    )

    sub.add_parser("stream", aliases=["stdio", "stdin"], help="read lines from stdin, write a WAV stream to stdout")

    server = sub.add_parser("openai", aliases=["oai"], help="start the OpenAI-compatible HTTP server")
    server.add_argument("--ip", help=f"bind address (default: {Defaults.HOST})")
    server.add_argument("--port", type=int, help=f"port (default: {Defaults.PORT})")

    return parser


_MODE_ALIASES = {
    None: "text",
    "t": "text",
    "f": "file",
    "stdio": "stream",
    "stdin": "stream",
    "oai": "openai",
}


def _load_config(args: argparse.Namespace) -> KokoConfig:
    """Settings file and environment, then CLI flags on top."""
    settings = load_settings(args.config)
    settings = settings.with_overrides(
        "tts",
        model_path=args.model,
        voices_path=args.data,
        language=args.lan,
        style=args.style,
        speed=args.speed,
        mono=args.mono,
        initial_silence=args.initial_silence,
    )
    settings = settings.with_overrides("pool", instances=args.instances)
    if args.mode in ("openai", "oai"):
        settings = settings.with_overrides("server", host=args.ip, port=args.port)
    return KokoConfig.from_settings(settings)


def _request(config: KokoConfig, text: str) -> SynthesisRequest:
    return SynthesisRequest(
        text=text,
        language=config.tts.language,
        style=config.tts.style,
        speed=config.tts.speed,
        initial_silence=config.tts.initial_silence,
    )


def _report_failure(exc: KokoError) -> None:
    print(f"Error: {exc.message}", file=sys.stderr)
    if isinstance(exc, InferenceFailure):
        print(f"Chunk text was: {exc.chunk_text!r}", file=sys.stderr)


# ─────────────────────────────────────────────────────────────────────────────
# Modes
# ─────────────────────────────────────────────────────────────────────────────

def run_text(engine: SynthesisEngine, config: KokoConfig, args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    text = getattr(args, "text", None)
    output = getattr(args, "output", "tmp/output.wav")

    if text is None:
        if sys.stdin.isatty():
            print("Error: Missing input text.\n", file=sys.stderr)
            parser.print_help(sys.stderr)
            return 1
        text = sys.stdin.read()

    if not text.strip():
        print("Error: Empty input text.\n", file=sys.stderr)
        parser.print_help(sys.stderr)
        return 1

    with timeit("text") as t:
        audio = engine.synthesize(_request(config, text))
        write_wav(output, audio.samples, audio.sample_rate, mono=config.tts.mono)

    elapsed = t.timing.seconds
    info(_LOG, "text_done", out=output, audio_s=round(audio.duration_s, 3), seconds=round(elapsed, 4))
    print(f"Time taken: {elapsed:.3f}s")
    print(f"Words per second: {len(text.split()) / elapsed:.2f}" if elapsed > 0 else "Words per second: inf")
    return 0


def run_file(engine: SynthesisEngine, config: KokoConfig, args: argparse.Namespace) -> int:
    try:
        lines = Path(args.input_path).read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Error: cannot read input file: {exc}", file=sys.stderr)
        return 1
    written = 0
    for i, line in enumerate(lines):
        stripped = line.strip()
        if not stripped:
            continue
        out = args.output.replace("{line}", str(i))
        audio = engine.synthesize(_request(config, stripped))
        write_wav(out, audio.samples, audio.sample_rate, mono=config.tts.mono)
        info(_LOG, "line_done", line=i, out=out, audio_s=round(audio.duration_s, 3))
        written += 1
    info(_LOG, "file_done", files=written, input=args.input_path)
    return 0


def run_stream(engine: SynthesisEngine, config: KokoConfig) -> int:
    """
    One WAV header, then each line's audio as soon as it is ready.

    A failing line is reported on stderr and the loop goes on.
    """
    out = sys.stdout.buffer
    print("Entering streaming mode. Type text and press Enter. Use Ctrl+D to exit.", file=sys.stderr)
    StreamHeader(channels=1, sample_rate=engine.sample_rate).write(out)

    for line in sys.stdin:
        stripped = line.strip()
        if not stripped:
            continue
        set_request_id(uuid4().hex[:12])
        try:
            audio = engine.synthesize(_request(config, stripped))
        except KokoError as exc:
            print(f"Error processing line: {exc.message}", file=sys.stderr)
            continue
        write_audio_chunk(out, audio.samples, mono=True)
        print("Audio written to stdout. Ready for another line of text.", file=sys.stderr)
    return 0


def run_openai(config: KokoConfig) -> int:
    import uvicorn

    from koko_tts.api.dependencies import build_pool, set_config, set_pool
    from koko_tts.main import create_app

    set_config(config)
    set_pool(build_pool(config))
    info(_LOG, "server_starting", host=config.server.host, port=config.server.port, instances=config.pool.instances)
    uvicorn.run(create_app(), host=config.server.host, port=config.server.port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point for the ``koko`` command.

    Returns:
        Process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    mode = _MODE_ALIASES.get(args.mode, args.mode)

    verbosity = {0: None, 1: 3}.get(args.verbose, 4)
    configure_logging(level=verbosity, force=verbosity is not None)
    set_request_id(uuid4().hex[:12])

    try:
        config = _load_config(args)
    except (ConfigValidationError, FileNotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    try:
        if mode == "openai":
            return run_openai(config)

        engine = SynthesisEngine.from_config(config.tts)
        if mode == "file":
            return run_file(engine, config, args)
        if mode == "stream":
            return run_stream(engine, config)
        return run_text(engine, config, args, parser)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KokoError as exc:
        _report_failure(exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
