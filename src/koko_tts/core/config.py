"""
Configuration Management for koko.

Configuration Hierarchy (highest priority first):
    1. CLI flags (applied by cli.py through ``Settings.with_overrides``)
    2. Environment variables (KOKO_MODEL_PATH, KOKO_STYLE, ...)
    3. YAML config file (config/settings.yaml, optional)
    4. Defaults class values

Example settings.yaml:
    tts:
      model_path: checkpoints/kokoro-v1.0.onnx
      voices_path: data/voices-v1.0.bin
      language: en-us
      style: af_sarah.4+af_nicole.6
      speed: 1.0
      initial_silence: 0

    pool:
      instances: 2

    server:
      host: 0.0.0.0
      port: 3000

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from koko_tts.core.logging.levels import coerce_level


class ConfigValidationError(Exception):
    """Raised when a configuration value is out of bounds or of the wrong type."""
    pass


class Defaults:
    """
    Centralized default configuration values.

    Model constants (sample rate, context length) are fixed by the Kokoro
    v1.0 checkpoint and are not meant to be tuned.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Model data
    # ─────────────────────────────────────────────────────────────────────────
    MODEL_PATH = "checkpoints/kokoro-v1.0.onnx"
    VOICES_PATH = "data/voices-v1.0.bin"
    MODEL_URL = "https://github.com/thewh1teagle/kokoro-onnx/releases/download/model-files-v1.0/kokoro-v1.0.onnx"
    VOICES_URL = "https://github.com/thewh1teagle/kokoro-onnx/releases/download/model-files-v1.0/voices-v1.0.bin"

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis
    # ─────────────────────────────────────────────────────────────────────────
    LANGUAGE = "en-us"
    STYLE = "af_sarah.4+af_nicole.6"
    SPEED = 1.0
    MONO = False
    INITIAL_SILENCE = 0
    SAMPLE_RATE = 24000
    MAX_TOKENS = 500            # model context is 512, keep a margin
    STREAM_MAX_WORDS = 12       # word-bucket size for low-latency streaming

    # ─────────────────────────────────────────────────────────────────────────
    # Pool / server
    # ─────────────────────────────────────────────────────────────────────────
    INSTANCES = 2
    HOST = "0.0.0.0"
    PORT = 3000

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_LEVEL = 2           # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG
    LOGGING_TEXT_PREVIEW_CHARS = 80


@dataclass(frozen=True)
class SynthesisConfig:
    """Defaults applied to every synthesis request."""
    model_path: str = Defaults.MODEL_PATH
    voices_path: str = Defaults.VOICES_PATH
    language: str = Defaults.LANGUAGE
    style: str = Defaults.STYLE
    speed: float = Defaults.SPEED
    mono: bool = Defaults.MONO
    initial_silence: int = Defaults.INITIAL_SILENCE
    sample_rate: int = Defaults.SAMPLE_RATE
    max_tokens: int = Defaults.MAX_TOKENS
    stream_max_words: int = Defaults.STREAM_MAX_WORDS


@dataclass(frozen=True)
class PoolConfig:
    """Number of independent synthesis instances."""
    instances: int = Defaults.INSTANCES


@dataclass(frozen=True)
class ServerConfig:
    host: str = Defaults.HOST
    port: int = Defaults.PORT


@dataclass(frozen=True)
class LoggingConfig:
    level: int = Defaults.LOGGING_LEVEL
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS


@dataclass(frozen=True)
class KokoConfig:
    """
    Validated configuration for the whole application.

    Usage:
        settings = load_settings()
        config = KokoConfig.from_settings(settings)
        print(config.tts.style, config.pool.instances)
    """
    tts: SynthesisConfig = field(default_factory=SynthesisConfig)
    pool: PoolConfig = field(default_factory=PoolConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "KokoConfig":
        """
        Build a validated KokoConfig from raw settings.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Synthesis
        # ─────────────────────────────────────────────────────────────────────
        tts_raw = _section(raw, "tts")
        try:
            tts = SynthesisConfig(
                model_path=str(tts_raw.get("model_path", Defaults.MODEL_PATH)),
                voices_path=str(tts_raw.get("voices_path", Defaults.VOICES_PATH)),
                language=str(tts_raw.get("language", Defaults.LANGUAGE)),
                style=str(tts_raw.get("style", Defaults.STYLE)),
                speed=float(tts_raw.get("speed", Defaults.SPEED)),
                mono=_as_bool(tts_raw.get("mono", Defaults.MONO)),
                initial_silence=int(tts_raw.get("initial_silence") or Defaults.INITIAL_SILENCE),
                sample_rate=int(tts_raw.get("sample_rate", Defaults.SAMPLE_RATE)),
                max_tokens=int(tts_raw.get("max_tokens", Defaults.MAX_TOKENS)),
                stream_max_words=int(tts_raw.get("stream_max_words", Defaults.STREAM_MAX_WORDS)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigValidationError(f"invalid tts setting: {exc}") from exc

        cls._validate_positive("tts.speed", tts.speed)
        cls._validate_non_negative("tts.initial_silence", tts.initial_silence)
        cls._validate_positive("tts.sample_rate", tts.sample_rate)
        cls._validate_range("tts.max_tokens", tts.max_tokens, 8, 510)
        cls._validate_positive("tts.stream_max_words", tts.stream_max_words)
        if tts.initial_silence >= tts.max_tokens:
            raise ConfigValidationError(
                f"tts.initial_silence must be below tts.max_tokens ({tts.max_tokens}), got {tts.initial_silence}"
            )
        if not tts.style.strip():
            raise ConfigValidationError("tts.style must not be empty")

        # ─────────────────────────────────────────────────────────────────────
        # Pool / server
        # ─────────────────────────────────────────────────────────────────────
        pool_raw = _section(raw, "pool")
        try:
            pool = PoolConfig(instances=int(pool_raw.get("instances", Defaults.INSTANCES)))
        except (TypeError, ValueError) as exc:
            raise ConfigValidationError(f"invalid pool setting: {exc}") from exc
        cls._validate_positive("pool.instances", pool.instances)

        server_raw = _section(raw, "server")
        try:
            server = ServerConfig(
                host=str(server_raw.get("host", Defaults.HOST)),
                port=int(server_raw.get("port", Defaults.PORT)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigValidationError(f"invalid server setting: {exc}") from exc
        cls._validate_range("server.port", server.port, 1, 65535)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = _section(raw, "logging")
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)
        try:
            if isinstance(log_level_raw, str):
                log_level = int(coerce_level(log_level_raw))
            else:
                log_level = int(log_level_raw)
            logging_cfg = LoggingConfig(
                level=log_level,
                text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigValidationError(f"invalid logging setting: {exc}") from exc
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)

        return cls(tts=tts, pool=pool, server=server, logging=logging_cfg)

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigValidationError(f"settings section '{name}' must be a mapping, got {type(section).__name__}")
    return section


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass(frozen=True)
class Settings:
    """
    Immutable raw settings loaded from YAML and the environment.

    Use ``get_config()`` for validated, typed access.
    """
    raw: Dict[str, Any]

    def with_overrides(self, section: str, **values: Any) -> "Settings":
        """
        Return a copy with ``values`` merged into ``section``.

        ``None`` values are ignored, so unset CLI flags fall through to the
        lower layers.
        """
        raw = copy.deepcopy(self.raw)
        target = raw[section] = _section(raw, section)
        for key, value in values.items():
            if value is not None:
                target[key] = value
        return Settings(raw=raw)

    def get_config(self) -> KokoConfig:
        return KokoConfig.from_settings(self)


# (environment variable, section, key)
_ENV_OVERRIDES = (
    ("KOKO_MODEL_PATH", "tts", "model_path"),
    ("KOKO_VOICES_PATH", "tts", "voices_path"),
    ("KOKO_LANGUAGE", "tts", "language"),
    ("KOKO_STYLE", "tts", "style"),
    ("KOKO_SPEED", "tts", "speed"),
    ("KOKO_INSTANCES", "pool", "instances"),
    ("KOKO_HOST", "server", "host"),
    ("KOKO_PORT", "server", "port"),
    ("KOKO_LOG_LEVEL", "logging", "level"),
)


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from a YAML file and apply KOKO_* environment overrides.

    Args:
        path: YAML file. Defaults to $KOKO_SETTINGS or config/settings.yaml.
            A missing default file is fine (defaults apply); a missing file
            that was asked for explicitly is an error.

    Raises:
        FileNotFoundError: If an explicitly requested file doesn't exist.
        ConfigValidationError: If the file is not valid YAML or not a mapping.
    """
    explicit = path is not None or "KOKO_SETTINGS" in os.environ
    p = Path(path or os.getenv("KOKO_SETTINGS", "config/settings.yaml"))

    raw: Dict[str, Any] = {}
    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigValidationError(f"settings file is not valid YAML: {p}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigValidationError(f"settings file must contain a mapping: {p}")
        raw = loaded
    elif explicit:
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    for env_name, section, key in _ENV_OVERRIDES:
        value = os.getenv(env_name)
        if value:
            target = raw[section] = _section(raw, section)
            target[key] = value

    return Settings(raw=raw)
