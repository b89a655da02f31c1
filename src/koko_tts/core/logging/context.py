"""
Correlation Context and Logging State.

Request and instance identifiers live in ``contextvars`` so they follow a
request across threads started with ``contextvars.copy_context()`` and across
``await`` points. Every log record picks them up automatically.

Environment Variables:
    - KOKO_LOG_LEVEL: level override (1-4 or a name)
    - KOKO_LOG_DIR: enable the JSONL file handler in this directory
    - KOKO_JSONL_FILE: JSONL file name (default koko.jsonl)
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")
_instance_id: ContextVar[str] = ContextVar("instance_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    return _request_id.get()


def set_request_id(rid: str) -> None:
    _request_id.set(rid)


def get_instance_id() -> str:
    return _instance_id.get()


def set_instance_id(iid: str) -> None:
    _instance_id.set(iid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging options from the settings file and the environment.

    The ``logging`` section of the YAML settings is read first, then KOKO_*
    variables override it. A missing or invalid settings file is skipped
    here; load_settings() reports it when the application config is built.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("KOKO_SETTINGS", "config/settings.yaml")
    if os.path.exists(settings_path):
        from koko_tts.core.config import ConfigValidationError, load_settings
        try:
            section = load_settings(settings_path).raw.get("logging") or {}
        except ConfigValidationError:
            section = {}
        if isinstance(section, dict):
            cfg.update(section)

    if os.getenv("KOKO_LOG_LEVEL"):
        cfg["level"] = os.environ["KOKO_LOG_LEVEL"]
    if os.getenv("KOKO_LOG_DIR"):
        cfg["log_dir"] = os.environ["KOKO_LOG_DIR"]
    if os.getenv("KOKO_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["KOKO_JSONL_FILE"]

    return cfg
