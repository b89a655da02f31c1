"""Helpers for building a test app around stub engines."""
from __future__ import annotations

from koko_tts.api.dependencies import set_config, set_pool
from koko_tts.core.config import KokoConfig, SynthesisConfig
from koko_tts.main import create_app
from koko_tts.tts.pool import InstancePool


def install(pool: InstancePool, **tts) -> KokoConfig:
    tts.setdefault("style", "af_a")
    config = KokoConfig(tts=SynthesisConfig(**tts))
    set_config(config)
    set_pool(pool)
    return config


def uninstall() -> None:
    set_config(None)
    set_pool(None)


__all__ = ["create_app", "install", "uninstall"]
