"""
FastAPI Dependency Providers.

    get_settings() -> Settings       YAML + environment, cached
    get_config()   -> KokoConfig     validated, cached unless set_config() was used
    get_pool()     -> InstancePool   built once from the config

The CLI (``koko openai``) builds the config from its flags and installs it
with set_config() before the server starts; tests install stub pools with
set_pool().
"""
from __future__ import annotations

import threading
from functools import lru_cache
from typing import Optional

from koko_tts.core.config import KokoConfig, Settings, load_settings
from koko_tts.core.logging import get_logger, info
from koko_tts.tts.engine import SynthesisEngine
from koko_tts.tts.pool import InstancePool

_LOG = get_logger("koko.api")

_config: Optional[KokoConfig] = None
_pool: Optional[InstancePool] = None
_pool_lock = threading.Lock()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def get_config() -> KokoConfig:
    global _config
    if _config is None:
        _config = KokoConfig.from_settings(get_settings())
    return _config


def set_config(config: Optional[KokoConfig]) -> None:
    global _config
    _config = config


def build_pool(config: KokoConfig) -> InstancePool:
    """Load ``config.pool.instances`` engines. Raises ConfigurationError on missing data."""
    info(_LOG, "pool_loading", instances=config.pool.instances, model=config.tts.model_path)
    return InstancePool.create(
        config.pool.instances,
        lambda iid: SynthesisEngine.from_config(config.tts, iid),
    )


def get_pool() -> InstancePool:
    """The process-wide pool, built on first use."""
    global _pool
    with _pool_lock:
        if _pool is None:
            _pool = build_pool(get_config())
        return _pool


def set_pool(pool: Optional[InstancePool]) -> None:
    global _pool
    with _pool_lock:
        _pool = pool
