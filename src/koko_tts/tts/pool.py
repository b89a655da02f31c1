"""
Instance Pool for the HTTP server.

N independent SynthesisEngine instances, each with its own model session
and lock. Requests are assigned round robin in arrival order, so a given
sequence of requests always lands on the same sequence of instances.
The engines share nothing mutable except the process-wide phonemizer lock.

Blocking work never runs on the event loop: whole-utterance synthesis and
each streaming step go through ``fastapi.concurrency.run_in_threadpool``.

Usage:
    pool = InstancePool.create(2, lambda iid: SynthesisEngine.from_config(cfg, iid))

    audio, iid = await pool.synthesize_async(request)

    engine, chunks = await pool.open_stream(request, max_words=12)
    async for chunk in pool.iter_chunks_async(engine, chunks, http_request.is_disconnected):
        ...
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from fastapi.concurrency import run_in_threadpool

from koko_tts.core.logging import get_logger, info
from koko_tts.core.metrics import metrics
from koko_tts.tts.engine import AudioChunk, SynthesisEngine, SynthesisRequest
from koko_tts.utils.audio import AudioBuffer

_LOG = get_logger("koko.pool")


@dataclass
class InstanceStats:
    instance_id: str
    active: int
    total: int


def instance_id_for(index: int) -> str:
    """Two-digit hex id: 0 -> "00", 10 -> "0a"."""
    return f"{index:02x}"


class InstancePool:
    """
    Round-robin pool of synthesis engines.

    Args:
        engines: Engines in assignment order. Must not be empty.
    """

    def __init__(self, engines: Sequence[SynthesisEngine]):
        if not engines:
            raise ValueError("InstancePool needs at least one engine")
        self._engines: List[SynthesisEngine] = list(engines)
        self._lock = threading.Lock()
        self._next = 0
        self._active: Dict[str, int] = {e.instance_id: 0 for e in self._engines}
        self._total: Dict[str, int] = {e.instance_id: 0 for e in self._engines}
        for engine in self._engines:
            metrics.set_instance_active(engine.instance_id, False)

    @classmethod
    def create(cls, count: int, factory: Callable[[str], SynthesisEngine]) -> "InstancePool":
        """Build ``count`` engines with ids 00, 01, ... via ``factory(instance_id)``."""
        engines = []
        for i in range(count):
            iid = instance_id_for(i)
            engines.append(factory(iid))
            info(_LOG, "instance_ready", instance=iid, of=count)
        return cls(engines)

    def __len__(self) -> int:
        return len(self._engines)

    @property
    def engines(self) -> List[SynthesisEngine]:
        return list(self._engines)

    def voices(self) -> List[str]:
        return self._engines[0].voices()

    def select(self) -> SynthesisEngine:
        """Next engine in round-robin order."""
        with self._lock:
            engine = self._engines[self._next]
            self._next = (self._next + 1) % len(self._engines)
            return engine

    @contextmanager
    def track(self, engine: SynthesisEngine) -> Iterator[SynthesisEngine]:
        """Count ``engine`` as busy for the duration of the block."""
        iid = engine.instance_id
        with self._lock:
            self._active[iid] += 1
            self._total[iid] += 1
        metrics.set_instance_active(iid, True)
        try:
            yield engine
        finally:
            with self._lock:
                self._active[iid] -= 1
                still_active = self._active[iid] > 0
            metrics.set_instance_active(iid, still_active)

    @contextmanager
    def lease(self) -> Iterator[SynthesisEngine]:
        """select() and track() in one step."""
        with self.track(self.select()) as engine:
            yield engine

    def stats(self) -> List[InstanceStats]:
        with self._lock:
            return [
                InstanceStats(instance_id=e.instance_id, active=self._active[e.instance_id], total=self._total[e.instance_id])
                for e in self._engines
            ]

    # ─────────────────────────────────────────────────────────────────────────
    # Async helpers
    # ─────────────────────────────────────────────────────────────────────────

    async def synthesize_async(self, request: SynthesisRequest) -> Tuple[AudioBuffer, str]:
        """Synthesize the whole request on the next instance. Returns (audio, instance id)."""
        with self.lease() as engine:
            request.instance_id = engine.instance_id
            audio = await run_in_threadpool(engine.synthesize, request)
            return audio, engine.instance_id

    async def open_stream(
        self,
        request: SynthesisRequest,
        max_words: Optional[int] = None,
    ) -> Tuple[SynthesisEngine, Iterator[AudioChunk]]:
        """
        Pick an instance and prepare a chunk iterator.

        Validation errors (unknown voice, bad parameters) are raised here,
        before any response has been started. ``max_words`` selects
        word-count chunking; without it token-budget chunking is used.
        """
        engine = self.select()
        request.instance_id = engine.instance_id
        if max_words is not None:
            chunks = await run_in_threadpool(engine.stream_words, request, max_words)
        else:
            chunks = await run_in_threadpool(engine.stream, request)
        return engine, chunks

    async def iter_chunks_async(
        self,
        engine: SynthesisEngine,
        chunks: Iterator[AudioChunk],
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> AsyncIterator[AudioChunk]:
        """
        Pull ``chunks`` one at a time in the thread pool.

        Stops pulling as soon as ``is_disconnected()`` reports the client has
        gone; the chunk already in flight is allowed to finish.
        """
        with self.track(engine):
            while True:
                if is_disconnected is not None and await is_disconnected():
                    info(_LOG, "client_disconnected", instance=engine.instance_id)
                    break
                chunk = await run_in_threadpool(next, chunks, None)
                if chunk is None:
                    break
                yield chunk
