"""Tests for the round-robin instance pool."""
from __future__ import annotations

import asyncio

import pytest

from koko_tts.core.errors import InferenceFailure
from koko_tts.tts.engine import SynthesisRequest
from koko_tts.tts.pool import InstancePool, instance_id_for
from stubs import StubModel, StubPhonemizer


@pytest.fixture
def pool(make_engine):
    return InstancePool.create(3, lambda iid: make_engine(instance_id=iid))


class TestAssignment:

    def test_instance_ids_hex(self):
        assert [instance_id_for(i) for i in (0, 1, 10, 255)] == ["00", "01", "0a", "ff"]

    def test_create_assigns_ids(self, pool):
        assert [e.instance_id for e in pool.engines] == ["00", "01", "02"]
        assert len(pool) == 3

    def test_round_robin(self, pool):
        picked = [pool.select().instance_id for _ in range(7)]
        assert picked == ["00", "01", "02", "00", "01", "02", "00"]

    def test_reproducible(self, make_engine):
        runs = []
        for _ in range(2):
            p = InstancePool.create(2, lambda iid: make_engine(instance_id=iid))
            runs.append([p.select().instance_id for _ in range(5)])
        assert runs[0] == runs[1]

    def test_empty_pool_rejected(self):
        with pytest.raises(ValueError):
            InstancePool([])


class TestStats:

    def test_lease_counts(self, pool):
        with pool.lease() as engine:
            assert engine.instance_id == "00"
            stats = {s.instance_id: s for s in pool.stats()}
            assert stats["00"].active == 1
        stats = {s.instance_id: s for s in pool.stats()}
        assert stats["00"].active == 0
        assert stats["00"].total == 1
        assert stats["01"].total == 0

    def test_lease_released_on_error(self, pool):
        with pytest.raises(RuntimeError):
            with pool.lease():
                raise RuntimeError("boom")
        assert all(s.active == 0 for s in pool.stats())


class TestAsync:

    def test_synthesize_async(self, pool):
        async def run():
            return [await pool.synthesize_async(SynthesisRequest(text="Hello.", style="af_a")) for _ in range(2)]

        results = asyncio.run(run())
        assert [iid for _, iid in results] == ["00", "01"]
        assert all(len(audio) > 0 for audio, _ in results)

    def test_synthesize_async_propagates_failure(self, make_engine):
        p = InstancePool([make_engine(model=StubModel(fail_on_call=0))])
        with pytest.raises(InferenceFailure):
            asyncio.run(p.synthesize_async(SynthesisRequest(text="Hello.", style="af_a")))
        assert p.stats()[0].active == 0

    def test_iter_chunks_in_order(self, make_engine):
        p = InstancePool([make_engine(phonemizer=StubPhonemizer(repeat=20))])

        async def run():
            engine, chunks = await p.open_stream(SynthesisRequest(text="Hello world. This is a test!", style="af_a"))
            return [c.index async for c in p.iter_chunks_async(engine, chunks)]

        assert asyncio.run(run()) == [0, 1]

    def test_iter_chunks_stops_on_disconnect(self, make_engine):
        model = StubModel()
        p = InstancePool([make_engine(model=model)])
        state = {"pulled": 0}

        async def disconnected():
            return state["pulled"] >= 1

        async def run():
            engine, chunks = await p.open_stream(
                SynthesisRequest(text="One. Two. Three. Four.", style="af_a"), max_words=1
            )
            out = []
            async for chunk in p.iter_chunks_async(engine, chunks, disconnected):
                out.append(chunk.index)
                state["pulled"] += 1
            return out

        assert asyncio.run(run()) == [0]
        assert len(model.calls) == 1
