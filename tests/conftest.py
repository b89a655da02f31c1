"""Shared fixtures: stub phonemizer, stub model and small voices files."""
from __future__ import annotations

import os
import threading

import numpy as np
import pytest

os.environ.setdefault("KOKO_NO_COLOR", "1")

from koko_tts.tts.engine import SynthesisEngine  # noqa: E402
from koko_tts.tts.phonemizer import PhonemizerHandle  # noqa: E402
from koko_tts.tts.style import StyleStore  # noqa: E402
from stubs import StubModel, StubPhonemizer, make_table  # noqa: E402


@pytest.fixture
def voices_file(tmp_path):
    path = tmp_path / "voices-test.bin"
    with open(path, "wb") as f:
        np.savez(f, af_a=make_table(0.001), af_b=make_table(0.01), bm_c=make_table(-0.001))
    return path


@pytest.fixture
def style_store(voices_file):
    return StyleStore.load(voices_file)


@pytest.fixture
def stub_phonemizer():
    return StubPhonemizer()


@pytest.fixture
def stub_model():
    return StubModel()


@pytest.fixture
def make_engine(style_store):
    """Factory: make_engine(model=None, phonemizer=None, **kwargs) -> SynthesisEngine."""

    def _make(model=None, phonemizer=None, lock=None, **kwargs):
        phon = phonemizer or StubPhonemizer()
        handle = PhonemizerHandle(phon, lock=lock or threading.Lock())
        return SynthesisEngine(
            inference=model or StubModel(),
            styles=style_store,
            phonemizer=handle,
            **kwargs,
        )

    return _make
