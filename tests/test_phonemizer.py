"""Tests for the phonemizer handle (espeak itself is stubbed)."""
from __future__ import annotations

import threading
from unittest.mock import patch

import pytest

from koko_tts.core.errors import PhonemizationFailure
from koko_tts.tts.phonemizer import PHONEMIZER_LOCK, EspeakPhonemizer, PhonemizerHandle
from stubs import StubPhonemizer


class TestPhonemizerHandle:

    def test_default_lock_is_process_wide(self):
        assert PhonemizerHandle(StubPhonemizer())._lock is PHONEMIZER_LOCK

    def test_phonemize(self):
        handle = PhonemizerHandle(StubPhonemizer(), lock=threading.Lock())
        assert handle.phonemize("Hi.", "en-us") == "Hi."

    def test_lock_held_during_call(self):
        lock = threading.Lock()
        seen = []

        def backend(text, language):
            seen.append(lock.locked())
            return text

        PhonemizerHandle(backend, lock=lock).phonemize("x", "en-us")
        assert seen == [True]
        assert not lock.locked()

    def test_failure_wrapped(self):
        handle = PhonemizerHandle(StubPhonemizer(fail_on="x"), lock=threading.Lock())
        with pytest.raises(PhonemizationFailure) as exc:
            handle.phonemize("x", "zz")
        assert exc.value.language == "zz"

    def test_empty_fallback(self):
        handle = PhonemizerHandle(StubPhonemizer(fail_on="x"), lock=threading.Lock())
        assert handle.phonemize_or_empty("x", "en-us") == ""
        assert handle.measure("x", "en-us") == 2

    def test_measure_counts_padding(self):
        handle = PhonemizerHandle(StubPhonemizer(), lock=threading.Lock())
        assert handle.measure("abc", "en-us") == 5


class TestEspeakPhonemizer:

    def test_backend_per_language(self):
        with patch("koko_tts.tts.phonemizer.EspeakBackend") as backend_cls:
            backend_cls.return_value.phonemize.return_value = ["həloʊ"]
            phon = EspeakPhonemizer()
            assert phon("hello", "en-us") == "həloʊ"
            phon("again", "en-us")
            phon("bonjour", "fr-fr")

        assert backend_cls.call_count == 2
        backend_cls.assert_any_call("en-us", preserve_punctuation=True, with_stress=False)
