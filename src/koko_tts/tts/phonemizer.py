"""
espeak-ng Phonemizer Adapter.

espeak-ng is not safe to call from more than one thread at a time, and every
engine instance in the process shares the same library state. All calls go
through ``PHONEMIZER_LOCK``; engines never touch the backend directly, they
receive a ``PhonemizerHandle`` that holds the lock for the duration of a
call.

    handle = PhonemizerHandle(EspeakPhonemizer())
    handle.phonemize("Hello world.", "en-us")   # 'həloʊ wɜːld.'
    handle.measure("Hello world.", "en-us")     # padded token count
"""
from __future__ import annotations

import threading
from typing import Callable, Dict

from phonemizer.backend import EspeakBackend

from koko_tts.core.errors import PhonemizationFailure
from koko_tts.core.logging import debug, get_logger, warn
from koko_tts.tts.vocab import padded_length

_LOG = get_logger("koko.phonemizer")

# process-wide: espeak-ng keeps global state
PHONEMIZER_LOCK = threading.Lock()

PhonemizeFn = Callable[[str, str], str]


class EspeakPhonemizer:
    """
    Callable ``(text, language) -> phonemes`` over phonemizer's EspeakBackend.

    Punctuation is preserved and stress marks are left out. One backend is
    created per language on first use. Not thread-safe on its own; wrap it in
    a PhonemizerHandle.
    """

    def __init__(self) -> None:
        self._backends: Dict[str, EspeakBackend] = {}

    def _backend(self, language: str) -> EspeakBackend:
        backend = self._backends.get(language)
        if backend is None:
            backend = EspeakBackend(
                language,
                preserve_punctuation=True,
                with_stress=False,
            )
            self._backends[language] = backend
        return backend

    def __call__(self, text: str, language: str) -> str:
        return self._backend(language).phonemize([text], strip=True)[0]


class PhonemizerHandle:
    """
    Capability handle for the shared phonemizer.

    Args:
        backend: Any ``(text, language) -> str`` callable.
        lock: Lock held around each call. Defaults to the process-wide lock.
    """

    def __init__(self, backend: PhonemizeFn, lock: threading.Lock = PHONEMIZER_LOCK):
        self._backend = backend
        self._lock = lock

    def phonemize(self, text: str, language: str) -> str:
        """
        Raises:
            PhonemizationFailure: If the backend rejects the text or language.
        """
        try:
            with self._lock:
                phonemes = self._backend(text, language)
        except (RuntimeError, ValueError, OSError) as exc:
            raise PhonemizationFailure(str(exc), language, {"text": text}) from exc
        debug(_LOG, "phonemized", language=language, text=text, phonemes=phonemes)
        return phonemes

    def phonemize_or_empty(self, text: str, language: str) -> str:
        """Like phonemize(), but a failure yields "" and a warning."""
        try:
            return self.phonemize(text, language)
        except PhonemizationFailure as exc:
            warn(_LOG, "phonemize_failed", language=language, text=text, error=exc.message)
            return ""

    def measure(self, text: str, language: str) -> int:
        """Padded token length of ``text``, the unit the chunk budget is in."""
        return padded_length(self.phonemize_or_empty(text, language))
