"""
Kokoro Synthesis Engine.

One engine = one model session + one style table + a handle on the shared
phonemizer. Text flows through it like this:

    text
     -> chunk_by_tokens()             token-budgeted chunks
     -> phonemize (PHONEMIZER_LOCK)   espeak-ng, empty on failure
     -> tokenize                      vocabulary ids
     -> initial silence               N x SILENCE_TOKEN prepended
     -> style                         row picked by pre-padding token count
     -> pad                           PAD_TOKEN on both ends
     -> infer (engine lock)           float32 samples
     -> AudioChunk

``stream()`` yields chunks lazily and in order; ``synthesize()`` collects
them into one buffer. A failing chunk aborts the whole request: nothing
partial is returned and nothing is retried.

Example:
    >>> engine = SynthesisEngine.load("checkpoints/kokoro-v1.0.onnx", "data/voices-v1.0.bin")
    >>> for chunk in engine.stream(SynthesisRequest(text="Hello. How are you?")):
    ...     play(chunk.samples)
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional

import numpy as np

from koko_tts.core.config import Defaults, SynthesisConfig
from koko_tts.core.errors import InferenceFailure, InvalidInputError, VoiceNotFound
from koko_tts.core.logging import debug, error, get_logger, set_instance_id, set_request_id, verbose, warn
from koko_tts.core.metrics import metrics
from koko_tts.tts.chunker import ChunkResult, chunk_by_tokens, chunk_by_words
from koko_tts.tts.inference import InferenceFn, OnnxInference
from koko_tts.tts.phonemizer import EspeakPhonemizer, PhonemizerHandle
from koko_tts.tts.style import SingleVoice, StyleStore, parse_style
from koko_tts.tts.vocab import PAD_TOKEN, SILENCE_TOKEN, tokenize
from koko_tts.utils.audio import AudioBuffer
from koko_tts.utils.timeit import timeit

_LOG = get_logger("koko.engine")


@dataclass
class SynthesisRequest:
    """
    One utterance to synthesize.

    ``request_id``, ``instance_id`` and ``chunk_number`` only feed log
    correlation.
    """
    text: str
    language: str = Defaults.LANGUAGE
    style: str = Defaults.STYLE
    speed: float = Defaults.SPEED
    initial_silence: Optional[int] = None
    request_id: Optional[str] = None
    instance_id: Optional[str] = None
    chunk_number: Optional[int] = None


@dataclass
class AudioChunk:
    """One synthesized chunk, the unit of streaming."""
    index: int
    text: str
    samples: np.ndarray
    synth_seconds: float


@lru_cache(maxsize=1)
def default_phonemizer() -> PhonemizerHandle:
    """Process-wide espeak handle shared by every engine."""
    return PhonemizerHandle(EspeakPhonemizer())


class SynthesisEngine:
    """
    Text to speech for one model instance.

    Args:
        inference: ``(tokens, style, speed) -> samples``, usually OnnxInference.
        styles: Voice style tables.
        phonemizer: Handle on the shared phonemizer.
        instance_id: Two-digit hex id used in logs and metrics.
        max_tokens: Chunk budget in padded tokens.
        sample_rate: Output sample rate of the model.

    Inference is serialized per engine; different engines run in parallel.
    """

    def __init__(
        self,
        inference: InferenceFn,
        styles: StyleStore,
        phonemizer: PhonemizerHandle,
        instance_id: str = "00",
        max_tokens: int = Defaults.MAX_TOKENS,
        sample_rate: int = Defaults.SAMPLE_RATE,
    ):
        self.inference = inference
        self.styles = styles
        self.phonemizer = phonemizer
        self.instance_id = instance_id
        self.max_tokens = max_tokens
        self.sample_rate = sample_rate
        self._lock = threading.Lock()

    @classmethod
    def load(
        cls,
        model_path: str | Path = Defaults.MODEL_PATH,
        voices_path: str | Path = Defaults.VOICES_PATH,
        instance_id: str = "00",
        max_tokens: int = Defaults.MAX_TOKENS,
        sample_rate: int = Defaults.SAMPLE_RATE,
    ) -> "SynthesisEngine":
        """
        Build an engine from model and voices files.

        Raises:
            ConfigurationError: If either file is missing or unreadable.
        """
        return cls(
            inference=OnnxInference(model_path),
            styles=StyleStore.load(voices_path),
            phonemizer=default_phonemizer(),
            instance_id=instance_id,
            max_tokens=max_tokens,
            sample_rate=sample_rate,
        )

    @classmethod
    def from_config(cls, config: SynthesisConfig, instance_id: str = "00") -> "SynthesisEngine":
        return cls.load(
            config.model_path,
            config.voices_path,
            instance_id=instance_id,
            max_tokens=config.max_tokens,
            sample_rate=config.sample_rate,
        )

    def voices(self) -> List[str]:
        return self.styles.voices()

    # ─────────────────────────────────────────────────────────────────────────
    # Validation / chunking
    # ─────────────────────────────────────────────────────────────────────────

    def validate(self, request: SynthesisRequest) -> None:
        """
        Fail fast, before any audio is produced.

        Raises:
            VoiceNotFound: Unknown single voice.
            InvalidInputError: Bad speed or initial silence.
        """
        if request.speed <= 0:
            raise InvalidInputError(f"speed must be positive, got {request.speed}", {"speed": request.speed})
        silence = request.initial_silence or 0
        if silence < 0 or silence >= self.max_tokens:
            raise InvalidInputError(
                f"initial_silence must be in [0, {self.max_tokens}), got {silence}",
                {"initial_silence": silence},
            )
        spec = parse_style(request.style)
        if isinstance(spec, SingleVoice) and spec.name not in self.styles:
            raise VoiceNotFound(spec.name)

    def split(self, text: str, language: str = Defaults.LANGUAGE, initial_silence: int = 0) -> ChunkResult:
        """Token-budgeted chunks; the silence tokens come out of the budget."""
        budget = self.max_tokens - initial_silence
        return chunk_by_tokens(text, budget, lambda t: self.phonemizer.measure(t, language))

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis
    # ─────────────────────────────────────────────────────────────────────────

    def stream(self, request: SynthesisRequest) -> Iterator[AudioChunk]:
        """
        Synthesize ``request`` chunk by chunk, in order.

        Validation and chunking happen on the call, so bad requests fail
        before any audio exists. Each ``next()`` then synthesizes one chunk;
        abandoning the iterator stops synthesis after the chunk in flight.
        """
        self.validate(request)
        silence = request.initial_silence or 0
        self._bind(request)
        chunks = self.split(request.text, request.language, silence).chunks
        return self._render(request, chunks)

    def stream_words(self, request: SynthesisRequest, max_words: int = Defaults.STREAM_MAX_WORDS) -> Iterator[AudioChunk]:
        """Like stream() but with word-count chunks for a faster first chunk."""
        self.validate(request)
        self._bind(request)
        chunks = chunk_by_words(request.text, max_words).chunks
        return self._render(request, chunks)

    def synthesize(self, request: SynthesisRequest) -> AudioBuffer:
        """
        Synthesize the whole request into one buffer.

        Raises:
            InferenceFailure: A chunk failed; no audio is returned.
        """
        buf = AudioBuffer(sample_rate=self.sample_rate)
        for chunk in self.stream(request):
            buf.extend(chunk.samples)
        return buf

    def synthesize_streaming(self, request: SynthesisRequest, on_chunk: Callable[[np.ndarray], None]) -> int:
        """Hand each chunk's samples to ``on_chunk`` in order. Returns the chunk count."""
        count = 0
        for chunk in self.stream(request):
            on_chunk(chunk.samples)
            count += 1
        return count

    def _bind(self, request: SynthesisRequest) -> None:
        if request.request_id:
            set_request_id(request.request_id)
        set_instance_id(request.instance_id or self.instance_id)

    def _render(self, request: SynthesisRequest, chunks: Iterable[str]) -> Iterator[AudioChunk]:
        for index, text in enumerate(chunks):
            # each next() may run on a different worker thread
            self._bind(request)
            chunk = self._render_chunk(request, index, text)
            if chunk is not None:
                yield chunk

    def _render_chunk(self, request: SynthesisRequest, index: int, text: str) -> Optional[AudioChunk]:
        phonemes = self.phonemizer.phonemize_or_empty(text, request.language)
        tokens = tokenize(phonemes)
        debug(
            _LOG, "chunk_phonemes",
            chunk=index, chunk_number=request.chunk_number,
            text=text, phonemes=phonemes, tokens=len(tokens),
        )
        if not tokens:
            warn(_LOG, "chunk_skipped_empty", chunk=index, text=text)
            return None

        tokens = [SILENCE_TOKEN] * (request.initial_silence or 0) + tokens
        style = self.styles.mix(request.style, len(tokens))
        padded = np.array([[PAD_TOKEN] + tokens + [PAD_TOKEN]], dtype=np.int64)

        try:
            with timeit("inference") as t:
                with self._lock:
                    samples = self.inference(padded, style.reshape(1, -1), request.speed)
        except Exception as exc:
            error(_LOG, "chunk_failed", chunk=index, text=text, error=str(exc))
            raise InferenceFailure(
                f"inference failed on chunk {index}: {exc}",
                chunk_text=text,
                chunk_index=index,
                details={"request_id": request.request_id, "instance_id": self.instance_id},
            ) from exc

        samples = np.asarray(samples, dtype=np.float32).reshape(-1)
        seconds = t.timing.seconds if t.timing else -1.0
        metrics.record_chunk(self.instance_id, seconds, int(samples.size))
        verbose(_LOG, "chunk_done", chunk=index, tokens=padded.shape[1], samples=int(samples.size), seconds=round(seconds, 4))
        return AudioChunk(index=index, text=text, samples=samples, synth_seconds=seconds)
