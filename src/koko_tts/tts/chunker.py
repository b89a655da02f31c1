"""
Text Chunking for Kokoro Synthesis.

The model accepts at most 512 tokens per call, so input text is split into
chunks whose phoneme token count fits a budget. Two strategies:

    1. chunk_by_tokens(): sentence packing against a token budget. Sentences
       are merged while the merged text still fits; a sentence that is too
       long on its own is packed word by word. Used for batch synthesis.
    2. chunk_by_words(): word-count based, never phonemizes. Short chunks
       get to the first audio sooner; used for streaming responses.

Sentence terminators are normalized: ``?`` and ``!`` are kept, anything else
(``;`` or a missing terminator) becomes ``.``.

Example:
    >>> measure = lambda text: len(text) + 2
    >>> chunk_by_tokens("Hello world. This is a test!", 500, measure).chunks
    ['Hello world. This is a test!']
    >>> chunk_by_tokens("Hello world. This is a test!", 20, measure).chunks
    ['Hello world.', 'This is a test!']
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List

from koko_tts.core.logging import get_logger, verbose
from koko_tts.utils.timeit import timeit

_LOG = get_logger("koko.chunker")

# Text -> padded token count
MeasureFn = Callable[[str], int]

_TOKEN_SPLIT = re.compile(r"([.?!;])")
_SPEECH_SPLIT = re.compile(r"([.?!])")
_CLAUSE_SPLIT = re.compile(r"([^,;:]*[,;:]|[^,;:]+$)")


@dataclass
class ChunkResult:
    """
    Attributes:
        chunks: Non-empty text chunks in source order.
        timings_s: Timing measurements in seconds.
    """
    chunks: List[str]
    timings_s: Dict[str, float]


def _sentences(text: str, splitter: re.Pattern) -> Iterator[str]:
    """Yield stripped sentences with a normalized terminator."""
    parts = splitter.split(text)
    for i in range(0, len(parts), 2):
        body = parts[i].strip()
        if not body:
            continue
        term = parts[i + 1] if i + 1 < len(parts) else ""
        yield body + (term if term in ("?", "!") else ".")


def _pack_words(words: List[str], max_tokens: int, measure: MeasureFn) -> List[str]:
    out: List[str] = []
    current = ""
    for word in words:
        candidate = f"{current} {word}" if current else word
        if current and measure(candidate) > max_tokens:
            out.append(current)
            current = word
        else:
            current = candidate
    if current:
        out.append(current)
    return out


def chunk_by_tokens(text: str, max_tokens: int, measure: MeasureFn) -> ChunkResult:
    """
    Split text into chunks whose measured size is at most ``max_tokens``.

    Args:
        text: Input text.
        max_tokens: Budget in padded tokens.
        measure: Returns the padded token count of a piece of text.

    Returns:
        ChunkResult. A single word that alone exceeds the budget is emitted
        as its own chunk.
    """
    timings: Dict[str, float] = {}

    with timeit("chunk_tokens") as t:
        out: List[str] = []
        current = ""

        for sentence in _sentences(text, _TOKEN_SPLIT):
            if measure(sentence) > max_tokens:
                if current:
                    out.append(current)
                    current = ""
                out.extend(_pack_words(sentence.split(), max_tokens, measure))
                continue

            if not current:
                current = sentence
                continue

            candidate = f"{current} {sentence}"
            if measure(candidate) > max_tokens:
                out.append(current)
                current = sentence
            else:
                current = candidate

        if current:
            out.append(current)

    timings["chunk_tokens"] = t.timing.seconds if t.timing else -1.0
    verbose(_LOG, "chunked", chunks=len(out), max_tokens=max_tokens, seconds=round(timings["chunk_tokens"], 4))

    return ChunkResult(chunks=out, timings_s=timings)


def _pack_clauses(clauses: List[str], max_words: int) -> List[str]:
    out: List[str] = []
    current = ""
    count = 0
    for clause in clauses:
        n = len(clause.split())
        if count + n <= max_words:
            current = f"{current} {clause}" if current else clause
            count += n
        else:
            if current:
                out.append(current)
            current = clause
            count = n
    if current:
        out.append(current)
    return out


def chunk_by_words(text: str, max_words: int) -> ChunkResult:
    """
    Split text into speech-sized chunks by word count.

    Sentences of at most ``max_words`` words are emitted whole. Longer
    sentences are cut after ``,`` ``;`` ``:`` (punctuation kept) and the
    clauses packed up to ``max_words``. Text with no sentence at all falls
    back to plain word buckets.
    """
    timings: Dict[str, float] = {}

    with timeit("chunk_words") as t:
        out: List[str] = []

        for sentence in _sentences(text, _SPEECH_SPLIT):
            if len(sentence.split()) <= max_words:
                out.append(sentence)
                continue
            # drop the normalized terminator, clauses keep their own punctuation
            body = sentence[:-1]
            clauses = [m.group(0).strip() for m in _CLAUSE_SPLIT.finditer(body) if m.group(0).strip()]
            out.extend(_pack_clauses(clauses, max_words))

        if not out:
            out = _pack_clauses(text.split(), max_words)

    timings["chunk_words"] = t.timing.seconds if t.timing else -1.0
    verbose(_LOG, "chunked_words", chunks=len(out), max_words=max_words, seconds=round(timings["chunk_words"], 4))

    return ChunkResult(chunks=out, timings_s=timings)
