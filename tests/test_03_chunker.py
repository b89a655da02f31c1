"""Tests for token-budget and word-count chunking."""
from __future__ import annotations

import re

from koko_tts.tts.chunker import chunk_by_tokens, chunk_by_words


def char_measure(text: str) -> int:
    """Padded length when every character is one token."""
    return len(text) + 2


def words_of(chunks):
    return [w.strip(".?!;,") for c in chunks for w in c.split()]


class TestChunkByTokens:

    def test_short_text_single_chunk(self):
        cr = chunk_by_tokens("Hello world. This is a test!", 500, char_measure)
        assert cr.chunks == ["Hello world. This is a test!"]
        assert isinstance(cr.timings_s.get("chunk_tokens"), float)

    def test_sentences_split_when_merge_overflows(self):
        cr = chunk_by_tokens("Hello world. This is a test!", 20, char_measure)
        assert cr.chunks == ["Hello world.", "This is a test!"]

    def test_terminators_normalized(self):
        cr = chunk_by_tokens("One; two? three! four", 10, char_measure)
        assert cr.chunks == ["One.", "two?", "three!", "four."]

    def test_empty_and_punctuation_only(self):
        assert chunk_by_tokens("", 100, char_measure).chunks == []
        assert chunk_by_tokens(" ... ;; ?! ", 100, char_measure).chunks == []

    def test_budget_respected(self):
        text = " ".join(f"Sentence number {i} has a few words in it." for i in range(40))
        cr = chunk_by_tokens(text, 60, char_measure)
        assert len(cr.chunks) > 1
        assert all(char_measure(c) <= 60 for c in cr.chunks)

    def test_long_sentence_packed_by_words(self):
        sentence = " ".join(["word"] * 50) + "."
        cr = chunk_by_tokens(sentence, 30, char_measure)
        assert len(cr.chunks) > 1
        assert all(char_measure(c) <= 30 for c in cr.chunks)
        assert words_of(cr.chunks) == ["word"] * 50

    def test_accumulator_flushed_before_long_sentence(self):
        text = "Short one. " + " ".join(["longword"] * 10) + ". Tail."
        cr = chunk_by_tokens(text, 30, char_measure)
        assert cr.chunks[0] == "Short one."
        assert cr.chunks[-1] == "Tail."

    def test_irreducible_word_kept(self):
        cr = chunk_by_tokens("supercalifragilisticexpialidocious", 10, char_measure)
        assert cr.chunks == ["supercalifragilisticexpialidocious."]

    def test_coverage_in_order(self):
        text = "Alpha beta. Gamma delta epsilon! Zeta eta theta iota kappa lambda mu nu? Xi."
        cr = chunk_by_tokens(text, 25, char_measure)
        expected = [w for w in re.split(r"[\s.?!;]+", text) if w]
        assert words_of(cr.chunks) == expected

    def test_idempotent(self):
        text = "First. Second sentence here? Third!"
        assert chunk_by_tokens(text, 20, char_measure).chunks == chunk_by_tokens(text, 20, char_measure).chunks

    def test_no_empty_chunks(self):
        cr = chunk_by_tokens("a.. b;; c!!", 5, char_measure)
        assert all(c.strip() for c in cr.chunks)


class TestChunkByWords:

    def test_short_sentences_whole(self):
        cr = chunk_by_words("Hello there. How are you? Fine!", 5)
        assert cr.chunks == ["Hello there.", "How are you?", "Fine!"]

    def test_long_sentence_split_at_clauses(self):
        text = "One two three, four five six; seven eight: nine ten eleven."
        cr = chunk_by_words(text, 4)
        assert cr.chunks == ["One two three,", "four five six;", "seven eight:", "nine ten eleven"]
        assert all(len(c.split()) <= 4 for c in cr.chunks)

    def test_clauses_packed(self):
        text = "a b, c d, e f, g h."
        cr = chunk_by_words(text, 4)
        assert cr.chunks == ["a b, c d,", "e f, g h"]

    def test_no_sentence_falls_back_to_word_buckets(self):
        cr = chunk_by_words("!?", 3)
        assert cr.chunks == ["!?"]

    def test_empty(self):
        assert chunk_by_words("   ", 3).chunks == []
