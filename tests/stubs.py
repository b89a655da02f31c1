"""Stand-ins for espeak and the ONNX model."""
from __future__ import annotations

import threading
from typing import List

import numpy as np

TABLE_ROWS = 511


def make_table(scale: float) -> np.ndarray:
    """[511, 1, 256] table whose row i is filled with scale * i."""
    rows = np.arange(TABLE_ROWS, dtype=np.float32)[:, None, None] * scale
    return np.broadcast_to(rows, (TABLE_ROWS, 1, 256)).copy()


class StubPhonemizer:
    """Echo the text (ASCII letters and punctuation are valid symbols), repeated ``repeat`` times per char."""

    def __init__(self, repeat: int = 1, fail_on: str | None = None):
        self.repeat = repeat
        self.fail_on = fail_on
        self.calls: List[str] = []
        self.active = 0
        self.max_active = 0
        self._guard = threading.Lock()

    def __call__(self, text: str, language: str) -> str:
        with self._guard:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            self.calls.append(text)
            if self.fail_on is not None and self.fail_on in text:
                raise RuntimeError(f"espeak rejected {text!r}")
            return "".join(ch * self.repeat for ch in text)
        finally:
            with self._guard:
                self.active -= 1


class StubModel:
    """Returns 10 samples per input token, filled with the call number."""

    def __init__(self, fail_on_call: int | None = None, delay: float = 0.0):
        self.calls: List[dict] = []
        self.fail_on_call = fail_on_call
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self._guard = threading.Lock()

    def __call__(self, tokens: np.ndarray, style: np.ndarray, speed: float) -> np.ndarray:
        with self._guard:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                threading.Event().wait(self.delay)
            index = len(self.calls)
            self.calls.append({"tokens": tokens.copy(), "style": style.copy(), "speed": speed})
            if self.fail_on_call is not None and index == self.fail_on_call:
                raise RuntimeError("onnxruntime: invalid input")
            return np.full(tokens.shape[1] * 10, float(index + 1), dtype=np.float32)
        finally:
            with self._guard:
                self.active -= 1


