"""
Audio Buffers and WAV Output.

All audio inside koko is float32 mono at 24000 Hz. Stereo only exists at the
output boundary, where each sample is duplicated into both channels.

Output formats:
    - WAV files / bytes: 32-bit IEEE float, written with soundfile
    - streaming: an open-ended WAV header (sizes set to 0xFFFFFFFF, since the
      final length is unknown) followed by raw little-endian float32 frames

Example:
    >>> buf = AudioBuffer()
    >>> buf.extend(np.zeros(24000, dtype=np.float32))
    >>> buf.duration_s
    1.0
    >>> write_wav("tmp/output.wav", buf.samples, 24000, mono=False)
"""
from __future__ import annotations

import io
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional

import numpy as np
import soundfile as sf

from koko_tts.core.config import Defaults
from koko_tts.core.logging import get_logger, verbose
from koko_tts.utils.timeit import timeit

_LOG = get_logger("koko.audio")


class AudioBuffer:
    """
    Growable float32 mono sample buffer.

    Chunks are kept as a list and joined once, on the first read of
    ``samples`` after an extend().
    """

    def __init__(self, samples: Optional[np.ndarray] = None, sample_rate: int = Defaults.SAMPLE_RATE):
        self.sample_rate = sample_rate
        self._parts: List[np.ndarray] = []
        self._size = 0
        if samples is not None:
            self.extend(samples)

    def extend(self, chunk: np.ndarray) -> None:
        chunk = np.asarray(chunk, dtype=np.float32).reshape(-1)
        self._parts.append(chunk)
        self._size += chunk.size

    @property
    def samples(self) -> np.ndarray:
        if not self._parts:
            return np.zeros(0, dtype=np.float32)
        if len(self._parts) > 1:
            self._parts = [np.concatenate(self._parts)]
        return self._parts[0]

    def __len__(self) -> int:
        return self._size

    @property
    def duration_s(self) -> float:
        return self._size / float(self.sample_rate)


def to_frames(samples: np.ndarray, mono: bool) -> np.ndarray:
    """Shape samples for output: [n] for mono, [n, 2] duplicated for stereo."""
    wav = np.asarray(samples, dtype=np.float32).reshape(-1)
    if mono:
        return wav
    return np.repeat(wav[:, None], 2, axis=1)


def write_wav(path: str | Path, samples: np.ndarray, sample_rate: int = Defaults.SAMPLE_RATE, mono: bool = False) -> Path:
    """
    Write a 32-bit float WAV file, creating parent directories.

    I/O errors propagate to the caller.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with timeit("wav_write") as t:
        sf.write(str(path), to_frames(samples, mono), sample_rate, format="WAV", subtype="FLOAT")
    verbose(_LOG, "wav_written", path=str(path), samples=int(np.size(samples)), mono=mono, seconds=round(t.timing.seconds, 4))
    return path


def wav_bytes(samples: np.ndarray, sample_rate: int = Defaults.SAMPLE_RATE, mono: bool = True) -> tuple[bytes, Dict[str, float]]:
    """Encode samples as an in-memory 32-bit float WAV. Returns (bytes, timings)."""
    timings: Dict[str, float] = {}
    with timeit("wav_encode") as t:
        buf = io.BytesIO()
        sf.write(buf, to_frames(samples, mono), sample_rate, format="WAV", subtype="FLOAT")
        out = buf.getvalue()
    timings["wav_encode"] = t.timing.seconds if t.timing else -1.0
    verbose(_LOG, "wav_encoded", bytes=len(out), sr=sample_rate, seconds=round(timings["wav_encode"], 4))
    return out, timings


def pcm_bytes(samples: np.ndarray, mono: bool = True) -> bytes:
    """Raw little-endian float32 frames, interleaved when stereo."""
    return to_frames(samples, mono).astype("<f4", copy=False).tobytes()


@dataclass(frozen=True)
class StreamHeader:
    """
    WAV header for a stream of unknown length.

    Only IEEE float 32-bit is produced, matching the frames written by
    write_audio_chunk().
    """
    channels: int = 1
    sample_rate: int = Defaults.SAMPLE_RATE
    bits: int = 32

    def to_bytes(self) -> bytes:
        block_align = self.channels * self.bits // 8
        fmt = struct.pack(
            "<HHIIHH",
            3,  # WAVE_FORMAT_IEEE_FLOAT
            self.channels,
            self.sample_rate,
            self.sample_rate * block_align,
            block_align,
            self.bits,
        )
        return (
            b"RIFF" + struct.pack("<I", 0xFFFFFFFF) + b"WAVE"
            + b"fmt " + struct.pack("<I", len(fmt)) + fmt
            + b"data" + struct.pack("<I", 0xFFFFFFFF)
        )

    def write(self, fp: BinaryIO) -> None:
        fp.write(self.to_bytes())
        fp.flush()


def write_audio_chunk(fp: BinaryIO, samples: np.ndarray, mono: bool = True) -> int:
    """Append one chunk of frames to a stream and flush. Returns bytes written."""
    data = pcm_bytes(samples, mono)
    fp.write(data)
    fp.flush()
    return len(data)
