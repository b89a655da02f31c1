"""
ONNX Runtime adapter for the Kokoro v1.0 model.

Model signature:
    tokens  int64   [1, seq]   padded token ids
    style   float32 [1, 256]   style vector for this chunk
    speed   float32 [1]
    ->
    audio   float32 [samples]  24 kHz mono

The session itself is not shared between threads; each engine owns one
OnnxInference and serializes calls with its own lock.
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Protocol, Sequence

import numpy as np
import onnxruntime as ort

from koko_tts.core.errors import ConfigurationError
from koko_tts.core.locate import require_model_file
from koko_tts.core.logging import debug, get_logger, info

_LOG = get_logger("koko.inference")


class InferenceFn(Protocol):
    def __call__(self, tokens: np.ndarray, style: np.ndarray, speed: float) -> np.ndarray: ...


def default_providers() -> List[str]:
    """CUDA first when this onnxruntime build has it, CPU always."""
    available = ort.get_available_providers()
    providers = []
    if "CUDAExecutionProvider" in available:
        providers.append("CUDAExecutionProvider")
    providers.append("CPUExecutionProvider")
    return providers


class OnnxInference:
    """
    Kokoro model session.

    Args:
        model_path: ONNX file, located with the standard search order.
        providers: onnxruntime execution providers. Defaults to
            default_providers().

    Raises:
        ConfigurationError: If the file is missing or not a loadable model.
    """

    def __init__(self, model_path: str | Path, providers: Optional[Sequence[str]] = None):
        resolved = require_model_file(model_path)

        options = ort.SessionOptions()
        options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        options.log_severity_level = 2  # warnings and above

        try:
            self._session = ort.InferenceSession(
                str(resolved),
                sess_options=options,
                providers=list(providers or default_providers()),
            )
        except (RuntimeError, OSError) as exc:
            raise ConfigurationError(
                f"model file could not be loaded: {resolved}",
                remediation=f"Re-download it: {exc}",
                details={"path": str(resolved)},
            ) from exc

        self.model_path = resolved
        info(
            _LOG, "model_loaded",
            path=str(resolved),
            providers=",".join(self._session.get_providers()),
            inputs=",".join(i.name for i in self._session.get_inputs()),
        )

    def __call__(self, tokens: np.ndarray, style: np.ndarray, speed: float) -> np.ndarray:
        return self.infer(tokens, style, speed)

    def infer(self, tokens: np.ndarray, style: np.ndarray, speed: float) -> np.ndarray:
        """Run one chunk. Returns flat float32 samples."""
        feeds = {
            "tokens": np.asarray(tokens, dtype=np.int64).reshape(1, -1),
            "style": np.asarray(style, dtype=np.float32).reshape(1, -1),
            "speed": np.array([speed], dtype=np.float32),
        }
        debug(_LOG, "inference_input", tokens_shape=feeds["tokens"].shape, style_shape=feeds["style"].shape)
        (audio,) = self._session.run(["audio"], feeds)
        audio = np.asarray(audio, dtype=np.float32).reshape(-1)
        debug(_LOG, "inference_output", samples=audio.size)
        return audio
