"""
Voice Style Tables and Blending.

A voices file (``voices-v1.0.bin``) is an NPZ archive with one array per
voice. Each array has one 256-dim style vector per utterance length in
tokens; the row used for a chunk is picked by the chunk's token count.

Style specs:
    "af_sarah"                  single voice, unknown name -> VoiceNotFound
    "af_sarah.4+af_nicole.6"    blend, weight = digit / 10, not normalized

Inside a blend, components that don't parse as ``name.digit`` or whose name
is unknown are skipped.
"""
from __future__ import annotations

import re
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Tuple, Union

import numpy as np

from koko_tts.core.errors import ConfigurationError, VoiceNotFound
from koko_tts.core.locate import require_voices_file
from koko_tts.core.logging import debug, get_logger, info

_LOG = get_logger("koko.style")

STYLE_DIM = 256

_COMPONENT = re.compile(r"^(?P<name>[^.+]+)\.(?P<digit>\d)$")


@dataclass(frozen=True)
class SingleVoice:
    name: str


@dataclass(frozen=True)
class Blend:
    components: Tuple[Tuple[str, float], ...]


StyleSpec = Union[SingleVoice, Blend]


def parse_style(spec: str) -> StyleSpec:
    """
    Parse a style string.

    >>> parse_style("af_sarah")
    SingleVoice(name='af_sarah')
    >>> parse_style("af_sarah.4+bogus+af_nicole.6").components
    (('af_sarah', 0.4), ('af_nicole', 0.6))
    """
    spec = spec.strip()
    if "+" not in spec:
        return SingleVoice(spec)

    components: List[Tuple[str, float]] = []
    for part in spec.split("+"):
        match = _COMPONENT.match(part.strip())
        if match is None:
            debug(_LOG, "blend_component_skipped", component=part, reason="format")
            continue
        components.append((match.group("name"), int(match.group("digit")) / 10))
    return Blend(tuple(components))


class StyleStore:
    """
    Read-only voice name -> style table mapping.

    Built once per engine and never mutated afterwards.
    """

    def __init__(self, tables: Mapping[str, np.ndarray]):
        self._tables: Dict[str, np.ndarray] = {
            name: np.asarray(table, dtype=np.float32).reshape(-1, STYLE_DIM)
            for name, table in tables.items()
        }

    @classmethod
    def load(cls, path: str | Path) -> "StyleStore":
        """
        Load an NPZ voices file.

        Raises:
            ConfigurationError: If the file is missing or can't be parsed.
        """
        resolved = require_voices_file(path)
        try:
            with np.load(resolved, allow_pickle=False) as archive:
                tables = {name: archive[name] for name in archive.files}
            store = cls(tables)
        except (OSError, ValueError, KeyError, zipfile.BadZipFile) as exc:
            raise ConfigurationError(
                f"voices file could not be read: {resolved}",
                remediation=f"Re-download it: {exc}",
                details={"path": str(resolved)},
            ) from exc

        if not store._tables:
            raise ConfigurationError(f"voices file contains no voices: {resolved}")
        info(_LOG, "voices_loaded", path=str(resolved), voices=len(store._tables))
        return store

    def voices(self) -> List[str]:
        return sorted(self._tables)

    def __contains__(self, name: object) -> bool:
        return name in self._tables

    def _row(self, name: str, token_count: int) -> np.ndarray:
        table = self._tables[name]
        index = min(max(token_count, 0), len(table) - 1)
        return table[index]

    def mix(self, spec: str | StyleSpec, token_count: int) -> np.ndarray:
        """
        Resolve ``spec`` into one float32 [256] style vector.

        Args:
            spec: Style string or an already parsed StyleSpec.
            token_count: Pre-padding token count of the chunk. Counts past the
                end of a table use its last row.

        Raises:
            VoiceNotFound: For an unknown single voice.
        """
        parsed = parse_style(spec) if isinstance(spec, str) else spec

        if isinstance(parsed, SingleVoice):
            if parsed.name not in self._tables:
                raise VoiceNotFound(parsed.name)
            return self._row(parsed.name, token_count).copy()

        style = np.zeros(STYLE_DIM, dtype=np.float32)
        for name, weight in parsed.components:
            if name not in self._tables:
                debug(_LOG, "blend_component_skipped", component=name, reason="unknown")
                continue
            style += np.float32(weight) * self._row(name, token_count)
        return style
