"""
Model and voices file discovery.

A data file given as a relative path is looked up in this order:

    1. the path as given (absolute, or relative to the working directory)
    2. ~/.local/share/koko/<file name>
    3. /usr/local/share/koko/<file name>
    4. /usr/share/koko/<file name>

The first existing candidate wins. When none exists the caller gets a
ConfigurationError listing every location tried plus the download URL.
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

from koko_tts.core.config import Defaults
from koko_tts.core.errors import ConfigurationError
from koko_tts.core.logging import debug, get_logger

_LOG = get_logger("koko.locate")

SHARE_DIRS: Sequence[str] = (
    "~/.local/share/koko",
    "/usr/local/share/koko",
    "/usr/share/koko",
)


def candidate_paths(path: str | Path, share_dirs: Sequence[str] = SHARE_DIRS) -> List[Path]:
    """Every location that is checked for ``path``, in priority order."""
    given = Path(path).expanduser()
    candidates = [given]
    for share in share_dirs:
        candidates.append(Path(share).expanduser() / given.name)
    return candidates


def resolve_data_file(path: str | Path, share_dirs: Sequence[str] = SHARE_DIRS) -> Optional[Path]:
    """Return the first existing candidate for ``path``, or None."""
    for candidate in candidate_paths(path, share_dirs):
        debug(_LOG, "data_file_candidate", path=str(candidate))
        if candidate.is_file():
            return candidate
    return None


def require_data_file(
    path: str | Path,
    kind: str,
    url: str,
    share_dirs: Sequence[str] = SHARE_DIRS,
) -> Path:
    """
    Resolve ``path`` or raise ConfigurationError.

    Args:
        path: Configured location.
        kind: "model" or "voices", used in the message.
        url: Where the file can be downloaded from.

    Raises:
        ConfigurationError: If no candidate exists. ``remediation`` holds the
            download URL and the list of searched locations.
    """
    found = resolve_data_file(path, share_dirs)
    if found is not None:
        return found

    searched = candidate_paths(path, share_dirs)
    lines = [f"Download it from: {url}", "and place it in one of:"]
    lines.extend(f"  {p}" for p in searched)
    raise ConfigurationError(
        f"{kind} file not found: {path}",
        remediation="\n".join(lines),
        details={"kind": kind, "searched": [str(p) for p in searched], "url": url},
    )


def require_model_file(path: str | Path) -> Path:
    return require_data_file(path, "model", Defaults.MODEL_URL)


def require_voices_file(path: str | Path) -> Path:
    return require_data_file(path, "voices", Defaults.VOICES_URL)
