"""
fetchcore.paths
~~~~~~~~~~~~~~~
Single source of truth for filesystem locations used across the engine,
and the resolver that turns "yt-dlp" / "ffmpeg" into an absolute path.

The engine only ever asks a resolver for "an executable path or None";
installation and discovery policy belong to whoever supplies the resolver.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Protocol

from fetchcore.errors import ToolNotFoundError

FETCHER_NAME    = "yt-dlp"
TRANSCODER_NAME = "ffmpeg"
PROBE_NAME      = "ffprobe"

DEFAULT_OUTPUT_DIR = "~/Downloads"

# Checked after $PATH, in this order
CANDIDATE_DIRS: tuple[str, ...] = (
    "/opt/homebrew/bin",   # Apple Silicon Homebrew
    "/usr/local/bin",
    "/usr/bin",
)


def temp_dir() -> Path:
    return Path(tempfile.gettempdir())


def default_output_dir() -> Path:
    return Path(os.path.expanduser(DEFAULT_OUTPUT_DIR))


def expand_path(path: str) -> str:
    return os.path.expanduser(path)


# ── Executable validation ─────────────────────────────────────────────────────

def executable_errors(path: str | Path) -> list[str]:
    """
    Return a list of error strings if *path* is not a usable executable.
    Empty list means all good.
    """
    errors: list[str] = []
    binary = Path(path)
    if not binary.exists():
        errors.append(f"Binary not found: {binary}")
    elif not binary.is_file():
        errors.append(f"Not a file: {binary}")
    elif not os.access(binary, os.X_OK):
        errors.append(f"Not executable: {binary}")
    return errors


def require_executable(path: str | None, name: str) -> str:
    """Return *path* unchanged or raise ToolNotFoundError."""
    if not path:
        raise ToolNotFoundError(f"{name} not found")
    errors = executable_errors(path)
    if errors:
        raise ToolNotFoundError("; ".join(errors))
    return path


def probe_path_for(transcoder_path: str) -> str:
    """ffprobe lives next to ffmpeg and shares its naming."""
    p = Path(transcoder_path)
    return str(p.with_name(p.name.replace(TRANSCODER_NAME, PROBE_NAME)))


# ── Resolver interface ────────────────────────────────────────────────────────

class ExecutableResolver(Protocol):
    def fetcher(self, override: str = "") -> str | None: ...
    def transcoder(self, override: str = "") -> str | None: ...


class DefaultResolver:
    """
    Explicit override first, then $PATH, then CANDIDATE_DIRS.
    Overrides are tilde-expanded and returned as-is even if they don't
    exist, so the caller reports the path the user actually typed.
    """

    def __init__(self, candidate_dirs: tuple[str, ...] = CANDIDATE_DIRS):
        self._candidate_dirs = candidate_dirs

    def fetcher(self, override: str = "") -> str | None:
        return self._resolve(FETCHER_NAME, override)

    def transcoder(self, override: str = "") -> str | None:
        return self._resolve(TRANSCODER_NAME, override)

    def _resolve(self, name: str, override: str) -> str | None:
        if override.strip():
            return expand_path(override.strip())

        found = shutil.which(name)
        if found:
            return found

        for directory in self._candidate_dirs:
            candidate = Path(directory) / name
            if candidate.is_file():
                print(f"[PATHS] Found {name} at: {candidate}")
                return str(candidate)

        print(f"[PATHS] {name} not found in any standard location")
        return None
