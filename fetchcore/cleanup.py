"""
fetchcore.cleanup
~~~~~~~~~~~~~~~~~
Tracks every temporary file the engine creates (cookie files, staged
transcoder outputs) so they can be removed when a session ends, whatever
way it ends.

Removal failures are cosmetic: logged, never raised.
"""

from __future__ import annotations

import os
import threading
import time
from pathlib import Path

COOKIE_PREFIX = "cookies_"
STALE_AGE_SECONDS = 24 * 60 * 60


class CleanupRegistry:
    """Thread-safe set of paths to delete at session end."""

    def __init__(self):
        self._lock = threading.Lock()
        self._paths: set[str] = set()

    def register(self, path: str) -> None:
        with self._lock:
            self._paths.add(path)

    def discard(self, path: str) -> None:
        """Forget *path* without deleting it (it became a real output)."""
        with self._lock:
            self._paths.discard(path)

    def remove(self, path: str) -> bool:
        """Delete *path* now and stop tracking it."""
        with self._lock:
            self._paths.discard(path)
        return _unlink_quietly(path)

    def pending(self) -> list[str]:
        with self._lock:
            return sorted(self._paths)

    def cleanup_all(self) -> list[str]:
        """Delete every tracked file. Returns the paths that were removed."""
        with self._lock:
            paths = sorted(self._paths)
            self._paths.clear()

        removed = [p for p in paths if _unlink_quietly(p)]
        if removed:
            print(f"[CLEANUP] Removed {len(removed)} temporary file(s)")
        return removed


def sweep_stale(
    directory: Path,
    prefix: str = COOKIE_PREFIX,
    max_age: float = STALE_AGE_SECONDS,
    now: float | None = None,
) -> list[Path]:
    """
    Remove files named `<prefix>*` in *directory* older than *max_age*.
    Catches leftovers from a session that died before it could clean up.
    """
    if not directory.is_dir():
        return []

    cutoff = (time.time() if now is None else now) - max_age
    removed: list[Path] = []
    for f in directory.iterdir():
        if not f.name.startswith(prefix) or not f.is_file():
            continue
        try:
            if f.stat().st_mtime < cutoff:
                f.unlink()
                removed.append(f)
        except OSError as exc:
            print(f"[CLEANUP] Could not remove stale file {f}: {exc}")

    if removed:
        print(f"[CLEANUP] Swept {len(removed)} stale file(s) from {directory}")
    return removed


def _unlink_quietly(path: str) -> bool:
    try:
        os.unlink(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as exc:
        print(f"[CLEANUP] Could not remove {path}: {exc}")
        return False
