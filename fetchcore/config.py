"""
fetchcore.config
~~~~~~~~~~~~~~~~
Converts ConfigSnapshot to and from plain dicts, and reads one from a JSON
file for the command-line front end.

Persisting settings is left to whatever UI sits on top; this module never
writes anything. Unknown keys are ignored and values are coerced to the
field's type, so a settings file from an older or newer build still loads.
"""

from __future__ import annotations

import json
from dataclasses import asdict, fields
from pathlib import Path

from fetchcore.models import ConfigSnapshot

_TRUE_WORDS  = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off", ""}


# ── Public API ────────────────────────────────────────────────────────────────

def snapshot_to_dict(config: ConfigSnapshot) -> dict:
    return asdict(config)


def snapshot_from_dict(d: dict, base: ConfigSnapshot | None = None) -> ConfigSnapshot:
    """
    Build a snapshot from *d*, starting from *base* (defaults if None).
    Values that can't be coerced keep the base value.
    """
    base = base or ConfigSnapshot()
    values = asdict(base)
    for f in fields(ConfigSnapshot):
        if f.name not in d:
            continue
        coerced = _coerce(d[f.name], values[f.name])
        if coerced is None:
            print(f"[CONFIG] Ignoring bad value for {f.name!r}: {d[f.name]!r}")
            continue
        values[f.name] = coerced
    return ConfigSnapshot(**values)


def load_snapshot_file(path: str | Path, base: ConfigSnapshot | None = None) -> ConfigSnapshot:
    """
    Read a JSON object from *path* into a snapshot.
    Raises OSError / ValueError so the caller can report a bad file.
    """
    payload = json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"{path}: expected a JSON object, got {type(payload).__name__}")
    return snapshot_from_dict(payload, base)


# ── Coercion ──────────────────────────────────────────────────────────────────

def _coerce(value, current):
    if isinstance(current, bool):
        return _to_bool(value)
    if isinstance(current, str):
        if value is None:
            return ""
        if isinstance(value, bool):
            return None
        if isinstance(value, (str, int, float)):
            return str(value)
        return None
    return value


def _to_bool(value) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return None
