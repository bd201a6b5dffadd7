"""
fetchcore.validation
~~~~~~~~~~~~~~~~~~~~
Shape checks for user-typed option values.
Pure functions — the argument builder drops anything these reject.
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from urllib.parse import urlparse

_RATE_LIMIT_RE = re.compile(r"^\d+(\.\d+)?[KMG]?$", re.IGNORECASE | re.ASCII)
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")

URL_SCHEMES: frozenset[str] = frozenset({"http", "https", "ftp", "ftps"})
PROXY_SCHEMES: frozenset[str] = frozenset({"http", "https", "socks4", "socks5", "socks5h"})


def is_numeric(value: str) -> bool:
    return bool(value) and value.isascii() and value.isdigit()


def is_positive_integer(value: str) -> bool:
    return is_numeric(value) and int(value) > 0


def _int_in_range(value: str, low: int, high: int) -> bool:
    if not is_numeric(value):
        return False
    return low <= int(value) <= high


def is_valid_audio_quality(value: str) -> bool:
    """Bitrate in kbps, 32 – 320."""
    return _int_in_range(value, 32, 320)


def is_valid_max_downloads(value: str) -> bool:
    return _int_in_range(value, 1, 1000)


def is_valid_retries(value: str) -> bool:
    return _int_in_range(value, 0, 100)


def is_valid_rate_limit(value: str) -> bool:
    """e.g. "500K", "1.5M", "2G", "1000"."""
    return bool(_RATE_LIMIT_RE.match(value))


def is_valid_user_agent(value: str) -> bool:
    return bool(value.strip()) and not _CONTROL_CHARS_RE.search(value)


def is_valid_url(value: str, schemes: frozenset[str] = URL_SCHEMES) -> bool:
    value = value.strip()
    if not value:
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme.lower() in schemes and bool(parsed.hostname)


def is_valid_proxy(value: str) -> bool:
    return is_valid_url(value, PROXY_SCHEMES)


def allowed_roots() -> list[Path]:
    """Directories an output folder may live under."""
    return [
        Path.home(),
        Path(tempfile.gettempdir()).resolve(),
        Path("/Volumes"),
        Path("/media"),
        Path("/mnt"),
    ]


def is_valid_path(path: str) -> bool:
    """
    Reject traversal and anything outside the allowed roots.
    The empty string is valid: it means "use the default".
    """
    if not path:
        return True
    if ".." in Path(path).parts:
        return False

    expanded = Path(os.path.expanduser(path))
    if not expanded.is_absolute():
        return False

    for root in allowed_roots():
        try:
            expanded.relative_to(root)
            return True
        except ValueError:
            continue
    return False
