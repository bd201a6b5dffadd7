"""
fetchcore.subtitles
~~~~~~~~~~~~~~~~~~~
Turns an .srt / .vtt file into a plain .txt transcript.
"""

from __future__ import annotations

import re
from pathlib import Path

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset({".srt", ".vtt"})

_HEADER_PREFIXES = ("WEBVTT", "NOTE", "STYLE", "REGION", "Kind:", "Language:")
_TAG_RE      = re.compile(r"<[^>]*>")
_OVERRIDE_RE = re.compile(r"\{[^}]*\}")
_INDEX_RE    = re.compile(r"^\d+$")
_SPACE_RE    = re.compile(r"\s+")

_ENTITIES: dict[str, str] = {
    "&lt;":   "<",
    "&gt;":   ">",
    "&quot;": '"',
    "&#39;":  "'",
    "&apos;": "'",
    "&nbsp;": " ",
    "&amp;":  "&",
}

# LRM, RLM, LRE..RLO embeddings/overrides, LRI..PDI isolates
_BIDI_CONTROLS = dict.fromkeys(
    [0x200E, 0x200F, *range(0x202A, 0x202F), *range(0x2066, 0x206A)]
)


def subtitle_to_text(contents: str) -> str:
    """
    Keep only the spoken text: no headers, cue numbers, timings or markup.
    Consecutive duplicate fragments (rolling auto-captions) are collapsed.
    """
    fragments: list[str] = []
    for raw in contents.splitlines():
        line = raw.strip().lstrip("\ufeff")
        if not line:
            continue
        if line.startswith(_HEADER_PREFIXES):
            continue
        if "-->" in line or _INDEX_RE.match(line):
            continue

        line = _TAG_RE.sub("", line)
        line = _OVERRIDE_RE.sub("", line)
        for entity, replacement in _ENTITIES.items():
            line = line.replace(entity, replacement)
        line = line.translate(_BIDI_CONTROLS)
        line = _SPACE_RE.sub(" ", line).strip()

        if line and (not fragments or fragments[-1] != line):
            fragments.append(line)

    return " ".join(fragments)


def convert_to_plaintext(path: str) -> str | None:
    """
    Write `<stem>.txt` next to *path* and remove the original.
    Returns the new path, or None if the file was left untouched.
    Never raises: a failed conversion keeps the original subtitle.
    """
    source = Path(path)
    if source.suffix.lower() not in SUPPORTED_EXTENSIONS:
        print(f"[SUBS] Plain text conversion not supported for {source.name}")
        return None

    target = source.with_suffix(".txt")
    try:
        text = source.read_bytes().decode("utf-8", errors="replace")
        target.write_text(subtitle_to_text(text) + "\n", encoding="utf-8")
        source.unlink()
    except OSError as exc:
        print(f"[SUBS] Failed to convert {source.name} to text: {exc}")
        return None

    print(f"[SUBS] Converted subtitles to text: {target}")
    return str(target)
