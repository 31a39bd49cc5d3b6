# text.py
# Source preprocessing helpers: comment stripping and quote-aware splitting.
from __future__ import annotations

from typing import List, Tuple


def uncomment(source: str, marker: str = "#") -> List[str]:
    """
    Strip comments from Hayfile source and return its logical lines.

    A comment runs from an unescaped marker to the end of the line. `\\#`
    keeps a literal marker. One entry is returned per physical line so that
    list index + 1 is always the source line number.
    """
    lines: List[str] = []
    escaped = "\\" + marker

    for raw in source.splitlines():
        if raw.startswith("\t"):
            # recipe commands belong to the shell, comments included
            lines.append(raw.rstrip())
            continue

        out: List[str] = []
        i = 0
        while i < len(raw):
            if raw.startswith(escaped, i):
                out.append(marker)
                i += len(escaped)
                continue
            if raw.startswith(marker, i):
                break
            out.append(raw[i])
            i += 1
        lines.append("".join(out).rstrip())

    return lines


def split_when_balanced_with_offsets(text: str, sep: str = " ", quote: str = "'") -> List[Tuple[int, str]]:
    """
    Split `text` on `sep`, ignoring separators inside `quote` pairs.

    Returns (offset, piece) pairs where offset is the column of the piece in
    `text`. Empty pieces (runs of separators) are dropped. Quotes are kept;
    see `unquote`.
    """
    pieces: List[Tuple[int, str]] = []
    start = 0
    inside = False

    for i, ch in enumerate(text):
        if ch == quote:
            inside = not inside
        elif ch == sep and not inside:
            if i > start:
                pieces.append((start, text[start:i]))
            start = i + 1

    if start < len(text):
        pieces.append((start, text[start:]))

    return pieces


def unquote(piece: str, quote: str = "'") -> str:
    return piece.replace(quote, "")


def find_unescaped(text: str, ch: str) -> int:
    """Index of the first `ch` not preceded by a backslash, or -1."""
    i = text.find(ch)
    while i != -1:
        if i == 0 or text[i - 1] != "\\":
            return i
        i = text.find(ch, i + 1)
    return -1


def split_unescaped(text: str, ch: str) -> List[str]:
    """Split on every unescaped `ch`; escaped ones are unescaped in the result."""
    parts: List[str] = []
    current: List[str] = []
    i = 0
    while i < len(text):
        if text[i] == "\\" and text.startswith(ch, i + 1):
            current.append(ch)
            i += 1 + len(ch)
            continue
        if text.startswith(ch, i):
            parts.append("".join(current))
            current = []
            i += len(ch)
            continue
        current.append(text[i])
        i += 1
    parts.append("".join(current))
    return parts
