"""Tag extraction and line classification for OFX 1.x SGML bodies.

The loader puts a line break before every ``<``, so each line holds one
of: a bare opening tag, a bare closing tag, an opening tag followed by
leaf text, or nothing useful at all.
"""

from __future__ import annotations

import enum
import re
from typing import Iterable, NamedTuple

DEFAULT_EMPTY_LEAF_TAGS = ("MEMO",)

# <NAME> or </NAME> alone on a line
BARE_TAG_RE = re.compile(r'^<(/?[A-Za-z0-9.]+)>$')


class LineKind(enum.Enum):
    OPEN = "open"
    CLOSE = "close"
    LEAF = "leaf"
    BLANK = "blank"


class LineToken(NamedTuple):
    kind: LineKind
    name: str = ""
    text: str = ""


BLANK = LineToken(LineKind.BLANK)


def extract_tag_name(line: str) -> str:
    """Return the tag name of a line starting with ``<``.

    The name is whatever sits between the first character and the first
    ``>``, with a closing-tag ``/`` stripped. Lines without ``>`` have no
    name and yield "".
    """
    end = line.find(">")
    if end == -1:
        return ""
    return line[1:end].lstrip("/")


def classify_line(
    line: str, empty_leaf_tags: Iterable[str] = DEFAULT_EMPTY_LEAF_TAGS
) -> LineToken:
    """Classify one raw body line.

    Only short fragments (``<>``, a stray ``\\r``) are BLANK. A longer
    whitespace-only line is an empty LEAF: it repairs to nothing but still
    counts toward the shallow-depth counter in the normalizer.
    """
    stripped = line.strip()
    name = extract_tag_name(stripped)
    if len(name) <= 1 and len(line) < 3:
        return BLANK

    match = BARE_TAG_RE.match(stripped)
    if match is None:
        end = stripped.find(">")
        text = stripped[end + 1:] if end != -1 else stripped
        return LineToken(LineKind.LEAF, name, text)

    tag = match.group(1)
    if tag.startswith("/"):
        return LineToken(LineKind.CLOSE, tag[1:])
    if tag in empty_leaf_tags:
        # Known leaf exported with neither content nor closer
        return LineToken(LineKind.LEAF, tag, "")
    return LineToken(LineKind.OPEN, tag)
