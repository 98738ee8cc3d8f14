"""OFX 1.x SGML to XML normalizer.

Handles:
- Leaf tags with no closer (<TRNAMT>-42.50)
- Leaf tags with a closer on the next line (<NAME>SHOP then </NAME>)
- Empty memo fields exported as a bare <MEMO>
- Stray closing tags that match nothing, and missing closers deeper in
  the tree

Works line by line. The loader has already put every ``<`` at the start
of a line, so each line is one tag, or one tag plus its leaf text.
The output is meant for xml.etree; whether it is actually well formed
is for the tree parser to decide.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import Iterable

from .repair import build_rules, close_if_needed
from .tags import DEFAULT_EMPTY_LEAF_TAGS, LineKind, classify_line, extract_tag_name

logger = logging.getLogger(__name__)

# & that does not already start an entity reference
BARE_AMPERSAND_RE = re.compile(r'&(?!#?[a-z0-9]+;)')

BLANK_RUN_RE = re.compile(r'\n{2,}')


class FrameStatus(enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class TagFrame:
    line_index: int
    name: str
    status: FrameStatus = FrameStatus.OPEN


class TagStack:
    """Ordered list of elements opened so far and not yet resolved."""

    def __init__(self):
        self._frames: list[TagFrame] = []

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self):
        return iter(self._frames)

    def push(self, frame: TagFrame) -> None:
        self._frames.append(frame)

    def resolve(self, name: str) -> TagFrame | None:
        """Pop frames down to the nearest frame named ``name`` and return it.

        Frames above the match are discarded; they belong to elements whose
        closers were omitted. If no frame has that name the stack is left
        as it is and None is returned.
        """
        for pos in range(len(self._frames) - 1, -1, -1):
            if self._frames[pos].name == name:
                frame = self._frames[pos]
                discarded = len(self._frames) - pos - 1
                if discarded:
                    logger.debug(
                        "Closing </%s> discards %d unclosed frame(s)", name, discarded,
                    )
                del self._frames[pos:]
                return frame
        return None


class SgmlNormalizer:
    """Turn an OFX 1.x body into strictly nested XML.

    Args:
        empty_leaf_tags: Tags that may appear bare (``<MEMO>``) and must be
            treated as empty leaf elements.
    """

    def __init__(self, empty_leaf_tags: Iterable[str] = DEFAULT_EMPTY_LEAF_TAGS):
        self.empty_leaf_tags = frozenset(empty_leaf_tags)
        self.rules = build_rules(sorted(self.empty_leaf_tags))

    def normalize(self, body: str) -> str:
        body = BARE_AMPERSAND_RE.sub("&amp;", body)
        lines = body.split("\n")

        stack = TagStack()
        # Leaves seen since the last collapsed closer
        depth = 0

        for index, line in enumerate(lines):
            token = classify_line(line, self.empty_leaf_tags)

            if token.kind is LineKind.BLANK:
                lines[index] = ""
                continue

            if token.kind is LineKind.LEAF:
                lines[index] = close_if_needed(line, self.rules)
                stack.push(TagFrame(index, token.name, FrameStatus.CLOSED))
                depth += 1
                continue

            if token.kind is LineKind.OPEN:
                stack.push(TagFrame(index, token.name, FrameStatus.OPEN))
                continue

            frame = stack.resolve(token.name)
            if frame is None:
                logger.debug("Dropping </%s> on line %d: nothing to close", token.name, index + 1)
                lines[index] = ""
                continue

            if frame.status is FrameStatus.CLOSED:
                # The repair already closed this leaf
                lines[index] = ""

            if depth == 1:
                previous = lines[index - 1] if index > 0 else ""
                if extract_tag_name(lines[index].strip()) == extract_tag_name(previous.strip()):
                    lines[index] = ""
                    depth = 0

        if len(stack):
            logger.debug(
                "%d element(s) never closed: %s",
                len(stack), ", ".join(f.name for f in stack),
            )

        text = "\n".join(line.strip() for line in lines)
        return BLANK_RUN_RE.sub("\n", text).strip()


def normalize(body: str, empty_leaf_tags: Iterable[str] = DEFAULT_EMPTY_LEAF_TAGS) -> str:
    """Convert an OFX 1.x SGML body into an XML string."""
    return SgmlNormalizer(empty_leaf_tags).normalize(body)
