"""Repair rules for OFX 1.x leaf elements that were never closed.

Each rule handles one exporter quirk and can be tested on its own.
Rules see one stripped line; the first rule that returns a string wins.
"""

from __future__ import annotations

import re
from typing import Iterable, Protocol

from .tags import DEFAULT_EMPTY_LEAF_TAGS

# Characters accepted as leaf text: word characters (accented letters and
# digits included) plus the punctuation seen in memos and payee names.
LEAF_TEXT_CHARS = r"\w .\-+,;:\[\]'&/\\*(){|}!£$?=@€#%±§~`\""

UNCLOSED_LEAF_RE = re.compile(rf"<([A-Za-z0-9.]+)>([{LEAF_TEXT_CHARS}]+)$")


class RepairRule(Protocol):
    def apply(self, line: str) -> str | None:
        """Return the repaired line, or None if the rule does not apply."""


class EmptyLeafRule:
    """``<MEMO>`` with nothing after it becomes ``<MEMO></MEMO>``.

    Some banks emit empty memo fields as a bare opening tag with no text
    and no closer.
    """

    def __init__(self, tags: Iterable[str] = DEFAULT_EMPTY_LEAF_TAGS):
        self.tags = tuple(tags)
        names = "|".join(re.escape(t) for t in self.tags)
        self._pattern = re.compile(rf"<({names})>$") if self.tags else None

    def apply(self, line: str) -> str | None:
        if self._pattern is None:
            return None
        match = self._pattern.search(line)
        if match is None:
            return None
        tag = match.group(1)
        return f"<{tag}></{tag}>"


class UnclosedLeafRule:
    """``<TAG>text`` becomes ``<TAG>text</TAG>``.

    Matches: <SOMETHING>blah
    Does not match: <SOMETHING>
    Does not match: <SOMETHING>blah</SOMETHING>
    """

    def apply(self, line: str) -> str | None:
        match = UNCLOSED_LEAF_RE.search(line)
        if match is None:
            return None
        tag, text = match.group(1), match.group(2)
        return f"<{tag}>{text}</{tag}>"


def build_rules(empty_leaf_tags: Iterable[str] = DEFAULT_EMPTY_LEAF_TAGS) -> tuple[RepairRule, ...]:
    return (EmptyLeafRule(empty_leaf_tags), UnclosedLeafRule())


DEFAULT_RULES = build_rules()


def close_if_needed(line: str, rules: Iterable[RepairRule] = DEFAULT_RULES) -> str:
    """Close a leaf element left open on a single line.

    Bare opening tags, bare closing tags and leaves that are already
    closed come back unchanged (stripped).
    """
    line = line.strip()
    for rule in rules:
        repaired = rule.apply(line)
        if repaired is not None:
            return repaired
    return line
