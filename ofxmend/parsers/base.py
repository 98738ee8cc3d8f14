"""Base parser: shared data structures, error taxonomy, and text decoding."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import NamedTuple

logger = logging.getLogger(__name__)

DEFAULT_ENCODINGS = ("utf-8-sig", "cp1252")

# Decodes every byte sequence, used when all configured encodings fail
LAST_RESORT_ENCODING = "latin-1"


@dataclass(frozen=True)
class Diagnostic:
    """One complaint reported by the tree parser."""
    line: int
    column: int
    message: str
    snippet: str = ""

    def __str__(self) -> str:
        text = f"line {self.line}, column {self.column}: {self.message}"
        if self.snippet:
            text += f" ({self.snippet!r})"
        return text


class Institution(NamedTuple):
    org: str | None
    fid: str | None
    bank_id: str | None


@dataclass
class ParsedDocument:
    """Normalized OFX tree plus its header map.

    Attributes:
        header: Header key/value pairs in document order.
        root: The <OFX> element.
        is_xml: True when the source was OFX 2.x (already XML).
    """
    header: dict[str, str]
    root: ET.Element
    is_xml: bool = False
    source_name: str | None = field(default=None, compare=False)

    @property
    def version(self) -> str | None:
        return self.header.get("VERSION")

    def find_text(self, path: str) -> str | None:
        """Text of the first element matching an ElementTree path, or None."""
        el = self.root.find(path)
        if el is None:
            return None
        return el.text

    @property
    def transactions(self) -> list[ET.Element]:
        return list(self.root.iter("STMTTRN"))

    @property
    def institution(self) -> Institution:
        """Financial institution identifiers from the signon block and account."""
        fi = self.root.find("SIGNONMSGSRSV1/SONRS/FI")
        org = fid = None
        if fi is not None:
            org = _child_text(fi, "ORG")
            fid = _child_text(fi, "FID")
        bank_id = None
        el = self.root.find(".//BANKID")
        if el is not None and el.text:
            bank_id = el.text
        return Institution(org=org, fid=fid, bank_id=bank_id)


def _child_text(parent: ET.Element, tag: str) -> str | None:
    el = parent.find(tag)
    if el is not None and el.text:
        return el.text
    return None


# ── Errors ───────────────────────────────────────────────


class OfxParseError(Exception):
    """Base class for every failure raised while loading an OFX document."""


class NotFoundError(OfxParseError, FileNotFoundError):
    """The supplied path does not resolve to a readable file."""


class FileTooLargeError(OfxParseError):
    """The file exceeds the configured size limit."""


class HeaderFormatUnrecognizedError(OfxParseError):
    """The header block is neither colon style (1.x) nor XML style (2.x)."""


class MalformedMarkupError(OfxParseError):
    """The body could not be parsed into a tree, even after normalization.

    Attributes:
        diagnostics: Parser complaints with line/column positions.
    """

    def __init__(self, message: str, diagnostics: list[Diagnostic] | None = None):
        super().__init__(message)
        self.diagnostics: list[Diagnostic] = list(diagnostics or [])

    def __str__(self) -> str:
        base = super().__str__()
        if not self.diagnostics:
            return base
        details = "; ".join(str(d) for d in self.diagnostics)
        return f"{base}: {details}"


# ── Text decoding ────────────────────────────────────────


def decode_content(raw: bytes, encodings: tuple[str, ...] | list[str] = DEFAULT_ENCODINGS) -> str:
    """Decode raw file bytes into text.

    Tries each encoding strictly, in order, then falls back to latin-1,
    which cannot fail.
    """
    for encoding in encodings:
        try:
            return strip_bom(raw.decode(encoding))
        except UnicodeDecodeError:
            continue
    logger.warning(
        "Content is not valid in any of %s; decoding as %s",
        ", ".join(encodings), LAST_RESORT_ENCODING,
    )
    return strip_bom(raw.decode(LAST_RESORT_ENCODING))


def strip_bom(text: str) -> str:
    return text.lstrip("\ufeff")
