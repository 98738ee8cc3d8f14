"""OFX document loader: the single entry point for OFX 1.x and 2.x files.

    raw bytes/text → decode → one tag per line → header/body split
        → (1.x only) SGML normalization → ElementTree parse

OFX 2.x files (<?xml / <?OFX header) are already XML and skip the
normalizer. Everything else is treated as OFX 1.x SGML.
"""

from __future__ import annotations

import logging
import os
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from .base import (
    DEFAULT_ENCODINGS,
    Diagnostic,
    FileTooLargeError,
    MalformedMarkupError,
    NotFoundError,
    ParsedDocument,
    decode_content,
    strip_bom,
)
from .header import is_xml_header, parse_header
from .sgml import SgmlNormalizer
from .tags import DEFAULT_EMPTY_LEAF_TAGS

if TYPE_CHECKING:
    from ofxmend.config import Config

logger = logging.getLogger(__name__)

# 50 MB; statements are a few hundred KB at most
MAX_FILE_SIZE = 50 * 1024 * 1024

OFX_ROOT_RE = re.compile(r'<OFX>', re.IGNORECASE)

# DOCTYPE may reference external entities; ElementTree never needs it
DOCTYPE_RE = re.compile(r'<!DOCTYPE\s+[^>]*>', re.IGNORECASE | re.DOTALL)

OFX2_HEADER_KEYS = ("OFXHEADER", "VERSION", "SECURITY", "OLDFILEUID", "NEWFILEUID")


class OfxLoader:
    """Load OFX documents from files or in-memory content.

    Args:
        empty_leaf_tags: Tags repaired to empty elements when left bare.
        encodings: Encodings tried, in order, on raw bytes.
        max_file_size: Largest file accepted by load_file(), in bytes.
            0 disables the check.
    """

    def __init__(
        self,
        empty_leaf_tags: Iterable[str] = DEFAULT_EMPTY_LEAF_TAGS,
        encodings: Iterable[str] = DEFAULT_ENCODINGS,
        max_file_size: int = MAX_FILE_SIZE,
    ):
        self.normalizer = SgmlNormalizer(empty_leaf_tags)
        self.encodings = tuple(encodings)
        self.max_file_size = max_file_size

    @classmethod
    def from_config(cls, config: Config) -> OfxLoader:
        return cls(
            empty_leaf_tags=config.empty_leaf_tags,
            encodings=config.encodings,
            max_file_size=config.max_file_size,
        )

    def load(self, source: str | bytes | os.PathLike) -> ParsedDocument:
        """Load from a path or from document content.

        Paths (os.PathLike) are read from disk, bytes are decoded. A str
        is taken as document content when it contains "<", otherwise as
        a path.
        """
        if isinstance(source, os.PathLike):
            return self.load_file(source)
        if isinstance(source, (bytes, bytearray)):
            return self.load_string(source)
        if "<" in source:
            return self.load_string(source)
        return self.load_file(source)

    def load_file(self, file_path: str | os.PathLike) -> ParsedDocument:
        """Read and parse an OFX/QFX file.

        Raises:
            NotFoundError: If the path is not a readable file.
            FileTooLargeError: If the file exceeds max_file_size.
            MalformedMarkupError: If the body cannot be parsed.
            HeaderFormatUnrecognizedError: If the header is unreadable.
        """
        path = Path(file_path)
        if not path.is_file():
            raise NotFoundError(f"OFX file not found: {path}")

        size = path.stat().st_size
        if self.max_file_size and size > self.max_file_size:
            raise FileTooLargeError(
                f"File too large ({size / 1024 / 1024:.1f} MB). "
                f"Maximum allowed is {self.max_file_size / 1024 / 1024:.0f} MB"
            )

        try:
            with open(path, "rb") as f:
                raw = f.read()
        except OSError as e:
            raise NotFoundError(f"OFX file not readable: {path}: {e}") from e

        logger.debug("Read %d bytes from %s", len(raw), path.name)
        return self._parse(decode_content(raw, self.encodings), source_name=path.name)

    def load_string(self, content: str | bytes, source_name: str | None = None) -> ParsedDocument:
        """Parse OFX content already in memory."""
        if isinstance(content, (bytes, bytearray)):
            text = decode_content(bytes(content), self.encodings)
        else:
            text = strip_bom(content)
        return self._parse(text, source_name=source_name)

    def _parse(self, text: str, source_name: str | None) -> ParsedDocument:
        # Many exports put a whole statement on one physical line
        text = text.replace("<", "\n<")

        match = OFX_ROOT_RE.search(text)
        if match is None:
            raise MalformedMarkupError(
                "Content is not an OFX document",
                [Diagnostic(1, 0, "no <OFX> element found")],
            )

        header_text = text[:match.start()].strip()
        body = text[match.start():].strip()

        is_xml = is_xml_header(header_text)
        header = parse_header(header_text, is_xml)

        if is_xml:
            logger.debug("OFX 2.x (XML) document, version %s", header.get("VERSION"))
            markup = DOCTYPE_RE.sub("", body)
        else:
            logger.debug("OFX 1.x (SGML) document, version %s", header.get("VERSION"))
            markup = self.normalizer.normalize(body)

        root = parse_markup(markup)
        _normalize_leaf_text(root)

        doc = ParsedDocument(header=header, root=root, is_xml=is_xml, source_name=source_name)
        logger.info(
            "Loaded %s (OFX %s, %d transactions)",
            source_name or "document", "2.x" if is_xml else "1.x", len(doc.transactions),
        )
        return doc


def parse_markup(markup: str) -> ET.Element:
    """Parse well-formed markup into an element tree.

    Raises:
        MalformedMarkupError: With one diagnostic per parser complaint.
    """
    try:
        root = ET.fromstring(markup)
    except ET.ParseError as e:
        raise MalformedMarkupError(
            "Failed to parse OFX", [_diagnostic_from(e, markup)]
        ) from e

    if root is None or len(root) == 0:
        raise MalformedMarkupError(
            "Parsed document is empty",
            [Diagnostic(1, 0, f"<{getattr(root, 'tag', '')}> has no child elements")],
        )
    return root


def _diagnostic_from(error: ET.ParseError, markup: str) -> Diagnostic:
    line, column = getattr(error, "position", (0, 0))
    lines = markup.split("\n")
    snippet = lines[line - 1] if 0 < line <= len(lines) else ""
    return Diagnostic(line=line, column=column, message=str(error), snippet=snippet)


def _normalize_leaf_text(root: ET.Element) -> None:
    """Strip leaf text; a leaf with no text gets "" rather than None."""
    for el in root.iter():
        if len(el) == 0:
            el.text = (el.text or "").strip()


def render_xml(document: ParsedDocument) -> str:
    """Serialize a parsed document as an OFX 2.x style XML file.

    OFX 1.x input is labelled VERSION 200; SECURITY and the file UIDs are
    carried over from the source header.
    """
    values = {
        "OFXHEADER": "200",
        "VERSION": document.header.get("VERSION", "200") if document.is_xml else "200",
        "SECURITY": document.header.get("SECURITY", "NONE"),
        "OLDFILEUID": document.header.get("OLDFILEUID", "NONE"),
        "NEWFILEUID": document.header.get("NEWFILEUID", "NONE"),
    }
    pi = " ".join(f'{key}="{values[key]}"' for key in OFX2_HEADER_KEYS)
    body = ET.tostring(document.root, encoding="unicode")
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="no"?>\n'
        f"<?OFX {pi}?>\n"
        f"{body}\n"
    )


_default_loader = OfxLoader()


def load(source: str | bytes | os.PathLike) -> ParsedDocument:
    return _default_loader.load(source)


def load_file(file_path: str | os.PathLike) -> ParsedDocument:
    return _default_loader.load_file(file_path)


def load_string(content: str | bytes, source_name: str | None = None) -> ParsedDocument:
    return _default_loader.load_string(content, source_name=source_name)
