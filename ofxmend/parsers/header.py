"""OFX header block parser.

Two shapes:

OFX 1.x, one KEY:VALUE per line::

    OFXHEADER:100
    DATA:OFXSGML
    VERSION:102

OFX 2.x, KEY="VALUE" pairs inside a processing instruction::

    <?xml version="1.0" encoding="UTF-8"?>
    <?OFX OFXHEADER="200" VERSION="211" SECURITY="NONE"?>

Keys are not validated. A repeated key keeps its last value.
"""

from __future__ import annotations

import re

from .base import HeaderFormatUnrecognizedError

XML_DECLARATION_RE = re.compile(r'<\?xml\b.*?\?>\n?', re.IGNORECASE | re.DOTALL)
OFX_PI_OPEN_RE = re.compile(r'<\?OFX', re.IGNORECASE)
MARKUP_DECLARATION_RE = re.compile(r'<!(?:--.*?--|DOCTYPE[^>]*)>', re.IGNORECASE | re.DOTALL)
LEADING_BLANK_LINES_RE = re.compile(r'^\s*\n', re.MULTILINE)

# KEY="VALUE", KEY='VALUE' or KEY=VALUE; quoted values may hold spaces
HEADER_ATTR_RE = re.compile(r'([^\s="\']+)\s*=\s*(?:"([^"]*)"|\'([^\']*)\'|([^\s"\']*))')


def is_xml_header(header_text: str) -> bool:
    """True for an OFX 2.x header (starts with <?xml or <?OFX)."""
    head = header_text.lstrip().lower()
    return head.startswith("<?xml") or head.startswith("<?ofx")


def parse_header(header_text: str, is_xml_style: bool) -> dict[str, str]:
    """Parse the text preceding <OFX> into an ordered key/value map.

    Raises:
        HeaderFormatUnrecognizedError: If a line or token lacks its
            separator (":" for 1.x, "=" for 2.x).
    """
    text = LEADING_BLANK_LINES_RE.sub("", header_text.strip())
    if is_xml_style:
        return _parse_xml_header(text)
    return _parse_colon_header(text)


def _parse_xml_header(text: str) -> dict[str, str]:
    text = XML_DECLARATION_RE.sub("", text)
    text = MARKUP_DECLARATION_RE.sub("", text)
    text = OFX_PI_OPEN_RE.sub("", text).replace("?>", "")

    leftover = HEADER_ATTR_RE.sub(" ", text).split()
    if leftover:
        raise HeaderFormatUnrecognizedError(
            f"Expected KEY=\"VALUE\" in OFX header, got {leftover[0]!r}"
        )

    header: dict[str, str] = {}
    for match in HEADER_ATTR_RE.finditer(text):
        key, double, single, bare = match.groups()
        header[key] = next(v for v in (double, single, bare) if v is not None)
    return header


def _parse_colon_header(text: str) -> dict[str, str]:
    header: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        key, sep, value = line.partition(":")
        if not sep or not key.strip():
            raise HeaderFormatUnrecognizedError(
                f"Expected KEY:VALUE in OFX header, got {line!r}"
            )
        header[key.strip()] = value.strip()
    return header
