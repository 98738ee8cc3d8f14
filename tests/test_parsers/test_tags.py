"""Tests for parsers.tags — tag name extraction and line classification."""

from ofxmend.parsers.tags import (
    LineKind,
    LineToken,
    classify_line,
    extract_tag_name,
)


class TestExtractTagName:
    def test_opening_tag(self):
        assert extract_tag_name("<STMTTRN>") == "STMTTRN"

    def test_closing_tag_slash_stripped(self):
        assert extract_tag_name("</STMTTRN>") == "STMTTRN"

    def test_tag_with_leaf_text(self):
        assert extract_tag_name("<TRNAMT>-42.50") == "TRNAMT"

    def test_trailing_carriage_return(self):
        assert extract_tag_name("</BANKTRANLIST>\r") == "BANKTRANLIST"

    def test_dotted_name(self):
        assert extract_tag_name("<INTU.BID>3000") == "INTU.BID"

    def test_degenerate_tag(self):
        assert extract_tag_name("<>") == ""

    def test_no_closing_bracket(self):
        assert extract_tag_name("continued memo text") == ""

    def test_empty_line(self):
        assert extract_tag_name("") == ""


class TestClassifyLine:
    def test_open_tag(self):
        assert classify_line("<BANKTRANLIST>") == LineToken(LineKind.OPEN, "BANKTRANLIST")

    def test_close_tag(self):
        assert classify_line("</BANKTRANLIST>") == LineToken(LineKind.CLOSE, "BANKTRANLIST")

    def test_bare_tag_with_whitespace(self):
        assert classify_line("<OFX>\r").kind is LineKind.OPEN

    def test_leaf_line(self):
        token = classify_line("<NAME>GROCERY STORE")
        assert token == LineToken(LineKind.LEAF, "NAME", "GROCERY STORE")

    def test_bare_memo_is_empty_leaf(self):
        assert classify_line("<MEMO>") == LineToken(LineKind.LEAF, "MEMO", "")

    def test_bare_memo_open_when_not_configured(self):
        assert classify_line("<MEMO>", empty_leaf_tags=()).kind is LineKind.OPEN

    def test_closing_memo_still_close(self):
        assert classify_line("</MEMO>").kind is LineKind.CLOSE

    def test_custom_empty_leaf_tag(self):
        token = classify_line("<NAME>", empty_leaf_tags=("NAME",))
        assert token.kind is LineKind.LEAF

    def test_empty_line_is_blank(self):
        assert classify_line("").kind is LineKind.BLANK

    def test_short_whitespace_line_is_blank(self):
        assert classify_line("  ").kind is LineKind.BLANK

    def test_indentation_line_is_empty_leaf(self):
        assert classify_line("        ") == LineToken(LineKind.LEAF, "", "")

    def test_indented_leaf_named_from_tag(self):
        assert classify_line("  <NAME>SHOP") == LineToken(LineKind.LEAF, "NAME", "SHOP")

    def test_indented_closer(self):
        assert classify_line("    </STATUS>") == LineToken(LineKind.CLOSE, "STATUS")

    def test_degenerate_tag_is_blank(self):
        assert classify_line("<>").kind is LineKind.BLANK

    def test_single_letter_tag_not_blank(self):
        assert classify_line("<A>").kind is LineKind.OPEN

    def test_text_continuation_is_leaf(self):
        token = classify_line("SECOND LINE OF MEMO")
        assert token.kind is LineKind.LEAF
        assert token.name == ""
