"""Tests for parsers.repair — unclosed leaf repair rules."""

import pytest

from ofxmend.parsers.repair import (
    EmptyLeafRule,
    UnclosedLeafRule,
    build_rules,
    close_if_needed,
)


class TestEmptyLeafRule:
    def test_bare_memo(self):
        assert EmptyLeafRule().apply("<MEMO>") == "<MEMO></MEMO>"

    def test_memo_with_text_not_matched(self):
        assert EmptyLeafRule().apply("<MEMO>ATM WITHDRAWAL") is None

    def test_other_tag_not_matched(self):
        assert EmptyLeafRule().apply("<NAME>") is None

    def test_configured_tags(self):
        rule = EmptyLeafRule(["NAME", "MEMO"])
        assert rule.apply("<NAME>") == "<NAME></NAME>"

    def test_no_tags_never_matches(self):
        assert EmptyLeafRule([]).apply("<MEMO>") is None


class TestUnclosedLeafRule:
    def test_closes_leaf(self):
        assert UnclosedLeafRule().apply("<TRNAMT>-42.50") == "<TRNAMT>-42.50</TRNAMT>"

    def test_bare_tag_not_matched(self):
        assert UnclosedLeafRule().apply("<STMTTRN>") is None

    def test_closed_leaf_not_matched(self):
        assert UnclosedLeafRule().apply("<NAME>SHOP</NAME>") is None

    def test_closing_tag_not_matched(self):
        assert UnclosedLeafRule().apply("</STMTTRN>") is None


class TestCloseIfNeeded:
    @pytest.mark.parametrize("text", [
        "GROCERY STORE",
        "20260115120000.000[-7:MST]",
        "DOORDASH*ORDER 99999",
        "PAYPAL *EBAY (REF #123)",
        "Café Crème & Co; \"Dépôt\" 5€",
        "O'REILLY AUTO/PARTS",
        "50% OFF @ STORE! {PROMO} | A=B ~ `x`",
        "MÜNCHEN Straße",
    ])
    def test_memo_text_kept_intact(self, text):
        assert close_if_needed(f"<MEMO>{text}") == f"<MEMO>{text}</MEMO>"

    def test_bare_opening_tag_unchanged(self):
        assert close_if_needed("<BANKTRANLIST>") == "<BANKTRANLIST>"

    def test_bare_closing_tag_unchanged(self):
        assert close_if_needed("</BANKTRANLIST>") == "</BANKTRANLIST>"

    def test_closed_leaf_unchanged(self):
        assert close_if_needed("<NAME>SHOP</NAME>") == "<NAME>SHOP</NAME>"

    def test_empty_memo(self):
        assert close_if_needed("<MEMO>") == "<MEMO></MEMO>"

    def test_strips_line(self):
        assert close_if_needed("  <CODE>0\r") == "<CODE>0</CODE>"

    def test_escaped_ampersand_kept(self):
        assert close_if_needed("<NAME>AT&amp;T") == "<NAME>AT&amp;T</NAME>"

    def test_text_outside_class_left_alone(self):
        assert close_if_needed("<NAME>TAB\tSEPARATED") == "<NAME>TAB\tSEPARATED"

    def test_custom_rules(self):
        rules = build_rules(["NAME"])
        assert close_if_needed("<NAME>", rules) == "<NAME></NAME>"
        assert close_if_needed("<MEMO>", rules) == "<MEMO>"
