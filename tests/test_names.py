"""
tests/test_names.py — Display-Name Sanitizer
=============================================
"""

from __future__ import annotations

import pytest

from hoodkeeper.engine.names import UNKNOWN_NAME, parse_display_name, sanitize_name


class TestSanitizeName:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("[FARM] Daisy", "Daisy"),
            ("Daisy [87]", "Daisy"),
            ("{VIP} Daisy [FARM]", "Daisy"),
            ("  Daisy  ", "Daisy"),
            ("Old [TAG] MacDonald", "Old MacDonald"),
            ("Daisy (87)", "Daisy (87)"),
            ("Plain", "Plain"),
        ],
    )
    def test_strips_markup(self, raw, expected):
        assert sanitize_name(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "\t\n"])
    def test_blank_yields_sentinel(self, raw):
        assert sanitize_name(raw) == UNKNOWN_NAME

    def test_all_markup_keeps_original(self):
        assert sanitize_name(" [FARM] ") == "[FARM]"

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("[a[b]c] Name", "Name"),
            ("{x{y}z} Name [L[1]]", "Name"),
            ("[[[deep]]] Name", "Name"),
        ],
    )
    def test_nested_markup_fully_removed(self, raw, expected):
        assert sanitize_name(raw) == expected

    def test_deterministic(self):
        assert sanitize_name("[A] b {c}") == sanitize_name("[A] b {c}") == "b"


class TestParseDisplayName:
    def test_bracket_level(self):
        parsed = parse_display_name("[FARM] Daisy [87]")
        assert parsed.clean_name == "Daisy"
        assert parsed.level == 87

    def test_paren_level(self):
        parsed = parse_display_name("Daisy (12)")
        assert parsed.level == 12

    def test_bracket_level_wins_over_paren(self):
        assert parse_display_name("Daisy (12) [40]").level == 40

    def test_no_level(self):
        parsed = parse_display_name("Daisy")
        assert parsed.clean_name == "Daisy"
        assert parsed.level is None

    def test_blank(self):
        parsed = parse_display_name("")
        assert parsed.clean_name == UNKNOWN_NAME
        assert parsed.level is None
