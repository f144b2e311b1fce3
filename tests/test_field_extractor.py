"""
Tests for field_extractor.py.

Covers:
  1. Item level and combat power patterns (labelled and bare)
  2. Class detection (explicit label, header layout)
  3. Roster enumeration from rendered HTML
"""

import pytest

from rostercsv.field_extractor import (
    extract_class,
    extract_combat_power,
    extract_item_level,
    extract_roster_names,
    find_class_by_layout,
    names_from_hrefs,
)

BASE = "https://uwuowo.mathi.moe"


# ====================================================================
# 1. Stats
# ====================================================================

class TestItemLevel:
    """extract_item_level picks the first labelled value."""

    @pytest.mark.parametrize("text,expected", [
        ("Item Level 1620.00", "1620.00"),
        ("ilvl: 1550", "1550"),
        ("ITEM LEVEL:1600.83 more text", "1600.83"),
        ("itemlevel 1490", "1490"),
    ])
    def test_labelled_values(self, text, expected):
        """Label variants with and without colon or decimals."""
        assert extract_item_level(text) == expected

    def test_first_match_wins(self):
        """Only the first item level on the page is used."""
        assert extract_item_level("Item Level 1620.00\nilvl 1415") == "1620.00"

    def test_absent_is_empty(self):
        """No label → empty string, never an exception."""
        assert extract_item_level("nothing here 1620.00") == ""
        assert extract_item_level("") == ""
        assert extract_item_level(None) == ""

    def test_too_many_digits_rejected(self):
        """A five-digit number is not an item level."""
        assert extract_item_level("ilvl 16200") == ""


class TestCombatPower:
    """extract_combat_power: label first, then a bare in-range decimal."""

    def test_combat_power_label(self):
        """'Combat Power' label keeps separators as written."""
        assert extract_combat_power("Combat Power: 1,892.38") == "1,892.38"

    def test_cp_label(self):
        """Short 'CP' label."""
        assert extract_combat_power("CP 2104.5") == "2104.5"

    def test_lowercase_cp_is_not_a_label(self):
        """Only upper-case 'CP' is a label; 'cp' inside prose is not."""
        assert extract_combat_power("hp 900 cp 42") == ""
        assert extract_combat_power("skill cp 42 then 1892.38") == "1892.38"

    def test_combat_power_label_any_case(self):
        """The long label still matches in any case."""
        assert extract_combat_power("COMBAT POWER 2,001.5") == "2,001.5"

    def test_bare_decimal_in_range(self):
        """Bare NNNN.NN token inside 1000-5000 is accepted."""
        assert extract_combat_power("Item Level 1620.00 Combat 1892.38") == "1892.38"

    def test_item_level_not_mistaken_for_combat_power(self):
        """The item-level value shares the decimal shape but is masked out."""
        assert extract_combat_power("Item Level 1620.00") == ""

    def test_bare_decimal_out_of_range(self):
        """Decimals outside the plausible range are ignored."""
        assert extract_combat_power("score 812.50 and 7300.25") == ""

    def test_integer_not_bare_combat_power(self):
        """A bare integer never counts as combat power."""
        assert extract_combat_power("ilvl 1550 then 1892") == ""


# ====================================================================
# 2. Class
# ====================================================================

class TestClass:
    """extract_class and the header-layout heuristic."""

    @pytest.mark.parametrize("text", [
        "Class: berserker",
        "job: BERSERKER",
        "Character Type : Berserker",
    ])
    def test_explicit_label(self, text):
        """Labelled class is capitalized."""
        assert extract_class(text) == "Berserker"

    def test_label_requires_colon(self):
        """'class' in running text is not a label."""
        assert extract_class("first class support") == ""

    def test_layout_block(self):
        """Server / blank / class / blank / name header."""
        text = "Menu\nRatik\n\nBerserker\n\nFoo\nItem Level 1620.00"
        assert extract_class(text) == "Berserker"

    def test_layout_unknown_class_accepted(self):
        """Layout match does not require a known class."""
        lines = ["Ratik", "", "newclass", "", "Foo"]
        assert find_class_by_layout(lines) == "Newclass"

    def test_layout_rejects_region_as_class(self):
        """A region code in the class slot is not a class."""
        assert find_class_by_layout(["Ratik", "", "NAE", "", "Foo"]) == ""

    def test_layout_rejects_numeric_server(self):
        """Server line containing digits breaks the pattern."""
        assert find_class_by_layout(["1620.00", "", "Bard", "", "Foo"]) == ""

    def test_layout_rejects_link_server(self):
        """Link-like server line breaks the pattern."""
        assert find_class_by_layout(["uwuowo.mathi.moe", "", "Bard", "", "Foo"]) == ""

    def test_layout_rejects_name_equal_to_class(self):
        """The name line must differ from the class."""
        assert find_class_by_layout(["Ratik", "", "Bard", "", "bard"]) == ""

    def test_layout_requires_blank_lines(self):
        """Without the blank separators there is no header block."""
        assert find_class_by_layout(["Ratik", "Bard", "Foo", "x", "y"]) == ""

    def test_nothing_found(self):
        """No label and no header block → empty string."""
        assert extract_class("Item Level 1620.00") == ""


# ====================================================================
# 3. Roster enumeration
# ====================================================================

class TestRosterNames:
    """extract_roster_names / names_from_hrefs."""

    def test_names_from_anchors(self):
        """Names come from /character/{region}/{name} links in order."""
        html = """
        <html><body>
          <a href="/character/NAE/Foo">Foo</a>
          <a href="/about">About</a>
          <a href="https://uwuowo.mathi.moe/character/NAE/Bar">Bar</a>
        </body></html>
        """
        assert extract_roster_names(html, BASE) == ["Foo", "Bar"]

    def test_deduplicated_first_seen(self):
        """Repeated links collapse to their first position."""
        hrefs = [
            "/character/NAE/Foo",
            "/character/NAE/Bar",
            "/character/NAE/Foo/roster",
            "/character/NAE/Bar",
        ]
        assert names_from_hrefs(hrefs, BASE) == ["Foo", "Bar"]

    def test_percent_encoded_names_decoded(self):
        """URL-encoded names are decoded."""
        assert names_from_hrefs(["/character/EUC/B%C3%A1r"], BASE) == ["Bár"]

    def test_incomplete_hrefs_ignored(self):
        """Links without a name segment are skipped."""
        assert names_from_hrefs(["/character/NAE", "/character/", ""], BASE) == []

    def test_empty_html(self):
        """No anchors → empty list."""
        assert extract_roster_names("<html></html>", BASE) == []
        assert extract_roster_names("", BASE) == []
