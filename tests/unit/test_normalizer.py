"""Tests for change-detection value normalization."""

from rent_scout.detection.normalizer import normalize_set, normalize_value, titles_equivalent

ZERO_WIDTH_SPACE = chr(0x200B)
LEFT_QUOTE = chr(0x201C)
RIGHT_QUOTE = chr(0x201D)
EM_DASH = chr(0x2014)
EN_DASH = chr(0x2013)


class TestNormalizeValue:
    """Tests for normalize_value()."""

    def test_none_and_empty_equivalent(self) -> None:
        assert normalize_value(None) == normalize_value("") == ""

    def test_whitespace_trimmed_and_collapsed(self) -> None:
        assert normalize_value("  Sunny \t  Studio \n") == "sunny studio"

    def test_zero_width_removed(self) -> None:
        assert normalize_value(f"整層{ZERO_WIDTH_SPACE}住家") == "整層住家"

    def test_quotes_unified(self) -> None:
        assert normalize_value(f"{LEFT_QUOTE}Nice{RIGHT_QUOTE}") == normalize_value('"nice"')

    def test_dashes_unified(self) -> None:
        assert normalize_value(f"a{EM_DASH}b{EN_DASH}c") == "a-b-c"

    def test_case_insensitive(self) -> None:
        assert normalize_value("MRT") == normalize_value("mrt")

    def test_non_string_values(self) -> None:
        assert normalize_value(350) == "350"


class TestNormalizeSet:
    """Tests for normalize_set()."""

    def test_order_and_case_ignored(self) -> None:
        assert normalize_set(["B", "a"]) == normalize_set(["A", " b "])

    def test_empty_entries_dropped(self) -> None:
        assert normalize_set(["x", "", "  ", None]) == frozenset({"x"})

    def test_comma_joined_string(self) -> None:
        assert normalize_set("近捷運, 可養寵物") == frozenset({"近捷運", "可養寵物"})

    def test_none(self) -> None:
        assert normalize_set(None) == frozenset()


class TestTitlesEquivalent:
    """Tests for titles_equivalent()."""

    def test_equal(self) -> None:
        assert titles_equivalent("sunny studio", "sunny studio")

    def test_prefix(self) -> None:
        """Truncated card titles match the full title."""
        assert titles_equivalent("sunny stu", "sunny studio near mrt")

    def test_appended_tokens(self) -> None:
        assert titles_equivalent("sunny studio near mrt", "sunny studio")

    def test_different(self) -> None:
        assert not titles_equivalent("sunny studio", "dark basement")

    def test_one_empty(self) -> None:
        assert not titles_equivalent("", "sunny studio")
        assert titles_equivalent("", "")
