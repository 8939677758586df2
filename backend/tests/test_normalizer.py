"""
Tests for numeric parsing and healing notation parsing.
"""
import pytest


class TestParseNumber:
    """Test parse_number tolerance of wiki and API formatting."""

    @pytest.mark.parametrize('raw,expected', [
        ("12,345", 12345.0),
        (" 1 234 ", 1234.0),
        ("+5", 5.0),
        ("-3", -3.0),
        ("−3", -3.0),
        ("1.8", 1.8),
        ("0", 0.0),
    ])
    def test_numeric_text(self, raw, expected):
        from gemarket.normalizer import parse_number
        assert parse_number(raw) == expected

    @pytest.mark.parametrize('raw', ["", "N/A", "-", "−", "?", "   ", "abc", "1.2.3"])
    def test_missing_or_malformed_is_none(self, raw):
        """Sentinels and garbage become None, never an exception."""
        from gemarket.normalizer import parse_number
        assert parse_number(raw) is None

    def test_none_and_numbers(self):
        from gemarket.normalizer import parse_number
        assert parse_number(None) is None
        assert parse_number(7) == 7.0
        assert parse_number(2.5) == 2.5

    def test_rejects_bool_and_non_finite(self):
        from gemarket.normalizer import parse_number
        assert parse_number(True) is None
        assert parse_number(float('nan')) is None
        assert parse_number("inf") is None

    def test_missing_is_not_zero(self):
        """A blank cell is distinguishable from a zero bonus."""
        from gemarket.normalizer import parse_number
        assert parse_number("0") == 0.0
        assert parse_number("") is None


class TestParseIntAndTrend:

    def test_parse_int(self):
        from gemarket.normalizer import parse_int
        assert parse_int("25,000") == 25000
        assert parse_int(70) == 70
        assert parse_int("1.5") is None
        assert parse_int(None) is None

    def test_parse_trend(self):
        from gemarket.normalizer import parse_trend
        assert parse_trend("Positive") == "positive"
        assert parse_trend(" neutral ") == "neutral"
        assert parse_trend("sideways") is None
        assert parse_trend(3) is None


class TestParseHealing:
    """Test healing notation precedence: delayed, variable, multiple, simple."""

    def test_simple(self):
        from gemarket.normalizer import parse_healing
        result = parse_healing("20")
        assert (result.healing, result.delayed_heal, result.bites) == (20, 0, 1)

    def test_multiple_bites(self):
        from gemarket.normalizer import parse_healing
        result = parse_healing("4 × 3")
        assert (result.healing, result.delayed_heal, result.bites) == (4, 0, 3)

    def test_multiple_bites_ascii_x(self):
        from gemarket.normalizer import parse_healing
        result = parse_healing("6x2")
        assert (result.healing, result.bites) == (6, 2)

    def test_delayed_heal(self):
        from gemarket.normalizer import parse_healing
        result = parse_healing("12 + 9")
        assert (result.healing, result.delayed_heal, result.bites) == (12, 9, 1)

    def test_delayed_wins_over_multiple(self):
        """'a + b' is never read as a product even if × appears later."""
        from gemarket.normalizer import parse_healing
        result = parse_healing("3 + 7 × 2")
        assert (result.healing, result.delayed_heal, result.bites) == (3, 7, 1)

    def test_variable_range_with_bites(self):
        from gemarket.normalizer import parse_healing
        result = parse_healing("(3-13) × 4")
        assert (result.healing, result.delayed_heal, result.bites) == (0, 0, 4)

    @pytest.mark.parametrize('text', ["3-13", "10%", "Random", "Up to 20", "5 − 8"])
    def test_variable_markers_heal_zero(self, text):
        from gemarket.normalizer import parse_healing
        result = parse_healing(text)
        assert result.healing == 0
        assert result.bites == 1

    def test_no_digits_is_rejected(self):
        from gemarket.normalizer import parse_healing
        assert parse_healing("Varies") is None
        assert parse_healing("") is None
        assert parse_healing(None) is None

    def test_zero_bites_raised_to_one(self):
        from gemarket.normalizer import parse_healing
        assert parse_healing("5 × 0").bites == 1
