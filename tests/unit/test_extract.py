"""Tests for metal_ticker.prices.extract."""

import pytest

from metal_ticker.core.exceptions import ExtractionError
from metal_ticker.prices.extract import extract_price, normalize_price

QUOTE_PAGE = """
<html><body>
<div class="zzDege">Gold Futures</div>
<div jsname="ip75Cb" class="rPF6Lc"><div class="YMlKec fxKbKc">$2,345.10</div></div>
<div class="YMlKec">$9,999.99</div>
</body></html>
"""


class TestNormalizePrice:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("2,345.10", "2345.10"),
            ("$29.87", "29.87"),
            ("  $1,234,567.8  ", "1234567.8"),
            ("n/a", "n/a"),
        ],
    )
    def test_strips_separators_and_symbols(self, raw, expected):
        assert normalize_price(raw) == expected


class TestExtractPrice:
    def test_finds_marked_element(self):
        assert extract_price(QUOTE_PAGE) == "2345.10"

    def test_class_tokens_may_have_neighbours(self):
        html = '<div data-x="1" class="P6K39c YMlKec fxKbKc extra" id="q">\n  1,012.40\n</div>'
        assert extract_price(html) == "1012.40"

    def test_class_token_order_does_not_matter(self):
        assert extract_price('<div class="fxKbKc YMlKec">$2,345.10</div>') == "2345.10"

    def test_single_quoted_class_attribute(self):
        assert extract_price("<div class='YMlKec fxKbKc'>$29.87</div>") == "29.87"

    def test_substring_tokens_do_not_match(self):
        with pytest.raises(ExtractionError):
            extract_price('<div class="AYMlKec fxKbKcZ">999</div>')

    def test_first_match_wins(self):
        html = (
            '<div class="YMlKec fxKbKc">100.00</div>'
            '<div class="YMlKec fxKbKc">200.00</div>'
        )
        assert extract_price(html) == "100.00"

    def test_single_class_token_does_not_match(self):
        with pytest.raises(ExtractionError):
            extract_price('<div class="YMlKec">2,345.10</div>')

    def test_empty_token_is_failure(self):
        with pytest.raises(ExtractionError):
            extract_price('<div class="YMlKec fxKbKc">$</div>')

    def test_error_context(self):
        with pytest.raises(ExtractionError) as exc_info:
            extract_price("<html></html>", "https://example.com/q")
        assert exc_info.value.context == {"url": "https://example.com/q", "length": 13}
