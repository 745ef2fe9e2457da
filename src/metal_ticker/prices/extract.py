"""Price extraction from a quote page's HTML."""

from __future__ import annotations

from bs4 import BeautifulSoup

from metal_ticker.core.exceptions import ExtractionError

# The quote value is the text of the first div carrying both class tokens,
# in any order and alongside any other tokens.
PRICE_SELECTOR = "div.YMlKec.fxKbKc"

_STRIP_CHARS = str.maketrans("", "", ",$")


def normalize_price(text: str) -> str:
    """Trim and drop thousands separators and dollar signs.

    Purely textual; the result is not checked to be numeric.
    """
    return text.strip().translate(_STRIP_CHARS).strip()


def extract_price(html: str, url: str = "") -> str:
    """Return the normalized price token from a quote page.

    Raises:
        ExtractionError: If the marker is missing or the token is empty.
    """
    soup = BeautifulSoup(html, "lxml")
    element = soup.select_one(PRICE_SELECTOR)
    price = normalize_price(element.get_text(strip=True)) if element is not None else ""
    if not price:
        raise ExtractionError(
            f"No price found in page: {url or '<unknown>'}",
            context={"url": url, "length": len(html)},
        )
    return price
