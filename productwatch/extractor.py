"""Heuristic extraction of product snapshots from raw HTML."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from bs4 import BeautifulSoup, Comment

from .clock import to_iso, utc_now
from .models import Snapshot

logger = logging.getLogger(__name__)

PRICE_SELECTORS = (
    "[itemprop=price]",
    ".price",
    ".product-price",
    ".price__amount",
    "#price",
    ".sale-price",
)
INVISIBLE_TAGS = {"script", "style", "noscript", "template"}

DOLLAR_AMOUNT = re.compile(r"\$\s*\d[\d,.]*")
SIGNED_DECIMAL = re.compile(r"-?\d+(?:\.\d+)?")
SEPARATORS = re.compile(r"[,\s]+")

TextStrategy = Callable[[BeautifulSoup], Optional[str]]


def parse_price(text: str | None) -> Optional[float]:
    """Extract the first signed decimal from a price string."""
    if not text:
        return None
    match = SIGNED_DECIMAL.search(SEPARATORS.sub("", text))
    if not match:
        return None
    return float(match.group(0))


@dataclass(frozen=True)
class MetaContent:
    """Read the content attribute of the first matching <meta>."""

    selector: str

    def __call__(self, soup: BeautifulSoup) -> Optional[str]:
        element = soup.select_one(self.selector)
        if element is None:
            return None
        return (element.get("content") or "").strip() or None


@dataclass(frozen=True)
class FirstElementText:
    """Text of the first element matching a CSS selector."""

    selector: str

    def __call__(self, soup: BeautifulSoup) -> Optional[str]:
        element = soup.select_one(self.selector)
        if element is None:
            return None
        text = element.get_text(" ", strip=True)
        if not text and element.name == "meta":
            # <meta itemprop="price" content="..."> carries no text node.
            text = (element.get("content") or "").strip()
        return text or None


@dataclass(frozen=True)
class BodyTextPattern:
    """First regex match within the visible text of <body>."""

    pattern: re.Pattern

    def __call__(self, soup: BeautifulSoup) -> Optional[str]:
        root = soup.body or soup
        match = self.pattern.search(_visible_text(root))
        return match.group(0) if match else None


TITLE_STRATEGIES: Sequence[TextStrategy] = (
    MetaContent("meta[property='og:title']"),
    FirstElementText("title"),
    FirstElementText("h1"),
)

PRICE_STRATEGIES: Sequence[TextStrategy] = (
    *(FirstElementText(selector) for selector in PRICE_SELECTORS),
    BodyTextPattern(DOLLAR_AMOUNT),
)


def first_match(soup: BeautifulSoup, strategies: Sequence[TextStrategy]) -> Optional[str]:
    for strategy in strategies:
        value = strategy(soup)
        if value:
            return value
    return None


def extract_title(soup: BeautifulSoup) -> Optional[str]:
    return first_match(soup, TITLE_STRATEGIES)


def extract_price(
    soup: BeautifulSoup,
    strategies: Sequence[TextStrategy] = PRICE_STRATEGIES,
) -> Optional[float]:
    return parse_price(first_match(soup, strategies))


def extract_images(soup: BeautifulSoup) -> List[str]:
    images: List[str] = []
    for img in soup.find_all("img"):
        src = img.get("src") or img.get("data-src")
        if src:
            images.append(str(src))
    return images


def extract_specs(soup: BeautifulSoup) -> Dict[str, str]:
    """Two-column table rows as label -> value; later rows win."""
    specs: Dict[str, str] = {}
    for table in soup.find_all("table"):
        for row in table.find_all("tr"):
            cells = row.find_all(["td", "th"])
            if len(cells) < 2:
                continue
            key = cells[0].get_text(" ", strip=True)
            if key:
                specs[key] = cells[1].get_text(" ", strip=True)
    return specs


def extract_snapshot(
    html: str,
    url: str,
    fetched_at: str | None = None,
    price_strategies: Sequence[TextStrategy] = PRICE_STRATEGIES,
) -> Snapshot:
    """Build a Snapshot from page HTML; missing fields are left empty."""
    soup = BeautifulSoup(html or "", "html.parser")
    snapshot = Snapshot(
        url=url,
        title=extract_title(soup),
        price=extract_price(soup, price_strategies),
        images=extract_images(soup),
        specs=extract_specs(soup),
        fetched_at=fetched_at or to_iso(utc_now()),
    )
    logger.debug(
        "Extracted snapshot for %s: title=%r price=%r images=%d specs=%d",
        url,
        snapshot.title,
        snapshot.price,
        len(snapshot.images),
        len(snapshot.specs),
    )
    return snapshot


def _visible_text(root) -> str:
    return " ".join(
        text
        for text in root.find_all(string=True)
        if not isinstance(text, Comment)
        and text.parent is not None
        and text.parent.name not in INVISIBLE_TAGS
    )
