#!/usr/bin/env python3
"""
Upcoming droplist fetcher.
Guesses the droplist page for the next drop day, pulls it (directly, or
through a text-extraction mirror when the site blocks us) and extracts
catalog entries from either HTML or a JSON payload.
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple, Union

import requests
from bs4 import BeautifulSoup

import config
from errors import FetchFailed, NoEntriesFound

logger = logging.getLogger(__name__)

DROP_WEEKDAY = 3  # Thursday (Monday == 0)
UPCOMING_CATEGORY = "upcoming"
UNKNOWN_AVAILABILITY = "Unknown"

# Elements that look like one catalog item (union, not priority)
ITEM_SELECTORS = [
    '.catalog-item',
    '.masonry__item',
    '.card-block',
    '.view_detail_box',
    '.droplist-item',
]

# Fallback chains, first non-empty hit wins
NAME_SELECTORS = ['[itemprop="name"]', '.name', '.card__title', '.catalog-item__title', 'h3', 'h4']
PRICE_SELECTORS = [
    '[data-price]',
    '.price',
    '.label-price',
    '.catalog-item__price',
    '.card__price',
    '.sc-price',
]
AVAILABILITY_SELECTORS = ['.sold_out_tag', '.label', '.badge', '.status', '.availability']

_PRICE_RE = re.compile(r'\$?(\d+(?:\.\d+)?)')

DateLike = Union[date, datetime]


@dataclass(frozen=True)
class CatalogEntry:
    """One item parsed from a droplist"""
    name: str
    price_usd: float
    image: str = ""
    availability: str = UNKNOWN_AVAILABILITY
    category: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'price_usd': self.price_usd,
            'image': self.image,
            'availability': self.availability or UNKNOWN_AVAILABILITY,
            'category': self.category,
        }


@dataclass
class Snapshot:
    """Everything one successful fetch produced"""
    items: List[CatalogEntry]
    source_url: str
    retrieved_for_date: date
    season_label: str

    @property
    def subtotal_usd(self) -> float:
        return sum(item.price_usd for item in self.items)


@dataclass
class DroplistTarget:
    url: str
    date: date
    season: str


@dataclass
class _Attempts:
    """Per-candidate errors, kept for diagnostics only"""
    errors: List[Tuple[str, str]] = field(default_factory=list)
    any_retrieved: bool = False

    def record(self, url: str, reason: str):
        logger.debug("Droplist candidate %s abandoned: %s", url, reason)
        self.errors.append((url, reason))


# ── URL derivation ─────────────────────────────────────────────

def _as_date(value: Optional[DateLike]) -> date:
    if value is None:
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    return value


def next_drop_date(reference: Optional[DateLike] = None) -> date:
    """Next Thursday on or after the reference date (same day if it is one)"""
    start = _as_date(reference)
    distance = (DROP_WEEKDAY - start.weekday()) % 7
    return start + timedelta(days=distance)


def season_label(drop_date: date) -> str:
    """February through August is spring-summer, the rest is fall-winter"""
    if 2 <= drop_date.month <= 8:
        return f"spring-summer{drop_date.year}"
    return f"fall-winter{drop_date.year}"


def format_date_slug(drop_date: date) -> str:
    return drop_date.strftime('%Y-%m-%d')


def format_drop_date(drop_date: date) -> str:
    """Thursday, May 2, 2024"""
    return f"{drop_date:%A, %B} {drop_date.day}, {drop_date.year}"


def build_droplist_url(reference: Optional[DateLike] = None,
                       base_url: str = config.DROPLIST_BASE_URL) -> DroplistTarget:
    drop_date = next_drop_date(reference)
    season = season_label(drop_date)
    url = f"{base_url.rstrip('/')}/season/{season}/droplist/{format_date_slug(drop_date)}/"
    return DroplistTarget(url=url, date=drop_date, season=season)


def candidate_urls(page_url: str, proxy_prefix: str = config.TEXT_PROXY_PREFIX) -> List[str]:
    """Direct page, its json variant, then both again through the mirror"""
    json_url = f"{page_url}json"
    candidates = [page_url, json_url]
    if proxy_prefix:
        candidates += [f"{proxy_prefix}{page_url}", f"{proxy_prefix}{json_url}"]
    return candidates


# ── Parsing helpers ────────────────────────────────────────────

def normalize_image_url(src: Optional[str], origin: str = config.DROPLIST_BASE_URL) -> str:
    if not src:
        return ""
    if src.startswith('http'):
        return src
    if src.startswith('//'):
        return f"https:{src}"
    if src.startswith('/'):
        return f"{origin.rstrip('/')}{src}"
    return src


def parse_price(raw_text: Optional[str]) -> Optional[float]:
    """'$1,049.00' -> 1049.0; None when there is no number in the text"""
    if not raw_text:
        return None
    clean = re.sub(r'[,\s]', '', raw_text)
    match = _PRICE_RE.search(clean)
    if not match:
        return None
    value = float(match.group(1))
    return value if math.isfinite(value) else None


def text_from_selectors(element, selectors: List[str]) -> str:
    for selector in selectors:
        node = element.select_one(selector)
        if node is None:
            continue
        text = node.get_text(strip=True)
        if text:
            return text
    return ""


def find_image(element, origin: str = config.DROPLIST_BASE_URL) -> str:
    image = element.find('img')
    if image is None:
        return ""
    # Lazy-loaded images keep the real source in data-src
    source = image.get('data-src') or image.get('src')
    return normalize_image_url(source, origin)


def _is_valid_price(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def parse_html_droplist(html: str, origin: str = config.DROPLIST_BASE_URL) -> List[CatalogEntry]:
    soup = BeautifulSoup(html, 'html.parser')
    entries = []

    for node in soup.select(', '.join(ITEM_SELECTORS)):
        name = text_from_selectors(node, NAME_SELECTORS)
        price_usd = parse_price(text_from_selectors(node, PRICE_SELECTORS))

        if not name or not _is_valid_price(price_usd):
            continue

        entries.append(CatalogEntry(
            name=name,
            price_usd=price_usd,
            image=find_image(node, origin),
            availability=text_from_selectors(node, AVAILABILITY_SELECTORS) or UNKNOWN_AVAILABILITY,
        ))

    return entries


def _json_price(item: Dict[str, Any]) -> Optional[float]:
    price = item.get('price')
    if isinstance(price, dict):
        price = price.get('usd')
    if isinstance(price, (int, float)) and not isinstance(price, bool):
        return float(price)
    if isinstance(price, str):
        parsed = parse_price(price)
        if parsed is not None:
            return parsed
    price_text = item.get('price_text')
    return parse_price(price_text) if isinstance(price_text, str) else None


def _json_availability(item: Dict[str, Any]) -> str:
    if item.get('available') is True or item.get('sold_out') is False:
        return "Available"
    if item.get('sold_out') is True:
        return "Sold out"
    return ""


def parse_json_droplist(payload: Any, origin: str = config.DROPLIST_BASE_URL) -> List[CatalogEntry]:
    if not isinstance(payload, dict):
        return []
    products = payload.get('products') or payload.get('items') or []
    if not isinstance(products, list):
        return []

    entries = []
    for item in products:
        if not isinstance(item, dict):
            continue
        name = item.get('name') or item.get('title')
        price_usd = _json_price(item)
        if not isinstance(name, str) or not name.strip() or not _is_valid_price(price_usd):
            continue

        image = item.get('image') or item.get('img')
        entries.append(CatalogEntry(
            name=name.strip(),
            price_usd=price_usd,
            image=normalize_image_url(image if isinstance(image, str) else "", origin),
            availability=_json_availability(item),
        ))

    return entries


def _load_json(body: str) -> Optional[Any]:
    try:
        return json.loads(body)
    except ValueError:
        return None


def parse_droplist_payload(body: str, content_type: str = "",
                           origin: str = config.DROPLIST_BASE_URL) -> List[CatalogEntry]:
    """JSON when declared or when the body parses as a JSON object, HTML otherwise"""
    if 'json' in (content_type or '').lower():
        return parse_json_droplist(_load_json(body), origin)

    stripped = body.lstrip()
    if stripped.startswith('{'):
        payload = _load_json(stripped)
        if isinstance(payload, dict):
            return parse_json_droplist(payload, origin)

    return parse_html_droplist(body, origin)


# ── Fetcher ────────────────────────────────────────────────────

class DroplistFetcher:
    """Fetches one droplist snapshot per call; nothing is cached between calls"""

    def __init__(self, session: Optional[requests.Session] = None,
                 base_url: str = config.DROPLIST_BASE_URL,
                 proxy_prefix: str = config.TEXT_PROXY_PREFIX,
                 timeout: float = config.REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip('/')
        self.proxy_prefix = proxy_prefix
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': config.USER_AGENT,
            'Accept': 'text/html,application/xhtml+xml,application/json',
            'Accept-Language': 'en-US,en;q=0.9',
            'Cache-Control': 'no-cache',
        })

    def _fetch_entries(self, url: str, attempts: _Attempts) -> List[CatalogEntry]:
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            attempts.record(url, f"request failed: {e}")
            return []

        if not response.ok:
            attempts.record(url, f"request failed: {response.status_code}")
            return []

        attempts.any_retrieved = True
        content_type = response.headers.get('Content-Type', '')
        entries = parse_droplist_payload(response.text, content_type, self.base_url)
        if not entries:
            attempts.record(url, "no droplist items parsed")
        return entries

    def fetch_snapshot(self, reference: Optional[DateLike] = None) -> Snapshot:
        """
        Fetch the droplist for the next drop day on/after `reference`.

        Candidates are tried in order; the first that yields at least one
        entry wins.

        Raises:
            FetchFailed: if no candidate could be retrieved
            NoEntriesFound: if pages came back but none had any items
        """
        target = build_droplist_url(reference, self.base_url)
        attempts = _Attempts()

        for url in candidate_urls(target.url, self.proxy_prefix):
            entries = self._fetch_entries(url, attempts)
            if not entries:
                continue

            logger.info("Loaded %d droplist items from %s", len(entries), url)
            return Snapshot(
                items=[replace(entry, category=UPCOMING_CATEGORY) for entry in entries],
                source_url=target.url,
                retrieved_for_date=target.date,
                season_label=target.season,
            )

        if attempts.any_retrieved:
            raise NoEntriesFound(
                f"Droplist data unavailable at {target.url}", attempts=attempts.errors
            )
        raise FetchFailed(
            f"Droplist page could not be retrieved from {target.url}", attempts=attempts.errors
        )


def fetch_catalog_snapshot(reference: Optional[DateLike] = None,
                           session: Optional[requests.Session] = None) -> Snapshot:
    return DroplistFetcher(session=session).fetch_snapshot(reference)


def main():
    """Main function for command-line usage"""
    import sys

    from errors import LandedCostError
    from landed_cost import DUTY_RATE, LandedCostCalculator, format_shipping, summarize_cart

    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)

    reference = None
    if len(sys.argv) > 1:
        try:
            reference = datetime.strptime(sys.argv[1], '%Y-%m-%d').date()
        except ValueError:
            print("Usage: python droplist.py [YYYY-MM-DD]")
            sys.exit(1)

    try:
        conversion_rate = LandedCostCalculator().get_conversion_rate()
        snapshot = fetch_catalog_snapshot(reference)
    except LandedCostError as e:
        print(f"\nCould not load droplist data right now. {e.message}")
        sys.exit(1)

    summary = summarize_cart([item.price_usd for item in snapshot.items], conversion_rate)

    print(f"\nDroplist for {format_drop_date(snapshot.retrieved_for_date)} ({snapshot.season_label})")
    print(f"Source: {snapshot.source_url}\n")
    for item, fees in zip(snapshot.items, summary.items):
        print(f"  {item.name[:44]:<45} ${item.price_usd:>8,.2f}  -> ${fees.total_cad:>9,.2f} CAD"
              f"  [{item.availability or UNKNOWN_AVAILABILITY}]")

    cart = summary.cart
    print(f"\nCart totals ({summary.count} items)")
    print(f"  Subtotal:   ${cart.subtotal_usd:,.2f} USD")
    print(f"  Shipping:   {format_shipping(cart)}")
    print(f"  Duty ({DUTY_RATE:.0%}): ${cart.duty_usd:,.2f}")
    print(f"  Total:      ${cart.total_cad:,.2f} CAD (rate {conversion_rate:.4f})")


if __name__ == "__main__":
    main()
