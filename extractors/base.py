# extractors/base.py
import html as html_lib
import json
import math
import re
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Iterable, List, Optional, Pattern, Sequence, Tuple
from urllib.parse import urlsplit

from bs4 import BeautifulSoup
from bs4.element import Tag

from core.errors import ParseFailure
from core.logger import get_logger
from core.models import EmptyReason, ExtractionResult, ListUrl, NormalizedItem, item_key
from core.urls import ensure_absolute_url

from .deep_search import DEFAULT_MAX_DEPTH, find_product_array

logger = get_logger(__name__)

# What a strategy may raise on malformed input before it is skipped.
STRATEGY_ERRORS = (ParseFailure, ValueError, TypeError, KeyError, AttributeError, IndexError, RecursionError)

NAME_KEYS = ("name", "title", "productName", "productTitle", "itemName", "displayTitle", "itemTitle")
DETAIL_KEYS = (
    "price", "image", "imageUrl", "url", "link", "productUrl", "images",
    "priceInfo", "imageInfo", "thumbnailUrl", "canonicalUrl", "detailPageUrl",
)

_WINDOW_STATE_RE = re.compile(r"window\.(__[A-Za-z0-9_]+__)\s*=\s*")
_PRICE_TEXT_RE = re.compile(r"[$€£]\s?\d[\d,]*(?:\.\d{1,2})?")
_DECODER = json.JSONDecoder()


@dataclass
class Blob:
    """One parsed embedded-data document and where it came from."""
    source: str
    data: Any


def load_json(text: str, source: str) -> Any:
    try:
        return json.loads(text)
    except (ValueError, RecursionError) as exc:
        raise ParseFailure(f"{source}: {exc}") from exc


def _decode_at(text: str, idx: int, source: str) -> Any:
    try:
        data, _ = _DECODER.raw_decode(text, idx)
    except (ValueError, RecursionError) as exc:
        raise ParseFailure(f"{source}: {exc}") from exc
    return data


def find_blobs(body: str, soup: BeautifulSoup, array_keys: Sequence[str] = ()) -> List[Blob]:
    """
    Collect every embedded JSON document in a page, in document order.

    Covers a whole-body JSON response, ``__NEXT_DATA__`` and other JSON script
    tags, ``window.__STATE__ = {...}`` assignments, and bare ``"key": [...]``
    arrays inside inline scripts for each name in ``array_keys``. Malformed
    blobs are logged and skipped.
    """
    blobs: List[Blob] = []

    def _add(source: str, loader) -> None:
        try:
            blobs.append(Blob(source, loader()))
        except ParseFailure as exc:
            logger.debug("Skipping malformed embedded data: %s", exc)

    stripped = body.lstrip()
    if stripped.startswith(("{", "[")):
        _add("document", lambda: load_json(stripped, "document"))
        if blobs:
            return blobs

    for script in soup.find_all("script"):
        text = script.string or script.get_text() or ""
        if not text.strip():
            continue
        script_type = str(script.get("type") or "").lower()
        script_id = str(script.get("id") or "")
        if script_id == "__NEXT_DATA__" or script_type in ("application/json", "application/ld+json"):
            label = script_id or script_type
            _add(label, lambda: load_json(text, label))
            continue

        for m in _WINDOW_STATE_RE.finditer(text):
            _add(m.group(1), lambda: _decode_at(text, m.end(), m.group(1)))

        for key in array_keys:
            for m in re.finditer(r'"%s"\s*:\s*(?=\[)' % re.escape(key), text):
                _add(key, lambda: {key: _decode_at(text, m.end(), key)})
    return blobs


def get_path(data: Any, path: Sequence[Any]) -> Any:
    node = data
    for part in path:
        if isinstance(part, int):
            if not isinstance(node, list) or not -len(node) <= part < len(node):
                return None
            node = node[part]
        elif isinstance(node, dict):
            node = node.get(part)
        else:
            return None
        if node is None:
            return None
    return node


def first_value(record: Any, *keys: str) -> Any:
    """First present, non-empty value among ``keys``; dotted keys walk nested dicts."""
    if not isinstance(record, dict):
        return None
    for key in keys:
        value = get_path(record, key.split(".")) if "." in key else record.get(key)
        if value is None or value == "" or value == [] or value == {}:
            continue
        return value
    return None


def clean_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    text = re.sub(r"\s+", " ", html_lib.unescape(str(value))).strip()
    return text or None


def format_price(value: Any) -> Optional[str]:
    """Display form of a price: numbers become ``$X.XX``, strings pass through trimmed."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value < 0:
            return None
        return f"${value:.2f}"
    return clean_text(value)


def price_from_text(text: Optional[str]) -> Optional[str]:
    """Pick the first money amount out of a block of visible text."""
    cleaned = clean_text(text)
    if not cleaned:
        return None
    m = _PRICE_TEXT_RE.search(cleaned)
    if m:
        return m.group(0).replace(" ", "")
    return cleaned


def absolute_url(url: Any, base_url: str) -> Optional[str]:
    text = clean_text(url)
    if not text or text.startswith(("javascript:", "#", "data:", "mailto:")):
        return None
    return ensure_absolute_url(text, base_url)


def select_first(root: Tag, selectors: Iterable[str]) -> Optional[Tag]:
    """Select the first tag that matches any of the given CSS selectors."""
    for sel in selectors:
        found = root.select_one(sel)
        if found is not None:
            return found
    return None


def text_of(tag: Optional[Tag]) -> Optional[str]:
    return clean_text(tag.get_text(" ", strip=True)) if tag is not None else None


def image_src(root: Tag) -> Optional[str]:
    img = root if root.name == "img" else root.find("img")
    if img is None:
        return None
    for attr in ("src", "data-src", "data-a-hires"):
        value = img.get(attr)
        if isinstance(value, str) and value and not value.startswith("data:"):
            return value
    return None


def dedupe(items: Iterable[NormalizedItem]) -> List[NormalizedItem]:
    """Drop repeated item keys, keeping the first occurrence."""
    seen = set()
    out: List[NormalizedItem] = []
    for item in items:
        key = item_key(item)
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out


class Page:
    """A fetched body plus lazily parsed views of it."""

    def __init__(self, body: str, list_url: ListUrl, array_keys: Sequence[str] = ()):
        self.body = body or ""
        self.list_url = list_url
        self.array_keys = array_keys
        parts = urlsplit(list_url.canonical)
        self.base_url = f"{parts.scheme or 'https'}://{parts.netloc}" if parts.netloc else ""

    @cached_property
    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.body, "html.parser")

    @cached_property
    def blobs(self) -> List[Blob]:
        return find_blobs(self.body, self.soup, self.array_keys)


class ListExtractor:
    """
    Strategy runner shared by every retailer.

    Subclasses describe the retailer: where items live in embedded data, what a
    product record looks like, which selectors find item markup, and how one
    raw record becomes a NormalizedItem.
    """

    label = "generic"
    default_base_url = ""
    # Property paths into embedded blobs, probed in order.
    known_paths: Sequence[Tuple[Any, ...]] = ()
    # Inline-script keys whose bare array values are pulled out as blobs.
    array_keys: Sequence[str] = ()
    id_keys: Sequence[str] = ()
    container_selectors: Sequence[str] = ()
    item_selectors: Sequence[str] = ()
    product_link_re: Optional[Pattern] = None

    def extract(self, body: str, list_url: ListUrl, max_depth: int = DEFAULT_MAX_DEPTH) -> ExtractionResult:
        page = Page(body, list_url, self.array_keys)
        strategies = (
            ("known_paths", self.from_known_paths),
            ("deep_search", lambda p: self.from_deep_search(p, max_depth)),
            ("dom", self.from_dom),
            ("links", self.from_links),
        )
        for name, strategy in strategies:
            try:
                items = dedupe(strategy(page))
            except STRATEGY_ERRORS as exc:
                logger.warning("%s %s strategy failed to parse %s: %s", self.label, name, list_url.canonical, exc)
                continue
            if items:
                logger.info("%s: %s strategy found %d items", self.label, name, len(items))
                return ExtractionResult(items=items, strategy=name)
            logger.debug("%s: %s strategy found nothing", self.label, name)

        reason = EmptyReason.NO_MATCHES
        if not page.blobs and not self.has_item_markup(page):
            reason = EmptyReason.SHELL_PAGE
        logger.info("%s: no items in %s (%s)", self.label, list_url.canonical, reason.value)
        return ExtractionResult(items=[], empty_reason=reason)

    # strategies

    def from_known_paths(self, page: Page) -> List[NormalizedItem]:
        for blob in page.blobs:
            for path in self.known_paths:
                records = get_path(blob.data, path)
                if not isinstance(records, list) or not records:
                    continue
                if not any(self.looks_like(r) for r in records[:5]):
                    continue
                items = self.normalize_records(records, page)
                if items:
                    logger.debug("%s: %s path %s yielded %d items", self.label, blob.source, path, len(items))
                    return items
        return []

    def from_deep_search(self, page: Page, max_depth: int = DEFAULT_MAX_DEPTH) -> List[NormalizedItem]:
        for blob in page.blobs:
            records = find_product_array(blob.data, self.looks_like, max_depth=max_depth)
            if not records:
                continue
            items = self.normalize_records(records, page)
            if items:
                return items
        return []

    def from_dom(self, page: Page) -> List[NormalizedItem]:
        scope = select_first(page.soup, self.container_selectors) or page.soup
        for selector in self.item_selectors:
            elements = scope.select(selector)
            if not elements:
                continue
            items = self.normalize_raw((self.element_to_raw(el) for el in elements), page)
            if items:
                logger.debug("%s: selector %r matched %d items", self.label, selector, len(items))
                return items
        return []

    def from_links(self, page: Page) -> List[NormalizedItem]:
        if self.product_link_re is None:
            return []
        raws = []
        for a in page.soup.find_all("a", href=True):
            href = a.get("href")
            if not isinstance(href, str) or not self.product_link_re.search(href):
                continue
            name = text_of(a)
            if not name:
                img = a.find("img", alt=True)
                name = clean_text(img.get("alt")) if img is not None else None
            if not name or len(name) < 3:
                continue
            raws.append(self.link_to_raw(href, name, image_src(a)))
        return self.normalize_raw(raws, page)

    # shared plumbing

    def looks_like(self, record: Any) -> bool:
        """Product-shaped: a retailer id field, or a name plus some product detail."""
        if not isinstance(record, dict):
            return False
        if any(k in record for k in self.id_keys):
            return True
        return any(k in record for k in NAME_KEYS) and any(k in record for k in DETAIL_KEYS)

    def has_item_markup(self, page: Page) -> bool:
        if select_first(page.soup, self.item_selectors) is not None:
            return True
        if self.product_link_re is None:
            return False
        return any(
            isinstance(a.get("href"), str) and self.product_link_re.search(a["href"])
            for a in page.soup.find_all("a", href=True)
        )

    def normalize_records(self, records: Sequence[Any], page: Page) -> List[NormalizedItem]:
        raws = []
        for record in records:
            if not isinstance(record, dict) or self.is_excluded(record):
                continue
            raws.append(self.record_to_raw(record))
        return self.normalize_raw(raws, page)

    def normalize_raw(self, raws: Iterable[Any], page: Page) -> List[NormalizedItem]:
        base_url = page.base_url or self.default_base_url
        out = []
        for raw in raws:
            item = self.normalize(raw, base_url)
            if item is not None:
                out.append(item)
        return out

    # retailer hooks

    def is_excluded(self, record: dict) -> bool:
        return False

    def record_to_raw(self, record: dict) -> Any:
        raise NotImplementedError

    def element_to_raw(self, element: Tag) -> Any:
        raise NotImplementedError

    def link_to_raw(self, href: str, name: str, image: Optional[str]) -> Any:
        raise NotImplementedError

    def normalize(self, raw: Any, base_url: str) -> Optional[NormalizedItem]:
        raise NotImplementedError
