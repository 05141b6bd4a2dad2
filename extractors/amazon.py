# extractors/amazon.py
import json
import math
import re
from dataclasses import dataclass
from typing import Any, Optional

from bs4.element import Tag

from core.models import NormalizedItem
from core.urls import strip_query

from .base import (
    ListExtractor,
    absolute_url,
    clean_text,
    first_value,
    format_price,
    image_src,
    select_first,
    text_of,
)

BASE_URL = "https://www.amazon.com"

_ASIN_RE = re.compile(r"^[A-Z0-9]{10}$")
_ASIN_IN_PATH = re.compile(r"/(?:dp|gp/product|gp/aw/d)/([A-Za-z0-9]{10})(?=[/?#]|$)")
PRODUCT_LINK_RE = re.compile(r"/(?:dp|gp/product)/[A-Za-z0-9]{10}")

# Registry pages mix real items with ad carousels that share the same record shape.
AD_MARKERS = ("sponsored", "recommendation", "also viewed", "customers also")

TITLE_SELECTORS = [
    "a[id^='itemName']",
    "h3",
    "h2",
    ".awl-item-title",
    "[id*='itemName']",
    "[data-item-name]",
    "span.a-size-base-plus",
    "span.a-size-base",
    "span.a-size-medium",
]


@dataclass
class AmazonRawItem:
    title: Any = None
    asin: Any = None
    url: Any = None
    price: Any = None
    image: Any = None


def valid_asin(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip().upper()
    return value if _ASIN_RE.match(value) else None


def canonical_product_link(url: Optional[str], base_url: str) -> Optional[str]:
    """``/dp/<ASIN>`` for anything that names a product; query and fragment dropped otherwise."""
    if not url:
        return None
    m = _ASIN_IN_PATH.search(url)
    if m:
        return f"{base_url}/dp/{m.group(1).upper()}"
    return strip_query(url)


def _record_price(record: dict) -> Any:
    price = record.get("price")
    if isinstance(price, dict):
        return first_value(price, "displayPrice", "formattedPrice", "amount", "value")
    if price not in (None, ""):
        return price
    return first_value(record, "displayPrice", "formattedPrice", "priceString", "listPrice", "currentPrice")


def _record_image(record: dict) -> Any:
    image = first_value(
        record,
        "image", "imageUrl", "mainImage", "smallImage", "mediumImage", "thumbnailImage",
        "largeImage", "productImage", "itemImage", "primaryImage.url",
    )
    if isinstance(image, dict):
        image = first_value(image, "url", "src")
    if image is None:
        images = record.get("images")
        if isinstance(images, list) and images and isinstance(images[0], dict):
            image = first_value(images[0], "url", "src")
    return image


def _dom_price(li: Tag) -> Optional[str]:
    # Wishlist rows carry the numeric price on the container.
    raw_price = li.get("data-price")
    if isinstance(raw_price, str) and raw_price.strip():
        try:
            value = float(raw_price)
        except ValueError:
            value = None
        if value is not None and math.isfinite(value) and value >= 0:
            return f"${value:.2f}"

    offscreen = text_of(li.select_one(".a-price .a-offscreen"))
    if offscreen:
        return offscreen
    pw = li.select_one(".a-price-whole")
    if pw is not None:
        whole = (text_of(pw) or "").rstrip(".")
        frac = text_of(li.select_one(".a-price-fraction")) or "00"
        if whole:
            return f"${whole}.{frac}"
    return text_of(li.select_one(".a-color-price"))


class AmazonWishlistExtractor(ListExtractor):
    label = "amazon-wishlist"
    default_base_url = BASE_URL
    known_paths = (
        ("itemList",),
        ("items",),
        ("wishlistItems",),
        ("listItems",),
        ("props", "pageProps", "items"),
    )
    array_keys = ("itemList", "wishlistItems")
    id_keys = ("asin", "ASIN")
    container_selectors = ("#g-items", "#wl-item-view", "#awl-list-items")
    item_selectors = (
        "li.awl-item-wrapper",
        "li.g-item-sortable",
        "div.g-item-sortable",
        "li[data-itemid]",
        "[data-itemid]",
    )
    product_link_re = PRODUCT_LINK_RE
    # Idea-list entries have no product page and are kept by name only.
    require_product_link = False

    def record_to_raw(self, record: dict) -> AmazonRawItem:
        return AmazonRawItem(
            title=first_value(
                record, "title", "name", "productTitle", "itemName", "productName", "displayTitle", "itemTitle"
            ),
            asin=first_value(record, "asin", "ASIN", "productASIN", "catalogItemId", "itemId", "productId", "id"),
            url=first_value(record, "itemUrl", "productUrl", "detailPageUrl", "link", "url"),
            price=_record_price(record),
            image=_record_image(record),
        )

    def element_to_raw(self, li: Tag) -> AmazonRawItem:
        asin = None
        for attr in ("data-asin", "data-itemid", "data-id", "data-csa-c-item-id"):
            asin = valid_asin(li.get(attr))
            if asin:
                break
        if not asin:
            nested = li.select_one("[data-asin]")
            asin = valid_asin(nested.get("data-asin")) if nested is not None else None

        link_el = li.select_one("a[href*='/dp/'], a[href*='/gp/product/']")
        href = link_el.get("href") if link_el is not None else None

        title = text_of(select_first(li, TITLE_SELECTORS))
        if not title:
            titled = li.select_one("a[title]")
            title = clean_text(titled.get("title")) if titled is not None else None
        if not title:
            img = li.select_one("img[alt]")
            title = clean_text(img.get("alt")) if img is not None else None

        return AmazonRawItem(title=title, asin=asin, url=href, price=_dom_price(li), image=image_src(li))

    def link_to_raw(self, href: str, name: str, image: Optional[str]) -> AmazonRawItem:
        return AmazonRawItem(title=name, url=href, image=image)

    def normalize(self, raw: AmazonRawItem, base_url: str) -> Optional[NormalizedItem]:
        name = clean_text(raw.title)
        if not name:
            return None
        asin = valid_asin(raw.asin)
        if asin:
            link = f"{base_url}/dp/{asin}"
        else:
            link = canonical_product_link(absolute_url(raw.url, base_url), base_url)
        if self.require_product_link and not (link and PRODUCT_LINK_RE.search(link)):
            return None
        return NormalizedItem(
            name=name,
            price=format_price(raw.price),
            link=link,
            image=absolute_url(raw.image, base_url),
        )


class AmazonRegistryExtractor(AmazonWishlistExtractor):
    label = "amazon-registry"
    known_paths = (
        ("registryItemList",),
        ("registryItems",),
        ("itemList",),
        ("items",),
        ("registry", "items"),
        ("registry", "registryItemList"),
    )
    array_keys = ("registryItemList", "registryItems")
    container_selectors = (
        "#item-page-wrapper",
        "#registry-items",
        "#g-items",
        "[id*='registry-item']",
        "[class*='registry-items']",
        ".g-item-page",
        "#gift-list",
        "[data-a-container='registryItem']",
        "#registryItemList",
        ".still-needs-section",
        "#itemList",
    )
    item_selectors = (
        ".g-item-sortable[data-itemid]",
        "li[data-itemid]",
        "[data-itemid]",
        "li[data-id]",
        ".a-section[data-asin]",
        "[data-csa-c-item-id]",
    )
    require_product_link = True

    def is_excluded(self, record: dict) -> bool:
        flat = json.dumps(record, default=str).lower()
        return any(marker in flat for marker in AD_MARKERS)


AMAZON_WISHLIST = AmazonWishlistExtractor()
AMAZON_REGISTRY = AmazonRegistryExtractor()
