# extractors/walmart.py
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
    price_from_text,
    select_first,
    text_of,
)

BASE_URL = "https://www.walmart.com"

_ITEM_ID_IN_PATH = re.compile(r"/ip/(?:[^/?#]+/)?(\d+)")
PRODUCT_LINK_RE = re.compile(r"/ip/")

_DATA_ROOT = ("props", "pageProps", "initialData", "data")


@dataclass
class WalmartRawItem:
    name: Any = None
    us_item_id: Any = None
    url: Any = None
    price: Any = None
    image: Any = None


def product_link(item_id: Any) -> Optional[str]:
    text = clean_text(item_id)
    if text and text.isdigit():
        return f"{BASE_URL}/ip/{text}"
    return None


class WalmartExtractor(ListExtractor):
    default_base_url = BASE_URL
    id_keys = ("usItemId", "us_item_id")
    item_selectors = (
        "[data-item-id]",
        "[data-testid='list-item']",
        "[data-automation-id='list-item']",
        "[data-testid='registry-item']",
        "[data-testid='item-stack'] > div",
    )
    product_link_re = PRODUCT_LINK_RE

    def record_to_raw(self, record: dict) -> WalmartRawItem:
        # List entries often wrap the product under "product" or "item".
        product = first_value(record, "product", "item")
        source = dict(product, **record) if isinstance(product, dict) else record
        return WalmartRawItem(
            name=first_value(source, "name", "title", "productName", "displayName"),
            us_item_id=first_value(source, "usItemId", "us_item_id"),
            url=first_value(source, "canonicalUrl", "productUrl", "url"),
            price=first_value(
                source,
                "priceInfo.currentPrice.priceString",
                "priceInfo.currentPrice.price",
                "priceInfo.linePrice",
                "priceString",
                "currentPrice",
                "price",
            ),
            image=first_value(source, "imageInfo.thumbnailUrl", "thumbnailUrl", "imageUrl", "image"),
        )

    def element_to_raw(self, element: Tag) -> WalmartRawItem:
        title_el = select_first(
            element,
            [
                "[data-automation-id='product-title']",
                "span[data-automation-id='name']",
                "[data-testid='product-title']",
                "h3",
                "a[link-identifier]",
                "a[href*='/ip/']",
            ],
        )
        price_el = select_first(
            element,
            ["[data-automation-id='product-price']", "[itemprop='price']", "[data-testid='price']", ".price-main"],
        )
        link_el = element.select_one("a[href*='/ip/']")
        return WalmartRawItem(
            name=text_of(title_el),
            us_item_id=element.get("data-item-id"),
            url=link_el.get("href") if link_el is not None else None,
            price=price_from_text(text_of(price_el)),
            image=image_src(element),
        )

    def link_to_raw(self, href: str, name: str, image: Optional[str]) -> WalmartRawItem:
        return WalmartRawItem(name=name, url=href, image=image)

    def normalize(self, raw: WalmartRawItem, base_url: str) -> Optional[NormalizedItem]:
        name = clean_text(raw.name)
        if not name:
            return None
        link = None
        url = absolute_url(raw.url, base_url)
        if url:
            m = _ITEM_ID_IN_PATH.search(url)
            link = product_link(m.group(1)) if m else strip_query(url)
        if link is None:
            link = product_link(raw.us_item_id)
        price = raw.price
        if isinstance(price, dict):
            price = first_value(price, "priceString", "price")
        image = raw.image
        if isinstance(image, dict):
            image = first_value(image, "thumbnailUrl", "url")
        return NormalizedItem(
            name=name,
            price=format_price(price),
            link=link,
            image=absolute_url(image, base_url),
        )


class WalmartWishlistExtractor(WalmartExtractor):
    label = "walmart-wishlist"
    known_paths = (
        _DATA_ROOT + ("list", "items"),
        _DATA_ROOT + ("lists", "items"),
        _DATA_ROOT + ("listDetails", "items"),
        ("items",),
    )
    container_selectors = ("[data-testid='list-items']", "[data-automation-id='list-items']", "main")


class WalmartRegistryExtractor(WalmartExtractor):
    label = "walmart-registry"
    known_paths = (
        _DATA_ROOT + ("registry", "items"),
        _DATA_ROOT + ("registry", "registryItems"),
        _DATA_ROOT + ("registryItems",),
        ("registryItems",),
        ("items",),
    )
    container_selectors = ("[data-testid='registry-items']", "[data-automation-id='registry-items']", "main")


WALMART_WISHLIST = WalmartWishlistExtractor()
WALMART_REGISTRY = WalmartRegistryExtractor()
