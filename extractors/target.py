# extractors/target.py
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

BASE_URL = "https://www.target.com"

_TCIN_IN_PATH = re.compile(r"/A-(\d+)")
PRODUCT_LINK_RE = re.compile(r"/p/.*/A-\d+|/-/A-\d+")


@dataclass
class TargetRawItem:
    title: Any = None
    tcin: Any = None
    url: Any = None
    price: Any = None
    image: Any = None


def product_link(tcin: Any) -> Optional[str]:
    text = clean_text(tcin)
    if text and text.isdigit():
        return f"{BASE_URL}/p/-/A-{text}"
    return None


def _record_price(record: dict) -> Any:
    price = first_value(record, "price", "item.price")
    if isinstance(price, dict):
        return first_value(price, "formatted_current_price", "current_retail", "formatted_reg_price", "reg_retail")
    if price is not None:
        return price
    return first_value(record, "current_price", "formatted_price")


def _record_image(record: dict) -> Any:
    image = first_value(
        record,
        "enrichment.images.primary_image_url",
        "item.enrichment.images.primary_image_url",
    )
    if image:
        return image
    images = record.get("images")
    if isinstance(images, list) and images:
        primary = next((img for img in images if isinstance(img, dict) and img.get("primary")), images[0])
        if isinstance(primary, dict):
            image = first_value(primary, "base_url", "url")
        elif isinstance(primary, str):
            image = primary
    return image or first_value(record, "primary_image_url", "image_url", "image")


class TargetRegistryExtractor(ListExtractor):
    label = "target-registry"
    default_base_url = BASE_URL
    known_paths = (
        ("registry_items", "target_items"),
        ("registry_items",),
        ("items",),
        ("data", "registry_items", "target_items"),
        ("data", "registry_items"),
        ("data", "items"),
        ("props", "pageProps", "registryItems"),
        ("props", "pageProps", "registry", "registry_items", "target_items"),
    )
    id_keys = ("tcin", "product_description")
    container_selectors = ("[data-test='registry-items']", "[data-test='gift-giver-items']", "main")
    item_selectors = (
        "[data-test='list-item']",
        "[data-test='registry-item']",
        ".styles__Item",
        ".RegistryItem",
    )
    product_link_re = PRODUCT_LINK_RE

    def record_to_raw(self, record: dict) -> TargetRawItem:
        return TargetRawItem(
            title=first_value(
                record,
                "title",
                "product_description.title",
                "item.product_description.title",
                "product_title",
                "name",
                "description",
            ),
            tcin=first_value(record, "tcin", "item.tcin"),
            url=first_value(record, "enrichment.buy_url", "item.enrichment.buy_url", "url"),
            price=_record_price(record),
            image=_record_image(record),
        )

    def element_to_raw(self, element: Tag) -> TargetRawItem:
        title_el = select_first(element, ["[data-test='product-title']", "h3", ".ProductTitle", "a"])
        price_el = select_first(element, ["[data-test='product-price']", ".Price", ".h-text-bs"])
        link_el = element.select_one("a[href*='/A-']") or element.select_one("a[href]")
        return TargetRawItem(
            title=text_of(title_el),
            url=link_el.get("href") if link_el is not None else None,
            price=price_from_text(text_of(price_el)),
            image=image_src(element),
        )

    def link_to_raw(self, href: str, name: str, image: Optional[str]) -> TargetRawItem:
        return TargetRawItem(title=name, url=href, image=image)

    def normalize(self, raw: TargetRawItem, base_url: str) -> Optional[NormalizedItem]:
        name = clean_text(raw.title)
        if not name:
            return None
        link = product_link(raw.tcin)
        if link is None:
            url = absolute_url(raw.url, base_url)
            if url:
                m = _TCIN_IN_PATH.search(url)
                link = product_link(m.group(1)) if m else strip_query(url)
        return NormalizedItem(
            name=name,
            price=format_price(raw.price),
            link=link,
            image=absolute_url(raw.image, base_url),
        )


TARGET_REGISTRY = TargetRegistryExtractor()
