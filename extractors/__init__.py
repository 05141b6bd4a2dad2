# extractors/__init__.py
from typing import Optional

from core.config import Settings
from core.models import ExtractionResult, ListUrl, RetailerKind

from . import amazon
from . import target
from . import walmart
from .deep_search import DEFAULT_MAX_DEPTH

EXTRACTORS = {
    RetailerKind.AMAZON_WISHLIST: amazon.AMAZON_WISHLIST,
    RetailerKind.AMAZON_REGISTRY: amazon.AMAZON_REGISTRY,
    RetailerKind.TARGET_REGISTRY: target.TARGET_REGISTRY,
    RetailerKind.WALMART_WISHLIST: walmart.WALMART_WISHLIST,
    RetailerKind.WALMART_REGISTRY: walmart.WALMART_REGISTRY,
}


def extract(body: str, list_url: ListUrl, settings: Optional[Settings] = None) -> ExtractionResult:
    """Turn a usable page body into normalized items for the URL's retailer."""
    extractor = EXTRACTORS.get(list_url.kind)
    if extractor is None:
        raise ValueError(f"No extractor for {list_url.kind.value}")
    max_depth = settings.deep_search_max_depth if settings is not None else DEFAULT_MAX_DEPTH
    return extractor.extract(body, list_url, max_depth=max_depth)
