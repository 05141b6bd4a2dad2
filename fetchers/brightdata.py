# fetchers/brightdata.py
"""Anti-bot unlocker: Bright Data Web Unlocker fetches on our behalf and returns raw HTML."""
import json

import requests

from core.config import Settings
from core.errors import ProviderNotConfigured
from core.models import ListUrl, ProviderId, RetailerKind

from .base import Provider, ProviderResponse, send
from .direct import random_user_agent

# Text the unlocker waits for before it considers the page rendered.
EXPECT_TEXT = {
    RetailerKind.AMAZON_WISHLIST: "Add to Cart",
    RetailerKind.AMAZON_REGISTRY: "Add to Cart",
}
DEFAULT_EXPECT_TEXT = "items in stock"


def is_configured(settings: Settings) -> bool:
    return bool(settings.brightdata_token and settings.brightdata_zone)


def fetch_page(session: requests.Session, list_url: ListUrl, settings: Settings, timeout: float) -> ProviderResponse:
    if not is_configured(settings):
        raise ProviderNotConfigured("BRIGHTDATA_UNLOCKER_API_TOKEN / BRIGHTDATA_UNLOCKER_ZONE are not set")
    expect = EXPECT_TEXT.get(list_url.kind, DEFAULT_EXPECT_TEXT)
    headers = {
        "Authorization": f"Bearer {settings.brightdata_token}",
        "Content-Type": "application/json",
        "User-Agent": random_user_agent(),
        "x-unblock-expect": json.dumps({"text": expect}),
    }
    payload = {"zone": settings.brightdata_zone, "url": list_url.canonical, "format": "raw"}
    return send(
        session,
        "POST",
        settings.brightdata_api_url,
        "brightdata",
        headers=headers,
        json=payload,
        timeout=timeout,
    )


PROVIDER = Provider(ProviderId.UNLOCKER, fetch_page, is_configured)
