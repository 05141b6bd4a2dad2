# fetchers/registry_api.py
"""
Retailer-hosted registry JSON endpoints.

Target serves registry contents to its own web client from a public API; asking
it directly skips the HTML (and most of the bot defenses) entirely. The body
returned is JSON and goes through the same extraction path as any page.
"""
from urllib.parse import quote

import requests

from core.config import Settings
from core.errors import ProviderNotConfigured
from core.models import ListUrl, ProviderId, RetailerKind
from core.urls import target_registry_id

from .base import Provider, ProviderResponse, send
from .direct import random_user_agent

TARGET_API_URL = "https://api.target.com/registries/v2/{registry_id}/gift_givers"

TARGET_CONTEXT = {
    "channel": "WEB",
    "sub_channel": "TGTWEB",
    "location_id": "1904",
    "pricing_context": "DIGITAL",
    "contents_field_group": "REGISTRY_ITEMS",
}


def is_configured(settings: Settings) -> bool:
    return bool(settings.target_api_key)


def _fetch_target(session: requests.Session, list_url: ListUrl, settings: Settings, timeout: float) -> ProviderResponse:
    registry_id = target_registry_id(list_url.canonical)
    if not registry_id:
        raise ProviderNotConfigured(f"no Target registry id in {list_url.canonical}")
    params = dict(TARGET_CONTEXT, key=settings.target_api_key)
    # No item-type filter: purchased and unpurchased items both come back.
    body = dict(TARGET_CONTEXT, registry_id=registry_id, sort={"field": "PRICE", "order": "ASCENDING"})
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "User-Agent": random_user_agent(),
        "Origin": "https://www.target.com",
        "Referer": list_url.canonical,
    }
    return send(
        session,
        "POST",
        TARGET_API_URL.format(registry_id=quote(registry_id, safe="")),
        "target-api",
        params=params,
        json=body,
        headers=headers,
        timeout=timeout,
    )


API_FETCHERS = {
    RetailerKind.TARGET_REGISTRY: _fetch_target,
}


def fetch_page(session: requests.Session, list_url: ListUrl, settings: Settings, timeout: float) -> ProviderResponse:
    fetcher = API_FETCHERS.get(list_url.kind)
    if fetcher is None or not is_configured(settings):
        raise ProviderNotConfigured(f"no registry API for {list_url.kind.value}")
    return fetcher(session, list_url, settings, timeout)


PROVIDER = Provider(ProviderId.REGISTRY_API, fetch_page, is_configured)
