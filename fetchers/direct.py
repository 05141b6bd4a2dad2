# fetchers/direct.py
import random

import requests

from core.config import Settings
from core.models import ListUrl, ProviderId, RetailerKind

from .base import Provider, ProviderResponse, always_configured, send

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.0.0",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 "
    "Mobile/15E148 Safari/604.1",
]

ACCEPT_LANGUAGES = ["en-US,en;q=0.9", "en-US,en;q=0.8", "en-US,en;q=0.9,es;q=0.6"]

REFERERS = {
    RetailerKind.AMAZON_WISHLIST: "https://www.amazon.com/",
    RetailerKind.AMAZON_REGISTRY: "https://www.amazon.com/",
    RetailerKind.TARGET_REGISTRY: "https://www.target.com/",
    RetailerKind.WALMART_WISHLIST: "https://www.walmart.com/",
    RetailerKind.WALMART_REGISTRY: "https://www.walmart.com/",
}


def random_user_agent(rng: random.Random | None = None) -> str:
    return (rng or random).choice(USER_AGENTS)


def browser_headers(kind: RetailerKind, rng: random.Random | None = None) -> dict[str, str]:
    """A fresh browser-like identity; called once per attempt."""
    rng = rng or random
    headers = {
        "User-Agent": random_user_agent(rng),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
        "Accept-Language": rng.choice(ACCEPT_LANGUAGES),
        "Accept-Encoding": "gzip, deflate",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Upgrade-Insecure-Requests": "1",
    }
    referer = REFERERS.get(kind)
    if referer:
        headers["Referer"] = referer
    return headers


def fetch_page(session: requests.Session, list_url: ListUrl, settings: Settings, timeout: float) -> ProviderResponse:
    # Drop cookies from a previous identity so rotation is not undone by the jar.
    session.cookies.clear()
    return send(
        session,
        "GET",
        list_url.canonical,
        "direct",
        headers=browser_headers(list_url.kind),
        timeout=timeout,
        allow_redirects=True,
    )


PROVIDER = Provider(ProviderId.DIRECT, fetch_page, always_configured)
