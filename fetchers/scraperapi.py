# fetchers/scraperapi.py
"""Rendering proxy: ScraperAPI fetches the page in a real browser and returns the HTML."""
import requests

from core.config import Settings
from core.errors import ProviderNotConfigured
from core.models import ListUrl, ProviderId

from .base import Provider, ProviderResponse, send


def is_configured(settings: Settings) -> bool:
    return bool(settings.scraper_api_key and settings.scraper_api_url)


def fetch_page(session: requests.Session, list_url: ListUrl, settings: Settings, timeout: float) -> ProviderResponse:
    if not is_configured(settings):
        raise ProviderNotConfigured("SCRAPER_API_KEY is not set")
    params = {
        "api_key": settings.scraper_api_key,
        "url": list_url.canonical,
        "render": "true",
        "country_code": "us",
    }
    return send(session, "GET", settings.scraper_api_url, "scraperapi", params=params, timeout=timeout)


PROVIDER = Provider(ProviderId.RENDERING_PROXY, fetch_page, is_configured)
