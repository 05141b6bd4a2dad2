"""Tests for the provider adapters: what each one sends and how failures surface."""

import json

import pytest
import requests
from requests.cookies import RequestsCookieJar

from core.config import Settings
from core.errors import FetchError, ProviderNotConfigured
from core.urls import classify
from fetchers import brightdata, direct, registry_api, scraperapi

AMAZON = classify("https://www.amazon.com/hz/wishlist/ls/3ABCDEF12345")
TARGET = classify("https://www.target.com/gift-registry/gift/abc123")
WALMART = classify("https://www.walmart.com/lists/view/0c1d2e3f")


class FakeResponse:
    def __init__(self, status_code=200, text="<html></html>"):
        self.status_code = status_code
        self.text = text


class RecordingSession:
    """Stands in for requests.Session and remembers every request."""

    def __init__(self, response=None, exc=None):
        self.response = response or FakeResponse()
        self.exc = exc
        self.calls = []
        self.cookies = RequestsCookieJar()

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.response


class TestDirect:
    def test_browser_identity(self, settings):
        session = RecordingSession()
        session.cookies.set("session-id", "stale")
        resp = direct.fetch_page(session, WALMART, settings, 7.0)

        method, url, kwargs = session.calls[0]
        assert (method, url) == ("GET", WALMART.canonical)
        assert kwargs["timeout"] == 7.0
        assert kwargs["headers"]["User-Agent"] in direct.USER_AGENTS
        assert kwargs["headers"]["Referer"] == "https://www.walmart.com/"
        assert len(session.cookies) == 0
        assert resp.status == 200

    def test_http_errors_are_returned_not_raised(self, settings):
        session = RecordingSession(FakeResponse(503, "busy"))
        resp = direct.fetch_page(session, AMAZON, settings, 5.0)
        assert resp.status == 503 and resp.body == "busy"

    def test_transport_errors_become_fetch_error(self, settings):
        session = RecordingSession(exc=requests.ConnectionError("reset"))
        with pytest.raises(FetchError):
            direct.fetch_page(session, AMAZON, settings, 5.0)


class TestScraperApi:
    def test_forwards_target_url(self, settings):
        session = RecordingSession()
        scraperapi.fetch_page(session, AMAZON, settings, 9.0)
        method, url, kwargs = session.calls[0]
        assert (method, url) == ("GET", settings.scraper_api_url)
        assert kwargs["params"]["api_key"] == "scraper-key"
        assert kwargs["params"]["url"] == AMAZON.canonical
        assert kwargs["params"]["render"] == "true"

    def test_unconfigured(self):
        assert not scraperapi.is_configured(Settings())
        with pytest.raises(ProviderNotConfigured):
            scraperapi.fetch_page(RecordingSession(), AMAZON, Settings(), 5.0)


class TestBrightData:
    def test_request_shape(self, settings):
        session = RecordingSession()
        brightdata.fetch_page(session, AMAZON, settings, 9.0)
        method, url, kwargs = session.calls[0]
        assert (method, url) == ("POST", settings.brightdata_api_url)
        assert kwargs["headers"]["Authorization"] == "Bearer bd-token"
        assert json.loads(kwargs["headers"]["x-unblock-expect"]) == {"text": "Add to Cart"}
        assert kwargs["json"] == {"zone": "unlocker_zone", "url": AMAZON.canonical, "format": "raw"}

    def test_needs_token_and_zone(self):
        assert not brightdata.is_configured(Settings(brightdata_token="x"))
        assert brightdata.is_configured(Settings(brightdata_token="x", brightdata_zone="z"))


class TestRegistryApi:
    def test_target_request(self, settings):
        session = RecordingSession(FakeResponse(200, '{"registry_items": {}}'))
        resp = registry_api.fetch_page(session, TARGET, settings, 4.0)

        method, url, kwargs = session.calls[0]
        assert method == "POST"
        assert url == "https://api.target.com/registries/v2/abc123/gift_givers"
        assert kwargs["params"]["key"] == "target-key"
        assert kwargs["params"]["channel"] == "WEB"
        assert kwargs["json"]["registry_id"] == "abc123"
        assert kwargs["json"]["sort"] == {"field": "PRICE", "order": "ASCENDING"}
        assert kwargs["headers"]["Referer"] == TARGET.canonical
        assert resp.body == '{"registry_items": {}}'

    def test_other_retailers_have_no_api(self, settings):
        with pytest.raises(ProviderNotConfigured):
            registry_api.fetch_page(RecordingSession(), WALMART, settings, 4.0)

    def test_needs_key(self):
        assert not registry_api.is_configured(Settings(target_api_key=""))
