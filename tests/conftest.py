import pytest

from core.config import Settings
from core.models import RetailerKind

# Small floors so hand-written fixture pages count as real list pages.
TEST_MIN_BYTES = {
    RetailerKind.AMAZON_WISHLIST: 50,
    RetailerKind.AMAZON_REGISTRY: 50,
    RetailerKind.TARGET_REGISTRY: 20,
    RetailerKind.WALMART_WISHLIST: 50,
    RetailerKind.WALMART_REGISTRY: 50,
}


@pytest.fixture
def settings(tmp_path):
    return Settings(
        scraper_api_key="scraper-key",
        brightdata_token="bd-token",
        brightdata_zone="unlocker_zone",
        target_api_key="target-key",
        request_timeout=5.0,
        pipeline_timeout=60.0,
        min_body_bytes=dict(TEST_MIN_BYTES),
        db_path=str(tmp_path / "lists.sqlite3"),
    )


class FakeClock:
    """Monotonic clock that only moves when something sleeps or a fetch takes time."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class StubOrchestrator:
    """Hands back a canned FetchResult and remembers what it was asked for."""

    def __init__(self, result=None, exc=None, now: float = 500.0):
        self.result = result
        self.exc = exc
        self.now = now
        self.calls = []

    def clock(self) -> float:
        return self.now

    def available_providers(self):
        return {"direct": True, "rendering_proxy": False, "unlocker": False, "registry_api": True}

    def fetch(self, list_url, deadline=None):
        self.calls.append((list_url, deadline))
        if self.exc is not None:
            raise self.exc
        return self.result


@pytest.fixture
def stub_orchestrator():
    return StubOrchestrator
