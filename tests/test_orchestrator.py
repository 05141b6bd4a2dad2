"""Tests for fetchers.orchestrator: strategy order, retries, skips and the deadline."""

import dataclasses
import json
import random

import pytest

from core.errors import FetchError, ProviderNotConfigured
from core.models import ErrorKind, ProviderId, ResponseVerdict, RetailerKind
from core.urls import classify
from fetchers import PROVIDERS
from fetchers.base import Provider, ProviderResponse
from fetchers.orchestrator import STRATEGIES, FetchOrchestrator

PAGE = "<html><body>" + "<div class='row'>real list row</div>" * 50 + "</body></html>"
BLOCKED = "<html><p>Please verify you are a human</p>" + PAGE
LOGIN = '<html><input id="ap_email">' + PAGE

AMAZON_WISHLIST = classify("https://www.amazon.com/hz/wishlist/ls/3ABCDEF12345")
AMAZON_REGISTRY = classify("https://www.amazon.com/baby-reg/jane/1XYZ")
TARGET = classify("https://www.target.com/gift-registry/gift/abc123")
WALMART = classify("https://www.walmart.com/lists/view/0c1d2e3f")


class FakeSession:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class ScriptedProvider:
    """Plays back responses (or raises exceptions) in order; the last entry repeats."""

    def __init__(self, provider_id, script, configured=True, clock=None, cost=0.0):
        self.provider_id = provider_id
        self.script = list(script)
        self.configured = configured
        self.clock = clock
        self.cost = cost
        self.timeouts = []

    def fetch(self, session, list_url, settings, timeout):
        self.timeouts.append(timeout)
        if self.clock is not None:
            self.clock.advance(self.cost)
        entry = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(entry, Exception):
            raise entry
        return ProviderResponse(*entry)

    @property
    def calls(self):
        return len(self.timeouts)

    def provider(self):
        return Provider(self.provider_id, self.fetch, lambda settings: self.configured)


def _orchestrator(settings, clock, *scripted):
    return FetchOrchestrator(
        settings,
        providers={s.provider_id: s.provider() for s in scripted},
        session_factory=FakeSession,
        sleep=clock.sleep,
        clock=clock,
        rng=random.Random(0),
    )


class TestStrategyTable:
    def test_every_kind_has_an_entry(self):
        assert set(STRATEGIES) == set(RetailerKind)
        assert STRATEGIES[RetailerKind.UNSUPPORTED] == ()

    def test_orders(self):
        order = {kind: [s.provider_id for s in steps] for kind, steps in STRATEGIES.items()}
        assert order[RetailerKind.AMAZON_WISHLIST] == [ProviderId.RENDERING_PROXY, ProviderId.UNLOCKER, ProviderId.DIRECT]
        assert order[RetailerKind.AMAZON_REGISTRY] == [ProviderId.UNLOCKER, ProviderId.DIRECT]
        assert order[RetailerKind.TARGET_REGISTRY] == [
            ProviderId.REGISTRY_API, ProviderId.UNLOCKER, ProviderId.RENDERING_PROXY,
        ]
        assert order[RetailerKind.WALMART_WISHLIST] == [ProviderId.DIRECT, ProviderId.UNLOCKER]
        assert order[RetailerKind.WALMART_REGISTRY] == [ProviderId.DIRECT, ProviderId.UNLOCKER]

    def test_amazon_registry_unlocker_delays(self):
        step = STRATEGIES[RetailerKind.AMAZON_REGISTRY][0]
        assert step.policy.max_attempts == 3
        assert tuple(step.policy.delays) == (1.5, 3.0, 5.0)


class TestFetch:
    def test_all_blocked_exhausts(self, settings, clock):
        """Every strategy keeps seeing a captcha page."""
        proxy = ScriptedProvider(ProviderId.RENDERING_PROXY, [(200, BLOCKED)])
        unlocker = ScriptedProvider(ProviderId.UNLOCKER, [(200, BLOCKED)])
        direct = ScriptedProvider(ProviderId.DIRECT, [(200, BLOCKED)])
        result = _orchestrator(settings, clock, proxy, unlocker, direct).fetch(AMAZON_WISHLIST)

        assert not result.success
        assert result.terminal_error is ErrorKind.ALL_PROVIDERS_EXHAUSTED
        assert (proxy.calls, unlocker.calls, direct.calls) == (2, 2, 3)
        assert [a.provider for a in result.attempts] == (
            [ProviderId.RENDERING_PROXY] * 2 + [ProviderId.UNLOCKER] * 2 + [ProviderId.DIRECT] * 3
        )
        assert all(a.classification is ResponseVerdict.BLOCKED_OR_CAPTCHA for a in result.attempts)
        # One backoff sleep between tries inside each strategy, none between strategies.
        assert len(clock.sleeps) == 1 + 1 + 2

    def test_first_usable_wins(self, settings, clock):
        direct = ScriptedProvider(ProviderId.DIRECT, [(200, PAGE)])
        unlocker = ScriptedProvider(ProviderId.UNLOCKER, [(200, PAGE)])
        result = _orchestrator(settings, clock, direct, unlocker).fetch(WALMART)

        assert result.success
        assert result.body == PAGE
        assert result.provider_used is ProviderId.DIRECT
        assert len(result.attempts) == 1
        assert unlocker.calls == 0
        assert clock.sleeps == []

    def test_blocked_is_retried_on_same_provider(self, settings, clock):
        direct = ScriptedProvider(ProviderId.DIRECT, [(200, BLOCKED), (200, PAGE)])
        result = _orchestrator(settings, clock, direct).fetch(WALMART)

        assert result.success
        assert [a.classification for a in result.attempts] == [ResponseVerdict.BLOCKED_OR_CAPTCHA, ResponseVerdict.USABLE]
        assert len(clock.sleeps) == 1
        assert 2.0 <= clock.sleeps[0] <= 4.0

    def test_login_wall_advances_without_retry(self, settings, clock):
        unlocker = ScriptedProvider(ProviderId.UNLOCKER, [(200, LOGIN)])
        direct = ScriptedProvider(ProviderId.DIRECT, [(200, PAGE)])
        result = _orchestrator(settings, clock, unlocker, direct).fetch(AMAZON_REGISTRY)

        assert result.success
        assert result.provider_used is ProviderId.DIRECT
        assert unlocker.calls == 1
        assert result.attempts[0].classification is ResponseVerdict.LOGIN_REQUIRED
        assert clock.sleeps == []

    def test_not_found_status_advances_without_retry(self, settings, clock):
        direct = ScriptedProvider(ProviderId.DIRECT, [(404, PAGE)])
        unlocker = ScriptedProvider(ProviderId.UNLOCKER, [(200, PAGE)])
        result = _orchestrator(settings, clock, direct, unlocker).fetch(WALMART)

        assert result.success
        assert direct.calls == 1
        assert result.attempts[0].classification is ResponseVerdict.RESTRICTED

    def test_server_error_is_retried(self, settings, clock):
        direct = ScriptedProvider(ProviderId.DIRECT, [(500, PAGE), (200, PAGE)])
        result = _orchestrator(settings, clock, direct).fetch(WALMART)
        assert result.success
        assert direct.calls == 2

    def test_network_failure_is_recorded_and_retried(self, settings, clock):
        direct = ScriptedProvider(ProviderId.DIRECT, [FetchError("connection reset"), (200, PAGE)])
        result = _orchestrator(settings, clock, direct).fetch(WALMART)

        assert result.success
        failed = result.attempts[0]
        assert failed.error is ErrorKind.NETWORK_FAILURE
        assert failed.http_status == 0 and failed.body_length == 0
        assert result.attempts[1].error is None

    def test_unconfigured_provider_is_skipped(self, settings, clock):
        proxy = ScriptedProvider(ProviderId.RENDERING_PROXY, [(200, PAGE)], configured=False)
        unlocker = ScriptedProvider(ProviderId.UNLOCKER, [(200, PAGE)])
        result = _orchestrator(settings, clock, proxy, unlocker).fetch(AMAZON_WISHLIST)

        assert result.success
        assert proxy.calls == 0
        assert [a.provider for a in result.attempts] == [ProviderId.UNLOCKER]

    def test_provider_refusing_at_call_time_is_skipped(self, settings, clock):
        api = ScriptedProvider(ProviderId.REGISTRY_API, [ProviderNotConfigured("no key")])
        unlocker = ScriptedProvider(ProviderId.UNLOCKER, [(200, PAGE)])
        result = _orchestrator(settings, clock, api, unlocker).fetch(TARGET)

        assert result.success
        assert api.calls == 1
        assert [a.provider for a in result.attempts] == [ProviderId.UNLOCKER]

    def test_missing_provider_entry_is_skipped(self, settings, clock):
        direct = ScriptedProvider(ProviderId.DIRECT, [(200, PAGE)])
        result = _orchestrator(settings, clock, direct).fetch(AMAZON_WISHLIST)
        assert result.success
        assert result.provider_used is ProviderId.DIRECT

    def test_nothing_configured_is_exhausted_with_no_attempts(self, settings, clock):
        result = _orchestrator(settings, clock).fetch(AMAZON_WISHLIST)
        assert not result.success
        assert result.terminal_error is ErrorKind.ALL_PROVIDERS_EXHAUSTED
        assert result.attempts == []

    def test_unsupported_is_never_fetched(self, settings, clock):
        direct = ScriptedProvider(ProviderId.DIRECT, [(200, PAGE)])
        result = _orchestrator(settings, clock, direct).fetch(classify("https://example.com/list"))
        assert result.terminal_error is ErrorKind.UNSUPPORTED_RETAILER
        assert direct.calls == 0

    def test_small_json_from_registry_api_is_accepted(self, settings, clock):
        """The API step has no size floor; a short JSON answer is a real answer."""
        settings = dataclasses.replace(settings, min_body_bytes={RetailerKind.TARGET_REGISTRY: 2000})
        body = json.dumps({"registry_items": {"target_items": [{"tcin": "1", "title": "Crib"}]}})
        api = ScriptedProvider(ProviderId.REGISTRY_API, [(200, body)])
        result = _orchestrator(settings, clock, api).fetch(TARGET)
        assert result.success
        assert result.provider_used is ProviderId.REGISTRY_API

    def test_anchored_page_below_floor_is_too_small(self, settings, clock):
        settings = dataclasses.replace(settings, min_body_bytes={RetailerKind.WALMART_WISHLIST: 10000})
        small = '<html><a href="/ip/1">Toaster</a></html>'
        direct = ScriptedProvider(ProviderId.DIRECT, [(200, small)])
        result = _orchestrator(settings, clock, direct).fetch(WALMART)
        assert not result.success
        assert all(a.classification is ResponseVerdict.TOO_SMALL for a in result.attempts)
        assert direct.calls == 3

    def test_session_is_closed(self, settings, clock):
        sessions = []

        def factory():
            sessions.append(FakeSession())
            return sessions[-1]

        direct = ScriptedProvider(ProviderId.DIRECT, [(200, PAGE)])
        orchestrator = FetchOrchestrator(
            settings, providers={ProviderId.DIRECT: direct.provider()}, session_factory=factory,
            sleep=clock.sleep, clock=clock,
        )
        orchestrator.fetch(WALMART)
        assert sessions and sessions[0].closed


class TestDeadline:
    def test_timeouts_are_clipped_and_network_failure_reported(self, settings, clock):
        direct = ScriptedProvider(ProviderId.DIRECT, [FetchError("timed out")], clock=clock, cost=10.0)
        unlocker = ScriptedProvider(ProviderId.UNLOCKER, [(200, PAGE)])
        orchestrator = _orchestrator(settings, clock, direct, unlocker)
        result = orchestrator.fetch(WALMART, deadline=clock() + 15.0)

        assert not result.success
        assert result.terminal_error is ErrorKind.NETWORK_FAILURE
        assert unlocker.calls == 0
        assert direct.timeouts[0] == settings.request_timeout
        assert all(t < settings.request_timeout for t in direct.timeouts[1:])

    def test_deadline_with_blocked_responses_is_exhausted(self, settings, clock):
        direct = ScriptedProvider(ProviderId.DIRECT, [(200, BLOCKED)], clock=clock, cost=10.0)
        result = _orchestrator(settings, clock, direct).fetch(WALMART, deadline=clock() + 5.0)
        assert result.terminal_error is ErrorKind.ALL_PROVIDERS_EXHAUSTED
        assert direct.calls == 1

    def test_expired_deadline_makes_no_attempt(self, settings, clock):
        direct = ScriptedProvider(ProviderId.DIRECT, [(200, PAGE)])
        result = _orchestrator(settings, clock, direct).fetch(WALMART, deadline=clock() - 1.0)
        assert direct.calls == 0
        assert result.terminal_error is ErrorKind.NETWORK_FAILURE


class TestRegistry:
    def test_registry_covers_every_provider(self):
        assert set(PROVIDERS) == set(ProviderId)

    def test_available_providers(self, settings):
        bare = dataclasses.replace(settings, scraper_api_key="", brightdata_token="")
        available = FetchOrchestrator(bare).available_providers()
        assert available == {
            "direct": True,
            "rendering_proxy": False,
            "unlocker": False,
            "registry_api": True,
        }

    @pytest.mark.parametrize("kind", [k for k in RetailerKind if k is not RetailerKind.UNSUPPORTED])
    def test_every_step_has_a_provider(self, kind):
        for step in STRATEGIES[kind]:
            assert step.provider_id in PROVIDERS
