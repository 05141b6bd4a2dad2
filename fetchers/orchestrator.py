# fetchers/orchestrator.py
"""
Ordered, per-retailer fetch strategies.

Each retailer gets a fixed list of steps (provider + backoff policy). Steps run
strictly one after another; the first response judged usable wins. Blocked,
too-small and transport failures are retried inside a step, login walls and
private lists move straight on to the next step, and providers without
credentials are skipped without recording an attempt.
"""
import random
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence

import requests

from core.backoff import BackoffPolicy
from core.config import Settings
from core.errors import FetchError, ProviderNotConfigured
from core.logger import get_logger
from core.models import ErrorKind, FetchAttempt, FetchResult, ListUrl, ProviderId, ResponseVerdict, RetailerKind
from core.verdict import judge_response

from . import PROVIDERS
from .base import Provider

logger = get_logger(__name__)


@dataclass(frozen=True)
class StrategyStep:
    provider_id: ProviderId
    policy: BackoffPolicy
    # Overrides the retailer's configured floor; JSON APIs answer with small bodies.
    min_body_bytes: Optional[int] = None


STRATEGIES: Dict[RetailerKind, Sequence[StrategyStep]] = {
    RetailerKind.AMAZON_WISHLIST: (
        StrategyStep(ProviderId.RENDERING_PROXY, BackoffPolicy(max_attempts=2, base_delay=1.0, max_delay=4.0)),
        StrategyStep(ProviderId.UNLOCKER, BackoffPolicy(max_attempts=2, base_delay=1.5, max_delay=5.0)),
        StrategyStep(ProviderId.DIRECT, BackoffPolicy(max_attempts=3, base_delay=2.0, max_delay=8.0, jitter=2.0)),
    ),
    RetailerKind.AMAZON_REGISTRY: (
        StrategyStep(ProviderId.UNLOCKER, BackoffPolicy(max_attempts=3, delays=(1.5, 3.0, 5.0))),
        StrategyStep(ProviderId.DIRECT, BackoffPolicy(max_attempts=3, base_delay=2.0, max_delay=8.0, jitter=2.0)),
    ),
    RetailerKind.TARGET_REGISTRY: (
        StrategyStep(ProviderId.REGISTRY_API, BackoffPolicy(max_attempts=2, base_delay=1.0, max_delay=2.0), 0),
        StrategyStep(ProviderId.UNLOCKER, BackoffPolicy(max_attempts=2, base_delay=1.5, max_delay=5.0)),
        StrategyStep(ProviderId.RENDERING_PROXY, BackoffPolicy(max_attempts=1)),
    ),
    RetailerKind.WALMART_WISHLIST: (
        StrategyStep(ProviderId.DIRECT, BackoffPolicy(max_attempts=3, base_delay=2.0, max_delay=8.0, jitter=2.0)),
        StrategyStep(ProviderId.UNLOCKER, BackoffPolicy(max_attempts=2, base_delay=1.5, max_delay=5.0)),
    ),
    RetailerKind.WALMART_REGISTRY: (
        StrategyStep(ProviderId.DIRECT, BackoffPolicy(max_attempts=3, base_delay=2.0, max_delay=8.0, jitter=2.0)),
        StrategyStep(ProviderId.UNLOCKER, BackoffPolicy(max_attempts=2, base_delay=1.5, max_delay=5.0)),
    ),
    RetailerKind.UNSUPPORTED: (),
}

RETRYABLE_VERDICTS = (ResponseVerdict.BLOCKED_OR_CAPTCHA, ResponseVerdict.TOO_SMALL)


class _AttemptFailed(Exception):
    def __init__(self, attempt: FetchAttempt):
        super().__init__(attempt.classification.value)
        self.attempt = attempt


class _RetryableAttempt(_AttemptFailed):
    """Blocked, too small or a transport error: worth another try on the same provider."""


class _StrategyFailed(_AttemptFailed):
    """Login wall or private list: another try on the same provider will not help."""


class _StrategyUnavailable(Exception):
    pass


class _DeadlineReached(Exception):
    pass


class FetchOrchestrator:
    def __init__(
        self,
        settings: Settings,
        providers: Optional[Mapping[ProviderId, Provider]] = None,
        strategies: Optional[Mapping[RetailerKind, Sequence[StrategyStep]]] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings
        self.providers = PROVIDERS if providers is None else providers
        self.strategies = STRATEGIES if strategies is None else strategies
        self.session_factory = session_factory
        self.sleep = sleep
        self.clock = clock
        self.rng = rng or random.Random()

    def available_providers(self) -> Dict[str, bool]:
        return {pid.value: provider.is_configured(self.settings) for pid, provider in self.providers.items()}

    def fetch(self, list_url: ListUrl, deadline: Optional[float] = None) -> FetchResult:
        """Run the retailer's strategies in order until one returns a usable body."""
        if not list_url.supported:
            return FetchResult(success=False, terminal_error=ErrorKind.UNSUPPORTED_RETAILER)

        steps = self.strategies.get(list_url.kind, ())
        attempts: List[FetchAttempt] = []
        timed_out = False
        session = self.session_factory()
        try:
            for index, step in enumerate(steps, start=1):
                if self._expired(deadline):
                    timed_out = True
                    break
                provider = self.providers.get(step.provider_id)
                if provider is None or not provider.is_configured(self.settings):
                    logger.info(
                        "%s strategy %d/%d (%s) unavailable: not configured",
                        list_url.kind.value, index, len(steps), step.provider_id.value,
                    )
                    continue

                logger.info(
                    "%s strategy %d/%d: trying %s (up to %d attempts)",
                    list_url.kind.value, index, len(steps), step.provider_id.value, step.policy.max_attempts,
                )
                try:
                    body = self._run_step(session, provider, step, list_url, attempts, deadline)
                except _StrategyUnavailable as exc:
                    logger.info("%s unavailable: %s", step.provider_id.value, exc)
                    continue
                except _DeadlineReached:
                    timed_out = True
                    break
                except _AttemptFailed as exc:
                    logger.warning(
                        "%s strategy %d/%d (%s) failed with %s",
                        list_url.kind.value, index, len(steps), step.provider_id.value, exc,
                    )
                    if self._expired(deadline):
                        timed_out = True
                        break
                    continue

                logger.info(
                    "Fetched %s via %s after %d attempt(s)", list_url.canonical, step.provider_id.value, len(attempts)
                )
                return FetchResult(success=True, body=body, provider_used=step.provider_id, attempts=attempts)
        finally:
            session.close()

        terminal = ErrorKind.ALL_PROVIDERS_EXHAUSTED
        if timed_out:
            logger.warning("Fetch of %s hit the deadline after %d attempt(s)", list_url.canonical, len(attempts))
            if all(a.error is ErrorKind.NETWORK_FAILURE for a in attempts):
                terminal = ErrorKind.NETWORK_FAILURE
        else:
            logger.warning("All strategies exhausted for %s (%d attempts)", list_url.canonical, len(attempts))
        return FetchResult(success=False, attempts=attempts, terminal_error=terminal)

    def _expired(self, deadline: Optional[float]) -> bool:
        return deadline is not None and self.clock() >= deadline

    def _timeout(self, deadline: Optional[float]) -> float:
        timeout = self.settings.request_timeout
        if deadline is None:
            return timeout
        remaining = deadline - self.clock()
        if remaining <= 0:
            raise _DeadlineReached()
        return min(timeout, remaining)

    def _sleeper(self, deadline: Optional[float]) -> Callable[[float], None]:
        if deadline is None:
            return self.sleep

        def _sleep(seconds: float) -> None:
            self.sleep(max(0.0, min(seconds, deadline - self.clock())))

        return _sleep

    def _run_step(
        self,
        session: requests.Session,
        provider: Provider,
        step: StrategyStep,
        list_url: ListUrl,
        attempts: List[FetchAttempt],
        deadline: Optional[float],
    ) -> str:
        retrying = step.policy.retrying(
            _RetryableAttempt,
            sleep=self._sleeper(deadline),
            deadline=deadline,
            clock=self.clock,
            rng=self.rng,
        )
        return retrying(self._attempt, session, provider, step, list_url, attempts, deadline)

    def _attempt(
        self,
        session: requests.Session,
        provider: Provider,
        step: StrategyStep,
        list_url: ListUrl,
        attempts: List[FetchAttempt],
        deadline: Optional[float],
    ) -> str:
        timeout = self._timeout(deadline)
        started = self.clock()
        try:
            resp = provider.fetch(session, list_url, self.settings, timeout)
        except ProviderNotConfigured as exc:
            raise _StrategyUnavailable(str(exc)) from exc
        except FetchError as exc:
            attempt = FetchAttempt(
                provider=step.provider_id,
                http_status=0,
                body_length=0,
                classification=ResponseVerdict.TOO_SMALL,
                elapsed_ms=self._elapsed_ms(started),
                error=ErrorKind.NETWORK_FAILURE,
            )
            attempts.append(attempt)
            logger.warning("%s attempt %d: network failure: %s", step.provider_id.value, len(attempts), exc)
            raise _RetryableAttempt(attempt) from exc

        min_bytes = step.min_body_bytes
        if min_bytes is None:
            min_bytes = self.settings.min_bytes_for(list_url.kind)
        verdict = judge_response(resp.status, resp.body, list_url.kind, min_bytes)
        if verdict is ResponseVerdict.USABLE and len(resp.body) < min_bytes:
            verdict = ResponseVerdict.TOO_SMALL

        attempt = FetchAttempt(
            provider=step.provider_id,
            http_status=resp.status,
            body_length=len(resp.body),
            classification=verdict,
            elapsed_ms=self._elapsed_ms(started),
        )
        attempts.append(attempt)
        logger.info(
            "%s attempt %d: HTTP %s, %d chars, %s",
            step.provider_id.value, len(attempts), resp.status, len(resp.body), verdict.value,
        )

        if verdict is ResponseVerdict.USABLE and 200 <= resp.status < 300:
            return resp.body
        if verdict in RETRYABLE_VERDICTS or verdict is ResponseVerdict.USABLE:
            raise _RetryableAttempt(attempt)
        raise _StrategyFailed(attempt)

    def _elapsed_ms(self, started: float) -> int:
        return max(0, int((self.clock() - started) * 1000))
