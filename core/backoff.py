# core/backoff.py
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Type

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, stop_any
from tenacity.stop import stop_base
from tenacity.wait import wait_base


class _JitteredDelays(wait_base):
    """Fixed per-attempt delays (or exponential ones) plus a random jitter window."""

    def __init__(self, policy: "BackoffPolicy", rng: random.Random):
        self.policy = policy
        self.rng = rng

    def __call__(self, retry_state) -> float:
        return self.policy.delay_for(retry_state.attempt_number, self.rng)


class _stop_at_deadline(stop_base):
    def __init__(self, deadline: float, clock: Callable[[], float]):
        self.deadline = deadline
        self.clock = clock

    def __call__(self, retry_state) -> bool:
        return self.clock() >= self.deadline


@dataclass(frozen=True)
class BackoffPolicy:
    """
    How many times one strategy may try, and how long to wait between tries.

    ``delays`` pins the base delay per retry (seconds); otherwise the delay grows
    exponentially from ``base_delay`` up to ``max_delay``. A uniform jitter of up
    to ``jitter`` seconds is added either way.
    """
    max_attempts: int = 1
    base_delay: float = 1.0
    max_delay: float = 8.0
    jitter: float = 1.0
    delays: Optional[Sequence[float]] = None

    def delay_for(self, attempt_number: int, rng: Optional[random.Random] = None) -> float:
        rng = rng or random
        if self.delays:
            idx = min(attempt_number, len(self.delays)) - 1
            base = self.delays[max(idx, 0)]
        else:
            base = min(self.max_delay, self.base_delay * (2 ** max(attempt_number - 1, 0)))
        return base + rng.uniform(0, self.jitter)

    def retrying(
        self,
        retry_on: Type[BaseException],
        sleep: Callable[[float], None] = time.sleep,
        deadline: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ) -> Retrying:
        stop = stop_after_attempt(max(1, self.max_attempts))
        if deadline is not None:
            stop = stop_any(stop, _stop_at_deadline(deadline, clock))
        return Retrying(
            stop=stop,
            wait=_JitteredDelays(self, rng or random.Random()),
            retry=retry_if_exception_type(retry_on),
            sleep=sleep,
            reraise=True,
        )


NO_RETRY = BackoffPolicy(max_attempts=1)
