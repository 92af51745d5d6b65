"""Capped exponential backoff driven by a retryable-error predicate."""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from gwipt.utils.logger import llm_logger

T = TypeVar("T")


class RetryBudgetExhausted(Exception):
    """The operation kept failing with retryable errors past the ceiling."""

    def __init__(self, attempts: int, elapsed: float, last_error: BaseException):
        super().__init__(
            f"Gave up after {attempts} attempts ({elapsed:.1f}s of backoff): {last_error}"
        )
        self.attempts = attempts
        self.elapsed = elapsed
        self.last_error = last_error


@dataclass(frozen=True)
class BackoffPolicy:
    initial_interval: float = 0.5
    multiplier: float = 1.5
    randomization_factor: float = 0.5
    max_interval: float = 60.0
    max_elapsed_time: float = 900.0

    def jittered(self, interval: float, rng: random.Random) -> float:
        delta = self.randomization_factor * interval
        return rng.uniform(interval - delta, interval + delta)


def retry_with_backoff(
    operation: Callable[[], T],
    is_retryable: Callable[[BaseException], bool],
    policy: BackoffPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
) -> T:
    """Call ``operation`` until it succeeds or fails permanently.

    Errors for which ``is_retryable`` is False propagate on the spot. Delays
    never shrink between attempts even with jitter applied.

    Raises:
        RetryBudgetExhausted: The next delay would pass ``max_elapsed_time``.
    """
    policy = policy or BackoffPolicy()
    rng = rng or random.Random()

    attempts = 0
    elapsed = 0.0
    previous_delay = 0.0
    interval = policy.initial_interval

    while True:
        attempts += 1
        try:
            return operation()
        except Exception as exc:
            if not is_retryable(exc):
                raise

            delay = max(previous_delay, min(policy.jittered(interval, rng), policy.max_interval))
            if elapsed + delay > policy.max_elapsed_time:
                raise RetryBudgetExhausted(attempts, elapsed, exc) from exc

            llm_logger.warning(
                "Retryable failure, backing off",
                attempt=attempts,
                delay=round(delay, 2),
                error=str(exc),
            )
            sleep(delay)
            elapsed += delay
            previous_delay = delay
            interval = min(interval * policy.multiplier, policy.max_interval)
