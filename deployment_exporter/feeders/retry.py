"""Retry strategies for feeder reconnection.

The watch feeder never gives up: it reopens its subscription after every
failure or stream end, waiting `strategy.get_delay(ctx)` in between. The
strategy is injected so the backoff is configuration, not a literal.

Usage:
    strategy = FixedBackoffStrategy(delay=5.0)
    ctx = RetryContext(target="all namespaces", operation="watch")

    while strategy.should_retry(ctx):
        try:
            return open_watch()
        except KUBE_API_ERRORS as e:
            ctx.record_failure(e)
            stop_event.wait(strategy.get_delay(ctx))
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class RetryContext:
    """Context for tracking retry state of one long-running operation."""

    target: str = ""  # Scope identifier for logging
    operation: str = ""  # Operation name for logging
    attempt: int = 0  # Consecutive failures since the last success
    total_failures: int = 0
    last_error: Optional[BaseException] = None
    total_delay: float = 0.0  # Total time spent in delays

    def record_failure(self, error: Optional[BaseException] = None) -> None:
        """Record a failure (or a clean stream end, with no error)."""
        self.last_error = error
        self.attempt += 1
        self.total_failures += 1

    def record_success(self) -> None:
        """Reset the consecutive-failure count."""
        self.attempt = 0

    def record_delay(self, delay: float) -> None:
        self.total_delay += delay


class RetryStrategy(ABC):
    """Abstract base class for retry strategies.

    Implementations define:
    - should_retry(): Whether to continue retrying
    - get_delay(): How long to wait before next attempt
    """

    def __init__(self, max_retries: Optional[int] = None):
        """Initialize the retry strategy.

        Args:
            max_retries: Maximum consecutive attempts; None retries forever
        """
        self.max_retries = max_retries

    @abstractmethod
    def get_delay(self, ctx: RetryContext) -> float:
        """Delay in seconds before the next attempt."""

    def should_retry(self, ctx: RetryContext) -> bool:
        if self.max_retries is None:
            return True
        return ctx.attempt < self.max_retries

    def on_retry(self, ctx: RetryContext, delay: float) -> None:
        """Called before each retry. Override for custom logging/metrics."""
        ctx.record_delay(delay)
        logger.debug(
            f"[{self.__class__.__name__}] Retry {ctx.attempt} "
            f"for {ctx.operation} on {ctx.target} in {delay:.2f}s"
        )


class FixedBackoffStrategy(RetryStrategy):
    """Flat delay between attempts, no growth."""

    def __init__(self, delay: float = 5.0, max_retries: Optional[int] = None):
        super().__init__(max_retries)
        if delay < 0:
            raise ValueError("delay must not be negative")
        self.delay = delay

    def get_delay(self, ctx: RetryContext) -> float:
        return self.delay
