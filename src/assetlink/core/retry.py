"""Caller-side retry policy for remote fetches."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from assetlink.config import NetworkSettings
from assetlink.errors import NetworkError
from assetlink.pipeline.base import FetchedResource, Fetcher


def is_retryable(exc: BaseException) -> bool:
    """Only classified network errors that say so are worth another attempt."""

    return isinstance(exc, NetworkError) and bool(exc.retryable)


@dataclass(slots=True)
class RetryingFetcher:
    """Wraps a fetcher with exponential backoff on retryable network errors.

    The last error propagates unchanged once attempts are exhausted.
    """

    fetcher: Fetcher
    settings: NetworkSettings
    logger: logging.Logger

    def fetch(self, url: str, *, timeout: float | None = None) -> FetchedResource:
        retry_policy = Retrying(
            stop=stop_after_attempt(self.settings.max_retries + 1),
            wait=wait_exponential_jitter(
                initial=self.settings.backoff_min_seconds,
                max=self.settings.backoff_max_seconds,
                exp_base=self.settings.backoff_multiplier,
            ),
            retry=retry_if_exception(is_retryable),
            before_sleep=self._log_retry,
            reraise=True,
        )
        return retry_policy(self.fetcher.fetch, url, timeout=timeout)

    def _log_retry(self, state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        self.logger.warning(
            "Retrying fetch (attempt %s failed): %s", state.attempt_number, error
        )


def retrying_fetcher(
    fetcher: Fetcher,
    settings: NetworkSettings,
    logger: logging.Logger | None = None,
) -> Fetcher:
    """Return ``fetcher`` wrapped in the retry policy, or unchanged when retries are off."""

    if settings.max_retries <= 0:
        return fetcher
    return RetryingFetcher(fetcher, settings, logger or logging.getLogger(__name__))
