"""
HTTP utilities for the feed mirror.

Provides a thin requests wrapper with optional retries and backoff. The
mirror only ever issues two kinds of request against the feed: a HEAD
probe for the archive's ETag and a streaming GET for the archive body.
"""
import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, Optional

import requests

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
DEFAULT_USER_AGENT = "osv-mirror/0.1"


class NetworkError(RuntimeError):
    """Raised when the feed is unreachable or answers with a non-success status."""


@dataclass
class RetryConfig:
    # No retries unless the caller asks for them
    max_retries: int = 0
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 60.0
    jitter_ratio: float = 0.3
    timeout_seconds: float = 60.0


class HttpClient:
    """HTTP client for the feed host with caller-configured retries."""

    def __init__(
        self,
        retry_config: Optional[RetryConfig] = None,
        session: Optional[requests.Session] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.retry_config = retry_config or RetryConfig()
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def head(self, url: str, headers: Optional[Dict[str, str]] = None) -> requests.Response:
        """Issue a metadata-only request; no body is transferred."""
        return self._request("HEAD", url, headers=headers, stream=False)

    def get_stream(self, url: str, headers: Optional[Dict[str, str]] = None) -> requests.Response:
        """Issue a GET whose body is left unread for the caller to stream."""
        return self._request("GET", url, headers=headers, stream=True)

    def _request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        stream: bool = False,
    ) -> requests.Response:
        last_error: Optional[Exception] = None

        for attempt in range(self.retry_config.max_retries + 1):
            try:
                response = self.session.request(
                    method,
                    url,
                    headers=headers,
                    timeout=self.retry_config.timeout_seconds,
                    stream=stream,
                    allow_redirects=True,
                )
            except requests.RequestException as exc:
                last_error = exc
                if attempt < self.retry_config.max_retries:
                    logger.warning("%s %s failed (%s), retrying", method, url, exc)
                    self._sleep_with_backoff(attempt, None)
                    continue
                raise NetworkError(f"{method} {url} failed: {exc}") from exc

            if response.status_code in RETRYABLE_STATUS_CODES and attempt < self.retry_config.max_retries:
                last_error = NetworkError(f"HTTP {response.status_code} for {method} {url}")
                logger.warning("%s %s returned HTTP %s, retrying", method, url, response.status_code)
                retry_after = self._retry_after_seconds(response)
                response.close()
                self._sleep_with_backoff(attempt, retry_after)
                continue

            if not 200 <= response.status_code < 300:
                response.close()
                raise NetworkError(f"HTTP {response.status_code} for {method} {url}")

            return response

        raise NetworkError(str(last_error) if last_error else f"{method} {url} failed")

    def _retry_after_seconds(self, response: requests.Response) -> Optional[float]:
        value = response.headers.get("Retry-After")
        if not value:
            return None

        try:
            return float(value)
        except ValueError:
            try:
                dt = parsedate_to_datetime(value)
                if dt.tzinfo is None:
                    dt = dt.replace(tzinfo=timezone.utc)
                return max(0.0, (dt - datetime.now(timezone.utc)).total_seconds())
            except (TypeError, ValueError):
                logger.debug("Unable to parse Retry-After header: %s", value)
                return None

    def _sleep_with_backoff(self, attempt: int, retry_after: Optional[float]) -> None:
        base = min(
            self.retry_config.max_delay_seconds,
            self.retry_config.base_delay_seconds * (2 ** attempt),
        )
        jitter = base * random.uniform(0, self.retry_config.jitter_ratio)
        delay = base + jitter
        if retry_after is not None:
            delay = max(delay, retry_after)
        time.sleep(delay)
