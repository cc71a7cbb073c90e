"""JSON HTTP client with rate limiting and retry."""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

from src.common.exceptions import ExternalFetchError

from .config import MarketplaceConfig
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class HTTPClient:
    """HTTP client wrapping a requests session.

    Features:
    - Rate limiting shared by every request of the session
    - Automatic retries with exponential backoff
    - No retry on 4xx client errors other than 429
    - Failures surfaced as ExternalFetchError
    """

    BACKOFF_BASE = 2.0

    def __init__(self, config: MarketplaceConfig | None = None) -> None:
        self.config = config or MarketplaceConfig()
        self._rate_limiter = RateLimiter(self.config.rate_limit_rpm)
        self._session = requests.Session()
        self._session.headers.update({
            "User-Agent": self.config.user_agent,
            "Accept": "application/json",
        })

    def get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``url`` and decode the JSON body."""
        return self._request("GET", url, params=params)

    def post_json(self, url: str, body: dict[str, Any]) -> Any:
        """POST ``body`` as JSON to ``url`` and decode the JSON body."""
        return self._request("POST", url, json=body)

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send a request with rate limiting and retries.

        Raises:
            ExternalFetchError: On a non-retryable status, an undecodable
                body, or after all retries are exhausted.
        """
        max_retries = max(1, self.config.max_retries)
        last_exc: requests.RequestException | None = None

        for attempt in range(max_retries):
            self._rate_limiter.wait()
            try:
                resp = self._session.request(
                    method, url, timeout=self.config.request_timeout, **kwargs
                )
                resp.raise_for_status()
                return resp.json()

            except requests.HTTPError as exc:
                status = exc.response.status_code if exc.response is not None else None
                if status is not None and 400 <= status < 500 and status != 429:
                    logger.warning("%s %s failed (%d, no retry)", method, url, status)
                    raise ExternalFetchError(
                        f"{method} {url} failed with status {status}",
                        status_code=status,
                        url=url,
                    ) from exc
                last_exc = exc

            except ValueError as exc:
                raise ExternalFetchError(f"Invalid JSON from {url}", url=url) from exc

            except requests.RequestException as exc:
                last_exc = exc

            wait_time = self.BACKOFF_BASE ** attempt
            logger.warning(
                "%s %s failed (attempt %d/%d): %s, retrying in %.1fs",
                method,
                url,
                attempt + 1,
                max_retries,
                last_exc,
                wait_time,
            )
            time.sleep(wait_time)

        status = None
        if isinstance(last_exc, requests.HTTPError) and last_exc.response is not None:
            status = last_exc.response.status_code
        raise ExternalFetchError(
            f"{method} {url} failed after {max_retries} attempts: {last_exc}",
            status_code=status,
            url=url,
        ) from last_exc

    def close(self) -> None:
        """Close the underlying session."""
        self._session.close()

    def __enter__(self) -> HTTPClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
