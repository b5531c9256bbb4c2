"""Gateway transport - JSON over HTTP to the contract signing gateway.

Reads (GET) are retried with exponential backoff on dropped connections and
429s. Writes (POST) go out exactly once: a POST may broadcast a transaction,
and replaying it could broadcast a second one.
"""

import logging
import time
from typing import Any, Optional

import requests
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

logger = logging.getLogger(__name__)


class HTTPClientError(Exception):
    """Gateway request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(HTTPClientError):
    """Gateway answered 429."""


class APIError(HTTPClientError):
    """Gateway answered with an error status or an unusable body."""


class TransportError(HTTPClientError):
    """No response at all (connection refused, reset, timed out)."""


class HTTPClient:
    """Pooled, throttled session against one gateway base URL.

    Example:
        client = HTTPClient("https://gateway.example.com", api_key="...", rate_limit_rps=2.0)
        receipt = client.get("/transactions/0xabc/receipt")
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        api_key_header: str = "X-API-Key",
        rate_limit_rps: float = 5.0,
        timeout_seconds: int = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if api_key:
            self._headers[api_key_header] = api_key

        # 0 disables throttling
        self._min_interval = 1.0 / rate_limit_rps if rate_limit_rps > 0 else 0
        self._last_request_at: float = 0
        self._session = requests.Session()

    def _throttle(self) -> None:
        if self._min_interval <= 0:
            return
        delay = self._min_interval - (time.monotonic() - self._last_request_at)
        if delay > 0:
            time.sleep(delay)
        self._last_request_at = time.monotonic()

    def _send(self, method: str, endpoint: str, **kwargs: Any) -> dict[str, Any]:
        """Issue one request and map the response onto the error hierarchy."""
        self._throttle()
        url = f"{self.base_url}{endpoint}"
        logger.debug(f"{method} {url}")

        send = self._session.get if method == "GET" else self._session.post
        try:
            response = send(url, headers=self._headers, timeout=self.timeout_seconds, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Gateway {method} {endpoint} failed: {e}")
            raise TransportError(f"Gateway unreachable: {e}") from e

        if response.status_code == 429:
            raise RateLimitError(f"Gateway rate limit: {response.text}", status_code=429)
        if response.status_code >= 400:
            raise APIError(
                f"Gateway error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"Gateway returned non-JSON body: {e}") from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((TransportError, RateLimitError)),
        reraise=True,
    )
    def get(self, endpoint: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        return self._send("GET", endpoint, params=params)

    def post(self, endpoint: str, payload: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Single-shot POST; never retried."""
        return self._send("POST", endpoint, json=payload or {})

    def close(self) -> None:
        self._session.close()
