"""
NerdGraph Client
================

Async GraphQL client for the New Relic NerdGraph API with:
- Circuit breaker to prevent cascade failures
- Exponential backoff retry
- Timeout handling
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

import httpx

from slo_r.core import NerdGraphException
from slo_r.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

NRQL_QUERY = """
query($accountId: Int!, $nrql: Nrql!) {
  actor {
    account(id: $accountId) {
      nrql(query: $nrql) {
        results
      }
    }
  }
}
"""


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._last_failure_time:
            elapsed = time.monotonic() - self._last_failure_time
            if elapsed >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        """Check if request should be allowed."""
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        """Record successful request."""
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        """Record failed request."""
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class NerdGraphClient:
    """
    NerdGraph GraphQL client.

    Transport errors, 429 and 5xx responses are retried with exponential
    backoff; other 4xx responses and GraphQL ``errors`` fail immediately.
    """

    def __init__(
        self,
        url: str,
        api_key: Optional[str],
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        nerdpack_id: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        backoff_seconds: float = 1.0
    ):
        self._url = url
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._max_retries = max_retries
        self._nerdpack_id = nerdpack_id
        self._backoff_seconds = backoff_seconds
        self._http_client = http_client
        self._circuit_breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout_seconds)
        return self._http_client

    def _headers(self) -> Dict[str, str]:
        headers = {"API-Key": self._api_key or "", "Content-Type": "application/json"}
        if self._nerdpack_id:
            # Entity storage collections are scoped to the owning nerdpack
            headers["NewRelic-Package-Id"] = self._nerdpack_id
        return headers

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run a GraphQL query or mutation and return its ``data``.

        Raises:
            NerdGraphException: on missing credentials, open circuit,
                non-retryable HTTP status, GraphQL errors or exhausted retries
        """
        if not self._api_key:
            raise NerdGraphException("API key not configured")

        if not self._circuit_breaker.allow_request():
            raise NerdGraphException("circuit breaker open, request rejected")

        payload = {"query": query, "variables": variables or {}}
        last_error = "no attempt made"

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._url, json=payload, headers=self._headers())
            except httpx.HTTPError as e:
                last_error = str(e) or type(e).__name__
                logger.warning(
                    "NerdGraph request failed",
                    extra={"error": last_error, "attempt": attempt + 1}
                )
            else:
                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    return self._unwrap(response)

                last_error = f"HTTP {response.status_code}"
                if response.status_code != 429 and response.status_code < 500:
                    raise NerdGraphException(
                        f"request rejected with {last_error}",
                        details={"status_code": response.status_code, "body": response.text[:500]}
                    )
                logger.warning(
                    "NerdGraph returned retryable status",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._backoff_seconds * 2 ** attempt)

        self._circuit_breaker.record_failure()
        raise NerdGraphException(
            f"request failed after {self._max_retries} attempts: {last_error}"
        )

    @staticmethod
    def _unwrap(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise NerdGraphException("response is not JSON") from e

        errors = body.get("errors")
        if errors:
            messages = "; ".join(str(error.get("message", error)) for error in errors)
            raise NerdGraphException(f"GraphQL errors: {messages}", details={"errors": errors})
        return body.get("data") or {}

    async def nrql(self, account_id: int, nrql: str) -> List[Dict[str, Any]]:
        """Run an NRQL query and return its result rows."""
        data = await self.execute(NRQL_QUERY, {"accountId": account_id, "nrql": nrql})
        try:
            results = data["actor"]["account"]["nrql"]["results"]
        except (KeyError, TypeError) as e:
            raise NerdGraphException("unexpected NRQL response shape", details={"data": data}) from e
        return results or []

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
