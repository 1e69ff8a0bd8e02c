"""GraphQL transport over :mod:`httpx`."""

from __future__ import annotations
import logging
import re
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any
import httpx
from . import __version__
from .errors import (
    AuthenticationError,
    PartialAPIError,
    RateLimitError,
    TransportError,
    error_code,
)


logger = logging.getLogger(__name__)

LINEAR_API_ENDPOINT = "https://api.linear.app/graphql"
DEFAULT_TIMEOUT = 30.0
MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.0
MAX_RETRY_DELAY = 60.0

_RATE_LIMIT_CODES = frozenset({"RATELIMITED", "RATE_LIMITED"})
_AUTH_CODES = frozenset({"AUTHENTICATION_ERROR", "UNAUTHENTICATED", "FORBIDDEN"})
_OPERATION_RE = re.compile(r"^\s*(query|mutation)\s+([A-Za-z_][A-Za-z0-9_]*)")


@dataclass(slots=True)
class GraphQLResult:
    """Data returned by a GraphQL operation that completed without errors."""

    data: dict[str, Any] = field(default_factory=dict)

    @property
    def empty(self) -> bool:
        """Whether the server returned no data at all."""
        return not self.data


class _RateLimited(Exception):
    def __init__(self, delay: float) -> None:
        super().__init__(delay)
        self.delay = delay


def operation_name(document: str) -> str:
    """Return the operation name declared in ``document``, if any."""
    match = _OPERATION_RE.match(document)
    if match:
        return match.group(2)
    return "anonymous"


def _retry_delay(response: httpx.Response, *, now: float) -> float:
    retry_after = response.headers.get("Retry-After")
    if retry_after:
        try:
            return max(0.0, float(retry_after))
        except ValueError:
            pass
    reset = response.headers.get("X-RateLimit-Requests-Reset")
    if reset:
        try:
            return max(0.0, float(reset) / 1000.0 - now)
        except ValueError:
            pass
    return DEFAULT_RETRY_DELAY


class GraphQLClient:
    """Execute GraphQL documents with bearer authentication.

    Rate-limit responses are retried internally, sleeping for the delay the
    server asks for, up to ``max_attempts`` requests in total. Every other
    failure propagates immediately.
    """

    def __init__(
        self,
        api_key: str,
        *,
        endpoint: str = LINEAR_API_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = MAX_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Create a client bound to ``endpoint`` authenticating with ``api_key``."""
        if not api_key:
            raise AuthenticationError("API key is required")
        headers = {
            "Authorization": f"Bearer {api_key}",
            "User-Agent": f"lirt/{__version__}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self.endpoint = endpoint
        self.max_attempts = max(1, max_attempts)
        self._sleep = sleep
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout), headers=headers, transport=transport
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> GraphQLClient:
        """Return the client for use in a ``with`` block."""
        return self

    def __exit__(self, *exc_info: object) -> None:
        """Close the client when leaving a ``with`` block."""
        self.close()

    def query(
        self, document: str, variables: Mapping[str, Any] | None = None
    ) -> GraphQLResult:
        """Run a GraphQL query."""
        return self.execute(document, variables)

    def mutate(
        self, document: str, variables: Mapping[str, Any] | None = None
    ) -> GraphQLResult:
        """Run a GraphQL mutation."""
        return self.execute(document, variables)

    def execute(
        self, document: str, variables: Mapping[str, Any] | None = None
    ) -> GraphQLResult:
        """Send ``document`` and return its data, retrying on rate limits."""
        name = operation_name(document)
        payload: dict[str, Any] = {"query": document}
        if variables:
            payload["variables"] = dict(variables)

        delay = DEFAULT_RETRY_DELAY
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self._send(name, payload, attempt)
            except _RateLimited as limited:
                delay = min(limited.delay, MAX_RETRY_DELAY)
                if attempt == self.max_attempts:
                    break
                logger.warning(
                    "Rate limited on %s (attempt %d/%d); retrying in %.1fs",
                    name,
                    attempt,
                    self.max_attempts,
                    delay,
                )
                self._sleep(delay)

        msg = (
            f"Rate limit exceeded after {self.max_attempts} attempts; "
            f"retry in {delay:.0f}s"
        )
        raise RateLimitError(msg, retry_after=delay)

    def _send(self, name: str, payload: dict[str, Any], attempt: int) -> GraphQLResult:
        started = time.monotonic()
        try:
            response = self._client.post(self.endpoint, json=payload)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request to the API timed out ({name})") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Unable to reach the API: {exc}") from exc
        logger.debug(
            "POST %s status=%d attempt=%d elapsed=%.3fs",
            name,
            response.status_code,
            attempt,
            time.monotonic() - started,
        )

        if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
            raise _RateLimited(_retry_delay(response, now=time.time()))
        if response.status_code in (httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN):
            raise AuthenticationError(
                "Authentication failed: the API key was rejected by the server"
            )

        body = self._decode(response)
        errors = body.get("errors") or []
        data = body.get("data")
        if errors:
            if not isinstance(errors, list):
                errors = [{"message": str(errors)}]
            self._raise_for_errors(response, errors, data)
        if response.is_error:
            raise TransportError(
                f"API request failed with status {response.status_code}",
                status_code=response.status_code,
            )
        if data is None:
            return GraphQLResult()
        if not isinstance(data, dict):
            raise TransportError("Malformed response: 'data' is not an object")
        return GraphQLResult(data=data)

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            if response.is_error:
                raise TransportError(
                    f"API request failed with status {response.status_code}",
                    status_code=response.status_code,
                ) from exc
            raise TransportError("Malformed response: body is not JSON") from exc
        if not isinstance(body, dict):
            raise TransportError(
                "Malformed response: expected a JSON object",
                status_code=response.status_code,
            )
        return body

    @staticmethod
    def _raise_for_errors(
        response: httpx.Response, errors: list[Any], data: Any
    ) -> None:
        normalized = [
            error if isinstance(error, dict) else {"message": str(error)}
            for error in errors
        ]
        codes = {error_code(error) for error in normalized}
        if codes & _RATE_LIMIT_CODES:
            raise _RateLimited(_retry_delay(response, now=time.time()))
        if codes & _AUTH_CODES:
            messages = "; ".join(str(e.get("message", "")) for e in normalized)
            raise AuthenticationError(f"Authentication failed: {messages}")
        raise PartialAPIError(normalized, data)


__all__ = [
    "DEFAULT_TIMEOUT",
    "LINEAR_API_ENDPOINT",
    "MAX_ATTEMPTS",
    "GraphQLClient",
    "GraphQLResult",
    "operation_name",
]
