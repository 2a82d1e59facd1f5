"""
HTTP transport for the facilitator API.

Requests go through a :class:`requests.Session` in a worker thread so the
event loop stays free while a call is outstanding. Transient failures are
retried according to a :class:`RetryPolicy`; semantic rejections (4xx) are
raised immediately.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import requests

from .errors import (
    ConfigError,
    FacilitatorError,
    NetworkError,
    RequestFailedError,
    RetriesExhaustedError,
)

__all__ = [
    "RetryPolicy",
    "Transport",
]

_TRANSIENT_EXCEPTIONS = (
    requests.ConnectionError,
    requests.Timeout,
    requests.exceptions.ChunkedEncodingError,
    requests.exceptions.ContentDecodingError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff.

    ``max_attempts`` counts the first try, so ``max_attempts=1`` disables
    retries. The delay before attempt ``n + 1`` is
    ``min(max_delay, base_delay * multiplier ** (n - 1))`` plus a random
    spread of up to ``jitter`` times that value.
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    multiplier: float = 2.0
    jitter: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ConfigError("Backoff delays must not be negative")
        if self.multiplier < 1:
            raise ConfigError("Backoff multiplier must be at least 1")
        if not 0 <= self.jitter <= 1:
            raise ConfigError("Backoff jitter must be between 0 and 1")

    def delay_for(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Seconds to wait after the failed ``attempt`` (1-based)."""
        delay = min(self.max_delay, self.base_delay * self.multiplier ** (attempt - 1))
        if self.jitter and delay:
            spread = (rng or random).random() * self.jitter * delay
            delay += spread
        return delay


def _error_details(response: requests.Response) -> tuple[str, Optional[str]]:
    text = response.text or ""
    try:
        body = response.json()
    except ValueError:
        return text or response.reason or "", None
    if isinstance(body, dict):
        message = body.get("error") or body.get("message") or text
        code = body.get("code")
        return str(message), None if code is None else str(code)
    return text, None


class Transport:
    """
    Issues JSON requests against the facilitator base URL.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        api_key: Optional[str] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.api_key = api_key
        self._sleep = sleep or asyncio.sleep
        self._rng = rng

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _send_once(
        self,
        method: str,
        url: str,
        body: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        try:
            response = self.session.request(
                method,
                url,
                json=body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except _TRANSIENT_EXCEPTIONS as exc:
            raise NetworkError(f"{method} {url} failed: {exc}") from exc
        except requests.RequestException as exc:
            raise RequestFailedError(f"{method} {url} could not be sent: {exc}") from exc

        if response.status_code >= 500:
            message, code = _error_details(response)
            raise NetworkError(
                f"Facilitator responded with {response.status_code}: {message}"
            ) from FacilitatorError(message, code=code, status_code=response.status_code)
        if response.status_code >= 400:
            message, code = _error_details(response)
            raise FacilitatorError(
                message or f"Facilitator responded with {response.status_code}",
                code=code,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise FacilitatorError(
                f"Failed to parse JSON from facilitator at {url}: {response.text}",
                code="invalid_response",
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise FacilitatorError(
                f"Expected a JSON object from {url}, got {type(payload).__name__}",
                code="invalid_response",
                status_code=response.status_code,
            )
        return payload

    async def request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Send ``method`` to ``path`` and return the decoded JSON object.

        Raises :class:`FacilitatorError` for 4xx replies and undecodable
        bodies, :class:`RetriesExhaustedError` once every attempt failed
        transiently.
        """
        url = f"{self.base_url}{path}"
        policy = self.retry_policy
        last_error: Optional[NetworkError] = None

        for attempt in range(1, policy.max_attempts + 1):
            try:
                return await asyncio.to_thread(self._send_once, method, url, body)
            except NetworkError as exc:
                last_error = exc
                if attempt == policy.max_attempts:
                    break
                delay = policy.delay_for(attempt, self._rng)
                logging.warning(
                    "Attempt %d/%d for %s failed (%s); retrying in %.2fs",
                    attempt,
                    policy.max_attempts,
                    url,
                    exc,
                    delay,
                )
                await self._sleep(delay)

        raise RetriesExhaustedError(url, policy.max_attempts, last_error) from last_error

    async def get(self, path: str) -> Dict[str, Any]:
        return await self.request("GET", path)

    async def post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request("POST", path, body)

    def close(self) -> None:
        """Close the underlying session if this transport created it."""
        if self._owns_session:
            self.session.close()
