"""Shared pytest fixtures for qwery_payments tests."""

from __future__ import annotations

import json
import threading
from collections import defaultdict, deque
from typing import Any, Deque, Dict, List, Optional, Tuple

import pytest

from qwery_payments import ClientConfig, Network, PaymentClient, RetryPolicy

BASE_URL = "https://facilitator.test"


class FakeResponse:
    """Just enough of :class:`requests.Response` for the transport."""

    def __init__(self, status_code: int = 200, body: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(body)
        self.reason = "Fake"

    def json(self) -> Any:
        return json.loads(self.text)


class FakeSession:
    """
    Scripted stand-in for :class:`requests.Session`.

    Replies are queued per ``(method, path)``; an exception instance in the
    queue is raised instead of returning a response. The last reply of a
    route repeats once the queue is drained.
    """

    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url
        self.routes: Dict[Tuple[str, str], Deque[Any]] = defaultdict(deque)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False
        self._lock = threading.Lock()

    def add(self, method: str, path: str, *replies: Any) -> "FakeSession":
        for reply in replies:
            if isinstance(reply, (FakeResponse, BaseException)):
                self.routes[(method, path)].append(reply)
            else:
                self.routes[(method, path)].append(FakeResponse(200, reply))
        return self

    def calls_to(self, path: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["path"] == path]

    def request(self, method, url, json=None, headers=None, timeout=None):
        assert url.startswith(self.base_url), url
        path = url[len(self.base_url):]
        with self._lock:
            self.calls.append(
                {
                    "method": method,
                    "path": path,
                    "json": json,
                    "headers": dict(headers or {}),
                    "timeout": timeout,
                }
            )
            queue = self.routes.get((method, path))
            if not queue:
                raise AssertionError(f"Unexpected request {method} {path}")
            reply = queue.popleft() if len(queue) > 1 else queue[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply

    def close(self) -> None:
        self.closed = True


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class StaticSigner:
    """Signer that tags the transaction so tests can see what was submitted."""

    def __init__(self):
        self.signed: List[str] = []

    def sign_transaction(self, transaction: str) -> str:
        self.signed.append(transaction)
        return f"signed:{transaction}"


def payment_body(payment_id: str = "p_123", **extra: Any) -> Dict[str, Any]:
    body = {
        "payment_id": payment_id,
        "transaction": "dW5zaWduZWQ=",
        "amount": 0.01,
        "token": "SOL",
        "recipient": "Addr1",
        "network": "solana-devnet",
        "status": "pending",
        "expires_at": "2026-10-18T12:00:00Z",
    }
    body.update(extra)
    return body


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def signer():
    return StaticSigner()


@pytest.fixture
def devnet_config():
    return ClientConfig(
        network=Network.DEVNET,
        facilitator_url=BASE_URL,
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0.5, jitter=0.0),
    )


@pytest.fixture
def client(devnet_config, fake_session, recording_sleep):
    return PaymentClient(devnet_config, session=fake_session, sleep=recording_sleep)
