"""
Pytest configuration and fixtures
"""
import json
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import pytest
import requests

from verification.client import SessionClient
from verification.models import Credentials, MediaContext, MediaFile, VerificationRequest
from verification.orchestrator import VerificationOrchestrator
from verification.poller import PollLoop
from verification.report import DecisionReport

SESSION_ID = "f04bdb47-d3be-4b28-b028-a652feb060b5"
BASE_URL = "https://stationapi.test/v1"
CALLBACK_URL = "https://example.com/callback"
API_KEY = "test-api-key-0123456789"
SECRET = "test-shared-secret"


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(body) if body is not None else ""
        self.text = text


@dataclass
class Call:
    method: str
    url: str
    data: Optional[bytes]
    headers: Dict[str, str]
    params: Optional[Dict[str, str]]
    timeout: Any

    @property
    def json(self) -> Any:
        return json.loads(self.data.decode("utf-8")) if self.data else None


@dataclass
class FakeHttp:
    """
    Stand-in for requests.Session. Routes are (METHOD, url suffix) pairs mapped
    to a response, a list of responses consumed in order, an exception, or a
    callable taking the Call.
    """
    routes: Dict[tuple, Any] = field(default_factory=dict)
    calls: List[Call] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def add(self, method: str, suffix: str, response: Any) -> "FakeHttp":
        self.routes[(method, suffix)] = response
        return self

    def calls_to(self, method: str, suffix: str = "") -> List[Call]:
        return [c for c in self.calls if c.method == method and c.url.endswith(suffix)]

    def request(self, method, url, data=None, headers=None, params=None, timeout=None):
        call = Call(method, url, data, dict(headers or {}), params, timeout)
        with self.lock:
            self.calls.append(call)
            handler = None
            for (route_method, suffix), value in self.routes.items():
                if route_method == method and url.endswith(suffix):
                    handler = value
                    break
            if handler is None:
                raise AssertionError(f"unexpected request {method} {url}")
            if isinstance(handler, list):
                handler = handler.pop(0) if len(handler) > 1 else handler[0]
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return handler(call)
        return handler


def session_created(session_id: str = SESSION_ID) -> FakeResponse:
    return FakeResponse(201, {
        "status": "success",
        "verification": {"id": session_id, "url": f"https://alchemy.veriff.com/v/{session_id}"},
    })


def upload_ok(call: Call) -> FakeResponse:
    context = call.json["image"]["context"]
    return FakeResponse(201, {"status": "success", "image": {"id": f"media-{context}", "context": context}})


def submitted() -> FakeResponse:
    return FakeResponse(200, {"status": "success", "verification": {"id": SESSION_ID, "status": "submitted"}})


def decision(status: str, **fields) -> FakeResponse:
    verification = {"id": SESSION_ID, "status": status, "code": 9001, "reason": None}
    verification.update(fields)
    return FakeResponse(200, {"status": "success", "verification": verification})


def not_ready() -> FakeResponse:
    return FakeResponse(404, {"status": "fail", "code": "1818", "message": "Not found"})


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(client_key=API_KEY, shared_secret=SECRET)


@pytest.fixture
def http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture
def client(credentials, http) -> SessionClient:
    return SessionClient(
        credentials=credentials,
        base_url=BASE_URL,
        callback_url=CALLBACK_URL,
        timeout=5,
        http=http,
    )


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def make_orchestrator(credentials, client, sleeps) -> Callable[..., VerificationOrchestrator]:
    def _make(max_attempts: int = 10, interval: float = 5.0, creds: Credentials = None,
              upload_workers: int = 3):
        loop = PollLoop(client, max_attempts=max_attempts, interval=interval, sleep=sleeps.append)
        return VerificationOrchestrator(
            credentials=creds or credentials,
            client=client,
            poll_loop=loop,
            report=DecisionReport(mask_pii=True),
            upload_workers=upload_workers,
        )
    return _make


@pytest.fixture
def verification_request() -> VerificationRequest:
    return VerificationRequest(
        document_front=MediaFile(MediaContext.DOCUMENT_FRONT, b"front-bytes", "image/jpeg"),
        document_back=MediaFile(MediaContext.DOCUMENT_BACK, b"back-bytes", "image/png"),
        face=MediaFile(MediaContext.FACE, b"face-bytes", "image/jpeg"),
        first_name="Test",
        last_name="User",
    )


@pytest.fixture
def timeout_error() -> Exception:
    return requests.Timeout("read timed out")
