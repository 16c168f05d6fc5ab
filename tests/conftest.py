import asyncio
import json
import time
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote

import pytest

from notesync.notes.data_types import RequestOutcome


ENV_VARS = (
    "NOTES_API_BASE_URL",
    "NOTES_API_HOST",
    "NOTES_API_PORT",
    "NOTES_API_SCHEME",
    "NOTES_API_TIMEOUT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # setenv first so teardown also removes values loaded from .env files
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    yield


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", *, body: Any = None):
        self.status_code = status_code
        self.encoding = "utf-8"
        self.closed = False
        self._text = json.dumps(body) if body is not None else text

    def iter_content(self, chunk_size=1):
        raw = self._text.encode(self.encoding)
        for start in range(0, len(raw), chunk_size):
            yield raw[start:start + chunk_size]

    def close(self):
        self.closed = True


class DrippingResponse(FakeResponse):
    """Body arrives one chunk at a time with a pause before each chunk."""

    def __init__(self, chunks: List[bytes], delay: float):
        super().__init__(200, "")
        self.chunks = chunks
        self.delay = delay
        self.yielded = 0

    def iter_content(self, chunk_size=1):
        for chunk in self.chunks:
            time.sleep(self.delay)
            self.yielded += 1
            yield chunk


class FakeSession:
    """Stand-in for requests.Session recording every call."""

    def __init__(self, response: Optional[FakeResponse] = None, *, error: Optional[BaseException] = None, delay: float = 0.0):
        self.response = response or FakeResponse(200, "")
        self.error = error
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def request(self, method, url, headers=None, data=None, timeout=None, stream=False):
        self.calls.append(
            {"method": method, "url": url, "headers": headers, "data": data, "timeout": timeout, "stream": stream}
        )
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


class FakeNotesTransport:
    """In-memory notes backend speaking the transport's `request` interface."""

    def __init__(self, notes: Optional[List[Dict[str, Any]]] = None):
        self.store: Dict[Any, Dict[str, Any]] = {note["id"]: dict(note) for note in notes or []}
        self.calls: List[Tuple[str, str, Any]] = []
        self.next_id = 100
        self.closed = False
        self._gates: Dict[Tuple[str, str], asyncio.Event] = {}
        self._failures: Dict[str, List[RequestOutcome]] = {}
        self._list_payload: Any = None

    def hold(self, method: str, path: str) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[(method, path)] = gate
        return gate

    def fail_next(self, method: str, outcome: RequestOutcome) -> None:
        self._failures.setdefault(method, []).append(outcome)

    def serve_list(self, payload: Any) -> None:
        self._list_payload = payload

    def _lookup(self, raw_id: str) -> Optional[Any]:
        for key in self.store:
            if str(key) == raw_id:
                return key
        return None

    async def request(self, path: str, *, method: str = "GET", body: Any = None) -> RequestOutcome:
        self.calls.append((method, path, body))
        gate = self._gates.pop((method, path), None)
        if gate is not None:
            await gate.wait()
        queued = self._failures.get(method)
        if queued:
            return queued.pop(0)

        if path == "/notes":
            if method == "GET":
                if self._list_payload is not None:
                    return RequestOutcome.success(200, self._list_payload)
                return RequestOutcome.success(200, [dict(note) for note in self.store.values()])
            if method == "POST":
                note = {"id": self.next_id, **body}
                self.next_id += 1
                self.store = {note["id"]: note, **self.store}
                return RequestOutcome.success(201, dict(note))

        key = self._lookup(unquote(path.rsplit("/", 1)[-1]))
        if key is None:
            return RequestOutcome.failure(404, "Note not found")
        if method == "GET":
            return RequestOutcome.success(200, dict(self.store[key]))
        if method == "PUT":
            self.store[key] = {"id": key, **body}
            return RequestOutcome.success(200, dict(self.store[key]))
        if method == "DELETE":
            del self.store[key]
            return RequestOutcome.success(204, None)
        return RequestOutcome.failure(405, "Method not allowed")

    def close(self):
        self.closed = True


async def settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


SEED_NOTES = [
    {"id": 1, "title": "Groceries", "content": "milk"},
    {"id": 2, "title": "Sprint retro", "content": "keep pairing"},
    {"id": 3, "title": "Reading list", "content": ""},
]
