"""
Transport for the notes backend.

The backend exposes a small JSON API on a fixed alternate port (3001 by
default). This module provides a lightweight wrapper that:
  * Discovers the backend host/port from `.env` at the repo root.
  * Reuses a `requests.Session` for efficiency.
  * Bounds every call by a hard deadline and settles it into a
    `RequestOutcome` instead of raising.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlparse, urlunparse

import requests
from dotenv import load_dotenv
from requests.structures import CaseInsensitiveDict

from notesync.notes.data_types import RequestOutcome

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_PORT = 3001
DEFAULT_HEADERS = {"Content-Type": "application/json"}
_CHUNK_SIZE = 8192

TIMEOUT_MESSAGE = "Request timed out"
NETWORK_ERROR_MESSAGE = "Network error"

_DEFAULT_ENV_FILENAME = ".env"
_HOST_ENV_VAR = "NOTES_API_HOST"
_PORT_ENV_VAR = "NOTES_API_PORT"
_SCHEME_ENV_VAR = "NOTES_API_SCHEME"
_BASE_URL_ENV_VAR = "NOTES_API_BASE_URL"
_TIMEOUT_ENV_VAR = "NOTES_API_TIMEOUT"


def _load_repo_dotenv(explicit_path: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """
    Load environment variables from the repo's `.env` without overriding
    values already present in the environment.

    Returns the path that was loaded (if any).
    """
    if explicit_path:
        dot_path = Path(explicit_path).expanduser().resolve()
        if dot_path.is_file():
            load_dotenv(dot_path, override=False)
            return dot_path
        return None

    repo_root = Path(__file__).resolve().parents[2]
    dot_path = repo_root / _DEFAULT_ENV_FILENAME
    if dot_path.is_file():
        load_dotenv(str(dot_path), override=False)
        return dot_path
    return None


def _normalize_base_url(host: Optional[str], port: Optional[Union[str, int]], *, scheme: str = "http") -> str:
    """
    Build a normalized base URL from separate host/port values.
    """
    clean_host = host or "127.0.0.1"
    clean_port = str(port or DEFAULT_PORT)
    parsed = urlparse(clean_host if "://" in clean_host else f"{scheme}://{clean_host}")
    netloc = parsed.netloc or parsed.path
    if ":" not in netloc and clean_port:
        netloc = f"{netloc}:{clean_port}"
    return urlunparse((parsed.scheme or scheme, netloc, "", "", "", ""))


def _with_scheme(url: str, scheme: str = "http") -> str:
    # urlparse reads "host:port" as scheme "host", so look for the separator instead.
    return url if "://" in url else f"{scheme}://{url}"


def _timeout_from_env(default: float) -> float:
    raw = os.getenv(_TIMEOUT_ENV_VAR, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", _TIMEOUT_ENV_VAR, raw)
        return default
    return value if value > 0 else default


def _encode_body(body: Any) -> Optional[str]:
    if body is None:
        return None
    if isinstance(body, str):
        return body
    return json.dumps(body)


class _DeadlineExceeded(Exception):
    """Raised inside the worker thread once the call outlives its budget."""


def _read_text(response: requests.Response, deadline: float, cancelled: threading.Event) -> str:
    """
    Stream the body, giving up as soon as the deadline passes or the caller
    stopped waiting. An unreadable body is treated as empty text.
    """
    chunks: List[bytes] = []
    try:
        for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
            if cancelled.is_set() or time.monotonic() >= deadline:
                raise _DeadlineExceeded("response body outlived the request deadline")
            chunks.append(chunk)
    except (requests.RequestException, UnicodeError, ValueError) as exc:
        logger.debug("Could not read response body: %s", exc)
        return ""
    body = b"".join(chunks)
    try:
        return body.decode(response.encoding or "utf-8")
    except (UnicodeError, LookupError):
        return body.decode("utf-8", errors="replace")


def _parse_body(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def _error_from_body(data: Any, status: int) -> str:
    """
    Pick the message of a non-2xx response: `detail`, then `message`, then
    `error`, else a generic message naming the status.
    """
    if isinstance(data, Mapping):
        for key in ("detail", "message", "error"):
            value = data.get(key)
            if not value:
                continue
            if isinstance(value, str):
                return value
            if isinstance(value, list):
                # FastAPI style: [{"loc": [...], "msg": "...", "type": "..."}]
                messages = [str(item.get("msg")) for item in value if isinstance(item, Mapping) and item.get("msg")]
                if messages:
                    return "; ".join(messages)
            return str(value)
    return f"Request failed with status {status}"


@dataclass
class Transport:
    """
    Async JSON transport bound to the notes backend.

    Parameters:
        base_url: Optional manual override (e.g., "http://10.0.0.5:3001").
        host: Overrides env-derived host when provided.
        port: Overrides env-derived port when provided.
        timeout: Default deadline (seconds) applied to each call.
        dotenv_path: Optional path to the `.env` file that provides host/port.
        session: Optional existing `requests.Session` to reuse.
    """

    base_url: Optional[str] = None
    host: Optional[str] = None
    port: Optional[Union[str, int]] = None
    timeout: Optional[float] = None
    dotenv_path: Optional[Union[str, Path]] = None
    session: Optional[requests.Session] = None

    def __post_init__(self) -> None:
        _load_repo_dotenv(self.dotenv_path)

        if self.base_url:
            self.base_url = _with_scheme(self.base_url)
        else:
            env_base = os.getenv(_BASE_URL_ENV_VAR)
            resolved_host = self.host or os.getenv(_HOST_ENV_VAR)
            resolved_port = self.port or os.getenv(_PORT_ENV_VAR)
            scheme = os.getenv(_SCHEME_ENV_VAR) or "http"

            if env_base and not (resolved_host or resolved_port):
                self.base_url = _with_scheme(env_base.strip(), scheme)
            else:
                self.base_url = _normalize_base_url(resolved_host, resolved_port, scheme=scheme)
        self.base_url = self.base_url.rstrip("/")

        if self.timeout is None:
            self.timeout = _timeout_from_env(DEFAULT_TIMEOUT)

        self._session = self.session or requests.Session()

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{path if path.startswith('/') else '/' + path}"

    async def request(
        self,
        path: str,
        *,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        timeout: Optional[float] = None,
    ) -> RequestOutcome:
        """Issue a request against a path relative to the base URL."""
        return await self.send(self.url_for(path), method=method, headers=headers, body=body, timeout=timeout)

    async def send(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        timeout: Optional[float] = None,
    ) -> RequestOutcome:
        """
        Issue a single request and normalize whatever happens into a RequestOutcome.

        Args:
            url: absolute URL to call.
            method: HTTP verb.
            headers: merged over `Content-Type: application/json`; caller values win.
            body: a string is sent verbatim, anything else is JSON-encoded; None sends no body.
            timeout: deadline in seconds, defaults to the transport's timeout.

        Returns:
            RequestOutcome; never raises for HTTP, network, timeout or decoding failures.
        """
        budget = self.timeout if timeout is None else timeout
        final_headers = CaseInsensitiveDict(DEFAULT_HEADERS)
        final_headers.update(headers or {})
        data = _encode_body(body)

        logger.debug("%s %s (timeout=%ss)", method, url, budget)
        cancelled = threading.Event()
        try:
            # wait_for cancels its own deadline timer on every exit path.
            status, text = await asyncio.wait_for(
                asyncio.to_thread(self._fetch, method, url, dict(final_headers), data, budget, cancelled),
                timeout=budget,
            )
        except (asyncio.TimeoutError, requests.Timeout, _DeadlineExceeded):
            logger.info("%s %s timed out after %ss", method, url, budget)
            return RequestOutcome.failure(0, TIMEOUT_MESSAGE)
        except (requests.RequestException, OSError, ValueError) as exc:
            # ValueError covers header/URL encoding failures raised below requests.
            logger.info("%s %s failed: %s", method, url, exc)
            return RequestOutcome.failure(0, NETWORK_ERROR_MESSAGE)
        finally:
            cancelled.set()

        payload = _parse_body(text)
        if not 200 <= status < 300:
            message = _error_from_body(payload, status)
            logger.info("%s %s returned HTTP %s: %s", method, url, status, message)
            return RequestOutcome.failure(status, message)
        return RequestOutcome.success(status, payload)

    def _fetch(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        data: Optional[str],
        budget: float,
        cancelled: threading.Event,
    ) -> Tuple[int, str]:
        """
        Blocking half of `send`, run in a worker thread.

        `requests` only bounds the connect and each socket read, so the body is
        streamed and the total deadline is checked between chunks. The worker
        also stops once `cancelled` is set by the waiting coroutine.
        """
        deadline = time.monotonic() + budget
        response = self._session.request(
            method,
            url,
            headers=headers,
            data=data,
            timeout=budget,
            stream=True,
        )
        try:
            return int(response.status_code), _read_text(response, deadline, cancelled)
        finally:
            response.close()

    # ------------------------------------------------------------------ #
    # Context management / utility
    # ------------------------------------------------------------------ #

    def close(self) -> None:
        """Close the underlying session."""
        self._session.close()

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = [
    "DEFAULT_TIMEOUT",
    "DEFAULT_PORT",
    "TIMEOUT_MESSAGE",
    "NETWORK_ERROR_MESSAGE",
    "Transport",
]
