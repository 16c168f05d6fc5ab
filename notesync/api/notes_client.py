"""
Resource client for the `/notes` endpoints.

Wraps a Transport with the notes-specific rules: path construction with
percent-encoded ids, sanitize/validate before create and update, and list
normalization. Every method settles into a RequestOutcome.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Protocol, Tuple
from urllib.parse import quote

from notesync.notes.data_types import NoteId, RequestOutcome
from notesync.notes.validation import NoteInput, sanitize_note_input, validate_note

logger = logging.getLogger(__name__)

NOTES_PATH = "/notes"
VALIDATION_STATUS = 400


class SupportsRequest(Protocol):
    async def request(self, path: str, *, method: str = "GET", body: Any = None) -> RequestOutcome:
        ...


class InFlightCounter:
    """Counts network attempts currently in flight; never goes negative."""

    def __init__(self) -> None:
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    @property
    def busy(self) -> bool:
        return self._count > 0

    @contextmanager
    def track(self) -> Iterator[None]:
        self._count += 1
        try:
            yield
        finally:
            self._count = max(0, self._count - 1)


def note_path(note_id: NoteId) -> str:
    return f"{NOTES_PATH}/{quote(str(note_id), safe='')}"


class NotesClient:
    """CRUD over the notes resource."""

    def __init__(self, transport: SupportsRequest, *, in_flight: Optional[InFlightCounter] = None) -> None:
        self._transport = transport
        self.in_flight = in_flight or InFlightCounter()

    @property
    def transport(self) -> SupportsRequest:
        return self._transport

    async def _call(self, path: str, *, method: str = "GET", body: Any = None) -> RequestOutcome:
        with self.in_flight.track():
            return await self._transport.request(path, method=method, body=body)

    def _prepare(self, title: Any, content: Any) -> Tuple[Optional[NoteInput], Optional[RequestOutcome]]:
        payload = sanitize_note_input(title, content)
        result = validate_note(payload)
        if not result.valid:
            message = result.first_error() or "Validation failed"
            logger.debug("Rejected note input locally: %s", result.errors)
            return None, RequestOutcome.failure(VALIDATION_STATUS, message)
        return payload, None

    async def list_notes(self) -> RequestOutcome:
        outcome = await self._call(NOTES_PATH)
        if not outcome.ok:
            return outcome
        if not isinstance(outcome.data, list):
            logger.info("List response was %s, not an array; treating as empty", type(outcome.data).__name__)
            return RequestOutcome.success(outcome.status, [])
        return outcome

    async def get_note(self, note_id: NoteId) -> RequestOutcome:
        return await self._call(note_path(note_id))

    async def create_note(self, title: Any = "", content: Any = "") -> RequestOutcome:
        payload, rejection = self._prepare(title, content)
        if rejection is not None:
            return rejection
        return await self._call(NOTES_PATH, method="POST", body=payload.to_payload())

    async def update_note(self, note_id: NoteId, title: Any = "", content: Any = "") -> RequestOutcome:
        payload, rejection = self._prepare(title, content)
        if rejection is not None:
            return rejection
        return await self._call(note_path(note_id), method="PUT", body=payload.to_payload())

    async def delete_note(self, note_id: NoteId) -> RequestOutcome:
        return await self._call(note_path(note_id), method="DELETE")


__all__ = ["InFlightCounter", "NotesClient", "note_path"]
