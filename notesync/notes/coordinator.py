"""
Reconciliation coordinator for the notes collection.

`NotesCoordinator` owns the in-memory collection, the selection cursor and
the surfaced error. Every public operation is a coroutine that settles into
a RequestOutcome (or None when there was nothing to do); none of them raise
for HTTP, network, timeout or validation failures.

Mutating operations follow a two-phase pattern: apply the tentative local
change, await the backend, then either commit the authoritative note or
compensate (remove the placeholder, or reload the list after a failed
delete).
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Tuple

from notesync.api.notes_client import NotesClient
from notesync.api.transport import Transport
from notesync.notes.data_types import (
    CollectionState,
    Note,
    NoteId,
    RequestOutcome,
    ViewState,
    is_placeholder_id,
)
from notesync.utils.logger import StructuredLogger

LIST_ERROR_MESSAGE = "Failed to load notes"
INVALID_NOTE_MESSAGE = "Server returned an invalid note."


def _payload_fields(payload: Any) -> Tuple[Any, Any]:
    if isinstance(payload, Mapping):
        return payload.get("title", ""), payload.get("content", "")
    return getattr(payload, "title", ""), getattr(payload, "content", "")


class NotesCoordinator:
    """
    Single owner of the notes collection and selection.

    Usage:
        async with NotesCoordinator() as notes:   # activates (initial list load)
            await notes.add_note()
            await notes.save_note({"title": "Groceries", "content": "milk"})

    Presentation code reads `notes`, `filtered_notes`, `selected_id`,
    `selected_note`, `busy`, `error` and `view`, or takes a `snapshot()`.
    """

    def __init__(self, client: Optional[NotesClient] = None, *, transport: Optional[Transport] = None) -> None:
        self._logger = StructuredLogger(__name__)
        self._client = client or NotesClient(transport or Transport())
        self._notes: List[Note] = []
        self._selected_id: Optional[NoteId] = None
        self._selected_note: Optional[Note] = None
        self._selection_epoch = 0
        self._list_loads = 0
        self._list_error: Optional[str] = None
        self._error: Optional[str] = None
        self._filter = ""
        self._closed = False

    # ------------------------------------------------------------------ #
    # Read-only state
    # ------------------------------------------------------------------ #

    @property
    def notes(self) -> Tuple[Note, ...]:
        return tuple(self._notes)

    @property
    def filtered_notes(self) -> Tuple[Note, ...]:
        query = self._filter.strip().lower()
        if not query:
            return tuple(self._notes)
        return tuple(note for note in self._notes if query in (note.title or "").lower())

    @property
    def selected_id(self) -> Optional[NoteId]:
        return self._selected_id

    @property
    def selected_note(self) -> Optional[Note]:
        return self._selected_note

    @property
    def in_flight(self) -> int:
        return self._client.in_flight.count

    @property
    def busy(self) -> bool:
        return self._client.in_flight.busy

    @property
    def list_loading(self) -> bool:
        return self._list_loads > 0

    @property
    def error(self) -> Optional[str]:
        return self._error or self._list_error

    @property
    def filter(self) -> str:
        return self._filter

    @property
    def view(self) -> ViewState:
        if self.list_loading:
            return ViewState.LOADING
        if self.error:
            return ViewState.ERROR
        if self._selected_note is not None:
            return ViewState.EDITOR
        if not self._notes:
            return ViewState.EMPTY
        return ViewState.PROMPT

    def snapshot(self) -> CollectionState:
        return CollectionState(
            notes=tuple(self._notes),
            selected_id=self._selected_id,
            selected_note=self._selected_note,
            in_flight=self.in_flight,
            list_loading=self.list_loading,
            error=self.error,
            filter=self._filter,
        )

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    async def activate(self) -> RequestOutcome:
        """Initial list load; selects the first note when nothing is selected."""
        return await self.refresh()

    async def refresh(self) -> RequestOutcome:
        """(Re)load the list from the backend."""
        self._list_loads += 1
        self._list_error = None
        self._error = None
        try:
            outcome = await self._client.list_notes()
        finally:
            self._list_loads -= 1
        if self._disposed("list load"):
            return outcome

        if not outcome.ok:
            self._list_error = outcome.error or LIST_ERROR_MESSAGE
            self._logger.info("Loading notes failed: %s", self._list_error)
            return outcome

        self._notes = self._merge_reloaded(outcome.data)
        self._logger.info_fields(
            "Notes loaded",
            {"count": len(self._notes), "selected_id": self._selected_id},
        )
        if self._selected_id is None and self._notes:
            await self.select_note(self._notes[0].id)
        return outcome

    async def select_note(self, note_id: Optional[NoteId]) -> Optional[RequestOutcome]:
        """
        Move the selection and hydrate the selected note.

        Selecting None clears the detail view; selecting a placeholder hydrates
        it from the collection. Neither touches the network.
        """
        epoch = self._set_selection(note_id, keep_hydrated=True)
        if note_id is None:
            self._selected_note = None
            return None
        if is_placeholder_id(note_id):
            self._selected_note = self._find(note_id)
            return None

        outcome = await self._client.get_note(note_id)
        if self._disposed("item load"):
            return outcome
        if epoch != self._selection_epoch:
            self._logger.info(
                "Discarding load of note %r; selection moved to %r", note_id, self._selected_id
            )
            return outcome

        note, outcome = self._authoritative(outcome)
        self._selected_note = note
        self._record(outcome)
        return outcome

    async def add_note(self) -> RequestOutcome:
        """Optimistically create an "Untitled note" and select it."""
        placeholder = Note.placeholder()
        self._notes.insert(0, placeholder)
        self._set_selection(placeholder.id, hydrated=placeholder)

        outcome = await self._client.create_note(placeholder.title, placeholder.content)
        if self._disposed("create"):
            return outcome
        self._remove(placeholder.id)
        created, outcome = self._authoritative(outcome)
        if created is not None:
            self._prepend(created)
            self._set_selection(created.id, hydrated=created)
            self._logger.info_fields("Created note", {"placeholder": placeholder.id, "id": created.id})
        else:
            self._set_selection(None)
            self._logger.info_fields(
                "Rolled back optimistic note", {"placeholder": placeholder.id, "error": outcome.error}
            )
        self._record(outcome)
        return outcome

    async def save_note(self, payload: Any) -> Optional[RequestOutcome]:
        """
        Update the selected note with `payload` (a mapping or object exposing
        title/content). Local state only changes once the backend confirms.
        """
        target = self._selected_id
        if target is None or is_placeholder_id(target):
            self._logger.debug("save_note ignored; no persisted note selected (%r)", target)
            return None

        title, content = _payload_fields(payload)
        outcome = await self._client.update_note(target, title, content)
        if self._disposed("update"):
            return outcome
        updated, outcome = self._authoritative(outcome)
        if updated is not None:
            self._replace(target, updated)
            if self._selected_id == target:
                self._selected_note = updated
        self._record(outcome)
        return outcome

    async def delete_note(self, note_id: Optional[NoteId] = None) -> Optional[RequestOutcome]:
        """
        Optimistically remove `note_id` (default: the selected note).

        A failed delete reloads the list, since the removal cannot be undone
        precisely once other operations have touched the collection. If that
        reload fails too, its error replaces the delete's.
        """
        target = self._selected_id if note_id is None else note_id
        if target is None or is_placeholder_id(target):
            self._logger.debug("delete_note ignored; no persisted note targeted (%r)", target)
            return None

        self._remove(target)
        if self._selected_id == target:
            self._set_selection(None)

        outcome = await self._client.delete_note(target)
        if self._disposed("delete"):
            return outcome
        self._record(outcome)
        if outcome.ok:
            return outcome

        self._logger.info("Delete of note %r failed (%s); reloading notes", target, outcome.error)
        reload = await self._client.list_notes()
        if self._disposed("reload after delete"):
            return outcome
        if reload.ok:
            self._notes = self._merge_reloaded(reload.data)
        else:
            self._logger.warning("Reload after failed delete also failed: %s", reload.error)
            self._record(reload)
        return outcome

    def clear_error(self) -> None:
        self._error = None
        self._list_error = None

    def set_filter(self, text: Optional[str]) -> None:
        self._filter = "" if text is None else str(text)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def close(self) -> None:
        """
        Dispose the transport and drop all state. Operations still in flight
        settle without touching the collection afterwards.
        """
        self._closed = True
        close = getattr(self._client.transport, "close", None)
        if callable(close):
            close()
        self._notes = []
        self._set_selection(None)
        self._error = None
        self._list_error = None
        self._filter = ""

    async def __aenter__(self) -> "NotesCoordinator":
        await self.activate()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _set_selection(
        self,
        note_id: Optional[NoteId],
        *,
        hydrated: Optional[Note] = None,
        keep_hydrated: bool = False,
    ) -> int:
        self._selected_id = note_id
        if not keep_hydrated:
            self._selected_note = hydrated
        self._selection_epoch += 1
        return self._selection_epoch

    def _disposed(self, operation: str) -> bool:
        if self._closed:
            self._logger.debug("Ignoring %s that settled after close()", operation)
        return self._closed

    def _record(self, outcome: RequestOutcome) -> None:
        self._error = None if outcome.ok else (outcome.error or "Unknown error")

    def _authoritative(self, outcome: RequestOutcome) -> Tuple[Optional[Note], RequestOutcome]:
        if not outcome.ok:
            return None, outcome
        try:
            return Note.from_payload(outcome.data), outcome
        except (TypeError, ValueError) as exc:
            self._logger.warning("Discarding malformed note from backend: %s", exc)
            return None, RequestOutcome.failure(outcome.status, INVALID_NOTE_MESSAGE)

    def _find(self, note_id: NoteId) -> Optional[Note]:
        for note in self._notes:
            if note.id == note_id:
                return note
        return None

    def _remove(self, note_id: NoteId) -> None:
        self._notes = [note for note in self._notes if note.id != note_id]

    def _prepend(self, note: Note) -> None:
        self._notes = [note] + [existing for existing in self._notes if existing.id != note.id]

    def _replace(self, note_id: NoteId, note: Note) -> None:
        replaced: List[Note] = []
        for existing in self._notes:
            if existing.id == note_id:
                replaced.append(note)
            elif existing.id != note.id:
                replaced.append(existing)
        self._notes = replaced

    def _merge_reloaded(self, payload: Iterable[Any]) -> List[Note]:
        """
        Build the collection from a list response. Placeholders of creates
        still in flight stay at the front; malformed and duplicate entries
        are dropped.
        """
        merged = [note for note in self._notes if note.is_placeholder]
        seen = {note.id for note in merged}
        for item in payload or []:
            try:
                note = Note.from_payload(item)
            except (TypeError, ValueError) as exc:
                self._logger.warning("Skipping malformed list entry: %s", exc)
                continue
            if note.id in seen:
                self._logger.warning("Skipping duplicate note id %r in list response", note.id)
                continue
            seen.add(note.id)
            merged.append(note)
        return merged


__all__ = ["NotesCoordinator", "LIST_ERROR_MESSAGE", "INVALID_NOTE_MESSAGE"]
