"""Data models for the notes synchronization layer.

`Note` mirrors the backend entity, `RequestOutcome` is the single result
shape every network call settles into, and `CollectionState` is the
read-only snapshot the coordinator hands to presentation code.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union


NoteId = Union[str, int]

PLACEHOLDER_PREFIX = "temp-"
PLACEHOLDER_TITLE = "Untitled note"


def is_placeholder_id(note_id: Optional[NoteId]) -> bool:
    """True for client-generated ids of optimistic notes."""
    return isinstance(note_id, str) and note_id.startswith(PLACEHOLDER_PREFIX)


@dataclass(frozen=True)
class Note:
    """A single note as exchanged with the backend."""

    id: NoteId
    title: str
    content: str = ""

    def __post_init__(self) -> None:
        if isinstance(self.id, bool) or not isinstance(self.id, (str, int)):
            raise TypeError("id must be a string or an integer.")
        if isinstance(self.id, str) and not self.id:
            raise ValueError("id must be a non-empty string.")
        if not isinstance(self.title, str):
            raise TypeError("title must be a string.")
        if not isinstance(self.content, str):
            raise TypeError("content must be a string.")

    @classmethod
    def from_payload(cls, payload: Any) -> "Note":
        """
        Build a note from a decoded JSON object.

        Raises ValueError/TypeError when the payload is not a note object.
        """
        if not isinstance(payload, Mapping):
            raise TypeError("note payload must be a JSON object (dict).")
        if "id" not in payload or payload["id"] is None:
            raise ValueError("note payload is missing 'id'.")
        title = payload.get("title")
        content = payload.get("content")
        return cls(
            id=payload["id"],
            title="" if title is None else str(title),
            content="" if content is None else str(content),
        )

    @classmethod
    def placeholder(cls) -> "Note":
        """Optimistic note inserted while a create request is in flight."""
        return cls(id=f"{PLACEHOLDER_PREFIX}{uuid.uuid4().hex}", title=PLACEHOLDER_TITLE, content="")

    @property
    def is_placeholder(self) -> bool:
        return is_placeholder_id(self.id)

    def to_payload(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "content": self.content}


@dataclass(frozen=True)
class RequestOutcome:
    """
    Normalized result of a network call.

    Exactly one of two shapes holds:
      * ok=True:  status is the HTTP status, error is None, data is the parsed body.
      * ok=False: status is the HTTP status (0 for transport failures),
                  error is a human-readable message, data is None.
    """

    ok: bool
    status: int
    error: Optional[str] = None
    data: Any = None

    def __post_init__(self) -> None:
        if not isinstance(self.ok, bool):
            raise TypeError("ok must be a boolean.")
        if not isinstance(self.status, int) or self.status < 0:
            raise ValueError("status must be a non-negative integer.")
        if self.ok and self.error is not None:
            raise ValueError("successful outcomes must not carry an error.")
        if not self.ok:
            if not isinstance(self.error, str) or not self.error:
                raise ValueError("failed outcomes must carry a non-empty error message.")
            if self.data is not None:
                raise ValueError("failed outcomes must not carry data.")

    @classmethod
    def success(cls, status: int, data: Any = None) -> "RequestOutcome":
        return cls(ok=True, status=status, error=None, data=data)

    @classmethod
    def failure(cls, status: int, error: Optional[str]) -> "RequestOutcome":
        return cls(ok=False, status=status, error=error or "Unknown error", data=None)

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "status": self.status, "error": self.error, "data": self.data}


class ViewState(str, Enum):
    """What the main pane should currently show."""

    LOADING = "loading"
    ERROR = "error"
    EDITOR = "editor"
    EMPTY = "empty"
    PROMPT = "prompt"


@dataclass(frozen=True)
class CollectionState:
    """Immutable snapshot of the coordinator-owned state."""

    notes: Tuple[Note, ...] = field(default_factory=tuple)
    selected_id: Optional[NoteId] = None
    selected_note: Optional[Note] = None
    in_flight: int = 0
    list_loading: bool = False
    error: Optional[str] = None
    filter: str = ""

    @property
    def busy(self) -> bool:
        return self.in_flight > 0


__all__ = [
    "NoteId",
    "PLACEHOLDER_PREFIX",
    "PLACEHOLDER_TITLE",
    "is_placeholder_id",
    "Note",
    "RequestOutcome",
    "ViewState",
    "CollectionState",
]
