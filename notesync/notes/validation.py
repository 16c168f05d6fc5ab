"""Sanitization and validation helpers for note input.

Both helpers are pure: `sanitize_note_input` trims free text and
`validate_note` reports field errors without raising. The notes client runs
them before every create/update so invalid input never reaches the network.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


MAX_TITLE_LENGTH = 200
MAX_CONTENT_LENGTH = 10_000

# Order in which field errors are reported when only one message is surfaced.
FIELD_ORDER = ("title", "content")


@dataclass(frozen=True)
class NoteInput:
    """Sanitized title/content pair ready to be sent to the backend."""

    title: str
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"title": self.title, "content": self.content}


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: Dict[str, str] = field(default_factory=dict)

    def first_error(self) -> Optional[str]:
        for name in FIELD_ORDER:
            if name in self.errors:
                return self.errors[name]
        return None


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def sanitize_note_input(title: Any = "", content: Any = "") -> NoteInput:
    """Trims both fields; None becomes an empty string."""
    return NoteInput(title=_as_text(title).strip(), content=_as_text(content).strip())


def validate_note(note: Any) -> ValidationResult:
    """
    Check title requiredness and the length limits.

    Accepts a NoteInput or any mapping with `title`/`content` keys.
    """
    if isinstance(note, Mapping):
        title = _as_text(note.get("title"))
        content = _as_text(note.get("content"))
    else:
        title = _as_text(getattr(note, "title", ""))
        content = _as_text(getattr(note, "content", ""))

    errors: Dict[str, str] = {}
    if not title:
        errors["title"] = "Title is required."
    elif len(title) > MAX_TITLE_LENGTH:
        errors["title"] = f"Title must be at most {MAX_TITLE_LENGTH} characters."

    if len(content) > MAX_CONTENT_LENGTH:
        errors["content"] = f"Content must be at most {MAX_CONTENT_LENGTH} characters."

    return ValidationResult(valid=not errors, errors=errors)


__all__ = [
    "MAX_TITLE_LENGTH",
    "MAX_CONTENT_LENGTH",
    "NoteInput",
    "ValidationResult",
    "sanitize_note_input",
    "validate_note",
]
