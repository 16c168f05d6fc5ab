"""Reference JSON formats for the notes backend.

This module documents the wire shapes the transport and notes client are
written against. Keep these in sync with:
- notesync/notes/data_types.py (Note)
- notesync/notes/validation.py (length limits)

Notes on the contract:
- `id` is assigned by the backend and may be a string or an integer.
- POST and PUT bodies carry only `title` and `content`; the response is the
  full note including `id`.
- DELETE has no required response body; an empty 204 is fine.
- Error bodies optionally carry `detail`, `message` or `error`. FastAPI
  backends send `detail` as a list of validation entries for 422 responses.
"""

from typing import Any, Dict, List

from notesync.notes.validation import MAX_CONTENT_LENGTH, MAX_TITLE_LENGTH


# -----------------------------
# Note entity
# -----------------------------

NOTE_JSON_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Note",
    "type": "object",
    "required": ["id", "title"],
    "additionalProperties": True,
    "properties": {
        "id": {"type": ["string", "integer"]},
        "title": {"type": "string", "minLength": 1, "maxLength": MAX_TITLE_LENGTH},
        "content": {"type": "string", "maxLength": MAX_CONTENT_LENGTH},
    },
}

NOTE_EXAMPLE: Dict[str, Any] = {
    "id": 42,
    "title": "Sprint retro",
    "content": "Keep: pairing on reviews.\nChange: shorter standups.",
}

# GET /notes
NOTE_LIST_EXAMPLE: List[Dict[str, Any]] = [
    NOTE_EXAMPLE,
    {"id": "b7c1", "title": "Groceries", "content": "milk, eggs"},
    {"id": 7, "title": "Empty note", "content": ""},
]

# POST /notes and PUT /notes/{id}
NOTE_WRITE_EXAMPLE: Dict[str, Any] = {
    "title": "Sprint retro",
    "content": "Keep: pairing on reviews.",
}


# -----------------------------
# Error bodies
# -----------------------------

ERROR_BODY_EXAMPLES: Dict[str, Any] = {
    "detail": {"detail": "Note not found"},
    "message": {"message": "Title already taken"},
    "error": {"error": "Internal failure"},
    "validation": {
        "detail": [
            {"loc": ["body", "title"], "msg": "field required", "type": "value_error.missing"},
        ]
    },
}
