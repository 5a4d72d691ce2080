"""Diff-list entries and their wire schema."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from jsonschema import Draft7Validator

DIFF_ENTRY_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["id", "timestamp"],
    "properties": {
        "id": {"type": "string", "pattern": "^[^:]*:"},
        "timestamp": {"type": "number", "minimum": 0},
        "html": {"type": "string"},
    },
    "additionalProperties": False,
}

_validator = Draft7Validator(DIFF_ENTRY_SCHEMA)


def validate_entry(payload: Dict[str, Any]) -> None:
    errors = sorted(_validator.iter_errors(payload), key=lambda e: e.path)
    if errors:
        messages = ", ".join(error.message for error in errors)
        raise ValueError(f"diff entry validation failed: {messages}")


@dataclass(frozen=True)
class DiffEntry:
    id: str
    timestamp: float
    html: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.html is not None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id, "timestamp": self.timestamp}
        if self.html is not None:
            payload["html"] = self.html
        validate_entry(payload)
        return payload


def entries_to_json(entries: Iterable[DiffEntry]) -> str:
    return json.dumps([entry.to_dict() for entry in entries])


def changed_ids(entries: Iterable[DiffEntry]) -> List[str]:
    return [entry.id for entry in entries if entry.changed]
