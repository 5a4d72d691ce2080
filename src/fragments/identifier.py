"""Fragment identifiers: ``kind:id`` pairs."""

from __future__ import annotations

from dataclasses import dataclass

SEPARATOR = ":"


@dataclass(frozen=True)
class FragmentId:
    kind: str
    id: str = ""

    @classmethod
    def parse(cls, full_id: str) -> "FragmentId":
        """Split on the first colon. ``"user"`` parses as kind ``user`` with an empty id."""
        kind, _, local_id = full_id.partition(SEPARATOR)
        return cls(kind, local_id)

    def __str__(self) -> str:
        return format_id(self.kind, self.id)


def parse_id(full_id: str) -> FragmentId:
    return FragmentId.parse(full_id)


def format_id(kind: str, local_id: str) -> str:
    return f"{kind}{SEPARATOR}{local_id}"
