"""Exception taxonomy for fragment parsing, generation and resolution."""

from __future__ import annotations

from typing import Sequence


class FragmentError(Exception):
    """Base class for everything raised by the fragments package."""


class ParseError(FragmentError):
    def __init__(self, message: str, text: str = "", offset: int = -1) -> None:
        super().__init__(message)
        self.text = text
        self.offset = offset


class UnknownKind(FragmentError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"no generator '{kind}'")
        self.kind = kind


class GenerationError(FragmentError):
    def __init__(self, fragment_id: str, reason: str) -> None:
        super().__init__(f"generation of '{fragment_id}' failed: {reason}")
        self.fragment_id = fragment_id
        self.reason = reason


class LayerNotFound(FragmentError):
    def __init__(self, layer: str) -> None:
        super().__init__(f"layer '{layer}' not found")
        self.layer = layer


class CycleDetected(FragmentError):
    def __init__(self, chain: Sequence[str]) -> None:
        super().__init__("fragment cycle: " + " -> ".join(chain))
        self.chain = list(chain)
