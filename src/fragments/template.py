"""
Fragment templates: marker scanning and the parsed segment representation.

A fragment's text is literal content interleaved with child markers::

    <p>by {{user:pauek}} at {{clock:now}}</p>

The parser scans left to right, handing literal spans and child identifiers
to callbacks. ``parse`` collects the same scan into a ``FragmentTemplate``,
a flat sequence of ``Literal`` and ``Reference`` segments that the cache
stores next to the text so renders and diffs never rescan it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

from .errors import ParseError
from .identifier import SEPARATOR, FragmentId, format_id

DEFAULT_LEFT = "{{"
DEFAULT_RIGHT = "}}"


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Reference:
    target: FragmentId


Segment = Union[Literal, Reference]


@dataclass(frozen=True)
class FragmentTemplate:
    segments: Tuple[Segment, ...] = field(default_factory=tuple)

    def references(self) -> List[FragmentId]:
        return [seg.target for seg in self.segments if isinstance(seg, Reference)]

    def expand(
        self,
        on_text: Callable[[str], None],
        on_child: Callable[[FragmentId], None],
    ) -> None:
        for seg in self.segments:
            if isinstance(seg, Literal):
                on_text(seg.text)
            else:
                on_child(seg.target)

    def __len__(self) -> int:
        return len(self.segments)


class Parser:
    def __init__(self, left: str = DEFAULT_LEFT, right: str = DEFAULT_RIGHT) -> None:
        if not left or not right:
            raise ValueError("marker delimiters must be non-empty")
        self.left = left
        self.right = right

    def traverse(
        self,
        text: str,
        on_text: Callable[[str], None],
        on_child: Callable[[FragmentId], None],
    ) -> None:
        """
        Walk ``text`` once, left to right.

        Raises ParseError on an opener with no closer, or on a marker token
        that contains another opener. Callbacks already invoked before the
        error are not undone.
        """
        pos = 0
        while True:
            start = text.find(self.left, pos)
            if start < 0:
                break
            if start > pos:
                on_text(text[pos:start])
            token_start = start + len(self.left)
            end = text.find(self.right, token_start)
            if end < 0:
                raise ParseError(
                    f"unclosed marker at offset {start}", text=text, offset=start
                )
            token = text[token_start:end]
            if self.left in token:
                raise ParseError(
                    f"nested marker at offset {start}", text=text, offset=start
                )
            on_child(FragmentId.parse(token.strip()))
            pos = end + len(self.right)
        if pos < len(text):
            on_text(text[pos:])

    def parse(self, text: str) -> FragmentTemplate:
        segments: List[Segment] = []
        self.traverse(
            text,
            lambda literal: segments.append(Literal(literal)),
            lambda target: segments.append(Reference(target)),
        )
        return FragmentTemplate(tuple(segments))

    def marker(self, kind: str, local_id: str = "") -> str:
        if SEPARATOR in kind or self.left in kind or self.right in kind:
            raise ValueError(f"invalid fragment kind: {kind!r}")
        if self.left in local_id or self.right in local_id:
            raise ValueError(f"invalid fragment id: {local_id!r}")
        return f"{self.left}{format_id(kind, local_id)}{self.right}"

    def ref(self, full_id: str) -> str:
        target = FragmentId.parse(full_id)
        return self.marker(target.kind, target.id)

    def hooks(self) -> Dict[str, Callable[..., str]]:
        """
        Functions to register with a template evaluator.

        ``fragment("user", "pauek")`` and ``fragment("user:pauek")`` both emit
        the marker text untouched so the evaluator's own substitution never
        sees it as a placeholder.
        """

        def fragment(kind: str, local_id: Optional[str] = None) -> str:
            if local_id is None:
                return self.ref(kind)
            return self.marker(kind, local_id)

        return {"fragment": fragment}

    def __repr__(self) -> str:
        return f"Parser(left={self.left!r}, right={self.right!r})"
