"""Generator registry: fragment kind -> generator function."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

GeneratorResult = Union[str, Tuple[str, Iterable[str]]]
GeneratorFn = Callable[[str, Any], GeneratorResult]


@dataclass(frozen=True)
class GeneratorEntry:
    kind: str
    fn: GeneratorFn
    layer: Optional[str] = None
    realtime: bool = False


class GeneratorRegistry:
    """
    Maps each fragment kind to the function that produces its text.

    A generator is called as ``fn(local_id, context)`` and returns either the
    fragment text or ``(text, dependency_ids)``. It signals failure by raising.

    ``layer`` routes every fragment of that kind to the cache registered
    under that name. ``realtime`` generators are regenerated on every access.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, GeneratorEntry] = {}
        self._lock = threading.Lock()

    def register(
        self,
        kind: str,
        fn: GeneratorFn,
        layer: Optional[str] = None,
        realtime: bool = False,
    ) -> GeneratorEntry:
        if not kind or ":" in kind:
            raise ValueError(f"invalid fragment kind: {kind!r}")
        entry = GeneratorEntry(kind=kind, fn=fn, layer=layer or None, realtime=realtime)
        with self._lock:
            if kind in self._entries:
                logger.debug(f"Replacing generator for '{kind}'")
            self._entries[kind] = entry
        return entry

    def generator(
        self, kind: str, layer: Optional[str] = None, realtime: bool = False
    ) -> Callable[[GeneratorFn], GeneratorFn]:
        """Decorator form of ``register``."""

        def decorate(fn: GeneratorFn) -> GeneratorFn:
            self.register(kind, fn, layer=layer, realtime=realtime)
            return fn

        return decorate

    def lookup(self, kind: str) -> Optional[GeneratorEntry]:
        with self._lock:
            return self._entries.get(kind)

    def kinds(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def __contains__(self, kind: str) -> bool:
        return self.lookup(kind) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
