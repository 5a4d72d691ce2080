"""Named cache layers for routing fragment kinds across caches."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional

from .errors import LayerNotFound

if TYPE_CHECKING:
    from .cache import FragmentCache


class LayerRouter:
    """
    Maps layer names to caches.

    A shared router can hold the process-wide layers (``"global"``), while
    ``extend`` derives a per-request router that adds a session layer on top
    without touching the shared one.
    """

    def __init__(self, layers: Optional[Mapping[str, "FragmentCache"]] = None) -> None:
        self._layers: Dict[str, "FragmentCache"] = dict(layers or {})
        self._lock = threading.Lock()

    def add(self, name: str, cache: "FragmentCache") -> None:
        with self._lock:
            self._layers[name] = cache

    def cache_for(self, name: str) -> "FragmentCache":
        with self._lock:
            cache = self._layers.get(name)
        if cache is None:
            raise LayerNotFound(name)
        return cache

    def extend(self, layers: Mapping[str, "FragmentCache"]) -> "LayerRouter":
        with self._lock:
            merged = dict(self._layers)
        merged.update(layers)
        return LayerRouter(merged)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._layers)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._layers
