"""
Dependency index: external object ids -> cache items built from them.

Generators declare which real-world objects their output was built from
(``"post:42"``, ``"user:pauek"``, anything the caller chooses). When one of
those objects changes, ``invalidate`` flips every dependent item to invalid.
Nothing is regenerated here; the next ``get`` of a stale item pays for that.

Items are held through weak references, so the index never keeps a replaced
item alive.
"""

from __future__ import annotations

import logging
import threading
import weakref
from typing import TYPE_CHECKING, Dict, List

if TYPE_CHECKING:
    from .cache import CacheItem

logger = logging.getLogger(__name__)


class DependencyIndex:
    def __init__(self) -> None:
        self._index: Dict[str, "weakref.WeakSet[CacheItem]"] = {}
        self._lock = threading.Lock()

    def depends(self, item: "CacheItem", object_id: str) -> None:
        with self._lock:
            dependents = self._index.get(object_id)
            if dependents is None:
                dependents = self._index[object_id] = weakref.WeakSet()
            dependents.add(item)

    def forget(self, item: "CacheItem") -> None:
        """Drop ``item`` from every object id it declared."""
        with self._lock:
            for object_id in item.dependencies:
                dependents = self._index.get(object_id)
                if dependents is None:
                    continue
                dependents.discard(item)
                if not dependents:
                    del self._index[object_id]

    def invalidate(self, object_id: str) -> int:
        """Mark every item depending on ``object_id`` invalid. Unknown ids are a no-op."""
        with self._lock:
            dependents = self._index.pop(object_id, None)
            items = list(dependents) if dependents is not None else []

        flipped = 0
        for item in items:
            if item.valid:
                item.valid = False
                flipped += 1

        if items:
            logger.info(f"Invalidated {flipped} fragment(s) depending on '{object_id}'")
        else:
            logger.debug(f"Invalidate '{object_id}': no dependents")
        return flipped

    def dependents(self, object_id: str) -> List["CacheItem"]:
        with self._lock:
            dependents = self._index.get(object_id)
            return list(dependents) if dependents is not None else []

    def object_ids(self) -> List[str]:
        with self._lock:
            return sorted(key for key, items in self._index.items() if len(items))

    def __len__(self) -> int:
        return len(self.object_ids())
