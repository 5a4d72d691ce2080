"""
Fragment Cache Layer

Implements:
- get(kind, id) → CacheItem (cache hit, or regeneration through the registry)
- resolve(kind, id) → CacheItem, routed to the kind's layer when it has one
- render(text) → root text with every marker expanded recursively
- list_diff(text, since) → pre-order list of reachable fragments, with stubs
  for the ones generated after ``since``
- invalidate(object_id) / invalidate_fragment(kind, id)
- get_stats() → {hits, misses, generations, errors, entries, ...}
"""

from __future__ import annotations

import html
import io
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TextIO, Tuple, Union

from .config import FragmentsConfig
from .dependencies import DependencyIndex
from .diff import DiffEntry
from .errors import CycleDetected, GenerationError, LayerNotFound, UnknownKind
from .identifier import FragmentId
from .layers import LayerRouter
from .registry import GeneratorEntry, GeneratorRegistry, GeneratorResult
from .template import FragmentTemplate

logger = logging.getLogger(__name__)

_stamp_lock = threading.Lock()
_last_stamp = 0.0


def _now() -> float:
    """Wall-clock stamp, strictly greater than any stamp handed out before."""
    global _last_stamp
    with _stamp_lock:
        now = time.time()
        if now <= _last_stamp:
            now = _last_stamp + 1e-6
        _last_stamp = now
        return now


@dataclass(eq=False)
class CacheItem:
    """The stored result of generating one fragment. Only ``valid`` ever changes in place."""
    id: FragmentId
    text: str = ""
    template: FragmentTemplate = field(default_factory=FragmentTemplate)
    valid: bool = False
    timestamp: float = 0.0
    dependencies: Tuple[str, ...] = ()
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class FragmentCache:
    """
    One layer of fragment storage.

    Design:
    - Items are created lazily on first ``get`` and never removed
    - Invalidation is lazy: it only flips ``valid``, the next ``get`` regenerates
    - Failed generations are stored but never valid, so the next access retries
    - Regeneration of one identifier is single-flight across threads
    - Render and diff walk the same tree and resolve children through the
      root cache's routing, so per-request layers compose with shared ones
    """

    def __init__(
        self,
        registry: GeneratorRegistry,
        index: Optional[DependencyIndex] = None,
        context: Any = None,
        layer: Optional[str] = None,
        router: Optional[LayerRouter] = None,
        config: Optional[FragmentsConfig] = None,
    ):
        self.registry = registry
        self.index = index if index is not None else DependencyIndex()
        self.context = context
        self.layer = layer
        self.router = router
        self.config = config or FragmentsConfig()
        self.parser = self.config.parser()

        self._items: Dict[FragmentId, CacheItem] = {}
        self._generation_locks: Dict[FragmentId, threading.RLock] = {}
        self._lock = threading.RLock()

        self.stats = {
            "hits": 0,
            "misses": 0,
            "generations": 0,
            "errors": 0,
            "invalidations": 0,
            "start_time": time.time(),
        }

        logger.debug(f"FragmentCache initialized (layer={layer or 'default'})")

    # ── Lookup and generation ──

    def get(self, kind: str, local_id: str = "") -> CacheItem:
        """
        Return the cached item for ``kind:local_id``, generating it if absent or invalid.

        Raises:
            UnknownKind: no generator is registered for ``kind``
            GenerationError: the generator raised, or returned text with an
                unparseable or unresolvable marker
        """
        fid = FragmentId(kind, local_id)
        entry = self.registry.lookup(kind)

        item = self._cached(fid, entry)
        if item is not None:
            return item

        if entry is None:
            self._bump("misses")
            raise UnknownKind(kind)

        with self._generation_lock(fid):
            # Another thread may have regenerated it while we waited
            item = self._cached(fid, entry)
            if item is not None:
                return item
            self._bump("misses")
            return self._generate(fid, entry)

    def get_fragment(self, full_id: str) -> CacheItem:
        fid = FragmentId.parse(full_id)
        return self.get(fid.kind, fid.id)

    def peek(self, kind: str, local_id: str = "") -> Optional[CacheItem]:
        """Stored item, valid or not, without generating anything."""
        with self._lock:
            return self._items.get(FragmentId(kind, local_id))

    def resolve(self, kind: str, local_id: str = "") -> CacheItem:
        """``get`` against the cache that owns ``kind``'s layer."""
        entry = self.registry.lookup(kind)
        layer = entry.layer if entry is not None else None
        if layer is None or layer == self.layer:
            return self.get(kind, local_id)
        if self.router is None:
            raise LayerNotFound(layer)
        return self.router.cache_for(layer).get(kind, local_id)

    def _cached(self, fid: FragmentId, entry: Optional[GeneratorEntry]) -> Optional[CacheItem]:
        if entry is not None and entry.realtime:
            return None
        with self._lock:
            item = self._items.get(fid)
            if item is not None and item.valid:
                self.stats["hits"] += 1
                return item
        return None

    def _generation_lock(self, fid: FragmentId) -> threading.RLock:
        with self._lock:
            lock = self._generation_locks.get(fid)
            if lock is None:
                lock = self._generation_locks[fid] = threading.RLock()
            return lock

    def _generate(self, fid: FragmentId, entry: GeneratorEntry) -> CacheItem:
        started = time.time()
        try:
            text, dependencies = self._unpack(entry.fn(fid.id, self.context))
            template = self.parser.parse(text)
            self._check_references(template)
        except Exception as exc:
            self._store(CacheItem(id=fid, valid=False, error=str(exc)))
            self._bump("errors")
            logger.warning(f"Generation of '{fid}' failed: {exc}")
            raise GenerationError(str(fid), str(exc)) from exc

        item = CacheItem(
            id=fid,
            text=text,
            template=template,
            valid=True,
            timestamp=_now(),
            dependencies=dependencies,
        )
        for object_id in dependencies:
            self.index.depends(item, object_id)
        self._store(item)
        self._bump("generations")

        logger.debug(
            f"Generated '{fid}' ({len(template.references())} children, "
            f"deps={list(dependencies)}, {(time.time() - started) * 1000:.1f}ms)"
        )
        return item

    @staticmethod
    def _unpack(result: GeneratorResult) -> Tuple[str, Tuple[str, ...]]:
        if isinstance(result, str):
            return result, ()
        text, dependencies = result
        if not isinstance(text, str):
            raise TypeError(f"generator returned {type(text).__name__}, expected str")
        if isinstance(dependencies, str):
            dependencies = (dependencies,)
        return text, tuple(dict.fromkeys(str(dep) for dep in dependencies or ()))

    def _check_references(self, template: FragmentTemplate) -> None:
        for target in template.references():
            if target.kind not in self.registry:
                raise UnknownKind(target.kind)

    def _store(self, item: CacheItem) -> None:
        with self._lock:
            old = self._items.get(item.id)
            self._items[item.id] = item
        if old is not None and old is not item:
            self.index.forget(old)

    # ── Invalidation ──

    def invalidate(self, object_id: str) -> int:
        """Invalidate every item (in any cache sharing this index) that depends on ``object_id``."""
        flipped = self.index.invalidate(object_id)
        self._bump("invalidations", flipped)
        return flipped

    def invalidate_fragment(self, kind: str, local_id: str = "") -> bool:
        """Invalidate one stored fragment directly. False if it was never generated."""
        with self._lock:
            item = self._items.get(FragmentId(kind, local_id))
            if item is None:
                return False
            if item.valid:
                item.valid = False
                self.stats["invalidations"] += 1
        logger.info(f"Invalidated fragment '{item.id}'")
        return True

    # ── Render mode ──

    def render(self, text: str) -> str:
        """Expand every marker in ``text`` recursively. The root text itself is not wrapped."""
        buffer = io.StringIO()
        self.write(text, buffer)
        return buffer.getvalue()

    def render_fragment(self, kind: str, local_id: str = "") -> str:
        return self.render(self.parser.marker(kind, local_id))

    def write(self, text: str, stream: TextIO) -> None:
        """
        Stream the render of ``text`` into ``stream``.

        Output is written as the walk proceeds; on error, whatever was written
        stays written. Callers needing all-or-nothing should use ``render``.
        """
        write = stream.write
        self.parser.traverse(
            text,
            write,
            lambda target: self._render_child(target, write, ()),
        )

    def _render_child(
        self, target: FragmentId, write: Callable[[str], Any], chain: Tuple[str, ...]
    ) -> None:
        key = str(target)
        if key in chain:
            raise CycleDetected(chain + (key,))

        item, error = self._resolve_or_inline(target)
        if item is None:
            write(self._error_html(key, error))
            return

        inner_chain = chain + (key,)
        write(self._open(key))
        item.template.expand(
            write,
            lambda child: self._render_child(child, write, inner_chain),
        )
        write(self._close())

    # ── Diff-list mode ──

    def list_diff(self, text: str, since: Optional[float] = None) -> List[DiffEntry]:
        """
        List every fragment reachable from ``text`` in pre-order, once each.

        Entries for fragments generated after ``since`` (or all of them when
        ``since`` is None) carry a stub: the fragment's own content with each
        child replaced by an empty wrapper.
        """
        entries: List[DiffEntry] = []
        seen: set = set()
        for target in self.parser.parse(text).references():
            self._diff_child(target, since, (), seen, entries)
        return entries

    def _diff_child(
        self,
        target: FragmentId,
        since: Optional[float],
        chain: Tuple[str, ...],
        seen: set,
        entries: List[DiffEntry],
    ) -> None:
        key = str(target)
        if key in chain:
            raise CycleDetected(chain + (key,))
        if key in seen:
            return
        seen.add(key)

        item, error = self._resolve_or_inline(target)
        if item is None:
            entries.append(DiffEntry(id=key, timestamp=0.0, html=error))
            return

        stub = None
        if since is None or item.timestamp > since:
            stub = self.stub(item)
        entries.append(DiffEntry(id=key, timestamp=item.timestamp, html=stub))

        inner_chain = chain + (key,)
        for child in item.template.references():
            self._diff_child(child, since, inner_chain, seen, entries)

    def stub(self, item: CacheItem) -> str:
        """``item``'s immediate content with its children left as empty wrappers."""
        buffer = io.StringIO()
        item.template.expand(
            buffer.write,
            lambda child: buffer.write(self._open(str(child)) + self._close()),
        )
        return buffer.getvalue()

    # ── Error policy and wrapping ──

    def _resolve_or_inline(self, target: FragmentId) -> Tuple[Optional[CacheItem], str]:
        """
        Resolve ``target``. Under the inline error policy, UnknownKind and
        GenerationError come back as ``(None, message)`` instead of raising.
        """
        try:
            return self.resolve(target.kind, target.id), ""
        except (UnknownKind, GenerationError) as exc:
            if self.config.error_policy != "inline":
                raise
            logger.warning(f"Rendering inline error for '{target}': {exc}")
            return None, html.escape(str(exc))

    def _error_html(self, key: str, message: str) -> str:
        return self._open(key, css_class="fragment-error") + message + self._close()

    def _open(self, key: str, css_class: Optional[str] = None) -> str:
        attrs = f'{self.config.wrap_attribute}="{html.escape(key, quote=True)}"'
        if css_class:
            attrs += f' class="{css_class}"'
        return f"<{self.config.wrap_tag} {attrs}>"

    def _close(self) -> str:
        return f"</{self.config.wrap_tag}>"

    # ── Diagnostics ──

    def _bump(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self.stats[name] += amount

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = dict(self.stats)
            entries = len(self._items)
            valid_entries = sum(1 for item in self._items.values() if item.valid)

        total_requests = stats["hits"] + stats["misses"]
        hit_rate = (stats["hits"] / total_requests * 100) if total_requests > 0 else 0

        return {
            "layer": self.layer or "default",
            "hits": stats["hits"],
            "misses": stats["misses"],
            "hit_rate_percent": round(hit_rate, 1),
            "total_requests": total_requests,
            "generations": stats["generations"],
            "errors": stats["errors"],
            "invalidations": stats["invalidations"],
            "entries": entries,
            "valid_entries": valid_entries,
            "uptime_seconds": int(time.time() - stats["start_time"]),
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, fragment: Union[FragmentId, str]) -> bool:
        if isinstance(fragment, str):
            fragment = FragmentId.parse(fragment)
        with self._lock:
            return fragment in self._items

    def __repr__(self) -> str:
        return f"FragmentCache(layer={self.layer or 'default'}, entries={len(self)})"
