#!/usr/bin/env python3
"""
Unit tests for diff-list mode
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from fragments.cache import FragmentCache
from fragments.config import FragmentsConfig
from fragments.errors import CycleDetected
from fragments.registry import GeneratorRegistry


class TestListDiff:
    """Test pre-order listing and change flags."""

    @pytest.fixture
    def cache(self):
        registry = GeneratorRegistry()
        registry.register("parent", lambda local_id, ctx: ("X{{child:1}}Y{{child:2}}", ["parent-obj"]))
        registry.register("child", lambda local_id, ctx: (f"C{local_id}{{{{leaf:{local_id}}}}}", [f"child-obj-{local_id}"]))
        registry.register("leaf", lambda local_id, ctx: f"L{local_id}")
        return FragmentCache(registry)

    def test_preorder_full_listing(self, cache):
        entries = cache.list_diff("{{parent:1}}")

        assert [e.id for e in entries] == [
            "parent:1", "child:1", "leaf:1", "child:2", "leaf:2",
        ]
        assert all(e.changed for e in entries)

    def test_stub_replaces_children_with_empty_wrappers(self, cache):
        entries = cache.list_diff("{{parent:1}}")

        parent = entries[0]
        assert parent.html == 'X<div fragment="child:1"></div>Y<div fragment="child:2"></div>'
        assert entries[1].html == 'C1<div fragment="leaf:1"></div>'
        assert entries[2].html == "L1"

    def test_only_changed_nodes_flagged(self, cache):
        baseline = cache.list_diff("{{parent:1}}")
        since = max(e.timestamp for e in baseline)

        cache.invalidate("parent-obj")
        entries = cache.list_diff("{{parent:1}}", since=since)

        by_id = {e.id: e for e in entries}
        assert by_id["parent:1"].changed
        assert by_id["parent:1"].timestamp > since
        assert not by_id["child:1"].changed
        assert by_id["child:1"].timestamp == baseline[1].timestamp
        assert not by_id["leaf:2"].changed

    def test_nothing_changed(self, cache):
        baseline = cache.list_diff("{{parent:1}}")
        since = max(e.timestamp for e in baseline)

        entries = cache.list_diff("{{parent:1}}", since=since)

        assert [e.id for e in entries] == [e.id for e in baseline]
        assert not any(e.changed for e in entries)

    def test_changed_child_under_unchanged_parent(self, cache):
        baseline = cache.list_diff("{{parent:1}}")
        since = max(e.timestamp for e in baseline)

        cache.invalidate("child-obj-2")
        entries = cache.list_diff("{{parent:1}}", since=since)

        assert [e.id for e in entries if e.changed] == ["child:2"]

    def test_root_literals_not_listed(self, cache):
        entries = cache.list_diff("<body>{{leaf:9}}</body>")

        assert [e.id for e in entries] == ["leaf:9"]

    def test_shared_fragment_listed_once(self):
        registry = GeneratorRegistry()
        registry.register("col", lambda local_id, ctx: "{{ad:top}}")
        registry.register("ad", lambda local_id, ctx: "buy")
        cache = FragmentCache(registry)

        entries = cache.list_diff("{{col:left}}{{col:right}}")

        assert [e.id for e in entries] == ["col:left", "ad:top", "col:right"]

    def test_to_dict_wire_format(self, cache):
        baseline = cache.list_diff("{{parent:1}}")
        since = max(e.timestamp for e in baseline)
        cache.invalidate("parent-obj")

        payloads = [e.to_dict() for e in cache.list_diff("{{parent:1}}", since=since)]

        assert set(payloads[0]) == {"id", "timestamp", "html"}
        assert set(payloads[1]) == {"id", "timestamp"}

    def test_cycle_detected(self):
        registry = GeneratorRegistry()
        registry.register("a", lambda local_id, ctx: "{{b:1}}")
        registry.register("b", lambda local_id, ctx: "{{a:1}}")
        cache = FragmentCache(registry)

        with pytest.raises(CycleDetected):
            cache.list_diff("{{a:1}}")

    def test_inline_error_entry(self):
        registry = GeneratorRegistry()
        cache = FragmentCache(registry, config=FragmentsConfig(error_policy="inline"))

        entries = cache.list_diff("{{nope:1}}")

        assert len(entries) == 1
        assert entries[0].id == "nope:1"
        assert "no generator" in entries[0].html


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
