#!/usr/bin/env python3
"""
Fragments demo page

A comment box that embeds its author's user card, which in turn embeds a
realtime clock:

    comments:jarl -> user:pauek -> clock:now

Usage:
    python -m fragments.demo            # render + diff since 10 minutes ago
    python -m fragments.demo --config config/fragments.defaults.yml
"""

import logging
import sys
import time
from datetime import datetime
from typing import List, Optional

from .cache import FragmentCache
from .config import FragmentsConfig, load_config
from .dependencies import DependencyIndex
from .diff import entries_to_json
from .logs import configure_logging
from .registry import GeneratorRegistry

logger = logging.getLogger(__name__)

COMMENT_TEMPLATE = """<div id="{id}" class="comments">
<p>{comment}</p>
by {user}
</div>
"""

USER_TEMPLATE = '<div class="user">User: {id} [{clock}]</div>'


def build_registry(config: FragmentsConfig) -> GeneratorRegistry:
    fragment = config.parser().hooks()["fragment"]
    registry = GeneratorRegistry()

    @registry.generator("comments")
    def comments(local_id, context):
        text = COMMENT_TEMPLATE.format(
            id=local_id,
            comment="Blah blah",
            user=fragment("user:pauek"),
        )
        return text, [f"comments:{local_id}", "user:pauek"]

    @registry.generator("user")
    def user(local_id, context):
        return USER_TEMPLATE.format(id=local_id, clock=fragment("clock", "now")), [f"user:{local_id}"]

    @registry.generator("clock", realtime=True)
    def clock(local_id, context):
        if local_id == "now":
            return datetime.now().strftime("%H:%M:%S")
        return f"[not supported ({local_id})]"

    return registry


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv

    config = FragmentsConfig()
    if len(argv) > 1 and argv[0] == "--config":
        config = load_config(argv[1])
    configure_logging(config.log_level)

    cache = FragmentCache(build_registry(config), DependencyIndex(), config=config)
    root = cache.parser.marker("comments", "jarl")

    print(cache.render(root))

    ago = time.time() - 10 * 60
    entries = cache.list_diff(root, since=ago)
    print(entries_to_json(entries))

    logger.info(f"Cache stats: {cache.get_stats()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
