"""
Fragments: a dependency-tracked cache of composable text fragments.

Fragments reference each other with ``{{kind:id}}`` markers, are generated
by per-kind functions, cached per layer, invalidated through the external
objects they declare, and assembled either into a full render or into a
diff-list of what changed since a given timestamp.
"""

from .cache import CacheItem, FragmentCache
from .config import FragmentsConfig, load_config
from .dependencies import DependencyIndex
from .diff import DiffEntry, entries_to_json
from .errors import (
    CycleDetected,
    FragmentError,
    GenerationError,
    LayerNotFound,
    ParseError,
    UnknownKind,
)
from .identifier import FragmentId, format_id, parse_id
from .layers import LayerRouter
from .registry import GeneratorEntry, GeneratorRegistry
from .template import FragmentTemplate, Literal, Parser, Reference

__all__ = [
    'CacheItem', 'FragmentCache',
    'FragmentsConfig', 'load_config',
    'DependencyIndex',
    'DiffEntry', 'entries_to_json',
    'FragmentError', 'ParseError', 'UnknownKind', 'GenerationError',
    'LayerNotFound', 'CycleDetected',
    'FragmentId', 'parse_id', 'format_id',
    'LayerRouter',
    'GeneratorRegistry', 'GeneratorEntry',
    'Parser', 'FragmentTemplate', 'Literal', 'Reference',
]
