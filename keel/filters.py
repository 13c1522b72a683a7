"""
Structural queries over registry entries.

A query is either a predicate taking a ``ModuleView`` or a (possibly nested)
mapping of field name to expected value::

    {"started": True}
    {"started": False, "properties": {"startable": True}}

Nested mappings recurse into the matching field, which must itself be a
mapping. Sequences are compared as whole values, never element-wise.
Everything else is compared by equality. A field missing from the entry
never matches.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Callable, Iterable, List, Union

from .module import MISSING, ModuleEntry, ModuleView

Query = Union[Mapping, Callable[[ModuleView], bool]]


def _field(target: Any, key: str) -> Any:
    if isinstance(target, Mapping):
        return target.get(key, MISSING)
    return getattr(target, key, MISSING)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def matches(target: Any, query: Mapping) -> bool:
    """Check whether ``target`` satisfies every key of ``query``."""
    for key, expected in query.items():
        actual = _field(target, key)
        if actual is MISSING:
            return False

        if isinstance(expected, Mapping):
            if not isinstance(actual, Mapping) or not matches(actual, expected):
                return False
        elif _is_sequence(expected) and _is_sequence(actual):
            if tuple(actual) != tuple(expected):
                return False
        elif actual != expected:
            return False

    return True


def filter_entries(entries: Iterable[ModuleEntry], query: Query) -> List[ModuleView]:
    """
    Select entries matching ``query``, preserving order.

    Args:
        entries: Registry entries in insertion order
        query: Nested mapping or predicate over ``ModuleView``

    Returns:
        Matching entries as ``ModuleView`` snapshots
    """
    if isinstance(query, Mapping):
        def predicate(view: ModuleView) -> bool:
            return matches(view, query)
    elif callable(query):
        predicate = query
    else:
        raise TypeError(
            f"Module query must be a mapping or a callable, got {type(query).__name__}"
        )

    views = (entry.view() for entry in entries)
    return [view for view in views if predicate(view)]
