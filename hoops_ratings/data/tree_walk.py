"""Generic search over arbitrarily nested JSON payloads.

The upstream feed does not promise a stable shape, so the scanners and the
box-score extractor look for nodes by predicate instead of by path. The walk
uses an explicit stack so deeply nested payloads cannot hit the recursion
limit, and it visits nodes in document order (pre-order, left to right).
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Hashable, Iterable, Iterator, List, Optional, TypeVar

T = TypeVar("T")


def walk(root: Any) -> Iterator[Any]:
    """Yield every dict, list and scalar reachable from ``root``."""
    stack: List[Any] = [root]
    while stack:
        node = stack.pop()
        yield node
        if isinstance(node, dict):
            stack.extend(reversed(list(node.values())))
        elif isinstance(node, list):
            stack.extend(reversed(node))


def find_all(root: Any, predicate: Callable[[Any], bool]) -> List[Any]:
    return [node for node in walk(root) if predicate(node)]


def find_first(root: Any, predicate: Callable[[Any], bool]) -> Optional[Any]:
    for node in walk(root):
        if predicate(node):
            return node
    return None


def iter_strings(root: Any) -> Iterator[str]:
    for node in walk(root):
        if isinstance(node, str):
            yield node


def get_path(root: Any, *keys: str) -> Any:
    """Follow ``keys`` through nested dicts, returning None on any miss."""
    node = root
    for key in keys:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def best_by_key(
    candidates: Iterable[T],
    key_fn: Callable[[T], Optional[Hashable]],
    score_fn: Callable[[T], float],
) -> Dict[Hashable, T]:
    """Keep the highest-scoring candidate per key.

    A later candidate replaces the current winner only when it scores strictly
    higher, so ties resolve to whichever was seen first.
    """
    best: Dict[Hashable, T] = {}
    scores: Dict[Hashable, float] = {}
    for candidate in candidates:
        key = key_fn(candidate)
        if key is None:
            continue
        score = score_fn(candidate)
        if key not in best or score > scores[key]:
            best[key] = candidate
            scores[key] = score
    return best
