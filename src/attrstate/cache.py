"""
Process-wide caches for per-type derivation results.

Field descriptors and attribute types are pure functions of a record type, so
they are computed once and shared by every conversion. Each cache is guarded
by a re-entrant lock: derivation of one type routinely derives the types of
its nested records while the outer computation is still in progress.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

T = TypeVar('T')


@dataclass(frozen=True)
class CacheKey:
    """Immutable cache key that can include multiple components."""
    components: Tuple[Any, ...]

    def __hash__(self):
        return hash(self.components)

    def __eq__(self, other):
        if not isinstance(other, CacheKey):
            return False
        return self.components == other.components

    @classmethod
    def from_args(cls, *args) -> 'CacheKey':
        """Create cache key from variable arguments."""
        return cls(components=args)


class TypeCache(Generic[T]):
    """
    Thread-safe memo table keyed by CacheKey.

    Example:
        descriptors = TypeCache('descriptors')
        fields = descriptors.get_or_compute(
            CacheKey.from_args(MyRecord),
            lambda: compute_descriptors(MyRecord),
        )

    A value is computed at most once per key; concurrent callers for the same
    key block until the first computation finishes. A computation that raises
    caches nothing.
    """

    def __init__(self, name: str):
        self.name = name
        self._cache: Dict[CacheKey, T] = {}
        self._lock = threading.RLock()
        _registered_caches.append(self)

    def get_or_compute(self, key: CacheKey, compute_fn: Callable[[], T]) -> T:
        """
        Get cached value or compute and cache it.

        Args:
            key: Cache key
            compute_fn: Function to compute value if cache miss

        Returns:
            Cached or computed value
        """
        with self._lock:
            if key in self._cache:
                return self._cache[key]
            value = compute_fn()
            self._cache[key] = value
            return value

    def get(self, key: CacheKey) -> Optional[T]:
        with self._lock:
            return self._cache.get(key)

    def put(self, key: CacheKey, value: T):
        with self._lock:
            self._cache[key] = value

    def invalidate(self):
        """Drop every cached entry."""
        with self._lock:
            self._cache.clear()

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._cache

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __repr__(self) -> str:
        return f"TypeCache({self.name!r}, entries={len(self)})"


_registered_caches: List[TypeCache] = []


def clear_caches() -> None:
    """Invalidate every cache created in this process."""
    for cache in _registered_caches:
        cache.invalidate()
