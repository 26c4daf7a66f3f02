# combinator_contracts/next_map.py
from __future__ import annotations

from bisect import bisect_left, insort
from typing import Generic, Iterator, Optional, Tuple, TypeVar

V = TypeVar("V")


class NextMap(Generic[V]):
    """
    Integer-keyed map answering "the value stored at the smallest key >= k".

    Keys are kept as integers in numeric order.
    """

    def __init__(self) -> None:
        self._keys: list[int] = []
        self._values: dict[int, V] = {}

    def add(self, key: int, value: V) -> None:
        if key not in self._values:
            insort(self._keys, key)
        self._values[key] = value

    def _next_key(self, key: int) -> Optional[int]:
        i = bisect_left(self._keys, key)
        if i == len(self._keys):
            return None
        return self._keys[i]

    def get_next_value(self, key: int) -> V:
        found = self._next_key(key)
        if found is None:
            raise KeyError(f"Could not find key for '{key}'. Keys: {self._keys}.")
        return self._values[found]

    def try_get_next_value(self, key: int, default: Optional[V] = None) -> Optional[V]:
        found = self._next_key(key)
        if found is None:
            return default
        return self._values[found]

    def keys(self) -> list[int]:
        return list(self._keys)

    def items(self) -> Iterator[Tuple[int, V]]:
        for key in self._keys:
            yield key, self._values[key]

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._keys)
