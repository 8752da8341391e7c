"""Roaring containers: the 16-bit chunks that make up a 32-bit bitmap."""

from __future__ import annotations

import enum
import itertools
from bisect import bisect_left, bisect_right
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field

ARRAY_LIMIT = 4096
BITMAP_LENGTH = 1024
_MAX_LOW = 0xFFFF
_MAX_VALUE = 0xFFFF_FFFF
_MAX_WORD = 0xFFFF_FFFF_FFFF_FFFF


class StoreKind(enum.Enum):
    """How a container keeps its values."""

    ARRAY = "array"
    BITMAP = "bitmap"


def _check_low(value: int) -> None:
    if not 0 <= value <= _MAX_LOW:
        raise ValueError(f"value {value} does not fit in 16 bits")


@dataclass
class Container:
    """A set of 16-bit values sharing the high 16 bits given by ``key``.

    An array container keeps its values in ``array``; a bitmap container keeps
    1024 64-bit words in ``words`` and its cardinality in ``cardinality``.
    """

    key: int
    kind: StoreKind = StoreKind.ARRAY
    array: list[int] = field(default_factory=list)
    words: list[int] = field(default_factory=list, repr=False)
    cardinality: int = 0

    def __post_init__(self) -> None:
        _check_low(self.key)
        if self.kind is StoreKind.ARRAY:
            self.cardinality = len(self.array)
        elif not self.words:
            self.words = [0] * BITMAP_LENGTH
        elif len(self.words) != BITMAP_LENGTH:
            raise ValueError(f"a bitmap container needs {BITMAP_LENGTH} words")

    @classmethod
    def from_values(cls, key: int, values: Iterable[int]) -> Container:
        """Build a container, choosing an array or a bitmap by cardinality."""
        unique = sorted(set(values))
        for value in unique[:1] + unique[-1:]:
            _check_low(value)
        if len(unique) <= ARRAY_LIMIT:
            return cls(key, StoreKind.ARRAY, array=unique)
        words = [0] * BITMAP_LENGTH
        for value in unique:
            words[value >> 6] |= 1 << (value & 63)
        return cls(key, StoreKind.BITMAP, words=words, cardinality=len(unique))

    @classmethod
    def from_words(cls, key: int, words: Sequence[int]) -> Container:
        """Build a bitmap container from 1024 64-bit words."""
        words = list(words)
        if len(words) != BITMAP_LENGTH:
            raise ValueError(f"a bitmap container needs {BITMAP_LENGTH} words")
        if any(not 0 <= word <= _MAX_WORD for word in words):
            raise ValueError("bitmap words must fit in 64 bits")
        cardinality = sum(word.bit_count() for word in words)
        return cls(key, StoreKind.BITMAP, words=words, cardinality=cardinality)

    def __len__(self) -> int:
        return self.cardinality

    def __iter__(self) -> Iterator[int]:
        if self.kind is StoreKind.ARRAY:
            yield from self.array
            return
        for index, word in enumerate(self.words):
            base = index * 64
            while word:
                lowest = word & -word
                yield base + lowest.bit_length() - 1
                word ^= lowest

    def insert_range(self, start: int, end: int) -> int:
        """Insert every value from ``start`` to ``end`` inclusive; return how many were new."""
        if not 0 <= start <= end <= _MAX_LOW:
            raise ValueError(f"invalid range {start}..={end}")
        if self.kind is StoreKind.ARRAY:
            lo = bisect_left(self.array, start)
            hi = bisect_right(self.array, end)
            present = hi - lo
            self.array[lo:hi] = range(start, end + 1)
            added = end - start + 1 - present
        else:
            added = 0
            for index in range(start >> 6, (end >> 6) + 1):
                base = index * 64
                first = max(start, base) - base
                last = min(end, base + 63) - base
                mask = ((1 << (last - first + 1)) - 1) << first
                old = self.words[index]
                self.words[index] = old | mask
                added += (self.words[index] ^ old).bit_count()
        self.cardinality += added
        return added


def containers_from_values(values: Iterable[int]) -> list[Container]:
    """Split 32-bit values into containers sorted by key."""
    unique = sorted(set(values))
    if unique and (unique[0] < 0 or unique[-1] > _MAX_VALUE):
        raise ValueError("values must fit in 32 bits")
    return [
        Container.from_values(key, (value & _MAX_LOW for value in group))
        for key, group in itertools.groupby(unique, key=lambda value: value >> 16)
    ]


def values_from_containers(containers: Iterable[Container]) -> Iterator[int]:
    """Yield the 32-bit values held by the containers, in container order."""
    for container in containers:
        high = container.key << 16
        for low in container:
            yield high | low