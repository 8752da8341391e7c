# roaringfmt

Read and write sets of 32-bit unsigned integers in the portable Roaring
bitmap on-disk format, which other Roaring libraries also use.

A set is held as a list of `Container` objects, sorted by key. Each
container covers one block of 65,536 values, and its key is the high
16 bits of those values. A container stores the low 16 bits in one of
two ways:

- as a sorted array (`StoreKind.ARRAY`), used for up to 4096 values;
- as 1024 64-bit words (`StoreKind.BITMAP`).

## Install

```
pip install .
```

To run the tests, install the test extra:

```
pip install ".[test]"
pytest
```

## Usage

```python
from roaringfmt.container import containers_from_values, values_from_containers
from roaringfmt.serialization import serialize, deserialize, serialized_size

containers = containers_from_values([1, 2, 3, 70_000])
data = serialize(containers)
assert len(data) == serialized_size(containers)

restored = deserialize(data)
assert list(values_from_containers(restored)) == [1, 2, 3, 70_000]
```

`containers_from_values` drops duplicates and sorts the values. It raises
`ValueError` for any value outside 0..2**32-1.

To work with files and streams:

```python
from roaringfmt.serialization import serialize_into, deserialize_from

with open("set.bin", "wb") as out:
    serialize_into(containers, out)

with open("set.bin", "rb") as src:
    containers = deserialize_from(src)
```

Output is always written in the form without run containers.
`serialize_into` raises `ValueError` if it is given an empty container.

Input may be in either form of the format. It can hold array, bitmap and
run containers. A run container becomes an array container or a bitmap
container when it is read.

## Validation

`deserialize_from` and `deserialize` raise `DeserializationError`, a
subclass of `ValueError`, in these cases:

- the cookie is unknown;
- the input is truncated;
- the header gives more than 65,536 containers;
- a run extends past the end of its container;
- the values in an array container are not strictly increasing;
- the bit count of a bitmap container does not match its stated
  cardinality.

`deserialize_unchecked_from` skips the last two checks, so use it only for
trusted input. It still raises `DeserializationError` for the other cases.

## Building containers by hand

```python
from roaringfmt.container import Container

c = Container.from_values(0, [5, 1, 3])
added = c.insert_range(10, 20)   # inclusive on both ends; returns the count of new values
print(len(c), list(c))
```

`Container.from_words(key, words)` builds a bitmap container from exactly
1024 words, each of which must fit in 64 bits.

## What this package does not do

This package handles containers and their serialized form only. It has no
set type with union, intersection, difference, rank or select operations,
and no support for 64-bit values.