import io
import struct

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from roaringfmt.container import (
    Container,
    StoreKind,
    containers_from_values,
    values_from_containers,
)
from roaringfmt.serialization import (
    DeserializationError,
    deserialize,
    deserialize_from,
    deserialize_unchecked_from,
    serialize,
    serialize_into,
    serialized_size,
)


def _bitmap(values):
    return containers_from_values(values)


def _round_trip(containers):
    buffer = io.BytesIO()
    serialize_into(containers, buffer)
    data = buffer.getvalue()
    assert len(data) == serialized_size(containers)
    return deserialize_from(io.BytesIO(data))


def _test_data_values():
    yield from (i * 1000 for i in range(100))
    yield from (i * 3 for i in range(100_000, 200_000))
    yield from range(700_000, 800_000)


def test_test_data_round_trip():
    original = _bitmap(_test_data_values())
    assert _round_trip(original) == original
    assert list(values_from_containers(_round_trip(original))) == sorted(_test_data_values())


def test_empty():
    original = _bitmap([])
    assert _round_trip(original) == original
    assert serialize(original) == b"\x3a\x30\x00\x00\x00\x00\x00\x00"


def test_one():
    original = _bitmap(range(1, 2))
    assert _round_trip(original) == original


def test_array():
    original = _bitmap(range(1000, 3000))
    assert _round_trip(original) == original


def test_array_boundary():
    original = _bitmap(range(1000, 5096))
    assert original[0].kind is StoreKind.ARRAY
    assert _round_trip(original) == original


def test_bitmap_boundary():
    original = _bitmap(range(1000, 5097))
    assert original[0].kind is StoreKind.BITMAP
    assert _round_trip(original) == original


def test_bitmap_high16bits():
    original = _bitmap(i << 16 for i in range(1 << 16))
    data = serialize(original)
    assert deserialize(data) == original


def test_bitmap():
    original = _bitmap(range(1000, 6000))
    assert _round_trip(original) == original


def test_arrays():
    original = _bitmap(list(range(1000, 3000)) + list(range(70000, 74000)))
    assert _round_trip(original) == original


def test_bitmaps():
    original = _bitmap(list(range(1000, 6000)) + list(range(70000, 77000)))
    assert _round_trip(original) == original


def test_mixed():
    original = _bitmap(list(range(1000, 3000)) + list(range(70000, 77000)))
    assert _round_trip(original) == original


STRANGE = [
    6619162, 6619180, 6619181, 6619217, 6619218, 6619257, 6619258, 6619259, 6619260, 6619261,
    6619262, 6619263, 6619264, 6619265, 6619266, 6619292, 6619294, 6619322, 6619461, 6619485,
    6619490, 6619500, 6619594, 6619619, 6619620, 6619623, 6619630, 6619632, 6619700, 6619701,
    6619702, 6619703, 6619813, 6619896, 6619967, 6620022, 6620034, 6620038, 6620110, 6620182,
    6684318, 6684320, 6684323, 6684324, 6684325, 6684326, 6684327, 6684328, 6684329, 6684330,
    6684331, 6684332, 6684333, 6684334, 6684335, 6684336, 6684337, 6684378, 6684407, 6684414,
    6684416, 6684424, 6684472, 6684563, 6684574, 6684575, 6684576, 6684577, 6684601, 6684635,
    6684636, 6684639, 6684640, 6684641, 6684642, 6684666, 108658947,
]


def test_strange():
    original = _bitmap(STRANGE)
    assert _round_trip(original) == original


def test_deserialize_overflow_s_plus_len():
    data = bytes([59, 48, 0, 0, 255, 130, 254, 59, 48, 2, 0, 41, 255, 255, 166, 197, 4, 0, 2])
    with pytest.raises(DeserializationError):
        deserialize(data)
    with pytest.raises(DeserializationError):
        deserialize_unchecked_from(io.BytesIO(data))


def test_run_container_is_decoded():
    data = (
        struct.pack("<I", 12347)
        + bytes([0b1])
        + struct.pack("<HH", 0, 4)
        + struct.pack("<H", 1)
        + struct.pack("<HH", 10, 4)
    )
    containers = deserialize(data)
    assert list(values_from_containers(containers)) == [10, 11, 12, 13, 14]


def test_unknown_cookie():
    with pytest.raises(DeserializationError, match="cookie"):
        deserialize(struct.pack("<II", 1, 0))


def test_size_too_large():
    data = struct.pack("<II", 12346, (1 << 16) + 1)
    with pytest.raises(DeserializationError, match="size"):
        deserialize(data)


def test_truncated_data():
    data = serialize(_bitmap(range(1000, 3000)))
    with pytest.raises(DeserializationError):
        deserialize(data[:-1])


def _unsorted_array_stream():
    return (
        struct.pack("<II", 12346, 1)
        + struct.pack("<HH", 0, 1)
        + struct.pack("<I", 16)
        + struct.pack("<HH", 5, 3)
    )


def test_checked_rejects_unsorted_array():
    with pytest.raises(DeserializationError):
        deserialize(_unsorted_array_stream())


def test_unchecked_accepts_unsorted_array():
    containers = deserialize_unchecked_from(io.BytesIO(_unsorted_array_stream()))
    assert containers[0].array == [5, 3]


def _lying_bitmap_stream():
    return (
        struct.pack("<II", 12346, 1)
        + struct.pack("<HH", 0, 4096)
        + struct.pack("<I", 16)
        + bytes(8 * 1024)
    )


def test_checked_rejects_wrong_bitmap_cardinality():
    with pytest.raises(DeserializationError, match="cardinality"):
        deserialize(_lying_bitmap_stream())


def test_unchecked_keeps_declared_cardinality():
    containers = deserialize_unchecked_from(io.BytesIO(_lying_bitmap_stream()))
    assert len(containers[0]) == 4097
    assert list(containers[0]) == []


def test_serialize_rejects_empty_container():
    with pytest.raises(ValueError):
        serialize([Container(0)])


class _TrickleReader:
    def __init__(self, data):
        self._stream = io.BytesIO(data)

    def read(self, size):
        return self._stream.read(min(size, 3))


def test_short_reads_are_completed():
    original = _bitmap(list(range(0, 5000)) + [1 << 20])
    assert deserialize_from(_TrickleReader(serialize(original))) == original


@settings(max_examples=25, deadline=None)
@given(st.sets(st.integers(0, 2**32 - 1), max_size=300) | st.sets(st.integers(0, 140000), max_size=9000))
def test_serialization_property(values):
    original = _bitmap(values)
    assert _round_trip(original) == original