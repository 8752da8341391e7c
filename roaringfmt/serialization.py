"""Reading and writing the standard Roaring bitmap on-disk format."""

from __future__ import annotations

import io
import itertools
import struct
from collections.abc import Iterable
from typing import BinaryIO

from .container import ARRAY_LIMIT, BITMAP_LENGTH, Container, StoreKind

SERIAL_COOKIE_NO_RUNCONTAINER = 12346
SERIAL_COOKIE = 12347
NO_OFFSET_THRESHOLD = 4
DESCRIPTION_BYTES = 4
OFFSET_BYTES = 4
_MAX_CONTAINERS = 1 << 16
_MAX_LOW = 0xFFFF


class DeserializationError(ValueError):
    """Raised when serialized data is truncated or invalid."""


def _payload_size(container: Container) -> int:
    if container.kind is StoreKind.ARRAY:
        return 2 * len(container)
    return 8 * BITMAP_LENGTH


def serialized_size(containers: Iterable[Container]) -> int:
    """Return the number of bytes that serialization will produce."""
    return 8 + sum(8 + _payload_size(container) for container in containers)


def serialize_into(containers: Iterable[Container], writer: BinaryIO) -> None:
    """Write containers to a binary stream in the format without run containers."""
    containers = list(containers)
    if any(len(container) == 0 for container in containers):
        raise ValueError("cannot serialize an empty container")
    count = len(containers)
    writer.write(struct.pack("<II", SERIAL_COOKIE_NO_RUNCONTAINER, count))
    writer.write(
        b"".join(struct.pack("<HH", c.key, len(c) - 1) for c in containers)
    )
    offsets = list(
        itertools.accumulate(
            (_payload_size(c) for c in containers), initial=8 + 8 * count
        )
    )[:-1]
    writer.write(struct.pack(f"<{count}I", *offsets))
    for container in containers:
        if container.kind is StoreKind.ARRAY:
            writer.write(struct.pack(f"<{len(container.array)}H", *container.array))
        else:
            writer.write(struct.pack(f"<{BITMAP_LENGTH}Q", *container.words))


def serialize(containers: Iterable[Container]) -> bytes:
    """Return the serialized form of the containers."""
    buffer = io.BytesIO()
    serialize_into(containers, buffer)
    return buffer.getvalue()


def _read_exact(reader: BinaryIO, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining:
        chunk = reader.read(remaining)
        if not chunk:
            raise DeserializationError("unexpected end of data")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def _unpack(fmt: str, reader: BinaryIO) -> tuple:
    return struct.unpack(fmt, _read_exact(reader, struct.calcsize(fmt)))


def _read_run_container(reader: BinaryIO, key: int) -> Container:
    (runs,) = _unpack("<H", reader)
    flat = _unpack(f"<{2 * runs}H", reader)
    intervals = list(zip(flat[0::2], flat[1::2]))
    capacity = sum(length for _, length in intervals)
    kind = StoreKind.ARRAY if capacity <= ARRAY_LIMIT else StoreKind.BITMAP
    container = Container(key, kind)
    for start, length in intervals:
        end = start + length
        if end > _MAX_LOW:
            raise DeserializationError("run extends past the end of its container")
        container.insert_range(start, end)
    return container


def _read_array(reader: BinaryIO, key: int, cardinality: int, checked: bool) -> Container:
    values = list(_unpack(f"<{cardinality}H", reader))
    if checked and any(a >= b for a, b in itertools.pairwise(values)):
        raise DeserializationError("array container values are not strictly sorted")
    return Container(key, StoreKind.ARRAY, array=values)


def _read_bitmap(reader: BinaryIO, key: int, cardinality: int, checked: bool) -> Container:
    words = list(_unpack(f"<{BITMAP_LENGTH}Q", reader))
    if checked:
        actual = sum(word.bit_count() for word in words)
        if actual != cardinality:
            raise DeserializationError(
                f"expected cardinality {cardinality} but found {actual}"
            )
    return Container(key, StoreKind.BITMAP, words=words, cardinality=cardinality)


def _deserialize(reader: BinaryIO, checked: bool) -> list[Container]:
    (cookie,) = _unpack("<I", reader)
    if cookie == SERIAL_COOKIE_NO_RUNCONTAINER:
        (size,) = _unpack("<I", reader)
        has_offsets, has_runs = True, False
    elif cookie & 0xFFFF == SERIAL_COOKIE:
        size = (cookie >> 16) + 1
        has_offsets, has_runs = size >= NO_OFFSET_THRESHOLD, True
    else:
        raise DeserializationError("unknown cookie value")

    run_flags = _read_exact(reader, (size + 7) // 8) if has_runs else b""

    if size > _MAX_CONTAINERS:
        raise DeserializationError("size is greater than supported")

    descriptions = struct.unpack(
        f"<{2 * size}H", _read_exact(reader, size * DESCRIPTION_BYTES)
    )
    if has_offsets:
        _read_exact(reader, size * OFFSET_BYTES)

    containers = []
    pairs = zip(descriptions[0::2], descriptions[1::2])
    for index, (key, cardinality_minus_one) in enumerate(pairs):
        cardinality = cardinality_minus_one + 1
        is_run = has_runs and (run_flags[index // 8] >> (index % 8)) & 1
        if is_run:
            container = _read_run_container(reader, key)
        elif cardinality <= ARRAY_LIMIT:
            container = _read_array(reader, key, cardinality, checked)
        else:
            container = _read_bitmap(reader, key, cardinality, checked)
        containers.append(container)
    return containers


def deserialize_from(reader: BinaryIO) -> list[Container]:
    """Read containers from a binary stream, validating their contents."""
    return _deserialize(reader, checked=True)


def deserialize_unchecked_from(reader: BinaryIO) -> list[Container]:
    """Read containers from a binary stream without validating their contents."""
    return _deserialize(reader, checked=False)


def deserialize(data: bytes) -> list[Container]:
    """Read validated containers from bytes."""
    return deserialize_from(io.BytesIO(data))