"""
Wire format for schema registry framed records.

A framed record is a zero magic byte, the schema id as a big-endian unsigned
32-bit integer, then the encoded payload up to the end of the record.
"""

import struct
from dataclasses import dataclass
from typing import Optional, Union

MAGIC_BYTE = 0
HEADER_SIZE = 5

_ID_STRUCT = struct.Struct(">I")


@dataclass(frozen=True)
class NullBytes:
    """Record had no key/value bytes at all."""


@dataclass(frozen=True)
class InvalidBytes:
    """Bytes without a recognizable header."""

    raw: bytes


@dataclass(frozen=True)
class ValidBytes:
    """Header parsed; payload still needs the schema to be decoded."""

    schema_id: int
    payload: bytes


BytesResult = Union[NullBytes, InvalidBytes, ValidBytes]


def decode_header(data: Optional[bytes]) -> BytesResult:
    """
    Split raw record bytes into schema id and payload.

    Args:
        data: Key or value bytes of a record, or None

    Returns:
        NullBytes for None, ValidBytes when the magic byte is present and at
        least the full header is there, InvalidBytes otherwise
    """
    if data is None:
        return NullBytes()
    data = bytes(data)
    if len(data) > 4 and data[0] == MAGIC_BYTE:
        (schema_id,) = _ID_STRUCT.unpack_from(data, 1)
        return ValidBytes(schema_id, data[HEADER_SIZE:])
    return InvalidBytes(data)


def encode_header(schema_id: int, payload: bytes) -> bytes:
    """
    Frame an encoded payload with the schema id header.

    Raises:
        ValueError: If schema_id does not fit an unsigned 32-bit integer
    """
    if not 0 <= schema_id <= 0xFFFFFFFF:
        raise ValueError(f"schema id {schema_id} out of unsigned 32-bit range")
    return bytes([MAGIC_BYTE]) + _ID_STRUCT.pack(schema_id) + bytes(payload)
