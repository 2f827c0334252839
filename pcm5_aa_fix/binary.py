"""
Big-endian readers and writers for the device list blob.

Every reader takes the buffer and an offset and fails with TruncatedBlob
instead of returning a short value when the read would overrun the buffer.
"""

import struct
from typing import Tuple

from .errors import TruncatedBlob

U16 = struct.Struct('>H')
U32 = struct.Struct('>I')
I32 = struct.Struct('>i')
U64 = struct.Struct('>Q')


def _check(data: bytes, offset: int, size: int, what: str) -> None:
    if offset < 0 or offset + size > len(data):
        raise TruncatedBlob(
            f"{what} at offset {offset} needs {size} bytes, "
            f"blob is {len(data)} bytes"
        )


def read_u8(data: bytes, offset: int) -> int:
    """Read single byte"""
    _check(data, offset, 1, "byte")
    return data[offset]


def read_bool(data: bytes, offset: int) -> bool:
    """Read one byte boolean (any non-zero value is True)"""
    return read_u8(data, offset) != 0


def read_u16_be(data: bytes, offset: int) -> int:
    """Read 16-bit big-endian unsigned value"""
    _check(data, offset, 2, "u16")
    return U16.unpack_from(data, offset)[0]


def read_u32_be(data: bytes, offset: int) -> int:
    """Read 32-bit big-endian unsigned value"""
    _check(data, offset, 4, "u32")
    return U32.unpack_from(data, offset)[0]


def read_i32_be(data: bytes, offset: int) -> int:
    """Read 32-bit big-endian signed value"""
    _check(data, offset, 4, "i32")
    return I32.unpack_from(data, offset)[0]


def read_u64_be(data: bytes, offset: int) -> int:
    """Read 64-bit big-endian unsigned value"""
    _check(data, offset, 8, "u64")
    return U64.unpack_from(data, offset)[0]


def write_u64_be(buf: bytearray, offset: int, value: int) -> None:
    """Write 64-bit big-endian unsigned value into a mutable buffer"""
    _check(buf, offset, 8, "u64")
    U64.pack_into(buf, offset, value)


def read_str(data: bytes, offset: int) -> Tuple[bytes, int]:
    """
    Read a length-prefixed string (2-byte big-endian length + payload).

    The payload is returned as raw bytes; it is not decoded or validated.

    Args:
        data: Blob to read from
        offset: Offset of the length prefix

    Returns:
        (payload, offset of the first byte after the payload)
    """
    length = read_u16_be(data, offset)
    start = offset + 2
    if start + length > len(data):
        raise TruncatedBlob(
            f"string at offset {offset} declares {length} bytes, "
            f"only {len(data) - start} remain"
        )
    return bytes(data[start:start + length]), start + length


def encode_str(value) -> bytes:
    """Encode str or bytes as a length-prefixed string"""
    raw = value.encode('utf-8') if isinstance(value, str) else bytes(value)
    if len(raw) > 0xFFFF:
        raise ValueError(f"string of {len(raw)} bytes does not fit a 2-byte length prefix")
    return U16.pack(len(raw)) + raw
