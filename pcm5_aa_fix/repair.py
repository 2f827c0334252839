"""
NATIVE_SELECTED -> DISCLAIMER_ACCEPTED repair transform.

Each 17-byte NATIVE_SELECTED string (length prefix included) is replaced by the
21-byte DISCLAIMER_ACCEPTED string. Everything after a replacement shifts by 4
bytes, so the blob grows by 4 bytes per fixed device and the header CRC32 is
recalculated over the new payload.
"""

import sys
from dataclasses import dataclass, field
from typing import List, Sequence

from .binary import read_u64_be, write_u64_be
from .crc import crc32
from .devicelist import (
    CHECKSUM_SIZE, DISCLAIMER_ACCEPTED_PATTERN, HEADER_SIZE,
    NATIVE_SELECTED_PATTERN, Occurrence, Summary, locate_native_selected, parse,
)
from .errors import LocatorDisagreement, Overflow, StructuralError

SIZE_GROWTH = len(DISCLAIMER_ACCEPTED_PATTERN) - len(NATIVE_SELECTED_PATTERN)


@dataclass
class RepairResult:
    """Outcome of repairing one blob"""
    original_size: int
    blob: bytes
    old_checksum: int  # Full 64-bit value stored in the input header
    new_checksum: int
    occurrences: List[Occurrence] = field(default_factory=list)

    @property
    def new_size(self) -> int:
        return len(self.blob)

    @property
    def size_delta(self) -> int:
        return self.new_size - self.original_size

    @property
    def changed(self) -> bool:
        return bool(self.occurrences)


def apply_replacements(blob: bytes, offsets: Sequence[int]) -> bytes:
    """
    Build a new blob with the sentinel at each offset replaced and the header fixed.

    Args:
        blob: Original blob (left untouched)
        offsets: Ascending offsets of NATIVE_SELECTED patterns, all >= 16

    Returns:
        New blob, len(blob) + 4 * len(offsets) bytes, with a valid header CRC32
    """
    new_size = len(blob) + len(offsets) * SIZE_GROWTH
    if new_size > sys.maxsize:
        raise Overflow(f"repaired blob would be {new_size} bytes")

    out = bytearray()
    read_pos = 0

    for offset in offsets:
        if offset < HEADER_SIZE or offset < read_pos:
            raise ValueError(f"occurrence offsets must be ascending and >= {HEADER_SIZE}: {list(offsets)}")
        if blob[offset:offset + len(NATIVE_SELECTED_PATTERN)] != NATIVE_SELECTED_PATTERN:
            raise ValueError(f"no NATIVE_SELECTED pattern at offset {offset}")

        out += blob[read_pos:offset]
        out += DISCLAIMER_ACCEPTED_PATTERN
        read_pos = offset + len(NATIVE_SELECTED_PATTERN)

    out += blob[read_pos:]

    # Recalculate CRC32 for the modified payload; high 32 bits stay zero
    write_u64_be(out, 0, crc32(out, CHECKSUM_SIZE))

    return bytes(out)


def check_locators(summary: Summary, occurrences: List[Occurrence]) -> None:
    """Refuse to continue unless the parser and the byte scan agree on every offset"""
    scanned = {o.offset for o in occurrences}
    parsed = set(summary.native_selected_offsets)
    if scanned != parsed:
        raise LocatorDisagreement(
            f"byte scan found NATIVE_SELECTED at {sorted(scanned)}, "
            f"parser found it at {sorted(parsed)}"
        )


def repair_blob(blob: bytes) -> RepairResult:
    """
    Repair every NATIVE_SELECTED acceptance state in a device list blob.

    Args:
        blob: Raw device list value

    Returns:
        RepairResult holding the new blob. With nothing to fix the blob is the
        input with its header rewritten (identical when the stored CRC was valid).

    Raises:
        StructuralError: blob does not parse completely
        LocatorDisagreement: parser and byte scan disagree
        Overflow: result would be too large
    """
    summary = parse(blob)
    if not summary.is_complete:
        raise StructuralError(f"refusing to repair malformed device list: {summary.error}")

    occurrences = locate_native_selected(blob, summary)
    check_locators(summary, occurrences)

    new_blob = apply_replacements(blob, [o.offset for o in occurrences])

    return RepairResult(
        original_size=len(blob),
        blob=new_blob,
        old_checksum=summary.stored_checksum,
        new_checksum=read_u64_be(new_blob, 0),
        occurrences=occurrences,
    )
