"""
Device list blob codec.

The head unit stores all paired terminal mode devices as one Java-serialized
blob (big-endian):

    +0x00: CRC32 of everything after the first 8 bytes, stored as a long
    +0x08: Schema version (int, 3)
    +0x0C: Device count (int)
    +0x10: Device records, back to back

Device record:
    deviceUniqueId                    (UTF-8, 2-byte length prefix)
    smartphoneType                    (UTF-8, 2-byte length prefix)
    hasName                           (boolean)
    name                              (UTF-8, 2-byte length prefix, only if hasName)
    userAcceptState                   (UTF-8, 2-byte length prefix)
    wasDisclaimerPreviouslyAccepted   (boolean)
    storeUserAcceptState              (boolean)
    lastMode                          (int)
    lastConnectionType                (UTF-8, 2-byte length prefix)

Parsing only goes as deep as needed to find each userAcceptState field and the
device name used in reports.
"""

import struct
from dataclasses import dataclass, field
from typing import List, Optional

from .binary import (
    I32, encode_str, read_bool, read_i32_be, read_str, read_u64_be,
)
from .crc import crc32
from .errors import StructuralError, TruncatedBlob

HEADER_SIZE = 16
CHECKSUM_SIZE = 8

NATIVE_SELECTED = "NATIVE_SELECTED"
DISCLAIMER_ACCEPTED = "DISCLAIMER_ACCEPTED"

# Length-prefixed forms as they appear on the wire
NATIVE_SELECTED_PATTERN = encode_str(NATIVE_SELECTED)          # 17 bytes
DISCLAIMER_ACCEPTED_PATTERN = encode_str(DISCLAIMER_ACCEPTED)  # 21 bytes

UNKNOWN_NAME = "unknown"


def _text(raw: bytes) -> str:
    return raw.decode('utf-8', errors='replace')


@dataclass
class DeviceEntry:
    """One parsed device record"""
    index: int
    offset: int  # Offset of the record in the blob
    size: int  # On-wire size of the record
    device_unique_id: str
    smartphone_type: str
    has_name: bool
    name: str  # UNKNOWN_NAME when the record carries no name
    accept_state_offset: int  # Offset of the userAcceptState length prefix
    accept_state_bytes: bytes  # Raw userAcceptState payload
    was_disclaimer_previously_accepted: bool
    store_user_accept_state: bool
    last_mode: int
    last_connection_type: str

    @property
    def accept_state(self) -> str:
        return _text(self.accept_state_bytes)

    @property
    def needs_fix(self) -> bool:
        """Check if the acceptance state is the NATIVE_SELECTED sentinel"""
        return self.accept_state_bytes == NATIVE_SELECTED.encode('ascii')


@dataclass
class Summary:
    """Header fields and parsed devices of a device list blob"""
    blob_size: int
    stored_checksum: int  # Full 64-bit header value
    computed_checksum: int  # CRC32 of blob[8:]
    version: int
    device_count: int
    devices: List[DeviceEntry] = field(default_factory=list)
    error: Optional[str] = None  # Set when parsing stopped early

    @property
    def is_valid_checksum(self) -> bool:
        # Upper 32 bits of the stored long must be zero
        return self.stored_checksum == self.computed_checksum

    @property
    def is_complete(self) -> bool:
        return self.error is None

    @property
    def native_selected_offsets(self) -> List[int]:
        """userAcceptState offsets of every parsed device holding NATIVE_SELECTED"""
        return [d.accept_state_offset for d in self.devices if d.needs_fix]


@dataclass
class Occurrence:
    """A NATIVE_SELECTED sentinel found in the blob"""
    offset: int
    device_name: str


@dataclass
class DeviceRecord:
    """Device record values used to build a blob"""
    device_unique_id: str
    smartphone_type: str
    name: Optional[str]
    user_accept_state: str
    was_disclaimer_previously_accepted: bool = False
    store_user_accept_state: bool = False
    last_mode: int = 0
    last_connection_type: str = ""


def _parse_device(blob: bytes, offset: int, index: int) -> DeviceEntry:
    start = offset

    device_unique_id, offset = read_str(blob, offset)
    smartphone_type, offset = read_str(blob, offset)

    has_name = read_bool(blob, offset)
    offset += 1
    name = UNKNOWN_NAME
    if has_name:
        raw_name, offset = read_str(blob, offset)
        name = _text(raw_name)

    accept_state_offset = offset
    accept_state, offset = read_str(blob, offset)

    was_accepted = read_bool(blob, offset)
    store_state = read_bool(blob, offset + 1)
    last_mode = read_i32_be(blob, offset + 2)
    offset += 6

    last_connection_type, offset = read_str(blob, offset)

    return DeviceEntry(
        index=index,
        offset=start,
        size=offset - start,
        device_unique_id=_text(device_unique_id),
        smartphone_type=_text(smartphone_type),
        has_name=has_name,
        name=name,
        accept_state_offset=accept_state_offset,
        accept_state_bytes=accept_state,
        was_disclaimer_previously_accepted=was_accepted,
        store_user_accept_state=store_state,
        last_mode=last_mode,
        last_connection_type=_text(last_connection_type),
    )


def parse(blob: bytes) -> Summary:
    """
    Parse a device list blob.

    Structural problems inside the device records do not raise: parsing stops,
    the devices read so far are kept and Summary.error describes the failure.

    Args:
        blob: Raw device list value

    Returns:
        Summary of the header and the parsed devices

    Raises:
        TruncatedBlob: if the blob is too short to hold the 16-byte header
    """
    if len(blob) < HEADER_SIZE:
        raise TruncatedBlob(
            f"blob is {len(blob)} bytes, header alone needs {HEADER_SIZE}"
        )

    summary = Summary(
        blob_size=len(blob),
        stored_checksum=read_u64_be(blob, 0),
        computed_checksum=crc32(blob, CHECKSUM_SIZE),
        version=read_i32_be(blob, 8),
        device_count=read_i32_be(blob, 12),
    )

    if summary.device_count < 0:
        summary.error = f"negative device count {summary.device_count}"
        return summary

    offset = HEADER_SIZE
    for index in range(summary.device_count):
        try:
            entry = _parse_device(blob, offset, index)
        except StructuralError as e:
            summary.error = f"device {index + 1} of {summary.device_count}: {e}"
            return summary
        summary.devices.append(entry)
        offset += entry.size

    if offset != len(blob):
        summary.error = (
            f"{len(blob) - offset} unexpected trailing bytes after "
            f"{summary.device_count} device(s) at offset {offset}"
        )

    return summary


def scan_native_selected(blob: bytes) -> List[int]:
    """Find every offset >= 16 where the 17-byte NATIVE_SELECTED pattern starts"""
    offsets = []
    pos = blob.find(NATIVE_SELECTED_PATTERN, HEADER_SIZE)
    while pos != -1:
        offsets.append(pos)
        pos = blob.find(NATIVE_SELECTED_PATTERN, pos + 1)
    return offsets


def locate_native_selected(blob: bytes, summary: Optional[Summary] = None) -> List[Occurrence]:
    """
    Locate NATIVE_SELECTED occurrences by byte scan and name them from the parse.

    The byte scan decides which offsets are reported. Each one is named after the
    parsed device whose userAcceptState starts at that offset, or UNKNOWN_NAME if
    no parsed device does.

    Args:
        blob: Raw device list value
        summary: Result of parse(blob), parsed here if not given

    Returns:
        Occurrences sorted by offset
    """
    if summary is None:
        summary = parse(blob)

    names = {d.accept_state_offset: d.name for d in summary.devices if d.needs_fix}

    return [
        Occurrence(offset=pos, device_name=names.get(pos, UNKNOWN_NAME))
        for pos in scan_native_selected(blob)
    ]


def header_checksum(payload: bytes) -> bytes:
    """Build the 8-byte header for a payload (high 32 bits zero, CRC32 low)"""
    return struct.pack('>Q', crc32(payload))


def encode_device_list(devices: List[DeviceRecord], version: int = 3) -> bytes:
    """
    Serialize device records into a blob with a valid header checksum.

    Args:
        devices: Records in storage order
        version: Schema version written to the header

    Returns:
        Complete blob
    """
    body = bytearray()
    body += I32.pack(version)
    body += I32.pack(len(devices))

    for device in devices:
        body += encode_str(device.device_unique_id)
        body += encode_str(device.smartphone_type)
        if device.name is None:
            body.append(0)
        else:
            body.append(1)
            body += encode_str(device.name)
        body += encode_str(device.user_accept_state)
        body.append(1 if device.was_disclaimer_previously_accepted else 0)
        body.append(1 if device.store_user_accept_state else 0)
        body += I32.pack(device.last_mode)
        body += encode_str(device.last_connection_type)

    return header_checksum(bytes(body)) + bytes(body)
