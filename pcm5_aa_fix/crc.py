"""
CRC32 for the device list header.

Same algorithm as zlib.crc32 / java.util.zip.CRC32: reflected IEEE 802.3
polynomial 0xEDB88320, initial value and final XOR 0xFFFFFFFF.
"""

# Pre-computed CRC32 lookup table (IEEE 802.3 polynomial: 0xEDB88320)
# Generated once on first use
CRC32_TABLE = None

CRC32_POLY = 0xEDB88320


def init_crc32_table():
    """Initialize CRC32 lookup table for fast calculation"""
    global CRC32_TABLE
    if CRC32_TABLE is not None:
        return

    table = []
    for i in range(256):
        crc = i
        for _ in range(8):
            if crc & 1:
                crc = (crc >> 1) ^ CRC32_POLY
            else:
                crc >>= 1
        table.append(crc)
    CRC32_TABLE = table


def crc32(data: bytes, start: int = 0, end: int = None) -> int:
    """
    Calculate CRC32 over data[start:end].

    Args:
        data: Buffer to checksum
        start: First offset included
        end: Offset one past the last byte included (defaults to len(data))

    Returns:
        32-bit unsigned CRC value
    """
    init_crc32_table()

    if end is None:
        end = len(data)

    crc = 0xFFFFFFFF
    for pos in range(start, end):
        crc = CRC32_TABLE[(crc ^ data[pos]) & 0xFF] ^ (crc >> 8)

    return crc ^ 0xFFFFFFFF
