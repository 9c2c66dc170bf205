"""Structural sanity check for raw disk images: a GPT header must be present at LBA 1."""
from pathlib import Path
import struct
import zlib

from .errors import InvalidDiskImage


SECTOR_SIZE = 512
GPT_SIGNATURE = b"EFI PART"
GPT_MIN_HEADER_SIZE = 92


def read_gpt_header(path: Path, sector_size: int = SECTOR_SIZE) -> dict:
    with open(path, "rb") as f:
        f.seek(sector_size)
        header = f.read(sector_size)

    if len(header) < GPT_MIN_HEADER_SIZE:
        raise ValueError("image is too small to hold a GPT header")
    if header[:8] != GPT_SIGNATURE:
        raise ValueError("GPT signature not found at LBA 1")

    header_size = struct.unpack_from("<I", header, 12)[0]
    if header_size < GPT_MIN_HEADER_SIZE or header_size > sector_size:
        raise ValueError(f"invalid GPT header size {header_size}")

    expected_crc = struct.unpack_from("<I", header, 16)[0]
    # CRC is computed with the CRC field itself zeroed
    raw = bytearray(header[:header_size])
    raw[16:20] = b"\x00\x00\x00\x00"
    actual_crc = zlib.crc32(bytes(raw)) & 0xFFFFFFFF
    if actual_crc != expected_crc:
        raise ValueError(f"GPT header CRC mismatch (expected {expected_crc:#010x}, got {actual_crc:#010x})")

    return {
        "current_lba": struct.unpack_from("<Q", header, 24)[0],
        "backup_lba": struct.unpack_from("<Q", header, 32)[0],
        "first_usable": struct.unpack_from("<Q", header, 40)[0],
        "last_usable": struct.unpack_from("<Q", header, 48)[0],
        "num_partition_entries": struct.unpack_from("<I", header, 80)[0],
    }


def validate_disk_image(path: Path) -> None:
    try:
        read_gpt_header(path)
    except (OSError, ValueError) as exc:
        raise InvalidDiskImage(
            f"could not read disk header for disk '{path}'. Image must be a valid raw disk image: {exc}"
        ) from exc
