from __future__ import annotations

import struct
from dataclasses import asdict, dataclass

from psd_grader.errors import InvalidHeaderError, InvalidSignatureError, TooSmallError

PSD_SIGNATURE = b"8BPS"
HEADER_SIZE = 26
MAX_DIMENSION = 30000
VALID_BIT_DEPTHS = {1, 8, 16, 32}

COLOR_MODES = {
    0: "Bitmap",
    1: "Grayscale",
    2: "Indexed",
    3: "RGB",
    4: "CMYK",
    7: "Multichannel",
    8: "Duotone",
    9: "Lab",
}


@dataclass(frozen=True)
class BasicInfo:
    width: int
    height: int
    bit_depth: int
    color_mode: str
    version: int
    raw_color_mode: int
    channels: int

    def to_dict(self) -> dict:
        return asdict(self)


def color_mode_name(code: int | None) -> str:
    if code is None:
        return "Unknown"
    return COLOR_MODES.get(code, f"Unknown ({code})")


def _read_u16(data: bytes, offset: int) -> int:
    if offset < 0 or offset + 2 > len(data):
        raise TooSmallError(f"Header truncated reading 2 bytes at offset {offset}.")
    return struct.unpack_from(">H", data, offset)[0]


def _read_u32(data: bytes, offset: int) -> int:
    if offset < 0 or offset + 4 > len(data):
        raise TooSmallError(f"Header truncated reading 4 bytes at offset {offset}.")
    return struct.unpack_from(">I", data, offset)[0]


def read_basic_info(data: bytes) -> BasicInfo:
    """Read the fixed 26-byte PSD file header without decoding anything else."""

    if len(data) < HEADER_SIZE:
        raise TooSmallError(f"File too small to be a PSD ({len(data)} bytes).")

    if bytes(data[:4]) != PSD_SIGNATURE:
        raise InvalidSignatureError("Invalid PSD signature.")

    version = _read_u16(data, 4)
    channels = _read_u16(data, 12)
    height = _read_u32(data, 14)
    width = _read_u32(data, 18)
    depth = _read_u16(data, 22)
    mode = _read_u16(data, 24)

    if not (0 < width <= MAX_DIMENSION and 0 < height <= MAX_DIMENSION):
        raise InvalidHeaderError(f"Invalid dimensions detected ({width}x{height}).")

    if depth not in VALID_BIT_DEPTHS:
        raise InvalidHeaderError(f"Invalid bit depth detected ({depth}).")

    return BasicInfo(
        width=width,
        height=height,
        bit_depth=depth,
        color_mode=color_mode_name(mode),
        version=version,
        raw_color_mode=mode,
        channels=channels,
    )
