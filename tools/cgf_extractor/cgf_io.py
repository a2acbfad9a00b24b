"""Little-endian read helpers for CryEngine model files."""
import struct
from typing import BinaryIO, Tuple

from cgf_errors import TruncatedReadError


def read_exact(file: BinaryIO, count: int) -> bytes:
    """Read exactly ``count`` bytes.

    Raises:
        TruncatedReadError: If the stream ends first
    """
    offset = file.tell()
    # Corrupt counts can ask for more than the file holds
    available = max(file_length(file) - offset, 0)
    if count > available:
        raise TruncatedReadError(offset, count, available)
    data = file.read(count)
    if len(data) != count:
        raise TruncatedReadError(offset, count, len(data))
    return data


def read_struct(file: BinaryIO, fmt: str) -> Tuple:
    """Read and unpack one struct. ``fmt`` must carry its byte order."""
    return struct.unpack(fmt, read_exact(file, struct.calcsize(fmt)))


def read_u32(file: BinaryIO) -> int:
    return read_struct(file, "<I")[0]


def read_i32(file: BinaryIO) -> int:
    return read_struct(file, "<i")[0]


def read_f32(file: BinaryIO) -> float:
    return read_struct(file, "<f")[0]


def read_floats(file: BinaryIO, count: int) -> Tuple[float, ...]:
    return read_struct(file, f"<{count}f")


def decode_fstring(data: bytes) -> str:
    """Decode a NUL padded fixed width string."""
    return data.split(b"\x00", 1)[0].decode("ascii", errors="replace")


def read_fstring(file: BinaryIO, length: int) -> str:
    """Read a fixed width string, trimmed at the first NUL."""
    return decode_fstring(read_exact(file, length))


def read_cstring(file: BinaryIO) -> str:
    """Read a NUL terminated string."""
    chars = bytearray()
    while True:
        c = read_exact(file, 1)
        if c == b"\x00":
            break
        chars += c
    return chars.decode("ascii", errors="replace")


def read_pstring(file: BinaryIO) -> str:
    """Read a string prefixed with its u32 length."""
    length = read_u32(file)
    return read_fstring(file, length)


def skip(file: BinaryIO, count: int) -> None:
    """Skip ``count`` bytes, failing if they are not all there."""
    read_exact(file, count)


def file_length(file: BinaryIO) -> int:
    """Length of a seekable stream; the position is kept."""
    position = file.tell()
    file.seek(0, 2)
    length = file.tell()
    file.seek(position)
    return length
