"""Errors raised while loading CryEngine model files.

Every error aborts the load. The chunk header record being decoded when the
error happened is attached as ``chunk_header`` so callers can report which
record failed.
"""
from typing import Optional

from cgf_types import ChunkHeader, chunk_type_name


class CgfError(Exception):
    """Base class for model loading errors."""

    def __init__(self, message: str, chunk_header: Optional[ChunkHeader] = None):
        super().__init__(message)
        self.message = message
        self.chunk_header = chunk_header

    def __str__(self) -> str:
        header = self.chunk_header
        if header is None:
            return self.message
        return (
            f"{self.message} (chunk {header.type_name} v0x{header.version:X} "
            f"id={header.id} offset=0x{header.offset:X} size={header.size})"
        )


class UnsupportedFormatError(CgfError, ValueError):
    """Neither file signature matched, or the table layout is unknown."""

    def __init__(self, message: str, raw: bytes = b"", version: Optional[int] = None):
        super().__init__(message)
        self.raw = raw
        self.version = version


class UnsupportedChunkError(CgfError):
    """No decoder registered for a (chunk type, version) pair."""

    def __init__(self, chunk_type: int, version: int,
                 chunk_header: Optional[ChunkHeader] = None):
        super().__init__(
            f"Unsupported chunk {chunk_type_name(chunk_type)} version 0x{version:X}",
            chunk_header,
        )
        self.chunk_type = chunk_type
        self.version = version


class TruncatedReadError(CgfError, EOFError):
    """Stream ended before a field or chunk span was satisfied."""

    def __init__(self, offset: int, wanted: int, available: int):
        super().__init__(
            f"Unexpected end of file at 0x{offset:X}: need {wanted} bytes, got {available}"
        )
        self.offset = offset
        self.wanted = wanted
        self.available = available


class InconsistentOffsetError(CgfError, ValueError):
    """Chunk table or chunk span reaches past the end of the file."""

    def __init__(self, message: str, start: int, end: int, file_length: int,
                 chunk_header: Optional[ChunkHeader] = None):
        super().__init__(message, chunk_header)
        self.start = start
        self.end = end
        self.file_length = file_length
