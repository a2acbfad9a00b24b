"""Parser for the file header and chunk header table of CryEngine model files.

Two header layouts exist (little-endian):

- 3.6 and later: ``"CrCh"`` + u32 version + u32 chunk count + i32 table offset
- 3.5 and earlier: ``"CryTek\\0\\0"`` + u32 file type + u32 version
  + i32 table offset + u32 chunk count. The table starts 4 bytes after the
  stored offset.
"""
import logging
from typing import BinaryIO, List

from cgf_chunks import ChunkHeaderLayout, new_chunk_header
from cgf_errors import InconsistentOffsetError, UnsupportedFormatError
from cgf_io import decode_fstring, file_length, read_struct
from cgf_types import (
    CgfHeader,
    ChunkHeader,
    LEGACY_SIGNATURE,
    LEGACY_TABLE_PADDING,
    MODERN_SIGNATURE,
)

logger = logging.getLogger(__name__)


class CgfParser:
    """Parses the file header and chunk header table."""

    MODERN_SIGNATURE_SIZE = 4
    LEGACY_SIGNATURE_SIZE = 8

    def parse_header(self, file: BinaryIO) -> CgfHeader:
        """Detect the header layout and parse it.

        Args:
            file: Open binary file handle

        Returns:
            CgfHeader with the effective chunk table offset

        Raises:
            UnsupportedFormatError: If neither signature matches
            TruncatedReadError: If the header fields are cut short
        """
        file.seek(0)
        raw = file.read(self.MODERN_SIGNATURE_SIZE)
        if decode_fstring(raw) == MODERN_SIGNATURE:
            version, chunk_count, table_offset = read_struct(file, "<IIi")
            return CgfHeader(
                signature=MODERN_SIGNATURE,
                version=version,
                chunk_count=chunk_count,
                chunk_table_offset=table_offset,
                raw_table_offset=table_offset,
            )

        file.seek(0)
        raw = file.read(self.LEGACY_SIGNATURE_SIZE)
        if decode_fstring(raw) == LEGACY_SIGNATURE:
            file_type, version, table_offset, chunk_count = read_struct(file, "<IIiI")
            return CgfHeader(
                signature=LEGACY_SIGNATURE,
                version=version,
                chunk_count=chunk_count,
                chunk_table_offset=table_offset + LEGACY_TABLE_PADDING,
                raw_table_offset=table_offset,
                file_type=file_type,
            )

        raise UnsupportedFormatError(f"Unsupported file signature {raw!r}", raw=raw)

    def parse_chunk_headers(self, file: BinaryIO, header: CgfHeader,
                            validate_offsets: bool = True) -> List[ChunkHeader]:
        """Read the chunk header table.

        Args:
            file: Open binary file handle
            header: Parsed file header
            validate_offsets: Check the table and every chunk span against
                the file length

        Returns:
            Records in file order. The order says nothing about hierarchy.

        Raises:
            UnsupportedFormatError: If the file version has no table layout
            InconsistentOffsetError: If a span reaches past the end of file or
                the table offset is negative
            TruncatedReadError: If the table is cut short
        """
        layout = new_chunk_header(header.version)
        length = file_length(file)

        if validate_offsets:
            self._check_table_span(header, layout, length)
        elif header.chunk_table_offset < 0:
            raise InconsistentOffsetError(
                f"Negative chunk table offset {header.chunk_table_offset}",
                header.chunk_table_offset, header.chunk_table_offset, length,
            )

        file.seek(header.chunk_table_offset)
        chunk_headers = [layout.read(file) for _ in range(header.chunk_count)]

        if not layout.stores_size:
            self._derive_sizes(chunk_headers, header, length)

        if validate_offsets:
            for chunk_header in chunk_headers:
                self._check_chunk_span(chunk_header, length)

        return chunk_headers

    def parse_chunks(self, file: BinaryIO, validate_offsets: bool = True) -> List[ChunkHeader]:
        """Parse header and chunk header table from a file at any position."""
        header = self.parse_header(file)
        return self.parse_chunk_headers(file, header, validate_offsets)

    def _check_table_span(self, header: CgfHeader, layout: ChunkHeaderLayout,
                          length: int) -> None:
        start = header.chunk_table_offset
        end = start + header.chunk_count * layout.record_size
        if start < 0 or end > length:
            raise InconsistentOffsetError(
                f"Chunk table 0x{start:X}-0x{end:X} exceeds file length 0x{length:X}",
                start, end, length,
            )

    def _check_chunk_span(self, chunk_header: ChunkHeader, length: int) -> None:
        if chunk_header.offset + chunk_header.size > length:
            raise InconsistentOffsetError(
                f"Chunk span exceeds file length 0x{length:X}",
                chunk_header.offset, chunk_header.end, length, chunk_header,
            )

    def _derive_sizes(self, chunk_headers: List[ChunkHeader], header: CgfHeader,
                      length: int) -> None:
        """Fill in sizes for layouts that only store offsets.

        A chunk ends at the next chunk offset, at the chunk table when the
        table follows it, or at the end of file.
        """
        boundaries = sorted({h.offset for h in chunk_headers} | {header.raw_table_offset, length})
        for chunk_header in chunk_headers:
            end = next((b for b in boundaries if b > chunk_header.offset), chunk_header.offset)
            chunk_header.size = end - chunk_header.offset
        logger.debug("Derived sizes for %d chunk headers", len(chunk_headers))
