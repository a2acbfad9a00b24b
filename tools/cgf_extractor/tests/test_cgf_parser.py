"""Tests for the file header and chunk header table parser."""
import io
import os
import random
import struct
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cgf_builder import (
    CHUNK_HELPER,
    CHUNK_MESH,
    CHUNK_NODE,
    ChunkSpec,
    build_file,
    chunk_offsets,
    legacy_header,
    modern_header,
)
from cgf_errors import InconsistentOffsetError, TruncatedReadError, UnsupportedFormatError
from cgf_parser import CgfParser


def test_parse_header_invalid_signature():
    """Should raise on unknown signatures and keep the raw bytes."""
    parser = CgfParser()
    with pytest.raises(UnsupportedFormatError, match="Unsupported file signature") as exc_info:
        parser.parse_header(io.BytesIO(b"XXXXXXXX" + b"\x00" * 100))

    assert exc_info.value.raw == b"XXXXXXXX"


def test_parse_header_empty_file():
    """An empty file is an unsupported format, not a truncated read."""
    parser = CgfParser()
    with pytest.raises(UnsupportedFormatError) as exc_info:
        parser.parse_header(io.BytesIO(b""))

    assert exc_info.value.raw == b""


def test_parse_header_modern():
    """Should accept the CrCh signature."""
    parser = CgfParser()
    header = parser.parse_header(io.BytesIO(modern_header(3, 0x40)))

    assert header.signature == "CrCh"
    assert header.version == 0x746
    assert header.chunk_count == 3
    assert header.chunk_table_offset == 0x40
    assert header.file_type is None
    assert not header.is_legacy


def test_parse_header_legacy():
    """Legacy table offset is 4 bytes past the stored one."""
    parser = CgfParser()
    header = parser.parse_header(io.BytesIO(legacy_header(2, 0x100, version=0x744)))

    assert header.signature == "CryTek"
    assert header.version == 0x744
    assert header.chunk_count == 2
    assert header.raw_table_offset == 0x100
    assert header.chunk_table_offset == 0x104
    assert header.file_type == 0xFFFF0000
    assert header.is_legacy


def test_parse_header_ignores_stream_position():
    """Detection always starts at offset 0."""
    parser = CgfParser()
    file = io.BytesIO(modern_header(0, 16))
    file.seek(10)

    assert parser.parse_header(file).signature == "CrCh"


def test_parse_header_truncated_fields():
    """Signature present but fields cut short."""
    parser = CgfParser()
    with pytest.raises(TruncatedReadError):
        parser.parse_header(io.BytesIO(b"CrCh" + b"\x46\x07\x00\x00"))


def test_parse_chunks_745():
    """Should read size and offset from 0x745 records."""
    chunks = [
        ChunkSpec(CHUNK_NODE, 0x823, 1, b"\x01" * 10),
        ChunkSpec(CHUNK_HELPER, 0x744, 7, b"\x02" * 16),
    ]
    data = build_file(chunks, version=0x745)

    headers = CgfParser().parse_chunks(io.BytesIO(data))

    assert len(headers) == 2
    assert [h.id for h in headers] == [1, 7]
    assert [h.chunk_type for h in headers] == [CHUNK_NODE, CHUNK_HELPER]
    assert [h.offset for h in headers] == chunk_offsets(chunks, 0x745)
    # Embedded 16 byte header is part of the span
    assert [h.size for h in headers] == [26, 32]


def test_parse_chunks_746_rebases_type_and_masks_version():
    """3.6 records store 16 bit types and flag bits in the version."""
    record = struct.pack("<HHiII", 0x100B, 0x8823, 5, 8, 16)
    data = modern_header(1, 24) + b"\x00" * 8 + record

    headers = CgfParser().parse_chunks(io.BytesIO(data))

    assert headers[0].chunk_type == CHUNK_NODE
    assert headers[0].type_name == "NODE"
    assert headers[0].version == 0x823
    assert headers[0].id == 5
    assert headers[0].size == 8
    assert headers[0].offset == 16


def test_parse_chunks_744_derives_sizes():
    """0x744 records store no size; it runs to the next boundary."""
    chunks = [
        ChunkSpec(CHUNK_HELPER, 0x744, 1, b"\x00" * 16),
        ChunkSpec(CHUNK_HELPER, 0x744, 2, b"\x00" * 40),
        ChunkSpec(CHUNK_HELPER, 0x744, 3, b"\x00" * 4),
    ]
    data = build_file(chunks, version=0x744)

    headers = CgfParser().parse_chunks(io.BytesIO(data))

    # Last chunk stops at the table, not at the end of file
    assert [h.size for h in headers] == [32, 56, 20]


def test_parse_chunks_empty():
    """Should return empty list when the chunk count is 0."""
    data = modern_header(0, 16)

    assert CgfParser().parse_chunks(io.BytesIO(data)) == []


def test_parse_chunks_unknown_table_version():
    """A known signature with an unknown table layout is unsupported."""
    data = modern_header(0, 16, version=0x750)

    with pytest.raises(UnsupportedFormatError) as exc_info:
        CgfParser().parse_chunks(io.BytesIO(data))

    assert exc_info.value.version == 0x750


def test_parse_chunks_table_past_end():
    """Table span longer than the file is an inconsistent offset."""
    data = modern_header(4, 16) + b"\x00" * 16

    with pytest.raises(InconsistentOffsetError) as exc_info:
        CgfParser().parse_chunks(io.BytesIO(data))

    assert exc_info.value.end == 16 + 4 * 16
    assert exc_info.value.file_length == len(data)


def test_parse_chunks_table_past_end_lazy():
    """Without eager checks the same file fails as a truncated read."""
    data = modern_header(4, 16) + b"\x00" * 16

    with pytest.raises(TruncatedReadError):
        CgfParser().parse_chunks(io.BytesIO(data), validate_offsets=False)


def test_parse_chunks_negative_table_offset_lazy():
    """A negative table offset is rejected before seeking, even without eager checks."""
    data = modern_header(1, -100)

    with pytest.raises(InconsistentOffsetError) as exc_info:
        CgfParser().parse_chunks(io.BytesIO(data), validate_offsets=False)

    assert exc_info.value.start == -100
    assert exc_info.value.file_length == len(data)


def test_parse_chunks_span_past_end():
    """Chunk span longer than the file names the record."""
    record = struct.pack("<HHiII", 0x100B, 0x823, 9, 1000, 16)
    data = modern_header(1, 16) + record

    with pytest.raises(InconsistentOffsetError) as exc_info:
        CgfParser().parse_chunks(io.BytesIO(data))

    assert exc_info.value.chunk_header.id == 9
    assert "id=9" in str(exc_info.value)


@pytest.mark.parametrize("seed", range(20))
def test_parse_chunks_random_tables(seed):
    """Random valid files: one layout is picked and every span fits the file."""
    rng = random.Random(seed)
    version = rng.choice([0x744, 0x745, 0x746])
    chunk_types = [CHUNK_NODE, CHUNK_HELPER, CHUNK_MESH]
    chunks = [
        ChunkSpec(rng.choice(chunk_types), rng.randrange(0x7FFF), chunk_id,
                  bytes(rng.randrange(256) for _ in range(rng.randrange(1, 64))))
        for chunk_id in rng.sample(range(1000), rng.randrange(0, 12))
    ]
    data = build_file(chunks, version=version)
    file = io.BytesIO(data)

    parser = CgfParser()
    header = parser.parse_header(file)
    headers = parser.parse_chunk_headers(file, header)

    record_size = 20 if version == 0x745 else 16
    assert header.is_legacy == (version != 0x746)
    if header.is_legacy:
        assert header.chunk_table_offset == header.raw_table_offset + 4
    assert header.chunk_table_offset + header.chunk_count * record_size <= len(data)
    assert len(headers) == len(chunks)
    assert [h.id for h in headers] == [c.id for c in chunks]
    assert [h.offset for h in headers] == chunk_offsets(chunks, version)
    for h in headers:
        assert h.offset + h.size <= len(data)
