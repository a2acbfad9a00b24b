"""Chunk decoders and the (chunk type, version) registry.

The registry has two creation modes:

- ``new_chunk_header(file_version)`` returns the layout used to read one record
  of the chunk header table. It is the only thing needed before any payload
  chunk exists.
- ``new_chunk(chunk_type, version)`` returns an unbound payload decoder.

A lookup miss is an error. A skipped chunk would leave a hole in the chunk map
that node and bone resolution cannot tell apart from a missing chunk.
"""
import logging
import struct
from typing import BinaryIO, Callable, Dict, List, Optional, Tuple, Type

from cgf_errors import UnsupportedChunkError, UnsupportedFormatError
from cgf_io import (
    read_cstring,
    read_exact,
    read_f32,
    read_floats,
    read_fstring,
    read_i32,
    read_struct,
    read_u32,
)
from cgf_types import (
    ChunkHeader,
    ChunkType,
    FileVersion,
    LEGACY_FILE_VERSIONS,
    chunk_type_name,
)

logger = logging.getLogger(__name__)

# type, version, offset, id
EMBEDDED_HEADER_FORMAT = "<IIIi"
EMBEDDED_HEADER_SIZE = struct.calcsize(EMBEDDED_HEADER_FORMAT)


# -----------------------------
# Chunk header table layouts
# -----------------------------

class ChunkHeaderLayout:
    """On-disk layout of one chunk header table record."""

    def __init__(self, file_version: int, fmt: str, fields: Tuple[str, ...]):
        self.file_version = file_version
        self.fmt = fmt
        self.fields = fields
        self.record_size = struct.calcsize(fmt)

    @property
    def stores_size(self) -> bool:
        return "size" in self.fields

    def read(self, file: BinaryIO) -> ChunkHeader:
        values = dict(zip(self.fields, read_struct(file, self.fmt)))
        values.setdefault("size", 0)
        return self._normalize(ChunkHeader(**values))

    def _normalize(self, header: ChunkHeader) -> ChunkHeader:
        return header


class ChunkHeaderLayout746(ChunkHeaderLayout):
    """3.6 records store 16 bit type tags relative to 0xCCCBF000."""

    TYPE_BASE = 0xCCCBF000
    VERSION_MASK = 0x7FFF

    def _normalize(self, header: ChunkHeader) -> ChunkHeader:
        header.chunk_type = header.chunk_type + self.TYPE_BASE
        header.version = header.version & self.VERSION_MASK
        return header


CHUNK_HEADER_LAYOUTS: Dict[int, ChunkHeaderLayout] = {
    FileVersion.CRYTEK_3_4: ChunkHeaderLayout(
        FileVersion.CRYTEK_3_4, "<IIIi", ("chunk_type", "version", "offset", "id")
    ),
    FileVersion.CRYTEK_3_5: ChunkHeaderLayout(
        FileVersion.CRYTEK_3_5, "<IIIiI", ("chunk_type", "version", "offset", "id", "size")
    ),
    FileVersion.CRYTEK_3_6: ChunkHeaderLayout746(
        FileVersion.CRYTEK_3_6, "<HHiII", ("chunk_type", "version", "id", "size", "offset")
    ),
}


def new_chunk_header(file_version: int) -> ChunkHeaderLayout:
    """Get the chunk header table layout for a file version.

    Raises:
        UnsupportedFormatError: If no layout is known for the version
    """
    try:
        return CHUNK_HEADER_LAYOUTS[file_version]
    except KeyError:
        raise UnsupportedFormatError(
            f"Unsupported chunk table version 0x{file_version:X}", version=file_version
        ) from None


# -----------------------------
# Payload chunks
# -----------------------------

class Chunk:
    """Base class of decoded chunks.

    A chunk is created by ``new_chunk``, bound to its model and table record
    with ``load`` and decoded with ``read`` from a stream positioned at the
    record offset.
    """

    # Legacy payloads start with a copy of the table record
    has_embedded_header = True

    def __init__(self):
        self.chunk_type: int = 0
        self.version: int = 0
        self.id: int = 0
        self.offset: int = 0
        self.size: int = 0
        self.data_size: int = 0
        self._model = None
        self._header: Optional[ChunkHeader] = None

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {chunk_type_name(self.chunk_type)} "
            f"v0x{self.version:X} id={self.id}>"
        )

    @property
    def header(self) -> Optional[ChunkHeader]:
        return self._header

    @property
    def model(self):
        return self._model

    def load(self, model, header: ChunkHeader) -> None:
        """Bind the chunk to its owning model and table record."""
        self._model = model
        self._header = header
        self.chunk_type = header.chunk_type
        self.version = header.version
        self.id = header.id
        self.offset = header.offset
        self.size = header.size
        self.data_size = header.size

    @property
    def is_legacy(self) -> bool:
        model = self._model
        return model is not None and model.file_version in LEGACY_FILE_VERSIONS

    def read(self, file: BinaryIO) -> None:
        """Decode the chunk from ``file``, positioned at the chunk offset."""
        if self.is_legacy and self.has_embedded_header:
            self._read_embedded_header(file)
        self._read_payload(file)

    def _read_embedded_header(self, file: BinaryIO) -> None:
        chunk_type, version, offset, chunk_id = read_struct(file, EMBEDDED_HEADER_FORMAT)
        self.data_size = max(self.size - EMBEDDED_HEADER_SIZE, 0)
        header = self._header
        if header is not None and (chunk_type != header.chunk_type or offset != header.offset
                                   or chunk_id != header.id):
            logger.warning(
                "Conflict in chunk definition: table has %s id=%d at 0x%X, "
                "chunk has %s id=%d at 0x%X",
                header.type_name, header.id, header.offset,
                chunk_type_name(chunk_type), chunk_id, offset,
            )
        elif version != self.version:
            logger.debug("Chunk id=%d embedded version 0x%X, table has 0x%X",
                         self.id, version, self.version)

    def _read_payload(self, file: BinaryIO) -> None:
        raise NotImplementedError("Subclasses must implement _read_payload()")


CHUNK_REGISTRY: Dict[Tuple[int, int], Type[Chunk]] = {}


def register_chunk(chunk_type: int, *versions: int) -> Callable[[Type[Chunk]], Type[Chunk]]:
    """Class decorator registering a decoder for a chunk type and versions."""

    def decorator(cls: Type[Chunk]) -> Type[Chunk]:
        for version in versions:
            CHUNK_REGISTRY[(int(chunk_type), version)] = cls
        return cls

    return decorator


def new_chunk(chunk_type: int, version: int) -> Chunk:
    """Create an unbound decoder for a chunk type and version.

    Raises:
        UnsupportedChunkError: If nothing is registered for the pair
    """
    try:
        cls = CHUNK_REGISTRY[(chunk_type, version)]
    except KeyError:
        raise UnsupportedChunkError(chunk_type, version) from None
    return cls()


@register_chunk(ChunkType.SOURCE_INFO, 0x0)
class ChunkSourceInfo(Chunk):
    """Source file, date and author of the export."""

    # The embedded header is optional here, see _read_payload
    has_embedded_header = False

    def __init__(self):
        super().__init__()
        self.source_file = ""
        self.date = ""
        self.author = ""

    def _read_payload(self, file: BinaryIO) -> None:
        if self.is_legacy:
            start = file.tell()
            peek = read_exact(file, 4)
            file.seek(start)
            if struct.unpack("<I", peek)[0] == ChunkType.SOURCE_INFO:
                self._read_embedded_header(file)
        self.source_file = read_cstring(file)
        self.date = read_cstring(file)
        self.author = read_cstring(file)


@register_chunk(ChunkType.EXPORT_FLAGS, 0x1)
class ChunkExportFlags(Chunk):
    """Exporter flags and resource compiler version."""

    RC_VERSION_STRING_SIZE = 16

    def __init__(self):
        super().__init__()
        self.flags = 0
        self.rc_version: Tuple[int, ...] = (0, 0, 0, 0)
        self.rc_version_string = ""

    def _read_payload(self, file: BinaryIO) -> None:
        self.flags = read_u32(file)
        self.rc_version = read_struct(file, "<4I")
        self.rc_version_string = read_fstring(file, self.RC_VERSION_STRING_SIZE)


@register_chunk(ChunkType.TIMING, 0x918)
class ChunkTiming(Chunk):
    """Animation timing and the global frame range."""

    RANGE_NAME_SIZE = 32

    def __init__(self):
        super().__init__()
        self.secs_per_tick = 0.0
        self.ticks_per_frame = 0
        self.range_name = ""
        self.range_start = 0
        self.range_end = 0

    def _read_payload(self, file: BinaryIO) -> None:
        self.secs_per_tick = read_f32(file)
        self.ticks_per_frame = read_i32(file)
        self.range_name = read_fstring(file, self.RANGE_NAME_SIZE)
        self.range_start = read_i32(file)
        self.range_end = read_i32(file)

    @property
    def frame_count(self) -> int:
        return max(self.range_end - self.range_start + 1, 0)


@register_chunk(ChunkType.HELPER, 0x744)
class ChunkHelper(Chunk):
    """Dummy object placed in the scene."""

    def __init__(self):
        super().__init__()
        self.helper_type = 0
        self.position: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    def _read_payload(self, file: BinaryIO) -> None:
        self.helper_type = read_u32(file)
        self.position = read_floats(file, 3)


@register_chunk(ChunkType.MTL_NAME, 0x800)
class ChunkMtlName(Chunk):
    """Material name as used in the material library."""

    NAME_SIZE = 128

    def __init__(self):
        super().__init__()
        self.material_type = 0
        self.flags = 0
        self.name = ""
        self.physics_type = 0
        self.child_ids: List[int] = []

    def _read_payload(self, file: BinaryIO) -> None:
        self.material_type = read_u32(file)
        self.flags = read_u32(file)
        self.name = read_fstring(file, self.NAME_SIZE)
        self.physics_type = read_u32(file)
        num_children = read_u32(file)
        self.child_ids = list(read_struct(file, f"<{num_children}I"))
