"""CryEngine cgf/cga/chr/skin model loader.

Structure:
    HEADER          <- signature, version and location of the chunk table
    CHUNKHEADER[]   <- type, version, ID, size and offset of every chunk
    CHUNK[]

Loading reads the header and the chunk header table, decodes every chunk with
the decoder registered for its (type, version) pair and links the results:
the root node, the bones chunk and the shared skinning info.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import BinaryIO, Dict, List, Mapping, Optional, Union

# Decoder modules register themselves with the chunk registry on import
import cgf_node  # noqa: F401
import cgf_skeleton  # noqa: F401
from cgf_chunks import Chunk, new_chunk
from cgf_errors import CgfError
from cgf_node import ChunkNode
from cgf_parser import CgfParser
from cgf_skeleton import ChunkCompiledBones
from cgf_types import BONES_CHUNK_TYPES, CgfHeader, ChunkHeader, ChunkType

logger = logging.getLogger(__name__)


@dataclass
class SkinningInfo:
    """Skinning state of a source object.

    One instance can be shared by all Models loaded for the same object
    (e.g. a .chr and its .skin files).
    """
    has_skinning_info: bool = False


class Model:
    """A loaded CryEngine model file."""

    def __init__(self, skinning_info: Optional[SkinningInfo] = None):
        self.file_name: Optional[str] = None
        self.file_signature: Optional[str] = None
        self.file_type: Optional[int] = None
        self.file_version: Optional[int] = None
        self.chunk_table_offset = 0
        self.num_chunks = 0
        self.chunk_headers: List[ChunkHeader] = []
        self.chunk_map: Dict[int, Chunk] = {}
        self.root_node: Optional[ChunkNode] = None
        self.bones: Optional[ChunkCompiledBones] = None
        self.skinning_info = skinning_info if skinning_info is not None else SkinningInfo()
        self._header: Optional[CgfHeader] = None
        self._node_map: Optional[Mapping[int, ChunkNode]] = None
        self._parser = CgfParser()

    def __repr__(self) -> str:
        return f"<Model {self.file_name!r} chunks={len(self.chunk_map)} nodes={self.node_count}>"

    @classmethod
    def from_file(cls, path: Union[str, Path], skinning_info: Optional[SkinningInfo] = None,
                  validate_offsets: bool = True) -> "Model":
        """Load the specified file as a Model and return it."""
        model = cls(skinning_info)
        model.load(path, validate_offsets=validate_offsets)
        return model

    def load(self, path: Union[str, Path], validate_offsets: bool = True) -> None:
        """Load a cgf/cga/chr/skin file.

        Raises:
            FileNotFoundError: If the path does not exist
            CgfError: On any format or decode failure. The model is left
                partially populated and must be discarded.
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Model file not found: {path}")

        self.file_name = path.name
        logger.debug("Loading %s", path)
        with open(path, "rb") as file:
            self.read(file, validate_offsets=validate_offsets)

    def read(self, file: BinaryIO, validate_offsets: bool = True) -> None:
        """Run the whole load pipeline on an open binary stream."""
        self._read_file_header(file)
        self._read_chunk_headers(file, validate_offsets)
        self._read_chunks(file)

    def _read_file_header(self, file: BinaryIO) -> None:
        header = self._parser.parse_header(file)
        self._header = header
        self.file_signature = header.signature
        self.file_type = header.file_type
        self.file_version = header.version
        self.chunk_table_offset = header.chunk_table_offset
        self.num_chunks = header.chunk_count
        self.log_file_header()

    def _read_chunk_headers(self, file: BinaryIO, validate_offsets: bool) -> None:
        self.chunk_headers = self._parser.parse_chunk_headers(file, self._header, validate_offsets)
        self.log_chunk_table()

    def _read_chunks(self, file: BinaryIO) -> None:
        """Decode every chunk in table order and link the results."""
        for chunk_header in self.chunk_headers:
            try:
                chunk = new_chunk(chunk_header.chunk_type, chunk_header.version)
                chunk.load(self, chunk_header)
                file.seek(chunk_header.offset)
                chunk.read(file)
            except CgfError as e:
                if e.chunk_header is None:
                    e.chunk_header = chunk_header
                logger.error("Failed to read chunk: %s", e)
                raise

            self._skip_to_end(file, chunk_header)

            # Duplicate IDs: the last chunk wins
            self.chunk_map[chunk_header.id] = chunk

            # The first node in table order becomes the root node. This is not
            # derived from parent IDs; multi-root or unordered files keep it.
            # A later chunk with the same ID does not replace it, so the root
            # can then be missing from the node map.
            if chunk_header.chunk_type == ChunkType.NODE and self.root_node is None:
                self.root_node = chunk

            # Last bones chunk wins
            if chunk_header.chunk_type in BONES_CHUNK_TYPES:
                self.bones = chunk
                self.skinning_info.has_skinning_info = True

    def _skip_to_end(self, file: BinaryIO, chunk_header: ChunkHeader) -> None:
        """Move the stream to the declared end of a chunk, whatever the decoder read."""
        consumed = file.tell() - chunk_header.offset
        if consumed > chunk_header.size:
            logger.warning("Buffer overflow in %s id=%d at 0x%X: read %d of %d bytes",
                           chunk_header.type_name, chunk_header.id, chunk_header.offset,
                           consumed, chunk_header.size)
        file.seek(chunk_header.end)

    @property
    def node_map(self) -> Mapping[int, ChunkNode]:
        """Node chunks by ID, built on first access.

        The map is cached and read-only. Call ``invalidate_node_map`` after
        changing ``chunk_map`` or node parent IDs.
        """
        if self._node_map is None:
            node_map: Dict[int, ChunkNode] = {
                chunk_id: chunk for chunk_id, chunk in self.chunk_map.items()
                if chunk.chunk_type == ChunkType.NODE
            }
            # Published before resolving so fallback lookups see a complete map
            self._node_map = MappingProxyType(node_map)
            for node in node_map.values():
                node.resolve_parent(node_map)
        return self._node_map

    def invalidate_node_map(self) -> None:
        """Drop the cached node map; the next access rebuilds it."""
        self._node_map = None

    @property
    def nodes(self) -> List[ChunkNode]:
        """Node chunks in chunk map order."""
        return [c for c in self.chunk_map.values() if c.chunk_type == ChunkType.NODE]

    @property
    def node_count(self) -> int:
        return sum(1 for c in self.chunk_map.values() if c.chunk_type == ChunkType.NODE)

    @property
    def bone_count(self) -> int:
        """Number of compiled bones chunks."""
        return sum(1 for c in self.chunk_map.values() if c.chunk_type in BONES_CHUNK_TYPES)

    def chunk_by_id(self, chunk_id: int) -> Optional[Chunk]:
        return self.chunk_map.get(chunk_id)

    def node_by_id(self, node_id: int) -> Optional[ChunkNode]:
        return self.node_map.get(node_id)

    def log_file_header(self) -> None:
        """Log the file header at debug level."""
        logger.debug("*** HEADER ***")
        logger.debug("    Header Filesignature: %s", self.file_signature)
        if self.file_type is not None:
            logger.debug("    FileType:            0x%X", self.file_type)
        logger.debug("    ChunkVersion:        0x%X", self.file_version)
        logger.debug("    ChunkTableOffset:    0x%X", self.chunk_table_offset)
        logger.debug("    NumChunks:           %d", self.num_chunks)
        logger.debug("*** END HEADER ***")

    def log_chunk_table(self) -> None:
        """Log the chunk header table at debug level."""
        if not logger.isEnabledFor(logging.DEBUG):
            return
        logger.debug("*** Chunk Header Table ***")
        logger.debug("%s", format_chunk_row("Chunk Type", "Version", "ID", "Size", "Offset"))
        for h in self.chunk_headers:
            logger.debug("%s", format_chunk_row(h.type_name, f"{h.version:X}", f"{h.id:X}",
                                                f"{h.size:X}", f"{h.offset:X}"))


def format_chunk_row(chunk_type: str, version: str, chunk_id: str, size: str, offset: str) -> str:
    return f"{chunk_type:<28}{version:<10}{chunk_id:<10}{size:<10}{offset:<10}"


def load(path: Union[str, Path], skinning_info: Optional[SkinningInfo] = None,
         validate_offsets: bool = True) -> Model:
    """Load a model file; raises on any failure, never returns a partial Model."""
    return Model.from_file(path, skinning_info, validate_offsets)
