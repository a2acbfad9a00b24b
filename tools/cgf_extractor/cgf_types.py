"""Type definitions for CryEngine cgf/cga/chr/skin model files."""
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


MODERN_SIGNATURE = "CrCh"
LEGACY_SIGNATURE = "CryTek"

# The legacy layout stores the chunk count again in front of the table
LEGACY_TABLE_PADDING = 4

# Parent ID of a node without parent (0xFFFFFFFF read as int32)
NO_PARENT = -1


class FileVersion(IntEnum):
    """Versions of the file header and chunk header table."""
    CRYTEK_3_4 = 0x744
    CRYTEK_3_5 = 0x745
    CRYTEK_3_6 = 0x746


# Legacy payloads repeat the chunk header at the start of every chunk
LEGACY_FILE_VERSIONS = frozenset({FileVersion.CRYTEK_3_4, FileVersion.CRYTEK_3_5})


class FileType(IntEnum):
    """File kind stored in the legacy header."""
    GEOMETRY = 0xFFFF0000
    ANIMATION = 0xFFFF0001


class ChunkType(IntEnum):
    """Known chunk type tags."""
    ANY = 0x0
    MESH = 0xCCCC0000
    HELPER = 0xCCCC0001
    VERT_ANIM = 0xCCCC0002
    BONE_ANIM = 0xCCCC0003
    GEOM_NAME_LIST = 0xCCCC0004
    BONE_NAME_LIST = 0xCCCC0005
    MTL_LIST = 0xCCCC0006
    MRM = 0xCCCC0007
    SCENE_PROPS = 0xCCCC0008
    LIGHT = 0xCCCC0009
    PATCH_MESH = 0xCCCC000A
    NODE = 0xCCCC000B
    MTL = 0xCCCC000C
    CONTROLLER = 0xCCCC000D
    TIMING = 0xCCCC000E
    BONE_MESH = 0xCCCC000F
    BONE_LIGHT_BINDING = 0xCCCC0010
    MESH_MORPH_TARGET = 0xCCCC0011
    BONE_INITIAL_POS = 0xCCCC0012
    SOURCE_INFO = 0xCCCC0013
    MTL_NAME = 0xCCCC0014
    EXPORT_FLAGS = 0xCCCC0015
    DATA_STREAM = 0xCCCC0016
    MESH_SUBSETS = 0xCCCC0017
    MESH_PHYSICS_DATA = 0xCCCC0018
    COMPILED_BONES = 0xACDC0000
    COMPILED_PHYSICAL_BONES = 0xACDC0001
    COMPILED_MORPH_TARGETS = 0xACDC0002
    COMPILED_PHYSICAL_PROXIES = 0xACDC0003
    COMPILED_INT_FACES = 0xACDC0004
    COMPILED_INT_SKIN_VERTICES = 0xACDC0005
    COMPILED_EXT2INT_MAP = 0xACDC0006
    BREAKABLE_PHYSICS = 0xACDC0007
    FACE_MAP = 0xAAFC0000
    SPEED_INFO = 0xAAFC0002
    FOOT_PLANT_INFO = 0xAAFC0003
    BONES_BOXES = 0xAAFC0004
    FOLIAGE_INFO = 0xAAFC0005
    GLOBAL_ANIMATION_HEADER_CAF = 0xAAFC0007
    GLOBAL_ANIMATION_HEADER_AIM = 0xAAFC0008
    BSP_TREE_DATA = 0xAAFC0009
    # Star Citizen variants
    COMPILED_BONES_SC = 0xCCCC1000
    COMPILED_PHYSICAL_BONES_SC = 0xCCCC1001
    COMPILED_MORPH_TARGETS_SC = 0xCCCC1002
    COMPILED_PHYSICAL_PROXIES_SC = 0xCCCC1003
    COMPILED_INT_FACES_SC = 0xCCCC1004
    COMPILED_INT_SKIN_VERTICES_SC = 0xCCCC1005
    COMPILED_EXT2INT_MAP_SC = 0xCCCC1006


BONES_CHUNK_TYPES = frozenset({ChunkType.COMPILED_BONES, ChunkType.COMPILED_BONES_SC})


def chunk_type_name(chunk_type: int) -> str:
    """Readable name for a chunk type tag, hex for unknown tags."""
    try:
        return ChunkType(chunk_type).name
    except ValueError:
        return f"0x{chunk_type:X}"


@dataclass
class CgfHeader:
    """File header."""

    signature: str
    version: int
    chunk_count: int
    chunk_table_offset: int
    raw_table_offset: int
    file_type: Optional[int] = None

    @property
    def is_legacy(self) -> bool:
        return self.signature == LEGACY_SIGNATURE


@dataclass
class ChunkHeader:
    """One record of the chunk header table."""

    chunk_type: int
    version: int
    id: int
    size: int
    offset: int

    @property
    def end(self) -> int:
        return self.offset + self.size

    @property
    def type_name(self) -> str:
        return chunk_type_name(self.chunk_type)
