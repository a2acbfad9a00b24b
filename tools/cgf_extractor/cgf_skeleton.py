"""Skeleton/bone chunks of CryEngine skinned models.

CompiledBones chunk layout (version 0x800):
- 32 bytes of padding after the chunk header
- Bone records of 0x248 (584) bytes each:
  - +0x000: controller ID (uint32, hash of the bone name)
  - +0x004: two physics geometry blocks, 104 bytes each (alive, dead)
  - +0x0D4: mass (float)
  - +0x0D8: world-to-bone matrix (12 floats, 3x4 row-major)
  - +0x108: bone-to-world matrix (12 floats, 3x4 row-major)
  - +0x138: bone name (256 bytes, NUL padded)
  - +0x238: limb ID (uint32)
  - +0x23C: parent offset (int32, relative bone index, 0 = root bone)
  - +0x240: child count (uint32)
  - +0x244: first child offset (int32, relative bone index)
"""
import logging
import struct
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List, Optional

from cgf_chunks import Chunk, register_chunk
from cgf_io import decode_fstring, read_exact, skip
from cgf_types import ChunkType

logger = logging.getLogger(__name__)


@dataclass
class CompiledBone:
    """Represents a bone in the skeleton hierarchy."""
    index: int
    controller_id: int
    name: str
    parent_offset: int  # 0 for root bones
    child_count: int
    child_offset: int
    mass: float = 0.0
    limb_id: int = 0
    world_to_bone: List[float] = field(default_factory=list)  # 3x4 row-major
    bone_to_world: List[float] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.parent_offset == 0

    @property
    def parent_index(self) -> int:
        return -1 if self.is_root else self.index + self.parent_offset

    @property
    def position(self):
        """Translation column of the bone-to-world matrix."""
        if len(self.bone_to_world) != 12:
            return (0.0, 0.0, 0.0)
        m = self.bone_to_world
        return (m[3], m[7], m[11])


@register_chunk(ChunkType.COMPILED_BONES, 0x800)
@register_chunk(ChunkType.COMPILED_BONES_SC, 0x800)
class ChunkCompiledBones(Chunk):
    """All bones of a skinned model. The first bone is the root bone."""

    PADDING_SIZE = 32
    BONE_STRUCT_SIZE = 0x248
    PHYSICS_GEOMETRY_SIZE = 104
    NAME_SIZE = 256

    # Bone struct field offsets
    BONE_MASS_OFFSET = 0x0D4
    BONE_WORLD_TO_BONE_OFFSET = 0x0D8
    BONE_TO_WORLD_OFFSET = 0x108
    BONE_NAME_OFFSET = 0x138
    BONE_LINKS_OFFSET = 0x238

    def __init__(self):
        super().__init__()
        self.bones: List[CompiledBone] = []
        self.root_bone: Optional[CompiledBone] = None

    def _read_payload(self, file: BinaryIO) -> None:
        skip(file, self.PADDING_SIZE)
        bone_count = max(self.data_size - self.PADDING_SIZE, 0) // self.BONE_STRUCT_SIZE

        bones = []
        for i in range(bone_count):
            bone_data = read_exact(file, self.BONE_STRUCT_SIZE)

            controller_id = struct.unpack_from("<I", bone_data, 0)[0]
            mass = struct.unpack_from("<f", bone_data, self.BONE_MASS_OFFSET)[0]
            world_to_bone = list(struct.unpack_from("<12f", bone_data, self.BONE_WORLD_TO_BONE_OFFSET))
            bone_to_world = list(struct.unpack_from("<12f", bone_data, self.BONE_TO_WORLD_OFFSET))
            name = decode_fstring(bone_data[self.BONE_NAME_OFFSET:self.BONE_NAME_OFFSET + self.NAME_SIZE])
            limb_id, parent_offset, child_count, child_offset = struct.unpack_from(
                "<IiIi", bone_data, self.BONE_LINKS_OFFSET
            )

            bones.append(CompiledBone(
                index=i,
                controller_id=controller_id,
                name=name,
                parent_offset=parent_offset,
                child_count=child_count,
                child_offset=child_offset,
                mass=mass,
                limb_id=limb_id,
                world_to_bone=world_to_bone,
                bone_to_world=bone_to_world,
            ))

        self.bones = bones
        self.root_bone = bones[0] if bones else None
        logger.debug("Read %d bones from chunk %d", len(bones), self.id)

    @property
    def bone_count(self) -> int:
        return len(self.bones)

    @property
    def root_bones(self) -> List[CompiledBone]:
        return [b for b in self.bones if b.is_root]

    def get_bone(self, index: int) -> Optional[CompiledBone]:
        """Get bone by index."""
        if 0 <= index < len(self.bones):
            return self.bones[index]
        return None

    def get_bone_by_name(self, name: str) -> Optional[CompiledBone]:
        return next((b for b in self.bones if b.name == name), None)

    def get_parent(self, bone: CompiledBone) -> Optional[CompiledBone]:
        if bone.is_root:
            return None
        return self.get_bone(bone.parent_index)

    def get_children(self, bone: CompiledBone) -> List[CompiledBone]:
        """Get direct children of a bone."""
        return [b for b in self.bones if not b.is_root and b.parent_index == bone.index]

    def get_hierarchy_depth(self, bone: CompiledBone) -> int:
        """Get depth of bone in hierarchy (0 for root)."""
        depth = 0
        current = bone
        while not current.is_root:
            depth += 1
            current = self.get_parent(current)
            if current is None or depth > len(self.bones):
                break
        return depth

    def to_dict_list(self) -> List[Dict]:
        """Convert to list of dictionaries for JSON output."""
        return [
            {
                "index": bone.index,
                "name": bone.name,
                "controller_id": bone.controller_id,
                "parent_index": bone.parent_index,
                "position": list(bone.position),
            }
            for bone in self.bones
        ]
