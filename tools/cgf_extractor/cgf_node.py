"""Node chunks: the scene hierarchy of a model.

Nodes are linked by stored IDs only. ``parent_id`` names the parent node chunk
(``NO_PARENT`` for none) and ``object_id`` the chunk holding the node's
object (mesh, helper, ...). Parent references are resolved through the
model's node map; children are never stored and are found by scanning.
"""
import logging
from typing import BinaryIO, List, Optional, Tuple

from cgf_chunks import Chunk, register_chunk
from cgf_io import read_floats, read_fstring, read_i32, read_pstring, read_struct, skip
from cgf_types import ChunkType, NO_PARENT

logger = logging.getLogger(__name__)


@register_chunk(ChunkType.NODE, 0x823, 0x824)
class ChunkNode(Chunk):
    """One node of the model hierarchy."""

    NAME_SIZE = 64
    DEFAULT_NAME = "unknown"

    def __init__(self):
        super().__init__()
        self.name = self.DEFAULT_NAME
        self.object_id = 0
        self.parent_id = NO_PARENT
        self.stored_child_count = 0
        self.material_id = 0
        self.transform: Tuple[float, ...] = (
            1.0, 0.0, 0.0, 0.0,
            0.0, 1.0, 0.0, 0.0,
            0.0, 0.0, 1.0, 0.0,
            0.0, 0.0, 0.0, 1.0,
        )
        self.position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
        self.rotation: Tuple[float, float, float, float] = (1.0, 0.0, 0.0, 0.0)  # w, x, y, z
        self.scale: Tuple[float, float, float] = (1.0, 1.0, 1.0)
        self.position_controller_id = NO_PARENT
        self.rotation_controller_id = NO_PARENT
        self.scale_controller_id = NO_PARENT
        self.properties = ""
        self._parent_node: Optional["ChunkNode"] = None

    def __repr__(self) -> str:
        return f"<ChunkNode id={self.id} name={self.name!r} parent={self.parent_id}>"

    def _read_payload(self, file: BinaryIO) -> None:
        self.name = read_fstring(file, self.NAME_SIZE) or self.DEFAULT_NAME
        self.object_id = read_i32(file)
        self.parent_id = read_i32(file)
        self.stored_child_count = read_i32(file)
        self.material_id = read_i32(file)
        skip(file, 4)
        self.transform = read_floats(file, 16)
        self.position = read_floats(file, 3)
        self.rotation = read_floats(file, 4)
        self.scale = read_floats(file, 3)
        (
            self.position_controller_id,
            self.rotation_controller_id,
            self.scale_controller_id,
        ) = read_struct(file, "<3i")
        self.properties = read_pstring(file)

    @property
    def is_root(self) -> bool:
        return self.parent_id == NO_PARENT

    @property
    def parent_node(self) -> Optional["ChunkNode"]:
        """Parent node, resolved through the model's node map."""
        if self.parent_id == NO_PARENT:
            return None
        if self._model is not None:
            # Building the map resolves every node's parent
            self._model.node_map
        return self._parent_node

    @parent_node.setter
    def parent_node(self, node: Optional["ChunkNode"]) -> None:
        self.parent_id = NO_PARENT if node is None else node.id
        self._parent_node = node

    def resolve_parent(self, node_map) -> None:
        """Link ``parent_node`` from the stored parent ID.

        An ID missing from ``node_map`` falls back to the model's root node.
        """
        if self.parent_id == NO_PARENT:
            self._parent_node = None
            return

        parent = node_map.get(self.parent_id)
        if parent is None:
            root = self._model.root_node if self._model is not None else None
            parent = root if root is not self else None
            logger.warning("Node %d (%s) has unknown parent %d, using %s",
                           self.id, self.name, self.parent_id,
                           "root node" if parent is not None else "none")
        self._parent_node = parent

    @property
    def child_nodes(self) -> List["ChunkNode"]:
        """Direct children, found by scanning the model's nodes."""
        if self._model is None:
            return []
        return [n for n in self._model.node_map.values() if n.parent_node is self]

    @property
    def object_chunk(self) -> Optional[Chunk]:
        """Chunk referenced by ``object_id``, if present."""
        if self._model is None:
            return None
        return self._model.chunk_by_id(self.object_id)

    def get_hierarchy_depth(self) -> int:
        """Get depth of node in hierarchy (0 for root)."""
        depth = 0
        seen = {self.id}
        current = self.parent_node
        while current is not None and current.id not in seen:
            seen.add(current.id)
            depth += 1
            current = current.parent_node
        return depth
