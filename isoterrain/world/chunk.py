from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple

import numpy as np

if TYPE_CHECKING:
    from isoterrain.world.generators import ChunkTask

ChunkCoord = Tuple[int, int, int]


@dataclass
class ChunkMesh:
    positions: np.ndarray  # (N,3) float32, chunk-local
    normals: np.ndarray  # (N,3) float32, flat per triangle
    uvs: np.ndarray  # (N,2) float32, placeholder zeros
    indices: np.ndarray  # (N,) uint32, 0..N-1

    @property
    def vertex_count(self) -> int:
        return int(self.positions.shape[0])

    @property
    def triangle_count(self) -> int:
        return self.vertex_count // 3

    @property
    def is_empty(self) -> bool:
        return self.vertex_count == 0

    def interleaved(self) -> np.ndarray:
        """Vertex buffer layout: (N,6) float32 position + normal."""
        return np.concatenate([self.positions, self.normals], axis=1).astype(np.float32)


class ChunkState(enum.Enum):
    GENERATING = "generating"
    READY = "ready"


@dataclass
class ChunkRecord:
    coord: ChunkCoord
    state: ChunkState = ChunkState.GENERATING
    task: Optional["ChunkTask"] = None
    render_id: Optional[int] = None
    triangle_count: int = 0
