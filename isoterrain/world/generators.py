from __future__ import annotations

import logging
from typing import Optional, Protocol

from isoterrain.config import DEFAULT_WORKERS, TerrainParams
from isoterrain.errors import GenerationError
from isoterrain.world.chunk import ChunkCoord, ChunkMesh
from isoterrain.world.mesh_builder import build_chunk_mesh
from isoterrain.world.noise import DensityField
from isoterrain.world.tasks import TaskHandle, WorkerPool

logger = logging.getLogger(__name__)


class ChunkTask(Protocol):
    def try_take_result(self) -> Optional[ChunkMesh]:
        """Finished mesh, None while running; raises GenerationError on failure."""
        ...

    def abandon(self) -> None: ...


class ChunkGenerator(Protocol):
    def submit(self, coord: ChunkCoord) -> ChunkTask: ...

    def collect_orphans(self) -> int:
        """Release resources of abandoned tasks that have since resolved."""
        ...

    def shutdown(self) -> None: ...


def make_field(params: TerrainParams) -> DensityField:
    return DensityField(params.seed, params.noise_config(), mode=params.noise_mode)


class CpuChunkGenerator:
    """Runs the chunk mesh builder on a worker pool."""

    def __init__(
        self,
        params: TerrainParams,
        field: Optional[DensityField] = None,
        *,
        pool: Optional[WorkerPool] = None,
        workers: int = DEFAULT_WORKERS,
    ) -> None:
        self.params = params
        self.field = field if field is not None else make_field(params)
        self._owns_pool = pool is None
        self.pool = pool if pool is not None else WorkerPool(workers)

    def _build(self, coord: ChunkCoord) -> ChunkMesh:
        p = self.params
        try:
            return build_chunk_mesh(
                coord,
                self.field,
                res=p.chunk_res,
                cell_size=p.cell_size,
                iso_level=p.iso_level,
            )
        except Exception as exc:
            raise GenerationError(f"chunk {coord} failed to build: {exc}") from exc

    def submit(self, coord: ChunkCoord) -> TaskHandle[ChunkMesh]:
        return self.pool.spawn(lambda: self._build(coord))

    def collect_orphans(self) -> int:
        # Abandoned CPU jobs hold no external resources.
        return 0

    def shutdown(self) -> None:
        if self._owns_pool:
            self.pool.shutdown()
