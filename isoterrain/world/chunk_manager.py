from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Set

from isoterrain.config import TerrainParams
from isoterrain.errors import GenerationError
from isoterrain.world.chunk import ChunkCoord, ChunkRecord, ChunkState
from isoterrain.world.generators import ChunkGenerator
from isoterrain.world.mesh_builder import chunk_origin
from isoterrain.world.scene import Material, RenderRegistry, Transform
from isoterrain.world.visibility import chunk_distance2, visible_chunks, world_to_chunk

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    center: ChunkCoord
    visible: int = 0
    evicted: List[ChunkCoord] = field(default_factory=list)
    completed: List[ChunkCoord] = field(default_factory=list)
    failed: List[ChunkCoord] = field(default_factory=list)
    spawned: List[ChunkCoord] = field(default_factory=list)
    orphans_released: int = 0


class StreamingManager:
    """Keeps the set of materialized chunks in step with the viewer.

    Owns the registry (coord -> ChunkRecord). Each :meth:`tick` evicts chunks
    that left the view, integrates finished tasks without blocking and then
    spawns tasks for newly visible coordinates, nearest first.
    """

    def __init__(
        self,
        params: TerrainParams,
        generator: ChunkGenerator,
        render: RenderRegistry,
        *,
        material: Optional[Material] = None,
        max_spawns_per_tick: Optional[int] = None,
        max_integrations_per_tick: Optional[int] = None,
    ) -> None:
        self.params = params
        self.generator = generator
        self.render = render
        self.material = material or Material()
        self.max_spawns_per_tick = max_spawns_per_tick
        self.max_integrations_per_tick = max_integrations_per_tick
        self.registry: Dict[ChunkCoord, ChunkRecord] = {}

    # ------------------------------------------------------------------
    # introspection
    def __contains__(self, coord: object) -> bool:
        return coord in self.registry

    def __len__(self) -> int:
        return len(self.registry)

    def __iter__(self) -> Iterator[ChunkCoord]:
        return iter(self.registry)

    @property
    def loaded(self) -> Set[ChunkCoord]:
        return {c for c, r in self.registry.items() if r.state is ChunkState.READY}

    @property
    def pending(self) -> Set[ChunkCoord]:
        return {c for c, r in self.registry.items() if r.state is ChunkState.GENERATING}

    def state_of(self, coord: ChunkCoord) -> Optional[ChunkState]:
        rec = self.registry.get(coord)
        return rec.state if rec is not None else None

    # ------------------------------------------------------------------
    def visible_set(self, viewer_position: Sequence[float]) -> tuple[ChunkCoord, Set[ChunkCoord]]:
        center = world_to_chunk(viewer_position, self.params.chunk_world_size)
        visible = visible_chunks(center, self.params.view_distance, vertical_limit=self.params.vertical_limit)
        return center, visible

    def tick(self, viewer_position: Sequence[float]) -> TickReport:
        orphans = self.generator.collect_orphans()
        center, visible = self.visible_set(viewer_position)
        report = TickReport(center=center, visible=len(visible), orphans_released=orphans)

        # Evict before spawning so a coordinate never holds a stale and a fresh task.
        for coord in [c for c in self.registry if c not in visible]:
            self._evict(coord)
            report.evicted.append(coord)

        self._integrate(report)

        failed = set(report.failed)
        missing = [c for c in visible if c not in self.registry and c not in failed]
        missing.sort(key=lambda c: (chunk_distance2(c, center), c))
        if self.max_spawns_per_tick is not None:
            missing = missing[: max(0, int(self.max_spawns_per_tick))]
        for coord in missing:
            self.registry[coord] = ChunkRecord(coord=coord, task=self.generator.submit(coord))
            report.spawned.append(coord)
            logger.debug("spawned chunk %s", coord)
        return report

    def _evict(self, coord: ChunkCoord) -> None:
        rec = self.registry.pop(coord)
        if rec.task is not None:
            rec.task.abandon()
            rec.task = None
        if rec.render_id is not None:
            self.render.remove(rec.render_id)
            rec.render_id = None
        logger.debug("evicted chunk %s (%s)", coord, rec.state.value)

    def _integrate(self, report: TickReport) -> None:
        budget = self.max_integrations_per_tick
        for coord, rec in list(self.registry.items()):
            if rec.state is not ChunkState.GENERATING:
                continue
            if budget is not None and len(report.completed) >= budget:
                break
            try:
                mesh = rec.task.try_take_result()  # type: ignore[union-attr]
            except GenerationError as exc:
                logger.warning("chunk %s failed to generate: %s", coord, exc)
                del self.registry[coord]
                report.failed.append(coord)
                continue
            if mesh is None:
                continue
            rec.task = None
            rec.state = ChunkState.READY
            rec.triangle_count = mesh.triangle_count
            if not mesh.is_empty:
                origin = chunk_origin(coord, self.params.chunk_res, self.params.cell_size)
                rec.render_id = self.render.create(mesh, self.material, Transform(origin))
            report.completed.append(coord)
            logger.debug("chunk %s ready (%d triangles)", coord, mesh.triangle_count)

    def shutdown(self) -> None:
        for coord in list(self.registry):
            self._evict(coord)
        self.generator.shutdown()
