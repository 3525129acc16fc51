from __future__ import annotations

from typing import Optional, Sequence

from isoterrain.config import BACKENDS, DEFAULT_WORKERS, TerrainParams
from isoterrain.world.chunk_manager import StreamingManager, TickReport
from isoterrain.world.generators import ChunkGenerator, CpuChunkGenerator, make_field
from isoterrain.world.scene import Material, RenderRegistry, SceneRegistry


def make_generator(
    params: TerrainParams,
    *,
    backend: str = "cpu",
    workers: int = DEFAULT_WORKERS,
) -> ChunkGenerator:
    if backend not in BACKENDS:
        raise ValueError(f"unknown backend {backend!r} (expected one of {BACKENDS})")
    if backend == "gpu":
        from isoterrain.gpu.adapter import ComputeChunkGenerator
        from isoterrain.gpu.device import ModernGLDevice

        return ComputeChunkGenerator(ModernGLDevice(), params, owns_device=True)
    return CpuChunkGenerator(params, make_field(params), workers=workers)


class World:
    """Density field + generator + streaming manager + scene, wired from one params snapshot."""

    def __init__(
        self,
        params: TerrainParams,
        *,
        generator: Optional[ChunkGenerator] = None,
        render: Optional[RenderRegistry] = None,
        backend: str = "cpu",
        workers: int = DEFAULT_WORKERS,
        material: Optional[Material] = None,
        max_spawns_per_tick: Optional[int] = None,
        max_integrations_per_tick: Optional[int] = None,
    ) -> None:
        self.params = params
        self.scene = render if render is not None else SceneRegistry()
        self.generator = generator or make_generator(params, backend=backend, workers=workers)
        self.manager = StreamingManager(
            params,
            self.generator,
            self.scene,
            material=material,
            max_spawns_per_tick=max_spawns_per_tick,
            max_integrations_per_tick=max_integrations_per_tick,
        )

    def update(self, viewer_position: Sequence[float]) -> TickReport:
        return self.manager.tick(viewer_position)

    def warmup(self, viewer_position: Sequence[float], *, timeout_s: float = 2.0) -> int:
        """Tick until every visible chunk is ready or the timeout passes.

        Blocks briefly so the first frame isn't empty. Returns the number of
        chunks still pending.
        """
        import time as _time

        deadline = _time.perf_counter() + float(timeout_s)
        self.update(viewer_position)
        while self.manager.pending and _time.perf_counter() < deadline:
            _time.sleep(0.01)
            self.update(viewer_position)
        return len(self.manager.pending)

    def shutdown(self) -> None:
        self.manager.shutdown()
