"""Shared fixtures and fakes for the isoterrain tests."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pytest

# Ensure repository root is available on the Python path for package imports.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from isoterrain.config import TerrainParams  # noqa: E402
from isoterrain.errors import GenerationError  # noqa: E402
from isoterrain.gpu.adapter import CELL_RESULT_DTYPE  # noqa: E402
from isoterrain.gpu.device import MapState  # noqa: E402
from isoterrain.world.mesh_builder import mesh_from_triangles  # noqa: E402
from isoterrain.world.noise import DensityField, NoiseConfig  # noqa: E402
from isoterrain.world.polygonizer import make_cell, polygonise  # noqa: E402
from isoterrain.world.tables import CORNER_OFFSETS  # noqa: E402


@pytest.fixture
def small_params() -> TerrainParams:
    return TerrainParams(seed=7, chunk_res=8, cell_size=1.0, view_distance=1, frequency=0.25, octaves=2)


@pytest.fixture
def field(small_params: TerrainParams) -> DensityField:
    return DensityField(small_params.seed, small_params.noise_config())


# ----------------------------------------------------------------------
# Scripted CPU-side generator for streaming manager tests


class ScriptedTask:
    def __init__(self, coord, mesh, *, ready: bool = True, error: Optional[Exception] = None) -> None:
        self.coord = coord
        self.mesh = mesh
        self.ready = ready
        self.error = error
        self.abandoned = False
        self.polls = 0

    def try_take_result(self):
        self.polls += 1
        if not self.ready:
            return None
        if self.error is not None:
            raise self.error
        return self.mesh

    def abandon(self) -> None:
        self.abandoned = True


def one_triangle_mesh():
    tri = np.array([[[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]])
    return mesh_from_triangles(tri)


class ScriptedGenerator:
    """Hands out ScriptedTasks; ``hold`` keeps new tasks pending, ``fail`` makes them raise."""

    def __init__(self) -> None:
        self.tasks: Dict[tuple, List[ScriptedTask]] = {}
        self.hold = False
        self.fail: set = set()
        self.empty: set = set()
        self.shut_down = False

    def submit(self, coord):
        if coord in self.empty:
            mesh = mesh_from_triangles(np.zeros((0, 3, 3)))
        else:
            mesh = one_triangle_mesh()
        error = GenerationError(f"boom at {coord}") if coord in self.fail else None
        task = ScriptedTask(coord, mesh, ready=not self.hold, error=error)
        self.tasks.setdefault(coord, []).append(task)
        return task

    def submitted(self, coord) -> int:
        return len(self.tasks.get(coord, []))

    def release_all(self) -> None:
        for tasks in self.tasks.values():
            for t in tasks:
                t.ready = True

    def collect_orphans(self) -> int:
        return 0

    def shutdown(self) -> None:
        self.shut_down = True


@pytest.fixture
def scripted_generator() -> ScriptedGenerator:
    return ScriptedGenerator()


# ----------------------------------------------------------------------
# Fake compute device: runs the scalar polygonizer where the kernel would run.


class FakeBuffer:
    def __init__(self, size: int, data: Optional[bytes] = None) -> None:
        self.size = int(size)
        self.data = bytearray(data) if data is not None else bytearray(self.size)
        self.mapped = False
        self.unmap_calls = 0
        self.destroy_calls = 0
        self.reads = 0

    def mapped_range(self) -> memoryview:
        if not self.mapped:
            raise AssertionError("buffer read before the map resolved")
        if self.destroy_calls:
            raise AssertionError("buffer read after destroy")
        self.reads += 1
        return memoryview(bytes(self.data))

    def unmap(self) -> None:
        self.unmap_calls += 1
        self.mapped = False

    def destroy(self) -> None:
        self.destroy_calls += 1


class FakeMapRequest:
    def __init__(self, buffer: FakeBuffer, *, pending_polls: int, fail: bool, cancellable: bool) -> None:
        self.buffer = buffer
        self.pending_polls = pending_polls
        self.fail = fail
        self.cancellable = cancellable
        self.cancelled = False
        self.polls = 0
        self.state = MapState.PENDING
        self.error: Optional[BaseException] = None

    def poll(self) -> MapState:
        if self.state is MapState.PENDING:
            self.polls += 1
            if self.polls > self.pending_polls:
                if self.fail:
                    self.error = RuntimeError("device lost")
                    self.state = MapState.FAILED
                else:
                    self.buffer.mapped = True
                    self.state = MapState.MAPPED
        return self.state

    def cancel(self) -> bool:
        # Non-cancellable requests model a map that must resolve before release.
        if not self.cancellable:
            return False
        self.cancelled = True
        self.state = MapState.FAILED
        return True


class FakeDevice:
    def __init__(
        self,
        *,
        pending_polls: int = 1,
        fail_map: bool = False,
        fail_dispatch: bool = False,
        cancellable: bool = False,
    ) -> None:
        self.pending_polls = pending_polls
        self.cancellable = cancellable
        self.released_programs: List[str] = []
        self.release_calls = 0
        self.fail_map = fail_map
        self.fail_dispatch = fail_dispatch
        self.buffers: List[FakeBuffer] = []
        self.requests: List[FakeMapRequest] = []
        self.dispatches = 0
        self.programs: List[str] = []

    def create_buffer(self, size: int) -> FakeBuffer:
        buf = FakeBuffer(size)
        self.buffers.append(buf)
        return buf

    def write_buffer(self, data: bytes) -> FakeBuffer:
        buf = FakeBuffer(len(data), data)
        self.buffers.append(buf)
        return buf

    def create_program(self, source: str) -> str:
        self.programs.append(source)
        return source

    def dispatch(self, program, storage, uniforms, groups) -> None:
        if self.fail_dispatch:
            raise RuntimeError("device lost during dispatch")
        self.dispatches += 1
        res = uniforms["u_res"]
        cs = uniforms["u_cell_size"]
        iso = uniforms["u_iso"]
        ox, oy, oz = uniforms["u_origin"]
        field = DensityField(
            uniforms["u_seed"],
            NoiseConfig(
                octaves=uniforms["u_octaves"],
                lacunarity=uniforms["u_lacunarity"],
                gain=uniforms["u_gain"],
                frequency=uniforms["u_frequency"],
            ),
        )
        steps = np.arange(res + 1, dtype=np.float64) * cs
        values = field.lattice(ox + steps, oy + steps, oz + steps)

        cells = np.zeros(res ** 3, dtype=CELL_RESULT_DTYPE)
        offsets = CORNER_OFFSETS.tolist()
        for i in range(res):
            for j in range(res):
                for k in range(res):
                    corner_vals = [float(values[i + dx, j + dy, k + dz]) for dx, dy, dz in offsets]
                    tris = polygonise(make_cell((i * cs, j * cs, k * cs), cs, corner_vals), iso)
                    index = (i * res + j) * res + k
                    cells["count"][index] = len(tris)
                    for n, tri in enumerate(tris):
                        for v, vert in enumerate(tri.vertices()):
                            cells["verts"][index, n * 3 + v, :3] = vert
                            cells["verts"][index, n * 3 + v, 3] = 1.0
        out = storage[2]
        out.data[:] = cells.tobytes()

    def copy_buffer(self, src: FakeBuffer, dst: FakeBuffer, size: int) -> None:
        dst.data[:size] = src.data[:size]

    def map_read_async(self, buffer: FakeBuffer) -> FakeMapRequest:
        req = FakeMapRequest(buffer, pending_polls=self.pending_polls, fail=self.fail_map, cancellable=self.cancellable)
        self.requests.append(req)
        return req

    def release_program(self, program: str) -> None:
        self.released_programs.append(program)

    def release(self) -> None:
        self.release_calls += 1


@pytest.fixture
def fake_device() -> FakeDevice:
    return FakeDevice()
