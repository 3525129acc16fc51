from __future__ import annotations

import logging
import math
from typing import Callable, List, Optional

import numpy as np

from isoterrain.config import TerrainParams
from isoterrain.errors import TransferError
from isoterrain.gpu.device import ComputeDevice, DeviceBuffer, MapRequest, MapState
from isoterrain.gpu.shaders import LOCAL_SIZE, chunk_kernel_source
from isoterrain.world.chunk import ChunkCoord, ChunkMesh
from isoterrain.world.mesh_builder import chunk_origin, mesh_from_triangles
from isoterrain.world.tables import EDGE_TABLE, MAX_TRIANGLES_PER_CELL, TRI_TABLE

logger = logging.getLogger(__name__)

# std430 layout of one CellResult written by the kernel.
CELL_RESULT_DTYPE = np.dtype(
    [
        ("count", "<u4"),
        ("pad", "<u4", (3,)),
        ("verts", "<f4", (3 * MAX_TRIANGLES_PER_CELL, 4)),
    ]
)
assert CELL_RESULT_DTYPE.itemsize == 256


def results_size(res: int) -> int:
    return int(res) ** 3 * CELL_RESULT_DTYPE.itemsize


def decode_cell_results(data: memoryview, res: int) -> np.ndarray:
    """Per-cell kernel output -> (T,3,3) float32 triangles, cells in index order."""
    cells = np.frombuffer(data, dtype=CELL_RESULT_DTYPE, count=int(res) ** 3)
    counts = cells["count"].astype(np.int64)
    if counts.size and int(counts.max()) > MAX_TRIANGLES_PER_CELL:
        raise TransferError(f"cell reports {int(counts.max())} triangles (max {MAX_TRIANGLES_PER_CELL})")
    verts = cells["verts"][:, :, :3].reshape(-1, MAX_TRIANGLES_PER_CELL, 3, 3)
    present = np.arange(MAX_TRIANGLES_PER_CELL)[None, :] < counts[:, None]
    return verts[present]


class _FailedRequest:
    """Stands in for a transfer that could not even be submitted."""

    def __init__(self, error: BaseException) -> None:
        self.error: Optional[BaseException] = error

    def poll(self) -> MapState:
        return MapState.FAILED

    def cancel(self) -> bool:
        return True


class GpuChunkTask:
    """One chunk's read-back. The transfer buffer is released exactly once."""

    def __init__(
        self,
        coord: ChunkCoord,
        request: MapRequest,
        readback: Optional[DeviceBuffer],
        res: int,
        *,
        on_abandon: Optional[Callable[["GpuChunkTask"], None]] = None,
    ) -> None:
        self.coord = coord
        self.request = request
        self.readback = readback
        self.res = int(res)
        self.abandoned = False
        self._on_abandon = on_abandon
        self._state = MapState.PENDING
        self._released = False
        self._taken = False

    def _poll(self) -> MapState:
        if self._state is MapState.PENDING:
            self._state = self.request.poll()
        return self._state

    def resolved(self) -> bool:
        return self._poll() is not MapState.PENDING

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        if self.readback is None:
            return
        if self._state is MapState.MAPPED:
            self.readback.unmap()
        self.readback.destroy()

    def try_take_result(self) -> Optional[ChunkMesh]:
        if self._taken:
            raise RuntimeError("task result was already taken")
        state = self._poll()
        if state is MapState.PENDING:
            return None
        self._taken = True
        if state is MapState.FAILED:
            self.release()
            err = self.request.error
            raise TransferError(f"read-back for chunk {self.coord} failed: {err}") from err
        try:
            tris = decode_cell_results(self.readback.mapped_range(), self.res)  # type: ignore[union-attr]
        except TransferError:
            raise
        except Exception as exc:
            raise TransferError(f"read-back for chunk {self.coord} could not be decoded: {exc}") from exc
        finally:
            self.release()
        return mesh_from_triangles(tris)

    def abandon(self) -> None:
        if self.abandoned:
            return
        self.abandoned = True
        if self._taken:
            return
        if self._state is MapState.PENDING and self.request.cancel():
            self.release()
        elif self._on_abandon is not None:
            self._on_abandon(self)
        else:
            self.release()


class ComputeChunkGenerator:
    """Polygonises whole chunks in one compute dispatch and reads them back asynchronously."""

    def __init__(self, device: ComputeDevice, params: TerrainParams, *, owns_device: bool = False) -> None:
        if params.noise_mode != "fast":
            raise ValueError(f"noise mode {params.noise_mode!r} is not available on the GPU")
        self.device = device
        self.params = params
        self.owns_device = owns_device
        self.program = device.create_program(chunk_kernel_source())
        self.edge_table = device.write_buffer(EDGE_TABLE.astype("<i4").tobytes())
        self.tri_table = device.write_buffer(TRI_TABLE.astype("<i4").tobytes())
        self.orphans: List[GpuChunkTask] = []

    def _uniforms(self, coord: ChunkCoord) -> dict:
        p = self.params
        return {
            "u_res": int(p.chunk_res),
            "u_origin": chunk_origin(coord, p.chunk_res, p.cell_size),
            "u_cell_size": float(p.cell_size),
            "u_iso": float(p.iso_level),
            "u_seed": int(p.seed) & 0xFFFFFFFF,
            "u_frequency": float(p.frequency),
            "u_octaves": int(p.octaves),
            "u_lacunarity": float(p.lacunarity),
            "u_gain": float(p.gain),
        }

    def submit(self, coord: ChunkCoord) -> GpuChunkTask:
        res = self.params.chunk_res
        size = results_size(res)
        groups = (math.ceil(res / LOCAL_SIZE),) * 3
        output: Optional[DeviceBuffer] = None
        readback: Optional[DeviceBuffer] = None
        try:
            output = self.device.create_buffer(size)
            readback = self.device.create_buffer(size)
            self.device.dispatch(
                self.program,
                {0: self.edge_table, 1: self.tri_table, 2: output},
                self._uniforms(coord),
                groups,
            )
            self.device.copy_buffer(output, readback, size)
            request: MapRequest = self.device.map_read_async(readback)
        except Exception as exc:
            logger.warning("compute submission for chunk %s failed: %s", coord, exc)
            if readback is not None:
                readback.destroy()
                readback = None
            request = _FailedRequest(exc)
        finally:
            if output is not None:
                output.destroy()
        return GpuChunkTask(coord, request, readback, res, on_abandon=self._adopt_orphan)

    def _adopt_orphan(self, task: GpuChunkTask) -> None:
        self.orphans.append(task)

    def collect_orphans(self) -> int:
        released = 0
        waiting: List[GpuChunkTask] = []
        for task in self.orphans:
            if task.resolved():
                task.release()
                released += 1
            else:
                waiting.append(task)
        self.orphans[:] = waiting
        if released:
            logger.debug("released %d orphaned read-back buffers (%d waiting)", released, len(waiting))
        return released

    def shutdown(self) -> None:
        for task in self.orphans:
            task.release()
        self.orphans.clear()
        self.edge_table.destroy()
        self.tri_table.destroy()
        self.device.release_program(self.program)
        if self.owns_device:
            self.device.release()
