from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from isoterrain.world.tables import (
    CORNER_OFFSETS,
    EDGE_CORNERS,
    EDGE_TABLE,
    SENTINEL,
    TRI_TABLE,
)

Vec3 = Tuple[float, float, float]

# Value deltas smaller than this are treated as a flat edge.
FLAT_EPSILON = 1e-12


@dataclass(frozen=True)
class Sample:
    position: Vec3
    value: float


@dataclass(frozen=True)
class Triangle:
    a: Vec3
    b: Vec3
    c: Vec3

    def vertices(self) -> tuple[Vec3, Vec3, Vec3]:
        return (self.a, self.b, self.c)


def make_cell(origin: Sequence[float], size: float, values: Sequence[float]) -> tuple[Sample, ...]:
    """Build a cell in canonical corner order from its min corner and 8 values."""
    if len(values) != 8:
        raise ValueError(f"a cell needs 8 corner values, got {len(values)}")
    ox, oy, oz = (float(c) for c in origin)
    cell = []
    for (dx, dy, dz), value in zip(CORNER_OFFSETS.tolist(), values):
        pos = (ox + dx * size, oy + dy * size, oz + dz * size)
        cell.append(Sample(pos, float(value)))
    return tuple(cell)


def cube_index(values: Sequence[float], iso_level: float) -> int:
    """8-bit corner-sign configuration: bit i is set when corner i is below iso."""
    index = 0
    for i, value in enumerate(values):
        if value < iso_level:
            index |= 1 << i
    return index


def _edge_t(va: float, vb: float, iso_level: float) -> float:
    delta = vb - va
    if abs(delta) < FLAT_EPSILON:
        return 0.5
    return min(max((iso_level - va) / delta, 0.0), 1.0)


def interpolate_edge(a: Sample, b: Sample, iso_level: float) -> Vec3:
    """Point where the surface crosses the edge a-b, always on the segment."""
    t = _edge_t(a.value, b.value, iso_level)
    pa, pb = a.position, b.position
    return (
        pa[0] + t * (pb[0] - pa[0]),
        pa[1] + t * (pb[1] - pa[1]),
        pa[2] + t * (pb[2] - pa[2]),
    )


def polygonise(cell: Sequence[Sample], iso_level: float) -> List[Triangle]:
    """Triangulate one cell. Returns 0 to 5 triangles; ``cell`` is not modified."""
    if len(cell) != 8:
        raise ValueError(f"a cell has 8 samples, got {len(cell)}")

    config = cube_index([s.value for s in cell], iso_level)
    assert 0 <= config <= 0xFF, f"configuration index {config} out of range"

    mask = int(EDGE_TABLE[config])
    if mask == 0:
        return []

    points: dict[int, Vec3] = {}
    for edge in range(12):
        if mask & (1 << edge):
            ca, cb = (int(c) for c in EDGE_CORNERS[edge])
            points[edge] = interpolate_edge(cell[ca], cell[cb], iso_level)

    triangles: List[Triangle] = []
    row = TRI_TABLE[config].tolist()
    for i in range(0, 15, 3):
        if row[i] == SENTINEL:
            break
        triangles.append(Triangle(points[row[i]], points[row[i + 1]], points[row[i + 2]]))
    return triangles


def polygonise_grid(values: np.ndarray, cell_size: float, iso_level: float) -> np.ndarray:
    """Triangulate every cell of a corner lattice at once.

    ``values`` has shape (nx+1, ny+1, nz+1). Returns float64 triangles of shape
    (T, 3, 3) in lattice-local coordinates, cells in C order and triangles in
    table order, i.e. exactly what :func:`polygonise` yields cell by cell.
    """
    v = np.asarray(values, dtype=np.float64)
    if v.ndim != 3 or min(v.shape) < 2:
        raise ValueError(f"expected a 3D corner lattice, got shape {v.shape}")
    nx, ny, nz = (s - 1 for s in v.shape)

    config = np.zeros((nx, ny, nz), dtype=np.int32)
    corners = []
    for k, (dx, dy, dz) in enumerate(CORNER_OFFSETS.tolist()):
        cv = v[dx:dx + nx, dy:dy + ny, dz:dz + nz]
        corners.append(cv)
        config |= (cv < iso_level).astype(np.int32) << k

    active = np.nonzero(EDGE_TABLE[config])
    if active[0].size == 0:
        return np.zeros((0, 3, 3), dtype=np.float64)

    cfg = config[active]
    n_active = cfg.shape[0]
    cell_idx = np.stack(active, axis=1).astype(np.float64)  # (A,3)
    corner_vals = np.stack([c[active] for c in corners], axis=1)  # (A,8)
    corner_pos = (cell_idx[:, None, :] + CORNER_OFFSETS[None, :, :]) * float(cell_size)  # (A,8,3)

    ea = EDGE_CORNERS[:, 0]
    eb = EDGE_CORNERS[:, 1]
    va = corner_vals[:, ea]
    vb = corner_vals[:, eb]
    delta = vb - va
    flat = np.abs(delta) < FLAT_EPSILON
    t = np.clip((iso_level - va) / np.where(flat, 1.0, delta), 0.0, 1.0)
    t = np.where(flat, 0.5, t)

    pa = corner_pos[:, ea]
    pb = corner_pos[:, eb]
    points = pa + t[..., None] * (pb - pa)  # (A,12,3)

    rows = TRI_TABLE[cfg][:, :15].reshape(n_active, 5, 3)
    present = rows[:, :, 0] != SENTINEL
    safe_rows = np.where(rows == SENTINEL, 0, rows)
    tris = points[np.arange(n_active)[:, None, None], safe_rows]  # (A,5,3,3)
    return tris[present]
