from __future__ import annotations

import numpy as np

from isoterrain.world.chunk import ChunkCoord, ChunkMesh
from isoterrain.world.noise import DensityField
from isoterrain.world.polygonizer import polygonise_grid


def chunk_world_size(res: int, cell_size: float) -> float:
    return float(res) * float(cell_size)


def chunk_origin(coord: ChunkCoord, res: int, cell_size: float) -> tuple[float, float, float]:
    """Min corner of a chunk in world space; chunk (0,0,0) is centered on the origin."""
    size = chunk_world_size(res, cell_size)
    half = size / 2.0
    cx, cy, cz = coord
    return (cx * size - half, cy * size - half, cz * size - half)


def face_normals(tris: np.ndarray) -> np.ndarray:
    """Flat normals normalize(cross(b - a, c - a)); degenerate triangles get zero."""
    a = tris[:, 0, :]
    b = tris[:, 1, :]
    c = tris[:, 2, :]
    n = np.cross(b - a, c - a)
    length = np.linalg.norm(n, axis=1, keepdims=True)
    return np.divide(n, length, out=np.zeros_like(n), where=length > 0)


def mesh_from_triangles(tris: np.ndarray) -> ChunkMesh:
    """Repackage a (T,3,3) triangle soup into flat vertex/normal/uv/index arrays."""
    tris = np.asarray(tris, dtype=np.float64).reshape(-1, 3, 3)
    n_verts = tris.shape[0] * 3
    pos = tris.reshape(n_verts, 3).astype(np.float32)
    nrm = np.repeat(face_normals(tris), 3, axis=0).astype(np.float32)
    uvs = np.zeros((n_verts, 2), dtype=np.float32)
    idx = np.arange(n_verts, dtype=np.uint32)
    return ChunkMesh(positions=pos, normals=nrm, uvs=uvs, indices=idx)


def sample_chunk_lattice(
    coord: ChunkCoord, field: DensityField, *, res: int, cell_size: float
) -> np.ndarray:
    """Density at the (res+1)^3 cell corners of a chunk, sampled in world space."""
    ox, oy, oz = chunk_origin(coord, res, cell_size)
    steps = np.arange(res + 1, dtype=np.float64) * float(cell_size)
    return field.lattice(ox + steps, oy + steps, oz + steps)


def build_chunk_mesh(
    coord: ChunkCoord,
    field: DensityField,
    *,
    res: int,
    cell_size: float,
    iso_level: float,
) -> ChunkMesh:
    """Polygonise all res^3 cells of one chunk. Vertices are relative to chunk_origin()."""
    if res < 1:
        raise ValueError("res must be >= 1")
    if cell_size <= 0:
        raise ValueError("cell_size must be > 0")
    values = sample_chunk_lattice(coord, field, res=res, cell_size=cell_size)
    tris = polygonise_grid(values, cell_size, iso_level)
    return mesh_from_triangles(tris)
