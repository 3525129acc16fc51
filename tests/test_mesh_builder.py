"""Chunk mesh construction."""
from __future__ import annotations

import numpy as np
import pytest

from isoterrain.world.mesh_builder import (
    build_chunk_mesh,
    chunk_origin,
    face_normals,
    mesh_from_triangles,
    sample_chunk_lattice,
)


def _build(field, params, coord=(0, 0, 0)):
    return build_chunk_mesh(
        coord, field, res=params.chunk_res, cell_size=params.cell_size, iso_level=params.iso_level
    )


def test_chunk_origin_centers_chunk_zero() -> None:
    assert chunk_origin((0, 0, 0), 32, 1.0) == (-16.0, -16.0, -16.0)
    assert chunk_origin((1, -1, 2), 4, 0.5) == (1.0, -3.0, 3.0)


def test_build_is_deterministic(field, small_params) -> None:
    a = _build(field, small_params, (1, 0, -1))
    b = _build(field, small_params, (1, 0, -1))
    assert a.positions.tobytes() == b.positions.tobytes()
    assert a.normals.tobytes() == b.normals.tobytes()
    assert a.indices.tobytes() == b.indices.tobytes()


def test_mesh_layout(field, small_params) -> None:
    mesh = _build(field, small_params)
    assert mesh.triangle_count > 0
    n = mesh.vertex_count
    assert n % 3 == 0
    assert mesh.positions.shape == (n, 3) and mesh.positions.dtype == np.float32
    assert mesh.normals.shape == (n, 3) and mesh.normals.dtype == np.float32
    assert mesh.uvs.shape == (n, 2) and not mesh.uvs.any()
    assert np.array_equal(mesh.indices, np.arange(n, dtype=np.uint32))
    assert mesh.interleaved().shape == (n, 6)


def test_vertices_stay_inside_the_chunk(field, small_params) -> None:
    mesh = _build(field, small_params)
    extent = small_params.chunk_world_size
    assert mesh.positions.min() >= 0.0
    assert mesh.positions.max() <= extent


def test_normals_are_unit_or_zero(field, small_params) -> None:
    mesh = _build(field, small_params)
    lengths = np.linalg.norm(mesh.normals, axis=1)
    assert np.all(np.isclose(lengths, 1.0, atol=1e-4) | (lengths == 0.0))
    # flat shading: all three vertices of a triangle share the normal
    per_tri = mesh.normals.reshape(-1, 3, 3)
    assert np.array_equal(per_tri[:, 0], per_tri[:, 1])
    assert np.array_equal(per_tri[:, 0], per_tri[:, 2])


def test_degenerate_triangle_gets_zero_normal() -> None:
    tris = np.array(
        [
            [[0, 0, 0], [1, 0, 0], [0, 0, 1]],
            [[0, 0, 0], [1, 1, 1], [2, 2, 2]],
        ],
        dtype=np.float64,
    )
    normals = face_normals(tris)
    assert np.allclose(normals[0], (0.0, -1.0, 0.0))
    assert np.array_equal(normals[1], (0.0, 0.0, 0.0))


def test_empty_soup_gives_empty_mesh() -> None:
    mesh = mesh_from_triangles(np.zeros((0, 3, 3)))
    assert mesh.is_empty
    assert mesh.triangle_count == 0
    assert mesh.indices.shape == (0,)


def test_neighbouring_chunks_share_their_face_samples(field, small_params) -> None:
    res, cs = small_params.chunk_res, small_params.cell_size
    a = sample_chunk_lattice((0, 0, 0), field, res=res, cell_size=cs)
    b = sample_chunk_lattice((1, 0, 0), field, res=res, cell_size=cs)
    assert np.array_equal(a[-1], b[0])


def test_invalid_dimensions_rejected(field) -> None:
    with pytest.raises(ValueError):
        build_chunk_mesh((0, 0, 0), field, res=0, cell_size=1.0, iso_level=0.0)
    with pytest.raises(ValueError):
        build_chunk_mesh((0, 0, 0), field, res=4, cell_size=0.0, iso_level=0.0)
