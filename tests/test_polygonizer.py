"""Tests for single-cell and whole-lattice polygonization."""
from __future__ import annotations

import numpy as np
import pytest

from isoterrain.world.polygonizer import (
    Sample,
    cube_index,
    interpolate_edge,
    make_cell,
    polygonise,
    polygonise_grid,
)
from isoterrain.world.tables import CORNER_OFFSETS, triangle_count


def _cell_for_config(config: int, size: float = 1.0):
    values = [0.0 if config & (1 << i) else 1.0 for i in range(8)]
    return make_cell((0.0, 0.0, 0.0), size, values)


def test_every_configuration_emits_its_table_triangles() -> None:
    for config in range(256):
        cell = _cell_for_config(config)
        assert cube_index([s.value for s in cell], 0.5) == config
        tris = polygonise(cell, 0.5)
        assert len(tris) == triangle_count(config)


def test_uniform_cells_produce_nothing() -> None:
    assert polygonise(_cell_for_config(0x00), 0.5) == []
    assert polygonise(_cell_for_config(0xFF), 0.5) == []
    above = make_cell((0, 0, 0), 1.0, [1.0] * 8)
    assert polygonise(above, 0.7) == []


def test_single_corner_below_iso_gives_one_triangle_near_that_corner() -> None:
    values = [1.0] * 8
    values[0] = 0.0
    tris = polygonise(make_cell((0, 0, 0), 1.0, values), 0.5)
    assert len(tris) == 1
    for vert in tris[0].vertices():
        # every vertex sits halfway along one of the three edges leaving corner 0
        assert sorted(vert) == [0.0, 0.0, 0.5]


def test_interpolated_points_stay_on_their_edge() -> None:
    rng = np.random.default_rng(3)
    for _ in range(200):
        va, vb = rng.uniform(-1.0, 1.0, size=2)
        iso = float(rng.uniform(-1.5, 1.5))
        a = Sample((0.0, 0.0, 0.0), float(va))
        b = Sample((2.0, 0.0, 0.0), float(vb))
        x, y, z = interpolate_edge(a, b, iso)
        assert 0.0 <= x <= 2.0
        assert y == 0.0 and z == 0.0


def test_flat_edge_uses_midpoint() -> None:
    a = Sample((0.0, 0.0, 0.0), 0.25)
    b = Sample((0.0, 4.0, 0.0), 0.25)
    assert interpolate_edge(a, b, 0.25) == (0.0, 2.0, 0.0)


def test_interpolation_hits_the_crossing() -> None:
    a = Sample((0.0, 0.0, 0.0), -1.0)
    b = Sample((0.0, 0.0, 1.0), 1.0)
    assert interpolate_edge(a, b, 0.5) == pytest.approx((0.0, 0.0, 0.75))


def test_polygonise_leaves_cell_untouched() -> None:
    cell = make_cell((1.0, 2.0, 3.0), 0.5, [0.1, 0.9, 0.2, 0.8, 0.3, 0.7, 0.4, 0.6])
    before = tuple(cell)
    polygonise(cell, 0.5)
    assert cell == before


def test_wrong_cell_length_rejected() -> None:
    with pytest.raises(ValueError):
        make_cell((0, 0, 0), 1.0, [0.0] * 7)
    cell = make_cell((0, 0, 0), 1.0, [0.0] * 8)
    with pytest.raises(ValueError):
        polygonise(cell[:7], 0.5)


def test_grid_matches_cell_by_cell() -> None:
    rng = np.random.default_rng(11)
    values = rng.uniform(-1.0, 1.0, size=(5, 4, 6))
    cell_size = 0.5
    expected = []
    nx, ny, nz = (s - 1 for s in values.shape)
    for i in range(nx):
        for j in range(ny):
            for k in range(nz):
                corner_vals = [values[i + dx, j + dy, k + dz] for dx, dy, dz in CORNER_OFFSETS.tolist()]
                cell = make_cell((i * cell_size, j * cell_size, k * cell_size), cell_size, corner_vals)
                expected.extend(t.vertices() for t in polygonise(cell, 0.1))
    got = polygonise_grid(values, cell_size, 0.1)
    assert got.shape == (len(expected), 3, 3)
    assert np.allclose(got, np.asarray(expected, dtype=np.float64).reshape(-1, 3, 3))


def test_grid_without_crossings_is_empty() -> None:
    tris = polygonise_grid(np.ones((3, 3, 3)), 1.0, 0.0)
    assert tris.shape == (0, 3, 3)


def test_grid_rejects_bad_shape() -> None:
    with pytest.raises(ValueError):
        polygonise_grid(np.zeros((1, 3, 3)), 1.0, 0.0)
