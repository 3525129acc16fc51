"""Consistency checks for the marching cubes lookup tables."""
from __future__ import annotations

import numpy as np
import pytest

from isoterrain.world.tables import (
    EDGE_CORNERS,
    EDGE_TABLE,
    MAX_TRIANGLES_PER_CELL,
    SENTINEL,
    TRI_TABLE,
    triangle_count,
    validate_tables,
)


def test_tables_validate() -> None:
    validate_tables()


def test_tables_are_read_only() -> None:
    with pytest.raises(ValueError):
        EDGE_TABLE[1] = 0
    with pytest.raises(ValueError):
        TRI_TABLE[1, 0] = 0


def test_empty_and_full_configurations_cross_nothing() -> None:
    assert EDGE_TABLE[0x00] == 0
    assert EDGE_TABLE[0xFF] == 0
    assert triangle_count(0x00) == 0
    assert triangle_count(0xFF) == 0


def test_complement_configurations_cross_the_same_edges() -> None:
    for config in range(256):
        assert EDGE_TABLE[config] == EDGE_TABLE[config ^ 0xFF]


def test_crossed_edges_join_corners_of_opposite_sign() -> None:
    for config in range(256):
        mask = int(EDGE_TABLE[config])
        for edge, (a, b) in enumerate(EDGE_CORNERS.tolist()):
            below_a = bool(config & (1 << a))
            below_b = bool(config & (1 << b))
            assert bool(mask & (1 << edge)) == (below_a != below_b)


def test_triangle_count_bounds() -> None:
    counts = [triangle_count(c) for c in range(256)]
    assert max(counts) == MAX_TRIANGLES_PER_CELL
    assert all(0 <= n <= MAX_TRIANGLES_PER_CELL for n in counts)
    # single corner below iso -> exactly one triangle
    for corner in range(8):
        assert triangle_count(1 << corner) == 1


def test_rows_are_sentinel_terminated() -> None:
    for config in range(256):
        row = TRI_TABLE[config]
        n = 3 * triangle_count(config)
        assert np.all(row[:n] != SENTINEL)
        assert np.all(row[n:] == SENTINEL)
