from __future__ import annotations

import math
from typing import Optional, Sequence, Set

from isoterrain.world.chunk import ChunkCoord


def _round_half_away(v: float) -> int:
    return int(math.copysign(math.floor(abs(v) + 0.5), v))


def world_to_chunk(position: Sequence[float], chunk_world_size: float) -> ChunkCoord:
    """Chunk containing ``position``; chunks are centered on coord * size."""
    x, y, z = position
    return (
        _round_half_away(x / chunk_world_size),
        _round_half_away(y / chunk_world_size),
        _round_half_away(z / chunk_world_size),
    )


def visible_chunks(
    center: ChunkCoord,
    view_distance: int,
    *,
    vertical_limit: Optional[int] = None,
) -> Set[ChunkCoord]:
    """All coords with squared grid offset <= view_distance^2 around ``center``.

    Walks outward along x for every (dy, dz) row and stops as soon as the row
    leaves the sphere. ``vertical_limit`` additionally clamps |dy|.
    """
    if view_distance < 0:
        raise ValueError("view_distance must be >= 0")
    vd = int(view_distance)
    vd2 = vd * vd
    cx, cy, cz = center
    y_span = vd if vertical_limit is None else min(vd, max(0, int(vertical_limit)))

    visible: Set[ChunkCoord] = set()
    for dy in range(-y_span, y_span + 1):
        for dz in range(-vd, vd + 1):
            base = dy * dy + dz * dz
            if base > vd2:
                continue
            dx = 0
            while base + dx * dx <= vd2:
                visible.add((cx + dx, cy + dy, cz + dz))
                visible.add((cx - dx, cy + dy, cz + dz))
                dx += 1
    return visible


def chunk_distance2(a: ChunkCoord, b: ChunkCoord) -> int:
    return (a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2 + (a[2] - b[2]) ** 2
