from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Dict, Protocol, Tuple

from isoterrain.world.chunk import ChunkMesh


@dataclass(frozen=True)
class Material:
    base_color: Tuple[float, float, float, float] = (0.1, 0.2, 0.9, 1.0)


@dataclass(frozen=True)
class Transform:
    translation: Tuple[float, float, float] = (0.0, 0.0, 0.0)


class RenderRegistry(Protocol):
    """Host-side registry of renderable objects."""

    def create(self, mesh: ChunkMesh, material: Material, transform: Transform) -> int: ...

    def remove(self, render_id: int) -> None: ...


@dataclass
class SceneObject:
    mesh: ChunkMesh
    material: Material
    transform: Transform


class SceneRegistry:
    """In-memory RenderRegistry; keeps objects and a removal log."""

    def __init__(self) -> None:
        self.objects: Dict[int, SceneObject] = {}
        self.removed: list[int] = []
        self._ids = itertools.count(1)

    def create(self, mesh: ChunkMesh, material: Material, transform: Transform) -> int:
        render_id = next(self._ids)
        self.objects[render_id] = SceneObject(mesh, material, transform)
        return render_id

    def remove(self, render_id: int) -> None:
        if render_id not in self.objects:
            raise KeyError(f"unknown render id {render_id}")
        del self.objects[render_id]
        self.removed.append(render_id)

    def triangle_count(self) -> int:
        return sum(obj.mesh.triangle_count for obj in self.objects.values())

    def __len__(self) -> int:
        return len(self.objects)
