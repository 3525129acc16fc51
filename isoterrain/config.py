from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from isoterrain.world.noise import NOISE_MODES, NoiseConfig

# App
APP_VERSION = "0.3.0"

# Noise / density field
DEFAULT_SEED = 12345
DEFAULT_FREQUENCY = 0.05
DEFAULT_OCTAVES = 3
DEFAULT_LACUNARITY = 2.0
DEFAULT_GAIN = 0.5
DEFAULT_NOISE = "fast"

# Surface
DEFAULT_ISO_LEVEL = 0.0

# Terrain / chunks
CHUNK_RES = 32  # cells per axis
CELL_SIZE = 1.0  # world units per cell
VIEW_DISTANCE = 3  # in chunks
VERTICAL_LIMIT: Optional[int] = None  # clamp |dy| in chunks, None = sphere

# Streaming
DEFAULT_WORKERS = 2
DEFAULT_SPAWN_BUDGET: Optional[int] = None  # new tasks per tick, None = unbounded
DEFAULT_INTEGRATE_BUDGET: Optional[int] = None  # finished chunks attached per tick

# Headless fly-through
DEFAULT_TICKS = 120
DEFAULT_SPEED = 8.0  # world units per tick
DEFAULT_BACKEND = "cpu"
BACKENDS = ("cpu", "gpu")


@dataclass(frozen=True)
class TerrainParams:
    """Viewer-independent snapshot handed to every generation task."""

    seed: int = DEFAULT_SEED
    chunk_res: int = CHUNK_RES
    cell_size: float = CELL_SIZE
    view_distance: int = VIEW_DISTANCE
    vertical_limit: Optional[int] = VERTICAL_LIMIT
    iso_level: float = DEFAULT_ISO_LEVEL
    frequency: float = DEFAULT_FREQUENCY
    octaves: int = DEFAULT_OCTAVES
    lacunarity: float = DEFAULT_LACUNARITY
    gain: float = DEFAULT_GAIN
    noise_mode: str = DEFAULT_NOISE

    def __post_init__(self) -> None:
        if self.chunk_res < 1:
            raise ValueError("chunk_res must be >= 1")
        if self.cell_size <= 0:
            raise ValueError("cell_size must be > 0")
        if self.view_distance < 0:
            raise ValueError("view_distance must be >= 0")
        if self.octaves < 1:
            raise ValueError("octaves must be >= 1")
        if self.noise_mode not in NOISE_MODES:
            raise ValueError(f"unknown noise mode {self.noise_mode!r}")

    @property
    def chunk_world_size(self) -> float:
        return float(self.chunk_res) * float(self.cell_size)

    def noise_config(self) -> NoiseConfig:
        return NoiseConfig(
            octaves=int(self.octaves),
            lacunarity=float(self.lacunarity),
            gain=float(self.gain),
            frequency=float(self.frequency),
        )
