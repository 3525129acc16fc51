from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from opensimplex import OpenSimplex

NOISE_MODES = ("fast", "simplex")

# Lattice hash primes. The compute kernel uses the same constants.
HASH_PX = 374761393
HASH_PY = 668265263
HASH_PZ = 1440662683
HASH_MIX = 1274126177


@dataclass(frozen=True)
class NoiseConfig:
    octaves: int = 3
    lacunarity: float = 2.0
    gain: float = 0.5
    frequency: float = 0.05


class FastValueNoise3D:
    """Fast 3D value noise with fully vectorized numpy implementation.

    Uses an integer hash on lattice points and smooth trilinear interpolation.
    Deterministic for a given seed.
    """

    def __init__(self, seed: int) -> None:
        self.seed = int(seed)

    @staticmethod
    def _fade(t: np.ndarray) -> np.ndarray:
        # smootherstep
        return t * t * t * (t * (t * 6 - 15) + 10)

    def _hash(self, xi: np.ndarray, yi: np.ndarray, zi: np.ndarray) -> np.ndarray:
        # Vectorized integer hash -> uint32 -> [0,1)
        x = (
            (xi.astype(np.uint32) * np.uint32(HASH_PX))
            ^ (yi.astype(np.uint32) * np.uint32(HASH_PY))
            ^ (zi.astype(np.uint32) * np.uint32(HASH_PZ))
            ^ np.uint32(self.seed & 0xFFFFFFFF)
        )
        x ^= (x >> np.uint32(13))
        x *= np.uint32(HASH_MIX)
        x ^= (x >> np.uint32(16))
        return (x.astype(np.float32) / np.float32(2**32))

    def noise(self, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
        # x,y,z: float arrays (same shape)
        xi0 = np.floor(x).astype(np.int32)
        yi0 = np.floor(y).astype(np.int32)
        zi0 = np.floor(z).astype(np.int32)
        xi1 = xi0 + 1
        yi1 = yi0 + 1
        zi1 = zi0 + 1

        u = self._fade(x - xi0.astype(np.float32))
        v = self._fade(y - yi0.astype(np.float32))
        w = self._fade(z - zi0.astype(np.float32))

        c000 = self._hash(xi0, yi0, zi0)
        c100 = self._hash(xi1, yi0, zi0)
        c010 = self._hash(xi0, yi1, zi0)
        c110 = self._hash(xi1, yi1, zi0)
        c001 = self._hash(xi0, yi0, zi1)
        c101 = self._hash(xi1, yi0, zi1)
        c011 = self._hash(xi0, yi1, zi1)
        c111 = self._hash(xi1, yi1, zi1)

        # trilinear interpolation with fade
        x00 = c000 + (c100 - c000) * u
        x10 = c010 + (c110 - c010) * u
        x01 = c001 + (c101 - c001) * u
        x11 = c011 + (c111 - c011) * u
        y0 = x00 + (x10 - x00) * v
        y1 = x01 + (x11 - x01) * v
        return y0 + (y1 - y0) * w  # [0,1)


class FBMFastNoise3D:
    def __init__(self, seed: int, cfg: NoiseConfig | None = None) -> None:
        self.seed = int(seed)
        self.cfg = cfg or NoiseConfig()
        self.base = FastValueNoise3D(seed)

    def grid(self, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
        # x,y,z same shape float32, result in [0,1)
        freq = self.cfg.frequency
        amp = 1.0
        total = np.zeros_like(x, dtype=np.float32)
        norm = 0.0
        for _ in range(self.cfg.octaves):
            total += self.base.noise(x * freq, y * freq, z * freq) * np.float32(amp)
            norm += amp
            freq *= self.cfg.lacunarity
            amp *= self.cfg.gain
        return total / np.float32(max(norm, 1e-9))


class FBMSimplexNoise3D:
    """Simplex-based fBm. Slower, CPU only."""

    def __init__(self, seed: int, cfg: NoiseConfig | None = None) -> None:
        self.seed = int(seed)
        self.cfg = cfg or NoiseConfig()
        self._simp = OpenSimplex(self.seed)

    def axes(self, xs: np.ndarray, ys: np.ndarray, zs: np.ndarray) -> np.ndarray:
        freq = self.cfg.frequency
        amp = 1.0
        total = np.zeros((xs.size, ys.size, zs.size), dtype=np.float64)
        norm = 0.0
        for _ in range(self.cfg.octaves):
            # noise3array indexes [z][y][x]
            n = self._simp.noise3array(
                xs.astype(np.float64) * freq,
                ys.astype(np.float64) * freq,
                zs.astype(np.float64) * freq,
            )
            total += np.transpose(n, (2, 1, 0)) * amp
            norm += amp
            freq *= self.cfg.lacunarity
            amp *= self.cfg.gain
        total = total / max(norm, 1e-9)
        return ((total + 1.0) * 0.5).astype(np.float32)  # [0,1]


class DensityField:
    """Scalar density ``1 - 2 * noise(p + offset)``.

    Holds no mutable state after construction, so worker threads can share
    one instance. ``offset`` translates the field (animated terrain) without
    touching the seed.
    """

    def __init__(
        self,
        seed: int,
        cfg: NoiseConfig | None = None,
        *,
        mode: str = "fast",
        offset: Sequence[float] = (0.0, 0.0, 0.0),
    ) -> None:
        if mode not in NOISE_MODES:
            raise ValueError(f"unknown noise mode {mode!r} (expected one of {NOISE_MODES})")
        self.seed = int(seed)
        self.cfg = cfg or NoiseConfig()
        self.mode = mode
        self.offset = tuple(float(c) for c in offset)
        if len(self.offset) != 3:
            raise ValueError("offset must have 3 components")
        if mode == "simplex":
            self._noise = FBMSimplexNoise3D(self.seed, self.cfg)
        else:
            self._noise = FBMFastNoise3D(self.seed, self.cfg)

    def translated(self, offset: Sequence[float]) -> "DensityField":
        ox, oy, oz = self.offset
        dx, dy, dz = (float(c) for c in offset)
        return DensityField(self.seed, self.cfg, mode=self.mode, offset=(ox + dx, oy + dy, oz + dz))

    def sample(self, p: Sequence[float], offset: Sequence[float] | None = None) -> float:
        x, y, z = (float(c) for c in p)
        ox, oy, oz = self.offset
        if offset is not None:
            ox, oy, oz = ox + float(offset[0]), oy + float(offset[1]), oz + float(offset[2])
        xv = np.array([x], dtype=np.float32) + np.float32(ox)
        yv = np.array([y], dtype=np.float32) + np.float32(oy)
        zv = np.array([z], dtype=np.float32) + np.float32(oz)
        if self.mode == "simplex":
            n = self._noise.axes(xv, yv, zv)[0, 0, 0]
        else:
            n = self._noise.grid(xv, yv, zv)[0]
        return float(np.float32(1.0) - np.float32(2.0) * n)

    def lattice(self, xs: np.ndarray, ys: np.ndarray, zs: np.ndarray) -> np.ndarray:
        """Sample every (x, y, z) combination of the axes -> float32 (nx, ny, nz)."""
        ox, oy, oz = self.offset
        xs = np.asarray(xs, dtype=np.float32) + np.float32(ox)
        ys = np.asarray(ys, dtype=np.float32) + np.float32(oy)
        zs = np.asarray(zs, dtype=np.float32) + np.float32(oz)
        if self.mode == "simplex":
            n = self._noise.axes(xs, ys, zs)
        else:
            gx, gy, gz = np.meshgrid(xs, ys, zs, indexing="ij")
            n = self._noise.grid(gx, gy, gz)
        return (np.float32(1.0) - np.float32(2.0) * n).astype(np.float32)
