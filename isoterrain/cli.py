from __future__ import annotations

import argparse
import logging
import random
import time
from typing import Optional, Sequence

from isoterrain.config import (
    APP_VERSION,
    BACKENDS,
    CELL_SIZE,
    CHUNK_RES,
    DEFAULT_BACKEND,
    DEFAULT_FREQUENCY,
    DEFAULT_INTEGRATE_BUDGET,
    DEFAULT_ISO_LEVEL,
    DEFAULT_NOISE,
    DEFAULT_OCTAVES,
    DEFAULT_SEED,
    DEFAULT_SPAWN_BUDGET,
    DEFAULT_SPEED,
    DEFAULT_TICKS,
    DEFAULT_WORKERS,
    VERTICAL_LIMIT,
    VIEW_DISTANCE,
    TerrainParams,
)
from isoterrain.world.noise import NOISE_MODES
from isoterrain.world.world import World


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="isoterrain", description=f"Headless marching-cubes terrain streaming v{APP_VERSION}")
    p.add_argument("--seed", default=str(DEFAULT_SEED), help="int seed or 'random' (default: 12345)")
    p.add_argument("--chunk-res", type=int, default=CHUNK_RES, help="cells per chunk axis (default: 32)")
    p.add_argument("--cell-size", type=float, default=CELL_SIZE, help="world units per cell (default: 1.0)")
    p.add_argument("--view-distance", type=int, default=VIEW_DISTANCE, help="view distance in chunks")
    p.add_argument("--vertical-limit", type=int, default=VERTICAL_LIMIT, help="clamp vertical chunk offset (default: none)")
    p.add_argument("--iso", type=float, default=DEFAULT_ISO_LEVEL, help="iso-level of the surface")
    p.add_argument("--frequency", type=float, default=DEFAULT_FREQUENCY, help="base noise frequency")
    p.add_argument("--octaves", type=int, default=DEFAULT_OCTAVES, help="fBm octaves")
    p.add_argument("--noise", choices=list(NOISE_MODES), default=DEFAULT_NOISE, help="noise mode (fast or simplex)")
    p.add_argument("--backend", choices=list(BACKENDS), default=DEFAULT_BACKEND, help="chunk generation backend")
    p.add_argument("--workers", type=int, default=DEFAULT_WORKERS, help="CPU worker threads")
    p.add_argument("--ticks", type=int, default=DEFAULT_TICKS, help="number of simulated frames")
    p.add_argument("--speed", type=float, default=DEFAULT_SPEED, help="viewer speed along +x (world units / tick)")
    p.add_argument("--spawn-budget", type=int, default=DEFAULT_SPAWN_BUDGET, help="max new chunk tasks per tick")
    p.add_argument("--integrate-budget", type=int, default=DEFAULT_INTEGRATE_BUDGET, help="max finished chunks attached per tick")
    p.add_argument("--debug", action="store_true", help="verbose logs and per-second status lines")
    return p.parse_args(argv)


def run_flythrough(world: World, *, ticks: int, speed: float, debug: bool = False) -> None:
    x = 0.0
    last_log = time.perf_counter()
    for _ in range(int(ticks)):
        report = world.update((x, 0.0, 0.0))
        x += speed
        now = time.perf_counter()
        if debug and now - last_log >= 1.0:
            last_log = now
            print(
                f"[isoterrain] center={report.center} loaded={len(world.manager.loaded)} "
                f"pending={len(world.manager.pending)} tris={world.scene.triangle_count()}"
            )
        time.sleep(0.001)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    if isinstance(args.seed, str) and args.seed.lower() == "random":
        seed = random.randint(0, 2**31 - 1)
    else:
        seed = int(args.seed)

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    params = TerrainParams(
        seed=seed,
        chunk_res=int(args.chunk_res),
        cell_size=float(args.cell_size),
        view_distance=int(args.view_distance),
        vertical_limit=args.vertical_limit,
        iso_level=float(args.iso),
        frequency=float(args.frequency),
        octaves=int(args.octaves),
        noise_mode=str(args.noise),
    )
    world = World(
        params,
        backend=str(args.backend),
        workers=int(args.workers),
        max_spawns_per_tick=args.spawn_budget,
        max_integrations_per_tick=args.integrate_budget,
    )
    try:
        world.warmup((0.0, 0.0, 0.0))
        run_flythrough(world, ticks=int(args.ticks), speed=float(args.speed), debug=bool(args.debug))
        print(
            f"[isoterrain] seed={seed} backend={args.backend} loaded={len(world.manager.loaded)} "
            f"pending={len(world.manager.pending)} triangles={world.scene.triangle_count()}"
        )
    finally:
        world.shutdown()
