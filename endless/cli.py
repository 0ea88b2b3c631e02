from __future__ import annotations

import argparse
import random

from endless.app import run_app
from endless.config import (
    APP_VERSION,
    DEFAULT_ACCEL,
    DEFAULT_BASIS,
    DEFAULT_BRAKE,
    DEFAULT_DRAG,
    DEFAULT_FALLOFF,
    DEFAULT_FLAT_SHADING,
    DEFAULT_HEIGHT_MULTIPLIER,
    DEFAULT_HEIGHT_OFFSET,
    DEFAULT_INPUT_SMOOTH_K,
    DEFAULT_LACUNARITY,
    DEFAULT_LODS,
    DEFAULT_MAX_SPEED,
    DEFAULT_MAX_WORKERS,
    DEFAULT_MAX_YAW_RATE,
    DEFAULT_NOISE_SCALE,
    DEFAULT_NORMALIZE,
    DEFAULT_OCTAVES,
    DEFAULT_PERSISTENCE,
    DEFAULT_SEED,
    DEFAULT_UNIFORM_SCALE,
    DEFAULT_YAW_ACCEL,
    DEFAULT_YAW_DRAG,
    FOG_END,
    FOG_START,
    HEIGHT_SMOOTH_K,
)
from endless.logger import setup_logging
from endless.render.camera import FlightCamera
from endless.world.chunk import LODInfo
from endless.world.noise import BASES, NORMALIZE_MODES, NoiseParams
from endless.world.settings import TERRAIN_CURVE, TerrainSettings


def _parse_lods(text: str) -> list[LODInfo]:
    """'0:200:c,1:400,4:600' -> LOD table; a trailing ':c' marks the collision LOD."""
    lods = []
    for part in text.split(","):
        fields = part.strip().split(":")
        if len(fields) not in (2, 3) or (len(fields) == 3 and fields[2] != "c"):
            raise argparse.ArgumentTypeError(f"bad LOD entry: {part!r} (expected lod:distance[:c])")
        lods.append(LODInfo(int(fields[0]), float(fields[1]), len(fields) == 3))
    return lods


def _default_lods() -> str:
    return ",".join(f"{lod}:{dst:g}" + (":c" if col else "") for lod, dst, col in DEFAULT_LODS)


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="endless", description=f"Endless procedural terrain (ModernGL + pygame) v{APP_VERSION}")
    p.add_argument("--seed", default=str(DEFAULT_SEED), help="int seed or 'random' (default: 1)")
    p.add_argument("--scale", type=float, default=DEFAULT_NOISE_SCALE, help="noise scale (<= 0 is clamped)")
    p.add_argument("--octaves", type=int, default=DEFAULT_OCTAVES, help="noise octaves")
    p.add_argument("--persistence", type=float, default=DEFAULT_PERSISTENCE, help="amplitude decay per octave")
    p.add_argument("--lacunarity", type=float, default=DEFAULT_LACUNARITY, help="frequency growth per octave")
    p.add_argument("--offset", type=float, nargs=2, default=(0.0, 0.0), metavar=("X", "Y"), help="noise offset")
    p.add_argument("--normalize", choices=NORMALIZE_MODES, default=DEFAULT_NORMALIZE,
                   help="local = per-chunk contrast (seams), global = seamless")
    p.add_argument("--noise", dest="basis", choices=BASES, default=DEFAULT_BASIS, help="gradient noise basis")
    p.add_argument("--height-multiplier", type=float, default=DEFAULT_HEIGHT_MULTIPLIER, help="mesh height multiplier")
    p.add_argument("--uniform-scale", type=float, default=DEFAULT_UNIFORM_SCALE, help="world scale of the whole terrain")
    p.add_argument("--chunk-size", type=int, default=None, help="interior samples per chunk side (default: 239, 95 flat)")
    p.add_argument("--falloff", dest="falloff", action="store_true", default=DEFAULT_FALLOFF, help="island falloff per chunk")
    p.add_argument("--flat-shading", dest="flat", action="store_true", default=DEFAULT_FLAT_SHADING, help="flat shaded meshes")
    p.add_argument("--lods", type=_parse_lods, default=_default_lods(), help="LOD table 'lod:distance[:c],...' finest first")
    p.add_argument("--max-workers", type=int, default=DEFAULT_MAX_WORKERS, help="worker pool size (0 = thread per task)")
    p.add_argument("--speed", type=float, default=DEFAULT_MAX_SPEED, help="max forward speed (world units / sec)")
    p.add_argument("--height-offset", type=float, default=DEFAULT_HEIGHT_OFFSET, help="camera height above terrain")
    p.add_argument("--fog-start", type=float, default=FOG_START, help="fog start distance")
    p.add_argument("--fog-end", type=float, default=FOG_END, help="fog end distance")
    p.add_argument("--wireframe", action="store_true", help="render wireframe")
    p.add_argument("--debug", action="store_true", help="debug logging (streaming stats, chunk lifecycle)")
    p.add_argument("--log-dir", default=None, help="also write logs to a timestamped file here")
    return p.parse_args()


def main() -> None:
    args = _parse_args()
    setup_logging(debug=bool(args.debug), log_dir=args.log_dir)

    if isinstance(args.seed, str) and args.seed.lower() == "random":
        seed = random.randint(0, 2**31 - 1)
    else:
        seed = int(args.seed)

    settings = TerrainSettings(
        noise=NoiseParams(
            seed=seed,
            scale=float(args.scale),
            octaves=int(args.octaves),
            persistence=float(args.persistence),
            lacunarity=float(args.lacunarity),
            offset=(float(args.offset[0]), float(args.offset[1])),
            normalize_mode=str(args.normalize),
            basis=str(args.basis),
        ),
        height_multiplier=float(args.height_multiplier),
        height_curve=TERRAIN_CURVE,
        use_flat_shading=bool(args.flat),
        use_falloff=bool(args.falloff),
        uniform_scale=float(args.uniform_scale),
        chunk_size=args.chunk_size,
    )
    lods = args.lods

    camera = FlightCamera(
        max_speed=float(args.speed),
        accel=DEFAULT_ACCEL,
        brake=DEFAULT_BRAKE,
        drag=DEFAULT_DRAG,
        max_yaw_rate=DEFAULT_MAX_YAW_RATE,
        yaw_accel=DEFAULT_YAW_ACCEL,
        yaw_drag=DEFAULT_YAW_DRAG,
        input_smooth_k=DEFAULT_INPUT_SMOOTH_K,
        height_offset=float(args.height_offset),
        smooth_k=HEIGHT_SMOOTH_K,
    )

    run_app(
        settings=settings,
        lods=lods,
        camera=camera,
        max_workers=int(args.max_workers),
        fog_start=float(args.fog_start),
        fog_end=float(args.fog_end),
        wireframe=bool(args.wireframe),
        debug=bool(args.debug),
    )


if __name__ == "__main__":
    main()
