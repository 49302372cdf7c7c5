from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from vmfworld.app_config import BuildConfig
from vmfworld.common.diagnostics import LoadFailure
from vmfworld.world.loader import load_vmf_world


def main(argv: list[str] | None = None) -> int:
    defaults = BuildConfig()
    parser = argparse.ArgumentParser(prog="vmfworld", description="Build chunked render/collision meshes from a VMF map")
    parser.add_argument("map", help="Path to a .vmf file.")
    parser.add_argument(
        "--scale",
        type=float,
        default=defaults.scale,
        help=f"Source units -> game units (default: {defaults.scale}).",
    )
    parser.add_argument(
        "--chunk-size",
        type=float,
        default=defaults.chunk_size,
        help=f"Chunk edge length in game units (default: {defaults.chunk_size}).",
    )
    parser.add_argument(
        "--navmesh",
        action="store_true",
        help="Keep nodraw/clip faces in the visual output (navmesh generation input).",
    )
    parser.add_argument(
        "--z-up",
        action="store_true",
        help="Keep the source Z-up frame instead of converting to Y-up (Panda3D preview).",
    )
    parser.add_argument(
        "--spawn-height",
        type=float,
        default=defaults.spawn_height_offset,
        help="Lift added to the spawn point on the up axis (game units).",
    )
    parser.add_argument(
        "--out",
        default=None,
        help="Optional JSON output path: the full build result plus the load report.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = BuildConfig(
            scale=float(args.scale),
            chunk_size=float(args.chunk_size),
            y_up=not bool(args.z_up),
            for_navmesh=bool(args.navmesh),
            spawn_height_offset=float(args.spawn_height),
        )
    except ValueError as exc:
        parser.error(str(exc))

    try:
        load = load_vmf_world(args.map, config=config)
    except LoadFailure as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    result = load.result
    print(f"map: {args.map} (version {result.version}, sky {result.skyname})")
    print(f"visual: {len(result.visual_meshes)} meshes / {result.visual_triangle_count} tris")
    print(f"collision: {len(result.collision_meshes)} meshes / {result.collision_triangle_count} tris")
    if result.spawn is not None:
        x, y, z = result.spawn.position
        print(f"spawn: {result.spawn.classname} at ({x:.3f}, {y:.3f}, {z:.3f}) yaw {result.spawn.yaw:.1f}")
    else:
        print("spawn: none")
    print(f"diagnostics: {len(result.diagnostics)}")
    for diag in result.diagnostics:
        print(f"  {diag.summary_line()}")
    print(f"load: {float(load.report['total_ms']):.1f} ms")

    if args.out:
        out = Path(args.out)
        payload = result.to_payload()
        payload["load_report"] = load.report
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        print(f"wrote: {out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
