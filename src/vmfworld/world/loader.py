"""Load a ``.vmf`` file end to end: read, parse, build.

Per-solid problems are absorbed into the result's diagnostics.  Anything
that prevents the load as a whole (missing file, undecodable bytes, a broken
top-level structure) surfaces as :class:`~vmfworld.common.diagnostics.LoadFailure`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from vmfworld.app_config import BuildConfig
from vmfworld.common.diagnostics import LoadFailure
from vmfworld.maps.vmf_parser import parse_vmf
from vmfworld.maps.world_builder import WorldBuilder, WorldBuildResult
from vmfworld.world.loading_report import (
    LOAD_STAGE_BUILD_WORLD,
    LOAD_STAGE_PARSE_VMF,
    LOAD_STAGE_READ_SOURCE,
    LoadReporter,
)

logger = logging.getLogger(__name__)


@dataclass
class WorldLoad:
    result: WorldBuildResult
    report: dict[str, object]


def load_vmf_world(
    map_path: Path | str,
    *,
    config: BuildConfig | None = None,
    builder: WorldBuilder | None = None,
    reporter: LoadReporter | None = None,
) -> WorldLoad:
    """Read *map_path* and build its render / collision meshes.

    Parameters
    ----------
    map_path:
        Path to the ``.vmf`` file.
    config:
        Build settings; ignored when *builder* is given.
    builder:
        Pre-configured builder (e.g. with a custom material resolver).
    reporter:
        Stage timer; a fresh one is used when *None*.
    """

    path = Path(map_path)
    rep = reporter if reporter is not None else LoadReporter()
    wb = builder if builder is not None else WorldBuilder(config)
    rep.begin(map_ref=path)

    logger.info("Loading VMF: %s", path)
    try:
        with rep.stage(LOAD_STAGE_READ_SOURCE):
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise LoadFailure(f"cannot read {path}: {exc}", source=str(path)) from exc

        with rep.stage(LOAD_STAGE_PARSE_VMF):
            vmf = parse_vmf(text)

        with rep.stage(LOAD_STAGE_BUILD_WORLD):
            result = wb.build(vmf)
    except LoadFailure as exc:
        if exc.source is None:
            exc.source = str(path)
        rep.mark_failed(str(exc))
        rep.finish()
        logger.error("Failed to load VMF %s: %s", path, exc)
        raise
    except (ValueError, TypeError, KeyError, AttributeError, IndexError) as exc:
        rep.mark_failed(f"{type(exc).__name__}: {exc}")
        rep.finish()
        logger.error("Failed to load VMF %s: %s", path, exc)
        raise LoadFailure(f"structural error while loading {path}: {exc}", source=str(path)) from exc

    rep.set_counts(
        diagnostics=len(result.diagnostics),
        visual_meshes=len(result.visual_meshes),
        collision_meshes=len(result.collision_meshes),
        visual_triangles=result.visual_triangle_count,
        collision_triangles=result.collision_triangle_count,
    )
    rep.finish()
    logger.info("Loaded VMF %s v%s", path.name, result.version)
    return WorldLoad(result=result, report=rep.as_payload())
