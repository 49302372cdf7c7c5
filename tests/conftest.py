from __future__ import annotations

import itertools
from typing import Callable

import pytest

# Hammer-style plane triples for an axis-aligned box, keyed by the face they bound.
_BOX_FACES: tuple[tuple[str, str, str, str], ...] = (
    ("top", "({x0} {y1} {z1}) ({x1} {y1} {z1}) ({x1} {y0} {z1})", "[1 0 0 0] 0.25", "[0 -1 0 0] 0.25"),
    ("bottom", "({x0} {y0} {z0}) ({x1} {y0} {z0}) ({x1} {y1} {z0})", "[1 0 0 0] 0.25", "[0 -1 0 0] 0.25"),
    ("-x", "({x0} {y1} {z1}) ({x0} {y0} {z1}) ({x0} {y0} {z0})", "[0 1 0 0] 0.25", "[0 0 -1 0] 0.25"),
    ("+x", "({x1} {y1} {z0}) ({x1} {y0} {z0}) ({x1} {y0} {z1})", "[0 1 0 0] 0.25", "[0 0 -1 0] 0.25"),
    ("+y", "({x1} {y1} {z1}) ({x0} {y1} {z1}) ({x0} {y1} {z0})", "[1 0 0 0] 0.25", "[0 0 -1 0] 0.25"),
    ("-y", "({x1} {y0} {z0}) ({x0} {y0} {z0}) ({x0} {y0} {z1})", "[1 0 0 0] 0.25", "[0 0 -1 0] 0.25"),
)

_ids = itertools.count(101)


def _new_id() -> int:
    return next(_ids)


def _fmt(v: float) -> str:
    return str(int(v)) if float(v).is_integer() else str(v)


def box_solid_text(
    mins: tuple[float, float, float] = (0, 0, 0),
    maxs: tuple[float, float, float] = (64, 64, 64),
    *,
    material: str = "DEV/CONCRETE",
    face_materials: dict[str, str] | None = None,
    displacement_faces: tuple[str, ...] = (),
) -> str:
    coords = {
        "x0": _fmt(mins[0]),
        "y0": _fmt(mins[1]),
        "z0": _fmt(mins[2]),
        "x1": _fmt(maxs[0]),
        "y1": _fmt(maxs[1]),
        "z1": _fmt(maxs[2]),
    }
    overrides = face_materials or {}
    lines = ["\tsolid", "\t{", f'\t\t"id" "{_new_id()}"']
    for name, plane, uaxis, vaxis in _BOX_FACES:
        lines += [
            "\t\tside",
            "\t\t{",
            f'\t\t\t"id" "{_new_id()}"',
            f'\t\t\t"plane" "{plane.format(**coords)}"',
            f'\t\t\t"material" "{overrides.get(name, material)}"',
            f'\t\t\t"uaxis" "{uaxis}"',
            f'\t\t\t"vaxis" "{vaxis}"',
            '\t\t\t"rotation" "0"',
            '\t\t\t"lightmapscale" "16"',
            '\t\t\t"smoothing_groups" "0"',
        ]
        if name in displacement_faces:
            lines += ["\t\t\tdispinfo", "\t\t\t{", '\t\t\t\t"power" "2"', "\t\t\t}"]
        lines.append("\t\t}")
    lines.append("\t}")
    return "\n".join(lines)


def entity_text(classname: str, *, origin: str | None = None, solids: tuple[str, ...] = (), **props: str) -> str:
    lines = ["entity", "{", f'\t"id" "{_new_id()}"', f'\t"classname" "{classname}"']
    if origin is not None:
        lines.append(f'\t"origin" "{origin}"')
    for key, value in props.items():
        lines.append(f'\t"{key}" "{value}"')
    lines.extend(solids)
    lines.append("}")
    return "\n".join(lines)


def vmf_text(*, world_solids: tuple[str, ...] = (), entities: tuple[str, ...] = (), skyname: str = "sky_test") -> str:
    parts = [
        "versioninfo",
        "{",
        '\t"editorversion" "400"',
        '\t"mapversion" "7"',
        "}",
        "world",
        "{",
        '\t"id" "1"',
        '\t"classname" "worldspawn"',
        f'\t"skyname" "{skyname}"',
        *world_solids,
        "}",
        *entities,
    ]
    return "\n".join(parts) + "\n"


@pytest.fixture
def box_solid() -> Callable[..., str]:
    return box_solid_text


@pytest.fixture
def entity() -> Callable[..., str]:
    return entity_text


@pytest.fixture
def make_vmf() -> Callable[..., str]:
    return vmf_text
