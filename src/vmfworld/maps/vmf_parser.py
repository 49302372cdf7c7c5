"""Valve Map Format (``.vmf``) semantic parser.

Walks the generic KeyValues tree (see :mod:`vmfworld.maps.keyvalues`) into a
typed model: planes, sides, solids and entities.  Geometry strings are parsed
here so later stages only see numbers.

Usage::

    from vmfworld.maps.vmf_parser import parse_vmf

    with open("de_test.vmf", encoding="utf-8", errors="replace") as fh:
        vmf = parse_vmf(fh.read())

    print(len(vmf.world_solids), "world solids")
    for ent in vmf.entities:
        print(ent.kind.value, ent.classname, ent.origin)

Plane winding
-------------
Hammer writes the three plane points clockwise when seen from outside the
brush.  :meth:`Plane.from_points` turns that into a normal pointing *into*
the solid, so a point is inside a brush when its signed distance to every
side plane is ``>= 0`` (within tolerance).  ``tests/test_vmf_parser.py``
pins this against a Hammer-exported cube.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field

from vmfworld.common.diagnostics import DiagnosticLog, LoadFailure
from vmfworld.common.vecmath import EPS, Vec3, cross, dot, length, normalise, sub
from vmfworld.maps.keyvalues import KeyValueBlock, KeyValuesDocument, as_list, first_scalar, parse_keyvalues

logger = logging.getLogger(__name__)

DEFAULT_SKYNAME = "sky_day01_01"


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Plane:
    """A half-space boundary: ``dot(normal, P) == offset`` on the plane.

    ``normal`` is unit length and points into the solid, so
    :meth:`signed_distance` is positive inside.
    """

    normal: Vec3
    offset: float

    @classmethod
    def from_points(cls, p0: Vec3, p1: Vec3, p2: Vec3) -> Plane | None:
        """Plane through three points in Hammer winding; None if collinear."""

        raw = cross(sub(p2, p1), sub(p0, p1))
        if length(raw) < EPS:
            return None
        normal = normalise(raw)
        return cls(normal=normal, offset=dot(normal, p0))

    def signed_distance(self, point: Vec3) -> float:
        return dot(self.normal, point) - self.offset


@dataclass(frozen=True)
class TextureAxis:
    """One Valve texture projection axis: ``[x y z offset] scale``."""

    direction: Vec3
    offset: float
    scale: float


@dataclass
class BrushSide:
    """A single bounding plane of a solid plus its surface data."""

    id: str
    plane: Plane
    points: tuple[Vec3, Vec3, Vec3]
    material: str = ""
    u_axis: TextureAxis | None = None
    v_axis: TextureAxis | None = None
    rotation: float = 0.0
    lightmap_scale: float = 16.0
    smoothing_groups: str = "0"
    # Side carries a `dispinfo` block (terrain); its base face always renders.
    has_displacement: bool = False


@dataclass
class Solid:
    """A convex brush: the intersection of its sides' half-spaces."""

    id: str
    sides: list[BrushSide] = field(default_factory=list)


class EntityKind(enum.Enum):
    SPAWN_POINT = "spawn_point"
    BRUSH_VOLUME = "brush_volume"
    TRIGGER = "trigger"
    POINT = "point"


#: Player spawn class names in lookup priority order.
SPAWN_CLASSNAMES: tuple[str, ...] = (
    "info_player_start",
    "info_player_counterterrorist",
    "info_player_terrorist",
    "info_player_deathmatch",
)

_TRIGGER_CLASSNAMES: frozenset[str] = frozenset({
    "func_buyzone",
    "func_bomb_target",
    "func_hostage_rescue",
})

# Keys lifted into typed fields / nested blocks that are not entity properties.
_ENTITY_STRUCT_KEYS: frozenset[str] = frozenset({"editor", "hidden", "connections"})


@dataclass
class MapEntity:
    """One ``entity`` block.

    ``kind`` is the closed classification used by the loader; anything the
    model does not type explicitly stays in ``properties``.
    """

    id: str
    classname: str
    kind: EntityKind
    origin: Vec3 | None = None
    angles: Vec3 | None = None
    properties: dict[str, str] = field(default_factory=dict)
    solids: list[Solid] = field(default_factory=list)


@dataclass
class VmfMap:
    version: str = "0"
    skyname: str = DEFAULT_SKYNAME
    world_solids: list[Solid] = field(default_factory=list)
    entities: list[MapEntity] = field(default_factory=list)
    diagnostics: DiagnosticLog = field(default_factory=DiagnosticLog)

    def all_solid_count(self) -> int:
        return len(self.world_solids) + sum(len(e.solids) for e in self.entities)


# ---------------------------------------------------------------------------
# Geometry string parsing
# ---------------------------------------------------------------------------

_FLOAT = r"([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
_POINT_RE = re.compile(rf"\(\s*{_FLOAT}\s+{_FLOAT}\s+{_FLOAT}\s*\)")
_AXIS_RE = re.compile(
    rf"^\s*\[\s*{_FLOAT}\s+{_FLOAT}\s+{_FLOAT}\s+{_FLOAT}\s*\]\s+{_FLOAT}\s*$"
)
_TRIPLE_RE = re.compile(rf"^\s*{_FLOAT}\s+{_FLOAT}\s+{_FLOAT}\s*$")


def parse_plane_points(
    text: str,
    *,
    diagnostics: DiagnosticLog | None = None,
    context: str = "plane",
) -> tuple[Vec3, Vec3, Vec3] | None:
    """Parse ``"(x1 y1 z1) (x2 y2 z2) (x3 y3 z3)"`` into three points."""

    points = [(float(m.group(1)), float(m.group(2)), float(m.group(3))) for m in _POINT_RE.finditer(text or "")]
    if len(points) < 3:
        if diagnostics is not None:
            diagnostics.parse(context=context, message=f"expected 3 plane points, got {len(points)}: {text!r}")
        return None
    return (points[0], points[1], points[2])


def parse_texture_axis(
    text: str | None,
    *,
    diagnostics: DiagnosticLog | None = None,
    context: str = "axis",
) -> TextureAxis | None:
    """Parse ``"[x y z offset] scale"``.

    Returns None (planar UV fallback downstream) when the string is missing
    or malformed; only a malformed string is reported.
    """

    if text is None:
        return None
    m = _AXIS_RE.match(text)
    if m is None:
        if diagnostics is not None:
            diagnostics.parse(context=context, message=f"malformed texture axis {text!r}")
        return None
    x, y, z, offset, scale = (float(m.group(i)) for i in range(1, 6))
    return TextureAxis(direction=(x, y, z), offset=offset, scale=scale if scale != 0.0 else 1.0)


def parse_origin(
    text: str | None,
    *,
    diagnostics: DiagnosticLog | None = None,
    context: str = "origin",
) -> Vec3 | None:
    """Parse a ``"x y z"`` triple (entity origin / angles)."""

    if text is None:
        return None
    m = _TRIPLE_RE.match(text)
    if m is None:
        if diagnostics is not None:
            diagnostics.parse(context=context, message=f"malformed vector {text!r}")
        return None
    return (float(m.group(1)), float(m.group(2)), float(m.group(3)))


def _parse_float(text: str | None, default: float) -> float:
    if text is None:
        return default
    try:
        return float(text)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Entity classification
# ---------------------------------------------------------------------------

def classify_entity(classname: str, *, has_solids: bool) -> EntityKind:
    cn = classname.lower()
    if cn in SPAWN_CLASSNAMES:
        return EntityKind.SPAWN_POINT
    if cn.startswith("trigger_") or cn in _TRIGGER_CLASSNAMES:
        return EntityKind.TRIGGER
    if has_solids:
        return EntityKind.BRUSH_VOLUME
    return EntityKind.POINT


# ---------------------------------------------------------------------------
# Tree walking
# ---------------------------------------------------------------------------

def _parse_side(data: KeyValueBlock, *, solid_id: str, diag: DiagnosticLog) -> BrushSide | None:
    side_id = first_scalar(data.get("id"), "?") or "?"
    ctx = f"solid {solid_id} side {side_id}"

    plane_raw = first_scalar(data.get("plane"))
    if plane_raw is None:
        diag.parse(context=ctx, message="side has no plane")
        return None
    points = parse_plane_points(plane_raw, diagnostics=diag, context=ctx)
    if points is None:
        return None
    plane = Plane.from_points(*points)
    if plane is None:
        diag.parse(context=ctx, message=f"plane points are collinear: {plane_raw!r}")
        return None

    return BrushSide(
        id=side_id,
        plane=plane,
        points=points,
        material=first_scalar(data.get("material"), "") or "",
        u_axis=parse_texture_axis(first_scalar(data.get("uaxis")), diagnostics=diag, context=f"{ctx} uaxis"),
        v_axis=parse_texture_axis(first_scalar(data.get("vaxis")), diagnostics=diag, context=f"{ctx} vaxis"),
        rotation=_parse_float(first_scalar(data.get("rotation")), 0.0),
        lightmap_scale=_parse_float(first_scalar(data.get("lightmapscale")), 16.0),
        smoothing_groups=first_scalar(data.get("smoothing_groups"), "0") or "0",
        has_displacement=any(isinstance(b, dict) for b in as_list(data.get("dispinfo"))),
    )


def _parse_solid(data: object, *, diag: DiagnosticLog) -> Solid | None:
    if not isinstance(data, dict):
        diag.parse(context="solid", message="solid is not a block")
        return None
    solid_id = first_scalar(data.get("id"), "?") or "?"
    solid = Solid(id=solid_id)
    for side_data in as_list(data.get("side")):
        if not isinstance(side_data, dict):
            diag.parse(context=f"solid {solid_id}", message="side is not a block")
            continue
        side = _parse_side(side_data, solid_id=solid_id, diag=diag)
        if side is not None:
            solid.sides.append(side)
    return solid


def _parse_entity(data: object, *, diag: DiagnosticLog) -> MapEntity | None:
    if not isinstance(data, dict):
        diag.parse(context="entity", message="entity is not a block")
        return None

    entity_id = first_scalar(data.get("id"), "?") or "?"
    ctx = f"entity {entity_id}"
    props: dict[str, str] = {}
    for key, value in data.items():
        if key in _ENTITY_STRUCT_KEYS:
            continue
        scalar = first_scalar(value)
        if scalar is not None:
            props[key] = scalar

    solids: list[Solid] = []
    for solid_data in as_list(data.get("solid")):
        # A scalar "solid" is the prop collision mode and stays in properties.
        if not isinstance(solid_data, dict):
            continue
        solid = _parse_solid(solid_data, diag=diag)
        if solid is not None:
            solids.append(solid)

    classname = props.get("classname", "")
    return MapEntity(
        id=entity_id,
        classname=classname,
        kind=classify_entity(classname, has_solids=bool(solids)),
        origin=parse_origin(props.get("origin"), diagnostics=diag, context=f"{ctx} origin"),
        angles=parse_origin(props.get("angles"), diagnostics=diag, context=f"{ctx} angles"),
        properties=props,
        solids=solids,
    )


def map_from_keyvalues(document: KeyValuesDocument) -> VmfMap:
    """Build a :class:`VmfMap` from an already parsed KeyValues document.

    Raises :class:`LoadFailure` when the tree has the wrong shape at the top
    level (e.g. ``world`` is a scalar); anything below a solid degrades to a
    diagnostic instead.
    """

    root = document.root
    diag = document.diagnostics

    world_value = root.get("world")
    worlds = as_list(world_value)
    if any(not isinstance(w, dict) for w in worlds):
        raise LoadFailure("'world' must be a block")
    world: KeyValueBlock = worlds[0] if worlds else {}
    if not worlds:
        diag.parse(context="world", message="map has no world block")
    elif len(worlds) > 1:
        diag.parse(context="world", message=f"{len(worlds)} world blocks; using the first")

    versions = [v for v in as_list(root.get("versioninfo")) if isinstance(v, dict)]
    version = first_scalar(versions[0].get("mapversion"), "0") if versions else "0"

    vmf = VmfMap(
        version=version or "0",
        skyname=first_scalar(world.get("skyname"), DEFAULT_SKYNAME) or DEFAULT_SKYNAME,
        diagnostics=diag,
    )

    for solid_data in as_list(world.get("solid")):
        solid = _parse_solid(solid_data, diag=diag)
        if solid is not None:
            vmf.world_solids.append(solid)

    for entity_data in as_list(root.get("entity")):
        ent = _parse_entity(entity_data, diag=diag)
        if ent is not None:
            vmf.entities.append(ent)

    logger.info(
        "Parsed VMF v%s: %d world solids, %d entities, %d diagnostics",
        vmf.version,
        len(vmf.world_solids),
        len(vmf.entities),
        len(diag),
    )
    return vmf


def parse_vmf(text: str, *, diagnostics: DiagnosticLog | None = None) -> VmfMap:
    """Parse VMF *text* into a :class:`VmfMap`."""

    return map_from_keyvalues(parse_keyvalues(text, diagnostics=diagnostics))
