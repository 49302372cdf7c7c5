"""Convex brush reconstruction from bounding planes.

Converts a :class:`~vmfworld.maps.vmf_parser.Solid` into per-side renderable
triangle fragments.  The algorithm:

1. Intersect every triple of side planes (``i < j < k``) to get candidate
   corner points.
2. Keep only candidates that lie inside (or on) every side plane.
3. Weld candidates closer than the tolerance.
4. For each side, gather the welded points lying on its plane.
5. Order them counter-clockwise (seen from outside) around their centroid.
6. Fan-triangulate the convex polygon.
7. Compute Valve texture-axis UVs (planar fallback when the axes are absent).
8. Scale to game units and rotate from Z-up to Y-up.

Each surviving side yields its own :class:`FaceFragment` tagged with its
material, so the caller can bucket visual and collision output separately
without reconstructing the solid twice.

Cost is O(N^3) in the number of sides.  Brushes are small (a box has 6
sides) but ``max_sides`` rejects malformed or hostile input before the
search starts.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from vmfworld.common.aabb import AABB
from vmfworld.common.diagnostics import DiagnosticLog
from vmfworld.common.vecmath import Vec3, add, cross, distance, dot, normalise, scale, sub, z_up_to_y_up
from vmfworld.maps.vmf_parser import BrushSide, Plane, Solid

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Tool materials hidden by default when a caller asks for visual output
#: straight from the reconstructor.
DEFAULT_IGNORED_MATERIALS: tuple[str, ...] = (
    "TOOLS/TOOLSNODRAW",
    "TOOLS/TOOLSSKYBOX",
    "TOOLS/TOOLSCLIP",
    "TOOLS/TOOLSTRIGGER",
    "TOOLS/TOOLSSKIP",
    "TOOLS/TOOLSHINT",
    "TOOLS/TOOLSORIGIN",
    "TOOLS/TOOLSAREAPORTAL",
    "TOOLS/TOOLSFOG",
    "TOOLS/TOOLSLIGHT",
)

#: Below this |n1 . (n2 x n3)| three planes have no unique intersection.
PARALLEL_EPS = 1e-6

#: Default plane / weld tolerance in source map units.
DEFAULT_EPSILON = 0.1

#: Default cap on sides per solid.
DEFAULT_MAX_SIDES = 128


# ---------------------------------------------------------------------------
# Output data structures
# ---------------------------------------------------------------------------

@dataclass
class FaceFragment:
    """Triangulated output of one side of one solid.

    Flat float lists, three vertices per triangle: ``positions`` and
    ``normals`` carry 9 floats per triangle, ``uvs`` 6.
    """

    material: str
    side_id: str
    has_displacement: bool = False
    polygon_vertex_count: int = 0
    positions: list[float] = field(default_factory=list)
    normals: list[float] = field(default_factory=list)
    uvs: list[float] = field(default_factory=list)

    @property
    def triangle_count(self) -> int:
        return len(self.positions) // 9

    def bounds(self) -> AABB | None:
        return AABB.from_flat(self.positions)


# ---------------------------------------------------------------------------
# Vertex discovery
# ---------------------------------------------------------------------------

def intersect_planes(a: Plane, b: Plane, c: Plane) -> Vec3 | None:
    """Single point shared by three planes, or None when (near) parallel.

    ``P = (d1 (n2 x n3) + d2 (n3 x n1) + d3 (n1 x n2)) / (n1 . (n2 x n3))``
    """

    n2xn3 = cross(b.normal, c.normal)
    denom = dot(a.normal, n2xn3)
    if abs(denom) < PARALLEL_EPS:
        return None
    n3xn1 = cross(c.normal, a.normal)
    n1xn2 = cross(a.normal, b.normal)
    p = add(add(scale(n2xn3, a.offset), scale(n3xn1, b.offset)), scale(n1xn2, c.offset))
    return scale(p, 1.0 / denom)


def _inside_all(point: Vec3, planes: Sequence[Plane], epsilon: float) -> bool:
    for plane in planes:
        if plane.signed_distance(point) < -epsilon:
            return False
    return True


def _weld(points: Iterable[Vec3], tolerance: float) -> list[Vec3]:
    unique: list[Vec3] = []
    for p in points:
        for u in unique:
            if distance(p, u) < tolerance:
                break
        else:
            unique.append(p)
    return unique


def reconstruct_vertices(planes: Sequence[Plane], *, epsilon: float = DEFAULT_EPSILON) -> list[Vec3]:
    """Corner points of the convex polytope bounded by *planes* (map units)."""

    count = len(planes)
    candidates: list[Vec3] = []
    for i in range(count - 2):
        for j in range(i + 1, count - 1):
            for k in range(j + 1, count):
                p = intersect_planes(planes[i], planes[j], planes[k])
                if p is None:
                    continue
                if _inside_all(p, planes, epsilon):
                    candidates.append(p)
    return _weld(candidates, epsilon)


# ---------------------------------------------------------------------------
# Polygon assembly
# ---------------------------------------------------------------------------

def _sort_polygon(points: list[Vec3], outward: Vec3) -> list[Vec3]:
    """Order coplanar *points* counter-clockwise as seen along -*outward*."""

    n = len(points)
    centre = (
        sum(p[0] for p in points) / n,
        sum(p[1] for p in points) / n,
        sum(p[2] for p in points) / n,
    )

    up = (0.0, 1.0, 0.0)
    if abs(dot(outward, up)) > 0.99:
        up = (1.0, 0.0, 0.0)
    u = normalise(cross(outward, up))
    v = cross(outward, u)

    def angle(p: Vec3) -> float:
        d = sub(p, centre)
        return math.atan2(dot(d, v), dot(d, u))

    return sorted(points, key=angle)


def _fan_triangulate(polygon: list[Vec3]) -> list[tuple[Vec3, Vec3, Vec3]]:
    if len(polygon) < 3:
        return []
    v0 = polygon[0]
    return [(v0, polygon[i], polygon[i + 1]) for i in range(1, len(polygon) - 1)]


# ---------------------------------------------------------------------------
# UV computation
# ---------------------------------------------------------------------------

def _planar_uv(vertex: Vec3, outward: Vec3, texture_size: float) -> tuple[float, float]:
    # Drop the axis the face is most aligned with.
    ax, ay, az = abs(outward[0]), abs(outward[1]), abs(outward[2])
    if az >= ax and az >= ay:
        u, v = vertex[0], vertex[1]
    elif ay >= ax:
        u, v = vertex[0], vertex[2]
    else:
        u, v = vertex[1], vertex[2]
    return (u / texture_size, v / texture_size)


def compute_uv(vertex: Vec3, side: BrushSide, texture_size: float = 128.0) -> tuple[float, float]:
    """Texture coordinates for *vertex* (map units) on *side*.

    ``u = (pos . u_dir + u_offset) / u_scale / texture_size`` and likewise
    for v.  Sides without both axes fall back to a planar projection.
    """

    ts = texture_size if texture_size > 0.0 else 1.0
    ua, va = side.u_axis, side.v_axis
    if ua is None or va is None:
        outward = scale(side.plane.normal, -1.0)
        return _planar_uv(vertex, outward, ts)

    us = ua.scale if ua.scale != 0.0 else 1.0
    vs = va.scale if va.scale != 0.0 else 1.0
    u = (dot(vertex, ua.direction) + ua.offset) / us
    v = (dot(vertex, va.direction) + va.offset) / vs
    return (u / ts, v / ts)


# ---------------------------------------------------------------------------
# Material filtering
# ---------------------------------------------------------------------------

def material_matches(material: str, patterns: Iterable[str]) -> bool:
    """Case-insensitive substring match of *material* against *patterns*."""

    upper = (material or "").upper()
    return any(p.upper() in upper for p in patterns)


# ---------------------------------------------------------------------------
# Core: solid -> fragments
# ---------------------------------------------------------------------------

def build_solid_fragments(
    solid: Solid,
    *,
    ignored_materials: Sequence[str] = DEFAULT_IGNORED_MATERIALS,
    filter_materials: bool = True,
    epsilon: float = DEFAULT_EPSILON,
    max_sides: int = DEFAULT_MAX_SIDES,
    world_scale: float = 1.0,
    y_up: bool = True,
    texture_size: float = 128.0,
    diagnostics: DiagnosticLog | None = None,
) -> list[FaceFragment]:
    """Reconstruct *solid* into one :class:`FaceFragment` per visible side.

    Parameters
    ----------
    solid:
        The brush to convert.
    ignored_materials:
        Material substrings whose sides are skipped when *filter_materials*
        is set.  Displacement sides are never skipped.
    epsilon:
        Containment, on-plane and weld tolerance in map units.
    max_sides:
        Solids with more sides are rejected (reported, empty result).
    world_scale:
        Uniform scale applied to positions after reconstruction.  UVs are
        computed in map units before scaling.
    y_up:
        Rotate the output -90 degrees about X (Z-up -> Y-up).

    Returns
    -------
    list[FaceFragment]
        Empty for degenerate solids; never raises for bad geometry.
    """

    ctx = f"solid {solid.id}"
    sides = solid.sides
    if len(sides) < 4:
        if diagnostics is not None:
            diagnostics.geometry(context=ctx, message=f"only {len(sides)} sides; cannot bound a volume")
        return []
    if len(sides) > max_sides:
        if diagnostics is not None:
            diagnostics.geometry(context=ctx, message=f"{len(sides)} sides exceeds limit of {max_sides}; skipped")
        return []

    planes = [s.plane for s in sides]
    vertices = reconstruct_vertices(planes, epsilon=epsilon)
    if len(vertices) < 4:
        if diagnostics is not None:
            diagnostics.geometry(
                context=ctx,
                message=f"{len(sides)} sides produced only {len(vertices)} unique vertices",
            )
        return []

    def to_output(p: Vec3) -> Vec3:
        p = scale(p, world_scale)
        return z_up_to_y_up(p) if y_up else p

    fragments: list[FaceFragment] = []
    for side in sides:
        if (
            filter_materials
            and not side.has_displacement
            and side.material
            and material_matches(side.material, ignored_materials)
        ):
            continue

        on_plane = [v for v in vertices if abs(side.plane.signed_distance(v)) < epsilon]
        if len(on_plane) < 3:
            if diagnostics is not None:
                diagnostics.geometry(
                    context=f"{ctx} side {side.id}",
                    message=f"only {len(on_plane)} vertices on plane; face skipped",
                )
            continue

        outward = scale(side.plane.normal, -1.0)
        polygon = _sort_polygon(on_plane, outward)
        normal_out = z_up_to_y_up(outward) if y_up else outward

        frag = FaceFragment(
            material=side.material,
            side_id=side.id,
            has_displacement=side.has_displacement,
            polygon_vertex_count=len(polygon),
        )
        for tri in _fan_triangulate(polygon):
            for vertex in tri:
                frag.positions.extend(to_output(vertex))
                frag.normals.extend(normal_out)
                frag.uvs.extend(compute_uv(vertex, side, texture_size))
        fragments.append(frag)

    logger.debug("%s: %d vertices, %d fragments", ctx, len(vertices), len(fragments))
    return fragments
