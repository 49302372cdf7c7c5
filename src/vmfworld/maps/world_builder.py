"""Turn a parsed VMF into chunked, merged render and collision meshes.

This module orchestrates the geometry half of a map load:

1. Reconstruct every world solid and every brush-entity solid once
   (:func:`~vmfworld.maps.brush_geometry.build_solid_fragments`).
2. Classify entities (world, func_detail, func_illusionary, triggers, ...)
   and each fragment's material for render and collision eligibility.
3. Bucket fragments into a fixed-size 3D grid of chunks; render buckets are
   further split by placeholder material type.
4. Merge every bucket into one mesh.
5. Locate the spawn point.

The result is plain data (:class:`WorldBuildResult`); attaching it to a
Panda3D scene or Bullet world is done by :mod:`vmfworld.world.scene_layers`
and :mod:`vmfworld.physics.collision_world`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Sequence

from vmfworld.app_config import BuildConfig
from vmfworld.common.aabb import AABB
from vmfworld.common.diagnostics import DiagnosticLog
from vmfworld.common.vecmath import Vec3, cross, length, normalise, scale, sub, z_up_to_y_up
from vmfworld.maps.brush_geometry import FaceFragment, build_solid_fragments, material_matches
from vmfworld.maps.materials import resolve_material_type
from vmfworld.maps.vmf_parser import SPAWN_CLASSNAMES, EntityKind, MapEntity, Solid, VmfMap

logger = logging.getLogger(__name__)

ChunkKey = tuple[int, int, int]


# ---------------------------------------------------------------------------
# Material classification
# ---------------------------------------------------------------------------

# Never produce geometry at all. NODRAW and CLIP are deliberately absent: they
# are invisible but still collide.
ALWAYS_IGNORED_MATERIALS: tuple[str, ...] = (
    "TOOLS/TOOLSTRIGGER",
    "TOOLS/TOOLSFOG",
    "TOOLS/TOOLSLIGHT",
    "TOOLS/TOOLSAREAPORTAL",
    "TOOLS/TOOLSOCCLUDER",
    "TOOLS/TOOLSSKIP",
    "TOOLS/TOOLSHINT",
)

# Collide but never render.
VISUAL_IGNORED_MATERIALS: tuple[str, ...] = (
    "TOOLS/TOOLSNODRAW",
    "TOOLS/TOOLSCLIP",
    "TOOLS/TOOLSPLAYERCLIP",
    "TOOLS/TOOLSSKIP",
    "TOOLS/TOOLSHINT",
    "TOOLS/TOOLSSKYBOX",
    "TOOLS/TOOLSORIGIN",
)

# Navmesh builds want walkable/blocking tool surfaces in the "visual" output.
NAVMESH_VISUAL_IGNORED_MATERIALS: tuple[str, ...] = (
    "TOOLS/TOOLSSKIP",
    "TOOLS/TOOLSHINT",
    "TOOLS/TOOLSSKYBOX",
    "TOOLS/TOOLSORIGIN",
)

PHYSICS_IGNORED_MATERIALS: tuple[str, ...] = (
    "TOOLS/TOOLSSKYBOX",
    "TOOLS/TOOLSORIGIN",
    "TOOLS/TOOLSTRIGGER",
    "TOOLS/TOOLSSKIP",
    "TOOLS/TOOLSHINT",
    "TOOLS/TOOLSAREAPORTAL",
    "TOOLS/TOOLSOCCLUDER",
    "TOOLS/TOOLSFOG",
    "TOOLS/TOOLSLIGHT",
)

# Brush entities (volumes and effects) that never collide.
_NON_SOLID_CLASSNAMES: frozenset[str] = frozenset({
    "func_illusionary",
    "func_water",
    "func_water_analog",
    "func_dustmotes",
    "func_dustcloud",
    "func_smokevolume",
})

DISPLACEMENT_SUFFIX = "_DISP"


def entity_collides(entity: MapEntity) -> bool:
    """Whether an entity's solids contribute to collision at all."""

    cn = entity.classname.lower()
    if entity.kind is EntityKind.TRIGGER:
        return False
    if cn in _NON_SOLID_CLASSNAMES:
        return False
    # func_brush "solidity" 1 = never solid.
    if cn == "func_brush" and entity.properties.get("solidity", "").strip() == "1":
        return False
    return True


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass
class VisualMesh:
    """One merged render batch: every fragment of one material type in one chunk."""

    chunk: ChunkKey
    material_key: str
    material_type: str
    is_displacement: bool = False
    positions: list[float] = field(default_factory=list)
    normals: list[float] = field(default_factory=list)
    uvs: list[float] = field(default_factory=list)
    # Raw VMF material names merged into this batch.
    source_materials: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        x, y, z = self.chunk
        return f"Map_{x},{y},{z}_{self.material_key}"

    @property
    def triangle_count(self) -> int:
        return len(self.positions) // 9

    def bounds(self) -> AABB | None:
        return AABB.from_flat(self.positions)

    def unique_vertex_count(self, *, grid: float = 1e-4) -> int:
        return len({_weld_key(self.positions, i, grid) for i in range(len(self.positions) // 3)})


@dataclass
class CollisionMesh:
    """Indexed static triangle mesh for one chunk, world-space vertices."""

    chunk: ChunkKey
    vertices: list[float] = field(default_factory=list)
    indices: list[int] = field(default_factory=list)

    @property
    def name(self) -> str:
        x, y, z = self.chunk
        return f"Collision_{x},{y},{z}"

    @property
    def vertex_count(self) -> int:
        return len(self.vertices) // 3

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    def vertex(self, index: int) -> Vec3:
        i = int(index) * 3
        return (self.vertices[i], self.vertices[i + 1], self.vertices[i + 2])

    def triangles(self) -> list[list[float]]:
        """Expand to position-only 9-float triangles."""

        out: list[list[float]] = []
        for t in range(self.triangle_count):
            tri: list[float] = []
            for k in range(3):
                tri.extend(self.vertex(self.indices[t * 3 + k]))
            out.append(tri)
        return out


@dataclass(frozen=True)
class SpawnPoint:
    classname: str
    position: Vec3
    yaw: float = 0.0


@dataclass
class WorldBuildResult:
    visual_meshes: list[VisualMesh] = field(default_factory=list)
    collision_meshes: list[CollisionMesh] = field(default_factory=list)
    spawn: SpawnPoint | None = None
    spawn_points: list[SpawnPoint] = field(default_factory=list)
    skyname: str = ""
    version: str = "0"
    stats: dict[str, int] = field(default_factory=dict)
    diagnostics: DiagnosticLog = field(default_factory=DiagnosticLog)

    @property
    def visual_triangle_count(self) -> int:
        return sum(m.triangle_count for m in self.visual_meshes)

    @property
    def collision_triangle_count(self) -> int:
        return sum(m.triangle_count for m in self.collision_meshes)

    def visual_mesh(self, chunk: ChunkKey, material_key: str) -> VisualMesh | None:
        for m in self.visual_meshes:
            if m.chunk == chunk and m.material_key == material_key:
                return m
        return None

    def to_payload(self) -> dict:
        """JSON-friendly dump of the whole result."""

        def _spawn(sp: SpawnPoint) -> dict:
            return {"classname": sp.classname, "position": list(sp.position), "yaw": sp.yaw}

        return {
            "version": self.version,
            "skyname": self.skyname,
            "spawn": _spawn(self.spawn) if self.spawn is not None else None,
            "spawn_points": [_spawn(sp) for sp in self.spawn_points],
            "stats": dict(self.stats),
            "diagnostics": [d.summary_line() for d in self.diagnostics.items()],
            "visual_meshes": [
                {
                    "name": m.name,
                    "chunk": list(m.chunk),
                    "material": m.material_key,
                    "p": list(m.positions),
                    "n": list(m.normals),
                    "uv": list(m.uvs),
                }
                for m in self.visual_meshes
            ],
            "collision_meshes": [
                {
                    "name": m.name,
                    "chunk": list(m.chunk),
                    "vertices": list(m.vertices),
                    "indices": list(m.indices),
                }
                for m in self.collision_meshes
            ],
        }


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------

def fragment_chunk(frag: FaceFragment, chunk_size: float, *, y_up: bool = True) -> ChunkKey | None:
    """Chunk owning *frag*, from the centroid of its own bounds.

    Cells are laid out in the Z-up source frame: ``floor(c / chunk_size)``
    per source axis.  For Y-up output the same cell is reported in output
    axes, so source cell ``(kx, ky, kz)`` becomes ``(kx, kz, -ky - 1)``.  Faces on
    a cell boundary therefore bucket the same way in both frames.
    """

    bounds = frag.bounds()
    if bounds is None:
        return None
    if not y_up:
        return bounds.chunk_key(chunk_size)

    size = float(chunk_size)
    cx, cy, cz = bounds.center()
    kx = int(math.floor(cx / size))
    ky = int(math.floor(-cz / size))
    kz = int(math.floor(cy / size))
    return (kx, kz, -ky - 1)


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------

def _weld_key(flat: Sequence[float], index: int, grid: float) -> tuple[int, int, int]:
    i = index * 3
    inv = 1.0 / grid
    return (
        int(math.floor(flat[i] * inv + 0.5)),
        int(math.floor(flat[i + 1] * inv + 0.5)),
        int(math.floor(flat[i + 2] * inv + 0.5)),
    )


def merge_visual_fragments(
    chunk: ChunkKey,
    material_key: str,
    material_type: str,
    fragments: Sequence[FaceFragment],
) -> VisualMesh:
    """Concatenate *fragments* and recompute one flat normal per triangle."""

    mesh = VisualMesh(
        chunk=chunk,
        material_key=material_key,
        material_type=material_type,
        is_displacement=material_key.endswith(DISPLACEMENT_SUFFIX),
    )
    seen_materials: set[str] = set()
    for frag in fragments:
        mesh.positions.extend(frag.positions)
        mesh.uvs.extend(frag.uvs)
        if frag.material not in seen_materials:
            seen_materials.add(frag.material)
            mesh.source_materials.append(frag.material)

        p = frag.positions
        for t in range(frag.triangle_count):
            b = t * 9
            p0 = (p[b], p[b + 1], p[b + 2])
            p1 = (p[b + 3], p[b + 4], p[b + 5])
            p2 = (p[b + 6], p[b + 7], p[b + 8])
            n = cross(sub(p1, p0), sub(p2, p0))
            if length(n) <= 1e-12:
                # Sliver triangle: keep the fragment's plane normal.
                n = (frag.normals[b], frag.normals[b + 1], frag.normals[b + 2])
            n = normalise(n)
            mesh.normals.extend(n * 3)
    return mesh


def merge_collision_fragments(
    chunk: ChunkKey,
    fragments: Sequence[FaceFragment],
    *,
    weld_grid: float = 1e-4,
) -> CollisionMesh:
    """Pool *fragments* into one indexed mesh, welding shared vertices."""

    mesh = CollisionMesh(chunk=chunk)
    index_of: dict[tuple[int, int, int], int] = {}
    for frag in fragments:
        p = frag.positions
        for vi in range(len(p) // 3):
            key = _weld_key(p, vi, weld_grid)
            idx = index_of.get(key)
            if idx is None:
                idx = len(index_of)
                index_of[key] = idx
                mesh.vertices.extend((p[vi * 3], p[vi * 3 + 1], p[vi * 3 + 2]))
            mesh.indices.append(idx)
    return mesh


# ---------------------------------------------------------------------------
# Spawn points
# ---------------------------------------------------------------------------

def find_spawn_points(entities: Sequence[MapEntity], config: BuildConfig) -> list[SpawnPoint]:
    """All spawn entities with a usable origin, best candidate first.

    Priority follows :data:`~vmfworld.maps.vmf_parser.SPAWN_CLASSNAMES`;
    entities of the same class keep map order.
    """

    priority = {cn: i for i, cn in enumerate(SPAWN_CLASSNAMES)}
    found: list[tuple[int, int, SpawnPoint]] = []
    for order, ent in enumerate(entities):
        if ent.kind is not EntityKind.SPAWN_POINT:
            continue
        if ent.origin is None:
            logger.warning("Spawn entity %s (%s) has no usable origin", ent.id, ent.classname)
            continue
        pos = scale(ent.origin, config.scale)
        if config.y_up:
            pos = z_up_to_y_up(pos)
            pos = (pos[0], pos[1] + config.spawn_height_offset, pos[2])
        else:
            pos = (pos[0], pos[1], pos[2] + config.spawn_height_offset)
        yaw = ent.angles[1] if ent.angles is not None else 0.0
        found.append((priority.get(ent.classname.lower(), len(priority)), order, SpawnPoint(
            classname=ent.classname,
            position=pos,
            yaw=float(yaw),
        )))
    found.sort(key=lambda item: (item[0], item[1]))
    return [sp for _, _, sp in found]


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class WorldBuilder:
    """One-shot batch builder: ``WorldBuilder(config).build(vmf_map)``.

    The builder keeps no state between :meth:`build` calls other than its
    configuration and material resolver; every call starts from empty
    buckets.
    """

    def __init__(
        self,
        config: BuildConfig | None = None,
        *,
        material_resolver: Callable[[str], str] = resolve_material_type,
    ) -> None:
        self.config = config if config is not None else BuildConfig()
        self._resolve_material = material_resolver

    @property
    def visual_ignored_materials(self) -> tuple[str, ...]:
        if self.config.for_navmesh:
            return NAVMESH_VISUAL_IGNORED_MATERIALS
        return VISUAL_IGNORED_MATERIALS

    def build(self, vmf_map: VmfMap, *, diagnostics: DiagnosticLog | None = None) -> WorldBuildResult:
        diag = diagnostics if diagnostics is not None else vmf_map.diagnostics
        cfg = self.config

        visual_buckets: dict[ChunkKey, dict[str, list[FaceFragment]]] = {}
        material_types: dict[str, str] = {}
        physics_buckets: dict[ChunkKey, list[FaceFragment]] = {}
        stats = {
            "solids_total": 0,
            "solids_skipped": 0,
            "fragments": 0,
            "brush_entities": 0,
            "non_colliding_entities": 0,
        }

        def process(solid: Solid, *, collides: bool) -> None:
            stats["solids_total"] += 1
            fragments = build_solid_fragments(
                solid,
                ignored_materials=ALWAYS_IGNORED_MATERIALS,
                filter_materials=True,
                epsilon=cfg.epsilon,
                max_sides=cfg.max_sides_per_solid,
                world_scale=cfg.scale,
                y_up=cfg.y_up,
                texture_size=cfg.texture_size,
                diagnostics=diag,
            )
            if not fragments:
                stats["solids_skipped"] += 1
                return
            stats["fragments"] += len(fragments)

            for frag in fragments:
                chunk = fragment_chunk(frag, cfg.chunk_size, y_up=cfg.y_up)
                if chunk is None:
                    continue
                if frag.has_displacement or not material_matches(frag.material, self.visual_ignored_materials):
                    mat_type = self._resolve_material(frag.material)
                    key = mat_type + DISPLACEMENT_SUFFIX if frag.has_displacement else mat_type
                    material_types[key] = mat_type
                    visual_buckets.setdefault(chunk, {}).setdefault(key, []).append(frag)

                if collides and not material_matches(frag.material, PHYSICS_IGNORED_MATERIALS):
                    physics_buckets.setdefault(chunk, []).append(frag)

        # -- 1. World solids ------------------------------------------------
        for solid in vmf_map.world_solids:
            process(solid, collides=True)

        # -- 2. Brush entities ----------------------------------------------
        for ent in vmf_map.entities:
            if not ent.solids:
                continue
            stats["brush_entities"] += 1
            collides = entity_collides(ent)
            if not collides:
                stats["non_colliding_entities"] += 1
            logger.debug("Entity %s (%s): %d solids, collides=%s", ent.id, ent.classname, len(ent.solids), collides)
            for solid in ent.solids:
                process(solid, collides=collides)

        # -- 3. Merge -------------------------------------------------------
        result = WorldBuildResult(
            skyname=vmf_map.skyname,
            version=vmf_map.version,
            diagnostics=diag,
        )
        for chunk in sorted(visual_buckets):
            for key in sorted(visual_buckets[chunk]):
                frags = visual_buckets[chunk][key]
                mesh = merge_visual_fragments(chunk, key, material_types[key], frags)
                if mesh.triangle_count:
                    result.visual_meshes.append(mesh)
        for chunk in sorted(physics_buckets):
            cmesh = merge_collision_fragments(chunk, physics_buckets[chunk], weld_grid=cfg.collision_weld_grid)
            if cmesh.triangle_count:
                result.collision_meshes.append(cmesh)

        # -- 4. Spawn -------------------------------------------------------
        result.spawn_points = find_spawn_points(vmf_map.entities, cfg)
        result.spawn = result.spawn_points[0] if result.spawn_points else None
        if result.spawn is None:
            logger.warning("No spawn point entity found")

        stats["visual_meshes"] = len(result.visual_meshes)
        stats["collision_meshes"] = len(result.collision_meshes)
        stats["visual_triangles"] = result.visual_triangle_count
        stats["collision_triangles"] = result.collision_triangle_count
        result.stats = stats

        logger.info(
            "World build: %d solids (%d skipped), %d visual meshes / %d tris, %d collision meshes / %d tris",
            stats["solids_total"],
            stats["solids_skipped"],
            stats["visual_meshes"],
            stats["visual_triangles"],
            stats["collision_meshes"],
            stats["collision_triangles"],
        )
        return result
