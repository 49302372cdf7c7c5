from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BuildConfig:
    # Source units -> game units. Applied before chunking, so chunk_size is in game units.
    scale: float = 0.02
    # Edge length of one spatial chunk (game units). Larger = fewer draw calls / bodies,
    # smaller = finer culling granularity.
    chunk_size: float = 20.0
    # Plane / containment / dedup tolerance in source map units.
    epsilon: float = 0.1
    # Solids with more sides than this are rejected before the O(N^3) vertex search.
    max_sides_per_solid: int = 128
    # Source materials are large; UVs are divided by this texel size.
    texture_size: float = 128.0
    # Rotate Z-up source geometry into a Y-up frame. Panda3D is Z-up, so the
    # preview path turns this off.
    y_up: bool = True
    # Navmesh builds keep nodraw/clip faces in the visual output.
    for_navmesh: bool = False
    # Added to the spawn point's up axis (game units).
    spawn_height_offset: float = 0.0
    # Grid used when welding collision vertices into an indexed mesh (game units).
    collision_weld_grid: float = 1e-4

    def __post_init__(self) -> None:
        if self.chunk_size <= 0.0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.scale <= 0.0:
            raise ValueError(f"scale must be positive, got {self.scale}")
        if self.max_sides_per_solid < 4:
            raise ValueError(f"max_sides_per_solid must be >= 4, got {self.max_sides_per_solid}")
        if self.epsilon <= 0.0:
            raise ValueError(f"epsilon must be positive, got {self.epsilon}")
        if self.collision_weld_grid <= 0.0:
            raise ValueError(f"collision_weld_grid must be positive, got {self.collision_weld_grid}")
