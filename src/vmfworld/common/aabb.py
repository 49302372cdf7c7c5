from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from vmfworld.common.vecmath import Vec3


@dataclass(frozen=True)
class AABB:
    minimum: Vec3
    maximum: Vec3

    @classmethod
    def from_flat(cls, coords: Iterable[float]) -> AABB | None:
        """Bounds of a flat ``x0 y0 z0 x1 y1 z1 ...`` list, or None when empty."""

        vals = list(coords)
        if len(vals) < 3:
            return None
        xs = vals[0::3]
        ys = vals[1::3]
        zs = vals[2::3]
        return cls(minimum=(min(xs), min(ys), min(zs)), maximum=(max(xs), max(ys), max(zs)))

    def center(self) -> Vec3:
        return (
            (self.minimum[0] + self.maximum[0]) * 0.5,
            (self.minimum[1] + self.maximum[1]) * 0.5,
            (self.minimum[2] + self.maximum[2]) * 0.5,
        )

    def chunk_key(self, chunk_size: float) -> tuple[int, int, int]:
        size = float(chunk_size)
        c = self.center()
        return (
            int(math.floor(c[0] / size)),
            int(math.floor(c[1] / size)),
            int(math.floor(c[2] / size)),
        )
