from __future__ import annotations

import logging
from dataclasses import dataclass

from panda3d.core import PNMImage, Texture

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------

DEFAULT_MATERIAL_TYPE = "concrete"

# Keyword -> placeholder type. Checked in order; the first substring hit wins.
_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("concrete", "concrete"),
    ("crete", "concrete"),
    ("cement", "concrete"),
    ("floor", "concrete"),
    ("wood", "wood"),
    ("crate", "crate"),
    ("crt", "crate"),
    ("box", "crate"),
    ("brick", "brick"),
    ("metal", "metal"),
    ("steel", "metal"),
    ("iron", "metal"),
    ("wall", "wall"),
    ("stone", "stone"),
    ("rock", "stone"),
    ("aaatrigger", "glass"),
    ("glass", "glass"),
    ("window", "glass"),
    ("grass", "grass"),
    ("dirt", "dirt"),
    ("ground", "dirt"),
    ("sand", "sand"),
    ("desert", "sand"),
    ("dust", "sand"),
    ("carpet", "carpet"),
    ("rug", "carpet"),
    ("tile", "tile"),
)

_TYPE_COLORS: dict[str, tuple[float, float, float]] = {
    "concrete": (0x88 / 255.0, 0x88 / 255.0, 0x88 / 255.0),
    "brick": (0xA0 / 255.0, 0x50 / 255.0, 0x40 / 255.0),
    "wood": (0x8B / 255.0, 0x5A / 255.0, 0x2B / 255.0),
    "metal": (0xAA / 255.0, 0xAA / 255.0, 0xAA / 255.0),
    "grass": (0x44 / 255.0, 0xAA / 255.0, 0x44 / 255.0),
    "dirt": (0x6B / 255.0, 0x44 / 255.0, 0x23 / 255.0),
    "stone": (0x55 / 255.0, 0x55 / 255.0, 0x55 / 255.0),
    "crate": (0xCD / 255.0, 0xA4 / 255.0, 0x34 / 255.0),
    "glass": (0x66 / 255.0, 0xAA / 255.0, 0xFF / 255.0),
    "carpet": (0x80 / 255.0, 0x00 / 255.0, 0x20 / 255.0),
    "sand": (0xE6 / 255.0, 0xCF / 255.0, 0xA1 / 255.0),
    "wall": (0xAA / 255.0, 0xAA / 255.0, 0xAA / 255.0),
    "tile": (0xCC / 255.0, 0xCC / 255.0, 0xCC / 255.0),
}

_TRANSPARENT_TYPES: frozenset[str] = frozenset({"glass"})


def resolve_material_type(material_name: str) -> str:
    """Fuzzy-match a raw VMF material path to a placeholder type name."""

    lower = (material_name or "").lower()
    for keyword, type_name in _KEYWORDS:
        if keyword in lower:
            return type_name
    return DEFAULT_MATERIAL_TYPE


@dataclass(frozen=True)
class PlaceholderMaterial:
    """Generated stand-in for a real surface material."""

    type_name: str
    color: tuple[float, float, float, float]
    texture: Texture | None
    transparent: bool = False
    two_sided: bool = False


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class MaterialCache:
    """Memoize one :class:`PlaceholderMaterial` per type name.

    Placeholders do not depend on the map, so a single cache can be shared
    across loads.  It never evicts on its own; the owner decides when to
    :meth:`clear` it (e.g. on renderer shutdown).

    Typical usage::

        cache = MaterialCache()
        mat = cache.get(resolve_material_type("DEV/DEV_MEASUREWALL01A"))
    """

    def __init__(self, *, texture_size: int = 64, grid_size: int = 16) -> None:
        self._texture_size = max(2, int(texture_size))
        self._grid_size = max(1, int(grid_size))
        self._cache: dict[str, PlaceholderMaterial] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._cache

    def get(self, type_name: str) -> PlaceholderMaterial:
        key = (type_name or DEFAULT_MATERIAL_TYPE).lower()
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        mat = self._create(key)
        self._cache[key] = mat
        logger.debug("material cache: created placeholder %r (%d cached)", key, len(self._cache))
        return mat

    def for_material(self, material_name: str) -> PlaceholderMaterial:
        return self.get(resolve_material_type(material_name))

    def clear(self) -> None:
        self._cache.clear()

    # -- private helpers ----------------------------------------------------

    def _create(self, type_name: str) -> PlaceholderMaterial:
        r, g, b = _TYPE_COLORS.get(type_name, _TYPE_COLORS[DEFAULT_MATERIAL_TYPE])
        if type_name in _TRANSPARENT_TYPES:
            return PlaceholderMaterial(
                type_name=type_name,
                color=(r, g, b, 0.3),
                texture=None,
                transparent=True,
                two_sided=True,
            )
        return PlaceholderMaterial(
            type_name=type_name,
            color=(1.0, 1.0, 1.0, 1.0),
            texture=self._make_grid_texture(type_name, (r, g, b)),
        )

    def _make_grid_texture(self, type_name: str, rgb: tuple[float, float, float]) -> Texture:
        size = self._texture_size
        grid = self._grid_size
        img = PNMImage(size, size)
        r, g, b = rgb
        for y in range(size):
            for x in range(size):
                if x % grid == 0 or y % grid == 0:
                    img.setXel(x, y, r * 0.6, g * 0.6, b * 0.6)
                else:
                    img.setXel(x, y, r, g, b)

        tex = Texture(f"placeholder-{type_name}")
        tex.load(img)
        tex.setWrapU(Texture.WM_repeat)
        tex.setWrapV(Texture.WM_repeat)
        tex.setMinfilter(Texture.FT_linear_mipmap_linear)
        tex.setMagfilter(Texture.FT_linear)
        return tex
