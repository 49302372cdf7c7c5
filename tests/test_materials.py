from __future__ import annotations

from vmfworld.maps.materials import DEFAULT_MATERIAL_TYPE, MaterialCache, resolve_material_type


def test_resolve_material_type_keywords() -> None:
    assert resolve_material_type("DEV/DEV_MEASUREWALL01A") == "wall"
    assert resolve_material_type("CONCRETE/CONCRETEFLOOR001A") == "concrete"
    assert resolve_material_type("WOOD/WOODWALL009A") == "wood"
    assert resolve_material_type("DE_DUST/DUSAND01") == "sand"
    assert resolve_material_type("GLASS/GLASSWINDOW001A") == "glass"
    assert resolve_material_type("NATURE/BLENDGRASSDIRT01") == "grass"
    assert resolve_material_type("METAL/METALFLOOR001A") == "concrete"
    assert resolve_material_type("") == DEFAULT_MATERIAL_TYPE
    assert resolve_material_type("SOMETHING/UNKNOWN") == DEFAULT_MATERIAL_TYPE


def test_material_cache_memoizes_per_type() -> None:
    cache = MaterialCache(texture_size=8, grid_size=4)
    a = cache.get("brick")
    b = cache.get("BRICK")
    assert a is b
    assert len(cache) == 1
    assert "brick" in cache
    assert a.texture is not None
    assert a.texture.getXSize() == 8
    assert a.transparent is False

    cache.for_material("WOOD/WOODFLOOR01")
    assert len(cache) == 2

    cache.clear()
    assert len(cache) == 0
    assert cache.get("brick") is not a


def test_glass_placeholder_is_transparent_and_untextured() -> None:
    glass = MaterialCache(texture_size=8).get("glass")
    assert glass.texture is None
    assert glass.transparent is True
    assert glass.two_sided is True
    assert glass.color[3] == 0.3


def test_unknown_type_falls_back_to_default_colour() -> None:
    cache = MaterialCache(texture_size=8)
    assert cache.get("nonsense").texture is not None
    assert cache.get("") is cache.get(DEFAULT_MATERIAL_TYPE)
