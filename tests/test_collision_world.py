from __future__ import annotations

import pytest

from vmfworld.app_config import BuildConfig
from vmfworld.maps.vmf_parser import parse_vmf
from vmfworld.maps.world_builder import WorldBuilder
from vmfworld.physics.collision_world import CollisionWorld


def _meshes(make_vmf, box_solid, **config):
    text = make_vmf(world_solids=(
        box_solid((0, 0, 0), (64, 64, 64)),
        box_solid((2000, 0, 0), (2064, 64, 64)),
    ))
    return WorldBuilder(BuildConfig(**config)).build(parse_vmf(text)).collision_meshes


def test_one_static_body_per_chunk(make_vmf, box_solid) -> None:
    meshes = _meshes(make_vmf, box_solid)
    world = CollisionWorld(meshes=meshes)
    bodies = world.static_bodies
    assert len(bodies) == 2
    assert [b.getName() for b in bodies] == [m.name for m in meshes]
    assert all(b.getMass() == 0.0 for b in bodies)
    assert world.triangle_count == 24


def test_ray_hits_top_of_cube(make_vmf, box_solid) -> None:
    world = CollisionWorld(meshes=_meshes(make_vmf, box_solid, scale=1.0, y_up=False))
    hit = world.ray_closest((32.0, 32.0, 200.0), (32.0, 32.0, -100.0))
    assert hit.hasHit()
    assert hit.getHitPos().z == pytest.approx(64.0, abs=1e-3)

    miss = world.ray_closest((500.0, 32.0, 200.0), (500.0, 32.0, -100.0))
    assert not miss.hasHit()


def test_detach_removes_bodies(make_vmf, box_solid) -> None:
    world = CollisionWorld(meshes=_meshes(make_vmf, box_solid))
    world.detach()
    assert world.static_bodies == []
    assert world.triangle_count == 0
    assert world.bullet_world.getNumRigidBodies() == 0
