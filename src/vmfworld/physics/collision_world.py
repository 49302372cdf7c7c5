from __future__ import annotations

import logging
from typing import Sequence

from panda3d.bullet import (
    BulletRigidBodyNode,
    BulletTriangleMesh,
    BulletTriangleMeshShape,
    BulletWorld,
)
from panda3d.core import BitMask32, LVector3f, NodePath, Point3

from vmfworld.maps.world_builder import CollisionMesh

logger = logging.getLogger(__name__)


class CollisionWorld:
    """Bullet world holding one static triangle-mesh body per collision chunk."""

    def __init__(self, *, meshes: Sequence[CollisionMesh], render=None) -> None:
        self._bworld = BulletWorld()
        # Static-only world: queries, no simulation.
        self._bworld.setGravity(LVector3f(0, 0, 0))

        self._static_bodies: list[BulletRigidBodyNode] = []
        self._nodepaths: list[NodePath] = []
        self._triangle_count = 0

        for mesh in meshes:
            if mesh.triangle_count == 0:
                continue
            tri_mesh = BulletTriangleMesh()
            for t in range(mesh.triangle_count):
                i0, i1, i2 = mesh.indices[t * 3 : t * 3 + 3]
                tri_mesh.addTriangle(
                    Point3(*mesh.vertex(i0)),
                    Point3(*mesh.vertex(i1)),
                    Point3(*mesh.vertex(i2)),
                    False,
                )

            shape = BulletTriangleMeshShape(tri_mesh, dynamic=False)
            body = BulletRigidBodyNode(mesh.name)
            body.setMass(0.0)
            body.addShape(shape)
            np = render.attachNewNode(body) if render is not None else NodePath(body)
            self._bworld.attachRigidBody(body)
            self._static_bodies.append(body)
            self._nodepaths.append(np)
            self._triangle_count += mesh.triangle_count

        logger.debug("Collision world: %d static bodies, %d triangles", len(self._static_bodies), self._triangle_count)

    @property
    def bullet_world(self) -> BulletWorld:
        return self._bworld

    @property
    def static_bodies(self) -> list[BulletRigidBodyNode]:
        return list(self._static_bodies)

    @property
    def triangle_count(self) -> int:
        return self._triangle_count

    def ray_closest(self, from_pos, to_pos):
        return self._bworld.rayTestClosest(Point3(*from_pos), Point3(*to_pos), BitMask32.allOn())

    def detach(self) -> None:
        for body in self._static_bodies:
            self._bworld.removeRigidBody(body)
        for np in self._nodepaths:
            np.removeNode()
        self._static_bodies.clear()
        self._nodepaths.clear()
        self._triangle_count = 0
