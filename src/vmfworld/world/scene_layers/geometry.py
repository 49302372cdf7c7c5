from __future__ import annotations

from typing import Sequence

from panda3d.core import (
    DepthOffsetAttrib,
    Geom,
    GeomNode,
    GeomTriangles,
    GeomVertexData,
    GeomVertexFormat,
    GeomVertexWriter,
    TransparencyAttrib,
)

from vmfworld.maps.materials import MaterialCache
from vmfworld.maps.world_builder import VisualMesh


def build_visual_geom_node(mesh: VisualMesh) -> GeomNode:
    """One `GeomNode` holding the whole merged batch (V3n3t2, triangle list)."""

    vdata = GeomVertexData(mesh.name, GeomVertexFormat.getV3n3t2(), Geom.UHStatic)
    vdata.setNumRows(mesh.triangle_count * 3)
    vw = GeomVertexWriter(vdata, "vertex")
    nw = GeomVertexWriter(vdata, "normal")
    tw = GeomVertexWriter(vdata, "texcoord")
    prim = GeomTriangles(Geom.UHStatic)

    p = mesh.positions
    n = mesh.normals
    uv = mesh.uvs
    for vi in range(mesh.triangle_count * 3):
        vw.addData3f(float(p[vi * 3]), float(p[vi * 3 + 1]), float(p[vi * 3 + 2]))
        nw.addData3f(float(n[vi * 3]), float(n[vi * 3 + 1]), float(n[vi * 3 + 2]))
        tw.addData2f(float(uv[vi * 2]), float(uv[vi * 2 + 1]))
    for t in range(mesh.triangle_count):
        base = t * 3
        prim.addVertices(base, base + 1, base + 2)

    geom = Geom(vdata)
    geom.addPrimitive(prim)
    geom_node = GeomNode(f"{mesh.name}-geom")
    geom_node.addGeom(geom)
    return geom_node


def attach_visual_meshes(render, *, meshes: Sequence[VisualMesh], materials: MaterialCache) -> list:
    """Attach every merged batch under *render*; returns the created NodePaths."""

    nodepaths = []
    for mesh in meshes:
        if mesh.triangle_count == 0:
            continue
        np = render.attachNewNode(build_visual_geom_node(mesh))
        mat = materials.get(mesh.material_type)

        np.setTwoSided(bool(mat.two_sided))
        if mat.texture is not None:
            np.setTexture(mat.texture, 1)
        np.setColor(*mat.color)
        if mat.transparent:
            np.setTransparency(TransparencyAttrib.M_alpha)
            np.setBin("transparent", 0)
            np.setDepthWrite(False)
        if mesh.is_displacement:
            # Displacement base faces are coplanar with neighbouring brushes; draw them on top.
            np.setAttrib(DepthOffsetAttrib.make(1))

        # Static world geometry: never moves after load.
        np.node().setFinal(True)
        nodepaths.append(np)
    return nodepaths
