from __future__ import annotations

from panda3d.core import InternalName, NodePath, TransparencyAttrib

from vmfworld.maps.materials import MaterialCache
from vmfworld.maps.vmf_parser import parse_vmf
from vmfworld.maps.world_builder import WorldBuilder
from vmfworld.world.scene_layers import attach_visual_meshes, build_visual_geom_node


def _result(make_vmf, box_solid):
    text = make_vmf(world_solids=(
        box_solid((0, 0, 0), (64, 64, 64)),
        box_solid((64, 0, 0), (128, 64, 64), material="GLASS/GLASSWINDOW001A"),
    ))
    return WorldBuilder().build(parse_vmf(text))


def test_geom_node_holds_every_vertex_row(make_vmf, box_solid) -> None:
    mesh = _result(make_vmf, box_solid).visual_mesh((0, 0, -1), "concrete")
    node = build_visual_geom_node(mesh)
    assert node.getNumGeoms() == 1
    geom = node.getGeom(0)
    assert geom.getVertexData().getNumRows() == mesh.triangle_count * 3
    assert geom.getPrimitive(0).getNumPrimitives() == mesh.triangle_count
    assert geom.getVertexData().getFormat().hasColumn(InternalName.getTexcoord())


def test_attach_visual_meshes_applies_materials(make_vmf, box_solid) -> None:
    result = _result(make_vmf, box_solid)
    render = NodePath("render")
    cache = MaterialCache(texture_size=8)
    nodepaths = attach_visual_meshes(render, meshes=result.visual_meshes, materials=cache)

    assert len(nodepaths) == 2
    assert render.getNumChildren() == 2
    by_name = {np.getName(): np for np in nodepaths}
    concrete = by_name["Map_0,0,-1_concrete-geom"]
    glass = by_name["Map_0,0,-1_glass-geom"]
    assert concrete.getTexture() is not None
    assert glass.getTransparency() == TransparencyAttrib.M_alpha
    assert len(cache) == 2
