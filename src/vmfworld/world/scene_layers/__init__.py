"""Engine-side layer helpers for `vmfworld` build results.

The builder produces plain data; modules in this package turn it into Panda3D
scene graph nodes so the core pipeline stays testable without a window.
"""

from vmfworld.world.scene_layers.geometry import attach_visual_meshes, build_visual_geom_node

__all__ = ["attach_visual_meshes", "build_visual_geom_node"]
