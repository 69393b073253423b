"""Primitive meshes used by the viewport (fallback box, ground, overlay)."""
from __future__ import annotations

from atelier.viewport.geometry import UV, Mesh, Vector3


def build_box_mesh(width: float, height: float, depth: float, mesh_id: str = "box") -> Mesh:
    hw, hh, hd = width / 2.0, height / 2.0, depth / 2.0

    vertices = [
        Vector3(x=-hw, y=-hh, z=hd),  # 0: front bottom left
        Vector3(x=hw, y=-hh, z=hd),  # 1: front bottom right
        Vector3(x=hw, y=hh, z=hd),  # 2: front top right
        Vector3(x=-hw, y=hh, z=hd),  # 3: front top left
        Vector3(x=-hw, y=-hh, z=-hd),  # 4: back bottom left
        Vector3(x=hw, y=-hh, z=-hd),  # 5: back bottom right
        Vector3(x=hw, y=hh, z=-hd),  # 6: back top right
        Vector3(x=-hw, y=hh, z=-hd),  # 7: back top left
    ]

    indices = [
        0, 1, 2, 2, 3, 0,  # front
        1, 5, 6, 6, 2, 1,  # right
        5, 4, 7, 7, 6, 5,  # back
        4, 0, 3, 3, 7, 4,  # left
        3, 2, 6, 6, 7, 3,  # top
        4, 5, 1, 1, 0, 4,  # bottom
    ]

    return Mesh(
        id=mesh_id,
        name="Box",
        vertices=vertices,
        indices=indices,
        bounds_min=Vector3(x=-hw, y=-hh, z=-hd),
        bounds_max=Vector3(x=hw, y=hh, z=hd),
    )


def build_ground_mesh(width: float, depth: float, y: float = 0.0, mesh_id: str = "ground") -> Mesh:
    """Horizontal plane in X-Z at height ``y``."""
    hw, hd = width / 2.0, depth / 2.0
    vertices = [
        Vector3(x=-hw, y=y, z=-hd),
        Vector3(x=hw, y=y, z=-hd),
        Vector3(x=hw, y=y, z=hd),
        Vector3(x=-hw, y=y, z=hd),
    ]
    return Mesh(
        id=mesh_id,
        name="Ground",
        vertices=vertices,
        indices=[0, 2, 1, 0, 3, 2],
        bounds_min=Vector3(x=-hw, y=y, z=-hd),
        bounds_max=Vector3(x=hw, y=y, z=hd),
    )


def build_quad_mesh(width: float, height: float, mesh_id: str = "quad") -> Mesh:
    """Vertical X-Y quad facing -Z, with UVs covering 0..1."""
    hw, hh = width / 2.0, height / 2.0
    vertices = [
        Vector3(x=-hw, y=-hh, z=0),
        Vector3(x=hw, y=-hh, z=0),
        Vector3(x=hw, y=hh, z=0),
        Vector3(x=-hw, y=hh, z=0),
    ]
    uvs = [UV(u=0, v=0), UV(u=1, v=0), UV(u=1, v=1), UV(u=0, v=1)]
    return Mesh(
        id=mesh_id,
        name="Quad",
        vertices=vertices,
        uvs=uvs,
        indices=[0, 2, 1, 0, 3, 2],
        bounds_min=Vector3(x=-hw, y=-hh, z=0),
        bounds_max=Vector3(x=hw, y=hh, z=0),
    )


__all__ = ["build_box_mesh", "build_ground_mesh", "build_quad_mesh"]
