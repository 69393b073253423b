"""3D viewport controller.

Keeps a headless scene graph for the product (lights, ground, product
meshes, design overlay) and one dynamic texture that receives every
composited raster. Drawing goes through a pluggable ``RenderBackend``; the
default backend only records what a GPU backend would have been asked to do.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Tuple, Union

from pydantic import BaseModel

from atelier.common.errors import InvalidViewportState, MeshLoadFailure
from atelier.compositor.models import RasterFrame
from atelier.config import runtime_config
from atelier.texture_areas.models import Product, TextureArea
from atelier.viewport.camera import OrbitCamera
from atelier.viewport.geometry import Color3, Vector3, normalize_meshes
from atelier.viewport.gltf_loader import LoadedModel, load_model_source
from atelier.viewport.models import (
    DynamicTexture,
    PbrMaterial,
    SceneNode,
    ViewportScene,
    ViewportState,
)
from atelier.viewport.primitives import build_box_mesh, build_ground_mesh, build_quad_mesh

logger = logging.getLogger(__name__)

ModelSource = Union[bytes, str, Path]

TEXTURE_ID = "design_texture"
OVERLAY_MATERIAL_ID = "design_overlay"
OVERLAY_SIZE = (0.6, 0.4)
OVERLAY_POSITION = Vector3(x=0.0, y=0.1, z=-0.15)
GROUND_SIZE = 10.0
GROUND_Y = -1.0
GROUND_COLOR = Color3(r=0.2, g=0.2, b=0.25)
FALLBACK_BOX = (1.5, 1.5, 0.3)
NORMALIZED_EXTENT = 2.0


class FrameStats(BaseModel):
    frame_index: int
    node_count: int
    triangle_count: int
    texture_bound: bool
    texture_version: int
    camera_position: Tuple[float, float, float]


class RenderBackend(Protocol):
    def upload_mesh(self, mesh_id: str, vertex_count: int) -> None:
        ...

    def upload_texture(self, texture: DynamicTexture) -> None:
        ...

    def draw(self, scene: ViewportScene, texture: DynamicTexture, texture_bound: bool) -> FrameStats:
        ...

    def release(self, resource_id: str) -> None:
        ...


class HeadlessRenderBackend:
    """Records uploads and draws; used in tests and server-side previews."""

    def __init__(self) -> None:
        self.meshes: List[str] = []
        self.texture_uploads: List[Tuple[str, int]] = []
        self.frames: List[FrameStats] = []
        self.released: List[str] = []

    def upload_mesh(self, mesh_id: str, vertex_count: int) -> None:
        self.meshes.append(mesh_id)

    def upload_texture(self, texture: DynamicTexture) -> None:
        self.texture_uploads.append((texture.id, texture.version))

    def draw(self, scene: ViewportScene, texture: DynamicTexture, texture_bound: bool) -> FrameStats:
        triangles = sum(
            len(scene.meshes[n.mesh_id].indices) // 3 for n in scene.nodes if n.visible and n.mesh_id in scene.meshes
        )
        stats = FrameStats(
            frame_index=len(self.frames),
            node_count=sum(1 for n in scene.nodes if n.visible),
            triangle_count=triangles,
            texture_bound=texture_bound,
            texture_version=texture.version,
            camera_position=scene.camera.position().as_tuple(),
        )
        self.frames.append(stats)
        return stats

    def release(self, resource_id: str) -> None:
        self.released.append(resource_id)


class ViewportController:
    def __init__(
        self,
        backend: Optional[RenderBackend] = None,
        model_loader: Callable[[ModelSource], LoadedModel] = load_model_source,
    ) -> None:
        self.backend = backend or HeadlessRenderBackend()
        self._load_model = model_loader
        self._state = ViewportState.UNINITIALIZED
        self.camera = OrbitCamera()
        self.scene: Optional[ViewportScene] = None
        edge = runtime_config.get_default_canvas_size()
        self.texture = DynamicTexture(id=TEXTURE_ID, width=edge, height=edge)
        self._texture_bound = False
        self._held_frame: Optional[RasterFrame] = None
        self._color: Optional[str] = None
        self._area: Optional[TextureArea] = None

    @property
    def state(self) -> ViewportState:
        return self._state

    @property
    def texture_bound(self) -> bool:
        return self._texture_bound

    def _require(self, *allowed: ViewportState, action: str) -> None:
        if self._state not in allowed:
            raise InvalidViewportState(
                f"Cannot {action} while viewport is {self._state.value}",
                details={"state": self._state.value, "action": action},
            )

    def initialize(self, product: Product, model_source: Optional[ModelSource] = None) -> ViewportScene:
        self._require(ViewportState.UNINITIALIZED, action="initialize")
        self._state = ViewportState.LOADING
        scene = ViewportScene(camera=self.camera)

        ground = build_ground_mesh(GROUND_SIZE, GROUND_SIZE, y=GROUND_Y)
        scene.meshes[ground.id] = ground
        scene.materials["ground"] = PbrMaterial(id="ground", base_color=GROUND_COLOR, metallic=0.0, roughness=1.0)
        scene.nodes.append(SceneNode(id="ground", mesh_id=ground.id, material_id="ground", role="ground"))

        source = model_source if model_source is not None else product.model_path
        try:
            self._add_product_model(scene, self._load_model(source))
        except MeshLoadFailure as exc:
            logger.warning("Model for %s failed to load, using placeholder box: %s", product.id, exc.message)
            self._add_placeholder(scene)

        overlay = build_quad_mesh(*OVERLAY_SIZE, mesh_id="design_overlay_plane")
        scene.meshes[overlay.id] = overlay
        scene.materials[OVERLAY_MATERIAL_ID] = PbrMaterial(
            id=OVERLAY_MATERIAL_ID,
            metallic=0.0,
            roughness=1.0,
            has_alpha=True,
            backface_culling=False,
        )
        scene.nodes.append(
            SceneNode(
                id="design_overlay",
                mesh_id=overlay.id,
                material_id=OVERLAY_MATERIAL_ID,
                position=OVERLAY_POSITION,
                role="overlay",
            )
        )

        for mesh in scene.meshes.values():
            self.backend.upload_mesh(mesh.id, len(mesh.vertices))
        self.scene = scene
        self._state = ViewportState.READY
        logger.info("Viewport ready for product %s (%d nodes)", product.id, len(scene.nodes))

        color = self._color or (product.available_colors[0] if product.available_colors else None)
        if color:
            self.apply_color(color)
        if self._area is not None:
            self.set_texture_area(self._area)
        if self._held_frame is not None:
            frame, self._held_frame = self._held_frame, None
            self._bind(frame)
        return scene

    def _add_product_model(self, scene: ViewportScene, model: LoadedModel) -> None:
        normalize_meshes(model.meshes, NORMALIZED_EXTENT)
        for mat in model.materials:
            scene.materials[mat.id] = PbrMaterial(
                id=mat.id,
                name=mat.name,
                base_color=mat.base_color,
                metallic=mat.metallic,
                roughness=mat.roughness,
            )
        if any(m.material_id is None for m in model.meshes):
            scene.materials["product_default"] = PbrMaterial(id="product_default", metallic=0.0, roughness=0.8)
        for mesh in model.meshes:
            scene.meshes[mesh.id] = mesh
            scene.nodes.append(
                SceneNode(
                    id=f"product_{mesh.id}",
                    mesh_id=mesh.id,
                    material_id=mesh.material_id or "product_default",
                )
            )

    def _add_placeholder(self, scene: ViewportScene) -> None:
        box = build_box_mesh(*FALLBACK_BOX, mesh_id="placeholder_box")
        scene.meshes[box.id] = box
        scene.materials["placeholder"] = PbrMaterial(id="placeholder", metallic=0.0, roughness=0.8)
        scene.nodes.append(SceneNode(id="product_placeholder", mesh_id=box.id, material_id="placeholder"))
        scene.used_fallback_mesh = True

    def apply_color(self, hex_color: str) -> None:
        """Set the base color of every product material (texture untouched)."""
        self._require(
            ViewportState.UNINITIALIZED, ViewportState.LOADING, ViewportState.READY, action="apply color"
        )
        color = Color3.from_hex(hex_color)
        self._color = hex_color
        if self.scene is None:
            return
        for material in self.scene.product_materials():
            material.base_color = color
        self.scene.product_color = hex_color

    def set_texture_area(self, area: TextureArea) -> None:
        """Record the area's UV rectangle on the overlay material."""
        self._require(
            ViewportState.UNINITIALIZED, ViewportState.LOADING, ViewportState.READY, action="set texture area"
        )
        self._area = area
        if self.scene is None:
            return
        offset, scale = area.uv_transform()
        overlay = self.scene.materials[OVERLAY_MATERIAL_ID]
        overlay.texture_offset = offset
        overlay.texture_scale = scale

    def publish_texture(self, frame: RasterFrame) -> None:
        if self._state == ViewportState.DISPOSED:
            logger.warning("Dropping frame %d: viewport disposed", frame.generation)
            return
        if self._state != ViewportState.READY:
            self._held_frame = frame
            logger.debug("Holding frame %d until viewport is ready", frame.generation)
            return
        self._bind(frame)

    def _bind(self, frame: RasterFrame) -> None:
        self.texture.update(frame)
        self.scene.materials[OVERLAY_MATERIAL_ID].albedo_texture_id = self.texture.id
        self._texture_bound = True
        self.backend.upload_texture(self.texture)
        logger.debug("Texture updated to v%d from frame %d", self.texture.version, frame.generation)

    def clear_texture(self) -> None:
        if self._state == ViewportState.DISPOSED:
            logger.warning("Ignoring texture clear: viewport disposed")
            return
        self._held_frame = None
        self._texture_bound = False
        if self.scene is not None:
            self.scene.materials[OVERLAY_MATERIAL_ID].albedo_texture_id = None

    def zoom_in(self) -> float:
        self._require_not_disposed("zoom")
        return self.camera.zoom_in()

    def zoom_out(self) -> float:
        self._require_not_disposed("zoom")
        return self.camera.zoom_out()

    def reset_camera(self) -> None:
        self._require_not_disposed("reset camera")
        self.camera.reset()

    def camera_position(self) -> Vector3:
        return self.camera.position()

    def _require_not_disposed(self, action: str) -> None:
        if self._state == ViewportState.DISPOSED:
            raise InvalidViewportState(f"Cannot {action}: viewport disposed", details={"action": action})

    def render_frame(self) -> FrameStats:
        self._require(ViewportState.READY, action="render")
        return self.backend.draw(self.scene, self.texture, self._texture_bound)

    def dispose(self) -> None:
        if self._state == ViewportState.DISPOSED:
            return
        if self.scene is not None:
            for mesh_id in self.scene.meshes:
                self.backend.release(mesh_id)
            for material_id in self.scene.materials:
                self.backend.release(material_id)
        self.backend.release(self.texture.id)
        self.texture.release()
        self._texture_bound = False
        self._held_frame = None
        self._state = ViewportState.DISPOSED
        logger.info("Viewport disposed")


__all__ = [
    "ViewportController",
    "RenderBackend",
    "HeadlessRenderBackend",
    "FrameStats",
    "ModelSource",
]
