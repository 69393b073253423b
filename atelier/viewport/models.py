"""Scene-graph models for the headless product viewport."""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field

from atelier.compositor.models import RasterFrame
from atelier.viewport.camera import OrbitCamera
from atelier.viewport.geometry import Color3, Mesh, Vector3


class ViewportState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    DISPOSED = "disposed"


class PbrMaterial(BaseModel):
    id: str
    name: Optional[str] = None
    base_color: Color3 = Field(default_factory=lambda: Color3(r=1.0, g=1.0, b=1.0))
    metallic: float = Field(0.0, ge=0.0, le=1.0)
    roughness: float = Field(0.8, ge=0.0, le=1.0)
    albedo_texture_id: Optional[str] = None
    texture_offset: Tuple[float, float] = (0.0, 0.0)
    texture_scale: Tuple[float, float] = (1.0, 1.0)
    has_alpha: bool = False
    backface_culling: bool = True


class DynamicTexture(BaseModel):
    """GPU-side texture updated in place.

    The same instance lives for the whole session; each update copies the
    incoming pixels into it and bumps ``version``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    width: int
    height: int
    version: int = 0
    has_alpha: bool = True
    source_generation: Optional[int] = None
    pixels: Optional[Image.Image] = None

    def update(self, frame: RasterFrame) -> None:
        incoming = frame.image if frame.image.mode == "RGBA" else frame.image.convert("RGBA")
        if self.pixels is None or self.pixels.size != incoming.size:
            self.pixels = Image.new("RGBA", incoming.size, (0, 0, 0, 0))
            self.width, self.height = incoming.size
        self.pixels.paste(incoming, (0, 0))
        self.source_generation = frame.generation
        self.version += 1

    def release(self) -> None:
        self.pixels = None


class HemisphericLight(BaseModel):
    id: str = "hemi"
    direction: Vector3 = Field(default_factory=lambda: Vector3(x=0, y=1, z=0))
    intensity: float = 0.6


class DirectionalLight(BaseModel):
    id: str = "sun"
    direction: Vector3 = Field(default_factory=lambda: Vector3(x=-1, y=-2, z=-1))
    position: Vector3 = Field(default_factory=lambda: Vector3(x=5, y=10, z=5))
    intensity: float = 0.5


class SceneNode(BaseModel):
    id: str
    mesh_id: str
    material_id: Optional[str] = None
    position: Vector3 = Field(default_factory=lambda: Vector3(x=0, y=0, z=0))
    rotation: Vector3 = Field(default_factory=lambda: Vector3(x=0, y=0, z=0))  # euler, radians
    visible: bool = True
    role: str = "product"  # product | overlay | ground


class ViewportScene(BaseModel):
    clear_color: Tuple[float, float, float, float] = (0.1, 0.1, 0.18, 1.0)
    camera: OrbitCamera = Field(default_factory=OrbitCamera)
    hemispheric_light: HemisphericLight = Field(default_factory=HemisphericLight)
    directional_light: DirectionalLight = Field(default_factory=DirectionalLight)
    meshes: Dict[str, Mesh] = Field(default_factory=dict)
    materials: Dict[str, PbrMaterial] = Field(default_factory=dict)
    nodes: List[SceneNode] = Field(default_factory=list)
    product_color: Optional[str] = None
    used_fallback_mesh: bool = False

    def product_nodes(self) -> List[SceneNode]:
        return [n for n in self.nodes if n.role == "product"]

    def product_materials(self) -> List[PbrMaterial]:
        ids = {n.material_id for n in self.product_nodes() if n.material_id}
        return [m for mid, m in self.materials.items() if mid in ids]


__all__ = [
    "ViewportState",
    "PbrMaterial",
    "DynamicTexture",
    "HemisphericLight",
    "DirectionalLight",
    "SceneNode",
    "ViewportScene",
]
