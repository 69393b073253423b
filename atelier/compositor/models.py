from __future__ import annotations

import io
from typing import Dict, List, Literal, Optional, Protocol, Set, Tuple, runtime_checkable

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field

from atelier.design_elements.models import DesignElement

CanvasSize = Tuple[int, int]
RenderStatus = Literal["published", "cleared", "superseded"]


class RasterFrame(BaseModel):
    """One finished RGBA raster, tagged with the pass that produced it."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    generation: int
    image: Image.Image

    @property
    def size(self) -> CanvasSize:
        return self.image.size

    def copy(self) -> "RasterFrame":
        return RasterFrame(generation=self.generation, image=self.image.copy())

    def to_png(self) -> bytes:
        buf = io.BytesIO()
        self.image.save(buf, format="PNG")
        return buf.getvalue()


class RenderResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    generation: int
    status: RenderStatus
    frame: Optional[RasterFrame] = None
    failed_ids: List[str] = Field(default_factory=list)


class RenderPass(BaseModel):
    """Bookkeeping for one composition pass.

    ``elements`` holds the visible elements in paint order. Image elements
    whose bitmap is not yet available sit in ``pending`` until
    ``CanvasCompositor.complete_decode`` is called for them.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    generation: int
    canvas_size: CanvasSize
    elements: List[DesignElement] = Field(default_factory=list)
    empty: bool = False
    pending: Set[str] = Field(default_factory=set)
    decoded: Dict[str, Image.Image] = Field(default_factory=dict)
    failed: Set[str] = Field(default_factory=set)
    superseded: bool = False
    result: Optional[RenderResult] = None

    @property
    def pending_count(self) -> int:
        return len(self.pending)

    @property
    def completed(self) -> bool:
        return self.result is not None


@runtime_checkable
class TexturePublisher(Protocol):
    """Receiver of finished rasters (the 3D viewport in the editor)."""

    def publish_texture(self, frame: RasterFrame) -> None:
        ...

    def clear_texture(self) -> None:
        ...


__all__ = [
    "CanvasSize",
    "RenderStatus",
    "RasterFrame",
    "RenderResult",
    "RenderPass",
    "TexturePublisher",
]
