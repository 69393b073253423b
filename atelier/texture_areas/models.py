"""Catalog types: products and their printable texture areas."""
from __future__ import annotations

from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from atelier.design_elements.models import _validate_color


class _CatalogModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class UVRect(_CatalogModel):
    """Rectangle in the base texture atlas, in atlas pixels."""

    x: float = Field(..., ge=0.0)
    y: float = Field(..., ge=0.0)
    width: float = Field(..., gt=0.0)
    height: float = Field(..., gt=0.0)


class Extent(_CatalogModel):
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


class TextureArea(_CatalogModel):
    id: str = Field(..., min_length=1)
    name: str
    uv_mapping: UVRect
    max_design_size: Extent
    canvas_size: Extent

    def uv_transform(self) -> tuple:
        """(offset, scale) of the area relative to an atlas the size of the canvas."""
        cw, ch = self.canvas_size.width, self.canvas_size.height
        uv = self.uv_mapping
        return (uv.x / cw, uv.y / ch), (uv.width / cw, uv.height / ch)


class Product(_CatalogModel):
    id: str = Field(..., min_length=1)
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    base_price: Decimal = Field(..., ge=0)
    model_path: str
    available_colors: List[str] = Field(default_factory=list)
    texture_areas: List[TextureArea] = Field(..., min_length=1)

    @field_validator("available_colors")
    @classmethod
    def _check_colors(cls, value: List[str]) -> List[str]:
        for color in value:
            _validate_color(color)
        return value

    def area(self, area_id: str) -> Optional[TextureArea]:
        return next((a for a in self.texture_areas if a.id == area_id), None)


AdvisoryKind = Literal["exceeds_max_size", "outside_canvas"]


class PlacementAdvisory(BaseModel):
    """Soft warning about an element's placement within the active area."""

    element_id: str
    kind: AdvisoryKind
    message: str


__all__ = ["UVRect", "Extent", "TextureArea", "Product", "PlacementAdvisory", "AdvisoryKind"]
