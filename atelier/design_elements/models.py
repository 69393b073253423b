"""Design element models.

Placeable items are a tagged union discriminated by ``type``. Python
attributes are snake_case; the wire format (saved documents, HTTP payloads)
uses the storefront's camelCase keys. Both spellings validate on input.
"""
from __future__ import annotations

import uuid
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from PIL import ImageColor
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

ElementKind = Literal["text", "image", "shape"]
ShapeKind = Literal["rectangle", "circle", "triangle", "star"]


def new_element_id() -> str:
    return uuid.uuid4().hex


def _validate_color(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        ImageColor.getrgb(value)
    except ValueError:
        raise ValueError(f"Unrecognised color {value!r}")
    return value


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Position(_WireModel):
    x: float
    y: float


class Size(_WireModel):
    width: float = Field(..., ge=0)
    height: float = Field(..., ge=0)


class ImageFilters(_WireModel):
    """Per-image adjustments. Multipliers are 1.0 for "unchanged"."""

    brightness: float = Field(1.0, ge=0)
    contrast: float = Field(1.0, ge=0)
    saturation: float = Field(1.0, ge=0)
    blur: float = Field(0.0, ge=0)  # gaussian radius in px
    grayscale: bool = False
    sepia: bool = False

    def is_identity(self) -> bool:
        return (
            self.brightness == 1.0
            and self.contrast == 1.0
            and self.saturation == 1.0
            and self.blur == 0.0
            and not self.grayscale
            and not self.sepia
        )


class ElementBase(_WireModel):
    id: str = Field(default_factory=new_element_id, min_length=1)
    position: Position
    size: Optional[Size] = None
    rotation: float = 0.0  # degrees, clockwise
    opacity: float = Field(1.0, ge=0.0, le=1.0)
    z_index: int = 0
    locked: bool = False
    visible: bool = True

    @field_validator("rotation")
    @classmethod
    def _wrap_rotation(cls, value: float) -> float:
        return value % 360.0


class TextElement(ElementBase):
    type: Literal["text"] = "text"
    text: str = ""
    font_family: str = "Inter"
    font_size: float = Field(32, gt=0)
    color: str = "#000000"
    font_weight: Literal["normal", "bold"] = "normal"
    font_style: Literal["normal", "italic"] = "normal"
    text_align: Literal["left", "center", "right"] = "center"
    letter_spacing: float = 0.0
    line_height: float = Field(1.2, gt=0)

    check_color = field_validator("color")(_validate_color)


class ImageElement(ElementBase):
    type: Literal["image"] = "image"
    image_data: str = Field(..., min_length=1)  # data URI, base64, path or URL
    filters: Optional[ImageFilters] = None


class ShapeElement(ElementBase):
    type: Literal["shape"] = "shape"
    shape_type: ShapeKind
    fill_color: str = "#000000"
    stroke_color: Optional[str] = None
    stroke_width: Optional[float] = Field(None, ge=0)

    check_colors = field_validator("fill_color", "stroke_color")(_validate_color)


DesignElement = Annotated[
    Union[TextElement, ImageElement, ShapeElement],
    Field(discriminator="type"),
]

_ELEMENT_ADAPTER: TypeAdapter = TypeAdapter(DesignElement)
_ELEMENT_LIST_ADAPTER: TypeAdapter = TypeAdapter(List[DesignElement])

ELEMENT_CLASSES = {
    "text": TextElement,
    "image": ImageElement,
    "shape": ShapeElement,
}


def parse_element(data: Dict[str, Any]) -> DesignElement:
    return _ELEMENT_ADAPTER.validate_python(data)


def parse_elements(data: List[Dict[str, Any]]) -> List[DesignElement]:
    return _ELEMENT_LIST_ADAPTER.validate_python(data)


def dump_element(element: DesignElement) -> Dict[str, Any]:
    """Wire-format dict for one element (camelCase, unset optionals dropped)."""
    return element.model_dump(mode="json", by_alias=True, exclude_none=True)


def field_lookup(element_cls: type[ElementBase]) -> Dict[str, str]:
    """Map every accepted attribute spelling to the model's field name."""
    lookup: Dict[str, str] = {}
    for name, info in element_cls.model_fields.items():
        lookup[name] = name
        if info.alias:
            lookup[info.alias] = name
    return lookup


def union_field_names() -> set[str]:
    """Attribute spellings valid on at least one variant."""
    names: set[str] = set()
    for cls in ELEMENT_CLASSES.values():
        names.update(field_lookup(cls))
    return names


__all__ = [
    "ElementKind",
    "ShapeKind",
    "Position",
    "Size",
    "ImageFilters",
    "ElementBase",
    "TextElement",
    "ImageElement",
    "ShapeElement",
    "DesignElement",
    "ELEMENT_CLASSES",
    "new_element_id",
    "parse_element",
    "parse_elements",
    "dump_element",
    "field_lookup",
    "union_field_names",
]
