from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from atelier.design_elements.models import DesignElement, _validate_color

DEFAULT_DESIGN_NAME = "Mon Design"


class DesignDocument(BaseModel):
    """Serialized design as exchanged with the storefront backend.

    Wire keys: ``productId``, ``name``, ``productColor``, ``textureAreaId``,
    ``elements``, ``isPublic``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: str = Field(..., min_length=1)
    name: str = Field(DEFAULT_DESIGN_NAME, max_length=200)
    product_color: str = "#FFFFFF"
    texture_area_id: str = Field(..., min_length=1)
    elements: List[DesignElement] = Field(default_factory=list)
    is_public: bool = False

    check_color = field_validator("product_color")(_validate_color)

    @model_validator(mode="after")
    def _unique_element_ids(self) -> "DesignDocument":
        seen = set()
        for element in self.elements:
            if element.id in seen:
                raise ValueError(f"Duplicate element id {element.id!r}")
            seen.add(element.id)
        return self

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "DesignDocument":
        return cls.model_validate(data)


__all__ = ["DesignDocument", "DEFAULT_DESIGN_NAME"]
