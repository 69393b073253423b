"""Service-layer schemas for the atelier HTTP surface."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from atelier.persistence.models import DesignDocument
from atelier.texture_areas.models import Product


class RenderRequest(BaseModel):
    """Either an inline ``product`` or a catalog ``productId``.

    Without both, the document's own ``productId`` is looked up in the
    catalog.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product: Optional[Product] = None
    product_id: Optional[str] = None
    document: DesignDocument


class SaveDesignResponse(BaseModel):
    design_id: str
