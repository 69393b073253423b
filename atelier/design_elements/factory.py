"""Element factories used by the editor's tool panel.

Defaults mirror what the storefront editor creates when a user clicks
"add text", "add rectangle"/"add circle" or uploads an image.
"""
from __future__ import annotations

import base64
import logging
from typing import Iterable, Optional

from atelier.common.errors import InvalidUpload
from atelier.config import runtime_config
from atelier.design_elements.models import (
    DesignElement,
    ImageElement,
    Position,
    ShapeElement,
    ShapeKind,
    Size,
    TextElement,
    new_element_id,
)

logger = logging.getLogger(__name__)

DEFAULT_TEXT = "Nouveau texte"
DEFAULT_SHAPE_FILL = "#3b82f6"
DEFAULT_SHAPE_STROKE = "#1e40af"


def next_z_index(elements: Iterable[DesignElement]) -> int:
    """z-index that places a new element above everything already present."""
    current = [el.z_index for el in elements]
    return max(current) + 1 if current else 1


def new_text_element(
    text: str = DEFAULT_TEXT,
    x: float = 100,
    y: float = 100,
    z_index: int = 1,
) -> TextElement:
    return TextElement(
        id=new_element_id(),
        text=text,
        position=Position(x=x, y=y),
        z_index=z_index,
        font_family="Inter",
        font_size=32,
        color="#000000",
        font_weight="normal",
        font_style="normal",
        text_align="center",
        letter_spacing=0,
        line_height=1.2,
    )


def new_shape_element(
    shape_type: ShapeKind,
    x: float = 150,
    y: float = 150,
    z_index: int = 1,
) -> ShapeElement:
    return ShapeElement(
        id=new_element_id(),
        shape_type=shape_type,
        position=Position(x=x, y=y),
        size=Size(width=100, height=100),
        z_index=z_index,
        fill_color=DEFAULT_SHAPE_FILL,
        stroke_color=DEFAULT_SHAPE_STROKE,
        stroke_width=2,
    )


def image_element_from_upload(
    data: bytes,
    content_type: str,
    x: float = 1024,
    y: float = 800,
    z_index: int = 1,
    max_bytes: Optional[int] = None,
) -> ImageElement:
    """Wrap uploaded image bytes into a self-contained image element.

    The bitmap is embedded as a base64 data URI so the saved design can be
    reconstructed without any external file lookup.
    """
    if not content_type or not content_type.lower().startswith("image/"):
        raise InvalidUpload(
            f"Unsupported content type {content_type!r}; expected an image",
            details={"content_type": content_type},
        )
    limit = max_bytes if max_bytes is not None else runtime_config.get_max_image_bytes()
    if len(data) > limit:
        raise InvalidUpload(
            f"Image is too large ({len(data)} bytes, max {limit})",
            details={"size": len(data), "max_bytes": limit},
        )
    if not data:
        raise InvalidUpload("Image upload is empty")

    encoded = base64.b64encode(data).decode("ascii")
    logger.debug("Embedding %s upload (%d bytes)", content_type, len(data))
    return ImageElement(
        id=new_element_id(),
        image_data=f"data:{content_type.lower()};base64,{encoded}",
        position=Position(x=x, y=y),
        size=Size(width=250, height=250),
        z_index=z_index,
    )
