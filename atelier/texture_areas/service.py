from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from atelier.common.errors import NotFound
from atelier.design_elements.models import DesignElement, ShapeElement
from atelier.texture_areas.models import Extent, PlacementAdvisory, Product, TextureArea

logger = logging.getLogger(__name__)

DEFAULT_AREA_ID = "front"


class TextureAreaRegistry:
    """Printable areas of one product plus the current selection."""

    def __init__(self, product: Product, active_id: Optional[str] = None):
        self.product = product
        self._active = self.get(active_id) if active_id else self._default_area()

    def _default_area(self) -> TextureArea:
        return self.product.area(DEFAULT_AREA_ID) or self.product.texture_areas[0]

    def areas(self) -> List[TextureArea]:
        return list(self.product.texture_areas)

    def get(self, area_id: str) -> TextureArea:
        area = self.product.area(area_id)
        if area is None:
            raise NotFound("texture_area", area_id)
        return area

    def select(self, area_id: str) -> TextureArea:
        self._active = self.get(area_id)
        logger.debug("Texture area %s selected for %s", area_id, self.product.id)
        return self._active

    @property
    def active(self) -> TextureArea:
        return self._active

    def canvas_size(self) -> Tuple[int, int]:
        return (self._active.canvas_size.width, self._active.canvas_size.height)

    def max_design_size(self) -> Extent:
        return self._active.max_design_size

    def check_element(self, element: DesignElement) -> List[PlacementAdvisory]:
        """Report guideline violations; elements are never rejected."""
        advisories: List[PlacementAdvisory] = []
        limit = self._active.max_design_size
        if element.size is not None and (element.size.width > limit.width or element.size.height > limit.height):
            advisories.append(
                PlacementAdvisory(
                    element_id=element.id,
                    kind="exceeds_max_size",
                    message=(
                        f"{element.size.width:g}x{element.size.height:g} exceeds the recommended "
                        f"{limit.width}x{limit.height} for {self._active.name}"
                    ),
                )
            )

        cw, ch = self.canvas_size()
        x, y = element.position.x, element.position.y
        if isinstance(element, ShapeElement) and element.shape_type in ("rectangle", "triangle") and element.size:
            # top-left anchored: check the far corner too
            outside = x < 0 or y < 0 or x + element.size.width > cw or y + element.size.height > ch
        else:
            outside = not (0 <= x <= cw and 0 <= y <= ch)
        if outside:
            advisories.append(
                PlacementAdvisory(
                    element_id=element.id,
                    kind="outside_canvas",
                    message=f"Element at ({x:g}, {y:g}) extends beyond the {cw}x{ch} canvas",
                )
            )
        return advisories


__all__ = ["TextureAreaRegistry", "DEFAULT_AREA_ID"]
