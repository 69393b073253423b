"""HTTP routes for the atelier composition service."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Response

from atelier.common.error_envelope import raise_for_atelier_error
from atelier.common.errors import AtelierError, NotFound
from atelier.compositor.decoder import ImageDecoder
from atelier.compositor.renderer import ElementRenderer
from atelier.compositor.service import CanvasCompositor
from atelier.persistence.models import DesignDocument
from atelier.persistence.service import get_design_store
from atelier.service.schemas import RenderRequest, SaveDesignResponse
from atelier.texture_areas.catalog import get_product, list_products
from atelier.texture_areas.models import Product

logger = logging.getLogger(__name__)

router = APIRouter()

_decoder: Optional[ImageDecoder] = None
_renderer: Optional[ElementRenderer] = None


def _render_components() -> Tuple[ImageDecoder, ElementRenderer]:
    global _decoder, _renderer
    if _decoder is None:
        # data URIs and base64 only; never server paths or URLs
        _decoder = ImageDecoder(allow_paths=False, allow_remote=False)
    if _renderer is None:
        _renderer = ElementRenderer()
    return _decoder, _renderer


def _resolve_product(request: RenderRequest) -> Product:
    if request.product is not None:
        return request.product
    return get_product(request.product_id or request.document.product_id)


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/products")
def products() -> List[Dict[str, Any]]:
    return [p.model_dump(mode="json", by_alias=True) for p in list_products()]


@router.get("/products/{product_id}")
def product(product_id: str) -> Dict[str, Any]:
    try:
        return get_product(product_id).model_dump(mode="json", by_alias=True)
    except AtelierError as exc:
        raise_for_atelier_error(exc)


@router.post("/render")
async def render(request: RenderRequest) -> Response:
    """Composite the document's elements into a PNG of its texture area."""
    try:
        product = _resolve_product(request)
        area = product.area(request.document.texture_area_id)
        if area is None:
            raise NotFound("texture_area", request.document.texture_area_id)
        decoder, renderer = _render_components()
        compositor = CanvasCompositor(
            canvas_size=(area.canvas_size.width, area.canvas_size.height),
            decoder=decoder,
            renderer=renderer,
        )
        result = await compositor.render(request.document.elements)
    except AtelierError as exc:
        raise_for_atelier_error(exc)

    if result.status == "cleared":
        return Response(status_code=204)
    headers = {}
    if result.failed_ids:
        headers["X-Atelier-Failed-Elements"] = ",".join(result.failed_ids)
    logger.debug("Rendered %s/%s (%d elements)", product.id, area.id, len(request.document.elements))
    return Response(content=result.frame.to_png(), media_type="image/png", headers=headers)


@router.post("/designs", response_model=SaveDesignResponse, status_code=201)
def save_design(document: DesignDocument) -> SaveDesignResponse:
    try:
        design_id = get_design_store().save(document)
    except AtelierError as exc:
        raise_for_atelier_error(exc)
    return SaveDesignResponse(design_id=design_id)


@router.get("/designs/{design_id}")
def load_design(design_id: str) -> Dict[str, Any]:
    try:
        return get_design_store().load(design_id).to_wire()
    except AtelierError as exc:
        raise_for_atelier_error(exc)
