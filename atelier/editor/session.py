"""Editor session: one product being customized.

Ties the texture-area registry, the layer stack, the canvas compositor, the
3D viewport and a persistence adapter together. Every stack mutation marks
the session dirty and, when an event loop is running, schedules a render
pass; newer passes supersede older ones inside the compositor.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Set

from atelier.common.errors import AtelierError, InvalidAttribute, PersistenceFailure
from atelier.compositor.models import RenderResult
from atelier.compositor.service import CanvasCompositor
from atelier.design_elements.factory import (
    image_element_from_upload,
    new_shape_element,
    new_text_element,
    next_z_index,
)
from atelier.design_elements.models import DesignElement, ShapeKind, _validate_color
from atelier.layer_stack.service import LayerStack, MutationSource
from atelier.persistence.autosave import AutosaveScheduler
from atelier.persistence.models import DEFAULT_DESIGN_NAME, DesignDocument
from atelier.persistence.service import PersistenceAdapter, get_design_store
from atelier.texture_areas.models import PlacementAdvisory, Product, TextureArea
from atelier.texture_areas.service import TextureAreaRegistry
from atelier.viewport.models import ViewportState
from atelier.viewport.service import ModelSource, ViewportController

logger = logging.getLogger(__name__)

DEFAULT_PRODUCT_COLOR = "#FFFFFF"


class EditorSession:
    def __init__(
        self,
        product: Product,
        store: Optional[PersistenceAdapter] = None,
        viewport: Optional[ViewportController] = None,
        compositor: Optional[CanvasCompositor] = None,
        model_source: Optional[ModelSource] = None,
        on_notify: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.product = product
        self.areas = TextureAreaRegistry(product)
        self.layers = LayerStack()
        self.store = store or get_design_store()
        self.viewport = viewport or ViewportController()
        if compositor is None:
            compositor = CanvasCompositor(publisher=self.viewport, canvas_size=self.areas.canvas_size())
        else:
            compositor.publisher = self.viewport
            compositor.resize(self.areas.canvas_size())
        self.compositor = compositor

        self.design_id: Optional[str] = None
        self.name = DEFAULT_DESIGN_NAME
        self.is_public = False
        self.color = product.available_colors[0] if product.available_colors else DEFAULT_PRODUCT_COLOR
        self.dirty = False
        self.closed = False
        self.notifications: List[str] = []
        self._on_notify = on_notify
        self._autosave: Optional[AutosaveScheduler] = None
        self._refresh_tasks: Set[asyncio.Task] = set()

        self.viewport.apply_color(self.color)
        self.viewport.set_texture_area(self.areas.active)
        if self.viewport.state == ViewportState.UNINITIALIZED:
            self.viewport.initialize(product, model_source=model_source)

    @property
    def active_area(self) -> TextureArea:
        return self.areas.active

    # -- element editing -------------------------------------------------

    def add_element(self, element: DesignElement) -> DesignElement:
        added = self.layers.add(element)
        self._changed()
        return added

    def add_text(self, text: Optional[str] = None) -> DesignElement:
        z_index = next_z_index(self.layers)
        element = new_text_element(text, z_index=z_index) if text is not None else new_text_element(z_index=z_index)
        return self.add_element(element)

    def add_shape(self, shape_type: ShapeKind) -> DesignElement:
        return self.add_element(new_shape_element(shape_type, z_index=next_z_index(self.layers)))

    def add_image_upload(self, data: bytes, content_type: str) -> DesignElement:
        element = image_element_from_upload(data, content_type, z_index=next_z_index(self.layers))
        return self.add_element(element)

    def update_element(
        self,
        element_id: str,
        attrs: Dict[str, Any],
        source: MutationSource = MutationSource.PROGRAMMATIC,
    ) -> DesignElement:
        updated = self.layers.update(element_id, attrs, source=source)
        self._changed()
        return updated

    def remove_element(self, element_id: str) -> None:
        self.layers.remove(element_id)
        self._changed()

    def bring_to_front(self, element_id: str) -> DesignElement:
        element = self.layers.reorder_to_top(element_id)
        self._changed()
        return element

    def send_to_back(self, element_id: str) -> DesignElement:
        element = self.layers.reorder_to_bottom(element_id)
        self._changed()
        return element

    def select(self, element_id: Optional[str]) -> None:
        self.layers.set_selection(element_id)

    def advisories(self) -> List[PlacementAdvisory]:
        """Size and placement hints for the active area; never blocking."""
        found: List[PlacementAdvisory] = []
        for element in self.layers:
            found.extend(self.areas.check_element(element))
        return found

    # -- product options -------------------------------------------------

    def set_color(self, hex_color: str) -> None:
        try:
            _validate_color(hex_color)
        except ValueError as exc:
            raise InvalidAttribute(str(exc), details={"product_color": hex_color})
        self.viewport.apply_color(hex_color)
        self.color = hex_color

    def select_area(self, area_id: str) -> TextureArea:
        area = self.areas.select(area_id)
        self.compositor.resize((area.canvas_size.width, area.canvas_size.height))
        self.viewport.set_texture_area(area)
        self._changed()
        return area

    # -- rendering -------------------------------------------------------

    def _changed(self) -> None:
        self.dirty = True
        self.request_refresh()

    def _cancel_scheduled(self) -> None:
        current = asyncio.current_task()
        for task in list(self._refresh_tasks):
            if task is not current and not task.done():
                task.cancel()

    def request_refresh(self) -> Optional[asyncio.Task]:
        """Schedule a render pass on the running loop, if there is one."""
        if self.closed:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        self._cancel_scheduled()
        task = loop.create_task(self.refresh())
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)
        return task

    async def refresh(self) -> RenderResult:
        """Render the current stack and publish it to the viewport."""
        self._cancel_scheduled()
        result = await self.compositor.render(self.layers.elements())
        if result.status != "superseded":
            self.dirty = False
        if result.failed_ids:
            logger.warning("Skipped undecodable images: %s", ", ".join(result.failed_ids))
        return result

    # -- persistence -----------------------------------------------------

    def document(self) -> DesignDocument:
        return DesignDocument(
            product_id=self.product.id,
            name=self.name,
            product_color=self.color,
            texture_area_id=self.areas.active.id,
            elements=self.layers.elements(),
            is_public=self.is_public,
        )

    def _persist(self, document: DesignDocument) -> str:
        design_id = self.store.save(document, self.design_id)
        self.design_id = design_id
        return design_id

    def save(self, publish: bool = False) -> Optional[str]:
        """Save the design; returns its id, or None when the adapter failed.

        A failed save leaves the in-memory design untouched and is reported
        through the session notifications.
        """
        document = self.document()
        if publish:
            document.is_public = True
        try:
            design_id = self._persist(document)
        except PersistenceFailure as exc:
            self._notify_failure(exc)
            return None
        if publish:
            self.is_public = True
        logger.info("Design %s saved for product %s", design_id, self.product.id)
        return design_id

    def load(self, design_id: str) -> DesignDocument:
        document = self.store.load(design_id)
        if document.product_id != self.product.id:
            raise InvalidAttribute(
                f"Design {design_id!r} belongs to product {document.product_id!r}",
                details={"design_id": design_id, "product_id": document.product_id},
            )
        area = self.areas.get(document.texture_area_id)
        self.layers.replace_all(document.elements)
        self.set_color(document.product_color)
        self.areas.select(area.id)
        self.compositor.resize((area.canvas_size.width, area.canvas_size.height))
        self.viewport.set_texture_area(area)
        self.name = document.name
        self.is_public = document.is_public
        self.design_id = design_id
        self._changed()
        logger.info("Design %s loaded (%d elements)", design_id, len(document.elements))
        return document

    def _can_autosave(self) -> bool:
        return not self.closed and len(self.layers) > 0

    def _autosave_once(self) -> None:
        self._persist(self.document())

    def start_autosave(self, interval: Optional[float] = None) -> AutosaveScheduler:
        if self._autosave is None:
            self._autosave = AutosaveScheduler(
                self._autosave_once,
                self._can_autosave,
                interval=interval,
                on_failure=self._notify_failure,
            )
        self._autosave.start()
        return self._autosave

    def _notify_failure(self, exc: AtelierError) -> None:
        logger.warning("Design save failed for product %s: %s", self.product.id, exc.message)
        self._notify(f"Sauvegarde impossible : {exc.message}")

    def _notify(self, message: str) -> None:
        self.notifications.append(message)
        if self._on_notify is not None:
            self._on_notify(message)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._autosave is not None:
            await self._autosave.stop()
        tasks = list(self._refresh_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.viewport.dispose()
        logger.info("Editor session for %s closed", self.product.id)


__all__ = ["EditorSession"]
