"""Canvas compositor: element list in, RGBA texture raster out.

A pass is opened with ``begin_pass``; image elements whose bitmap is not
cached become pending and are resolved through ``complete_decode``. The
pass paints once nothing is pending, in paint order, so the order in which
decodes arrive never affects the output. Every ``begin_pass`` bumps the
generation counter and supersedes the previous pass; completions for a
superseded pass are discarded.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from PIL import Image

from atelier.common.errors import DecodeFailure, DuplicateIdentifier
from atelier.compositor.decoder import ImageDecoder
from atelier.compositor.models import (
    CanvasSize,
    RasterFrame,
    RenderPass,
    RenderResult,
    TexturePublisher,
)
from atelier.compositor.renderer import ElementRenderer
from atelier.config import runtime_config
from atelier.design_elements.models import DesignElement, ImageElement

logger = logging.getLogger(__name__)


class CanvasCompositor:
    def __init__(
        self,
        publisher: Optional[TexturePublisher] = None,
        canvas_size: Optional[CanvasSize] = None,
        decoder: Optional[ImageDecoder] = None,
        renderer: Optional[ElementRenderer] = None,
    ) -> None:
        if canvas_size is None:
            edge = runtime_config.get_default_canvas_size()
            canvas_size = (edge, edge)
        self.publisher = publisher
        self.decoder = decoder or ImageDecoder()
        self.renderer = renderer or ElementRenderer()
        self._canvas_size: CanvasSize = (int(canvas_size[0]), int(canvas_size[1]))
        self._generation = 0
        self._active: Optional[RenderPass] = None
        self.last_frame: Optional[RasterFrame] = None

    @property
    def current_generation(self) -> int:
        return self._generation

    @property
    def canvas_size(self) -> CanvasSize:
        return self._canvas_size

    def resize(self, canvas_size: CanvasSize) -> None:
        width, height = int(canvas_size[0]), int(canvas_size[1])
        if width <= 0 or height <= 0:
            raise ValueError(f"Canvas size must be positive, got {canvas_size}")
        self._canvas_size = (width, height)

    def begin_pass(self, elements: Iterable[DesignElement]) -> RenderPass:
        """Open a new pass over ``elements`` (given in insertion order)."""
        elements = list(elements)
        seen = set()
        for el in elements:
            if el.id in seen:
                raise DuplicateIdentifier(el.id)
            seen.add(el.id)
        if self._active is not None and not self._active.completed:
            self._active.superseded = True
            logger.debug("Pass %d superseded", self._active.generation)
        self._generation += 1

        visible = sorted((el for el in elements if el.visible), key=lambda el: el.z_index)
        render_pass = RenderPass(
            generation=self._generation,
            canvas_size=self._canvas_size,
            elements=visible,
            empty=not elements,
        )
        self._active = render_pass

        for el in visible:
            if not isinstance(el, ImageElement):
                continue
            hit = self.decoder.cached(el.image_data)
            if hit is not None:
                render_pass.decoded[el.id] = hit
            elif self.decoder.is_known_failure(el.image_data):
                render_pass.failed.add(el.id)
            else:
                render_pass.pending.add(el.id)

        if not render_pass.pending:
            self._finish(render_pass)
        return render_pass

    def complete_decode(
        self,
        render_pass: RenderPass,
        element_id: str,
        image: Optional[Image.Image],
    ) -> Optional[RenderResult]:
        """Record one decode outcome; ``image=None`` marks a failure.

        Returns the pass result once the last pending decode lands, ``None``
        otherwise (including for superseded passes, whose completions are
        dropped).
        """
        if render_pass.superseded or render_pass.generation != self._generation:
            render_pass.superseded = True
            logger.debug("Dropping decode for %s from superseded pass %d", element_id, render_pass.generation)
            return None
        if render_pass.completed or element_id not in render_pass.pending:
            return None

        render_pass.pending.discard(element_id)
        if image is None:
            render_pass.failed.add(element_id)
        else:
            render_pass.decoded[element_id] = image
        if render_pass.pending:
            return None
        return self._finish(render_pass)

    async def render(self, elements: Iterable[DesignElement]) -> RenderResult:
        render_pass = self.begin_pass(elements)
        if render_pass.result is not None:
            return render_pass.result

        tasks = [
            asyncio.create_task(self._decode_into(render_pass, el))
            for el in render_pass.elements
            if el.id in render_pass.pending
        ]
        await asyncio.gather(*tasks)
        if render_pass.result is not None:
            return render_pass.result
        return RenderResult(
            generation=render_pass.generation,
            status="superseded",
            failed_ids=sorted(render_pass.failed),
        )

    async def _decode_into(self, render_pass: RenderPass, element: ImageElement) -> None:
        try:
            image = await self.decoder.decode(element.image_data)
        except DecodeFailure:
            image = None
        self.complete_decode(render_pass, element.id, image)

    def paint(self, render_pass: RenderPass) -> Image.Image:
        canvas = Image.new("RGBA", render_pass.canvas_size, (0, 0, 0, 0))
        for el in render_pass.elements:
            if el.id in render_pass.failed:
                continue
            canvas = self.renderer.paint(canvas, el, render_pass.decoded.get(el.id))
        return canvas

    def _finish(self, render_pass: RenderPass) -> RenderResult:
        failed = sorted(render_pass.failed)
        if render_pass.empty:
            result = RenderResult(generation=render_pass.generation, status="cleared")
            render_pass.result = result
            self.last_frame = None
            if self.publisher is not None:
                self.publisher.clear_texture()
            logger.debug("Pass %d: empty stack, texture cleared", render_pass.generation)
            return result

        frame = RasterFrame(generation=render_pass.generation, image=self.paint(render_pass))
        result = RenderResult(
            generation=render_pass.generation,
            status="published",
            frame=frame,
            failed_ids=failed,
        )
        render_pass.result = result
        self.last_frame = frame
        if self.publisher is not None:
            self.publisher.publish_texture(frame.copy())
        logger.debug(
            "Pass %d published (%d elements, %d failed)",
            render_pass.generation,
            len(render_pass.elements),
            len(failed),
        )
        return result


__all__ = ["CanvasCompositor"]
