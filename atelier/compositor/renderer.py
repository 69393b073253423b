"""Rasterizes single design elements onto the texture canvas.

Each element is drawn into its own tile first, then opacity and rotation
are applied to the tile alone and the tile is composited centered on the
element's anchor point. Anchors differ per kind: rectangles and triangles
use ``position`` as their top-left corner, circles, stars, text and images
are centered on it.
"""
from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageFont

from atelier.compositor.effects import apply_filters
from atelier.config import runtime_config
from atelier.design_elements.models import (
    DesignElement,
    ImageElement,
    ShapeElement,
    TextElement,
)
from atelier.typography.registry import FontRegistry, get_font_registry

DEFAULT_SHAPE_SIZE = (100.0, 100.0)
DEFAULT_IMAGE_SIZE = (300.0, 300.0)
OUTLINE_COLOR = (0, 0, 0, 255)
STAR_POINTS = 5
STAR_INNER_RATIO = 0.5

Point = Tuple[float, float]


def _rgba(color: str) -> Tuple[int, int, int, int]:
    return ImageColor.getcolor(color, "RGBA")


def _px(value: float) -> int:
    return max(1, int(math.ceil(value)))


def star_polygon(cx: float, cy: float, outer: float, inner: float, points: int = STAR_POINTS) -> List[Point]:
    """Vertices of a star with its first tip pointing straight up."""
    vertices: List[Point] = []
    for i in range(points * 2):
        radius = outer if i % 2 == 0 else inner
        theta = -math.pi / 2 + i * math.pi / points
        vertices.append((cx + math.cos(theta) * radius, cy + math.sin(theta) * radius))
    return vertices


class ElementRenderer:
    def __init__(self, fonts: Optional[FontRegistry] = None, outline_px: Optional[int] = None):
        self.fonts = fonts or get_font_registry()
        self.outline_px = runtime_config.get_text_outline_px() if outline_px is None else max(0, outline_px)

    def paint(
        self,
        canvas: Image.Image,
        element: DesignElement,
        bitmap: Optional[Image.Image] = None,
    ) -> Image.Image:
        """Composite one element onto ``canvas`` in place and return it.

        ``bitmap`` is the decoded source for image elements; image elements
        without one are skipped.
        """
        drawn = self.render_tile(element, bitmap)
        if drawn is None:
            return canvas
        tile, (cx, cy) = drawn

        if element.opacity < 1.0:
            opacity = element.opacity
            tile.putalpha(tile.getchannel("A").point(lambda a: int(round(a * opacity))))
        if element.rotation:
            tile = tile.rotate(-element.rotation, resample=Image.Resampling.BICUBIC, expand=True)

        left = int(round(cx - tile.width / 2))
        top = int(round(cy - tile.height / 2))
        # clip to the canvas; alpha_composite rejects out-of-bounds dest
        x0, y0 = max(left, 0), max(top, 0)
        x1 = min(left + tile.width, canvas.width)
        y1 = min(top + tile.height, canvas.height)
        if x0 >= x1 or y0 >= y1:
            return canvas
        visible = tile.crop((x0 - left, y0 - top, x1 - left, y1 - top))
        canvas.alpha_composite(visible, dest=(x0, y0))
        return canvas

    def render_tile(
        self,
        element: DesignElement,
        bitmap: Optional[Image.Image] = None,
    ) -> Optional[Tuple[Image.Image, Point]]:
        """Draw ``element`` unrotated; returns the tile and its canvas center."""
        if isinstance(element, ShapeElement):
            return self._shape_tile(element)
        if isinstance(element, TextElement):
            return self._text_tile(element)
        if isinstance(element, ImageElement):
            if bitmap is None:
                return None
            return self._image_tile(element, bitmap)
        return None

    def _shape_tile(self, el: ShapeElement) -> Tuple[Image.Image, Point]:
        w, h = (el.size.width, el.size.height) if el.size else DEFAULT_SHAPE_SIZE
        fill = _rgba(el.fill_color)
        outline = _rgba(el.stroke_color) if el.stroke_color and el.stroke_width else None
        stroke = int(round(el.stroke_width or 0)) if outline else 0
        x, y = el.position.x, el.position.y

        if el.shape_type in ("circle", "star"):
            d = min(w, h)
            side = _px(d)
            tile = Image.new("RGBA", (side, side), (0, 0, 0, 0))
            draw = ImageDraw.Draw(tile)
            if el.shape_type == "circle":
                draw.ellipse([0, 0, side - 1, side - 1], fill=fill, outline=outline, width=stroke)
            else:
                r = (side - 1) / 2
                verts = star_polygon(r, r, r, r * STAR_INNER_RATIO)
                self._polygon(draw, verts, fill, outline, stroke)
            return tile, (x, y)

        tw, th = _px(w), _px(h)
        tile = Image.new("RGBA", (tw, th), (0, 0, 0, 0))
        draw = ImageDraw.Draw(tile)
        if el.shape_type == "rectangle":
            draw.rectangle([0, 0, tw - 1, th - 1], fill=fill, outline=outline, width=stroke)
        else:
            verts = [((tw - 1) / 2, 0), (tw - 1, th - 1), (0, th - 1)]
            self._polygon(draw, verts, fill, outline, stroke)
        return tile, (x + tw / 2, y + th / 2)

    @staticmethod
    def _polygon(
        draw: ImageDraw.ImageDraw,
        points: Sequence[Point],
        fill: Tuple[int, int, int, int],
        outline: Optional[Tuple[int, int, int, int]],
        stroke: int,
    ) -> None:
        draw.polygon(list(points), fill=fill)
        if outline and stroke > 0:
            loop = list(points) + [points[0]]
            draw.line(loop, fill=outline, width=stroke, joint="curve")

    def _line_width(self, font: ImageFont.ImageFont, line: str, spacing: float) -> float:
        if not line:
            return 0.0
        if spacing == 0:
            return font.getlength(line)
        return sum(font.getlength(ch) for ch in line) + spacing * (len(line) - 1)

    def _text_tile(self, el: TextElement) -> Optional[Tuple[Image.Image, Point]]:
        if not el.text:
            return None
        font = self.fonts.resolve(el.font_family, el.font_size, el.font_weight, el.font_style)
        lines = el.text.split("\n")
        pad = self.outline_px
        step = el.font_size * el.line_height
        widths = [self._line_width(font, line, el.letter_spacing) for line in lines]
        ascent, descent = font.getmetrics() if hasattr(font, "getmetrics") else (el.font_size, 0)
        glyph_h = max(ascent + descent, el.font_size)

        tw = _px(max(widths) + 2 * pad)
        th = _px(step * (len(lines) - 1) + glyph_h + 2 * pad)
        tile = Image.new("RGBA", (tw, th), (0, 0, 0, 0))
        draw = ImageDraw.Draw(tile)
        fill = _rgba(el.color)

        for i, (line, lw) in enumerate(zip(lines, widths)):
            if el.text_align == "left":
                lx = pad
            elif el.text_align == "right":
                lx = tw - pad - lw
            else:
                lx = (tw - lw) / 2
            ly = pad + i * step
            if el.letter_spacing == 0:
                self._draw_text(draw, (lx, ly), line, font, fill)
                continue
            for ch in line:
                self._draw_text(draw, (lx, ly), ch, font, fill)
                lx += font.getlength(ch) + el.letter_spacing
        return tile, (el.position.x, el.position.y)

    def _draw_text(self, draw: ImageDraw.ImageDraw, xy: Point, text: str, font, fill) -> None:
        if self.outline_px:
            draw.text(xy, text, font=font, fill=fill, stroke_width=self.outline_px, stroke_fill=OUTLINE_COLOR)
        else:
            draw.text(xy, text, font=font, fill=fill)

    def _image_tile(self, el: ImageElement, bitmap: Image.Image) -> Tuple[Image.Image, Point]:
        w, h = (el.size.width, el.size.height) if el.size else DEFAULT_IMAGE_SIZE
        target = (_px(w), _px(h))
        img = bitmap.convert("RGBA")
        if img.size != target:
            img = img.resize(target, Image.Resampling.LANCZOS)
        if el.filters is not None:
            img = apply_filters(img, el.filters)
        return img, (el.position.x, el.position.y)


__all__ = ["ElementRenderer", "star_polygon"]
