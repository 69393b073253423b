"""Per-image filter adjustments applied after decoding."""
from __future__ import annotations

import numpy as np
from PIL import Image, ImageEnhance, ImageFilter, ImageOps

from atelier.design_elements.models import ImageFilters

SEPIA_MATRIX = np.array(
    [
        [0.393, 0.769, 0.189],
        [0.349, 0.686, 0.168],
        [0.272, 0.534, 0.131],
    ],
    dtype=np.float32,
)


def apply_sepia(img: Image.Image) -> Image.Image:
    arr = np.array(img.convert("RGB"), dtype=np.float32)
    toned = np.clip(arr @ SEPIA_MATRIX.T, 0, 255).astype(np.uint8)
    return Image.fromarray(toned)


def apply_filters(img: Image.Image, filters: ImageFilters) -> Image.Image:
    """Return a filtered RGBA copy; the alpha channel is only touched by blur."""
    if filters.is_identity():
        return img
    img = img.convert("RGBA")
    alpha = img.getchannel("A")
    rgb = img.convert("RGB")

    if filters.brightness != 1.0:
        rgb = ImageEnhance.Brightness(rgb).enhance(filters.brightness)
    if filters.contrast != 1.0:
        rgb = ImageEnhance.Contrast(rgb).enhance(filters.contrast)
    if filters.saturation != 1.0:
        rgb = ImageEnhance.Color(rgb).enhance(filters.saturation)
    if filters.grayscale:
        rgb = ImageOps.grayscale(rgb).convert("RGB")
    if filters.sepia:
        rgb = apply_sepia(rgb)

    out = rgb.convert("RGBA")
    out.putalpha(alpha)
    if filters.blur > 0:
        out = out.filter(ImageFilter.GaussianBlur(radius=filters.blur))
    return out


__all__ = ["apply_filters", "apply_sepia", "SEPIA_MATRIX"]
