from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from PIL import ImageFont

from atelier.config import runtime_config

logger = logging.getLogger(__name__)

FONT_SUFFIXES = (".ttf", ".otf", ".ttc")

# (family, bold, italic) -> font file
FaceKey = Tuple[str, bool, bool]


@lru_cache(maxsize=256)
def _load_truetype(path: str, size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.truetype(path, size=size)


@lru_cache(maxsize=64)
def _load_default(size: int) -> ImageFont.ImageFont:
    return ImageFont.load_default(size=size)


def _describe_face(path: Path) -> Optional[FaceKey]:
    try:
        family, style = ImageFont.truetype(str(path), size=12).getname()
    except OSError as exc:
        logger.warning("Skipping unreadable font %s: %s", path, exc)
        return None
    style_l = (style or "").lower()
    bold = "bold" in style_l or "black" in style_l or "heavy" in style_l
    italic = "italic" in style_l or "oblique" in style_l
    return (family or path.stem).lower(), bold, italic


class FontRegistry:
    """Maps CSS-like family/weight/style requests onto font files.

    Families come from the directories in ``ATELIER_FONT_DIRS``. Requests
    for a family that is not installed fall back to Pillow's bundled
    default face so text always renders.
    """

    def __init__(self, font_dirs: Optional[Iterable[Path]] = None):
        self.font_dirs: List[Path] = list(font_dirs) if font_dirs is not None else runtime_config.get_font_dirs()
        self._faces: Dict[FaceKey, Path] = {}
        self._load_all()

    def _load_all(self) -> None:
        for directory in self.font_dirs:
            if not directory.is_dir():
                logger.warning("Font directory %s does not exist", directory)
                continue
            for path in sorted(directory.rglob("*")):
                if path.suffix.lower() not in FONT_SUFFIXES:
                    continue
                key = _describe_face(path)
                if key is not None:
                    self._faces.setdefault(key, path)

    def families(self) -> List[str]:
        return sorted({family for family, _, _ in self._faces})

    def find_face(self, family: str, bold: bool = False, italic: bool = False) -> Optional[Path]:
        name = (family or "").lower()
        for candidate in ((name, bold, italic), (name, bold, False), (name, False, italic), (name, False, False)):
            if candidate in self._faces:
                return self._faces[candidate]
        for (face_family, _, _), path in self._faces.items():
            if face_family == name:
                return path
        return None

    def resolve(
        self,
        family: str,
        size: float,
        weight: str = "normal",
        style: str = "normal",
    ) -> ImageFont.ImageFont:
        px = max(1, int(round(size)))
        path = self.find_face(family, bold=weight == "bold", italic=style == "italic")
        if path is None:
            return _load_default(px)
        return _load_truetype(str(path), px)


_default_registry: Optional[FontRegistry] = None


def get_font_registry() -> FontRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = FontRegistry()
    return _default_registry


__all__ = ["FontRegistry", "get_font_registry"]
