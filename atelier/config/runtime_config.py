"""Runtime configuration helpers for the atelier engines."""
from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

DEFAULT_AUTOSAVE_SECONDS = 30.0
DEFAULT_CANVAS_SIZE = 2048
DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024
DEFAULT_TEXT_OUTLINE_PX = 3
DEFAULT_DECODE_CACHE_SIZE = 64


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def _get_float(name: str, default: float) -> float:
    raw = _get_env(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _get_int(name: str, default: int) -> int:
    raw = _get_env(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def get_autosave_interval_seconds() -> float:
    value = _get_float("ATELIER_AUTOSAVE_SECONDS", DEFAULT_AUTOSAVE_SECONDS)
    if value <= 0:
        raise ValueError("ATELIER_AUTOSAVE_SECONDS must be positive")
    return value


def get_default_canvas_size() -> int:
    return _get_int("ATELIER_CANVAS_SIZE", DEFAULT_CANVAS_SIZE)


def get_max_image_bytes() -> int:
    return _get_int("ATELIER_MAX_IMAGE_BYTES", DEFAULT_MAX_IMAGE_BYTES)


def get_text_outline_px() -> int:
    return max(0, _get_int("ATELIER_TEXT_OUTLINE_PX", DEFAULT_TEXT_OUTLINE_PX))


def get_decode_cache_size() -> int:
    return max(1, _get_int("ATELIER_DECODE_CACHE_SIZE", DEFAULT_DECODE_CACHE_SIZE))


def get_font_dirs() -> List[Path]:
    raw = _get_env("ATELIER_FONT_DIRS") or ""
    return [Path(part) for part in raw.split(os.pathsep) if part.strip()]


def get_design_store_dir() -> Path:
    raw = _get_env("ATELIER_DESIGN_STORE_DIR")
    if raw:
        return Path(raw)
    return Path.cwd() / "var" / "designs"


def config_snapshot() -> dict:
    """Return a snapshot of relevant env-driven config."""
    return {
        "autosave_seconds": get_autosave_interval_seconds(),
        "canvas_size": get_default_canvas_size(),
        "max_image_bytes": get_max_image_bytes(),
        "text_outline_px": get_text_outline_px(),
        "decode_cache_size": get_decode_cache_size(),
        "font_dirs": [str(p) for p in get_font_dirs()],
        "design_store_dir": str(get_design_store_dir()),
    }
