from pathlib import Path

import pytest

from atelier.typography.registry import FontRegistry

SYSTEM_FONT_DIR = Path("/usr/share/fonts")


def test_unknown_family_falls_back_to_default() -> None:
    registry = FontRegistry(font_dirs=[])
    font = registry.resolve("Inter", 32)
    left, top, right, bottom = font.getbbox("Hello")
    assert right - left > 0
    assert bottom - top > 0
    assert registry.families() == []


def test_fallback_font_scales_with_size() -> None:
    registry = FontRegistry(font_dirs=[])
    small = registry.resolve("Nope", 12).getbbox("Hello")
    large = registry.resolve("Nope", 48).getbbox("Hello")
    assert (large[2] - large[0]) > (small[2] - small[0])


def test_missing_directory_is_ignored(tmp_path) -> None:
    registry = FontRegistry(font_dirs=[tmp_path / "missing"])
    assert registry.find_face("Inter") is None


def test_font_dirs_from_environment(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("ATELIER_FONT_DIRS", str(tmp_path))
    registry = FontRegistry()
    assert registry.font_dirs == [tmp_path]


@pytest.mark.skipif(not SYSTEM_FONT_DIR.is_dir(), reason="no system fonts installed")
def test_scans_system_fonts_and_matches_case_insensitively() -> None:
    registry = FontRegistry(font_dirs=[SYSTEM_FONT_DIR])
    families = registry.families()
    if not families:
        pytest.skip("no readable fonts under /usr/share/fonts")
    family = families[0]
    assert registry.find_face(family.upper()) is not None
    # bold request degrades to the regular face when no bold file exists
    assert registry.find_face(family, bold=True) is not None
