import base64

import pytest
from pydantic import ValidationError

from atelier.common.errors import InvalidUpload
from atelier.design_elements.factory import (
    image_element_from_upload,
    new_shape_element,
    new_text_element,
    next_z_index,
)
from atelier.design_elements.models import (
    ImageElement,
    ShapeElement,
    TextElement,
    dump_element,
    field_lookup,
    parse_element,
    parse_elements,
)


def test_parse_element_dispatches_on_type() -> None:
    el = parse_element({"type": "shape", "id": "s1", "shapeType": "circle", "position": {"x": 1, "y": 2}})
    assert isinstance(el, ShapeElement)
    assert el.shape_type == "circle"

    el = parse_element({"type": "text", "id": "t1", "text": "Hi", "position": {"x": 0, "y": 0}, "fontSize": 12})
    assert isinstance(el, TextElement)
    assert el.font_size == 12


def test_parse_element_accepts_snake_case_names() -> None:
    el = parse_element({"type": "image", "id": "i1", "image_data": "abc", "position": {"x": 0, "y": 0}, "z_index": 4})
    assert isinstance(el, ImageElement)
    assert el.z_index == 4


def test_unknown_type_rejected() -> None:
    with pytest.raises(ValidationError):
        parse_element({"type": "video", "id": "v", "position": {"x": 0, "y": 0}})


def test_opacity_out_of_range_rejected() -> None:
    with pytest.raises(ValidationError):
        TextElement(id="t", position={"x": 0, "y": 0}, opacity=1.5)


def test_rotation_wraps_into_full_turn() -> None:
    el = TextElement(id="t", position={"x": 0, "y": 0}, rotation=-90)
    assert el.rotation == 270
    el = TextElement(id="t", position={"x": 0, "y": 0}, rotation=725)
    assert el.rotation == 5


def test_bad_color_rejected() -> None:
    with pytest.raises(ValidationError):
        ShapeElement(id="s", shape_type="rectangle", position={"x": 0, "y": 0}, fill_color="not-a-color")


def test_dump_element_uses_wire_keys() -> None:
    el = new_shape_element("rectangle", z_index=3)
    data = dump_element(el)
    assert data["type"] == "shape"
    assert data["shapeType"] == "rectangle"
    assert data["zIndex"] == 3
    assert data["fillColor"] == "#3b82f6"
    assert "z_index" not in data
    assert parse_element(data) == el


def test_parse_elements_preserves_order() -> None:
    raw = [dump_element(new_text_element("a")), dump_element(new_shape_element("star"))]
    parsed = parse_elements(raw)
    assert [el.type for el in parsed] == ["text", "shape"]


def test_field_lookup_maps_both_spellings() -> None:
    lookup = field_lookup(TextElement)
    assert lookup["fontSize"] == "font_size"
    assert lookup["font_size"] == "font_size"
    assert "shapeType" not in lookup


def test_text_factory_defaults() -> None:
    el = new_text_element()
    assert el.text == "Nouveau texte"
    assert (el.position.x, el.position.y) == (100, 100)
    assert el.font_family == "Inter"
    assert el.font_size == 32
    assert el.text_align == "center"
    assert el.line_height == 1.2
    assert el.size is None


def test_shape_factory_defaults() -> None:
    el = new_shape_element("circle")
    assert (el.size.width, el.size.height) == (100, 100)
    assert el.stroke_color == "#1e40af"
    assert el.stroke_width == 2


def test_factories_generate_unique_ids() -> None:
    ids = {new_text_element().id for _ in range(20)}
    assert len(ids) == 20


def test_next_z_index() -> None:
    assert next_z_index([]) == 1
    a = new_text_element(z_index=3)
    b = new_shape_element("star", z_index=7)
    assert next_z_index([a, b]) == 8


def test_image_upload_becomes_data_uri() -> None:
    payload = b"\x89PNG fake bytes"
    el = image_element_from_upload(payload, "image/png")
    prefix = "data:image/png;base64,"
    assert el.image_data.startswith(prefix)
    assert base64.b64decode(el.image_data[len(prefix):]) == payload
    assert (el.size.width, el.size.height) == (250, 250)
    assert (el.position.x, el.position.y) == (1024, 800)


def test_image_upload_rejects_non_image() -> None:
    with pytest.raises(InvalidUpload):
        image_element_from_upload(b"%PDF", "application/pdf")


def test_image_upload_rejects_oversized(monkeypatch) -> None:
    monkeypatch.setenv("ATELIER_MAX_IMAGE_BYTES", "8")
    with pytest.raises(InvalidUpload) as exc:
        image_element_from_upload(b"0123456789", "image/png")
    assert exc.value.details["max_bytes"] == 8


def test_image_upload_rejects_empty() -> None:
    with pytest.raises(InvalidUpload):
        image_element_from_upload(b"", "image/png")
