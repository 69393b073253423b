import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from atelier.persistence.service import InMemoryDesignStore, set_design_store
from atelier.service.server import create_app


@pytest.fixture
def client():
    set_design_store(InMemoryDesignStore())
    yield TestClient(create_app())
    set_design_store(None)


def _document(elements=None, area="front"):
    return {
        "productId": "product-tshirt",
        "name": "Mon Design",
        "productColor": "#FFFFFF",
        "textureAreaId": area,
        "elements": elements if elements is not None else [],
        "isPublic": False,
    }


def _rect(**overrides):
    element = {
        "id": "r1",
        "type": "shape",
        "shapeType": "rectangle",
        "position": {"x": 10, "y": 20},
        "size": {"width": 100, "height": 50},
        "zIndex": 1,
        "fillColor": "#ff0000",
    }
    element.update(overrides)
    return element


def test_health_endpoint(client) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_products_listing_and_lookup(client) -> None:
    resp = client.get("/products")
    assert resp.status_code == 200
    assert [p["id"] for p in resp.json()][0] == "product-tshirt"

    resp = client.get("/products/product-mug")
    assert resp.json()["textureAreas"][0]["canvasSize"] == {"width": 1024, "height": 1024}

    resp = client.get("/products/product-hoodie")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "atelier.not_found"


def test_render_returns_png_of_area(client) -> None:
    resp = client.post("/render", json={"document": _document([_rect()])})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    image = Image.open(io.BytesIO(resp.content))
    assert image.size == (1024, 1024)
    assert image.convert("RGBA").getpixel((50, 40)) == (255, 0, 0, 255)
    assert image.convert("RGBA").getpixel((200, 200))[3] == 0


def test_render_empty_document_is_no_content(client) -> None:
    resp = client.post("/render", json={"productId": "product-tshirt", "document": _document()})
    assert resp.status_code == 204
    assert resp.content == b""


def test_render_reports_failed_images(client) -> None:
    broken = {
        "id": "img1",
        "type": "image",
        "imageData": "data:image/png;base64,bm90IGFuIGltYWdl",
        "position": {"x": 100, "y": 100},
        "zIndex": 2,
    }
    resp = client.post("/render", json={"document": _document([_rect(), broken])})
    assert resp.status_code == 200
    assert resp.headers["x-atelier-failed-elements"] == "img1"


def test_render_unknown_area_is_not_found(client) -> None:
    resp = client.post("/render", json={"document": _document([_rect()], area="sleeve")})
    assert resp.status_code == 404
    assert resp.json()["error"]["resource_kind"] == "texture_area"


def test_render_rejects_invalid_element(client) -> None:
    resp = client.post("/render", json={"document": _document([_rect(fillColor="nope")])})
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "validation.error"


def test_design_save_and_load(client) -> None:
    resp = client.post("/designs", json=_document([_rect()]))
    assert resp.status_code == 201
    design_id = resp.json()["design_id"]

    resp = client.get(f"/designs/{design_id}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["productId"] == "product-tshirt"
    assert data["elements"][0]["shapeType"] == "rectangle"


def test_unknown_design_uses_error_envelope(client) -> None:
    resp = client.get("/designs/does-not-exist")
    assert resp.status_code == 404
    error = resp.json()["error"]
    assert error["http_status"] == 404
    assert error["details"] == {"resource_id": "does-not-exist"}


def test_render_does_not_read_server_files(client, tmp_path) -> None:
    private = tmp_path / "private.png"
    Image.new("RGBA", (100, 100), (12, 34, 56, 255)).save(private)
    element = {
        "id": "img1",
        "type": "image",
        "imageData": str(private),
        "position": {"x": 50, "y": 50},
        "size": {"width": 100, "height": 100},
        "zIndex": 2,
    }
    resp = client.post("/render", json={"document": _document([_rect(), element])})
    assert resp.status_code == 200
    assert resp.headers["x-atelier-failed-elements"] == "img1"
    image = Image.open(io.BytesIO(resp.content)).convert("RGBA")
    assert image.getpixel((50, 50)) != (12, 34, 56, 255)


def test_duplicate_element_ids_are_rejected(client) -> None:
    elements = [_rect(), _rect(position={"x": 300, "y": 300})]
    resp = client.post("/designs", json=_document(elements))
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "validation.error"

    resp = client.post("/render", json={"document": _document(elements)})
    assert resp.status_code == 422
