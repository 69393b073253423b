"""Built-in product catalog (the storefront's seed data)."""
from __future__ import annotations

from typing import Dict, List

from atelier.common.errors import NotFound
from atelier.texture_areas.models import Product, TextureArea

DEFAULT_MODEL_PATH = "/models/scene.gltf"


def _area(area_id: str, name: str, uv: tuple, max_size: tuple, canvas: tuple = (1024, 1024)) -> TextureArea:
    return TextureArea(
        id=area_id,
        name=name,
        uv_mapping={"x": uv[0], "y": uv[1], "width": uv[2], "height": uv[3]},
        max_design_size={"width": max_size[0], "height": max_size[1]},
        canvas_size={"width": canvas[0], "height": canvas[1]},
    )


_PRODUCTS: List[Product] = [
    Product(
        id="product-tshirt",
        name="T-Shirt Personnalisé",
        description="T-shirt de qualité supérieure 100% coton",
        category="vetements",
        base_price="25.00",
        model_path=DEFAULT_MODEL_PATH,
        available_colors=["#FFFFFF", "#000000", "#FF0000", "#0000FF"],
        texture_areas=[
            _area("front", "Face avant", (0, 0, 512, 512), (300, 300)),
            _area("back", "Dos", (512, 0, 512, 512), (300, 300)),
        ],
    ),
    Product(
        id="product-mug",
        name="Mug Personnalisé",
        description="Mug céramique blanc, passage au lave-vaisselle",
        category="maison-decoration",
        base_price="15.00",
        model_path=DEFAULT_MODEL_PATH,
        available_colors=["#FFFFFF"],
        texture_areas=[_area("front", "Face avant", (0, 0, 1024, 512), (400, 200))],
    ),
    Product(
        id="product-cap",
        name="Casquette Baseball",
        description="Casquette baseball ajustable",
        category="vetements",
        base_price="20.00",
        model_path=DEFAULT_MODEL_PATH,
        available_colors=["#000000", "#0000FF", "#FF0000", "#FFFFFF"],
        texture_areas=[_area("front", "Devant", (0, 0, 512, 512), (200, 200))],
    ),
    Product(
        id="product-cushion",
        name="Coussin Personnalisé",
        description="Coussin 45x45cm avec housse lavable",
        category="maison-decoration",
        base_price="30.00",
        model_path=DEFAULT_MODEL_PATH,
        available_colors=["#FFFFFF", "#000000", "#0000FF", "#FF0000"],
        texture_areas=[
            _area("front", "Face avant", (0, 0, 512, 512), (400, 400)),
            _area("back", "Dos", (512, 0, 512, 512), (400, 400)),
        ],
    ),
]

_BY_ID: Dict[str, Product] = {p.id: p for p in _PRODUCTS}


def list_products() -> List[Product]:
    return list(_PRODUCTS)


def get_product(product_id: str) -> Product:
    try:
        return _BY_ID[product_id]
    except KeyError:
        raise NotFound("product", product_id)


__all__ = ["list_products", "get_product", "DEFAULT_MODEL_PATH"]
