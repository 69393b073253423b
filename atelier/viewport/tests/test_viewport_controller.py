import base64
import json
import math
import struct
import unittest

from PIL import Image

from atelier.common.errors import InvalidViewportState, MeshLoadFailure
from atelier.compositor.models import RasterFrame
from atelier.texture_areas.catalog import get_product
from atelier.viewport.gltf_loader import load_gltf_bytes
from atelier.viewport.models import ViewportState
from atelier.viewport.service import HeadlessRenderBackend, ViewportController


def _triangle_buffers():
    positions = struct.pack("<9f", 0, 0, 0, 4, 0, 0, 0, 2, 0)
    indices = struct.pack("<3H", 0, 1, 2) + b"\x00\x00"
    return positions, indices


def _gltf_document(buffer_uri=None, translation=None, with_material=True):
    positions, indices = _triangle_buffers()
    blob = positions + indices
    node = {"mesh": 0}
    if translation:
        node["translation"] = translation
    primitive = {"attributes": {"POSITION": 0}, "indices": 1}
    doc = {
        "asset": {"version": "2.0"},
        "scene": 0,
        "scenes": [{"nodes": [0]}],
        "nodes": [node],
        "meshes": [{"primitives": [primitive]}],
        "buffers": [{"byteLength": len(blob)}],
        "bufferViews": [
            {"buffer": 0, "byteOffset": 0, "byteLength": len(positions)},
            {"buffer": 0, "byteOffset": len(positions), "byteLength": 6},
        ],
        "accessors": [
            {"bufferView": 0, "componentType": 5126, "count": 3, "type": "VEC3"},
            {"bufferView": 1, "componentType": 5123, "count": 3, "type": "SCALAR"},
        ],
    }
    if with_material:
        primitive["material"] = 0
        doc["materials"] = [
            {"name": "Fabric", "pbrMetallicRoughness": {"baseColorFactor": [0.5, 0.5, 0.5, 1], "metallicFactor": 0.1}}
        ]
    if buffer_uri is not None:
        doc["buffers"][0]["uri"] = buffer_uri
    return doc, blob


def gltf_bytes(**kw) -> bytes:
    doc, blob = _gltf_document(**kw)
    doc["buffers"][0]["uri"] = "data:application/octet-stream;base64," + base64.b64encode(blob).decode()
    return json.dumps(doc).encode()


def glb_bytes() -> bytes:
    doc, blob = _gltf_document()
    json_chunk = json.dumps(doc).encode()
    json_chunk += b" " * (-len(json_chunk) % 4)
    blob += b"\x00" * (-len(blob) % 4)
    body = (
        struct.pack("<II", len(json_chunk), 0x4E4F534A) + json_chunk + struct.pack("<II", len(blob), 0x004E4942) + blob
    )
    return b"glTF" + struct.pack("<II", 2, 12 + len(body)) + body


def _frame(generation=1, color=(255, 0, 0, 255), size=(64, 64)) -> RasterFrame:
    return RasterFrame(generation=generation, image=Image.new("RGBA", size, color))


class GltfLoaderTests(unittest.TestCase):
    def test_loads_embedded_json_gltf(self) -> None:
        model = load_gltf_bytes(gltf_bytes())
        self.assertEqual(len(model.meshes), 1)
        mesh = model.meshes[0]
        self.assertEqual(mesh.indices, [0, 1, 2])
        self.assertEqual(mesh.material_id, "mat_0")
        self.assertAlmostEqual(model.materials[0].base_color.r, 0.5)
        self.assertAlmostEqual(model.materials[0].metallic, 0.1)

    def test_loads_glb(self) -> None:
        model = load_gltf_bytes(glb_bytes())
        self.assertEqual(len(model.meshes[0].vertices), 3)

    def test_node_translation_is_baked(self) -> None:
        model = load_gltf_bytes(gltf_bytes(translation=[10, 0, 0]))
        self.assertAlmostEqual(model.meshes[0].bounds_min.x, 10.0)
        self.assertAlmostEqual(model.meshes[0].bounds_max.x, 14.0)

    def test_garbage_raises_mesh_load_failure(self) -> None:
        for payload in (b"", b"not json", b"glTF\x01\x00\x00\x00\x0c\x00\x00\x00"):
            with self.assertRaises(MeshLoadFailure):
                load_gltf_bytes(payload)

    def test_wrong_shaped_json_raises_mesh_load_failure(self) -> None:
        payloads = (
            b"[]",
            json.dumps({"nodes": [1]}).encode(),
            json.dumps({"meshes": [{"primitives": ["x"]}]}).encode(),
            json.dumps({"buffers": ["blob"]}).encode(),
        )
        for payload in payloads:
            with self.assertRaises(MeshLoadFailure):
                load_gltf_bytes(payload)

    def test_external_buffer_is_unsupported(self) -> None:
        doc, _ = _gltf_document(buffer_uri="scene.bin")
        with self.assertRaises(MeshLoadFailure):
            load_gltf_bytes(json.dumps(doc).encode())


class ViewportLifecycleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.product = get_product("product-tshirt")
        self.backend = HeadlessRenderBackend()
        self.viewport = ViewportController(backend=self.backend)

    def test_initialize_builds_scene_and_normalizes_model(self) -> None:
        self.assertEqual(self.viewport.state, ViewportState.UNINITIALIZED)
        scene = self.viewport.initialize(self.product, model_source=gltf_bytes())
        self.assertEqual(self.viewport.state, ViewportState.READY)
        self.assertFalse(scene.used_fallback_mesh)
        self.assertEqual(scene.clear_color[:3], (0.1, 0.1, 0.18))
        self.assertEqual(scene.hemispheric_light.intensity, 0.6)
        self.assertEqual(scene.directional_light.direction.as_tuple(), (-1, -2, -1))
        self.assertEqual(scene.directional_light.position.as_tuple(), (5, 10, 5))

        ground = scene.meshes["ground"]
        self.assertEqual(ground.bounds_min.y, -1.0)
        self.assertEqual(ground.bounds_max.x - ground.bounds_min.x, 10.0)

        product_mesh = scene.meshes[scene.product_nodes()[0].mesh_id]
        lo, hi = product_mesh.bounds_min, product_mesh.bounds_max
        self.assertAlmostEqual(max(hi.x - lo.x, hi.y - lo.y, hi.z - lo.z), 2.0)
        self.assertAlmostEqual((lo.x + hi.x) / 2, 0.0)
        self.assertAlmostEqual((lo.y + hi.y) / 2, 0.0)
        self.assertIn("design_overlay_plane", self.backend.meshes)

    def test_mesh_failure_uses_placeholder_box(self) -> None:
        scene = self.viewport.initialize(self.product, model_source=b"broken")
        self.assertEqual(self.viewport.state, ViewportState.READY)
        self.assertTrue(scene.used_fallback_mesh)
        box = scene.meshes["placeholder_box"]
        self.assertAlmostEqual(box.bounds_max.x - box.bounds_min.x, 1.5)
        self.assertAlmostEqual(box.bounds_max.z - box.bounds_min.z, 0.3)
        material = scene.materials["placeholder"]
        self.assertEqual((material.metallic, material.roughness), (0.0, 0.8))

    def test_wrong_shaped_model_uses_placeholder(self) -> None:
        for payload in (b"[]", json.dumps({"nodes": [1]}).encode()):
            viewport = ViewportController(backend=HeadlessRenderBackend())
            scene = viewport.initialize(self.product, model_source=payload)
            self.assertEqual(viewport.state, ViewportState.READY)
            self.assertTrue(scene.used_fallback_mesh)
            self.assertIn("placeholder_box", scene.meshes)

    def test_missing_model_file_falls_back(self) -> None:
        scene = self.viewport.initialize(self.product)
        self.assertTrue(scene.used_fallback_mesh)

    def test_invalid_transitions(self) -> None:
        with self.assertRaises(InvalidViewportState):
            self.viewport.render_frame()
        self.viewport.initialize(self.product, model_source=gltf_bytes())
        with self.assertRaises(InvalidViewportState):
            self.viewport.initialize(self.product)
        self.viewport.dispose()
        self.assertEqual(self.viewport.state, ViewportState.DISPOSED)
        for action in (
            lambda: self.viewport.initialize(self.product),
            self.viewport.render_frame,
            lambda: self.viewport.apply_color("#000000"),
            self.viewport.zoom_in,
        ):
            with self.assertRaises(InvalidViewportState):
                action()
        self.viewport.dispose()

    def test_frames_before_ready_are_held(self) -> None:
        self.viewport.publish_texture(_frame(generation=3))
        self.assertFalse(self.viewport.texture_bound)
        self.viewport.initialize(self.product, model_source=gltf_bytes())
        self.assertTrue(self.viewport.texture_bound)
        self.assertEqual(self.viewport.texture.source_generation, 3)
        self.assertEqual(self.viewport.texture.version, 1)

    def test_texture_updates_in_place(self) -> None:
        self.viewport.initialize(self.product, model_source=gltf_bytes())
        texture = self.viewport.texture
        self.viewport.publish_texture(_frame(generation=1, color=(255, 0, 0, 255)))
        self.viewport.publish_texture(_frame(generation=2, color=(0, 0, 255, 255)))
        self.assertIs(self.viewport.texture, texture)
        self.assertEqual(texture.version, 2)
        self.assertEqual(texture.pixels.getpixel((5, 5)), (0, 0, 255, 255))
        self.assertEqual(self.backend.texture_uploads, [("design_texture", 1), ("design_texture", 2)])
        overlay = self.viewport.scene.materials["design_overlay"]
        self.assertEqual(overlay.albedo_texture_id, "design_texture")
        self.assertTrue(overlay.has_alpha)

    def test_clear_texture_unbinds(self) -> None:
        self.viewport.initialize(self.product, model_source=gltf_bytes())
        self.viewport.publish_texture(_frame())
        self.viewport.clear_texture()
        self.assertFalse(self.viewport.texture_bound)
        self.assertIsNone(self.viewport.scene.materials["design_overlay"].albedo_texture_id)
        self.assertFalse(self.viewport.render_frame().texture_bound)

    def test_frames_after_dispose_are_dropped(self) -> None:
        self.viewport.initialize(self.product, model_source=gltf_bytes())
        self.viewport.dispose()
        with self.assertLogs("atelier.viewport.service", level="WARNING"):
            self.viewport.publish_texture(_frame())
        self.assertEqual(self.viewport.texture.version, 0)
        self.assertIn("design_texture", self.backend.released)

    def test_apply_color_is_idempotent_and_leaves_texture(self) -> None:
        scene = self.viewport.initialize(self.product, model_source=gltf_bytes())
        self.assertEqual(scene.product_color, "#FFFFFF")
        self.viewport.publish_texture(_frame())
        self.viewport.apply_color("#FF0000")
        self.viewport.apply_color("#FF0000")
        for material in scene.product_materials():
            self.assertEqual(material.base_color.to_hex(), "#ff0000")
        self.assertEqual(scene.materials["ground"].base_color.to_hex(), "#333340")
        self.assertEqual(self.viewport.texture.version, 1)
        self.assertTrue(self.viewport.texture_bound)

    def test_texture_area_recorded_on_overlay(self) -> None:
        self.viewport.initialize(self.product, model_source=gltf_bytes())
        self.viewport.set_texture_area(self.product.area("back"))
        overlay = self.viewport.scene.materials["design_overlay"]
        self.assertEqual(overlay.texture_offset, (0.5, 0.0))
        self.assertEqual(overlay.texture_scale, (0.5, 0.5))

    def test_camera_zoom_clamps_and_resets(self) -> None:
        pos = self.viewport.camera_position()
        self.assertAlmostEqual(pos.x, 0.0)
        self.assertAlmostEqual(pos.y, 4 * math.cos(math.pi / 2.5))
        self.assertAlmostEqual(pos.z, -4 * math.sin(math.pi / 2.5))

        self.assertEqual(self.viewport.zoom_in(), 3.5)
        for _ in range(10):
            self.viewport.zoom_in()
        self.assertEqual(self.viewport.camera.radius, 2.0)
        for _ in range(30):
            self.viewport.zoom_out()
        self.assertEqual(self.viewport.camera.radius, 10.0)
        self.viewport.reset_camera()
        self.assertEqual(self.viewport.camera.radius, 4.0)

    def test_render_frame_counts_scene(self) -> None:
        self.viewport.initialize(self.product, model_source=gltf_bytes())
        self.viewport.publish_texture(_frame())
        stats = self.viewport.render_frame()
        # ground (2) + product triangle (1) + overlay (2)
        self.assertEqual(stats.triangle_count, 5)
        self.assertEqual(stats.node_count, 3)
        self.assertTrue(stats.texture_bound)
        self.assertEqual(stats.texture_version, 1)
        self.assertEqual(len(self.backend.frames), 1)
