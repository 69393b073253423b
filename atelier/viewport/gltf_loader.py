"""glTF 2.0 / GLB loading for product models.

Only what the viewport needs: triangle positions, normals, UVs, indices
and PBR base colors. Node transforms are baked into world-space vertices.
Buffers must be embedded (GLB binary chunk or base64 data URIs).
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
import struct
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from pydantic import BaseModel, Field

from atelier.common.errors import MeshLoadFailure
from atelier.viewport.geometry import UV, Color3, Mesh, Vector3

logger = logging.getLogger(__name__)

GLB_MAGIC = b"glTF"
CHUNK_JSON = 0x4E4F534A
CHUNK_BIN = 0x004E4942

COMPONENT_FORMAT = {5120: "b", 5121: "B", 5122: "h", 5123: "H", 5125: "I", 5126: "f"}
COMPONENT_SIZE = {5120: 1, 5121: 1, 5122: 2, 5123: 2, 5125: 4, 5126: 4}
TYPE_COMPONENTS = {"SCALAR": 1, "VEC2": 2, "VEC3": 3, "VEC4": 4, "MAT4": 16}

Matrix = Tuple[float, ...]  # 4x4 column-major, glTF convention
IDENTITY: Matrix = (1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0)


class GltfMaterial(BaseModel):
    id: str
    name: str
    base_color: Color3
    metallic: float = 1.0
    roughness: float = 1.0


class LoadedModel(BaseModel):
    meshes: List[Mesh] = Field(default_factory=list)
    materials: List[GltfMaterial] = Field(default_factory=list)


class MinimalGltfParser:
    """Minimal glTF/GLB parser for in-memory bytes."""

    def __init__(self, data: bytes):
        self.data = data
        self.json_data: Dict[str, Any] = {}
        self.buffers: List[bytes] = []
        self._parse()

    def _parse(self) -> None:
        if self.data[0:4] == GLB_MAGIC:
            self._parse_glb()
            return
        try:
            self.json_data = json.loads(self.data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MeshLoadFailure(f"Could not parse glTF JSON: {exc}")
        if not isinstance(self.json_data, dict):
            raise MeshLoadFailure("glTF root must be a JSON object")
        for b_def in self.json_data.get("buffers", []):
            uri = b_def.get("uri")
            if uri and uri.startswith("data:"):
                self.buffers.append(self._decode_data_uri(uri))
            else:
                # external .bin files are not resolved
                self.buffers.append(b"")

    def _parse_glb(self) -> None:
        if len(self.data) < 12:
            raise MeshLoadFailure("GLB header truncated")
        _, version, _ = struct.unpack("<III", self.data[0:12])
        if version != 2:
            raise MeshLoadFailure(f"Unsupported glTF version: {version}")

        offset = 12
        file_len = len(self.data)
        while offset + 8 <= file_len:
            chunk_len, chunk_type = struct.unpack("<II", self.data[offset:offset + 8])
            offset += 8
            if offset + chunk_len > file_len:
                raise MeshLoadFailure("GLB chunk truncated")
            chunk_data = self.data[offset:offset + chunk_len]
            offset += chunk_len
            if chunk_type == CHUNK_JSON:
                try:
                    self.json_data = json.loads(chunk_data.decode("utf-8"))
                except (UnicodeDecodeError, json.JSONDecodeError) as exc:
                    raise MeshLoadFailure(f"Could not parse GLB JSON chunk: {exc}")
                if not isinstance(self.json_data, dict):
                    raise MeshLoadFailure("GLB JSON chunk must be an object")
            elif chunk_type == CHUNK_BIN:
                self.buffers.append(chunk_data)
        if not self.json_data:
            raise MeshLoadFailure("GLB has no JSON chunk")

    def _decode_data_uri(self, uri: str) -> bytes:
        header, _, encoded = uri.partition(",")
        if "base64" not in header:
            raise MeshLoadFailure("Only base64 data URIs are supported for glTF buffers")
        try:
            return base64.b64decode(encoded)
        except binascii.Error as exc:
            raise MeshLoadFailure(f"Invalid base64 buffer: {exc}")

    def get_buffer_view_data(self, buffer_view_index: int) -> Tuple[bytes, int]:
        views = self.json_data.get("bufferViews", [])
        if buffer_view_index >= len(views):
            raise MeshLoadFailure(f"Invalid bufferView index {buffer_view_index}")
        view = views[buffer_view_index]
        buffer_idx = view.get("buffer", 0)
        if buffer_idx >= len(self.buffers) or not self.buffers[buffer_idx]:
            raise MeshLoadFailure(f"Buffer {buffer_idx} missing or external")
        start = view.get("byteOffset", 0)
        data = self.buffers[buffer_idx][start:start + view.get("byteLength", 0)]
        return data, view.get("byteStride", 0)

    def read_accessor(self, accessor_idx: int) -> List[Any]:
        """Accessor values as scalars or tuples."""
        accessors = self.json_data.get("accessors", [])
        if accessor_idx >= len(accessors):
            raise MeshLoadFailure(f"Invalid accessor index {accessor_idx}")
        acc = accessors[accessor_idx]
        count = acc.get("count", 0)
        num_comp = TYPE_COMPONENTS.get(acc.get("type", "SCALAR"), 1)

        if acc.get("bufferView") is None:
            zero: Union[int, Tuple[int, ...]] = 0 if num_comp == 1 else (0,) * num_comp
            return [zero] * count

        bv_data, stride = self.get_buffer_view_data(acc["bufferView"])
        component_type = acc.get("componentType", 5126)
        fmt_char = COMPONENT_FORMAT.get(component_type)
        if fmt_char is None:
            raise MeshLoadFailure(f"Unsupported componentType {component_type}")
        elem_size = num_comp * COMPONENT_SIZE[component_type]
        stride = stride or elem_size
        elem_fmt = "<" + fmt_char * num_comp

        values: List[Any] = []
        offset = acc.get("byteOffset", 0)
        for _ in range(count):
            if offset + elem_size > len(bv_data):
                raise MeshLoadFailure(f"Accessor {accessor_idx} overruns its bufferView")
            val = struct.unpack(elem_fmt, bv_data[offset:offset + elem_size])
            values.append(val[0] if num_comp == 1 else val)
            offset += stride
        return values


def _mat_mul(a: Matrix, b: Matrix) -> Matrix:
    out = [0.0] * 16
    for col in range(4):
        for row in range(4):
            out[col * 4 + row] = sum(a[k * 4 + row] * b[col * 4 + k] for k in range(4))
    return tuple(out)


def _node_matrix(node_def: Dict[str, Any]) -> Matrix:
    if "matrix" in node_def:
        return tuple(float(v) for v in node_def["matrix"])
    tx, ty, tz = node_def.get("translation", [0.0, 0.0, 0.0])
    qx, qy, qz, qw = node_def.get("rotation", [0.0, 0.0, 0.0, 1.0])
    sx, sy, sz = node_def.get("scale", [1.0, 1.0, 1.0])
    # rotation matrix from unit quaternion, columns scaled
    r00 = 1 - 2 * (qy * qy + qz * qz)
    r01 = 2 * (qx * qy - qz * qw)
    r02 = 2 * (qx * qz + qy * qw)
    r10 = 2 * (qx * qy + qz * qw)
    r11 = 1 - 2 * (qx * qx + qz * qz)
    r12 = 2 * (qy * qz - qx * qw)
    r20 = 2 * (qx * qz - qy * qw)
    r21 = 2 * (qy * qz + qx * qw)
    r22 = 1 - 2 * (qx * qx + qy * qy)
    return (
        r00 * sx, r10 * sx, r20 * sx, 0.0,
        r01 * sy, r11 * sy, r21 * sy, 0.0,
        r02 * sz, r12 * sz, r22 * sz, 0.0,
        tx, ty, tz, 1.0,
    )


def _transform_point(m: Matrix, p: Tuple[float, float, float]) -> Vector3:
    x, y, z = p
    return Vector3(
        x=m[0] * x + m[4] * y + m[8] * z + m[12],
        y=m[1] * x + m[5] * y + m[9] * z + m[13],
        z=m[2] * x + m[6] * y + m[10] * z + m[14],
    )


def _transform_normal(m: Matrix, n: Tuple[float, float, float]) -> Vector3:
    x, y, z = n
    return Vector3(
        x=m[0] * x + m[4] * y + m[8] * z,
        y=m[1] * x + m[5] * y + m[9] * z,
        z=m[2] * x + m[6] * y + m[10] * z,
    ).normalize()


def _parse_material(mat_def: Dict[str, Any], index: int) -> GltfMaterial:
    pbr = mat_def.get("pbrMetallicRoughness", {})
    base = pbr.get("baseColorFactor", [1, 1, 1, 1])
    return GltfMaterial(
        id=f"mat_{index}",
        name=mat_def.get("name", f"Material_{index}"),
        base_color=Color3(r=float(base[0]), g=float(base[1]), b=float(base[2])),
        metallic=float(pbr.get("metallicFactor", 1.0)),
        roughness=float(pbr.get("roughnessFactor", 1.0)),
    )


def _parse_primitive(
    parser: MinimalGltfParser,
    prim: Dict[str, Any],
    mesh_id: str,
    world: Matrix,
    mat_ids: Dict[int, str],
) -> Mesh:
    mode = prim.get("mode", 4)
    if mode != 4:
        raise MeshLoadFailure(f"Primitive mode {mode} is not triangles", details={"mesh_id": mesh_id})
    attrs = prim.get("attributes", {})
    pos_idx = attrs.get("POSITION")
    if pos_idx is None:
        raise MeshLoadFailure(f"{mesh_id} is missing POSITION", details={"mesh_id": mesh_id})

    positions = parser.read_accessor(pos_idx)
    normals = parser.read_accessor(attrs["NORMAL"]) if "NORMAL" in attrs else []
    uvs = parser.read_accessor(attrs["TEXCOORD_0"]) if "TEXCOORD_0" in attrs else []
    if "indices" in prim:
        indices = [int(i) for i in parser.read_accessor(prim["indices"])]
    else:
        indices = list(range(len(positions)))
    if any(i >= len(positions) for i in indices):
        raise MeshLoadFailure(f"{mesh_id} has out-of-range indices", details={"mesh_id": mesh_id})

    mesh = Mesh(
        id=mesh_id,
        vertices=[_transform_point(world, p) for p in positions],
        normals=[_transform_normal(world, n) for n in normals],
        uvs=[UV(u=uv[0], v=uv[1]) for uv in uvs],
        indices=indices,
        material_id=mat_ids.get(prim.get("material")),
    )
    mesh.compute_bounds()
    return mesh


def load_gltf_bytes(data: bytes) -> LoadedModel:
    """Parse glTF JSON or GLB bytes into world-space meshes."""
    if not data:
        raise MeshLoadFailure("Model data is empty")
    try:
        return _build_model(MinimalGltfParser(data))
    except (AttributeError, KeyError, IndexError, TypeError, ValueError, struct.error) as exc:
        raise MeshLoadFailure(f"Malformed glTF document: {exc}")


def _build_model(parser: MinimalGltfParser) -> LoadedModel:
    root = parser.json_data

    materials = [_parse_material(m, i) for i, m in enumerate(root.get("materials", []))]
    mat_ids = {i: m.id for i, m in enumerate(materials)}
    mesh_defs = root.get("meshes", [])
    node_defs = root.get("nodes", [])

    model = LoadedModel(materials=materials)

    def visit(node_idx: int, parent: Matrix, depth: int) -> None:
        if node_idx >= len(node_defs) or depth > 64:
            raise MeshLoadFailure(f"Invalid node reference {node_idx}")
        node_def = node_defs[node_idx]
        world = _mat_mul(parent, _node_matrix(node_def))
        mesh_idx = node_def.get("mesh")
        if mesh_idx is not None:
            if mesh_idx >= len(mesh_defs):
                raise MeshLoadFailure(f"Invalid mesh reference {mesh_idx}")
            for j, prim in enumerate(mesh_defs[mesh_idx].get("primitives", [])):
                model.meshes.append(
                    _parse_primitive(parser, prim, f"mesh_{node_idx}_{mesh_idx}_p{j}", world, mat_ids)
                )
        for child in node_def.get("children", []):
            visit(child, world, depth + 1)

    scenes = root.get("scenes", [])
    scene_idx = root.get("scene", 0)
    if scenes and scene_idx < len(scenes):
        roots = scenes[scene_idx].get("nodes", [])
    else:
        child_ids = {c for n in node_defs for c in n.get("children", [])}
        roots = [i for i in range(len(node_defs)) if i not in child_ids]
    for idx in roots:
        visit(idx, IDENTITY, 0)

    if not model.meshes and not node_defs:
        # node-less file: take mesh definitions as-is
        for i, mesh_def in enumerate(mesh_defs):
            for j, prim in enumerate(mesh_def.get("primitives", [])):
                model.meshes.append(_parse_primitive(parser, prim, f"mesh_{i}_p{j}", IDENTITY, mat_ids))

    if not model.meshes:
        raise MeshLoadFailure("Model contains no triangle meshes")
    logger.debug("Loaded glTF with %d meshes, %d materials", len(model.meshes), len(model.materials))
    return model


def load_model_source(source: Union[bytes, str, Path]) -> LoadedModel:
    """Load from raw bytes or a local file path."""
    if isinstance(source, (bytes, bytearray)):
        return load_gltf_bytes(bytes(source))
    path = Path(source)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise MeshLoadFailure(f"Could not read model file {path}: {exc}", details={"path": str(path)})
    return load_gltf_bytes(data)


__all__ = ["MinimalGltfParser", "GltfMaterial", "LoadedModel", "load_gltf_bytes", "load_model_source"]
