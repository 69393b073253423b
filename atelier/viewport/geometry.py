"""Geometry types for the headless product viewport."""
from __future__ import annotations

import math
from typing import List, Optional, Tuple

from PIL import ImageColor
from pydantic import BaseModel, Field


class Vector3(BaseModel):
    x: float
    y: float
    z: float

    def add(self, other: Vector3) -> Vector3:
        return Vector3(x=self.x + other.x, y=self.y + other.y, z=self.z + other.z)

    def sub(self, other: Vector3) -> Vector3:
        return Vector3(x=self.x - other.x, y=self.y - other.y, z=self.z - other.z)

    def mul(self, scalar: float) -> Vector3:
        return Vector3(x=self.x * scalar, y=self.y * scalar, z=self.z * scalar)

    def magnitude(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def normalize(self) -> Vector3:
        m = self.magnitude()
        if m == 0:
            return Vector3(x=0, y=0, z=0)
        return self.mul(1.0 / m)

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)


class Color3(BaseModel):
    """Linear color, components in 0..1."""

    r: float = Field(..., ge=0.0, le=1.0)
    g: float = Field(..., ge=0.0, le=1.0)
    b: float = Field(..., ge=0.0, le=1.0)

    @classmethod
    def from_hex(cls, value: str) -> Color3:
        r, g, b = ImageColor.getrgb(value)[:3]
        return cls(r=r / 255.0, g=g / 255.0, b=b / 255.0)

    def to_hex(self) -> str:
        return "#{:02x}{:02x}{:02x}".format(
            int(round(self.r * 255)), int(round(self.g * 255)), int(round(self.b * 255))
        )


class UV(BaseModel):
    u: float
    v: float


class Mesh(BaseModel):
    id: str
    name: Optional[str] = None
    vertices: List[Vector3]
    normals: List[Vector3] = Field(default_factory=list)
    uvs: List[UV] = Field(default_factory=list)
    indices: List[int]
    material_id: Optional[str] = None
    bounds_min: Optional[Vector3] = None
    bounds_max: Optional[Vector3] = None

    def compute_bounds(self) -> Tuple[Vector3, Vector3]:
        xs = [v.x for v in self.vertices]
        ys = [v.y for v in self.vertices]
        zs = [v.z for v in self.vertices]
        self.bounds_min = Vector3(x=min(xs), y=min(ys), z=min(zs))
        self.bounds_max = Vector3(x=max(xs), y=max(ys), z=max(zs))
        return self.bounds_min, self.bounds_max


def combined_bounds(meshes: List[Mesh]) -> Tuple[Vector3, Vector3]:
    mins, maxs = zip(*(m.compute_bounds() for m in meshes))
    return (
        Vector3(x=min(v.x for v in mins), y=min(v.y for v in mins), z=min(v.z for v in mins)),
        Vector3(x=max(v.x for v in maxs), y=max(v.y for v in maxs), z=max(v.z for v in maxs)),
    )


def normalize_meshes(meshes: List[Mesh], target_extent: float = 2.0) -> float:
    """Scale so the largest dimension equals ``target_extent`` and center on the origin.

    Vertices are rewritten in place; returns the applied scale factor.
    """
    lo, hi = combined_bounds(meshes)
    extent = max(hi.x - lo.x, hi.y - lo.y, hi.z - lo.z)
    scale = target_extent / extent if extent > 0 else 1.0
    center = Vector3(x=(lo.x + hi.x) / 2, y=(lo.y + hi.y) / 2, z=(lo.z + hi.z) / 2)
    for mesh in meshes:
        mesh.vertices = [v.sub(center).mul(scale) for v in mesh.vertices]
        mesh.compute_bounds()
    return scale


__all__ = ["Vector3", "Color3", "UV", "Mesh", "combined_bounds", "normalize_meshes"]
