"""Orbit camera around the product."""
from __future__ import annotations

import math

from pydantic import BaseModel, Field

from atelier.viewport.geometry import Vector3

DEFAULT_ALPHA = -math.pi / 2
DEFAULT_BETA = math.pi / 2.5
DEFAULT_RADIUS = 4.0
MIN_RADIUS = 2.0
MAX_RADIUS = 10.0
ZOOM_STEP = 0.5


class OrbitCamera(BaseModel):
    """Camera on a sphere around ``target``.

    ``alpha`` is the longitudinal angle in the X-Z plane, ``beta`` the polar
    angle from +Y, both in radians.
    """

    alpha: float = DEFAULT_ALPHA
    beta: float = DEFAULT_BETA
    radius: float = DEFAULT_RADIUS
    target: Vector3 = Field(default_factory=lambda: Vector3(x=0, y=0, z=0))
    lower_radius_limit: float = MIN_RADIUS
    upper_radius_limit: float = MAX_RADIUS
    fov_deg: float = 45.0

    def _clamp(self, radius: float) -> float:
        return max(self.lower_radius_limit, min(self.upper_radius_limit, radius))

    def zoom_in(self, step: float = ZOOM_STEP) -> float:
        self.radius = self._clamp(self.radius - step)
        return self.radius

    def zoom_out(self, step: float = ZOOM_STEP) -> float:
        self.radius = self._clamp(self.radius + step)
        return self.radius

    def reset(self) -> None:
        self.alpha = DEFAULT_ALPHA
        self.beta = DEFAULT_BETA
        self.radius = DEFAULT_RADIUS
        self.target = Vector3(x=0, y=0, z=0)

    def position(self) -> Vector3:
        sin_b = math.sin(self.beta)
        return Vector3(
            x=self.target.x + self.radius * math.cos(self.alpha) * sin_b,
            y=self.target.y + self.radius * math.cos(self.beta),
            z=self.target.z + self.radius * math.sin(self.alpha) * sin_b,
        )


__all__ = ["OrbitCamera", "DEFAULT_ALPHA", "DEFAULT_BETA", "DEFAULT_RADIUS", "MIN_RADIUS", "MAX_RADIUS", "ZOOM_STEP"]
