"""Axis-aligned bounding boxes.

Boxes exist on both sides of the Taichi boundary:

- ``BoundingBox`` is an immutable host-side value used while building the
  BVH. It holds NumPy vectors and supports the union operation.
- ``AABB`` is the Taichi dataclass the traversal code tests rays against with
  the slab method (``hit_aabb``).

A box test is a fast reject used to prune traversal; it never produces a hit
record by itself.

Example:
    >>> from weekend_raytracer.geometry.aabb import BoundingBox, surrounding_box
    >>> a = BoundingBox.from_center_radius((0, 0, 0), 1.0)
    >>> b = BoundingBox.from_center_radius((3, 0, 0), 1.0)
    >>> surrounding_box(a, b).maximum
    array([4., 1., 1.])
"""

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from weekend_raytracer.core.ray import Ray

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


# =============================================================================
# Host-side bounding box
# =============================================================================


@dataclass(frozen=True, eq=False)
class BoundingBox:
    """An axis-aligned box on the host.

    Attributes:
        minimum: Corner with the smallest coordinate on every axis.
        maximum: Corner with the largest coordinate on every axis.

    Zero-volume boxes (minimum == maximum on some axis) are legal.
    """

    minimum: npt.NDArray[np.float64]
    maximum: npt.NDArray[np.float64]

    def __post_init__(self) -> None:
        minimum = np.asarray(self.minimum, dtype=np.float64).reshape(3)
        maximum = np.asarray(self.maximum, dtype=np.float64).reshape(3)
        if np.any(minimum > maximum):
            raise ValueError(
                f"Bounding box minimum {minimum.tolist()} exceeds maximum "
                f"{maximum.tolist()} on at least one axis"
            )
        object.__setattr__(self, "minimum", minimum)
        object.__setattr__(self, "maximum", maximum)

    @classmethod
    def from_center_radius(cls, center: Sequence[float], radius: float) -> "BoundingBox":
        """Box enclosing a sphere.

        The magnitude of the radius is used, so spheres with a negative radius
        (inverted shells) still produce a well-formed box.
        """
        c = np.asarray(center, dtype=np.float64)
        r = abs(float(radius))
        return cls(c - r, c + r)

    def contains(self, other: "BoundingBox") -> bool:
        """Return True if ``other`` lies entirely inside this box."""
        return bool(
            np.all(self.minimum <= other.minimum) and np.all(self.maximum >= other.maximum)
        )

    def axis_minimum(self, axis: int) -> float:
        """Minimum coordinate along ``axis`` (0 = x, 1 = y, 2 = z)."""
        return float(self.minimum[axis])

    def as_tuples(self) -> tuple[tuple[float, float, float], tuple[float, float, float]]:
        """Return (minimum, maximum) as plain float tuples."""
        lo = self.minimum
        hi = self.maximum
        return (
            (float(lo[0]), float(lo[1]), float(lo[2])),
            (float(hi[0]), float(hi[1]), float(hi[2])),
        )


def surrounding_box(box0: BoundingBox, box1: BoundingBox) -> BoundingBox:
    """Smallest box containing both inputs.

    Componentwise minimum of the minima and componentwise maximum of the maxima.
    """
    return BoundingBox(
        np.minimum(box0.minimum, box1.minimum),
        np.maximum(box0.maximum, box1.maximum),
    )


# =============================================================================
# Taichi-side box and slab test
# =============================================================================


@ti.dataclass
class AABB:
    """An axis-aligned box usable inside Taichi kernels.

    Attributes:
        minimum: Corner with the smallest coordinate on every axis.
        maximum: Corner with the largest coordinate on every axis.
    """

    minimum: vec3
    maximum: vec3


@ti.func
def hit_aabb(box: AABB, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> ti.i32:
    """Slab test: does the ray cross the box anywhere in (t_min, t_max)?

    For each axis the two plane crossings are ordered with min/max so that
    negative direction components work, and the running interval is narrowed
    to their intersection. The box is missed once the interval is empty.

    A zero direction component means the ray runs parallel to that pair of
    planes: the axis imposes no limit if the origin lies between them and
    rules the box out otherwise. No division happens on such an axis.

    Args:
        box: The box to test.
        ray: The ray to test.
        t_min: Lower end of the parametric window.
        t_max: Upper end of the parametric window.

    Returns:
        1 if the ray overlaps the box within the window, 0 otherwise.
    """
    lo = t_min
    hi = t_max
    result = 1

    for a in ti.static(range(3)):
        origin = ray.origin[a]
        direction = ray.direction[a]
        if direction == 0.0:
            if origin < box.minimum[a] or origin > box.maximum[a]:
                result = 0
        else:
            t0 = (box.minimum[a] - origin) / direction
            t1 = (box.maximum[a] - origin) / direction
            lo = tm.max(lo, tm.min(t0, t1))
            hi = tm.min(hi, tm.max(t0, t1))
        if hi <= lo:
            result = 0

    return result


@ti.func
def surrounding_aabb(box0: AABB, box1: AABB) -> AABB:
    """Smallest box containing both inputs (Taichi version)."""
    return AABB(
        minimum=tm.min(box0.minimum, box1.minimum),
        maximum=tm.max(box0.maximum, box1.maximum),
    )
