"""Sphere primitives: static spheres and spheres moving over a time interval.

Both variants share one quadratic solver. A moving sphere differs only in that
its center is evaluated at the ray's own time before solving, and the normal
is computed from that same time-evaluated center.

The radius is signed. A negative radius leaves the intersection math
unchanged (it only appears squared) but flips the normal to point inward,
which is how hollow glass shells are built from two concentric spheres.
Normals are not re-oriented against the incoming ray; materials work out
entering versus exiting from dot products themselves.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from weekend_raytracer.geometry.sphere import Sphere, hit_sphere, vec3
    >>> sphere = Sphere(center=vec3(0, 0, -1), radius=0.5)
    >>> # Use hit_sphere within a Taichi kernel
"""

from typing import Sequence

import numpy as np
import taichi as ti
import taichi.math as tm

from weekend_raytracer.core.ray import Ray, ray_at
from weekend_raytracer.geometry.aabb import BoundingBox, surrounding_box

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class Sphere:
    """A sphere defined by center point and signed radius.

    Attributes:
        center: The center point of the sphere (vec3).
        radius: The radius. Negative values produce inward-facing normals.
    """

    center: vec3
    radius: ti.f32


@ti.dataclass
class MovingSphere:
    """A sphere whose center moves linearly between two positions.

    Attributes:
        center0: Center at time0.
        center1: Center at time1.
        time0: Start of the motion interval.
        time1: End of the motion interval. Must differ from time0.
        radius: The signed radius.
    """

    center0: vec3
    center1: vec3
    time0: ti.f32
    time1: ti.f32
    radius: ti.f32


@ti.dataclass
class HitRecord:
    """Record of a ray-primitive intersection.

    Attributes:
        hit: Whether the ray intersected the primitive (1 if hit, 0 if miss).
        t: The ray parameter at the intersection. Only valid if hit == 1.
        point: The world-space intersection point. Only valid if hit == 1.
        normal: (point - center) / radius. Unit length, outward for positive
            radii and inward for negative ones. Only valid if hit == 1.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3


@ti.func
def _hit_sphere_at(
    ray: Ray,
    center: vec3,
    radius: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect a ray with a sphere at a fixed center.

    Solves a*t^2 + 2*b*t + c = 0 with
        a = dot(direction, direction)
        b = dot(oc, direction)
        c = dot(oc, oc) - radius^2
        oc = origin - center

    A discriminant b*b - a*c that is not strictly positive is a miss (tangent
    rays included). The nearer root is tried first, then the farther one;
    each is accepted only strictly inside (t_min, t_max).
    """
    oc = ray.origin - center
    a = tm.dot(ray.direction, ray.direction)
    b = tm.dot(oc, ray.direction)
    c = tm.dot(oc, oc) - radius * radius
    discriminant = b * b - a * c

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)

    if discriminant > 0.0:
        sqrt_d = ti.sqrt(discriminant)

        t = (-b - sqrt_d) / a
        valid = (t > t_min) and (t < t_max)

        if not valid:
            t = (-b + sqrt_d) / a
            valid = (t > t_min) and (t < t_max)

        if valid:
            did_hit = 1
            hit_t = t
            hit_point = ray_at(ray, t)
            hit_normal = (hit_point - center) / radius

    return HitRecord(hit=did_hit, t=hit_t, point=hit_point, normal=hit_normal)


@ti.func
def hit_sphere(ray: Ray, sphere: Sphere, t_min: ti.f32, t_max: ti.f32) -> HitRecord:
    """Closest intersection of a ray with a static sphere.

    Args:
        ray: The ray to test.
        sphere: The sphere to test against.
        t_min: Exclusive lower bound on t (callers pass a small positive
            epsilon to avoid re-hitting the surface a ray leaves from).
        t_max: Exclusive upper bound on t.

    Returns:
        A HitRecord; check its hit field.
    """
    return _hit_sphere_at(ray, sphere.center, sphere.radius, t_min, t_max)


@ti.func
def moving_sphere_center(sphere: MovingSphere, time: ti.f32) -> vec3:
    """Center of a moving sphere at the given time.

    center0 + ((time - time0) / (time1 - time0)) * (center1 - center0).
    Times outside [time0, time1] extrapolate along the same line.
    """
    s = (time - sphere.time0) / (sphere.time1 - sphere.time0)
    return sphere.center0 + s * (sphere.center1 - sphere.center0)


@ti.func
def hit_moving_sphere(
    ray: Ray,
    sphere: MovingSphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Closest intersection of a ray with a moving sphere at the ray's time."""
    center = moving_sphere_center(sphere, ray.time)
    return _hit_sphere_at(ray, center, sphere.radius, t_min, t_max)


@ti.func
def make_sphere(center: vec3, radius: ti.f32) -> Sphere:
    """Create a sphere from center and radius within a Taichi kernel."""
    return Sphere(center=center, radius=radius)


# =============================================================================
# Host-side bounds
# =============================================================================


def moving_center_at(
    center0: Sequence[float],
    center1: Sequence[float],
    time0: float,
    time1: float,
    time: float,
) -> np.ndarray:
    """Host-side version of moving_sphere_center.

    Raises:
        ValueError: If time0 == time1 (the interpolation is undefined).
    """
    if time1 == time0:
        raise ValueError(f"Moving sphere needs a non-empty time interval, got [{time0}, {time1}]")
    c0 = np.asarray(center0, dtype=np.float64)
    c1 = np.asarray(center1, dtype=np.float64)
    return c0 + ((time - time0) / (time1 - time0)) * (c1 - c0)


def sphere_bounding_box(center: Sequence[float], radius: float) -> BoundingBox:
    """Box enclosing a static sphere (independent of time)."""
    return BoundingBox.from_center_radius(center, radius)


def moving_sphere_bounding_box(
    center0: Sequence[float],
    center1: Sequence[float],
    time0: float,
    time1: float,
    radius: float,
    t0: float,
    t1: float,
) -> BoundingBox:
    """Box enclosing a moving sphere over the query interval [t0, t1].

    The motion is linear, so the union of the boxes at the two ends of the
    query interval covers every position in between.
    """
    start = moving_center_at(center0, center1, time0, time1, t0)
    end = moving_center_at(center0, center1, time0, time1, t1)
    return surrounding_box(
        BoundingBox.from_center_radius(start, radius),
        BoundingBox.from_center_radius(end, radius),
    )
