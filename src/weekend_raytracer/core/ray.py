"""Ray data structure and vector utilities for the path tracer.

This module provides the Ray dataclass and the small set of vector operations
the geometry and material code is written against. Rays carry a shutter time
so that moving geometry can be sampled at the instant the ray was cast.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from weekend_raytracer.core.ray import Ray, ray_at, vec3
    >>> # Inside a kernel:
    >>> # ray = Ray(origin=vec3(0, 0, 0), direction=vec3(0, 0, -1), time=0.0)
    >>> # point = ray_at(ray, 2.0)  # (0, 0, -2)
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Upper bound on rejection-sampling attempts per sample
MAX_REJECTION_ATTEMPTS = 64


@ti.dataclass
class Ray:
    """A ray with an origin point, direction vector and shutter time.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Not required to be
            unit length; intersection code works with any non-zero direction.
        time: The instant the ray samples, within the camera shutter interval.
    """

    origin: vec3
    direction: vec3
    time: ti.f32


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3, time: ti.f32) -> Ray:
    """Create a ray from origin, direction and time."""
    return Ray(origin=origin, direction=direction, time=time)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def length(v: vec3) -> ti.f32:
    """Compute the Euclidean length of a vector."""
    return tm.length(v)


@ti.func
def length_squared(v: vec3) -> ti.f32:
    """Compute the squared length of a vector."""
    return tm.dot(v, v)


@ti.func
def normalize(v: vec3) -> vec3:
    """Return the unit vector pointing along v."""
    return tm.normalize(v)


@ti.func
def dot(a: vec3, b: vec3) -> ti.f32:
    """Compute the dot product of two vectors."""
    return tm.dot(a, b)


@ti.func
def cross(a: vec3, b: vec3) -> vec3:
    """Compute the cross product of two vectors."""
    return tm.cross(a, b)


@ti.func
def reflect(v: vec3, n: vec3) -> vec3:
    """Mirror a vector about a normal.

    Computes v - 2 * dot(v, n) * n. The normal should be unit length; the
    incoming vector may have any length and the result keeps it.

    Args:
        v: The incoming direction (pointing toward the surface).
        n: The surface normal.

    Returns:
        The reflected direction.
    """
    return v - 2.0 * tm.dot(v, n) * n


@ti.func
def refract(v: vec3, n: vec3, ni_over_nt: ti.f32):
    """Bend a direction through an interface using Snell's law.

    The incoming direction is normalized first. With dt = dot(uv, n), the
    discriminant 1 - ni_over_nt^2 * (1 - dt^2) decides whether a transmitted
    ray exists. A non-positive discriminant means total internal reflection.

    Args:
        v: The incoming direction (any length).
        n: The unit normal on the incident side of the interface.
        ni_over_nt: Ratio of the incident to the transmitted refractive index.

    Returns:
        A tuple of (did_refract, refracted) where did_refract is 1 when a
        transmitted direction exists and refracted is that direction (zero
        vector on total internal reflection).
    """
    uv = tm.normalize(v)
    dt = tm.dot(uv, n)
    discriminant = 1.0 - ni_over_nt * ni_over_nt * (1.0 - dt * dt)

    did_refract = 0
    refracted = vec3(0.0, 0.0, 0.0)
    if discriminant > 0.0:
        did_refract = 1
        refracted = ni_over_nt * (uv - n * dt) - n * ti.sqrt(discriminant)
    return did_refract, refracted


@ti.func
def schlick(cosine: ti.f32, ref_idx: ti.f32) -> ti.f32:
    """Approximate Fresnel reflectance with Schlick's polynomial.

    Args:
        cosine: Cosine of the angle between the ray and the normal.
        ref_idx: Index of refraction of the material.

    Returns:
        The reflectance probability in [0, 1].
    """
    r0 = (1.0 - ref_idx) / (1.0 + ref_idx)
    r0 = r0 * r0
    return r0 + (1.0 - r0) * ((1.0 - cosine) ** 5)


# =============================================================================
# Random Sampling Utilities
# =============================================================================


@ti.func
def random_in_unit_sphere() -> vec3:
    """Generate a random point strictly inside the unit sphere.

    Draws points uniformly in [-1, 1]^3 and keeps the first one whose squared
    length is below 1.

    Returns:
        A random point with length < 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(MAX_REJECTION_ATTEMPTS):
        if not found:
            candidate = vec3(
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
            )
            if length_squared(candidate) < 1.0:
                p = candidate
                found = True
    return p


@ti.func
def random_in_unit_disk() -> vec3:
    """Generate a random point inside the unit disk in the xy-plane.

    Used by the thin-lens camera to pick a point on the aperture.

    Returns:
        A random point (x, y, 0) with x^2 + y^2 < 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(MAX_REJECTION_ATTEMPTS):
        if not found:
            candidate = vec3(
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
                0.0,
            )
            if candidate.x * candidate.x + candidate.y * candidate.y < 1.0:
                p = candidate
                found = True
    return p
