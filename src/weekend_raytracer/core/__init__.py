"""Core rendering module.

Components:
    ray: Ray data structure and vector utilities
    integrator: Recursive path tracing against the sky gradient
    progressive: Sample accumulation across batches
"""

from .ray import (
    MAX_REJECTION_ATTEMPTS,
    Ray,
    cross,
    dot,
    length,
    length_squared,
    make_ray,
    normalize,
    random_in_unit_disk,
    random_in_unit_sphere,
    ray_at,
    reflect,
    refract,
    schlick,
    vec3,
)

# integrator and progressive are not imported here; they depend on the scene
# and camera packages, which import from this one.

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length",
    "length_squared",
    "normalize",
    "dot",
    "cross",
    "reflect",
    "refract",
    "schlick",
    "random_in_unit_sphere",
    "random_in_unit_disk",
    "MAX_REJECTION_ATTEMPTS",
]
