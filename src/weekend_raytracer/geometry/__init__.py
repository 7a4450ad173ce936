"""Geometry module: bounding boxes, spheres and the BVH.

Components:
    aabb: Axis-aligned boxes on the host and the slab test in Taichi
    sphere: Static and moving sphere intersection
    bvh: Host-side BVH construction into a flat, stackless layout
"""

from .aabb import AABB, BoundingBox, hit_aabb, surrounding_aabb, surrounding_box
from .bvh import BVH, LEAF, NODE, Bounded, build_bvh
from .sphere import (
    HitRecord,
    MovingSphere,
    Sphere,
    hit_moving_sphere,
    hit_sphere,
    make_sphere,
    moving_center_at,
    moving_sphere_bounding_box,
    moving_sphere_center,
    sphere_bounding_box,
)

__all__ = [
    # AABB
    "AABB",
    "BoundingBox",
    "hit_aabb",
    "surrounding_aabb",
    "surrounding_box",
    # BVH
    "BVH",
    "Bounded",
    "NODE",
    "LEAF",
    "build_bvh",
    # Sphere
    "Sphere",
    "MovingSphere",
    "HitRecord",
    "hit_sphere",
    "hit_moving_sphere",
    "make_sphere",
    "moving_sphere_center",
    "moving_center_at",
    "sphere_bounding_box",
    "moving_sphere_bounding_box",
]
