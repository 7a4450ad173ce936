"""Scene-level primitive intersection testing.

This module owns the primitive storage and the two ways of searching it:

- a flat list, scanned front to back with the window narrowed after every
  hit, and
- a bounding volume hierarchy uploaded from a host-built arena
  (``geometry.bvh``) and walked without a stack.

Primitives are tagged variants (static sphere or moving sphere) held in
Structure-of-Arrays fields. Each carries a material ID that the integrator
uses for shading.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from weekend_raytracer.scene.intersection import (
    ...     add_sphere, add_moving_sphere, intersect_scene, clear_scene
    ... )
    >>> clear_scene()
    >>> add_sphere(vec3(0, 0, -1), 0.5, material_id=0)
    >>> add_moving_sphere(vec3(1, 0, -1), vec3(1, 0.5, -1), 0.0, 1.0, 0.2, material_id=1)
    >>> # Use intersect_scene within a Taichi kernel
"""

import logging

import numpy as np
import taichi as ti
import taichi.math as tm

from weekend_raytracer.core.ray import Ray
from weekend_raytracer.geometry.aabb import AABB, hit_aabb
from weekend_raytracer.geometry.bvh import BVH, NODE
from weekend_raytracer.geometry.sphere import (
    HitRecord,
    MovingSphere,
    Sphere,
    hit_moving_sphere,
    hit_sphere,
)

logger = logging.getLogger(__name__)

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection with material information.

    Extends the basic HitRecord with material_id for scene-level queries.

    Attributes:
        hit: Whether the ray intersected any primitive (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
            Only valid if hit == 1.
        point: The 3D point where the ray intersected the surface.
            Only valid if hit == 1.
        normal: The surface normal, (point - center) / radius.
            Only valid if hit == 1.
        material_id: The material ID of the hit primitive.
            Only valid if hit == 1. -1 indicates no material assigned.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    material_id: ti.i32


# Primitive kinds
SPHERE = 0
MOVING_SPHERE = 1

# Root kinds
ROOT_LIST = 0
ROOT_BVH = 1

# Maximum number of primitives supported in the scene
MAX_PRIMITIVES = 2048
# A BVH over n primitives never needs more than 4n entries
MAX_BVH_ENTRIES = 4 * MAX_PRIMITIVES
# Uploaded boxes grow by this fraction of (1 + |coordinate|) before the
# float32 cast. The float32 sphere test accepts grazing rays a little
# outside the exact surface and the box must still let them through.
BOX_PADDING = 1e-4

# Primitive storage: Structure of Arrays layout for GPU efficiency.
# Static spheres store their center in both center fields and a [0, 1] interval.
primitive_kinds = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
primitive_centers0 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
primitive_centers1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
primitive_time0 = ti.field(dtype=ti.f32, shape=MAX_PRIMITIVES)
primitive_time1 = ti.field(dtype=ti.f32, shape=MAX_PRIMITIVES)
primitive_radii = ti.field(dtype=ti.f32, shape=MAX_PRIMITIVES)
primitive_material_ids = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
num_primitives = ti.field(dtype=ti.i32, shape=())

# BVH arena, see geometry.bvh for the layout
bvh_kinds = ti.field(dtype=ti.i32, shape=MAX_BVH_ENTRIES)
bvh_primitive_ids = ti.field(dtype=ti.i32, shape=MAX_BVH_ENTRIES)
bvh_box_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_ENTRIES)
bvh_box_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_ENTRIES)
bvh_skips = ti.field(dtype=ti.i32, shape=MAX_BVH_ENTRIES)
num_bvh_entries = ti.field(dtype=ti.i32, shape=())

root_kind = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Clear all primitives from the scene and fall back to the list root.

    Resets the counts to zero. The actual field data is not cleared but will
    be overwritten when new primitives are added.
    """
    num_primitives[None] = 0
    num_bvh_entries[None] = 0
    root_kind[None] = ROOT_LIST


def _next_primitive_index() -> int:
    idx = num_primitives[None]
    if idx >= MAX_PRIMITIVES:
        raise RuntimeError(f"Maximum number of primitives ({MAX_PRIMITIVES}) exceeded")
    return idx


def add_sphere(center: vec3, radius: float, material_id: int = 0) -> int:
    """Add a static sphere to the scene.

    Args:
        center: The center point of the sphere.
        radius: The signed radius of the sphere.
        material_id: The material ID to associate with this sphere.

    Returns:
        The index of the added primitive.

    Raises:
        RuntimeError: If the maximum number of primitives is exceeded.
    """
    idx = _next_primitive_index()
    primitive_kinds[idx] = SPHERE
    primitive_centers0[idx] = center
    primitive_centers1[idx] = center
    primitive_time0[idx] = 0.0
    primitive_time1[idx] = 1.0
    primitive_radii[idx] = radius
    primitive_material_ids[idx] = material_id
    num_primitives[None] = idx + 1
    return idx


def add_moving_sphere(
    center0: vec3,
    center1: vec3,
    time0: float,
    time1: float,
    radius: float,
    material_id: int = 0,
) -> int:
    """Add a sphere moving linearly from center0 at time0 to center1 at time1.

    Args:
        center0: Center at time0.
        center1: Center at time1.
        time0: Start of the motion interval.
        time1: End of the motion interval.
        radius: The signed radius of the sphere.
        material_id: The material ID to associate with this sphere.

    Returns:
        The index of the added primitive.

    Raises:
        ValueError: If time0 == time1.
        RuntimeError: If the maximum number of primitives is exceeded.
    """
    if time0 == time1:
        raise ValueError(f"Moving sphere needs a non-empty time interval, got [{time0}, {time1}]")
    idx = _next_primitive_index()
    primitive_kinds[idx] = MOVING_SPHERE
    primitive_centers0[idx] = center0
    primitive_centers1[idx] = center1
    primitive_time0[idx] = time0
    primitive_time1[idx] = time1
    primitive_radii[idx] = radius
    primitive_material_ids[idx] = material_id
    num_primitives[None] = idx + 1
    return idx


def get_primitive_count() -> int:
    """Get the number of primitives in the scene."""
    return int(num_primitives[None])


def get_bvh_entry_count() -> int:
    """Get the number of entries in the loaded BVH arena (0 if none)."""
    return int(num_bvh_entries[None])


def get_root_kind() -> int:
    """Return ROOT_LIST or ROOT_BVH, whichever intersect_scene searches."""
    return int(root_kind[None])


def use_list_root() -> None:
    """Make intersect_scene scan the primitives as a flat list."""
    root_kind[None] = ROOT_LIST


def widen_boxes_for_float32(
    box_min: np.ndarray, box_max: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Pad boxes and cast them to float32, rounding outward.

    The result always contains the float64 input, so a ray the primitive
    test accepts is never pruned by its box.
    """
    lo = np.asarray(box_min, dtype=np.float64)
    hi = np.asarray(box_max, dtype=np.float64)
    lo = lo - BOX_PADDING * (1.0 + np.abs(lo))
    hi = hi + BOX_PADDING * (1.0 + np.abs(hi))
    lo32 = np.nextafter(lo.astype(np.float32), np.float32(-np.inf))
    hi32 = np.nextafter(hi.astype(np.float32), np.float32(np.inf))
    return lo32, hi32


def load_bvh(bvh: BVH) -> None:
    """Upload a host-built BVH and make it the scene root.

    Args:
        bvh: Arena from ``geometry.bvh.build_bvh``. Its primitive IDs must
            index the primitives currently stored.

    Raises:
        RuntimeError: If the arena is larger than MAX_BVH_ENTRIES.
        ValueError: If a leaf refers to a primitive that is not stored.
    """
    n = len(bvh)
    if n > MAX_BVH_ENTRIES:
        raise RuntimeError(f"BVH has {n} entries; maximum is {MAX_BVH_ENTRIES}")
    count = get_primitive_count()
    leaf_ids = bvh.primitive_ids[bvh.entry_kinds != NODE]
    if leaf_ids.size and int(leaf_ids.max()) >= count:
        raise ValueError(
            f"BVH refers to primitive {int(leaf_ids.max())} but only {count} are stored"
        )

    kinds = np.zeros(MAX_BVH_ENTRIES, dtype=np.int32)
    prim_ids = np.full(MAX_BVH_ENTRIES, -1, dtype=np.int32)
    box_min = np.zeros((MAX_BVH_ENTRIES, 3), dtype=np.float32)
    box_max = np.zeros((MAX_BVH_ENTRIES, 3), dtype=np.float32)
    skips = np.zeros(MAX_BVH_ENTRIES, dtype=np.int32)

    kinds[:n] = bvh.entry_kinds
    prim_ids[:n] = bvh.primitive_ids
    box_min[:n], box_max[:n] = widen_boxes_for_float32(bvh.box_min, bvh.box_max)
    skips[:n] = bvh.skips

    bvh_kinds.from_numpy(kinds)
    bvh_primitive_ids.from_numpy(prim_ids)
    bvh_box_min.from_numpy(box_min)
    bvh_box_max.from_numpy(box_max)
    bvh_skips.from_numpy(skips)
    num_bvh_entries[None] = n
    root_kind[None] = ROOT_BVH
    logger.debug("Loaded BVH with %d entries over %d primitives", n, count)


@ti.func
def _hit_record_to_scene_hit_record(rec: HitRecord, material_id: ti.i32) -> SceneHitRecord:
    """Convert a HitRecord to a SceneHitRecord with material ID."""
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        material_id=material_id,
    )


@ti.func
def _make_miss_record() -> SceneHitRecord:
    """Create a SceneHitRecord indicating no intersection."""
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        material_id=-1,
    )


@ti.func
def hit_primitive(index: ti.i32, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> SceneHitRecord:
    """Intersect a ray with one stored primitive, dispatching on its kind.

    Args:
        index: Index into the primitive storage.
        ray: The ray to test.
        t_min: Exclusive lower bound on t.
        t_max: Exclusive upper bound on t.

    Returns:
        The primitive's hit record tagged with its material ID.
    """
    rec = HitRecord(hit=0, t=0.0, point=vec3(0.0, 0.0, 0.0), normal=vec3(0.0, 0.0, 0.0))
    kind = primitive_kinds[index]
    if kind == SPHERE:
        sphere = Sphere(center=primitive_centers0[index], radius=primitive_radii[index])
        rec = hit_sphere(ray, sphere, t_min, t_max)
    elif kind == MOVING_SPHERE:
        moving = MovingSphere(
            center0=primitive_centers0[index],
            center1=primitive_centers1[index],
            time0=primitive_time0[index],
            time1=primitive_time1[index],
            radius=primitive_radii[index],
        )
        rec = hit_moving_sphere(ray, moving, t_min, t_max)
    return _hit_record_to_scene_hit_record(rec, primitive_material_ids[index])


@ti.func
def intersect_list(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> SceneHitRecord:
    """Test ray against every primitive in insertion order.

    The upper bound shrinks to each accepted hit, so a later primitive must
    be strictly nearer to replace it. Among equally near hits the first one
    stored wins.
    """
    closest_t = t_max
    result = _make_miss_record()

    n = num_primitives[None]
    for i in range(n):
        rec = hit_primitive(i, ray, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = rec

    return result


@ti.func
def intersect_bvh(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> SceneHitRecord:
    """Test ray against the loaded BVH.

    Walks the arena in order. A node whose box the ray misses is skipped
    together with its subtree. Every leaf is tested against the full
    (t_min, t_max) window and a hit replaces the current best when it is at
    least as near, so the later (right) of two equally near hits wins.
    """
    result = _make_miss_record()

    n = num_bvh_entries[None]
    i = 0
    while i < n:
        if bvh_kinds[i] == NODE:
            box = AABB(minimum=bvh_box_min[i], maximum=bvh_box_max[i])
            if hit_aabb(box, ray, t_min, t_max) == 1:
                i += 1
            else:
                i = bvh_skips[i]
        else:
            rec = hit_primitive(bvh_primitive_ids[i], ray, t_min, t_max)
            if rec.hit == 1:
                if result.hit == 0 or rec.t <= result.t:
                    result = rec
            i += 1

    return result


@ti.func
def intersect_scene(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> SceneHitRecord:
    """Find the closest hit in the scene through the active root.

    Args:
        ray: The ray to trace.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A SceneHitRecord containing the closest intersection, or a miss
        record if no intersection was found.
    """
    result = _make_miss_record()
    if root_kind[None] == ROOT_BVH:
        result = intersect_bvh(ray, t_min, t_max)
    else:
        result = intersect_list(ray, t_min, t_max)
    return result
