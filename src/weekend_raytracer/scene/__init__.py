"""Scene module for primitive storage, intersection and scene building.

Components:
    intersection: Primitive and BVH fields, closest-hit queries
    manager: SceneManager coordinating primitives and materials
    builders: Ready-made scenes with their cameras

Scene data is organized for GPU access:
    - Structure-of-Arrays layout for primitives
    - A flat pre-order BVH with skip indices instead of a stack
    - Material ids resolved through a type table
"""

from .builders import (
    create_random_scene,
    create_simple_spheres_scene,
    create_sphere_tree_scene,
    default_camera,
)
from .intersection import (
    MAX_BVH_ENTRIES,
    MAX_PRIMITIVES,
    MOVING_SPHERE,
    ROOT_BVH,
    ROOT_LIST,
    SPHERE,
    SceneHitRecord,
    add_moving_sphere,
    add_sphere,
    clear_scene,
    get_bvh_entry_count,
    get_primitive_count,
    get_root_kind,
    intersect_bvh,
    intersect_list,
    intersect_scene,
    load_bvh,
    use_list_root,
)
from .manager import (
    MAX_MATERIALS,
    MaterialInfo,
    MaterialType,
    MovingSphereInfo,
    PrimitiveInfo,
    SceneConfig,
    SceneManager,
    SphereInfo,
    get_material_type,
    get_material_type_index,
)

__all__ = [
    # Intersection module
    "SceneHitRecord",
    "SPHERE",
    "MOVING_SPHERE",
    "ROOT_LIST",
    "ROOT_BVH",
    "MAX_PRIMITIVES",
    "MAX_BVH_ENTRIES",
    "add_sphere",
    "add_moving_sphere",
    "clear_scene",
    "get_primitive_count",
    "get_bvh_entry_count",
    "get_root_kind",
    "use_list_root",
    "load_bvh",
    "intersect_list",
    "intersect_bvh",
    "intersect_scene",
    # Manager module
    "SceneManager",
    "MaterialType",
    "MaterialInfo",
    "SphereInfo",
    "MovingSphereInfo",
    "PrimitiveInfo",
    "SceneConfig",
    "MAX_MATERIALS",
    "get_material_type",
    "get_material_type_index",
    # Builders
    "create_random_scene",
    "create_simple_spheres_scene",
    "create_sphere_tree_scene",
    "default_camera",
]
