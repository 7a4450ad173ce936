"""Unified scene manager for coordinating primitives and materials.

This module provides a high-level scene management API that coordinates
primitive storage (static and moving spheres) with material assignment and
the choice of search structure. It tracks which material type (Lambertian,
Metal, Dielectric) each material ID corresponds to, enabling proper material
dispatch in the path tracer.

The SceneManager maintains:
- A unified material_id space across all material types. Many primitives may
  share one ID; materials are never copied per primitive.
- Mapping from material_id to (material_type, type_local_index)
- Host-side descriptions of every primitive, in storage order, used for
  bounding boxes and BVH construction
- Which root (flat list or BVH) intersect_scene searches
- Scene serialization/configuration support

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from weekend_raytracer.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> mat_id = scene.add_lambertian_material(albedo=(0.8, 0.3, 0.3))
    >>> scene.add_sphere(center=(0, 0, -1), radius=0.5, material_id=mat_id)
    >>> scene.build_bvh(seed=1)
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Union

import numpy as np
import taichi as ti
import taichi.math as tm

from weekend_raytracer.geometry.aabb import BoundingBox, surrounding_box
from weekend_raytracer.geometry.bvh import BVH, build_bvh
from weekend_raytracer.geometry.sphere import (
    moving_sphere_bounding_box,
    sphere_bounding_box,
)
from weekend_raytracer.materials.dielectric import (
    add_dielectric_material,
    clear_dielectric_materials,
)
from weekend_raytracer.materials.lambertian import (
    add_lambertian_material,
    clear_lambertian_materials,
)
from weekend_raytracer.materials.metal import (
    add_metal_material,
    clear_metal_materials,
)
from weekend_raytracer.scene.intersection import (
    MAX_PRIMITIVES,
    ROOT_BVH,
    add_moving_sphere,
    add_sphere,
    clear_scene,
    get_primitive_count,
    get_root_kind,
    load_bvh,
    use_list_root,
)

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

Vec3Tuple = tuple[float, float, float]


class MaterialType(IntEnum):
    """Enumeration of supported material types.

    Used for material dispatch in the path tracer to determine which
    scattering function to call.
    """

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2


# Maximum number of materials across all types
MAX_MATERIALS = 3072  # 1024 per type * 3 types

# material_types[i] stores the MaterialType for material_id i
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
# material_type_indices[i] stores the type-local index for material_id i
# (e.g., if material_id 5 is the 2nd metal material, material_type_indices[5] = 1)
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def _clear_material_tracking() -> None:
    """Clear the material tracking fields."""
    num_materials[None] = 0


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """Get the material type for a given material ID.

    Args:
        material_id: The unified material ID.

    Returns:
        The material type as an integer (see MaterialType enum).
        Returns -1 for invalid material IDs.
    """
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Get the type-local index for a given material ID.

    Args:
        material_id: The unified material ID.

    Returns:
        The index into the type-specific material array.
        Returns -1 for invalid material IDs.
    """
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: The type of material (Lambertian, Metal, Dielectric).
        type_index: The index within the type-specific material array.
        params: The material parameters as provided during creation.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    params: dict[str, Any]


@dataclass
class SphereInfo:
    """A static sphere in the scene.

    Attributes:
        center: The center of the sphere.
        radius: The signed radius of the sphere.
        material_id: The material ID assigned to the sphere.
        primitive_index: The index in the primitive storage arrays.
    """

    center: Vec3Tuple
    radius: float
    material_id: int = -1
    primitive_index: int = -1

    def bounding_box(self, t0: float, t1: float) -> BoundingBox | None:
        """Box around the sphere; a static sphere ignores the interval."""
        return sphere_bounding_box(self.center, self.radius)


@dataclass
class MovingSphereInfo:
    """A sphere moving linearly between two centers.

    Attributes:
        center0: Center at time0.
        center1: Center at time1.
        time0: Start of the motion interval.
        time1: End of the motion interval.
        radius: The signed radius of the sphere.
        material_id: The material ID assigned to the sphere.
        primitive_index: The index in the primitive storage arrays.
    """

    center0: Vec3Tuple
    center1: Vec3Tuple
    time0: float
    time1: float
    radius: float
    material_id: int = -1
    primitive_index: int = -1

    def bounding_box(self, t0: float, t1: float) -> BoundingBox | None:
        """Box covering every position the sphere takes over [t0, t1]."""
        return moving_sphere_bounding_box(
            self.center0, self.center1, self.time0, self.time1, self.radius, t0, t1
        )


PrimitiveInfo = Union[SphereInfo, MovingSphereInfo]


@dataclass
class SceneConfig:
    """Configuration for scene serialization.

    Attributes:
        materials: List of material configurations.
        spheres: List of static sphere configurations.
        moving_spheres: List of moving sphere configurations.
    """

    materials: list[dict[str, Any]] = field(default_factory=list)
    spheres: list[dict[str, Any]] = field(default_factory=list)
    moving_spheres: list[dict[str, Any]] = field(default_factory=list)


def _as_vec3_tuple(values: Any) -> Vec3Tuple:
    return (float(values[0]), float(values[1]), float(values[2]))


class SceneManager:
    """Unified scene manager coordinating primitives and materials.

    The SceneManager provides a high-level API for building scenes with
    automatic material tracking. Primitive and material storage lives in
    module-level Taichi fields, so creating a SceneManager (or calling
    clear()) resets the scene the renderer sees.

    A newly created scene is searched as a flat list. build_bvh() switches
    the root to a hierarchy; adding a primitive afterwards drops the stale
    hierarchy and falls back to the list until build_bvh() is called again.

    Attributes:
        materials: List of MaterialInfo for all registered materials.
        primitives: SphereInfo/MovingSphereInfo for every primitive, in
            storage order.
        bvh: The hierarchy currently loaded, or None.

    Example:
        >>> scene = SceneManager()
        >>> ground = scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        >>> gold = scene.add_metal_material(albedo=(0.8, 0.6, 0.2), fuzz=0.3)
        >>> glass = scene.add_dielectric_material(ref_idx=1.5)
        >>> scene.add_sphere((0, -1000, 0), 1000, ground)
        >>> scene.add_sphere((4, 1, 0), 1.0, gold)
        >>> scene.add_sphere((0, 1, 0), 1.0, glass)
        >>> scene.add_sphere((0, 1, 0), -0.95, glass)  # hollow bubble, same material
        >>> scene.build_bvh(seed=3)
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.materials: list[MaterialInfo] = []
        self.primitives: list[PrimitiveInfo] = []
        self.bvh: BVH | None = None
        self._clear_all()

    def _clear_all(self) -> None:
        """Clear all scene data including Taichi fields."""
        clear_scene()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        _clear_material_tracking()
        self.materials.clear()
        self.primitives.clear()
        self.bvh = None

    def clear(self) -> None:
        """Clear the entire scene (primitives and materials).

        Resets all Taichi fields and internal tracking structures.
        """
        self._clear_all()

    # =========================================================================
    # Material Management
    # =========================================================================

    def _register_material(
        self,
        material_type: MaterialType,
        type_index: int,
        params: dict[str, Any],
    ) -> int:
        """Assign a unified material ID to a type-local material."""
        material_id = num_materials[None]
        if material_id >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

        material_types[material_id] = int(material_type)
        material_type_indices[material_id] = type_index
        num_materials[None] = material_id + 1

        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                material_type=material_type,
                type_index=type_index,
                params=params,
            )
        )
        return material_id

    def add_lambertian_material(self, albedo: Vec3Tuple) -> int:
        """Add a Lambertian (diffuse) material to the scene.

        Args:
            albedo: The diffuse reflectance color as (R, G, B) tuple.

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If any albedo component is outside [0, 1].
        """
        type_index = add_lambertian_material(albedo)
        return self._register_material(
            MaterialType.LAMBERTIAN, type_index, {"albedo": tuple(albedo)}
        )

    def add_metal_material(self, albedo: Vec3Tuple, fuzz: float = 0.0) -> int:
        """Add a metal (specular reflective) material to the scene.

        Args:
            albedo: The reflective color as (R, G, B) tuple.
            fuzz: The reflection perturbation radius in [0, 1]. Default is 0
                (perfect mirror).

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If any albedo component or fuzz is outside [0, 1].
        """
        type_index = add_metal_material(albedo, fuzz)
        return self._register_material(
            MaterialType.METAL, type_index, {"albedo": tuple(albedo), "fuzz": fuzz}
        )

    def add_dielectric_material(self, ref_idx: float = 1.5) -> int:
        """Add a dielectric (glass/water) material to the scene.

        Args:
            ref_idx: Index of refraction. Default is 1.5 (typical glass).

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If ref_idx is less than 1.0.
        """
        type_index = add_dielectric_material(ref_idx)
        return self._register_material(MaterialType.DIELECTRIC, type_index, {"ref_idx": ref_idx})

    def get_material_count(self) -> int:
        """Get the total number of materials in the scene."""
        return int(num_materials[None])

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        """Get information about a material by ID, or None if not found."""
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    def get_material_type_python(self, material_id: int) -> MaterialType | None:
        """Get the material type for a given material ID (Python side).

        For GPU-side lookup, use the get_material_type() Taichi function.
        """
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id].material_type
        return None

    # =========================================================================
    # Primitive Management
    # =========================================================================

    def _check_material_id(self, material_id: int) -> None:
        if material_id < 0 or material_id >= num_materials[None]:
            raise ValueError(f"Invalid material_id: {material_id}")

    def _invalidate_bvh(self) -> None:
        if self.bvh is not None:
            logger.debug("Scene changed; dropping BVH and searching as a list")
            self.bvh = None
            use_list_root()

    def add_sphere(self, center: Vec3Tuple, radius: float, material_id: int) -> int:
        """Add a static sphere to the scene.

        Args:
            center: The center point of the sphere as (x, y, z).
            radius: The signed radius. A negative radius makes the normals
                point inward, which turns the sphere into a hollow shell.
            material_id: The unified material ID to assign to the sphere.

        Returns:
            The primitive index of the added sphere.

        Raises:
            RuntimeError: If the maximum number of primitives is exceeded.
            ValueError: If material_id is invalid.
        """
        self._check_material_id(material_id)

        center_t = _as_vec3_tuple(center)
        index = add_sphere(vec3(*center_t), radius, material_id)
        self.primitives.append(
            SphereInfo(
                center=center_t,
                radius=radius,
                material_id=material_id,
                primitive_index=index,
            )
        )
        self._invalidate_bvh()
        return index

    def add_moving_sphere(
        self,
        center0: Vec3Tuple,
        center1: Vec3Tuple,
        time0: float,
        time1: float,
        radius: float,
        material_id: int,
    ) -> int:
        """Add a sphere moving from center0 at time0 to center1 at time1.

        Args:
            center0: Center at time0 as (x, y, z).
            center1: Center at time1 as (x, y, z).
            time0: Start of the motion interval.
            time1: End of the motion interval. Must differ from time0.
            radius: The signed radius.
            material_id: The unified material ID to assign to the sphere.

        Returns:
            The primitive index of the added sphere.

        Raises:
            RuntimeError: If the maximum number of primitives is exceeded.
            ValueError: If material_id is invalid or time0 == time1.
        """
        self._check_material_id(material_id)

        c0 = _as_vec3_tuple(center0)
        c1 = _as_vec3_tuple(center1)
        index = add_moving_sphere(vec3(*c0), vec3(*c1), time0, time1, radius, material_id)
        self.primitives.append(
            MovingSphereInfo(
                center0=c0,
                center1=c1,
                time0=time0,
                time1=time1,
                radius=radius,
                material_id=material_id,
                primitive_index=index,
            )
        )
        self._invalidate_bvh()
        return index

    # =========================================================================
    # Convenience Methods (add object with material in one call)
    # =========================================================================

    def add_lambertian_sphere(
        self,
        center: Vec3Tuple,
        radius: float,
        albedo: Vec3Tuple,
    ) -> tuple[int, int]:
        """Add a sphere with a new Lambertian material.

        Returns:
            Tuple of (primitive_index, material_id).
        """
        material_id = self.add_lambertian_material(albedo)
        index = self.add_sphere(center, radius, material_id)
        return index, material_id

    def add_metal_sphere(
        self,
        center: Vec3Tuple,
        radius: float,
        albedo: Vec3Tuple,
        fuzz: float = 0.0,
    ) -> tuple[int, int]:
        """Add a sphere with a new metal material.

        Returns:
            Tuple of (primitive_index, material_id).
        """
        material_id = self.add_metal_material(albedo, fuzz)
        index = self.add_sphere(center, radius, material_id)
        return index, material_id

    def add_dielectric_sphere(
        self,
        center: Vec3Tuple,
        radius: float,
        ref_idx: float = 1.5,
    ) -> tuple[int, int]:
        """Add a sphere with a new dielectric material.

        Returns:
            Tuple of (primitive_index, material_id).
        """
        material_id = self.add_dielectric_material(ref_idx)
        index = self.add_sphere(center, radius, material_id)
        return index, material_id

    def add_moving_lambertian_sphere(
        self,
        center0: Vec3Tuple,
        center1: Vec3Tuple,
        time0: float,
        time1: float,
        radius: float,
        albedo: Vec3Tuple,
    ) -> tuple[int, int]:
        """Add a moving sphere with a new Lambertian material.

        Returns:
            Tuple of (primitive_index, material_id).
        """
        material_id = self.add_lambertian_material(albedo)
        index = self.add_moving_sphere(center0, center1, time0, time1, radius, material_id)
        return index, material_id

    # =========================================================================
    # Search Structure
    # =========================================================================

    def build_bvh(
        self,
        time0: float = 0.0,
        time1: float = 1.0,
        seed: np.random.Generator | int | None = None,
    ) -> BVH:
        """Build a BVH over all primitives and make it the scene root.

        Args:
            time0: Start of the shutter interval the boxes must cover.
            time1: End of the shutter interval.
            seed: Seed or generator for the random split axes.

        Returns:
            The loaded hierarchy.

        Raises:
            ValueError: If the scene has no primitives.
        """
        bvh = build_bvh(self.primitives, time0, time1, rng=seed)
        load_bvh(bvh)
        self.bvh = bvh
        return bvh

    def use_list(self) -> None:
        """Search the primitives as a flat list, dropping any BVH."""
        self.bvh = None
        use_list_root()

    @property
    def uses_bvh(self) -> bool:
        """True when intersect_scene goes through the BVH."""
        return get_root_kind() == ROOT_BVH

    def bounding_box(self, t0: float = 0.0, t1: float = 1.0) -> BoundingBox | None:
        """Box enclosing every primitive over [t0, t1], or None if the scene is empty."""
        result: BoundingBox | None = None
        for primitive in self.primitives:
            box = primitive.bounding_box(t0, t1)
            if box is None:
                return None
            result = box if result is None else surrounding_box(result, box)
        return result

    # =========================================================================
    # Scene Queries
    # =========================================================================

    @property
    def spheres(self) -> list[SphereInfo]:
        """The static spheres, in storage order."""
        return [p for p in self.primitives if isinstance(p, SphereInfo)]

    @property
    def moving_spheres(self) -> list[MovingSphereInfo]:
        """The moving spheres, in storage order."""
        return [p for p in self.primitives if isinstance(p, MovingSphereInfo)]

    def get_primitive_count(self) -> int:
        """Get the total number of primitives in the scene."""
        return get_primitive_count()

    def get_sphere_count(self) -> int:
        """Get the number of static spheres in the scene."""
        return len(self.spheres)

    def get_moving_sphere_count(self) -> int:
        """Get the number of moving spheres in the scene."""
        return len(self.moving_spheres)

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_config(self) -> SceneConfig:
        """Export the scene to a configuration object.

        Returns:
            A SceneConfig containing all materials and primitives.
        """
        config = SceneConfig()

        for mat in self.materials:
            mat_config: dict[str, Any] = {"type": mat.material_type.name.lower()}
            for key, value in mat.params.items():
                mat_config[key] = list(value) if isinstance(value, tuple) else value
            config.materials.append(mat_config)

        for sphere in self.spheres:
            config.spheres.append(
                {
                    "center": list(sphere.center),
                    "radius": sphere.radius,
                    "material_id": sphere.material_id,
                }
            )

        for moving in self.moving_spheres:
            config.moving_spheres.append(
                {
                    "center0": list(moving.center0),
                    "center1": list(moving.center1),
                    "time0": moving.time0,
                    "time1": moving.time1,
                    "radius": moving.radius,
                    "material_id": moving.material_id,
                }
            )

        return config

    def from_config(self, config: SceneConfig) -> None:
        """Load a scene from a configuration object.

        Clears the current scene and loads the configuration. The loaded
        scene is searched as a flat list until build_bvh() is called.

        Args:
            config: The scene configuration to load.

        Raises:
            ValueError: If the configuration contains invalid data.
        """
        self.clear()

        # Materials first; primitives refer to them by ID
        for mat_config in config.materials:
            mat_type = mat_config.get("type", "").lower()
            if mat_type == "lambertian":
                albedo = _as_vec3_tuple(mat_config.get("albedo", [0.5, 0.5, 0.5]))
                self.add_lambertian_material(albedo)
            elif mat_type == "metal":
                albedo = _as_vec3_tuple(mat_config.get("albedo", [0.8, 0.8, 0.8]))
                self.add_metal_material(albedo, mat_config.get("fuzz", 0.0))
            elif mat_type == "dielectric":
                self.add_dielectric_material(mat_config.get("ref_idx", 1.5))
            else:
                raise ValueError(f"Unknown material type: {mat_type}")

        for sphere_config in config.spheres:
            self.add_sphere(
                _as_vec3_tuple(sphere_config.get("center", [0, 0, 0])),
                sphere_config.get("radius", 1.0),
                sphere_config.get("material_id", 0),
            )

        for moving_config in config.moving_spheres:
            self.add_moving_sphere(
                _as_vec3_tuple(moving_config.get("center0", [0, 0, 0])),
                _as_vec3_tuple(moving_config.get("center1", [0, 0, 0])),
                moving_config.get("time0", 0.0),
                moving_config.get("time1", 1.0),
                moving_config.get("radius", 1.0),
                moving_config.get("material_id", 0),
            )

        logger.debug(
            "Loaded scene config: %d materials, %d primitives",
            self.get_material_count(),
            self.get_primitive_count(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary (for JSON serialization)."""
        config = self.to_config()
        return {
            "materials": config.materials,
            "spheres": config.spheres,
            "moving_spheres": config.moving_spheres,
        }

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load a scene from a dictionary.

        Args:
            data: Dictionary with 'materials', 'spheres', 'moving_spheres' keys.
        """
        config = SceneConfig(
            materials=data.get("materials", []),
            spheres=data.get("spheres", []),
            moving_spheres=data.get("moving_spheres", []),
        )
        self.from_config(config)

    # =========================================================================
    # Capacity Information
    # =========================================================================

    @staticmethod
    def get_max_primitives() -> int:
        """Get the maximum number of primitives supported."""
        return MAX_PRIMITIVES

    @staticmethod
    def get_max_materials() -> int:
        """Get the maximum number of materials supported."""
        return MAX_MATERIALS
