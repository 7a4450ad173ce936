"""Lambertian (ideal diffuse) material implementation.

A Lambertian surface scatters every incoming ray. The new direction is the
surface normal plus a random point inside the unit sphere, which favours
directions close to the normal (a cosine-like lobe) without evaluating a
BRDF or a PDF. The attenuation is the albedo.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from weekend_raytracer.materials.lambertian import scatter_lambertian
    >>> # Use within a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_lambertian(albedo, normal)
"""

import taichi as ti
import taichi.math as tm

from weekend_raytracer.core.ray import random_in_unit_sphere

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def scatter_lambertian(
    albedo: vec3,
    normal: vec3,
):
    """Sample a scattered ray direction for a Lambertian surface.

    The scattered ray starts at the hit point (set by the caller) and points
    toward a random point in the unit sphere tangent to the surface at that
    point. The direction is not normalized.

    Args:
        albedo: The diffuse reflectance color (RGB).
        normal: The surface normal at the hit point.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where
        did_scatter is always 1.
    """
    scattered_direction = normal + random_in_unit_sphere()
    did_scatter = 1
    return scattered_direction, albedo, did_scatter


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of Lambertian materials in the scene
MAX_LAMBERTIAN_MATERIALS = 1024

# Storage for Lambertian material properties
lambertian_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    """Clear all Lambertian materials.

    Resets the material count to zero. Existing data in the field will be
    overwritten when new materials are added.
    """
    num_lambertian_materials[None] = 0


def validate_albedo(albedo: tuple[float, float, float]) -> None:
    """Raise ValueError unless albedo has three components in [0, 1]."""
    if len(albedo) != 3:
        raise ValueError(f"Albedo must have 3 components, got {len(albedo)}")
    for i, component in enumerate(albedo):
        if component < 0.0 or component > 1.0:
            raise ValueError(
                f"Albedo component {i} = {component} is outside [0, 1]. "
                "This would violate energy conservation."
            )


def add_lambertian_material(albedo: tuple[float, float, float]) -> int:
    """Add a Lambertian material to the material registry.

    Args:
        albedo: The diffuse reflectance color as (R, G, B) tuple.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any albedo component is outside [0, 1].
    """
    validate_albedo(albedo)

    idx = num_lambertian_materials[None]
    if idx >= MAX_LAMBERTIAN_MATERIALS:
        raise RuntimeError(
            f"Maximum number of Lambertian materials ({MAX_LAMBERTIAN_MATERIALS}) exceeded"
        )

    lambertian_albedos[idx] = vec3(albedo[0], albedo[1], albedo[2])
    num_lambertian_materials[None] = idx + 1
    return idx


def get_lambertian_material_count() -> int:
    """Get the number of Lambertian materials in the registry."""
    return int(num_lambertian_materials[None])


@ti.func
def get_lambertian_albedo(material_idx: ti.i32) -> vec3:
    """Get the albedo for a Lambertian material by index."""
    return lambertian_albedos[material_idx]


@ti.func
def scatter_lambertian_by_id(
    material_idx: ti.i32,
    normal: vec3,
):
    """Scatter off a registered Lambertian material.

    Args:
        material_idx: The index of the material in the registry.
        normal: The surface normal at the hit point.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter).
    """
    albedo = get_lambertian_albedo(material_idx)
    return scatter_lambertian(albedo, normal)
