"""Metal (specular reflective) material implementation.

Metals mirror the incoming direction about the surface normal. A fuzz
parameter perturbs the mirrored direction by a random point in a sphere of
radius fuzz, blurring the reflection. A perturbed ray that ends up at or
below the surface is absorbed.

The reflection formula is:
    R = I - 2(I . N)N

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from weekend_raytracer.materials.metal import scatter_metal
    >>> # Use within a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_metal(
    >>> #     albedo, fuzz, incident_dir, normal
    >>> # )
"""

import taichi as ti
import taichi.math as tm

from weekend_raytracer.core.ray import (
    random_in_unit_sphere,
    reflect,
)
from weekend_raytracer.materials.lambertian import validate_albedo

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def scatter_metal(
    albedo: vec3,
    fuzz: ti.f32,
    incident_direction: vec3,
    normal: vec3,
):
    """Compute the scattered ray direction for a metal surface.

    Args:
        albedo: The reflective color (RGB).
        fuzz: The perturbation radius. 0 = perfect mirror.
        incident_direction: The incoming ray direction (any length).
        normal: The surface normal.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where
        did_scatter is 1 only if the scattered direction lies strictly above
        the surface (positive dot product with the normal).
    """
    reflected = reflect(tm.normalize(incident_direction), normal)
    scattered_direction = reflected + fuzz * random_in_unit_sphere()

    did_scatter = 0
    if tm.dot(scattered_direction, normal) > 0.0:
        did_scatter = 1

    return scattered_direction, albedo, did_scatter


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of metal materials in the scene
MAX_METAL_MATERIALS = 1024

# Storage for metal material properties
metal_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_METAL_MATERIALS)
metal_fuzzes = ti.field(dtype=ti.f32, shape=MAX_METAL_MATERIALS)
num_metal_materials = ti.field(dtype=ti.i32, shape=())


def clear_metal_materials() -> None:
    """Clear all metal materials.

    Resets the material count to zero. Existing data in the field will be
    overwritten when new materials are added.
    """
    num_metal_materials[None] = 0


def add_metal_material(
    albedo: tuple[float, float, float],
    fuzz: float = 0.0,
) -> int:
    """Add a metal material to the material registry.

    Args:
        albedo: The reflective color as (R, G, B) tuple.
        fuzz: The reflection perturbation radius in [0, 1]. Default is 0
            (perfect mirror).

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any albedo component is outside [0, 1].
        ValueError: If fuzz is outside [0, 1].
    """
    validate_albedo(albedo)

    if fuzz < 0.0 or fuzz > 1.0:
        raise ValueError(
            f"Fuzz = {fuzz} is outside [0, 1]. "
            "Fuzz must be between 0 (perfect mirror) and 1 (maximum blur)."
        )

    idx = num_metal_materials[None]
    if idx >= MAX_METAL_MATERIALS:
        raise RuntimeError(f"Maximum number of metal materials ({MAX_METAL_MATERIALS}) exceeded")

    metal_albedos[idx] = vec3(albedo[0], albedo[1], albedo[2])
    metal_fuzzes[idx] = fuzz
    num_metal_materials[None] = idx + 1
    return idx


def get_metal_material_count() -> int:
    """Get the number of metal materials in the registry."""
    return int(num_metal_materials[None])


@ti.func
def get_metal_albedo(material_idx: ti.i32) -> vec3:
    """Get the albedo for a metal material by index."""
    return metal_albedos[material_idx]


@ti.func
def get_metal_fuzz(material_idx: ti.i32) -> ti.f32:
    """Get the fuzz for a metal material by index."""
    return metal_fuzzes[material_idx]


@ti.func
def scatter_metal_by_id(
    material_idx: ti.i32,
    incident_direction: vec3,
    normal: vec3,
):
    """Scatter off a registered metal material.

    Args:
        material_idx: The index of the material in the registry.
        incident_direction: The incoming ray direction.
        normal: The surface normal at the hit point.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter).
    """
    albedo = get_metal_albedo(material_idx)
    fuzz = get_metal_fuzz(material_idx)
    return scatter_metal(albedo, fuzz, incident_direction, normal)
