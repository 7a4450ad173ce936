"""Dielectric (glass/water) material implementation.

A dielectric either reflects or refracts every incoming ray; it never
absorbs. Which side of the surface the ray comes from is read off the sign
of dot(direction, normal), so the geometry does not need to orient normals
for it:

- Entering (dot < 0): the normal is used as is and the index ratio is
  1 / ref_idx.
- Exiting (dot > 0): the normal is flipped and the ratio is ref_idx.

Snell's law is attempted with the ratio. If no refracted direction exists
(total internal reflection) the ray reflects. Otherwise Schlick's
approximation gives the reflection probability and a uniform draw chooses.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from weekend_raytracer.materials.dielectric import scatter_dielectric
    >>> # Use within a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_dielectric(
    >>> #     ref_idx, incident_dir, normal
    >>> # )
"""

import taichi as ti
import taichi.math as tm

from weekend_raytracer.core.ray import (
    reflect,
    refract,
    schlick,
)

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def _interface(ref_idx: ti.f32, incident_direction: vec3, normal: vec3):
    """Work out the side of the surface the ray is on.

    Returns:
        A tuple of (outward_normal, ni_over_nt, cosine) where outward_normal
        points back toward the incoming ray and cosine is the incidence
        cosine used by Schlick's approximation.
    """
    d_dot_n = tm.dot(incident_direction, normal)
    d_len = tm.length(incident_direction)

    outward_normal = normal
    ni_over_nt = 1.0 / ref_idx
    cosine = -d_dot_n / d_len
    if d_dot_n > 0.0:
        outward_normal = -normal
        ni_over_nt = ref_idx
        cosine = ref_idx * d_dot_n / d_len
    return outward_normal, ni_over_nt, cosine


@ti.func
def reflect_probability(
    ref_idx: ti.f32,
    incident_direction: vec3,
    normal: vec3,
) -> ti.f32:
    """Probability that scatter_dielectric picks reflection.

    1.0 under total internal reflection, Schlick's reflectance otherwise.
    """
    outward_normal, ni_over_nt, cosine = _interface(ref_idx, incident_direction, normal)
    did_refract, _refracted = refract(incident_direction, outward_normal, ni_over_nt)
    prob = 1.0
    if did_refract == 1:
        prob = schlick(cosine, ref_idx)
    return prob


@ti.func
def is_total_internal_reflection(
    ref_idx: ti.f32,
    incident_direction: vec3,
    normal: vec3,
) -> ti.i32:
    """Return 1 if no refracted direction exists for this incidence."""
    outward_normal, ni_over_nt, _cosine = _interface(ref_idx, incident_direction, normal)
    did_refract, _refracted = refract(incident_direction, outward_normal, ni_over_nt)
    return 1 - did_refract


@ti.func
def scatter_dielectric(
    ref_idx: ti.f32,
    incident_direction: vec3,
    normal: vec3,
):
    """Compute the scattered ray direction for a dielectric surface.

    Args:
        ref_idx: Index of refraction of the material.
        incident_direction: The incoming ray direction (any length).
        normal: The surface normal as stored in the hit record. Either
            orientation works.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where
        attenuation is white and did_scatter is always 1.
    """
    attenuation = vec3(1.0, 1.0, 1.0)

    outward_normal, ni_over_nt, cosine = _interface(ref_idx, incident_direction, normal)
    did_refract, refracted = refract(incident_direction, outward_normal, ni_over_nt)

    prob = 1.0
    if did_refract == 1:
        prob = schlick(cosine, ref_idx)

    scattered_direction = refracted
    if ti.random(ti.f32) < prob:
        scattered_direction = reflect(incident_direction, normal)

    did_scatter = 1
    return scattered_direction, attenuation, did_scatter


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of dielectric materials in the scene
MAX_DIELECTRIC_MATERIALS = 1024

# Storage for dielectric material properties
dielectric_ref_idxs = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
num_dielectric_materials = ti.field(dtype=ti.i32, shape=())


def clear_dielectric_materials() -> None:
    """Clear all dielectric materials.

    Resets the material count to zero. Existing data in the field will be
    overwritten when new materials are added.
    """
    num_dielectric_materials[None] = 0


def add_dielectric_material(ref_idx: float = 1.5) -> int:
    """Add a dielectric material to the material registry.

    Args:
        ref_idx: Index of refraction. Default is 1.5 (typical glass).
            Must be >= 1.0.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If ref_idx is less than 1.0.
    """
    if ref_idx < 1.0:
        raise ValueError(
            f"Index of refraction = {ref_idx} is less than 1.0. "
            "ref_idx must be >= 1.0 for physically meaningful materials."
        )

    idx = num_dielectric_materials[None]
    if idx >= MAX_DIELECTRIC_MATERIALS:
        raise RuntimeError(
            f"Maximum number of dielectric materials ({MAX_DIELECTRIC_MATERIALS}) exceeded"
        )

    dielectric_ref_idxs[idx] = ref_idx
    num_dielectric_materials[None] = idx + 1
    return idx


def get_dielectric_material_count() -> int:
    """Get the number of dielectric materials in the registry."""
    return int(num_dielectric_materials[None])


@ti.func
def get_dielectric_ref_idx(material_idx: ti.i32) -> ti.f32:
    """Get the index of refraction for a dielectric material by index."""
    return dielectric_ref_idxs[material_idx]


@ti.func
def scatter_dielectric_by_id(
    material_idx: ti.i32,
    incident_direction: vec3,
    normal: vec3,
):
    """Scatter off a registered dielectric material.

    Args:
        material_idx: The index of the material in the registry.
        incident_direction: The incoming ray direction.
        normal: The surface normal at the hit point.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter).
    """
    ref_idx = get_dielectric_ref_idx(material_idx)
    return scatter_dielectric(ref_idx, incident_direction, normal)
