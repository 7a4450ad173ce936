"""Materials module for scattering models.

Components:
    lambertian: Diffuse scattering toward normal + random unit-ball point
    metal: Mirror reflection perturbed by fuzz
    dielectric: Glass with refraction and Schlick reflectance

Each material stores its parameters in Taichi fields indexed by a per-type
id and provides a scatter function returning (direction, attenuation,
did_scatter).
"""

from .dielectric import (
    add_dielectric_material,
    clear_dielectric_materials,
    get_dielectric_material_count,
    get_dielectric_ref_idx,
    is_total_internal_reflection,
    reflect_probability,
    scatter_dielectric,
    scatter_dielectric_by_id,
)
from .lambertian import (
    add_lambertian_material,
    clear_lambertian_materials,
    get_lambertian_albedo,
    get_lambertian_material_count,
    scatter_lambertian,
    scatter_lambertian_by_id,
    validate_albedo,
)
from .metal import (
    add_metal_material,
    clear_metal_materials,
    get_metal_albedo,
    get_metal_fuzz,
    get_metal_material_count,
    scatter_metal,
    scatter_metal_by_id,
)

__all__ = [
    # Lambertian
    "scatter_lambertian",
    "scatter_lambertian_by_id",
    "add_lambertian_material",
    "clear_lambertian_materials",
    "get_lambertian_material_count",
    "get_lambertian_albedo",
    "validate_albedo",
    # Metal
    "scatter_metal",
    "scatter_metal_by_id",
    "add_metal_material",
    "clear_metal_materials",
    "get_metal_material_count",
    "get_metal_albedo",
    "get_metal_fuzz",
    # Dielectric
    "scatter_dielectric",
    "scatter_dielectric_by_id",
    "add_dielectric_material",
    "clear_dielectric_materials",
    "get_dielectric_material_count",
    "get_dielectric_ref_idx",
    "reflect_probability",
    "is_total_internal_reflection",
]
