"""Image output utilities.

Components:
    export: Gamma correction, 8-bit conversion and PNG export
"""

from .export import (
    DEFAULT_GAMMA,
    apply_gamma,
    compute_rmse,
    image_to_uint8,
    save_png,
    save_png_from_array,
)

__all__ = [
    "DEFAULT_GAMMA",
    "apply_gamma",
    "image_to_uint8",
    "save_png",
    "save_png_from_array",
    "compute_rmse",
]
