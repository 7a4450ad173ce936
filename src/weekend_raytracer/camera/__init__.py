"""Camera module.

Components:
    thin_lens: Look-at camera with depth of field and a shutter interval
"""

from .thin_lens import (
    ThinLensCamera,
    get_camera_info,
    get_ray,
    get_ray_jittered,
    setup_camera,
)

__all__ = [
    "ThinLensCamera",
    "setup_camera",
    "get_ray",
    "get_ray_jittered",
    "get_camera_info",
]
