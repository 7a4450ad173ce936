"""Thin-lens camera model with depth of field and a shutter interval.

This module implements the camera that generates primary rays for rendering.
The camera supports:
- Look-at positioning (lookfrom, lookat, vup)
- Vertical field of view specification
- Arbitrary aspect ratios
- Depth of field through a circular aperture focused at focus_dist
- A shutter interval: each ray carries a time drawn uniformly from it,
  which is what makes moving spheres blur
- Jittered sampling for anti-aliasing

The camera builds an orthonormal basis (u, v, w) from the view parameters:
- w: points from lookat toward lookfrom (opposite view direction)
- u: points right in the image plane
- v: points up in the image plane

The image plane sits at focus_dist in front of the lens, so points at that
distance stay sharp however large the aperture is. An aperture of 0 gives a
pinhole camera.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from weekend_raytracer.camera.thin_lens import ThinLensCamera, setup_camera, get_ray
    >>>
    >>> camera = ThinLensCamera(
    ...     lookfrom=(13.0, 2.0, 3.0),
    ...     lookat=(0.0, 0.0, 0.0),
    ...     vup=(0.0, 1.0, 0.0),
    ...     vfov=20.0,
    ...     aspect_ratio=3.0 / 2.0,
    ...     aperture=0.1,
    ...     focus_dist=10.0,
    ... )
    >>> setup_camera(camera)
    >>>
    >>> @ti.kernel
    ... def render():
    ...     ray = get_ray(0.5, 0.5)  # Ray through image center
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
import taichi as ti

from weekend_raytracer.core.ray import Ray, make_ray, random_in_unit_disk, vec3

logger = logging.getLogger(__name__)

# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass
class ThinLensCamera:
    """Configuration for a thin-lens camera.

    Attributes:
        lookfrom: Camera position in world space (x, y, z).
        lookat: Point the camera is looking at in world space (x, y, z).
        vup: Up direction vector for camera orientation (typically (0, 1, 0)).
        vfov: Vertical field of view in degrees, top to bottom.
        aspect_ratio: Width divided by height of the output image.
        aperture: Lens diameter. 0 disables depth of field.
        focus_dist: Distance from the lens to the plane in perfect focus.
        time0: Shutter open time.
        time1: Shutter close time.
    """

    lookfrom: tuple[float, float, float]
    lookat: tuple[float, float, float]
    vup: tuple[float, float, float] = (0.0, 1.0, 0.0)
    vfov: float = 90.0
    aspect_ratio: float = 2.0
    aperture: float = 0.0
    focus_dist: float = 1.0
    time0: float = 0.0
    time1: float = 0.0

    def __post_init__(self) -> None:
        if not 0.0 < self.vfov < 180.0:
            raise ValueError(f"vfov must be in (0, 180) degrees, got {self.vfov}")
        if self.aspect_ratio <= 0.0:
            raise ValueError(f"aspect_ratio must be positive, got {self.aspect_ratio}")
        if self.aperture < 0.0:
            raise ValueError(f"aperture must be non-negative, got {self.aperture}")
        if self.focus_dist <= 0.0:
            raise ValueError(f"focus_dist must be positive, got {self.focus_dist}")
        if self.time1 < self.time0:
            raise ValueError(f"Shutter closes ({self.time1}) before it opens ({self.time0})")


# =============================================================================
# Taichi Fields for Camera State (GPU-accessible)
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())

# Orthonormal basis vectors
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())  # Right
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())  # Up
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())  # Backward (opposite view)

# Viewport on the focus plane
_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())

_lens_radius = ti.field(dtype=ti.f32, shape=())
_time0 = ti.field(dtype=ti.f32, shape=())
_time1 = ti.field(dtype=ti.f32, shape=())


# =============================================================================
# Camera Setup (Python-side, called once per camera configuration)
# =============================================================================


def setup_camera(camera: ThinLensCamera) -> None:
    """Initialize camera state from configuration.

    Computes the camera's orthonormal basis (u, v, w) and the viewport on the
    focus plane. This must be called before rendering.

    Args:
        camera: Camera configuration.

    Raises:
        ValueError: If lookfrom equals lookat or vup is parallel to the view
            direction (the basis would be undefined).
    """
    theta = math.radians(camera.vfov)
    half_height = math.tan(theta / 2.0)
    half_width = camera.aspect_ratio * half_height

    lookfrom = np.array(camera.lookfrom, dtype=np.float64)
    lookat = np.array(camera.lookat, dtype=np.float64)
    vup = np.array(camera.vup, dtype=np.float64)

    w = lookfrom - lookat
    w_norm = np.linalg.norm(w)
    if w_norm == 0.0:
        raise ValueError("lookfrom and lookat must differ")
    w = w / w_norm

    u = np.cross(vup, w)
    u_norm = np.linalg.norm(u)
    if u_norm == 0.0:
        raise ValueError("vup must not be parallel to the view direction")
    u = u / u_norm

    v = np.cross(w, u)

    focus = camera.focus_dist
    horizontal = 2.0 * half_width * focus * u
    vertical = 2.0 * half_height * focus * v
    lower_left = lookfrom - half_width * focus * u - half_height * focus * v - focus * w

    _camera_origin[None] = lookfrom.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()
    _viewport_horizontal[None] = horizontal.tolist()
    _viewport_vertical[None] = vertical.tolist()
    _lower_left_corner[None] = lower_left.tolist()
    _lens_radius[None] = camera.aperture / 2.0
    _time0[None] = camera.time0
    _time1[None] = camera.time1

    logger.debug(
        "Camera at %s looking at %s (vfov=%.1f, aperture=%.3f, focus=%.3f)",
        camera.lookfrom,
        camera.lookat,
        camera.vfov,
        camera.aperture,
        camera.focus_dist,
    )


# =============================================================================
# Ray Generation (Taichi-compatible, GPU-callable)
# =============================================================================


@ti.func
def get_ray(s: ti.f32, t: ti.f32) -> Ray:
    """Generate a ray through normalized image coordinates (s, t).

    The origin is a random point on the lens disk and the direction aims at
    the matching point on the focus plane. The ray's time is drawn uniformly
    from the shutter interval.

    Args:
        s: Horizontal coordinate in [0, 1] (left to right).
        t: Vertical coordinate in [0, 1] (bottom to top).

    Returns:
        A Ray toward the specified point on the focus plane. The direction is
        not normalized.
    """
    rd = _lens_radius[None] * random_in_unit_disk()
    offset = _camera_u[None] * rd.x + _camera_v[None] * rd.y

    origin = _camera_origin[None] + offset
    target = _lower_left_corner[None] + s * _viewport_horizontal[None] + t * _viewport_vertical[None]
    time = _time0[None] + ti.random(ti.f32) * (_time1[None] - _time0[None])

    return make_ray(origin, target - origin, time)


@ti.func
def get_ray_jittered(pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32, height: ti.i32) -> Ray:
    """Generate a jittered ray for anti-aliasing.

    Adds a random sub-pixel offset in [0, 1) on both axes before converting
    to normalized image coordinates.

    Args:
        pixel_i: Pixel x-coordinate (0 = left).
        pixel_j: Pixel y-coordinate (0 = bottom).
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        A Ray with random sub-pixel offset for anti-aliasing.
    """
    jitter_u = ti.random(ti.f32)
    jitter_v = ti.random(ti.f32)

    s = (ti.cast(pixel_i, ti.f32) + jitter_u) / ti.cast(width, ti.f32)
    t = (ti.cast(pixel_j, ti.f32) + jitter_v) / ti.cast(height, ti.f32)

    return get_ray(s, t)


@ti.func
def get_camera_origin() -> vec3:
    """Get the lens center in world space."""
    return _camera_origin[None]


@ti.func
def get_camera_basis():
    """Get the camera's orthonormal basis vectors.

    Returns:
        A tuple (u, v, w) of right, up and backward directions.
    """
    return _camera_u[None], _camera_v[None], _camera_w[None]


# =============================================================================
# Utility Functions
# =============================================================================


def _as_tuple(vec) -> tuple[float, float, float]:
    return (float(vec[0]), float(vec[1]), float(vec[2]))


def get_camera_info() -> dict[str, object]:
    """Get current camera state for debugging.

    Returns:
        Dictionary with origin, u, v, w, horizontal, vertical, lower_left,
        lens_radius, time0 and time1.
    """
    return {
        "origin": _as_tuple(_camera_origin[None]),
        "u": _as_tuple(_camera_u[None]),
        "v": _as_tuple(_camera_v[None]),
        "w": _as_tuple(_camera_w[None]),
        "horizontal": _as_tuple(_viewport_horizontal[None]),
        "vertical": _as_tuple(_viewport_vertical[None]),
        "lower_left": _as_tuple(_lower_left_corner[None]),
        "lens_radius": float(_lens_radius[None]),
        "time0": float(_time0[None]),
        "time1": float(_time1[None]),
    }
