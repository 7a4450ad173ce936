"""Recursive path tracing integrator.

Each camera ray is followed through the scene: at every hit the surface's
material scatters it into a new ray and tints it by an attenuation; a ray
that escapes picks up the sky gradient, which is the only light in the
scene. Absorbed rays and rays still bouncing after MAX_DEPTH scatters
contribute black.

The classic formulation is recursive:

    color(ray, depth) = attenuation * color(scattered, depth + 1)

Taichi functions cannot recurse, so trace_ray runs it as a loop carrying the
product of attenuations so far (the throughput). The result is the same:
sky * a1 * a2 * ... * an for a path that escapes after n scatters.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from weekend_raytracer.core.integrator import render_image, setup_render_target
    >>> from weekend_raytracer.scene.builders import create_random_scene
    >>> from weekend_raytracer.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_random_scene(seed=1)
    >>> setup_camera(camera)
    >>> setup_render_target(300, 200)
    >>> render_image(num_samples=10)
"""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from weekend_raytracer.camera.thin_lens import get_ray_jittered
from weekend_raytracer.core.ray import Ray, normalize
from weekend_raytracer.materials.dielectric import scatter_dielectric_by_id
from weekend_raytracer.materials.lambertian import scatter_lambertian_by_id
from weekend_raytracer.materials.metal import scatter_metal_by_id
from weekend_raytracer.scene.intersection import intersect_scene
from weekend_raytracer.scene.manager import (
    MaterialType,
    get_material_type,
    get_material_type_index,
)

# Type alias for 3D vectors
vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# Maximum number of scatters along one path
MAX_DEPTH = 50

# t_min and t_max for ray intersection; t_min keeps a scattered ray from
# re-hitting the surface it leaves
T_MIN = 0.001
T_MAX = float("inf")

# Sky gradient endpoints, bottom (y = -1) to top (y = +1)
SKY_WHITE = (1.0, 1.0, 1.0)
SKY_BLUE = (0.5, 0.7, 1.0)


# =============================================================================
# Render Target (Image Buffer)
# =============================================================================

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

# Image dimensions (actual active size)
_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Color accumulation buffer (preallocated to max size)
_color_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Sample count per pixel (preallocated to max size)
_sample_count = ti.field(dtype=ti.i32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Flag to track if render target is initialized
_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Initialize the render target buffers.

    Sets the active image dimensions and clears the buffers.
    The buffers are preallocated to MAX_IMAGE_WIDTH x MAX_IMAGE_HEIGHT
    to avoid Taichi kernel recompilation issues.

    Args:
        width: Image width in pixels (max MAX_IMAGE_WIDTH).
        height: Image height in pixels (max MAX_IMAGE_HEIGHT).

    Raises:
        ValueError: If dimensions are not positive or exceed the maximum
            supported size.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1

    clear_render_target()


def clear_render_target() -> None:
    """Clear the render target buffers to zero."""
    _color_buffer.fill(0.0)
    _sample_count.fill(0)


def reset_render_target() -> None:
    """Forget the render target setup, as if setup_render_target was never called."""
    _render_target_initialized[None] = 0
    _image_width[None] = 0
    _image_height[None] = 0


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions as (width, height)."""
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    """Check if render target is initialized and raise if not."""
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


def get_image() -> "ti.MatrixField":
    """Get the color buffer.

    Note: This returns the full preallocated buffer. Use get_image_dimensions()
    to determine the active region.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()
    return _color_buffer


# =============================================================================
# Background
# =============================================================================


@ti.func
def sky_color(direction: vec3) -> vec3:
    """Vertical white-to-blue gradient seen by rays that escape the scene.

    With t = 0.5 * (unit(direction).y + 1), returns
    (1 - t) * white + t * (0.5, 0.7, 1.0).
    """
    unit = normalize(direction)
    t = 0.5 * (unit.y + 1.0)
    white = vec3(SKY_WHITE[0], SKY_WHITE[1], SKY_WHITE[2])
    blue = vec3(SKY_BLUE[0], SKY_BLUE[1], SKY_BLUE[2])
    return (1.0 - t) * white + t * blue


# =============================================================================
# Material Dispatch
# =============================================================================


@ti.func
def _scatter_material(material_id: ti.i32, incident_direction: vec3, normal: vec3):
    """Dispatch to the scattering function of the material's type.

    Args:
        material_id: The unified material ID.
        incident_direction: The incoming ray direction.
        normal: The surface normal from the hit record.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter). An
        unknown material ID absorbs the ray.
    """
    mat_type = get_material_type(material_id)
    type_index = get_material_type_index(material_id)

    scattered_direction = vec3(0.0, 0.0, 0.0)
    attenuation = vec3(0.0, 0.0, 0.0)
    did_scatter = 0

    if mat_type == int(MaterialType.LAMBERTIAN):
        scattered_direction, attenuation, did_scatter = scatter_lambertian_by_id(
            type_index, normal
        )
    elif mat_type == int(MaterialType.METAL):
        scattered_direction, attenuation, did_scatter = scatter_metal_by_id(
            type_index, incident_direction, normal
        )
    elif mat_type == int(MaterialType.DIELECTRIC):
        scattered_direction, attenuation, did_scatter = scatter_dielectric_by_id(
            type_index, incident_direction, normal
        )

    return scattered_direction, attenuation, did_scatter


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def trace_ray(ray: Ray):
    """Compute the color carried back along a ray.

    Each scattered ray starts at the hit point, keeps the incoming ray's
    time, and is searched with the same (T_MIN, T_MAX) window.

    Args:
        ray: The primary ray.

    Returns:
        A tuple of (color, bounces) where bounces is the number of times the
        path scattered. bounces never exceeds MAX_DEPTH.
    """
    color = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    bounces = 0

    origin = ray.origin
    direction = ray.direction
    time = ray.time

    # Active flag for path continuation (Taichi doesn't support break in ti.func loops)
    active = 1

    for _ in range(MAX_DEPTH + 1):
        if active == 1:
            current = Ray(origin=origin, direction=direction, time=time)
            hit_record = intersect_scene(current, T_MIN, T_MAX)

            if hit_record.hit == 0:
                color = throughput * sky_color(direction)
                active = 0
            elif bounces >= MAX_DEPTH:
                # Still bouncing at the depth limit; contributes black
                active = 0
            else:
                scattered_direction, attenuation, did_scatter = _scatter_material(
                    hit_record.material_id, direction, hit_record.normal
                )
                if did_scatter == 0:
                    active = 0
                else:
                    throughput *= attenuation
                    bounces += 1
                    origin = hit_record.point
                    direction = scattered_direction

    return color, bounces


@ti.func
def render_sample_impl(pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32, height: ti.i32) -> vec3:
    """Render a single jittered camera sample for a pixel."""
    ray = get_ray_jittered(pixel_i, pixel_j, width, height)
    color, _bounces = trace_ray(ray)
    return color


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_one_spp(width: ti.i32, height: ti.i32):
    """Render one sample per pixel and fold it into the running average."""
    for i, j in ti.ndrange(width, height):
        color = render_sample_impl(i, j, width, height)

        # Check for NaN/Inf and replace with zero
        for c in ti.static(range(3)):
            if tm.isnan(color[c]) or tm.isinf(color[c]):
                color[c] = 0.0

        _sample_count[i, j] += 1
        n = _sample_count[i, j]

        # Running average: avg_n = avg_{n-1} + (x_n - avg_{n-1}) / n
        _color_buffer[i, j] += (color - _color_buffer[i, j]) / ti.cast(n, ti.f32)


@ti.kernel
def _render_single_pixel(pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32, height: ti.i32) -> vec3:
    """Render a single sample for a specific pixel."""
    return render_sample_impl(pixel_i, pixel_j, width, height)


# Probe results for tracing one ray from the host
_probe_color = ti.Vector.field(3, dtype=ti.f32, shape=())
_probe_bounces = ti.field(dtype=ti.i32, shape=())
_probe_hit = ti.field(dtype=ti.i32, shape=())
_probe_t = ti.field(dtype=ti.f32, shape=())
_probe_point = ti.Vector.field(3, dtype=ti.f32, shape=())
_probe_normal = ti.Vector.field(3, dtype=ti.f32, shape=())
_probe_material_id = ti.field(dtype=ti.i32, shape=())
_probe_did_scatter = ti.field(dtype=ti.i32, shape=())
_probe_scattered_origin = ti.Vector.field(3, dtype=ti.f32, shape=())
_probe_scattered_direction = ti.Vector.field(3, dtype=ti.f32, shape=())
_probe_attenuation = ti.Vector.field(3, dtype=ti.f32, shape=())


@ti.kernel
def _trace_probe(
    ox: ti.f32, oy: ti.f32, oz: ti.f32, dx: ti.f32, dy: ti.f32, dz: ti.f32, time: ti.f32
):
    ray = Ray(origin=vec3(ox, oy, oz), direction=vec3(dx, dy, dz), time=time)
    color, bounces = trace_ray(ray)
    _probe_color[None] = color
    _probe_bounces[None] = bounces


@ti.kernel
def _scatter_probe(
    ox: ti.f32, oy: ti.f32, oz: ti.f32, dx: ti.f32, dy: ti.f32, dz: ti.f32, time: ti.f32
):
    ray = Ray(origin=vec3(ox, oy, oz), direction=vec3(dx, dy, dz), time=time)
    rec = intersect_scene(ray, T_MIN, T_MAX)
    _probe_hit[None] = rec.hit
    _probe_did_scatter[None] = 0
    if rec.hit == 1:
        _probe_t[None] = rec.t
        _probe_point[None] = rec.point
        _probe_normal[None] = rec.normal
        _probe_material_id[None] = rec.material_id
        scattered_direction, attenuation, did_scatter = _scatter_material(
            rec.material_id, ray.direction, rec.normal
        )
        _probe_did_scatter[None] = did_scatter
        _probe_scattered_origin[None] = rec.point
        _probe_scattered_direction[None] = scattered_direction
        _probe_attenuation[None] = attenuation


# =============================================================================
# Public Rendering API
# =============================================================================


def _as_tuple(vec) -> tuple[float, float, float]:
    return (float(vec[0]), float(vec[1]), float(vec[2]))


def trace_single_ray(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    time: float = 0.0,
) -> tuple[tuple[float, float, float], int]:
    """Trace one ray through the current scene from the host.

    Does not need a camera or a render target.

    Args:
        origin: Ray origin.
        direction: Ray direction (any non-zero length).
        time: Ray time, used by moving spheres.

    Returns:
        Tuple of ((R, G, B), bounces).
    """
    _trace_probe(*origin, *direction, time)
    return _as_tuple(_probe_color[None]), int(_probe_bounces[None])


@dataclass(frozen=True)
class ScatterEvent:
    """What happens to a ray at its first surface.

    Attributes:
        hit: Whether the ray hit anything.
        t: Ray parameter of the hit.
        point: Hit point.
        normal: Normal from the hit record.
        material_id: Unified material ID of the surface.
        did_scatter: Whether the material produced a scattered ray.
        scattered_origin: Origin of the scattered ray.
        scattered_direction: Direction of the scattered ray.
        attenuation: Attenuation reported by the material.
    """

    hit: bool
    t: float = 0.0
    point: tuple[float, float, float] = (0.0, 0.0, 0.0)
    normal: tuple[float, float, float] = (0.0, 0.0, 0.0)
    material_id: int = -1
    did_scatter: bool = False
    scattered_origin: tuple[float, float, float] = (0.0, 0.0, 0.0)
    scattered_direction: tuple[float, float, float] = (0.0, 0.0, 0.0)
    attenuation: tuple[float, float, float] = (0.0, 0.0, 0.0)


def scatter_first_hit(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    time: float = 0.0,
) -> ScatterEvent:
    """Intersect one ray with the scene and scatter it once.

    Args:
        origin: Ray origin.
        direction: Ray direction.
        time: Ray time.

    Returns:
        The first hit and the ray its material scattered, if any.
    """
    _scatter_probe(*origin, *direction, time)
    if _probe_hit[None] == 0:
        return ScatterEvent(hit=False)
    did_scatter = bool(_probe_did_scatter[None])
    return ScatterEvent(
        hit=True,
        t=float(_probe_t[None]),
        point=_as_tuple(_probe_point[None]),
        normal=_as_tuple(_probe_normal[None]),
        material_id=int(_probe_material_id[None]),
        did_scatter=did_scatter,
        scattered_origin=_as_tuple(_probe_scattered_origin[None]),
        scattered_direction=_as_tuple(_probe_scattered_direction[None]),
        attenuation=_as_tuple(_probe_attenuation[None]),
    )


def render_sample(pixel_i: int, pixel_j: int) -> tuple[float, float, float]:
    """Render a single sample for a specific pixel.

    This is a Python-callable function for testing. For production rendering,
    use render_image() which processes all pixels in parallel.

    Args:
        pixel_i: Pixel x-coordinate (0 = left).
        pixel_j: Pixel y-coordinate (0 = bottom).

    Returns:
        Tuple of (R, G, B) color values.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    color = _render_single_pixel(pixel_i, pixel_j, width, height)

    return _as_tuple(color)


def render_image(num_samples: int = 1) -> None:
    """Render the image with the specified number of samples per pixel.

    Progressively accumulates samples into the color buffer. Can be called
    multiple times to add more samples for convergence. Every pixel has
    received its samples when this returns.

    Args:
        num_samples: Number of samples to render per pixel.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()

    for _ in range(num_samples):
        _render_one_spp(width, height)


def get_total_samples() -> int:
    """Get the number of samples per pixel rendered so far.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    return int(_sample_count[0, 0])


def get_normalized_image_numpy() -> npt.NDArray[np.float32]:
    """Get the rendered image as a NumPy array.

    Returns the linear color buffer clamped to [0, 1], shape
    (height, width, 3), top row first.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()

    full_image = _color_buffer.to_numpy()

    # Extract active region
    image = full_image[:width, :height, :]

    # Transpose from (width, height, 3) to (height, width, 3) for standard image format
    image = np.transpose(image, (1, 0, 2))

    # Flip vertically (Taichi uses bottom-left origin, images use top-left)
    image = np.flipud(image)

    image = np.clip(image, 0.0, 1.0)

    return image.astype(np.float32)
