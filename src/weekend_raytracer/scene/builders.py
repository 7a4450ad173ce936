"""Ready-made scenes.

Each factory resets the global scene, fills it and returns the SceneManager
together with a camera framing it:

- create_random_scene: the book cover. A large grey ground sphere, a 20x20
  grid of small spheres with random materials (diffuse ones bounce upward
  while the shutter is open), and three large spheres in glass, brown
  diffuse and gold metal.
- create_simple_spheres_scene: four objects on a yellow ground, searched as
  a flat list. The glass sphere is hollow: an outer sphere of radius 1 and
  an inner one of radius -0.95 sharing one glass material.
- create_sphere_tree_scene: the same objects under a BVH.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from weekend_raytracer.scene.builders import create_random_scene
    >>> from weekend_raytracer.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_random_scene(seed=42)
    >>> setup_camera(camera)
"""

from __future__ import annotations

import logging

import numpy as np

from weekend_raytracer.camera.thin_lens import ThinLensCamera
from weekend_raytracer.scene.manager import SceneManager

logger = logging.getLogger(__name__)

# =============================================================================
# Scene Constants
# =============================================================================

# Shutter interval used by every scene here
TIME0 = 0.0
TIME1 = 1.0

GROUND_CENTER = (0.0, -1000.0, 0.0)
GROUND_RADIUS = 1000.0

# Random scene
RANDOM_GROUND_ALBEDO = (0.5, 0.5, 0.5)
GRID_HALF_EXTENT = 10
SMALL_RADIUS = 0.2
# Small spheres closer than this to KEEP_CLEAR are skipped
KEEP_CLEAR = (4.0, 0.2, 0.0)
KEEP_CLEAR_DISTANCE = 0.9
DIFFUSE_PROBABILITY = 0.8
METAL_PROBABILITY = 0.15
GLASS_REF_IDX = 1.5

BIG_BROWN_ALBEDO = (0.4, 0.2, 0.1)
GOLD_ALBEDO = (0.8, 0.6, 0.2)

# Simple spheres
SIMPLE_GROUND_ALBEDO = (0.8, 0.8, 0.0)
BLUE_ALBEDO = (0.1, 0.2, 0.5)
BUBBLE_INNER_RADIUS = -0.95


# =============================================================================
# Cameras
# =============================================================================


def default_camera(
    aspect_ratio: float = 3.0 / 2.0,
    aperture: float = 0.1,
) -> ThinLensCamera:
    """Camera used by all scenes here: from (13, 2, 3) toward the origin."""
    return ThinLensCamera(
        lookfrom=(13.0, 2.0, 3.0),
        lookat=(0.0, 0.0, 0.0),
        vup=(0.0, 1.0, 0.0),
        vfov=20.0,
        aspect_ratio=aspect_ratio,
        aperture=aperture,
        focus_dist=10.0,
        time0=TIME0,
        time1=TIME1,
    )


# =============================================================================
# Scene Factories
# =============================================================================


def create_random_scene(
    seed: int | None = None,
    use_bvh: bool = True,
    aspect_ratio: float = 3.0 / 2.0,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create the random "book cover" scene.

    Grid cell (a, b) for a, b in [-10, 10) gets a sphere of radius 0.2
    centered at (a + 0.9 r1, 0.2, b + 0.9 r2) unless it lies within 0.9 of
    (4, 0.2, 0). Its material is chosen by a uniform draw:

    - below 0.8: diffuse with a random albedo, moving from its center to
      center + (0, 0.5 r, 0) over the shutter interval
    - below 0.95: metal with albedo 0.5 (1 + r) per channel and fuzz 0.5 r
    - otherwise: glass (all glass spheres share one material)

    Args:
        seed: Seed for the scene layout and the BVH split axes.
        use_bvh: Search the scene through a BVH (True) or a flat list.
        aspect_ratio: Aspect ratio of the returned camera.

    Returns:
        Tuple of (scene, camera).
    """
    rng = np.random.default_rng(seed)
    scene = SceneManager()

    ground = scene.add_lambertian_material(RANDOM_GROUND_ALBEDO)
    scene.add_sphere(GROUND_CENTER, GROUND_RADIUS, ground)

    glass = scene.add_dielectric_material(GLASS_REF_IDX)
    keep_clear = np.array(KEEP_CLEAR)

    for a in range(-GRID_HALF_EXTENT, GRID_HALF_EXTENT):
        for b in range(-GRID_HALF_EXTENT, GRID_HALF_EXTENT):
            choose_mat = rng.random()
            center = np.array([a + 0.9 * rng.random(), SMALL_RADIUS, b + 0.9 * rng.random()])

            if np.linalg.norm(center - keep_clear) <= KEEP_CLEAR_DISTANCE:
                continue

            center_t = (float(center[0]), float(center[1]), float(center[2]))
            if choose_mat < DIFFUSE_PROBABILITY:
                rise = 0.5 * rng.random()
                albedo = tuple(float(x) for x in rng.random(3))
                scene.add_moving_lambertian_sphere(
                    center_t,
                    (center_t[0], center_t[1] + rise, center_t[2]),
                    TIME0,
                    TIME1,
                    SMALL_RADIUS,
                    albedo,
                )
            elif choose_mat < DIFFUSE_PROBABILITY + METAL_PROBABILITY:
                albedo = tuple(float(x) for x in 0.5 * (1.0 + rng.random(3)))
                fuzz = float(0.5 * rng.random())
                scene.add_metal_sphere(center_t, SMALL_RADIUS, albedo, fuzz)
            else:
                scene.add_sphere(center_t, SMALL_RADIUS, glass)

    scene.add_sphere((0.0, 1.0, 0.0), 1.0, glass)
    scene.add_lambertian_sphere((-4.0, 1.0, 0.0), 1.0, BIG_BROWN_ALBEDO)
    scene.add_metal_sphere((4.0, 1.0, 0.0), 1.0, GOLD_ALBEDO, 0.0)

    if use_bvh:
        scene.build_bvh(TIME0, TIME1, seed=rng)

    logger.debug(
        "Random scene: %d primitives, %d materials, root=%s",
        scene.get_primitive_count(),
        scene.get_material_count(),
        "bvh" if use_bvh else "list",
    )
    return scene, default_camera(aspect_ratio)


def _add_simple_spheres(scene: SceneManager) -> None:
    scene.add_lambertian_sphere(GROUND_CENTER, GROUND_RADIUS, SIMPLE_GROUND_ALBEDO)
    scene.add_lambertian_sphere((4.0, 1.0, 0.0), 1.0, BLUE_ALBEDO)
    scene.add_metal_sphere((-4.0, 1.0, 0.0), 1.0, GOLD_ALBEDO, 0.0)
    glass = scene.add_dielectric_material(GLASS_REF_IDX)
    scene.add_sphere((0.0, 1.0, 0.0), 1.0, glass)
    scene.add_sphere((0.0, 1.0, 0.0), BUBBLE_INNER_RADIUS, glass)


def create_simple_spheres_scene(
    aspect_ratio: float = 3.0 / 2.0,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create the four-object scene, searched as a flat list.

    Returns:
        Tuple of (scene, camera).
    """
    scene = SceneManager()
    _add_simple_spheres(scene)
    logger.debug("Simple spheres scene: %d primitives", scene.get_primitive_count())
    return scene, default_camera(aspect_ratio, aperture=0.0)


def create_sphere_tree_scene(
    seed: int | None = None,
    aspect_ratio: float = 3.0 / 2.0,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create the four-object scene under a BVH.

    Args:
        seed: Seed for the BVH split axes.
        aspect_ratio: Aspect ratio of the returned camera.

    Returns:
        Tuple of (scene, camera).
    """
    scene = SceneManager()
    _add_simple_spheres(scene)
    bvh = scene.build_bvh(TIME0, TIME1, seed=seed)
    logger.debug(
        "Sphere tree scene: %d primitives, %d BVH nodes",
        scene.get_primitive_count(),
        bvh.node_count,
    )
    return scene, default_camera(aspect_ratio, aperture=0.0)
