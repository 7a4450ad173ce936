"""Command-line renderer.

Renders one of the built-in scenes with progressive refinement and writes a
gamma-corrected PNG.

Usage:
    weekend-raytracer [options]
    python -m weekend_raytracer.cli [options]

Options:
    --scene {random,simple,tree}  Scene to render (default: random)
    --width WIDTH                 Image width in pixels (default: 600)
    --height HEIGHT               Image height in pixels (default: 400)
    --samples SAMPLES             Samples per pixel (default: 10)
    --batch-size SIZE             Samples per progress update (default: 5)
    --seed SEED                   Seed for the scene layout and the sampler
    --flat                        Search the random scene as a flat list
    --arch {cpu,gpu}              Taichi backend (default: cpu)
    --output OUTPUT               Output file path (default: render.png)
    -v, --verbose                 More logging (repeatable)
    -q, --quiet                   Only log errors

Example:
    weekend-raytracer --scene random --width 300 --height 200 --samples 20
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import taichi as ti

logger = logging.getLogger("weekend_raytracer")

SCENES = ("random", "simple", "tree")
ARCHS = {"cpu": ti.cpu, "gpu": ti.gpu}


@dataclass
class RenderSettings:
    """Everything needed for one render.

    Attributes:
        scene: One of "random", "simple" or "tree".
        width: Image width in pixels.
        height: Image height in pixels.
        samples: Samples per pixel.
        batch_size: Samples rendered between progress reports.
        seed: Seed for the scene layout and Taichi's sampler. None picks one.
        use_bvh: Search the random scene through a BVH.
        arch: Taichi backend name, "cpu" or "gpu".
        output: Output PNG path.
    """

    scene: str = "random"
    width: int = 600
    height: int = 400
    samples: int = 10
    batch_size: int = 5
    seed: int | None = None
    use_bvh: bool = True
    arch: str = "cpu"
    output: str = "render.png"

    def __post_init__(self) -> None:
        if self.scene not in SCENES:
            raise ValueError(f"Unknown scene {self.scene!r}, expected one of {SCENES}")
        if self.arch not in ARCHS:
            raise ValueError(f"Unknown arch {self.arch!r}, expected one of {tuple(ARCHS)}")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image dimensions must be positive, got {self.width}x{self.height}")
        if self.samples <= 0:
            raise ValueError(f"samples must be positive, got {self.samples}")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="weekend-raytracer",
        description="Render a scene of spheres with a Monte Carlo path tracer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--scene",
        choices=SCENES,
        default="random",
        help="Scene to render (default: random)",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=600,
        help="Image width in pixels (default: 600)",
    )
    parser.add_argument(
        "--height",
        type=int,
        default=400,
        help="Image height in pixels (default: 400)",
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=10,
        help="Number of samples per pixel (default: 10)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=5,
        help="Samples per progress update (default: 5)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the scene layout and the sampler",
    )
    parser.add_argument(
        "--flat",
        action="store_true",
        help="Search the random scene as a flat list instead of a BVH",
    )
    parser.add_argument(
        "--arch",
        choices=tuple(ARCHS),
        default="cpu",
        help="Taichi backend (default: cpu)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="render.png",
        help="Output file path (default: render.png)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (repeatable)",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log errors",
    )
    return parser.parse_args(argv)


def configure_logging(verbosity: int = 0, quiet: bool = False) -> None:
    """Configure the package logger.

    Args:
        verbosity: 0 logs INFO and above, 1 or more logs DEBUG.
        quiet: Log only errors, overriding verbosity.
    """
    if quiet:
        level = logging.ERROR
    elif verbosity > 0:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logger.setLevel(level)


def settings_from_args(args: argparse.Namespace) -> RenderSettings:
    """Build RenderSettings from parsed arguments.

    Raises:
        ValueError: If any setting is invalid.
    """
    return RenderSettings(
        scene=args.scene,
        width=args.width,
        height=args.height,
        samples=args.samples,
        batch_size=args.batch_size,
        seed=args.seed,
        use_bvh=not args.flat,
        arch=args.arch,
        output=args.output,
    )


def build_scene(settings: RenderSettings):
    """Create the requested scene and its camera.

    Taichi must be initialized before calling this.

    Returns:
        Tuple of (SceneManager, ThinLensCamera).
    """
    from weekend_raytracer.scene.builders import (
        create_random_scene,
        create_simple_spheres_scene,
        create_sphere_tree_scene,
    )

    if settings.scene == "random":
        return create_random_scene(
            seed=settings.seed,
            use_bvh=settings.use_bvh,
            aspect_ratio=settings.aspect_ratio,
        )
    if settings.scene == "tree":
        return create_sphere_tree_scene(seed=settings.seed, aspect_ratio=settings.aspect_ratio)
    return create_simple_spheres_scene(aspect_ratio=settings.aspect_ratio)


def render_to_file(settings: RenderSettings, init_taichi: bool = True) -> Path:
    """Render a scene and save it as a PNG.

    Args:
        settings: What and how to render.
        init_taichi: Call ti.init with the settings' arch and seed first.
            Tests that already initialized Taichi pass False.

    Returns:
        Path to the saved image file.
    """
    if init_taichi:
        init_kwargs = {"arch": ARCHS[settings.arch]}
        if settings.seed is not None:
            init_kwargs["random_seed"] = settings.seed
        ti.init(**init_kwargs)

    # Taichi fields are created on import, so these come after ti.init
    from weekend_raytracer.camera.thin_lens import setup_camera
    from weekend_raytracer.core.progressive import ProgressiveRenderer

    logger.info("Building %s scene (%dx%d)", settings.scene, settings.width, settings.height)
    scene, camera = build_scene(settings)
    setup_camera(camera)
    logger.info(
        "Scene has %d primitives and %d materials (%s)",
        scene.get_primitive_count(),
        scene.get_material_count(),
        "bvh" if scene.uses_bvh else "list",
    )

    renderer = ProgressiveRenderer(settings.width, settings.height)
    start_time = time.perf_counter()

    def progress_callback(current: int, target: int) -> None:
        elapsed = time.perf_counter() - start_time
        samples_per_sec = current / elapsed if elapsed > 0 else 0.0
        logger.info(
            "Progress: %d/%d samples (%.1f%%) - %.1f spp/s",
            current,
            target,
            100.0 * current / target,
            samples_per_sec,
        )

    renderer.render(
        num_samples=settings.samples,
        batch_size=settings.batch_size,
        callback=progress_callback,
    )

    output_file = Path(settings.output)
    renderer.save_image(output_file)

    logger.info("Saved to %s in %.2fs", output_file.absolute(), time.perf_counter() - start_time)
    return output_file


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    try:
        settings = settings_from_args(args)
        render_to_file(settings)
        return 0
    except Exception:
        logger.exception("Render failed")
        return 1


if __name__ == "__main__":
    sys.exit(main())
