"""Sample accumulation over several kernel launches.

ProgressiveRenderer owns nothing on the device: the running average lives
in the integrator's render target, and the renderer only remembers the
image size and splits a sample budget into batches. Each batch is one
render_image call, so a caller can report progress, or stop early, between
batches.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from weekend_raytracer.core.progressive import ProgressiveRenderer
    >>> from weekend_raytracer.scene.builders import create_simple_spheres_scene
    >>> from weekend_raytracer.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_simple_spheres_scene()
    >>> setup_camera(camera)
    >>> renderer = ProgressiveRenderer(200, 100)
    >>> for done, target in renderer.render_progressive(50, batch_size=10):
    ...     pass
    >>> renderer.save_image("spheres.png")
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import numpy as np
import numpy.typing as npt

from weekend_raytracer.core.integrator import (
    clear_render_target,
    get_normalized_image_numpy,
    get_total_samples,
    render_image,
    setup_render_target,
)
from weekend_raytracer.preview.export import (
    DEFAULT_GAMMA,
    apply_gamma,
    image_to_uint8,
    save_png_from_array,
)

# (samples so far, samples wanted once this call finishes)
ProgressCallback = Callable[[int, int], None]


class ProgressiveRenderer:
    """Batches samples into the shared render target.

    Set up the camera and the scene before the first render call.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
    """

    def __init__(self, width: int, height: int) -> None:
        """Allocate the render target.

        Raises:
            ValueError: If either dimension is not positive or is larger
                than the preallocated buffers.
        """
        self.resize(width, height)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def sample_count(self) -> int:
        """Samples per pixel accumulated so far."""
        return get_total_samples()

    def reset(self) -> None:
        """Drop the accumulated samples."""
        clear_render_target()

    def resize(self, width: int, height: int) -> None:
        """Switch to a new image size, dropping the accumulated samples."""
        setup_render_target(width, height)
        self._width = width
        self._height = height

    def render(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Add ``num_samples`` samples per pixel, ``batch_size`` at a time.

        ``callback`` is called after every batch with the running and the
        final sample count.

        Raises:
            ValueError: If batch_size is not positive.
        """
        for done, target in self.render_progressive(num_samples, batch_size):
            if callback is not None:
                callback(done, target)

    def render_progressive(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
    ) -> Iterator[tuple[int, int]]:
        """Like render, but yields (done, target) after every batch.

        Nothing is rendered until iteration starts. A non-positive
        ``num_samples`` yields nothing.

        Raises:
            ValueError: If batch_size is not positive.
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if num_samples <= 0:
            return

        target = self.sample_count + num_samples
        for start in range(0, num_samples, batch_size):
            render_image(min(batch_size, num_samples - start))
            yield self.sample_count, target

    def get_image_numpy(self, gamma: float = 1.0) -> npt.NDArray[np.float32]:
        """Averaged image, shape (height, width, 3), row 0 at the top.

        With the default gamma of 1.0 the values are linear.
        """
        image = get_normalized_image_numpy()
        if gamma != 1.0:
            image = apply_gamma(image, gamma)
        return image

    def get_image_uint8(self, gamma: float = DEFAULT_GAMMA) -> npt.NDArray[np.uint8]:
        return image_to_uint8(get_normalized_image_numpy(), gamma=gamma)

    def save_image(self, filepath: str | Path, gamma: float = DEFAULT_GAMMA) -> None:
        """Write the averaged image as an 8-bit PNG."""
        save_png_from_array(get_normalized_image_numpy(), filepath, gamma=gamma)

    def __repr__(self) -> str:
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"samples={self.sample_count})"
        )
