"""Image export utilities for rendered images.

The renderer accumulates linear radiance. Before encoding, every channel is
clamped to [0, 1] and gamma encoded; the default gamma of 2 is a per-channel
square root. Values are quantised to 8 bits by truncating 255.99 * value.

Supported formats:
    - PNG (8-bit RGB via Pillow)

Example:
    >>> from weekend_raytracer.preview.export import save_png
    >>> from weekend_raytracer.core.progressive import ProgressiveRenderer
    >>>
    >>> renderer = ProgressiveRenderer(300, 200)
    >>> renderer.render(100)
    >>> save_png(renderer, "output.png")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

if TYPE_CHECKING:
    from weekend_raytracer.core.progressive import ProgressiveRenderer

logger = logging.getLogger(__name__)

# Default display gamma: gamma 2 is a square root per channel
DEFAULT_GAMMA = 2.0


def apply_gamma(
    image: npt.NDArray[np.float32],
    gamma: float = DEFAULT_GAMMA,
) -> npt.NDArray[np.float32]:
    """Clamp to [0, 1] and gamma encode: out = in^(1/gamma).

    Args:
        image: Linear image array of shape (H, W, 3).
        gamma: Gamma value. Must be positive. 1.0 only clamps.

    Returns:
        Gamma-encoded float32 image in [0, 1].

    Raises:
        ValueError: If gamma is not positive.
    """
    if gamma <= 0.0:
        raise ValueError(f"Gamma must be positive, got {gamma}")

    # Clamp to [0, 1] before gamma to avoid NaN from negative values
    result = np.clip(image, 0.0, 1.0)

    if gamma == 2.0:
        result = np.sqrt(result)
    elif gamma != 1.0:
        result = np.power(result, 1.0 / gamma)

    return result.astype(np.float32)


def image_to_uint8(
    image: npt.NDArray[np.float32],
    *,
    gamma: float = DEFAULT_GAMMA,
) -> npt.NDArray[np.uint8]:
    """Convert a linear float image to gamma-encoded uint8.

    Args:
        image: Linear image array of shape (H, W, 3).
        gamma: Gamma correction value.

    Returns:
        8-bit image array of shape (H, W, 3).
    """
    encoded = apply_gamma(image, gamma)
    return (encoded * 255.99).astype(np.uint8)


def save_png_from_array(
    image: npt.NDArray[np.float32],
    filepath: str | Path,
    *,
    gamma: float = DEFAULT_GAMMA,
) -> None:
    """Save a linear float image as an 8-bit RGB PNG file.

    Args:
        image: Linear image array of shape (H, W, 3), top row first.
        filepath: Output file path (should end in .png).
        gamma: Gamma correction value.

    Raises:
        ValueError: If the image is not of shape (H, W, 3).
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an (H, W, 3) image, got shape {image.shape}")

    image_uint8 = image_to_uint8(image, gamma=gamma)
    pil_image = PILImage.fromarray(image_uint8)
    pil_image.save(filepath)
    logger.debug("Wrote %dx%d PNG to %s", image.shape[1], image.shape[0], filepath)


def save_png(
    renderer: ProgressiveRenderer,
    filepath: str | Path,
    *,
    gamma: float = DEFAULT_GAMMA,
) -> None:
    """Save the renderer's current image as a PNG file.

    Args:
        renderer: The ProgressiveRenderer instance to save.
        filepath: Output file path (should end in .png).
        gamma: Gamma correction value.
    """
    save_png_from_array(renderer.get_image_numpy(gamma=1.0), filepath, gamma=gamma)


def compute_rmse(
    image_a: npt.NDArray[np.floating[npt.NBitBase]],
    image_b: npt.NDArray[np.floating[npt.NBitBase]],
) -> float:
    """Compute root mean squared error between two images.

    Args:
        image_a: First image array.
        image_b: Second image array (must have same shape as image_a).

    Returns:
        RMSE value (lower is more similar).

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))
