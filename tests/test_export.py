"""Tests for the image export module.

This module tests the preview/export functionality including:
- Gamma correction
- 8-bit quantization
- PNG export
- RMSE computation
"""

import numpy as np
import pytest
from PIL import Image as PILImage


class TestApplyGamma:
    def test_gamma_two_is_square_root(self):
        from weekend_raytracer.preview.export import apply_gamma

        image = np.full((2, 2, 3), 0.25, dtype=np.float32)
        assert np.allclose(apply_gamma(image, 2.0), 0.5)

    def test_gamma_one_only_clamps(self):
        from weekend_raytracer.preview.export import apply_gamma

        image = np.array([[[-0.5, 0.3, 2.0]]], dtype=np.float32)
        assert np.allclose(apply_gamma(image, 1.0), [[[0.0, 0.3, 1.0]]])

    def test_other_gamma(self):
        from weekend_raytracer.preview.export import apply_gamma

        image = np.full((1, 1, 3), 0.5, dtype=np.float32)
        assert np.allclose(apply_gamma(image, 2.2), 0.5 ** (1.0 / 2.2), atol=1e-6)

    def test_preserves_extremes(self):
        from weekend_raytracer.preview.export import apply_gamma

        image = np.array([[[0.0, 1.0, 0.0]]], dtype=np.float32)
        assert np.allclose(apply_gamma(image), [[[0.0, 1.0, 0.0]]])

    @pytest.mark.parametrize("gamma", [0.0, -2.0])
    def test_rejects_non_positive_gamma(self, gamma):
        from weekend_raytracer.preview.export import apply_gamma

        with pytest.raises(ValueError, match="Gamma must be positive"):
            apply_gamma(np.zeros((1, 1, 3), dtype=np.float32), gamma)


class TestImageToUint8:
    def test_quantization(self):
        from weekend_raytracer.preview.export import image_to_uint8

        image = np.array([[[0.0, 0.25, 1.0]]], dtype=np.float32)
        result = image_to_uint8(image)

        assert result.dtype == np.uint8
        # sqrt(0.25) * 255.99 = 127.995
        assert result.tolist() == [[[0, 127, 255]]]


class TestSavePng:
    def test_save_png_from_array(self, tmp_path):
        from weekend_raytracer.preview.export import save_png_from_array

        image = np.zeros((4, 6, 3), dtype=np.float32)
        image[0, :, 0] = 1.0
        path = tmp_path / "out.png"
        save_png_from_array(image, path)

        with PILImage.open(path) as loaded:
            assert loaded.size == (6, 4)
            assert loaded.mode == "RGB"
            pixels = np.asarray(loaded)
        assert pixels[0, 0].tolist() == [255, 0, 0]
        assert pixels[3, 0].tolist() == [0, 0, 0]

    def test_rejects_wrong_shape(self, tmp_path):
        from weekend_raytracer.preview.export import save_png_from_array

        with pytest.raises(ValueError, match="Expected an"):
            save_png_from_array(np.zeros((4, 4), dtype=np.float32), tmp_path / "bad.png")


class TestComputeRmse:
    def test_identical_images(self):
        from weekend_raytracer.preview.export import compute_rmse

        image = np.random.default_rng(0).random((5, 5, 3))
        assert compute_rmse(image, image) == 0.0

    def test_constant_difference(self):
        from weekend_raytracer.preview.export import compute_rmse

        a = np.zeros((3, 3, 3))
        b = np.full((3, 3, 3), 0.5)
        assert compute_rmse(a, b) == pytest.approx(0.5)

    def test_shape_mismatch(self):
        from weekend_raytracer.preview.export import compute_rmse

        with pytest.raises(ValueError, match="shapes must match"):
            compute_rmse(np.zeros((2, 2, 3)), np.zeros((3, 2, 3)))
