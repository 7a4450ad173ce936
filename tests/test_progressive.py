"""Tests for the progressive renderer.

This module tests the ProgressiveRenderer class including:
- Initialization and setup
- Progressive sample accumulation
- Batch rendering with callbacks and generators
- Reset functionality
- Image output in various formats

Note: Imports are done inside test methods to avoid Taichi initialization issues.
"""

import numpy as np
import pytest
from PIL import Image as PILImage


@pytest.fixture
def simple_scene(fresh_scene):
    """A small lit scene and a camera looking at it."""
    from weekend_raytracer.camera.thin_lens import ThinLensCamera, setup_camera

    fresh_scene.add_lambertian_sphere((0.0, 0.0, -1.0), 0.5, (0.5, 0.5, 0.5))
    fresh_scene.add_lambertian_sphere((0.0, -100.5, -1.0), 100.0, (0.8, 0.8, 0.0))
    setup_camera(
        ThinLensCamera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, -1.0), aspect_ratio=2.0)
    )
    return fresh_scene


class TestProgressiveRendererInit:
    def test_init_creates_render_target(self):
        from weekend_raytracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(128, 96)

        assert renderer.width == 128
        assert renderer.height == 96
        assert renderer.sample_count == 0

    def test_init_rejects_oversized_dimensions(self):
        from weekend_raytracer.core.progressive import ProgressiveRenderer

        with pytest.raises(ValueError, match="exceed maximum"):
            ProgressiveRenderer(4096, 100)

    def test_repr(self):
        from weekend_raytracer.core.progressive import ProgressiveRenderer

        assert repr(ProgressiveRenderer(8, 4)) == (
            "ProgressiveRenderer(width=8, height=4, samples=0)"
        )


class TestProgressiveRendering:
    def test_render_accumulates(self, simple_scene):
        from weekend_raytracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(16, 8)
        renderer.render(3)
        renderer.render(2)

        assert renderer.sample_count == 5

    def test_callback_per_batch(self, simple_scene):
        from weekend_raytracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(16, 8)
        calls = []
        renderer.render(num_samples=7, batch_size=3, callback=lambda c, t: calls.append((c, t)))

        assert calls == [(3, 7), (6, 7), (7, 7)]

    def test_generator(self, simple_scene):
        from weekend_raytracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(16, 8)
        renderer.render(2)
        progress = list(renderer.render_progressive(4, batch_size=2))

        assert progress == [(4, 6), (6, 6)]

    def test_zero_samples_is_noop(self, simple_scene):
        from weekend_raytracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(16, 8)
        assert list(renderer.render_progressive(0)) == []
        assert renderer.sample_count == 0

    def test_invalid_batch_size(self, simple_scene):
        from weekend_raytracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(16, 8)
        with pytest.raises(ValueError, match="batch_size"):
            renderer.render(4, batch_size=0)

    def test_reset_and_resize(self, simple_scene):
        from weekend_raytracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(16, 8)
        renderer.render(2)
        renderer.reset()
        assert renderer.sample_count == 0

        renderer.render(1)
        renderer.resize(10, 5)
        assert renderer.sample_count == 0
        assert renderer.get_image_numpy().shape == (5, 10, 3)


class TestProgressiveOutput:
    def test_image_formats(self, simple_scene):
        from weekend_raytracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(16, 8)
        renderer.render(4)

        linear = renderer.get_image_numpy()
        encoded = renderer.get_image_numpy(gamma=2.0)
        as_bytes = renderer.get_image_uint8()

        assert linear.shape == (8, 16, 3)
        assert linear.dtype == np.float32
        assert np.allclose(encoded, np.sqrt(linear), atol=1e-6)
        assert as_bytes.dtype == np.uint8
        assert as_bytes.shape == (8, 16, 3)

    def test_save_image(self, simple_scene, tmp_path):
        from weekend_raytracer.core.progressive import ProgressiveRenderer
        from weekend_raytracer.preview.export import save_png

        renderer = ProgressiveRenderer(16, 8)
        renderer.render(2)
        first = tmp_path / "render.png"
        second = tmp_path / "render_via_export.png"
        renderer.save_image(first)
        save_png(renderer, second)

        with PILImage.open(first) as a, PILImage.open(second) as b:
            assert a.size == (16, 8)
            assert np.array_equal(np.asarray(a), np.asarray(b))

    def test_converges(self, simple_scene):
        """Test more samples bring the image closer to a high-sample reference."""
        from weekend_raytracer.core.progressive import ProgressiveRenderer
        from weekend_raytracer.preview.export import compute_rmse

        renderer = ProgressiveRenderer(16, 8)
        renderer.render(64)
        reference = renderer.get_image_numpy()

        renderer.reset()
        renderer.render(1)
        coarse = compute_rmse(renderer.get_image_numpy(), reference)
        renderer.render(31)
        fine = compute_rmse(renderer.get_image_numpy(), reference)

        assert fine < coarse
