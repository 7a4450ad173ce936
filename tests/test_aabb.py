"""Unit tests for axis-aligned bounding boxes.

Tests cover:
- Host-side BoundingBox construction and validation
- surrounding_box unions
- The slab test in Taichi, including negative and zero direction components
"""

import numpy as np
import pytest
import taichi as ti


class TestBoundingBox:
    """Tests for the host-side box."""

    def test_from_center_radius(self):
        from weekend_raytracer.geometry.aabb import BoundingBox

        box = BoundingBox.from_center_radius((1.0, 2.0, 3.0), 0.5)
        assert np.allclose(box.minimum, [0.5, 1.5, 2.5])
        assert np.allclose(box.maximum, [1.5, 2.5, 3.5])

    def test_negative_radius_uses_magnitude(self):
        from weekend_raytracer.geometry.aabb import BoundingBox

        box = BoundingBox.from_center_radius((0.0, 0.0, 0.0), -2.0)
        assert np.allclose(box.minimum, [-2.0, -2.0, -2.0])
        assert np.allclose(box.maximum, [2.0, 2.0, 2.0])

    def test_inverted_box_rejected(self):
        from weekend_raytracer.geometry.aabb import BoundingBox

        with pytest.raises(ValueError, match="exceeds maximum"):
            BoundingBox((1.0, 0.0, 0.0), (0.0, 1.0, 1.0))

    def test_zero_volume_box_allowed(self):
        from weekend_raytracer.geometry.aabb import BoundingBox

        box = BoundingBox((0.0, 0.0, 0.0), (0.0, 1.0, 1.0))
        assert box.axis_minimum(0) == 0.0
        assert box.as_tuples() == ((0.0, 0.0, 0.0), (0.0, 1.0, 1.0))

    def test_surrounding_box(self):
        from weekend_raytracer.geometry.aabb import BoundingBox, surrounding_box

        a = BoundingBox((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
        b = BoundingBox((-1.0, 0.5, 0.5), (0.5, 3.0, 0.75))
        box = surrounding_box(a, b)

        assert np.allclose(box.minimum, [-1.0, 0.0, 0.0])
        assert np.allclose(box.maximum, [1.0, 3.0, 1.0])
        assert box.contains(a)
        assert box.contains(b)
        assert not a.contains(box)


def _slab(origin, direction, t_min=0.001, t_max=1e30, lo=(-1.0, -1.0, -1.0), hi=(1.0, 1.0, 1.0)):
    from weekend_raytracer.core.ray import Ray, vec3
    from weekend_raytracer.geometry.aabb import AABB, hit_aabb

    result = ti.field(dtype=ti.i32, shape=())

    @ti.kernel
    def test_kernel(
        ox: ti.f32, oy: ti.f32, oz: ti.f32, dx: ti.f32, dy: ti.f32, dz: ti.f32, a: ti.f32, b: ti.f32
    ):
        box = AABB(minimum=vec3(lo[0], lo[1], lo[2]), maximum=vec3(hi[0], hi[1], hi[2]))
        ray = Ray(origin=vec3(ox, oy, oz), direction=vec3(dx, dy, dz), time=0.0)
        result[None] = hit_aabb(box, ray, a, b)

    test_kernel(*origin, *direction, t_min, t_max)
    return result[None]


class TestHitAABB:
    """Tests for the slab test."""

    def test_hit_head_on(self):
        assert _slab((0.0, 0.0, 5.0), (0.0, 0.0, -1.0)) == 1

    def test_miss_to_the_side(self):
        assert _slab((3.0, 0.0, 5.0), (0.0, 0.0, -1.0)) == 0

    def test_negative_direction_components(self):
        """Test rays traveling toward -x, -y still hit."""
        assert _slab((5.0, 5.0, 0.0), (-1.0, -1.0, 0.0)) == 1

    def test_box_behind_ray(self):
        assert _slab((0.0, 0.0, 5.0), (0.0, 0.0, 1.0)) == 0

    def test_window_ends_before_box(self):
        assert _slab((0.0, 0.0, 5.0), (0.0, 0.0, -1.0), t_max=3.0) == 0

    def test_origin_inside_box(self):
        assert _slab((0.0, 0.0, 0.0), (1.0, 0.0, 0.0)) == 1

    def test_parallel_ray_outside_slab(self):
        """Test a zero direction component outside the slab misses."""
        assert _slab((0.0, 2.0, 5.0), (0.0, 0.0, -1.0)) == 0

    def test_parallel_ray_inside_slab(self):
        """Test a zero direction component inside the slab does not rule out a hit."""
        assert _slab((0.5, 0.5, 5.0), (0.0, 0.0, -1.0)) == 1


class TestSurroundingAABB:
    """Tests for the Taichi-side union."""

    def test_surrounding_aabb(self):
        from weekend_raytracer.core.ray import vec3
        from weekend_raytracer.geometry.aabb import AABB, surrounding_aabb

        lo = ti.field(dtype=ti.math.vec3, shape=())
        hi = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            a = AABB(minimum=vec3(0.0, 0.0, 0.0), maximum=vec3(1.0, 1.0, 1.0))
            b = AABB(minimum=vec3(-2.0, 0.5, 0.0), maximum=vec3(0.0, 2.0, 0.5))
            box = surrounding_aabb(a, b)
            lo[None] = box.minimum
            hi[None] = box.maximum

        test_kernel()
        assert np.allclose(lo[None].to_numpy(), [-2.0, 0.0, 0.0])
        assert np.allclose(hi[None].to_numpy(), [1.0, 2.0, 1.0])
