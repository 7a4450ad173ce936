"""Unit tests for the ray module.

Tests cover:
- Ray dataclass, ray_at and the shutter time
- Vector utility functions (dot, cross, normalize, length, reflect, refract)
- Schlick's reflectance approximation
- Random sampling functions for Monte Carlo
"""

import pytest
import taichi as ti


class TestRayBasics:
    """Tests for Ray dataclass and basic operations."""

    def test_ray_at_origin(self):
        """Test ray_at returns origin when t=0."""
        from weekend_raytracer.core.ray import Ray, ray_at, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            ray = Ray(origin=vec3(1.0, 2.0, 3.0), direction=vec3(0.0, 0.0, -1.0), time=0.0)
            result[None] = ray_at(ray, 0.0)

        test_kernel()
        r = result[None]
        assert abs(r[0] - 1.0) < 1e-6
        assert abs(r[1] - 2.0) < 1e-6
        assert abs(r[2] - 3.0) < 1e-6

    def test_ray_at_scales_unnormalized_direction(self):
        """Test ray_at uses the direction as given, without normalizing it."""
        from weekend_raytracer.core.ray import Ray, ray_at, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            ray = Ray(origin=vec3(0.0, 0.0, 0.0), direction=vec3(2.0, 0.0, 0.0), time=0.0)
            result[None] = ray_at(ray, 1.5)

        test_kernel()
        r = result[None]
        assert abs(r[0] - 3.0) < 1e-6
        assert abs(r[1]) < 1e-6
        assert abs(r[2]) < 1e-6

    def test_make_ray_keeps_time(self):
        """Test make_ray stores origin, direction and time."""
        from weekend_raytracer.core.ray import make_ray, vec3

        time_result = ti.field(dtype=ti.f32, shape=())
        dir_result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            ray = make_ray(vec3(0.0, 0.0, 0.0), vec3(0.0, 1.0, 0.0), 0.75)
            time_result[None] = ray.time
            dir_result[None] = ray.direction

        test_kernel()
        assert abs(time_result[None] - 0.75) < 1e-6
        assert abs(dir_result[None][1] - 1.0) < 1e-6


class TestVectorUtilities:
    """Tests for vector helpers."""

    def test_length_and_normalize(self):
        from weekend_raytracer.core.ray import length, length_squared, normalize, vec3

        lengths = ti.field(dtype=ti.f32, shape=2)
        unit = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            v = vec3(3.0, 4.0, 0.0)
            lengths[0] = length(v)
            lengths[1] = length_squared(v)
            unit[None] = normalize(v)

        test_kernel()
        assert abs(lengths[0] - 5.0) < 1e-6
        assert abs(lengths[1] - 25.0) < 1e-5
        u = unit[None]
        assert abs(u[0] - 0.6) < 1e-6
        assert abs(u[1] - 0.8) < 1e-6

    def test_dot_and_cross(self):
        from weekend_raytracer.core.ray import cross, dot, vec3

        dot_result = ti.field(dtype=ti.f32, shape=())
        cross_result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            x = vec3(1.0, 0.0, 0.0)
            y = vec3(0.0, 1.0, 0.0)
            dot_result[None] = dot(x, y)
            cross_result[None] = cross(x, y)

        test_kernel()
        assert abs(dot_result[None]) < 1e-6
        c = cross_result[None]
        assert abs(c[0]) < 1e-6
        assert abs(c[1]) < 1e-6
        assert abs(c[2] - 1.0) < 1e-6

    def test_reflect(self):
        """Test v - 2 dot(v, n) n for a 45 degree incidence."""
        from weekend_raytracer.core.ray import reflect, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = reflect(vec3(1.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0))

        test_kernel()
        r = result[None]
        assert abs(r[0] - 1.0) < 1e-6
        assert abs(r[1] - 1.0) < 1e-6
        assert abs(r[2]) < 1e-6


class TestRefract:
    """Tests for Snell's law refraction."""

    def test_refract_straight_through(self):
        """Test normal incidence with matched indices passes straight through."""
        from weekend_raytracer.core.ray import refract, vec3

        did = ti.field(dtype=ti.i32, shape=())
        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            ok, refracted = refract(vec3(0.0, -2.0, 0.0), vec3(0.0, 1.0, 0.0), 1.0)
            did[None] = ok
            result[None] = refracted

        test_kernel()
        assert did[None] == 1
        r = result[None]
        assert abs(r[0]) < 1e-6
        assert abs(r[1] + 1.0) < 1e-6
        assert abs(r[2]) < 1e-6

    def test_refract_bends_toward_normal(self):
        """Test entering a denser medium bends the ray toward the normal."""
        from weekend_raytracer.core.ray import refract, vec3

        did = ti.field(dtype=ti.i32, shape=())
        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            ok, refracted = refract(vec3(1.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0), 1.0 / 1.5)
            did[None] = ok
            result[None] = refracted

        test_kernel()
        assert did[None] == 1
        r = result[None]
        # sin of the refracted angle is sin(45 deg) / 1.5
        assert abs(r[0] - (2.0**-0.5) / 1.5) < 1e-5
        assert r[1] < 0.0
        assert abs(r[0] ** 2 + r[1] ** 2 - 1.0) < 1e-5

    def test_refract_total_internal_reflection(self):
        """Test a grazing ray leaving glass has no refracted direction."""
        from weekend_raytracer.core.ray import refract, vec3

        did = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            ok, _refracted = refract(vec3(1.0, -0.1, 0.0), vec3(0.0, 1.0, 0.0), 1.5)
            did[None] = ok

        test_kernel()
        assert did[None] == 0


class TestSchlick:
    """Tests for Schlick's approximation."""

    @pytest.mark.parametrize(
        "cosine,ref_idx,expected",
        [
            (1.0, 1.5, 0.04),
            (0.0, 1.5, 1.0),
            (1.0, 1.0, 0.0),
        ],
    )
    def test_schlick_values(self, cosine, ref_idx, expected):
        from weekend_raytracer.core.ray import schlick

        result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(c: ti.f32, r: ti.f32):
            result[None] = schlick(c, r)

        test_kernel(cosine, ref_idx)
        assert abs(result[None] - expected) < 1e-5


class TestRandomSampling:
    """Tests for random point generators."""

    def test_random_in_unit_sphere_inside(self):
        from weekend_raytracer.core.ray import length_squared, random_in_unit_sphere

        n = 1000
        lengths = ti.field(dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                lengths[i] = length_squared(random_in_unit_sphere())

        test_kernel()
        values = lengths.to_numpy()
        assert (values < 1.0).all()
        # Points are spread through the ball, not concentrated at the center
        assert values.mean() > 0.3

    def test_random_in_unit_disk_flat(self):
        from weekend_raytracer.core.ray import random_in_unit_disk

        n = 1000
        points = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                points[i] = random_in_unit_disk()

        test_kernel()
        p = points.to_numpy()
        assert (p[:, 2] == 0.0).all()
        assert ((p[:, 0] ** 2 + p[:, 1] ** 2) < 1.0).all()
        assert abs(p[:, 0].mean()) < 0.1
        assert abs(p[:, 1].mean()) < 0.1
