"""Tests for the metal material.

Tests cover:
- Mirror reflection of the normalized incident direction
- Fuzz perturbation radius
- Absorption when the scattered ray points into the surface
- Registry storage and validation
"""

import math

import numpy as np
import pytest
import taichi as ti


def _scatter(albedo, fuzz, incident, normal):
    from weekend_raytracer.core.ray import vec3
    from weekend_raytracer.materials.metal import scatter_metal

    direction = ti.field(dtype=ti.math.vec3, shape=())
    attenuation = ti.field(dtype=ti.math.vec3, shape=())
    scattered = ti.field(dtype=ti.i32, shape=())

    @ti.kernel
    def test_kernel(f: ti.f32):
        d, a, s = scatter_metal(
            vec3(albedo[0], albedo[1], albedo[2]),
            f,
            vec3(incident[0], incident[1], incident[2]),
            vec3(normal[0], normal[1], normal[2]),
        )
        direction[None] = d
        attenuation[None] = a
        scattered[None] = s

    test_kernel(fuzz)
    return direction[None].to_numpy(), attenuation[None].to_numpy(), scattered[None]


class TestScatterMetal:
    def test_perfect_mirror(self):
        d, a, s = _scatter((0.8, 0.6, 0.2), 0.0, (3.0, -3.0, 0.0), (0.0, 1.0, 0.0))

        h = 1.0 / math.sqrt(2.0)
        assert s == 1
        # Reflection of the unit incident direction
        assert np.allclose(d, [h, h, 0.0], atol=1e-6)
        assert np.allclose(a, [0.8, 0.6, 0.2])

    def test_reflection_into_surface_absorbed(self):
        """Test a ray arriving from below the surface does not scatter."""
        _d, _a, s = _scatter((0.8, 0.8, 0.8), 0.0, (0.0, 1.0, 0.0), (0.0, 1.0, 0.0))
        assert s == 0

    def test_fuzz_bounds_perturbation(self):
        from weekend_raytracer.core.ray import vec3
        from weekend_raytracer.materials.metal import scatter_metal

        n = 1000
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                d, _a, _s = scatter_metal(
                    vec3(1.0, 1.0, 1.0), 0.3, vec3(0.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0)
                )
                directions[i] = d

        test_kernel()
        offsets = directions.to_numpy() - np.array([0.0, 1.0, 0.0])
        distances = np.linalg.norm(offsets, axis=1)
        assert (distances < 0.3 + 1e-5).all()
        assert distances.max() > 0.1


class TestMetalRegistry:
    def test_add_and_scatter_by_id(self):
        from weekend_raytracer.core.ray import vec3
        from weekend_raytracer.materials.metal import (
            add_metal_material,
            get_metal_fuzz,
            get_metal_material_count,
            scatter_metal_by_id,
        )

        idx = add_metal_material((0.7, 0.6, 0.5), 0.0)
        assert idx == 0
        assert get_metal_material_count() == 1

        attenuation = ti.field(dtype=ti.math.vec3, shape=())
        fuzz = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            _d, a, _s = scatter_metal_by_id(0, vec3(0.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0))
            attenuation[None] = a
            fuzz[None] = get_metal_fuzz(0)

        test_kernel()
        assert np.allclose(attenuation[None].to_numpy(), [0.7, 0.6, 0.5])
        assert fuzz[None] == 0.0

    @pytest.mark.parametrize("fuzz", [-0.1, 1.5])
    def test_fuzz_out_of_range(self, fuzz):
        from weekend_raytracer.materials.metal import add_metal_material

        with pytest.raises(ValueError, match="Fuzz"):
            add_metal_material((0.5, 0.5, 0.5), fuzz)

    def test_albedo_out_of_range(self):
        from weekend_raytracer.materials.metal import add_metal_material

        with pytest.raises(ValueError, match="outside"):
            add_metal_material((1.2, 0.5, 0.5))
