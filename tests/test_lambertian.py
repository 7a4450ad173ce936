"""Tests for the Lambertian material.

Tests cover:
- Scattered directions land in the unit sphere tangent at the hit point
- Attenuation equals the albedo and the ray always scatters
- Registry storage and albedo validation
"""

import numpy as np
import pytest
import taichi as ti


class TestScatterLambertian:
    def test_direction_within_tangent_sphere(self):
        from weekend_raytracer.core.ray import vec3
        from weekend_raytracer.materials.lambertian import scatter_lambertian

        n = 2000
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)
        attenuations = ti.Vector.field(3, dtype=ti.f32, shape=n)
        scattered = ti.field(dtype=ti.i32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                d, a, s = scatter_lambertian(vec3(0.2, 0.4, 0.6), vec3(0.0, 1.0, 0.0))
                directions[i] = d
                attenuations[i] = a
                scattered[i] = s

        test_kernel()
        d = directions.to_numpy()
        offsets = d - np.array([0.0, 1.0, 0.0])
        assert (np.sum(offsets**2, axis=1) < 1.0).all()
        # Never below the surface
        assert (d[:, 1] >= 0.0).all()
        assert np.allclose(attenuations.to_numpy(), [0.2, 0.4, 0.6])
        assert (scattered.to_numpy() == 1).all()

    def test_directions_not_normalized(self):
        from weekend_raytracer.core.ray import vec3
        from weekend_raytracer.materials.lambertian import scatter_lambertian

        n = 500
        lengths = ti.field(dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                d, _a, _s = scatter_lambertian(vec3(1.0, 1.0, 1.0), vec3(0.0, 0.0, 1.0))
                lengths[i] = d.norm()

        test_kernel()
        values = lengths.to_numpy()
        assert values.min() < 0.9
        assert values.max() > 1.1


class TestLambertianRegistry:
    def test_add_and_read_back(self):
        from weekend_raytracer.materials.lambertian import (
            add_lambertian_material,
            get_lambertian_albedo,
            get_lambertian_material_count,
        )

        first = add_lambertian_material((0.1, 0.2, 0.3))
        second = add_lambertian_material((1.0, 1.0, 1.0))
        assert (first, second) == (0, 1)
        assert get_lambertian_material_count() == 2

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = get_lambertian_albedo(0)

        test_kernel()
        assert np.allclose(result[None].to_numpy(), [0.1, 0.2, 0.3])

    def test_scatter_by_id_uses_stored_albedo(self):
        from weekend_raytracer.core.ray import vec3
        from weekend_raytracer.materials.lambertian import (
            add_lambertian_material,
            scatter_lambertian_by_id,
        )

        add_lambertian_material((0.5, 0.5, 0.5))
        idx = add_lambertian_material((0.9, 0.1, 0.0))
        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel(i: ti.i32):
            _d, a, _s = scatter_lambertian_by_id(i, vec3(0.0, 1.0, 0.0))
            result[None] = a

        test_kernel(idx)
        assert np.allclose(result[None].to_numpy(), [0.9, 0.1, 0.0])

    def test_clear(self):
        from weekend_raytracer.materials.lambertian import (
            add_lambertian_material,
            clear_lambertian_materials,
            get_lambertian_material_count,
        )

        add_lambertian_material((0.5, 0.5, 0.5))
        clear_lambertian_materials()
        assert get_lambertian_material_count() == 0

    @pytest.mark.parametrize("albedo", [(1.1, 0.5, 0.5), (0.5, -0.1, 0.5)])
    def test_albedo_out_of_range(self, albedo):
        from weekend_raytracer.materials.lambertian import add_lambertian_material

        with pytest.raises(ValueError, match="outside"):
            add_lambertian_material(albedo)

    def test_albedo_wrong_length(self):
        from weekend_raytracer.materials.lambertian import validate_albedo

        with pytest.raises(ValueError, match="3 components"):
            validate_albedo((0.5, 0.5))
