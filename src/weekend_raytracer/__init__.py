"""Taichi path tracer for scenes of spheres.

This package renders the classic "ray tracing in one weekend" scenes with
Monte Carlo path tracing on the CPU or GPU through Taichi:
- Static and moving spheres (motion blur over a shutter interval)
- A bounding volume hierarchy or a flat list as the scene root
- Lambertian, fuzzy metal and glass materials
- A thin-lens camera with depth of field
- Progressive rendering with accumulation and PNG output

Subpackages:
    core: Ray utilities, the integrator and the progressive renderer
    geometry: Bounding boxes, spheres and BVH construction
    materials: Scattering models
    scene: Scene storage, intersection and ready-made scenes
    camera: Thin-lens camera with ray generation
    preview: Image output utilities

Call ti.init before importing any subpackage: their Taichi fields are
allocated at import time.
"""

__version__ = "0.1.0"
