"""Primary-ray tracer with Phong shading and hard shadows for a small analytic scene, in JAX."""

from .camera import Camera
from .geometry import Plane, Sphere
from .integrator import render, render_image, render_rows
from .scene import SceneData, build_scene, default_scene
from .types import Material, PointLight, Ray, Shading

__all__ = [
    "Camera",
    "Material",
    "Plane",
    "PointLight",
    "Ray",
    "SceneData",
    "Shading",
    "Sphere",
    "build_scene",
    "default_scene",
    "render",
    "render_image",
    "render_rows",
]
