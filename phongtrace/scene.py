import jax.numpy as jnp
from flax import struct
from typing import Sequence

from .camera import Camera
from .geometry import Plane, Sphere, Surface, SurfaceArray, stack_surfaces
from .types import BACKGROUND_COLOR, Material, PointLight, Shading

# The scene is the static data every kernel reads; it is rebuilt for each
# render pass and never mutated while tracing.

@struct.dataclass
class SceneData:
    surfaces: SurfaceArray
    camera: Camera
    lights: PointLight          # Stacked, shape (num_lights, 3); only lights[0] is shaded
    background: jnp.ndarray     # Shape (3,)

    @property
    def num_lights(self) -> int:
        return self.lights.position.shape[0]

def build_scene(
    surfaces: Sequence[Surface],
    camera: Camera,
    lights: Sequence[PointLight] = (),
    background=BACKGROUND_COLOR,
) -> SceneData:
    """Stack surfaces and lights into a SceneData, preserving surface order."""
    if lights:
        stacked_lights = PointLight(
            position=jnp.stack([jnp.asarray(l.position, dtype=jnp.float32) for l in lights]),
            color=jnp.stack([jnp.asarray(l.color, dtype=jnp.float32) for l in lights]),
        )
    else:
        stacked_lights = PointLight(
            position=jnp.zeros((0, 3), dtype=jnp.float32),
            color=jnp.zeros((0, 3), dtype=jnp.float32),
        )
    return SceneData(
        surfaces=stack_surfaces(surfaces),
        camera=camera,
        lights=stacked_lights,
        background=jnp.asarray(background, dtype=jnp.float32),
    )

# --- Fixed Scene ---

def _phong_materials():
    return {
        "plane": Material.create(ambient=0.2, diffuse=1.0, specular=0.0, shininess=0.0),
        "red": Material.create(ambient=(0.2, 0.0, 0.0), diffuse=(1.0, 0.0, 0.0), specular=0.0, shininess=0.0),
        "green": Material.create(ambient=(0.0, 0.2, 0.0), diffuse=(0.0, 0.5, 0.0), specular=0.5, shininess=32.0),
        "blue": Material.create(ambient=(0.0, 0.0, 0.2), diffuse=(0.0, 0.0, 1.0), specular=0.0, shininess=0.0),
    }

def default_scene(shading: Shading = Shading.PHONG) -> SceneData:
    """Three spheres in a row above a ground plane at y = -2, camera at the origin looking down -z."""
    if shading == Shading.PHONG:
        materials = _phong_materials()
    else:
        white = Material.flat((1.0, 1.0, 1.0))
        materials = {"plane": white, "red": white, "green": white, "blue": white}

    surfaces = [
        Sphere.create(center=(-4.0, 0.0, -7.0), radius=1.0, material=materials["red"]),
        Sphere.create(center=(0.0, 0.0, -7.0), radius=2.0, material=materials["green"]),
        Sphere.create(center=(4.0, 0.0, -7.0), radius=1.0, material=materials["blue"]),
        Plane.create(normal=(0.0, 1.0, 0.0), offset=-2.0, material=materials["plane"]),
    ]
    camera = Camera.create(position=(0.0, 0.0, 0.0), direction=(0.0, 0.0, -1.0), focal_length=0.1)
    lights = [PointLight.create(position=(-4.0, 4.0, -3.0), color=(1.0, 1.0, 1.0))]
    return build_scene(surfaces, camera, lights)
