import jax
import jax.numpy as jnp
import numpy as np
from functools import partial

from .types import Ray, Material, Shading, SHADOW_EPSILON
from .geometry import closest_hit, any_hit
from .camera import image_plane_coords
from .scene import SceneData, default_scene
from .utils import dot, normalize, reflect, length

# Primary rays start at the camera; no lower offset is needed
PRIMARY_T_MIN = 0.0
PRIMARY_T_MAX = jnp.inf

# --- Shading Models ---

def shade_flat(material: Material) -> jnp.ndarray:
    """Flat color: the material's diffuse coefficient, unlit."""
    return material.diffuse

def phong_shade(
    material: Material,
    normal: jnp.ndarray,
    light_dir: jnp.ndarray,
    view_dir: jnp.ndarray,
    light_color: jnp.ndarray,
    in_shadow,
) -> jnp.ndarray:
    """Phong reflectance for one light.

    Args:
        normal: Unit surface normal n.
        light_dir: Unit vector from the point towards the light, l.
        view_dir: Unit vector from the point towards the viewer, v.
        in_shadow: If True only the ambient term remains.
    Returns:
        Linear RGB, shape (3,).
    """
    ambient = material.ambient * light_color

    n_dot_l = dot(normal, light_dir)
    diffuse = material.diffuse * light_color * jnp.maximum(0.0, n_dot_l)

    # Mirror of l about n: 2 (n.l) n - l
    mirrored = reflect(-light_dir, normal)
    r_dot_v = jnp.maximum(0.0, dot(mirrored, view_dir))
    specular = material.specular * light_color * jnp.power(r_dot_v, material.shininess)

    return jnp.where(in_shadow, ambient, ambient + diffuse + specular)

# --- Ray Tracing ---

def trace_shadow(scene: SceneData, point: jnp.ndarray) -> jnp.ndarray:
    """True if any surface blocks the segment from `point` to the first light."""
    to_light = scene.lights.position[0] - point
    shadow_ray = Ray.create(point, to_light)
    return any_hit(scene.surfaces, shadow_ray, SHADOW_EPSILON, length(to_light))

def trace_ray(
    scene: SceneData,
    ray: Ray,
    shading: Shading = Shading.PHONG,
    t_min=PRIMARY_T_MIN,
    t_max=PRIMARY_T_MAX,
) -> jnp.ndarray:
    """Color seen along `ray`: the shaded nearest hit, or the background."""
    if len(scene.surfaces) == 0:
        return scene.background

    hit = closest_hit(scene.surfaces, ray, t_min, t_max)
    material = jax.tree.map(
        lambda x: x[jnp.maximum(hit.surface_index, 0)], scene.surfaces.material
    )

    if shading == Shading.FLAT:
        color = shade_flat(material)
    else:
        if scene.num_lights == 0:
            raise ValueError("Phong shading needs at least one light in the scene")
        # Only the first light is evaluated
        light_position = scene.lights.position[0]
        light_color = scene.lights.color[0]
        in_shadow = trace_shadow(scene, hit.position)
        color = phong_shade(
            material,
            hit.normal,
            normalize(light_position - hit.position),
            -normalize(ray.direction),
            light_color,
            in_shadow,
        )

    return jnp.where(hit.hit, color, scene.background)

def render_pixel(scene: SceneData, x, y, shading: Shading = Shading.PHONG) -> jnp.ndarray:
    """Render the pixel whose center lies at image-plane point (x, y)."""
    ray = scene.camera.get_ray(x, y)
    return trace_ray(scene, ray, shading)

# --- Image Rendering ---

def _check_resolution(width, height):
    for name, value in (("width", width), ("height", height)):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise ValueError(f"{name} must be an integer, got {value!r}")
        if value <= 0:
            raise ValueError(f"{name} must be > 0, got {value}")

_render_rows_static_argnames = ('width', 'height', 'row_start', 'row_stop', 'shading')

@partial(jax.jit, static_argnames=_render_rows_static_argnames)
def render_rows(
    scene: SceneData,
    width: int,
    height: int,
    row_start: int,
    row_stop: int,
    shading: Shading = Shading.PHONG,
) -> jnp.ndarray:
    """Render rows [row_start, row_stop) into a flat (rows * width * 3,) buffer.

    Bands are independent; concatenating consecutive bands gives the same
    buffer as rendering the whole image at once.
    """
    _check_resolution(width, height)
    if not 0 <= row_start <= row_stop <= height:
        raise ValueError(f"Invalid row band [{row_start}, {row_stop}) for height {height}")
    shading = Shading(shading)

    x, y = image_plane_coords(width, height)
    x = x[row_start:row_stop].reshape(-1)
    y = y[row_start:row_stop].reshape(-1)

    colors = jax.vmap(lambda px, py: render_pixel(scene, px, py, shading))(x, y)
    return colors.reshape(-1)

def render_image(scene: SceneData, width: int, height: int, shading: Shading = Shading.PHONG) -> jnp.ndarray:
    """Render the whole image into a flat row-major (height * width * 3,) buffer."""
    return render_rows(scene, width, height, 0, height, Shading(shading))

def render(width: int, height: int, shading: Shading = Shading.PHONG, scene: SceneData = None) -> np.ndarray:
    """Render a full frame and return it as a new, owned float32 buffer.

    The scene defaults to the fixed scene for `shading`, built fresh for this
    pass. Nothing is kept between calls, so a resolution change is simply a
    new call with the new size.
    """
    _check_resolution(width, height)
    shading = Shading(shading)
    if scene is None:
        scene = default_scene(shading)
    buffer = render_image(scene, width, height, shading)
    return np.array(buffer, dtype=np.float32)
