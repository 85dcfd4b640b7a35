import jax.numpy as jnp
import numpy as np
import pytest

from phongtrace.camera import Camera
from phongtrace.geometry import Sphere, Plane
from phongtrace.integrator import (
    phong_shade, shade_flat, trace_shadow, trace_ray, render, render_image, render_rows,
)
from phongtrace.scene import build_scene, default_scene
from phongtrace.types import Material, PointLight, Ray, Shading
from phongtrace.utils import normalize

UP = jnp.array([0.0, 1.0, 0.0])

@pytest.fixture
def phong_material():
    return Material.create(ambient=(0.1, 0.2, 0.3), diffuse=(0.5, 0.4, 0.3), specular=0.0, shininess=0.0)

# --- Tests for the shading models ---

def test_phong_facing_light_zero_specular(phong_material):
    """With n.l = 1 and ks = 0 the color is ambient*Lc + diffuse*Lc."""
    light_color = jnp.array([1.0, 0.5, 2.0])
    color = phong_shade(phong_material, UP, UP, UP, light_color, False)
    expected = phong_material.ambient * light_color + phong_material.diffuse * light_color
    assert jnp.allclose(color, expected, atol=1e-6)

def test_phong_in_shadow_is_ambient_only(phong_material):
    light_color = jnp.array([1.0, 1.0, 1.0])
    color = phong_shade(phong_material, UP, UP, UP, light_color, True)
    assert jnp.allclose(color, phong_material.ambient, atol=1e-6)

def test_phong_back_facing_clamped():
    """A light behind the surface adds neither diffuse nor specular."""
    material = Material.create(ambient=0.1, diffuse=0.7, specular=0.5, shininess=8.0)
    color = phong_shade(material, UP, -UP, UP, jnp.ones(3), False)
    assert jnp.allclose(color, jnp.full(3, 0.1), atol=1e-6)

def test_phong_specular_peak():
    """Light, view and normal aligned: the mirror direction hits the viewer."""
    material = Material.create(ambient=0.0, diffuse=0.0, specular=0.5, shininess=32.0)
    color = phong_shade(material, UP, UP, UP, jnp.ones(3), False)
    assert jnp.allclose(color, jnp.full(3, 0.5), atol=1e-6)

def test_phong_oblique_light():
    material = Material.create(ambient=0.0, diffuse=1.0, specular=0.0, shininess=0.0)
    light_dir = normalize(jnp.array([1.0, 1.0, 0.0]))
    color = phong_shade(material, UP, light_dir, UP, jnp.ones(3), False)
    assert jnp.allclose(color, jnp.full(3, jnp.sqrt(0.5)), atol=1e-6)

def test_shade_flat_returns_color():
    assert jnp.allclose(shade_flat(Material.flat((0.3, 0.6, 0.9))), jnp.array([0.3, 0.6, 0.9]))

# --- Tests for shadow rays ---

def _light_above_scene(surfaces):
    camera = Camera.create()
    light = PointLight.create(position=(0.0, 5.0, 0.0))
    return build_scene(surfaces, camera, [light])

def test_trace_shadow_blocked():
    blocker = Sphere.create(center=(0.0, 2.0, 0.0), radius=1.0, material=Material.flat(1.0))
    scene = _light_above_scene([blocker])
    assert bool(trace_shadow(scene, jnp.zeros(3)))

def test_trace_shadow_clear_paths():
    beyond = Sphere.create(center=(0.0, 10.0, 0.0), radius=1.0, material=Material.flat(1.0))
    assert not bool(trace_shadow(_light_above_scene([beyond]), jnp.zeros(3)))
    assert not bool(trace_shadow(_light_above_scene([]), jnp.zeros(3)))

def test_trace_shadow_point_on_plane_not_self_shadowed():
    floor = Plane.create(normal=(0.0, 1.0, 0.0), offset=-2.0, material=Material.flat(1.0))
    scene = _light_above_scene([floor])
    assert not bool(trace_shadow(scene, jnp.array([1.0, -2.0, 0.5])))

# --- Tests for trace_ray ---

def test_trace_ray_flat_hit_and_miss():
    sphere = Sphere.create(center=(0.0, 0.0, -5.0), radius=1.0, material=Material.flat((0.2, 0.4, 0.6)))
    scene = build_scene([sphere], Camera.create())
    hit_color = trace_ray(scene, Ray.create(jnp.zeros(3), jnp.array([0.0, 0.0, -1.0])), Shading.FLAT)
    miss_color = trace_ray(scene, Ray.create(jnp.zeros(3), jnp.array([0.0, 0.0, 1.0])), Shading.FLAT)
    assert jnp.allclose(hit_color, jnp.array([0.2, 0.4, 0.6]))
    assert jnp.allclose(miss_color, jnp.zeros(3))

def test_trace_ray_shadowed_point_gets_ambient():
    """The floor under a sphere, with the light straight above, is ambient only."""
    floor_material = Material.create(ambient=0.2, diffuse=1.0, specular=0.0)
    floor = Plane.create(normal=(0.0, 1.0, 0.0), offset=-2.0, material=floor_material)
    blocker = Sphere.create(center=(0.0, 1.0, -5.0), radius=1.0, material=Material.create(0.0, 1.0, 0.0))
    light = PointLight.create(position=(0.0, 5.0, -5.0))
    scene = build_scene([floor, blocker], Camera.create(), [light])
    # From above the sphere's side, looking at the floor point (0, -2, -5) under it
    origin = jnp.array([3.0, 0.0, -5.0])
    ray = Ray.create(origin, jnp.array([0.0, -2.0, -5.0]) - origin)
    color = trace_ray(scene, ray, Shading.PHONG)
    assert jnp.allclose(color, jnp.full(3, 0.2), atol=1e-5)

def test_trace_ray_phong_requires_light():
    sphere = Sphere.create(center=(0.0, 0.0, -5.0), radius=1.0, material=Material.flat(1.0))
    scene = build_scene([sphere], Camera.create())
    with pytest.raises(ValueError):
        trace_ray(scene, Ray.create(jnp.zeros(3), jnp.array([0.0, 0.0, -1.0])), Shading.PHONG)

# --- End-to-end rendering ---

def test_plane_only_all_pixels_hit():
    """Every primary ray of a downward-facing camera hits the ground plane."""
    color = (0.3, 0.6, 0.9)
    floor = Plane.create(normal=(0.0, 1.0, 0.0), offset=-2.0, material=Material.flat(color))
    camera = Camera.create(position=(0.0, 0.0, 0.0), direction=(0.0, -1.0, 0.0), focal_length=0.1)
    scene = build_scene([floor], camera)
    buffer = render(2, 2, Shading.FLAT, scene=scene)
    assert buffer.shape == (2 * 2 * 3,)
    assert np.allclose(buffer.reshape(4, 3), np.array(color, dtype=np.float32), atol=1e-6)

def test_plane_only_forward_camera_lower_half():
    """Facing -z, only the lower row of rays points down towards the plane."""
    color = (0.3, 0.6, 0.9)
    floor = Plane.create(normal=(0.0, 1.0, 0.0), offset=-2.0, material=Material.flat(color))
    scene = build_scene([floor], Camera.create())
    buffer = render(2, 2, Shading.FLAT, scene=scene).reshape(2, 2, 3)
    assert np.allclose(buffer[0], np.array(color, dtype=np.float32), atol=1e-6)
    assert np.allclose(buffer[1], 0.0)

def test_default_flat_scene_bottom_plane_top_sky():
    buffer = render(4, 4, "flat").reshape(4, 4, 3)
    assert np.allclose(buffer[0], 1.0) # bottom row sees the plane
    assert np.allclose(buffer[3], 0.0) # top row sees nothing

def test_default_phong_scene_center_pixel():
    """The center ray hits the green sphere at (0, 0, -5), lit and unshadowed."""
    width = height = 9
    buffer = render(width, height, Shading.PHONG)
    center = buffer[(4 * width + 4) * 3:(4 * width + 4) * 3 + 3]
    # ka + kd * n.l with n.l = 1/3; specular (1/3)^32 is negligible
    expected = np.array([0.0, 0.2 + 0.5 / 3.0, 0.0], dtype=np.float32)
    assert np.allclose(center, expected, atol=1e-4)

def test_render_resize_has_no_residual_data():
    first = render(512, 512)
    assert first.shape == (512 * 512 * 3,)
    second = render(256, 256)
    assert second.shape == (256 * 256 * 3,)
    assert np.array_equal(second, render(256, 256))

def test_render_returns_owned_buffer():
    first = render(4, 4, Shading.FLAT)
    first[:] = -1.0
    assert np.all(render(4, 4, Shading.FLAT) >= 0.0)

def test_render_rows_concatenate_to_image():
    scene = default_scene(Shading.PHONG)
    width, height = 8, 6
    full = render_image(scene, width, height, Shading.PHONG)
    bands = [render_rows(scene, width, height, start, stop, Shading.PHONG)
             for start, stop in [(0, 2), (2, 5), (5, 6)]]
    assert jnp.allclose(jnp.concatenate(bands), full, atol=1e-6)

@pytest.mark.parametrize("width, height", [(0, 4), (4, 0), (-2, 3), (2.5, 2), (True, 2)])
def test_render_rejects_bad_resolution(width, height):
    with pytest.raises(ValueError):
        render(width, height)

def test_render_rows_rejects_bad_band():
    scene = default_scene(Shading.FLAT)
    with pytest.raises(ValueError):
        render_rows(scene, 4, 4, 3, 5, Shading.FLAT)
