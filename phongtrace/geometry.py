import jax
import jax.numpy as jnp
from jax import lax
from flax import struct
from typing import Sequence, Tuple, Union

from .types import Ray, HitRecord, Material, SPHERE, PLANE, PARALLEL_EPSILON, MIN_LENGTH
from .utils import normalize, dot

# --- Surface Definitions ---
# Sphere and Plane are the user-facing shapes; the kernels only ever see them
# stacked into a SurfaceArray.

@struct.dataclass
class Sphere:
    center: jnp.ndarray  # Shape (3,)
    radius: jnp.ndarray  # Scalar
    material: Material

    @classmethod
    def create(cls, center, radius, material: Material) -> "Sphere":
        if not float(radius) > 0.0:
            raise ValueError(f"Sphere radius must be > 0, got {radius}")
        return cls(
            center=jnp.asarray(center, dtype=jnp.float32),
            radius=jnp.asarray(radius, dtype=jnp.float32),
            material=material,
        )

@struct.dataclass
class Plane:
    normal: jnp.ndarray  # Shape (3,), unit length
    offset: jnp.ndarray  # Scalar d in dot(normal, p) = d
    material: Material

    @classmethod
    def create(cls, normal, offset, material: Material) -> "Plane":
        normal = jnp.asarray(normal, dtype=jnp.float32)
        norm = float(jnp.linalg.norm(normal))
        if norm <= MIN_LENGTH:
            raise ValueError(f"Plane normal must be non-zero, got {normal}")
        return cls(
            normal=normal / norm,
            offset=jnp.asarray(offset, dtype=jnp.float32),
            material=material,
        )

Surface = Union[Sphere, Plane]

@struct.dataclass
class SurfaceArray:
    """All scene surfaces, in list order, as a tagged struct of arrays."""
    kind: jnp.ndarray     # Shape (num_surfaces,), SPHERE or PLANE
    center: jnp.ndarray   # Shape (num_surfaces, 3), spheres only
    radius: jnp.ndarray   # Shape (num_surfaces,), spheres only
    normal: jnp.ndarray   # Shape (num_surfaces, 3), planes only
    offset: jnp.ndarray   # Shape (num_surfaces,), planes only
    material: Material    # Leaves stacked along axis 0

    def __len__(self):
        return self.kind.shape[0]

def stack_surfaces(surfaces: Sequence[Surface]) -> SurfaceArray:
    """Stack spheres and planes into a SurfaceArray, keeping their order."""
    kinds, centers, radii, normals, offsets, materials = [], [], [], [], [], []
    zero3 = jnp.zeros(3, dtype=jnp.float32)
    for surface in surfaces:
        if isinstance(surface, Sphere):
            if not float(surface.radius) > 0.0:
                raise ValueError(f"Sphere radius must be > 0, got {surface.radius}")
            kinds.append(SPHERE)
            centers.append(jnp.asarray(surface.center, dtype=jnp.float32))
            radii.append(surface.radius)
            normals.append(zero3)
            offsets.append(0.0)
        elif isinstance(surface, Plane):
            kinds.append(PLANE)
            centers.append(zero3)
            radii.append(0.0)
            normals.append(normalize(jnp.asarray(surface.normal, dtype=jnp.float32)))
            offsets.append(surface.offset)
        else:
            raise TypeError(f"Unsupported surface type: {type(surface).__name__}")
        materials.append(surface.material)

    if not kinds:
        return SurfaceArray(
            kind=jnp.zeros((0,), dtype=jnp.int32),
            center=jnp.zeros((0, 3), dtype=jnp.float32),
            radius=jnp.zeros((0,), dtype=jnp.float32),
            normal=jnp.zeros((0, 3), dtype=jnp.float32),
            offset=jnp.zeros((0,), dtype=jnp.float32),
            material=Material(
                ambient=jnp.zeros((0, 3), dtype=jnp.float32),
                diffuse=jnp.zeros((0, 3), dtype=jnp.float32),
                specular=jnp.zeros((0, 3), dtype=jnp.float32),
                shininess=jnp.zeros((0,), dtype=jnp.float32),
            ),
        )

    return SurfaceArray(
        kind=jnp.array(kinds, dtype=jnp.int32),
        center=jnp.stack(centers),
        radius=jnp.asarray(radii, dtype=jnp.float32),
        normal=jnp.stack(normals),
        offset=jnp.asarray(offsets, dtype=jnp.float32),
        material=jax.tree.map(
            lambda *leaves: jnp.stack([jnp.asarray(x, dtype=jnp.float32) for x in leaves]),
            *materials
        ),
    )

# --- Primitive Intersection ---

@jax.jit
def intersect_sphere(center, radius, ray: Ray, t_min, t_max) -> Tuple[jnp.ndarray, jnp.ndarray]:
    """Near-root ray-sphere intersection. Returns (t, hit), t is inf on a miss.

    Uses the half-b form with the full discriminant b*b - a*c. Only the near
    root is tested, so a ray starting inside the sphere does not hit it.
    Bounds are strict: t_min < t < t_max.
    """
    oc = ray.origin - center
    a = dot(ray.direction, ray.direction)
    b = dot(oc, ray.direction)
    c = dot(oc, oc) - radius * radius
    discriminant = b * b - a * c

    sqrt_discriminant = jnp.sqrt(jnp.maximum(0.0, discriminant)) # Avoid NaN
    t = (-b - sqrt_discriminant) / a

    hit = (discriminant > 0) & (t > t_min) & (t < t_max)
    return jnp.where(hit, t, jnp.inf), hit

@jax.jit
def intersect_plane(normal, offset, ray: Ray, t_min, t_max) -> Tuple[jnp.ndarray, jnp.ndarray]:
    """Ray-plane intersection for dot(normal, p) = offset. Returns (t, hit).

    Near-parallel rays (|dot(normal, d)| <= 1e-6) miss. Bounds are
    inclusive: t_min <= t <= t_max.
    """
    denom = dot(normal, ray.direction)
    parallel = jnp.abs(denom) <= PARALLEL_EPSILON

    safe_denom = jnp.where(parallel, 1.0, denom)
    t = (offset - dot(normal, ray.origin)) / safe_denom

    hit = (~parallel) & (t >= t_min) & (t <= t_max)
    return jnp.where(hit, t, jnp.inf), hit

# Branches indexed by the SPHERE / PLANE tags
_INTERSECT_BRANCHES = (
    lambda s, ray, t_min, t_max: intersect_sphere(s.center, s.radius, ray, t_min, t_max),
    lambda s, ray, t_min, t_max: intersect_plane(s.normal, s.offset, ray, t_min, t_max),
)

def intersect_surface(surface: SurfaceArray, ray: Ray, t_min, t_max):
    """Intersect one (unstacked) surface row, dispatching on its kind."""
    t_min = jnp.asarray(t_min, dtype=jnp.float32)
    t_max = jnp.asarray(t_max, dtype=jnp.float32)
    return lax.switch(surface.kind, _INTERSECT_BRANCHES, surface, ray, t_min, t_max)

def surface_normal(surface: SurfaceArray, point: jnp.ndarray) -> jnp.ndarray:
    """Unit normal of one surface row at `point`."""
    sphere_normal = normalize(point - surface.center)
    return jnp.where(surface.kind == SPHERE, sphere_normal, surface.normal)

def _miss_record() -> HitRecord:
    return HitRecord(
        t=jnp.asarray(jnp.inf, dtype=jnp.float32),
        position=jnp.zeros(3, dtype=jnp.float32),
        normal=jnp.zeros(3, dtype=jnp.float32),
        surface_index=jnp.asarray(-1, dtype=jnp.int32),
        hit=jnp.asarray(False),
    )

# --- Scene Traversal ---

def closest_hit(surfaces: SurfaceArray, ray: Ray, t_min, t_max) -> HitRecord:
    """Finds the nearest hit by scanning the surfaces in list order.

    A candidate replaces the current best only if its t is strictly smaller,
    so the first surface wins ties.
    """
    if len(surfaces) == 0:
        return _miss_record()

    def scan_body(carry, xs):
        best_t, best_index = carry
        surface, index = xs
        t, hit = intersect_surface(surface, ray, t_min, t_max)
        is_closer = hit & (t < best_t)
        next_carry = (
            jnp.where(is_closer, t, best_t),
            jnp.where(is_closer, index, best_index),
        )
        return next_carry, None

    init = (jnp.asarray(t_max, dtype=jnp.float32), jnp.asarray(-1, dtype=jnp.int32))
    indices = jnp.arange(len(surfaces), dtype=jnp.int32)
    (best_t, best_index), _ = lax.scan(scan_body, init, (surfaces, indices))

    found = best_index >= 0
    surface = jax.tree.map(lambda x: x[jnp.maximum(best_index, 0)], surfaces)
    position = ray.origin + jnp.where(found, best_t, 0.0) * ray.direction
    normal = surface_normal(surface, position)

    return HitRecord(
        t=jnp.where(found, best_t, jnp.inf),
        position=jnp.where(found, position, jnp.zeros_like(position)),
        normal=jnp.where(found, normal, jnp.zeros_like(normal)),
        surface_index=best_index,
        hit=found,
    )

def any_hit(surfaces: SurfaceArray, ray: Ray, t_min, t_max) -> jnp.ndarray:
    """True if any surface intersects the ray within the bounds.

    Stops at the first intersection found, which need not be the nearest.
    """
    num_surfaces = len(surfaces)
    if num_surfaces == 0:
        return jnp.asarray(False)

    def cond_fun(state):
        index, occluded = state
        return (index < num_surfaces) & ~occluded

    def body_fun(state):
        index, _ = state
        surface = jax.tree.map(lambda x: x[index], surfaces)
        _, hit = intersect_surface(surface, ray, t_min, t_max)
        return index + 1, hit

    _, occluded = lax.while_loop(
        cond_fun, body_fun, (jnp.asarray(0, dtype=jnp.int32), jnp.asarray(False))
    )
    return occluded
