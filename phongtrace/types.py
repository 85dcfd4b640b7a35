import enum

import jax
import jax.numpy as jnp
from flax import struct

# --- Tracing Configuration (Centralized) ---
SHADOW_EPSILON = 1e-3    # Shadow ray tmin offset from the shaded point (avoids shadow acne)
PARALLEL_EPSILON = 1e-6  # |dot(n, d)| at or below this is treated as parallel to a plane
MIN_LENGTH = 1e-12       # Vectors shorter than this cannot be normalized

DEFAULT_WIDTH = 512
DEFAULT_HEIGHT = 512
BACKGROUND_COLOR = (0.0, 0.0, 0.0)

# Surface kind tags, in lax.switch branch order
SPHERE = 0
PLANE = 1

# --- Type Aliases for Clarity ---
Vec3 = jnp.ndarray  # Shape (3,)
Color = jnp.ndarray  # Linear RGB, shape (3,)


class Shading(enum.Enum):
    """How the color of the nearest hit is computed."""
    FLAT = "flat"
    PHONG = "phong"


def _is_traced(x) -> bool:
    return isinstance(x, jax.core.Tracer)


@struct.dataclass
class Ray:
    origin: jnp.ndarray     # Shape (3,)
    direction: jnp.ndarray  # Shape (3,), unit length

    @classmethod
    def create(cls, origin, direction) -> "Ray":
        """Build a ray, normalizing `direction`.

        Raises ValueError for a zero-length direction when the value is
        concrete. Traced callers (camera, shadow rays) never pass one.
        """
        origin = jnp.asarray(origin, dtype=jnp.float32)
        direction = jnp.asarray(direction, dtype=jnp.float32)
        norm = jnp.linalg.norm(direction, axis=-1, keepdims=True)
        if not _is_traced(norm) and bool(jnp.any(norm <= MIN_LENGTH)):
            raise ValueError(f"Ray direction must be non-zero, got {direction}")
        return cls(origin=origin, direction=direction / norm)


@struct.dataclass
class HitRecord:
    t: float                 # inf if no hit
    position: jnp.ndarray
    normal: jnp.ndarray
    surface_index: int       # -1 if no hit
    hit: bool


@struct.dataclass
class Material:
    ambient: jnp.ndarray   # ka, shape (3,)
    diffuse: jnp.ndarray   # kd, shape (3,); also the flat color
    specular: jnp.ndarray  # ks, shape (3,)
    shininess: float       # Phong exponent

    @classmethod
    def create(cls, ambient, diffuse, specular, shininess=0.0) -> "Material":
        if shininess < 0:
            raise ValueError(f"Shininess must be >= 0, got {shininess}")
        return cls(
            ambient=jnp.broadcast_to(jnp.asarray(ambient, dtype=jnp.float32), (3,)),
            diffuse=jnp.broadcast_to(jnp.asarray(diffuse, dtype=jnp.float32), (3,)),
            specular=jnp.broadcast_to(jnp.asarray(specular, dtype=jnp.float32), (3,)),
            shininess=jnp.asarray(shininess, dtype=jnp.float32),
        )

    @classmethod
    def flat(cls, color) -> "Material":
        """Flat-color material: only the diffuse slot carries the color."""
        return cls.create(ambient=0.0, diffuse=color, specular=0.0, shininess=0.0)


# --- Light Data Structures ---

@struct.dataclass
class PointLight:
    position: jnp.ndarray  # Shape (3,) or stacked (num_lights, 3)
    color: jnp.ndarray     # Linear RGB intensity, same shape as position

    @classmethod
    def create(cls, position, color=(1.0, 1.0, 1.0)) -> "PointLight":
        return cls(
            position=jnp.asarray(position, dtype=jnp.float32),
            color=jnp.broadcast_to(jnp.asarray(color, dtype=jnp.float32), (3,)),
        )
