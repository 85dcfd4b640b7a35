import jax.numpy as jnp
from flax import struct
from functools import partial
import jax

from .types import Ray, MIN_LENGTH

# Half-extent of the fixed image window on the image plane
IMAGE_PLANE_HALF_SIZE = 0.1

@struct.dataclass
class Camera:
    position: jnp.ndarray   # Shape (3,)
    direction: jnp.ndarray  # Shape (3,), unit length
    focal_length: float     # Distance from position to the image plane along direction

    @classmethod
    def create(cls, position=(0.0, 0.0, 0.0), direction=(0.0, 0.0, -1.0), focal_length=0.1) -> "Camera":
        direction = jnp.asarray(direction, dtype=jnp.float32)
        norm = float(jnp.linalg.norm(direction))
        if norm <= MIN_LENGTH:
            raise ValueError(f"Camera direction must be non-zero, got {direction}")
        if not focal_length > 0:
            raise ValueError(f"Focal length must be > 0, got {focal_length}")
        return cls(
            position=jnp.asarray(position, dtype=jnp.float32),
            direction=direction / norm,
            focal_length=jnp.asarray(focal_length, dtype=jnp.float32),
        )

    def get_ray(self, x, y) -> Ray:
        """Primary ray through image-plane point (x, y).

        The image-plane offset (x, y, 0) is in world axes; only the focal
        offset follows the camera direction.
        """
        x = jnp.asarray(x, dtype=jnp.float32)
        y = jnp.asarray(y, dtype=jnp.float32)
        image_point = jnp.stack([x, y, jnp.zeros_like(x)], axis=-1)
        return Ray.create(self.position, image_point + self.focal_length * self.direction)

@partial(jax.jit, static_argnames=['width', 'height'])
def image_plane_coords(width: int, height: int):
    """Image-plane (x, y) of every pixel center, each of shape (height, width).

    Pixel centers are mapped onto [-0.1, 0.1] x [-0.1, 0.1] whatever the aspect
    ratio, so non-square images are stretched. Row 0 is y = -0.1.
    """
    ix, iy = jnp.meshgrid(
        jnp.arange(width, dtype=jnp.float32), jnp.arange(height, dtype=jnp.float32)
    )
    size = 2.0 * IMAGE_PLANE_HALF_SIZE
    x = size * (ix + 0.5) / width - IMAGE_PLANE_HALF_SIZE
    y = size * (iy + 0.5) / height - IMAGE_PLANE_HALF_SIZE
    return x, y
