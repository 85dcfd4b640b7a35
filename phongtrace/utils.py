import jax.numpy as jnp
import numpy as np
from jax import jit

# --- Vector Utilities ---
def dot(v1, v2):
    return jnp.sum(v1 * v2, axis=-1)

def length(v):
    return jnp.sqrt(dot(v, v))

def normalize(v):
    """Normalize a vector."""
    # Add epsilon to avoid division by zero for zero-length vectors
    norm = jnp.linalg.norm(v, axis=-1, keepdims=True)
    return v / jnp.maximum(norm, 1e-6)

def reflect(v, n):
    """Reflect vector v around normal n."""
    return v - 2 * dot(v, n)[..., None] * n

# --- Display Utilities ---
# The tracer itself never clamps or gamma-encodes; these are for writing previews.

@jit
def linear_rgb_to_srgb(rgb_linear: jnp.ndarray) -> jnp.ndarray:
    """Apply sRGB gamma correction."""
    a = 0.055
    return jnp.where(
        rgb_linear <= 0.0031308,
        12.92 * rgb_linear,
        (1.0 + a) * jnp.power(jnp.maximum(rgb_linear, 1e-9), 1.0 / 2.4) - a
    )

def buffer_to_image(buffer, width: int, height: int) -> np.ndarray:
    """Reshape a flat row-major RGB buffer to (height, width, 3), top row first.

    Buffer row 0 is the bottom of the image (y = -0.1 on the image plane),
    so rows are flipped for image files.
    """
    image = np.asarray(buffer, dtype=np.float32)
    if image.size != width * height * 3:
        raise ValueError(
            f"Buffer has {image.size} values, expected {width}x{height}x3 = {width * height * 3}"
        )
    return np.flipud(image.reshape(height, width, 3))
