import argparse
import time

import jax.numpy as jnp
import numpy as np
from PIL import Image
from tqdm import tqdm

from phongtrace.integrator import render_rows
from phongtrace.scene import default_scene
from phongtrace.types import Shading, DEFAULT_WIDTH, DEFAULT_HEIGHT
from phongtrace.utils import buffer_to_image, linear_rgb_to_srgb


def band_bounds(height, bands):
    """Split [0, height) into `bands` contiguous row ranges of near-equal size."""
    bands = max(1, min(bands, height))
    edges = np.linspace(0, height, bands + 1).round().astype(int)
    return [(int(start), int(stop)) for start, stop in zip(edges[:-1], edges[1:])]


def main(argv=None):
    # --- Argument Parsing ---
    parser = argparse.ArgumentParser(description="Phong ray tracer - Forward Rendering")
    parser.add_argument('--width', type=int, default=DEFAULT_WIDTH, help='Image width')
    parser.add_argument('--height', type=int, default=DEFAULT_HEIGHT, help='Image height')
    parser.add_argument('--shading', choices=[s.value for s in Shading], default=Shading.PHONG.value,
                        help='Flat surface colors or Phong shading with shadows')
    parser.add_argument('--bands', type=int, default=1, help='Render in this many row bands (shows progress)')
    parser.add_argument('--output', type=str, default='output_render.png', help='PNG preview path')
    parser.add_argument('--raw-output', type=str, default=None,
                        help='Optional .npy path for the linear float buffer')
    args = parser.parse_args(argv)

    if args.width <= 0 or args.height <= 0:
        parser.error(f"Resolution must be positive, got {args.width}x{args.height}")
    if args.bands <= 0:
        parser.error(f"--bands must be positive, got {args.bands}")

    width = args.width
    height = args.height
    shading = Shading(args.shading)

    print(f"Building {shading.value} scene...")
    scene = default_scene(shading)

    # --- Rendering ---
    print(f"Rendering {width}x{height} image ({shading.value} shading, {args.bands} band(s))...")
    start_time = time.time()
    band_buffers = []
    for row_start, row_stop in tqdm(band_bounds(height, args.bands), desc="Rendering Rows"):
        band = render_rows(scene, width, height, row_start, row_stop, shading)
        band_buffers.append(band)
    buffer = jnp.concatenate(band_buffers)
    buffer.block_until_ready()
    end_time = time.time()
    print(f"Rendering finished in {end_time - start_time:.2f} seconds.")

    buffer_np = np.array(buffer, dtype=np.float32)

    # --- Save Images ---
    if args.raw_output:
        np.save(args.raw_output, buffer_np)
        print(f"Linear buffer saved to {args.raw_output}")

    # PNG: sRGB gamma, clamp to LDR, top row first
    image_linear = buffer_to_image(buffer_np, width, height)
    image_srgb_gamma = np.asarray(linear_rgb_to_srgb(image_linear))
    image_ldr = np.clip(image_srgb_gamma, 0.0, 1.0)
    image_uint8 = (image_ldr * 255).astype(np.uint8)
    img = Image.fromarray(image_uint8)
    img.save(args.output)
    print(f"PNG saved to {args.output}")


if __name__ == "__main__":
    main()
