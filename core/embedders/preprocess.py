# Path: core/embedders/preprocess.py
# Purpose: Convert decoded images into model-ready arrays.
# Layer: core/embedders.
# Details: Letterboxes onto a white square, resizes with Lanczos, and emits float32 BGR pixels.

from __future__ import annotations

import numpy as np
from PIL import Image

PAD_COLOR = (255, 255, 255)


def letterbox(image: Image.Image, size: int) -> np.ndarray:
    """Return a ``(size, size, 3)`` float32 array in BGR order with 0-255 values.

    The image is centred on a white square canvas whose side is its longest edge,
    so the aspect ratio survives the resize.
    """

    rgb = image.convert("RGB")
    width, height = rgb.size
    side = max(width, height)
    canvas = Image.new("RGB", (side, side), PAD_COLOR)
    canvas.paste(rgb, ((side - width) // 2, (side - height) // 2))
    if side != size:
        canvas = canvas.resize((size, size), Image.Resampling.LANCZOS)

    pixels = np.asarray(canvas, dtype=np.float32)
    return np.ascontiguousarray(pixels[:, :, ::-1])
