# Path: core/embedders/pixel_embedder.py
# Purpose: Provide a lightweight deterministic embedder for offline runs.
# Layer: core/embedders.
# Details: Uses a letterboxed pixel grid as the vector, no model download required.

from __future__ import annotations

from typing import Sequence

import numpy as np
from PIL import Image

from .base import Embedder
from .preprocess import letterbox


class PixelEmbedder(Embedder):
    """Stand-in embedder that mimics the model contract with cheap pixel statistics."""

    def __init__(self, grid: int = 8) -> None:
        self.name = "pixel"
        self.target_size = grid
        self.output_size = grid * grid * 3

    def predict_batch(self, images: Sequence[Image.Image]) -> np.ndarray:
        """Embed each image as its centred, unit-length ``grid x grid`` thumbnail."""

        if not images:
            return np.empty((0, self.output_size), dtype=np.float32)
        rows = [self._embed(image) for image in images]
        return self._check_batch(np.stack(rows), len(images))

    def _embed(self, image: Image.Image) -> np.ndarray:
        pixels = letterbox(image, self.target_size).flatten()
        return self._normalize(pixels - 127.5)
