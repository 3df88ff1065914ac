# Path: core/embedders/base.py
# Purpose: Define the Embedder interface consumed by the ingest and query pipelines.
# Layer: core/embedders.
# Details: Batch inference is order preserving; single-image prediction is a batch of one.

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np
from PIL import Image

from core.errors import BatchError


class Embedder(ABC):
    """Abstract base class for image embedders.

    Implementations must be safe to call from several worker threads at once.
    """

    name: str
    output_size: int
    target_size: int

    @abstractmethod
    def predict_batch(self, images: Sequence[Image.Image]) -> np.ndarray:
        """Return a ``(len(images), output_size)`` float32 matrix; row ``i`` belongs to ``images[i]``."""

    def predict(self, image: Image.Image) -> np.ndarray:
        """Return the embedding of a single image."""

        return self.predict_batch([image])[0]

    def _check_batch(self, outputs: np.ndarray, count: int) -> np.ndarray:
        """Validate that a batch result is positionally aligned with its input."""

        outputs = np.asarray(outputs, dtype=np.float32)
        if outputs.ndim != 2 or outputs.shape[0] != count:
            raise BatchError(f"{self.name} returned shape {outputs.shape} for a batch of {count} image(s).")
        if outputs.shape[1] != self.output_size:
            raise BatchError(f"{self.name} returned {outputs.shape[1]}-dimensional vectors, expected {self.output_size}.")
        return outputs

    @staticmethod
    def _normalize(vector: np.ndarray) -> np.ndarray:
        """Normalize embedding vectors to unit length to simplify similarity comparisons."""

        norm = np.linalg.norm(vector)
        if norm == 0:
            return vector.astype(np.float32)
        return (vector / norm).astype(np.float32)
