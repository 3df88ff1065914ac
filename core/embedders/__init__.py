# Path: core/embedders/__init__.py
# Purpose: Package initializer for embedder implementations and interfaces.
# Layer: core/embedders.
# Details: Exposes the base interface, preprocessing, and the model-backed and offline embedders.

from .base import Embedder
from .pixel_embedder import PixelEmbedder
from .preprocess import letterbox
from .wd_tagger import WdTaggerEmbedder

__all__ = ["Embedder", "PixelEmbedder", "WdTaggerEmbedder", "letterbox"]
