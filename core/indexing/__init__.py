# Path: core/indexing/__init__.py
# Purpose: Package initializer for indexing utilities.
# Layer: core/indexing.
# Details: Exposes scanning and the ingest pipeline.

from .pipeline import IngestPipeline, load_rgb
from .scanner import SUPPORTED_EXTENSIONS, ImageScanner, is_supported_image

__all__ = ["ImageScanner", "IngestPipeline", "SUPPORTED_EXTENSIONS", "is_supported_image", "load_rgb"]
