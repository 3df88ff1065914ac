# Path: core/pipeline/__init__.py
# Purpose: Package initializer for pipeline execution primitives.
# Layer: core/pipeline.
# Details: Exposes bounded stage pools and stream batching.

from .workers import StagePool, batched

__all__ = ["StagePool", "batched"]
