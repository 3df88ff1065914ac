# Path: core/search/__init__.py
# Purpose: Package initializer for the query pipeline and vector reduction.
# Layer: core/search.
# Details: Exposes the query pipeline entrypoint and the probe-set reduction helpers.

from .pipeline import QueryPipeline, default_output
from .reduction import reduce_vectors, reduction_chunk_size

__all__ = ["QueryPipeline", "default_output", "reduce_vectors", "reduction_chunk_size"]
