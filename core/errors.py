# Path: core/errors.py
# Purpose: Define the error taxonomy shared by pipelines and collaborators.
# Layer: core.
# Details: Configuration errors abort a run; everything else is recorded per item.

from __future__ import annotations

from dataclasses import dataclass


class PipelineError(Exception):
    """Base class for errors raised by ingest and query components."""


class ConfigurationError(PipelineError):
    """Startup problem (missing credentials, unreachable endpoint) that must abort the run."""


class DimensionMismatchError(ConfigurationError):
    """An existing collection was created for a different vector size than the model produces."""

    def __init__(self, collection: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Collection {collection!r} stores {actual}-dimensional vectors but the embedder produces {expected}."
        )
        self.collection = collection
        self.expected = expected
        self.actual = actual


class PayloadError(PipelineError):
    """A point returned by the vector index lacks a required payload field."""


class BatchError(PipelineError):
    """A batched call failed in a way that cannot be attributed to a single item."""


@dataclass(frozen=True)
class ItemFailure:
    """A single item that failed at a given stage, kept for reporting."""

    stage: str
    label: str
    error: str

    def __str__(self) -> str:
        return f"[{self.stage}] {self.label}: {self.error}"
