# Path: config/__init__.py
# Purpose: Package initializer for configuration module.
# Layer: config.
# Details: Exposes settings models for application-wide configuration.

from .settings import AppSettings, BlobStoreSettings, EmbedderSettings, PipelineSettings, VectorStoreSettings

__all__ = ["AppSettings", "BlobStoreSettings", "EmbedderSettings", "PipelineSettings", "VectorStoreSettings"]
