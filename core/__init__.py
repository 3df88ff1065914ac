# Path: core/__init__.py
# Purpose: Package initializer for core application layer.
# Layer: core.
# Details: Aggregates subpackages for hashing, embedders, blob and vector stores, pipelines, and models.
