# Path: scripts/__init__.py
# Purpose: Package initializer for command-line entry points.
# Layer: scripts.
# Details: Each module exposes a ``main`` used by the console scripts in pyproject.toml.
