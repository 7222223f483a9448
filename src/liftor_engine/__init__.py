"""Liftor plan engine - AI base-plan generation, repair, fallback and versioning."""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("liftor-engine")
except importlib.metadata.PackageNotFoundError:
    __version__ = "unknown"
