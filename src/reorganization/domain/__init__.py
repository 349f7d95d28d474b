"""Domain слой домена Reorganization."""

from .exceptions import (
    ReorganizationError,
    ReorganizationWriteError,
    ArtifactLoadError,
    ClassificationConfigError,
)

__all__ = [
    "ReorganizationError",
    "ReorganizationWriteError",
    "ArtifactLoadError",
    "ClassificationConfigError",
]
