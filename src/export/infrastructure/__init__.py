"""Инфраструктурный слой домена Export."""

from .artifact_store import ArtifactStore, STYLE_SPLIT, sanitize_filename

__all__ = [
    "ArtifactStore",
    "STYLE_SPLIT",
    "sanitize_filename",
]
