"""Stage 1: Catalog."""

from .stage import CatalogStage, CatalogResult, flatten_structure

__all__ = ["CatalogStage", "CatalogResult", "flatten_structure"]
