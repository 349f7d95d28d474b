"""Stage 2: Loading."""

from .stage import LoadingStage, LoadingResult, BatchFragment

__all__ = ["LoadingStage", "LoadingResult", "BatchFragment"]
