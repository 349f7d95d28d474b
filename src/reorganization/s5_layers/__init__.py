"""Stage 5: Layers."""

from .stage import LayersStage, LayersResult, LayerSummary

__all__ = ["LayersStage", "LayersResult", "LayerSummary"]
