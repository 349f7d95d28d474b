"""Stage 3: Reconciliation."""

from .stage import ReconciliationStage, ReconciliationResult, overlay_fragment

__all__ = ["ReconciliationStage", "ReconciliationResult", "overlay_fragment"]
