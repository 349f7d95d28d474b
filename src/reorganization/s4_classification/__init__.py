"""Stage 4: Classification."""

from .stage import ClassificationStage, ClassificationResult, ComponentClassifier

__all__ = ["ClassificationStage", "ClassificationResult", "ComponentClassifier"]
