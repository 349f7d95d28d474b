"""
Stage 4: Classification (Классификация компонентов).

Каждой ноде назначается ровно одна метка: первая сработавшая категория
из config/classification.yaml, иначе unclassified.
Эвристика по имени, а не гарантия корректности.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from src.domain.contracts import CLASSIFIED_CATEGORIES, ComponentCategory
from ..infrastructure.classification_rules import ClassificationRules
from ..s3_reconciliation.stage import ReconciliationResult


@dataclass
class ClassificationResult:
    """Результат Stage 4."""
    labels: Dict[str, ComponentCategory] = field(default_factory=dict)
    counts: Dict[str, int] = field(default_factory=dict)

    def members(self, category: ComponentCategory, nodes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Ноды категории в исходном порядке."""
        return [node for node in nodes if self.labels.get(node["id"]) == category]

    def to_dict(self) -> dict:
        return {"counts": self.counts}


class ComponentClassifier:
    """Классификатор одной ноды по правилам."""

    def __init__(self, rules: Optional[ClassificationRules] = None):
        self.rules = rules or ClassificationRules.load()

    def classify(self, node: Dict[str, Any]) -> ComponentCategory:
        name = node.get("name") or ""
        node_type = node.get("type") or ""
        for rule in self.rules.categories:
            if rule.matches(name, node_type):
                return rule.category
        return ComponentCategory.UNCLASSIFIED

    def group(self, nodes: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
        """Группирует ноды по пяти классифицированным категориям."""
        grouped: Dict[str, List[Dict[str, Any]]] = {c.value: [] for c in CLASSIFIED_CATEGORIES}
        for node in nodes:
            category = self.classify(node)
            if category != ComponentCategory.UNCLASSIFIED:
                grouped[category.value].append(node)
        return grouped

    def is_label(self, node: Dict[str, Any]) -> bool:
        name = (node.get("name") or "").lower()
        return any(keyword in name for keyword in self.rules.label_keywords)


class ClassificationStage:
    """Stage 4: Classification."""

    def __init__(self, classifier: Optional[ComponentClassifier] = None):
        self.classifier = classifier or ComponentClassifier()

    def process(self, reconciled: ReconciliationResult) -> ClassificationResult:
        result = ClassificationResult()
        result.counts = {category.value: 0 for category in ComponentCategory}

        for node_id, node in reconciled.records.items():
            category = self.classifier.classify(node)
            result.labels[node_id] = category
            result.counts[category.value] += 1

        logger.info(f"[Stage 4: Classification] {result.counts}")
        return result
