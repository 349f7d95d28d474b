"""
Загрузчик правил классификации компонентов (config/classification.yaml).

Правила читаются один раз и кешируются на уровне класса.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar, Dict, List, Optional

import yaml
from loguru import logger

from config.settings import CLASSIFICATION_RULES_PATH
from src.domain.contracts import ComponentCategory
from ..domain.exceptions import ClassificationConfigError


@dataclass
class TypedKeywords:
    """Ключевые слова, учитываемые только для одного типа ноды."""
    node_type: str
    keywords: List[str]


@dataclass
class CategoryRule:
    """Правило одной категории."""
    category: ComponentCategory
    keywords: List[str] = field(default_factory=list)
    typed: List[TypedKeywords] = field(default_factory=list)

    def matches(self, name: str, node_type: str) -> bool:
        lowered = name.lower()
        if any(keyword in lowered for keyword in self.keywords):
            return True
        return any(
            node_type == rule.node_type and any(keyword in lowered for keyword in rule.keywords)
            for rule in self.typed
        )


@dataclass
class ClassificationRules:
    """Упорядоченные правила: первая сработавшая категория побеждает."""
    categories: List[CategoryRule]
    label_keywords: List[str] = field(default_factory=lambda: ["label"])

    _cache: ClassVar[Dict[str, "ClassificationRules"]] = {}

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "ClassificationRules":
        """
        Загружает правила из YAML.

        Args:
            path: Путь к файлу (по умолчанию config/classification.yaml)

        Raises:
            ClassificationConfigError: Файл не найден или содержит ошибки
        """
        path = Path(path or CLASSIFICATION_RULES_PATH)
        key = str(path.resolve())
        if key in cls._cache:
            return cls._cache[key]

        if not path.exists():
            raise ClassificationConfigError(
                message=f"Файл правил классификации не найден: {path}",
                component="ClassificationRules"
            )

        try:
            with open(path, 'r', encoding='utf-8') as f:
                raw = yaml.safe_load(f) or {}
            rules = cls._parse(raw)
        except (yaml.YAMLError, KeyError, TypeError, ValueError) as e:
            raise ClassificationConfigError(
                message=f"Ошибка в правилах классификации: {path}",
                component="ClassificationRules",
                original_error=e
            )

        cls._cache[key] = rules
        logger.debug(
            f"[ClassificationRules] Загружено категорий: {len(rules.categories)} "
            f"({', '.join(rule.category.value for rule in rules.categories)})"
        )
        return rules

    @classmethod
    def _parse(cls, raw: dict) -> "ClassificationRules":
        categories = []
        for item in raw.get("categories", []):
            categories.append(CategoryRule(
                category=ComponentCategory(item["name"]),
                keywords=[str(k).lower() for k in item.get("keywords", [])],
                typed=[
                    TypedKeywords(
                        node_type=str(typed["type"]),
                        keywords=[str(k).lower() for k in typed.get("keywords", [])],
                    )
                    for typed in item.get("typed", [])
                ],
            ))
        content = raw.get("content") or {}
        label_keywords = [str(k).lower() for k in content.get("label_keywords", ["label"])]
        return cls(categories=categories, label_keywords=label_keywords)

    @classmethod
    def clear_cache(cls) -> None:
        cls._cache.clear()
