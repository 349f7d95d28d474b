"""
Stage 6: Tokens (Дизайн-токены и группировка компонентов).

Глобально по всему сведённому набору:
- reorganized/design-tokens/{colors,typography,spacing,shadows}.json
- reorganized/components/<категория>/<категория>.json (только непустые)
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from loguru import logger

from ..infrastructure.file_manager import ReorganizationFileManager
from ..s3_reconciliation.stage import ReconciliationResult
from ..s4_classification.stage import ComponentClassifier
from .extractors import extract_style_tokens

TOKENS_DIRNAME = "design-tokens"
COMPONENTS_DIRNAME = "components"


@dataclass
class TokensResult:
    """Результат Stage 6."""
    token_counts: Dict[str, int] = field(default_factory=dict)
    component_counts: Dict[str, int] = field(default_factory=dict)
    created_folders: int = 0
    created_files: int = 0

    def to_dict(self) -> dict:
        return {
            "token_counts": self.token_counts,
            "component_counts": self.component_counts,
            "created_folders": self.created_folders,
            "created_files": self.created_files,
        }


class TokensStage:
    """Stage 6: Tokens."""

    def __init__(
        self,
        classifier: Optional[ComponentClassifier] = None,
        file_manager: Optional[ReorganizationFileManager] = None,
    ):
        self.classifier = classifier or ComponentClassifier()
        self.file_manager = file_manager or ReorganizationFileManager()

    def process(self, reconciled: ReconciliationResult, reorganized_dir: Path) -> TokensResult:
        result = TokensResult()
        nodes = reconciled.nodes

        tokens_dir = self.file_manager.ensure_directory(reorganized_dir / TOKENS_DIRNAME)
        result.created_folders += 1
        for name, values in extract_style_tokens(nodes).items():
            self.file_manager.save_json(values, tokens_dir / f"{name}.json")
            result.created_files += 1
            result.token_counts[name] = len(values)

        components_dir = self.file_manager.ensure_directory(reorganized_dir / COMPONENTS_DIRNAME)
        result.created_folders += 1
        for category, members in self.classifier.group(nodes).items():
            result.component_counts[category] = len(members)
            if not members:
                continue
            category_dir = self.file_manager.ensure_directory(components_dir / category)
            result.created_folders += 1
            self.file_manager.save_json(members, category_dir / f"{category}.json")
            result.created_files += 1

        logger.info(
            f"[Stage 6: Tokens] Токены: {result.token_counts}, компоненты: {result.component_counts}"
        )
        return result
