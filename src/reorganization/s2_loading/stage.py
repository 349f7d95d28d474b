"""
Stage 2: Loading (Загрузка артефактов).

Читает все известные категории нод и батч-фрагменты.
Отсутствующая категория = ноль вкладов. Нечитаемый JSON = предупреждение.

Порядок категорий фиксирован: от него зависит, какая запись
станет канонической при дедупликации (первая встреченная).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from ..domain.exceptions import ArtifactLoadError
from ..infrastructure.file_manager import ReorganizationFileManager

# (относительный путь, ключ-обёртка)
NODE_SOURCES: List[Tuple[str, str]] = [
    ("nodes/all_nodes.json", "nodes"),
    ("nodes/frames.json", "frames"),
    ("nodes/instances.json", "instances"),
    ("nodes/text_layers.json", "textNodes"),
    ("nodes/text_nodes.json", "textNodes"),
    ("nodes/rectangles.json", "rectangles"),
    ("nodes/groups.json", "groups"),
]
BATCHES_DIR = "batches"


@dataclass
class BatchFragment:
    """Фрагмент ноды из ответа get_nodes_info."""
    node_id: str
    document: Dict[str, Any]
    source_file: str


@dataclass
class LoadingResult:
    """Результат Stage 2."""
    nodes: List[Dict[str, Any]] = field(default_factory=list)
    fragments: List[BatchFragment] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "nodes": len(self.nodes),
            "fragments": len(self.fragments),
            "counts": self.counts,
            "warnings": self.warnings,
        }


def unwrap_items(data: Any, wrapper_key: str) -> List[Any]:
    """Файл категории - либо список, либо объект с ключом-обёрткой."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        items = data.get(wrapper_key)
        if isinstance(items, list):
            return items
    return []


class LoadingStage:
    """Stage 2: Loading."""

    def __init__(self, file_manager: Optional[ReorganizationFileManager] = None):
        self.file_manager = file_manager or ReorganizationFileManager()

    def process(self, export_dir: Path) -> LoadingResult:
        result = LoadingResult()

        for relative, wrapper_key in NODE_SOURCES:
            data = self._load(export_dir / relative, result)
            items = [item for item in unwrap_items(data, wrapper_key) if _has_id(item)]
            result.nodes.extend(items)
            result.counts[relative] = len(items)

        batches_dir = export_dir / BATCHES_DIR
        batch_files = sorted(batches_dir.glob("*.json")) if batches_dir.is_dir() else []
        for batch_file in batch_files:
            data = self._load(batch_file, result)
            for entry in data if isinstance(data, list) else []:
                fragment = _to_fragment(entry, batch_file.name)
                if fragment is not None:
                    result.fragments.append(fragment)
        result.counts[BATCHES_DIR] = len(result.fragments)

        logger.info(
            f"[Stage 2: Loading] Нод: {len(result.nodes)}, "
            f"фрагментов из {len(batch_files)} батчей: {len(result.fragments)}"
        )
        return result

    def _load(self, path: Path, result: LoadingResult) -> Any:
        try:
            return self.file_manager.load_json(path)
        except ArtifactLoadError as e:
            result.warnings.append(f"{path.name}: {e.message}")
            logger.warning(f"[Stage 2: Loading] Пропущен нечитаемый файл: {path}")
            return None


def _has_id(item: Any) -> bool:
    return isinstance(item, dict) and isinstance(item.get("id"), str) and bool(item["id"])


def _to_fragment(entry: Any, source_file: str) -> Optional[BatchFragment]:
    if not isinstance(entry, dict):
        return None
    document = entry.get("document")
    if not isinstance(document, dict):
        return None
    node_id = entry.get("nodeId") or document.get("id")
    if not isinstance(node_id, str) or not node_id:
        return None
    return BatchFragment(node_id=node_id, document=document, source_file=source_file)
