"""
Stage 1: Catalog (Каталог нод структуры).

Разворачивает structure/document_structure.json в плоские списки нод,
разложенные по типу. Каждая запись несёт parentId, по нему позже
строится смежность parent -> children.

Входные данные:
- export_dir: папка экспорта

Выходные данные (рядом с сырыми артефактами, только новые файлы):
- nodes/all_nodes.json, frames.json, instances.json, text_layers.json,
  rectangles.json, groups.json
- components/extracted_components.json
- styles/extracted_styles.json
- metadata/batch_processing_summary.json
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from pydantic import ValidationError

from src.domain.contracts import NodeRecord
from src.export.domain.exceptions import StructureFetchError
from src.export.session.node_id_extractor import normalize_structure
from ..domain.exceptions import ArtifactLoadError
from ..infrastructure.file_manager import ReorganizationFileManager

# Тип ноды -> файл каталога
TYPE_FILES: Dict[str, str] = {
    "FRAME": "nodes/frames.json",
    "INSTANCE": "nodes/instances.json",
    "TEXT": "nodes/text_layers.json",
    "RECTANGLE": "nodes/rectangles.json",
    "GROUP": "nodes/groups.json",
    "COMPONENT": "components/extracted_components.json",
    "COMPONENT_SET": "components/extracted_components.json",
}
ALL_NODES_FILE = "nodes/all_nodes.json"
STYLES_FILE = "styles/extracted_styles.json"
SUMMARY_FILE = "metadata/batch_processing_summary.json"


@dataclass
class CatalogResult:
    """Результат Stage 1."""
    total_nodes: int = 0
    breakdown: Dict[str, int] = field(default_factory=dict)
    files_written: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_nodes": self.total_nodes,
            "breakdown": self.breakdown,
            "files_written": self.files_written,
            "warnings": self.warnings,
        }


def flatten_structure(payload: Any, warnings: Optional[List[str]] = None) -> List[NodeRecord]:
    """
    Разворачивает дерево документа в плоские записи (pre-order).

    Повторно встреченный ID пропускается. Корни получают parentId=None.
    Нода, которую нельзя привести к NodeRecord, пропускается с предупреждением,
    её дети остаются в каталоге.

    Args:
        payload: Ответ чтения структуры (любая из трёх форм)
        warnings: Список, куда дописываются предупреждения
    """
    structure = normalize_structure(payload)
    records: List[NodeRecord] = []
    seen = set()
    stack: List[Tuple[Any, Optional[str]]] = [(root, None) for root in reversed(structure.roots)]
    while stack:
        node, parent_id = stack.pop()
        if not isinstance(node, dict) or not isinstance(node.get("id"), str) or not node["id"]:
            continue
        if node["id"] in seen:
            continue
        seen.add(node["id"])
        try:
            records.append(NodeRecord.from_document_node(node, parent_id))
        except ValidationError as e:
            message = f"Нода {node['id']} пропущена: {e.error_count()} ошибок валидации"
            logger.warning(f"[Stage 1: Catalog] {message}")
            if warnings is not None:
                warnings.append(message)
        children = node.get("children")
        if isinstance(children, list):
            stack.extend((child, node["id"]) for child in reversed(children))
    return records


class CatalogStage:
    """
    Stage 1: Catalog.

    Отсутствующая структура документа означает пустой каталог, а не ошибку.
    """

    def __init__(self, file_manager: Optional[ReorganizationFileManager] = None):
        self.file_manager = file_manager or ReorganizationFileManager()

    def process(self, export_dir: Path) -> CatalogResult:
        result = CatalogResult()
        structure_path = export_dir / "structure" / "document_structure.json"

        try:
            payload = self.file_manager.load_json(structure_path)
        except ArtifactLoadError as e:
            result.warnings.append(f"Структура документа не читается: {e.message}")
            logger.warning(f"[Stage 1: Catalog] {e}")
            return result

        if payload is None:
            result.warnings.append("Структура документа отсутствует")
            logger.warning(f"[Stage 1: Catalog] Нет файла {structure_path}, каталог пуст")
            return result

        try:
            records = flatten_structure(payload, result.warnings)
        except StructureFetchError as e:
            result.warnings.append(f"Структура документа не распознана: {e.message}")
            logger.warning(f"[Stage 1: Catalog] {e}")
            return result

        catalog: Dict[str, List[dict]] = {ALL_NODES_FILE: []}
        for relative in TYPE_FILES.values():
            catalog.setdefault(relative, [])
        extracted_styles: List[dict] = []

        for record in records:
            data = record.to_record()
            catalog[ALL_NODES_FILE].append(data)
            type_file = TYPE_FILES.get(record.type)
            if type_file:
                catalog[type_file].append(data)
            for style_type in ("fills", "strokes"):
                styles = getattr(record, style_type)
                if styles:
                    extracted_styles.append({
                        "nodeId": record.id,
                        "nodeName": record.name,
                        "type": style_type,
                        "styles": styles,
                    })

        for relative, items in catalog.items():
            self.file_manager.save_json(items, export_dir / relative)
            result.files_written.append(relative)
        self.file_manager.save_json(extracted_styles, export_dir / STYLES_FILE)
        result.files_written.append(STYLES_FILE)

        result.total_nodes = len(records)
        result.breakdown = {
            Path(relative).stem: len(items) for relative, items in catalog.items() if relative != ALL_NODES_FILE
        }
        result.breakdown["styles"] = len(extracted_styles)

        summary = {
            "totalNodes": result.total_nodes,
            "totalComponents": result.breakdown.get("extracted_components", 0),
            "totalStyles": len(extracted_styles),
            "breakdown": result.breakdown,
            "processedAt": datetime.now(timezone.utc).isoformat(),
        }
        self.file_manager.save_json(summary, export_dir / SUMMARY_FILE)
        result.files_written.append(SUMMARY_FILE)

        logger.info(f"[Stage 1: Catalog] Нод в каталоге: {result.total_nodes}, {result.breakdown}")
        return result
