"""
Stage 3: Reconciliation (Сведение записей нод).

1. Дедупликация по ID: первая встреченная запись каноническая.
2. Наложение батч-фрагментов в порядке отправки (shallow merge, поля
   фрагмента побеждают). Значения fills/strokes до наложения сохраняются
   под originalFills/originalStrokes, детализированные данные фрагмента
   под detailed*.
3. Фрагмент без канонической записи добавляется с batchData.source = "batch-only".

Исходные артефакты не изменяются: результат живёт только в памяти.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from ..s2_loading.stage import BatchFragment, LoadingResult

SOURCE_BATCH = "batch"
SOURCE_BATCH_ONLY = "batch-only"


@dataclass
class ReconciliationResult:
    """Результат Stage 3: словарь id -> запись в порядке первого появления."""
    records: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    original_nodes: int = 0
    duplicates_removed: int = 0
    enriched: int = 0
    batch_only: int = 0

    @property
    def nodes(self) -> List[Dict[str, Any]]:
        return list(self.records.values())

    def to_dict(self) -> dict:
        return {
            "records": len(self.records),
            "original_nodes": self.original_nodes,
            "duplicates_removed": self.duplicates_removed,
            "enriched": self.enriched,
            "batch_only": self.batch_only,
        }


def overlay_fragment(existing: Dict[str, Any], fragment: BatchFragment) -> Dict[str, Any]:
    """
    Накладывает фрагмент на существующую запись.

    Args:
        existing: Текущая запись (не изменяется)
        fragment: Батч-фрагмент

    Returns:
        Новая запись: поля фрагмента поверх существующих
    """
    document = fragment.document
    merged = {**existing, **document}

    # Дерево фрагмента хранится отдельно, в записи остаётся количество детей
    detailed_children = document.get("children")
    if isinstance(detailed_children, list):
        merged["children"] = len(detailed_children)

    for key, original_key in (("fills", "originalFills"), ("strokes", "originalStrokes")):
        if existing.get(key) is not None:
            merged[original_key] = existing[key]
        else:
            merged.pop(original_key, None)

    # Значения самой первой (структурной) записи переживают все наложения
    if existing.get("batchData") is None:
        for key, canonical_key in (("fills", "canonicalFills"), ("strokes", "canonicalStrokes")):
            if existing.get(key) is not None:
                merged[canonical_key] = existing[key]

    merged["detailedFills"] = document.get("fills")
    merged["detailedStrokes"] = document.get("strokes")
    merged["detailedChildren"] = detailed_children
    merged["detailedBoundingBox"] = document.get("absoluteBoundingBox")
    if document.get("cornerRadius") is None and existing.get("cornerRadius") is not None:
        merged["cornerRadius"] = existing["cornerRadius"]

    # ID ноды неизменяем
    merged["id"] = existing["id"]

    source = SOURCE_BATCH
    previous = existing.get("batchData")
    if isinstance(previous, dict) and previous.get("source") == SOURCE_BATCH_ONLY:
        source = SOURCE_BATCH_ONLY
    merged["batchData"] = {"nodeId": fragment.node_id, "source": source}
    return merged


def _batch_only_record(fragment: BatchFragment, parent_id: Optional[str]) -> Dict[str, Any]:
    document = fragment.document
    record = dict(document)
    record["id"] = fragment.node_id
    children = document.get("children")
    if isinstance(children, list):
        record["children"] = len(children)
        record["detailedChildren"] = children
    if "parentId" not in record and parent_id is not None:
        record["parentId"] = parent_id
    record["batchData"] = {"nodeId": fragment.node_id, "source": SOURCE_BATCH_ONLY}
    return record


class ReconciliationStage:
    """Stage 3: Reconciliation."""

    def process(self, loaded: LoadingResult) -> ReconciliationResult:
        result = ReconciliationResult()

        for node in loaded.nodes:
            node_id = node["id"]
            if node_id in result.records:
                result.duplicates_removed += 1
                continue
            result.records[node_id] = dict(node)
        result.original_nodes = len(result.records)

        parents = self._fragment_parents(loaded.fragments)
        enriched_ids = set()

        for fragment in loaded.fragments:
            existing = result.records.get(fragment.node_id)
            if existing is not None:
                result.records[fragment.node_id] = overlay_fragment(existing, fragment)
                enriched_ids.add(fragment.node_id)
            else:
                result.records[fragment.node_id] = _batch_only_record(
                    fragment, parents.get(fragment.node_id)
                )
                result.batch_only += 1

        result.enriched = len(enriched_ids)
        logger.info(
            f"[Stage 3: Reconciliation] Уникальных нод: {result.original_nodes} "
            f"(дублей: {result.duplicates_removed}), обогащено: {result.enriched}, "
            f"batch-only: {result.batch_only}"
        )
        return result

    @staticmethod
    def _fragment_parents(fragments: List[BatchFragment]) -> Dict[str, str]:
        """parentId для batch-only нод по вложенным children фрагментов."""
        parents: Dict[str, str] = {}
        for fragment in fragments:
            children = fragment.document.get("children")
            if not isinstance(children, list):
                continue
            for child in children:
                if isinstance(child, dict) and isinstance(child.get("id"), str):
                    parents.setdefault(child["id"], fragment.node_id)
        return parents
