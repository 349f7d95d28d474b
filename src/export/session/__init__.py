"""
Сессия экспорта: стадии, батчи, контроллер.

Одна активная сессия на процесс.
"""

from .batch_dispatcher import BatchDispatcher
from .stage_tracker import StageTracker, StageProgress
from .export_session import ExportSession
from .controller import ExportSessionController, ExportSummary, JoinResult, CONFLICT_MESSAGE
from .node_id_extractor import (
    extract_node_ids,
    normalize_structure,
    extract_structure_node_ids,
    is_fetchable_node_id,
    collect_fragment_node_ids,
)

__all__ = [
    "BatchDispatcher",
    "StageTracker",
    "StageProgress",
    "ExportSession",
    "ExportSessionController",
    "ExportSummary",
    "JoinResult",
    "CONFLICT_MESSAGE",
    "extract_node_ids",
    "normalize_structure",
    "extract_structure_node_ids",
    "is_fetchable_node_id",
    "collect_fragment_node_ids",
]
