"""
Общий домен: контракты, разделяемые доменами Export и Reorganization.
"""

from .contracts import (
    StageName,
    STAGE_ORDER,
    Command,
    PendingCommand,
    Batch,
    StructureShape,
    NormalizedStructure,
    ArtifactCategory,
    NodeRecord,
    ComponentCategory,
    CLASSIFIED_CATEGORIES,
)

__all__ = [
    "StageName",
    "STAGE_ORDER",
    "Command",
    "PendingCommand",
    "Batch",
    "StructureShape",
    "NormalizedStructure",
    "ArtifactCategory",
    "NodeRecord",
    "ComponentCategory",
    "CLASSIFIED_CATEGORIES",
]
