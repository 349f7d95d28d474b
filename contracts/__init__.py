"""
Контракты DTO проекта Figma Export.

Все контракты используют Pydantic v2 для валидации.

Контракты:
- Сервер <-> плагин Figma: конверты сообщений (envelope_dto.py)
- Export -> Reorganization -> CLI: статистика (statistics_dto.py)
"""

# Сервер <-> плагин
from .envelope_dto import (
    CommandMessage,
    CommandEnvelope,
    ResponseMessage,
    ResponseEnvelope,
    JoinRequest,
    SystemMessage,
)

# Статистика
from .statistics_dto import (
    ExportStatistics,
    ReorganizationStatistics,
    SizeAnalysis,
    OriginalReorganized,
    LargestFile,
    CategorySize,
    ReorganizationResult,
)

__all__ = [
    # Сервер <-> плагин
    "CommandMessage",
    "CommandEnvelope",
    "ResponseMessage",
    "ResponseEnvelope",
    "JoinRequest",
    "SystemMessage",
    # Статистика
    "ExportStatistics",
    "ReorganizationStatistics",
    "SizeAnalysis",
    "OriginalReorganized",
    "LargestFile",
    "CategorySize",
    "ReorganizationResult",
]
