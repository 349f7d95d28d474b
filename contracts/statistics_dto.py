"""
DTO контракт: статистика сессии экспорта и прохода реорганизации.

Сериализуется в JSON с camelCase ключами (by_alias=True),
ключи совпадают с форматом артефактов экспорта.
"""

from datetime import datetime, timezone
from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field


class ExportStatistics(BaseModel):
    """Итоговая статистика сессии (metadata/export_statistics.json)."""

    total_processed_nodes: int = Field(..., ge=0, alias="totalProcessedNodes")
    processed_nodes: List[str] = Field(default_factory=list, alias="processedNodes")
    node_queue_length: int = Field(0, ge=0, alias="nodeQueueLength")
    saved_files_count: int = Field(0, ge=0, alias="savedFilesCount")
    commands_used: List[str] = Field(default_factory=list, alias="commandsUsed")
    rescan_rounds: int = Field(0, ge=0, alias="rescanRounds")
    export_duration: int = Field(..., ge=0, alias="exportDuration", description="Длительность, ms")
    completed_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        alias="completedAt",
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ReorganizationStatistics(BaseModel):
    """
    Счётчики прохода реорганизации.

    Изменяемая модель: стадии пайплайна накапливают значения.
    """

    original_nodes: int = Field(0, alias="originalNodes")
    saved_nodes: int = Field(0, alias="savedNodes")
    data_loss: int = Field(0, alias="dataLoss")
    created_folders: int = Field(0, alias="createdFolders")
    created_files: int = Field(0, alias="createdFiles")
    total_size: int = Field(0, alias="totalSize")
    execution_time: int = Field(0, alias="executionTime", description="Время выполнения, ms")

    model_config = ConfigDict(populate_by_name=True)


class OriginalReorganized(BaseModel):
    """Пара значений до/после реорганизации."""

    original: float = 0
    reorganized: float = 0


class LargestFile(BaseModel):
    path: str
    size: int
    type: Literal["original", "reorganized"]


class CategorySize(BaseModel):
    original: int = 0
    reorganized: int = 0
    reduction: int = 0


class SizeAnalysis(BaseModel):
    """Сравнение размеров до и после реорганизации (информационно)."""

    original_size: int = Field(0, alias="originalSize")
    reorganized_size: int = Field(0, alias="reorganizedSize")
    size_reduction: int = Field(0, alias="sizeReduction")
    size_reduction_percent: float = Field(0.0, alias="sizeReductionPercent")
    file_count: OriginalReorganized = Field(default_factory=OriginalReorganized, alias="fileCount")
    folder_count: OriginalReorganized = Field(default_factory=OriginalReorganized, alias="folderCount")
    average_file_size: OriginalReorganized = Field(
        default_factory=OriginalReorganized, alias="averageFileSize"
    )
    largest_files: List[LargestFile] = Field(default_factory=list, alias="largestFiles")
    size_by_category: Dict[str, CategorySize] = Field(default_factory=dict, alias="sizeByCategory")

    model_config = ConfigDict(populate_by_name=True)


class ReorganizationResult(BaseModel):
    """Результат прохода реорганизации."""

    success: bool
    statistics: ReorganizationStatistics
    size_analysis: SizeAnalysis = Field(default_factory=SizeAnalysis, alias="sizeAnalysis")
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)
