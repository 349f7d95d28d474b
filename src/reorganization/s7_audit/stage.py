"""
Stage 7: Audit (Проверка сохранности, копирование, анализ размеров).

1. savedNodes: сумма классифицированных компонентов по components.json слоёв.
   dataLoss = originalNodes - savedNodes; положительное значение - предупреждение.
2. Копия критичных сырых артефактов в reorganized/ (только добавление).
3. Сравнение размеров до/после (информационно).
4. reorganized/reorganization_report.json.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from loguru import logger

from contracts import (
    CategorySize,
    LargestFile,
    OriginalReorganized,
    ReorganizationResult,
    ReorganizationStatistics,
    SizeAnalysis,
)
from src.domain.contracts import CLASSIFIED_CATEGORIES
from ..domain.exceptions import ArtifactLoadError
from ..infrastructure.file_manager import DirectorySize, ReorganizationFileManager
from ..s5_layers.stage import LAYERS_DIRNAME

REPORT_FILENAME = "reorganization_report.json"
LARGEST_FILES_LIMIT = 10
ROOT_CATEGORY = "root"

# (файл в папке экспорта, папка назначения в reorganized/)
CRITICAL_FILES: List[Tuple[str, str]] = [
    ("annotations/all_annotations.json", "annotations"),
    ("structure/document_structure.json", "structure"),
    ("metadata/document_info.json", "metadata"),
    ("styles/colors.json", "styles"),
    ("styles/extracted_styles.json", "styles"),
    ("components/extracted_components.json", "components"),
    ("components/local_components.json", "components"),
]
IMAGES_DIRNAME = "images"


@dataclass
class AuditResult:
    """Результат Stage 7."""
    saved_nodes: int = 0
    data_loss: int = 0
    copied_files: List[str] = field(default_factory=list)
    missing_files: List[str] = field(default_factory=list)
    size_analysis: SizeAnalysis = field(default_factory=SizeAnalysis)
    reorganized_size: int = 0
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "saved_nodes": self.saved_nodes,
            "data_loss": self.data_loss,
            "copied_files": self.copied_files,
            "missing_files": self.missing_files,
            "size_analysis": self.size_analysis.model_dump(by_alias=True),
            "warnings": self.warnings,
        }


class AuditStage:
    """Stage 7: Audit."""

    def __init__(self, file_manager: Optional[ReorganizationFileManager] = None):
        self.file_manager = file_manager or ReorganizationFileManager()

    def process(self, export_dir: Path, reorganized_dir: Path, original_nodes: int) -> AuditResult:
        result = AuditResult()

        result.saved_nodes = self.count_saved_nodes(reorganized_dir, result.warnings)
        result.data_loss = original_nodes - result.saved_nodes
        logger.info(
            f"[Stage 7: Audit] Исходные ноды: {original_nodes}, сохранённые: {result.saved_nodes}, "
            f"потери: {result.data_loss}"
        )
        if result.data_loss > 0:
            result.warnings.append(f"Обнаружена потеря {result.data_loss} нод")

        self.copy_critical_files(export_dir, reorganized_dir, result)

        before = self.file_manager.analyze_directory_size(export_dir, exclude=reorganized_dir)
        after = self.file_manager.analyze_directory_size(reorganized_dir)
        result.size_analysis = build_size_analysis(before, after)
        result.reorganized_size = after.total_size
        logger.info(
            f"[Stage 7: Audit] Размер: {before.total_size} -> {after.total_size} байт "
            f"({result.size_analysis.size_reduction_percent:.1f}%)"
        )
        return result

    def count_saved_nodes(self, reorganized_dir: Path, warnings: List[str]) -> int:
        """Читает обратно components.json каждого слоя."""
        layers_dir = reorganized_dir / LAYERS_DIRNAME
        if not layers_dir.is_dir():
            return 0
        count = 0
        for layer_dir in sorted(p for p in layers_dir.iterdir() if p.is_dir()):
            try:
                components = self.file_manager.load_json(layer_dir / "components.json")
            except ArtifactLoadError as e:
                warnings.append(f"Не удалось подсчитать сохранённые ноды {layer_dir.name}: {e.message}")
                logger.warning(f"[Stage 7: Audit] {e}")
                continue
            if not isinstance(components, dict):
                continue
            for category in CLASSIFIED_CATEGORIES:
                members = components.get(category.value)
                if isinstance(members, list):
                    count += len(members)
        return count

    def copy_critical_files(self, export_dir: Path, reorganized_dir: Path, result: AuditResult) -> None:
        for relative, destination in CRITICAL_FILES:
            copied = self.file_manager.copy_file(export_dir / relative, reorganized_dir / destination)
            if copied is None:
                result.missing_files.append(relative)
                logger.debug(f"[Stage 7: Audit] Файл не найден: {relative}")
            else:
                result.copied_files.append(relative)

        images_dir = export_dir / IMAGES_DIRNAME
        if images_dir.is_dir():
            for image in sorted(images_dir.iterdir()):
                if self.file_manager.copy_file(image, reorganized_dir / IMAGES_DIRNAME) is not None:
                    result.copied_files.append(f"{IMAGES_DIRNAME}/{image.name}")

        logger.info(
            f"[Stage 7: Audit] Скопировано файлов: {len(result.copied_files)}, "
            f"не найдено: {len(result.missing_files)}"
        )

    def write_report(self, reorganization: ReorganizationResult, reorganized_dir: Path) -> Path:
        return self.file_manager.save_json(reorganization.to_dict(), reorganized_dir / REPORT_FILENAME)


def _category_sizes(size: DirectorySize) -> Dict[str, int]:
    sizes: Dict[str, int] = {}
    for relative, file_size in size.files:
        parts = relative.split("/")
        category = parts[0] if len(parts) > 1 else ROOT_CATEGORY
        sizes[category] = sizes.get(category, 0) + file_size
    return sizes


def build_size_analysis(before: DirectorySize, after: DirectorySize) -> SizeAnalysis:
    """Сравнение двух деревьев файлов."""
    reduction = before.total_size - after.total_size

    largest = [LargestFile(path=p, size=s, type="original") for p, s in before.files]
    largest += [LargestFile(path=p, size=s, type="reorganized") for p, s in after.files]
    largest.sort(key=lambda f: (-f.size, f.type, f.path))

    original_categories = _category_sizes(before)
    reorganized_categories = _category_sizes(after)
    size_by_category = {}
    for category in sorted(set(original_categories) | set(reorganized_categories)):
        original = original_categories.get(category, 0)
        reorganized = reorganized_categories.get(category, 0)
        size_by_category[category] = CategorySize(
            original=original, reorganized=reorganized, reduction=original - reorganized
        )

    return SizeAnalysis(
        originalSize=before.total_size,
        reorganizedSize=after.total_size,
        sizeReduction=reduction,
        sizeReductionPercent=(reduction / before.total_size * 100) if before.total_size else 0.0,
        fileCount=OriginalReorganized(original=before.file_count, reorganized=after.file_count),
        folderCount=OriginalReorganized(original=before.folder_count, reorganized=after.folder_count),
        averageFileSize=OriginalReorganized(
            original=before.average_file_size, reorganized=after.average_file_size
        ),
        largestFiles=largest[:LARGEST_FILES_LIMIT],
        sizeByCategory=size_by_category,
    )


def apply_audit(statistics: ReorganizationStatistics, audit: AuditResult) -> None:
    statistics.saved_nodes = audit.saved_nodes
    statistics.data_loss = audit.data_loss
    statistics.total_size = audit.reorganized_size
