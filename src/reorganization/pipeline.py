"""
Reorganization Pipeline - Оркестратор 7 этапов реорганизации.

Координирует выполнение всех этапов в строгом порядке:
1. Catalog → 2. Loading → 3. Reconciliation → 4. Classification →
5. Layers → 6. Tokens → 7. Audit

Сырые артефакты экспорта не изменяются, вывод пишется в reorganized/.
Повторный запуск над тем же экспортом даёт побайтно те же файлы
слоёв и токенов.
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from loguru import logger

from config.settings import REORGANIZED_DIRNAME
from contracts import ReorganizationResult, ReorganizationStatistics
from src.export.domain.interfaces import IReorganizer
from .domain.exceptions import ReorganizationError
from .infrastructure.file_manager import ReorganizationFileManager
from .s1_catalog import CatalogResult, CatalogStage
from .s2_loading import LoadingResult, LoadingStage
from .s3_reconciliation import ReconciliationResult, ReconciliationStage
from .s4_classification import ClassificationResult, ClassificationStage, ComponentClassifier
from .s5_layers import LayersResult, LayersStage
from .s6_tokens import TokensResult, TokensStage
from .s7_audit import AuditResult, AuditStage, apply_audit


@dataclass
class PipelineTrace:
    """
    Промежуточные результаты этапов.

    Используется для отладки и тестов.
    """
    catalog: Optional[CatalogResult] = None
    loading: Optional[LoadingResult] = None
    reconciliation: Optional[ReconciliationResult] = None
    classification: Optional[ClassificationResult] = None
    layers: Optional[LayersResult] = None
    tokens: Optional[TokensResult] = None
    audit: Optional[AuditResult] = None
    stages_completed: int = 0

    def to_dict(self) -> dict:
        return {
            "catalog": self.catalog.to_dict() if self.catalog else None,
            "loading": self.loading.to_dict() if self.loading else None,
            "reconciliation": self.reconciliation.to_dict() if self.reconciliation else None,
            "classification": self.classification.to_dict() if self.classification else None,
            "layers": self.layers.to_dict() if self.layers else None,
            "tokens": self.tokens.to_dict() if self.tokens else None,
            "audit": self.audit.to_dict() if self.audit else None,
            "stages_completed": self.stages_completed,
        }


class ReorganizationPipeline(IReorganizer):
    """
    Пайплайн реорганизации экспорта.

    Все этапы опциональны - по умолчанию создаются стандартные.
    Исключения этапов не пробрасываются: run() возвращает
    ReorganizationResult(success=False) со списком ошибок.
    """

    def __init__(
        self,
        catalog_stage: Optional[CatalogStage] = None,
        loading_stage: Optional[LoadingStage] = None,
        reconciliation_stage: Optional[ReconciliationStage] = None,
        classification_stage: Optional[ClassificationStage] = None,
        layers_stage: Optional[LayersStage] = None,
        tokens_stage: Optional[TokensStage] = None,
        audit_stage: Optional[AuditStage] = None,
        classifier: Optional[ComponentClassifier] = None,
        file_manager: Optional[ReorganizationFileManager] = None,
    ):
        self.file_manager = file_manager or ReorganizationFileManager()
        self.classifier = classifier or ComponentClassifier()

        self.catalog_stage = catalog_stage or CatalogStage(self.file_manager)
        self.loading_stage = loading_stage or LoadingStage(self.file_manager)
        self.reconciliation_stage = reconciliation_stage or ReconciliationStage()
        self.classification_stage = classification_stage or ClassificationStage(self.classifier)
        self.layers_stage = layers_stage or LayersStage(self.classifier, self.file_manager)
        self.tokens_stage = tokens_stage or TokensStage(self.classifier, self.file_manager)
        self.audit_stage = audit_stage or AuditStage(self.file_manager)

        self.last_trace: Optional[PipelineTrace] = None
        logger.info("[ReorganizationPipeline] Инициализирован (7 этапов)")

    def run(self, export_dir: Path) -> ReorganizationResult:
        """
        Реорганизует папку экспорта.

        Args:
            export_dir: Папка с сырыми артефактами сессии

        Returns:
            ReorganizationResult со статистикой и анализом размеров
        """
        start_time = time.time()
        export_dir = Path(export_dir)
        reorganized_dir = export_dir / REORGANIZED_DIRNAME
        statistics = ReorganizationStatistics()
        trace = PipelineTrace()
        self.last_trace = trace
        warnings = []

        logger.info(f"[ReorganizationPipeline] Старт: {export_dir}")

        try:
            # Вывод предыдущего прохода удаляется целиком
            self.file_manager.remove_directory(reorganized_dir)
            self.file_manager.ensure_directory(reorganized_dir)

            logger.debug("[ReorganizationPipeline] Stage 1/7: Catalog")
            trace.catalog = self.catalog_stage.process(export_dir)
            warnings.extend(trace.catalog.warnings)
            trace.stages_completed += 1

            logger.debug("[ReorganizationPipeline] Stage 2/7: Loading")
            trace.loading = self.loading_stage.process(export_dir)
            warnings.extend(trace.loading.warnings)
            trace.stages_completed += 1

            logger.debug("[ReorganizationPipeline] Stage 3/7: Reconciliation")
            trace.reconciliation = self.reconciliation_stage.process(trace.loading)
            statistics.original_nodes = len(trace.reconciliation.records)
            trace.stages_completed += 1

            logger.debug("[ReorganizationPipeline] Stage 4/7: Classification")
            trace.classification = self.classification_stage.process(trace.reconciliation)
            trace.stages_completed += 1

            logger.debug("[ReorganizationPipeline] Stage 5/7: Layers")
            trace.layers = self.layers_stage.process(trace.reconciliation, reorganized_dir)
            trace.stages_completed += 1

            logger.debug("[ReorganizationPipeline] Stage 6/7: Tokens")
            trace.tokens = self.tokens_stage.process(trace.reconciliation, reorganized_dir)
            trace.stages_completed += 1

            statistics.created_folders = trace.layers.created_folders + trace.tokens.created_folders
            statistics.created_files = trace.layers.created_files + trace.tokens.created_files

            logger.debug("[ReorganizationPipeline] Stage 7/7: Audit")
            trace.audit = self.audit_stage.process(export_dir, reorganized_dir, statistics.original_nodes)
            apply_audit(statistics, trace.audit)
            warnings.extend(trace.audit.warnings)
            trace.stages_completed += 1

        except ReorganizationError as e:
            return self._failed(trace, statistics, warnings, start_time, e)
        except Exception as e:
            return self._failed(trace, statistics, warnings, start_time, ReorganizationError(
                message=f"Непредвиденная ошибка на этапе {trace.stages_completed + 1}/7",
                component="ReorganizationPipeline",
                original_error=e
            ))

        statistics.execution_time = int((time.time() - start_time) * 1000)
        result = ReorganizationResult(
            success=True,
            statistics=statistics,
            sizeAnalysis=trace.audit.size_analysis,
            warnings=warnings,
        )

        try:
            self.audit_stage.write_report(result, reorganized_dir)
        except ReorganizationError as e:
            logger.error(f"[ReorganizationPipeline] Отчёт не сохранён: {e}")
            result.success = False
            result.errors.append(str(e))

        logger.info(
            f"[ReorganizationPipeline] Завершено за {statistics.execution_time}ms: "
            f"папок {statistics.created_folders}, файлов {statistics.created_files}, "
            f"потери {statistics.data_loss}, предупреждений {len(warnings)}"
        )
        return result

    def _failed(
        self,
        trace: PipelineTrace,
        statistics: ReorganizationStatistics,
        warnings: List[str],
        start_time: float,
        error: ReorganizationError,
    ) -> ReorganizationResult:
        """Результат прохода, прерванного ошибкой. Сырые артефакты не затронуты."""
        logger.error(f"[ReorganizationPipeline] Ошибка на этапе {trace.stages_completed + 1}/7: {error}")
        statistics.execution_time = int((time.time() - start_time) * 1000)
        return ReorganizationResult(
            success=False,
            statistics=statistics,
            errors=[str(error)],
            warnings=warnings,
        )
