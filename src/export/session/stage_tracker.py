"""
Трекер стадий сессии экспорта.

Переходы управляются только счётчиками ответов, а не временем:
стадия объявляет ожидаемое число ответов и завершается, когда
столько ответов, сопоставленных именно с ней, получено.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from loguru import logger

from src.domain.contracts import STAGE_ORDER, StageName
from ..domain.exceptions import StageTransitionError


@dataclass
class StageProgress:
    """Счётчик ответов одной стадии."""
    stage: StageName
    expected: int = 0
    received: int = 0
    rounds: int = 1

    @property
    def is_complete(self) -> bool:
        return self.received >= self.expected

    def to_dict(self) -> Dict[str, int]:
        return {"expected": self.expected, "received": self.received, "rounds": self.rounds}


class StageTracker:
    """Упорядоченный список стадий с ожидаемыми счётчиками ответов."""

    def __init__(self):
        self.current: StageName = StageName.IDLE
        self._progress: Dict[StageName, StageProgress] = {}

    def reset(self) -> None:
        """Возвращает трекер в IDLE (исходное и терминальное состояние)."""
        self.current = StageName.IDLE
        self._progress = {}

    def next_stage(self, stage: Optional[StageName] = None) -> StageName:
        """Стадия, следующая за указанной (по умолчанию за текущей)."""
        stage = stage or self.current
        if stage == StageName.IDLE:
            return StageName.INIT
        return STAGE_ORDER[STAGE_ORDER.index(stage) + 1]

    def enter(self, stage: StageName, expected: int) -> StageProgress:
        """
        Делает стадию активной.

        Args:
            stage: Стадия; должна быть непосредственно следующей за текущей
            expected: Ожидаемое число ответов (0 = стадия сразу завершена)

        Returns:
            Счётчик новой стадии

        Raises:
            StageTransitionError: При переходе вне порядка
        """
        if expected < 0:
            raise StageTransitionError(
                message=f"Отрицательное число ожидаемых ответов для {stage.value}: {expected}",
                component="StageTracker"
            )
        if stage != self.next_stage():
            raise StageTransitionError(
                message=f"Недопустимый переход {self.current.value} -> {stage.value}",
                component="StageTracker"
            )

        self.current = stage
        progress = StageProgress(stage=stage, expected=expected)
        self._progress[stage] = progress
        logger.info(f"[StageTracker] Стадия {stage.value}: ожидается ответов {expected}")
        return progress

    def record_response(self, stage: StageName) -> bool:
        """
        Учитывает ответ, сопоставленный со стадией.

        Ответы чужих стадий не учитываются.

        Returns:
            True, если текущая стадия завершена этим ответом
        """
        if stage != self.current:
            logger.debug(
                f"[StageTracker] Ответ стадии {stage.value} проигнорирован, текущая: {self.current.value}"
            )
            return False

        progress = self._progress[stage]
        progress.received += 1
        logger.debug(f"[StageTracker] {stage.value}: {progress.received}/{progress.expected}")
        return progress.is_complete

    def extend_expected(self, count: int) -> None:
        """
        Увеличивает ожидаемое число ответов текущей стадии.

        Разрешено только для SELECTION_AND_IMAGES: число изображений
        известно лишь после ответа на get_selection.

        Raises:
            StageTransitionError: Для любой другой стадии
        """
        if self.current != StageName.SELECTION_AND_IMAGES:
            raise StageTransitionError(
                message=f"Стадия {self.current.value} не допускает изменения ожидаемого числа ответов",
                component="StageTracker"
            )
        self._progress[self.current].expected += count

    def restart_round(self, expected: int) -> StageProgress:
        """
        Начинает новый раунд RECURSIVE_RESCAN с новым фиксированным счётчиком.

        Raises:
            StageTransitionError: Если текущая стадия не RECURSIVE_RESCAN
        """
        if self.current != StageName.RECURSIVE_RESCAN:
            raise StageTransitionError(
                message=f"Повторный раунд невозможен в стадии {self.current.value}",
                component="StageTracker"
            )
        progress = self._progress[self.current]
        progress.expected = expected
        progress.received = 0
        progress.rounds += 1
        logger.info(f"[StageTracker] Раунд {progress.rounds} стадии {self.current.value}: ожидается {expected}")
        return progress

    @property
    def is_current_complete(self) -> bool:
        progress = self._progress.get(self.current)
        return progress is not None and progress.is_complete

    def progress(self, stage: Optional[StageName] = None) -> Optional[StageProgress]:
        return self._progress.get(stage or self.current)

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        """Счётчики всех пройденных стадий (для статистики)."""
        return {stage.value: progress.to_dict() for stage, progress in self._progress.items()}
