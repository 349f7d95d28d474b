"""
Агрегат состояния сессии экспорта.

Всё изменяемое состояние одной сессии собрано в ExportSession.
Поля меняет только ExportSessionController; reset() перезаряжает
агрегат для следующей сессии.
"""

import time
from typing import Any, Dict, List, Optional

from src.domain.contracts import PendingCommand, StageName
from .batch_dispatcher import BatchDispatcher
from .commands import CommandSpec, KIND_NODES, STAGE_PREFIXES
from .stage_tracker import StageTracker


class ExportSession:
    """
    Состояние одной сессии экспорта.

    Args:
        batch_size: Размер батча get_nodes_info
    """

    def __init__(self, batch_size: int):
        self.batch_size = batch_size
        self.tracker = StageTracker()
        self.reset()

    def reset(self, channel_name: Optional[str] = None) -> None:
        """Сбрасывает всё состояние сессии."""
        self.active = False
        self.channel_name = channel_name
        self.started_at = time.monotonic()
        self.tracker.reset()
        self.dispatcher = BatchDispatcher(self.batch_size, self._next_batch_correlation_id)
        self.pending: Dict[str, PendingCommand] = {}
        self.document_structure: Any = None
        self.document_node_ids: List[str] = []
        self.selected_node_ids: List[str] = []
        self.commands_used: List[str] = []
        self.saved_files: List[str] = []
        self.batches_sent = 0
        self.rescan_round = 0
        self._sequence = 0

    @property
    def stage(self) -> StageName:
        return self.tracker.current

    def next_correlation_id(self, stage: StageName, kind: str) -> str:
        """Correlation id с префиксом стадии и сквозным номером сессии."""
        self._sequence += 1
        return f"{STAGE_PREFIXES[stage]}-{kind}-{self._sequence:06d}"

    def _next_batch_correlation_id(self) -> str:
        return self.next_correlation_id(self.tracker.current, KIND_NODES)

    def register(self, spec: CommandSpec, correlation_id: Optional[str] = None) -> PendingCommand:
        """
        Регистрирует отправляемую команду в реестре ожидания.

        Args:
            spec: Команда
            correlation_id: Готовый id (для батчей, его выдаёт диспетчер)

        Returns:
            PendingCommand текущей стадии
        """
        stage = self.tracker.current
        pending = PendingCommand(
            correlation_id=correlation_id or self.next_correlation_id(stage, spec.kind),
            stage=stage,
            command=spec.command,
            kind=spec.kind,
            params=spec.params or {},
        )
        self.pending[pending.correlation_id] = pending
        if spec.command.value not in self.commands_used:
            self.commands_used.append(spec.command.value)
        return pending

    def resolve(self, correlation_id: str) -> Optional[PendingCommand]:
        """Снимает команду с ожидания; None для неизвестного или позднего id."""
        return self.pending.pop(correlation_id, None)

    def record_saved(self, *paths: Any) -> None:
        self.saved_files.extend(str(path) for path in paths)

    def duration_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)
