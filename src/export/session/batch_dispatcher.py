"""
Диспетчер батчей get_nodes_info.

FIFO очередь ID нод, которая выдаётся батчами фиксированного размера.
Одновременно в полёте не более одного батча: плагин однопоточный
и не имеет собственной очереди.
"""

from collections import deque
from typing import Callable, Deque, Iterable, List, Optional, Set

from loguru import logger

from src.domain.contracts import Batch
from ..domain.exceptions import BatchInFlightError


class BatchDispatcher:
    """
    Очередь ID нод с выдачей батчей по одному.

    Args:
        batch_size: Максимальный размер батча
        next_correlation_id: Генератор correlation id для нового батча
    """

    def __init__(self, batch_size: int, next_correlation_id: Callable[[], str]):
        if batch_size < 1:
            raise ValueError(f"batch_size должен быть >= 1, получено: {batch_size}")
        self.batch_size = batch_size
        self._next_correlation_id = next_correlation_id
        self._queue: Deque[str] = deque()
        self._queued: Set[str] = set()
        self._processed: Set[str] = set()
        self._in_flight: Optional[Batch] = None

    @property
    def processed(self) -> Set[str]:
        """ID, уже отправленные хотя бы в одном батче (только растёт)."""
        return self._processed

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    @property
    def in_flight(self) -> Optional[Batch]:
        return self._in_flight

    def enqueue(self, node_ids: Iterable[str]) -> List[str]:
        """
        Добавляет в очередь ID, которые ещё не обработаны и не стоят в очереди.

        Args:
            node_ids: Кандидаты в порядке обнаружения

        Returns:
            Действительно добавленные ID
        """
        added = []
        for node_id in node_ids:
            if node_id in self._processed or node_id in self._queued:
                continue
            self._queue.append(node_id)
            self._queued.add(node_id)
            added.append(node_id)
        if added:
            logger.debug(f"[BatchDispatcher] В очередь добавлено {len(added)} ID, всего: {len(self._queue)}")
        return added

    def batches_needed(self) -> int:
        """Сколько батчей нужно, чтобы опустошить текущую очередь."""
        return -(-len(self._queue) // self.batch_size)

    def dispatch_next(self) -> Optional[Batch]:
        """
        Забирает из очереди следующий батч.

        ID помечаются обработанными до отправки, чтобы поздний
        дублирующий ответ не вернул их в очередь.

        Returns:
            Batch или None, если очередь пуста (стадия исчерпана)

        Raises:
            BatchInFlightError: Если предыдущий батч ещё не разрешён
        """
        if self._in_flight is not None:
            raise BatchInFlightError(
                message=f"Батч {self._in_flight.correlation_id} ещё ожидает ответа",
                component="BatchDispatcher"
            )
        if not self._queue:
            return None

        node_ids = []
        while self._queue and len(node_ids) < self.batch_size:
            node_id = self._queue.popleft()
            self._queued.discard(node_id)
            self._processed.add(node_id)
            node_ids.append(node_id)

        self._in_flight = Batch(correlation_id=self._next_correlation_id(), node_ids=node_ids)
        logger.debug(
            f"[BatchDispatcher] Батч {self._in_flight.correlation_id}: {len(node_ids)} нод, "
            f"осталось в очереди: {len(self._queue)}"
        )
        return self._in_flight

    def on_batch_resolved(self, correlation_id: str) -> bool:
        """
        Снимает отметку "в полёте" с батча.

        Returns:
            True, если correlation id совпал с батчем в полёте
        """
        if self._in_flight is None or self._in_flight.correlation_id != correlation_id:
            return False
        self._in_flight = None
        return True

    def discard_in_flight(self) -> Optional[Batch]:
        """Отбрасывает батч в полёте (отмена сессии). Его ID остаются обработанными."""
        batch, self._in_flight = self._in_flight, None
        if batch is not None:
            logger.warning(f"[BatchDispatcher] Батч {batch.correlation_id} отброшен")
        return batch
