"""
Контроллер сессии экспорта.

Ведёт плагин Figma по стадиям:
    INIT -> STRUCTURE_FETCH -> METADATA_FANOUT -> RECURSIVE_NODE_BATCHES
    -> SPECIALIZED_SCANS -> SELECTION_AND_IMAGES -> RECURSIVE_RESCAN
    -> FINALIZING -> IDLE

Каждый ответ сначала записывается в ArtifactStore и только потом
учитывается трекером стадий. Все публичные методы сериализованы
одним asyncio.Lock, поэтому состояние сессии меняется строго
в порядке поступления событий.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger
from pydantic import ValidationError

from config.settings import (
    BATCH_SIZE,
    LOG_PREVIEW_LENGTH,
    MAX_RESCAN_ROUNDS,
    STRUCTURE_TIMEOUT_SECONDS,
)
from contracts import (
    ExportStatistics,
    ReorganizationResult,
    ReorganizationStatistics,
    ResponseEnvelope,
    SystemMessage,
)
from src.domain.contracts import PendingCommand, StageName
from ..domain.exceptions import (
    ArtifactWriteError,
    EnvelopeError,
    ExportError,
    SessionAbortedError,
    StructureFetchError,
    StructureTimeoutError,
)
from ..domain.interfaces import IOutboundChannel, IReorganizer
from ..infrastructure.artifact_store import ArtifactStore
from . import commands
from .commands import CommandSpec
from .export_session import ExportSession
from .finalizer import build_export_statistics, build_validation_report
from .node_id_extractor import (
    collect_fragment_node_ids,
    extract_structure_node_ids,
    is_fetchable_node_id,
    normalize_structure,
)

CONFLICT_MESSAGE = "Export already in progress, please wait for completion"


@dataclass
class JoinResult:
    """Результат запроса плагина на подключение."""
    accepted: bool
    message: str


@dataclass
class ExportSummary:
    """Итог завершённой сессии."""
    statistics: ExportStatistics
    validation_report: Dict[str, Any]
    reorganization: Optional[ReorganizationResult] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "statistics": self.statistics.model_dump(by_alias=True),
            "validation_report": self.validation_report,
            "reorganization": self.reorganization.to_dict() if self.reorganization else None,
            "warnings": self.warnings,
        }


def _preview(data: Any) -> str:
    text = repr(data)
    return text if len(text) <= LOG_PREVIEW_LENGTH else text[:LOG_PREVIEW_LENGTH] + "..."


class ExportSessionController:
    """
    Единственный владелец ExportSession.

    Args:
        store: Хранилище артефактов
        reorganizer: Проход реорганизации после финализации (опционально)
        batch_size: Размер батча get_nodes_info
        structure_timeout: Сколько ждать ответа на чтение структуры, секунды
        max_rescan_rounds: Предел раундов пересканирования
    """

    def __init__(
        self,
        store: ArtifactStore,
        reorganizer: Optional[IReorganizer] = None,
        batch_size: int = BATCH_SIZE,
        structure_timeout: float = STRUCTURE_TIMEOUT_SECONDS,
        max_rescan_rounds: int = MAX_RESCAN_ROUNDS,
    ):
        self.store = store
        self.reorganizer = reorganizer
        self.structure_timeout = structure_timeout
        self.max_rescan_rounds = max_rescan_rounds
        self.session = ExportSession(batch_size)
        self._channel: Optional[IOutboundChannel] = None
        self._lock = asyncio.Lock()
        self._timeout_handle: Optional[asyncio.TimerHandle] = None
        self._finished: Optional[asyncio.Future] = None

    @property
    def is_active(self) -> bool:
        return self.session.active

    # ------------------------------------------------------------------
    # Публичные события
    # ------------------------------------------------------------------

    async def on_join(self, channel: IOutboundChannel, channel_name: str) -> JoinResult:
        """
        Плагин подключился к каналу: начинает новую сессию.

        Args:
            channel: Исходящий канал к этому плагину
            channel_name: Имя канала

        Returns:
            JoinResult; accepted=False, если сессия уже идёт или папку экспорта не удалось подготовить
        """
        async with self._lock:
            if self.session.active:
                logger.warning(f"[ExportController] Отклонено подключение к '{channel_name}': сессия уже активна")
                await channel.send(SystemMessage(channel=channel_name, message=CONFLICT_MESSAGE).to_wire())
                return JoinResult(accepted=False, message=CONFLICT_MESSAGE)

            self.session.reset(channel_name)
            self.session.active = True
            self._channel = channel
            self._finished = asyncio.get_running_loop().create_future()

            try:
                self.store.reset()
            except ArtifactWriteError as e:
                await self._fail(e)
                return JoinResult(accepted=False, message=f"Export failed: {e.message}")

            logger.info(f"[ExportController] Старт сессии экспорта, канал: {channel_name}")
            await channel.send(SystemMessage(
                channel=channel_name,
                message={"type": "system", "result": True, "channel": channel_name},
            ).to_wire())

            try:
                self.session.tracker.enter(StageName.INIT, 0)
                await self._advance()
            except ExportError as e:
                await self._fail(e)
            return JoinResult(accepted=True, message=f"Joined channel: {channel_name}")

    async def on_response(self, data: Dict[str, Any]) -> None:
        """
        Обрабатывает входящий ответ плагина.

        Некорректный конверт и ошибки записи фатальны для сессии;
        ответы с неизвестным или поздним correlation id игнорируются.
        """
        async with self._lock:
            if not self.session.active:
                logger.warning(f"[ExportController] Ответ вне сессии проигнорирован: {_preview(data)}")
                return

            try:
                envelope = ResponseEnvelope.model_validate(data)
            except ValidationError as e:
                await self._fail(EnvelopeError(
                    message="Некорректный конверт ответа",
                    component="ExportController",
                    original_error=e
                ))
                return

            pending = self.session.resolve(envelope.correlation_id)
            if pending is None:
                logger.warning(
                    f"[ExportController] Неизвестный или поздний correlation id: {envelope.correlation_id}"
                )
                return

            if envelope.message.error:
                logger.warning(
                    f"[ExportController] Плагин вернул ошибку на {pending.command.value}: "
                    f"{_preview(envelope.message.error)}"
                )
            logger.debug(f"[ExportController] Ответ {pending.correlation_id}: {_preview(envelope.result)}")
            try:
                await self._handle(pending, envelope.result)
            except ExportError as e:
                await self._fail(e)
            except Exception as e:
                await self._fail(ExportError(
                    message=f"Непредвиденная ошибка обработки ответа {pending.correlation_id}",
                    component="ExportController",
                    original_error=e
                ))

    async def on_malformed(self, raw: str, error: Exception) -> None:
        """Входящее сообщение не разбирается как JSON: фатально для активной сессии."""
        async with self._lock:
            if not self.session.active:
                logger.warning(f"[ExportController] Нечитаемое сообщение вне сессии: {_preview(raw)}")
                return
            await self._fail(EnvelopeError(
                message=f"Нечитаемое входящее сообщение: {_preview(raw)}",
                component="ExportController",
                original_error=error
            ))

    async def on_disconnect(self, channel: IOutboundChannel) -> None:
        """Соединение плагина закрыто."""
        async with self._lock:
            if self.session.active and channel is self._channel:
                self._abort(SessionAbortedError(
                    message="Соединение с плагином закрыто",
                    component="ExportController"
                ))

    async def abort(self, reason: str) -> None:
        """Явная отмена сессии: сразу в IDLE, батч в полёте отбрасывается."""
        async with self._lock:
            if self.session.active:
                self._abort(SessionAbortedError(message=reason, component="ExportController"))

    async def wait_finished(self) -> ExportSummary:
        """
        Ожидает завершения текущей сессии.

        Returns:
            ExportSummary завершённой сессии

        Raises:
            ExportError: Фатальная ошибка или отмена сессии
        """
        if self._finished is None:
            raise ExportError(message="Сессия экспорта не начиналась", component="ExportController")
        return await self._finished

    # ------------------------------------------------------------------
    # Обработка ответов
    # ------------------------------------------------------------------

    async def _handle(self, pending: PendingCommand, result: Any) -> None:
        stage = pending.stage
        tracker = self.session.tracker

        if stage == StageName.STRUCTURE_FETCH:
            self._handle_structure(result)
        elif stage == StageName.METADATA_FANOUT:
            self._persist_metadata(pending.kind, result)
        elif stage in (StageName.RECURSIVE_NODE_BATCHES, StageName.RECURSIVE_RESCAN):
            self._handle_batch(pending, result)
        elif stage == StageName.SPECIALIZED_SCANS:
            self._persist_scan(pending.kind, result)
        elif stage == StageName.SELECTION_AND_IMAGES:
            if pending.kind == commands.KIND_SELECTION:
                selected = self._handle_selection(result)
                if stage == tracker.current and selected:
                    tracker.extend_expected(len(selected))
                    for node_id in selected:
                        await self._send(commands.image_export_command(node_id))
            else:
                self.session.record_saved(self.store.save_node_image(pending.params["nodeId"], result))

        if not tracker.record_response(stage):
            if stage == tracker.current and stage in (
                StageName.RECURSIVE_NODE_BATCHES, StageName.RECURSIVE_RESCAN
            ):
                await self._dispatch_batch()
            return

        if stage == StageName.RECURSIVE_RESCAN and await self._next_rescan_round():
            return
        await self._advance()

    def _handle_structure(self, result: Any) -> None:
        self._cancel_timeout()
        if result is None:
            raise StructureFetchError(
                message="Плагин не вернул структуру документа",
                component="ExportController"
            )
        self.session.record_saved(self.store.save_document_structure(result))
        structure = normalize_structure(result)
        self.session.document_structure = result

        node_ids = extract_structure_node_ids(result)
        self.session.document_node_ids = node_ids
        queued = self.session.dispatcher.enqueue(node_id for node_id in node_ids if is_fetchable_node_id(node_id))
        logger.info(
            f"[ExportController] Структура ({structure.shape.value}): ID нод {len(node_ids)}, "
            f"в очередь {len(queued)}"
        )

    def _persist_metadata(self, kind: str, result: Any) -> None:
        if kind == commands.KIND_STYLES:
            self.session.record_saved(*self.store.save_styles(result))
        elif kind == commands.KIND_COMPONENTS:
            self.session.record_saved(self.store.save_local_components(result))
        elif kind == commands.KIND_DOCINFO:
            self.session.record_saved(self.store.save_document_info(result))
        elif kind == commands.KIND_ANNOTATIONS:
            self.session.record_saved(self.store.save_annotations(result))
        if result is None:
            logger.warning(f"[ExportController] Пустой ответ {kind}: 0 элементов")

    def _persist_scan(self, kind: str, result: Any) -> None:
        savers = {
            commands.KIND_TEXT: self.store.save_text_nodes,
            commands.KIND_TYPES: self.store.save_nodes_by_types,
            commands.KIND_REACTIONS: self.store.save_reactions,
            commands.KIND_OVERRIDES: self.store.save_instance_overrides,
            commands.KIND_CONNECTIONS: self.store.save_connections,
        }
        self.session.record_saved(savers[kind](result))
        if result is None:
            logger.warning(f"[ExportController] Пустой ответ {kind}: 0 элементов")

    def _handle_batch(self, pending: PendingCommand, result: Any) -> None:
        self.session.record_saved(self.store.save_batch(pending.correlation_id, result))
        self.session.dispatcher.on_batch_resolved(pending.correlation_id)

        discovered = collect_fragment_node_ids(result)
        added = self.session.dispatcher.enqueue(
            node_id for node_id in discovered if is_fetchable_node_id(node_id)
        )
        if added:
            logger.info(f"[ExportController] Батч {pending.correlation_id}: найдено новых ID {len(added)}")

    def _handle_selection(self, result: Any) -> List[str]:
        self.session.record_saved(self.store.save_selection(result))
        selection = result.get("selection") if isinstance(result, dict) else None
        if not isinstance(selection, list):
            logger.warning("[ExportController] Выделение пусто: изображения не экспортируются")
            return []

        selected = []
        for node in selection:
            node_id = node.get("id") if isinstance(node, dict) else None
            if isinstance(node_id, str) and node_id and node_id not in selected:
                selected.append(node_id)
        self.session.selected_node_ids = selected
        logger.info(f"[ExportController] Выделено корневых фреймов: {len(selected)}")
        return selected

    # ------------------------------------------------------------------
    # Переходы между стадиями
    # ------------------------------------------------------------------

    async def _advance(self) -> None:
        """Переходит к следующим стадиям, пропуская стадии без ожидаемых ответов."""
        tracker = self.session.tracker
        while True:
            stage = tracker.next_stage()
            if stage == StageName.FINALIZING:
                await self._finalize()
                return

            await self._enter(stage)
            if not tracker.is_current_complete:
                return
            logger.info(f"[ExportController] Стадия {stage.value} без ожидаемых ответов пропущена")

    async def _enter(self, stage: StageName) -> None:
        tracker = self.session.tracker
        dispatcher = self.session.dispatcher

        if stage == StageName.STRUCTURE_FETCH:
            tracker.enter(stage, 1)
            await self._send(commands.structure_command())
            self._arm_timeout()
        elif stage == StageName.METADATA_FANOUT:
            specs = commands.metadata_commands()
            tracker.enter(stage, len(specs))
            for spec in specs:
                await self._send(spec)
        elif stage in (StageName.RECURSIVE_NODE_BATCHES, StageName.RECURSIVE_RESCAN):
            if stage == StageName.RECURSIVE_RESCAN and self.max_rescan_rounds < 1:
                logger.warning("[ExportController] Пересканирование отключено (max_rescan_rounds=0)")
                tracker.enter(stage, 0)
                return
            # Счётчик фиксируется при входе; ID, найденные внутри стадии, уйдут в следующую
            tracker.enter(stage, dispatcher.batches_needed())
            if stage == StageName.RECURSIVE_RESCAN and dispatcher.pending_count:
                self.session.rescan_round = 1
            self.session.batches_sent = 0
            await self._dispatch_batch()
        elif stage == StageName.SPECIALIZED_SCANS:
            specs = commands.specialized_scan_commands(self.session.document_node_ids)
            tracker.enter(stage, len(specs))
            for spec in specs:
                await self._send(spec)
        elif stage == StageName.SELECTION_AND_IMAGES:
            tracker.enter(stage, 1)
            await self._send(commands.selection_command())
        else:
            tracker.enter(stage, 0)

    async def _dispatch_batch(self) -> None:
        progress = self.session.tracker.progress()
        if progress is None or self.session.batches_sent >= progress.expected:
            return
        batch = self.session.dispatcher.dispatch_next()
        if batch is None:
            return
        self.session.batches_sent += 1
        await self._send(commands.nodes_info_command(batch.node_ids), correlation_id=batch.correlation_id)

    async def _next_rescan_round(self) -> bool:
        """
        Запускает следующий раунд пересканирования, если есть новые ID.

        Единственное естественное завершение: новых ID нет.
        Раунды ограничены max_rescan_rounds.
        """
        dispatcher = self.session.dispatcher
        if not dispatcher.pending_count:
            logger.info("[ExportController] Новых ID нет, пересканирование завершено")
            return False
        if self.session.rescan_round >= self.max_rescan_rounds:
            logger.warning(
                f"[ExportController] Достигнут предел раундов пересканирования ({self.max_rescan_rounds}), "
                f"не запрошено ID: {dispatcher.pending_count}"
            )
            return False

        self.session.rescan_round += 1
        self.session.tracker.restart_round(dispatcher.batches_needed())
        self.session.batches_sent = 0
        await self._dispatch_batch()
        return True

    async def _finalize(self) -> None:
        tracker = self.session.tracker
        tracker.enter(StageName.FINALIZING, 0)
        self._cancel_timeout()

        statistics = build_export_statistics(self.session)
        self.session.record_saved(self.store.save_export_statistics(statistics.model_dump(by_alias=True)))
        validation_report = build_validation_report(self.store)
        self.session.record_saved(self.store.save_validation_report(validation_report))

        logger.info(
            f"[ExportController] Экспорт завершён: нод {statistics.total_processed_nodes}, "
            f"файлов {statistics.saved_files_count}, {statistics.export_duration / 1000:.1f} s"
        )

        summary = ExportSummary(statistics=statistics, validation_report=validation_report)
        if self.reorganizer is not None:
            try:
                summary.reorganization = self.reorganizer.run(self.store.export_dir)
            except Exception as e:
                logger.error(f"[ExportController] Исключение в реорганизации: {type(e).__name__}: {e}")
                summary.reorganization = ReorganizationResult(
                    success=False,
                    statistics=ReorganizationStatistics(),
                    errors=[f"{type(e).__name__}: {e}"],
                )
            if not summary.reorganization.success:
                summary.warnings.append("Реорганизация завершилась с ошибкой")
                logger.error(
                    f"[ExportController] Реорганизация не удалась: {summary.reorganization.errors}"
                )

        tracker.enter(StageName.IDLE, 0)
        self.session.active = False
        self._channel = None
        if self._finished is not None and not self._finished.done():
            self._finished.set_result(summary)

    # ------------------------------------------------------------------
    # Отправка, таймаут, отмена
    # ------------------------------------------------------------------

    async def _send(self, spec: CommandSpec, correlation_id: Optional[str] = None) -> PendingCommand:
        pending = self.session.register(spec, correlation_id)
        envelope = commands.build_envelope(pending, self.session.channel_name or "")
        logger.debug(f"[ExportController] -> {pending.command.value} ({pending.correlation_id})")
        await self._channel.send(envelope.to_wire())
        return pending

    def _arm_timeout(self) -> None:
        self._cancel_timeout()
        loop = asyncio.get_running_loop()
        self._timeout_handle = loop.call_later(self.structure_timeout, self._on_structure_timeout)

    def _cancel_timeout(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def _on_structure_timeout(self) -> None:
        self._timeout_handle = None
        asyncio.ensure_future(self._expire_structure())

    async def _expire_structure(self) -> None:
        async with self._lock:
            if self.session.active and self.session.stage == StageName.STRUCTURE_FETCH:
                await self._fail(StructureTimeoutError(
                    message=f"Нет ответа на чтение структуры за {self.structure_timeout} s",
                    component="ExportController"
                ))

    async def _fail(self, error: ExportError) -> None:
        logger.error(f"[ExportController] Фатальная ошибка сессии: {error}")
        channel = self._channel
        self._abort(error)
        if channel is not None:
            try:
                await channel.send(SystemMessage(message=f"Export failed: {error.message}").to_wire())
            except Exception as e:
                logger.warning(f"[ExportController] Не удалось уведомить плагин об ошибке: {e}")

    def _abort(self, error: ExportError) -> None:
        """Переводит сессию сразу в IDLE. Записанные артефакты остаются на диске."""
        stage = self.session.stage
        self._cancel_timeout()
        self.session.dispatcher.discard_in_flight()
        self.session.pending.clear()
        self.session.tracker.reset()
        self.session.active = False
        self._channel = None
        logger.warning(f"[ExportController] Сессия прервана в стадии {stage.value}: {error.message}")
        if self._finished is not None and not self._finished.done():
            self._finished.set_exception(error)
            # Ошибка уже залогирована; ожидающий wait_finished() всё равно её получит
            self._finished.exception()
