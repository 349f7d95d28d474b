"""
Integration тесты: полная сессия экспорта через контроллер.

Плагин Figma заменён FakePlugin: контроллер шлёт ему конверты,
тест отвечает на каждую команду по её correlation id.
"""

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from contracts import ReorganizationResult, ReorganizationStatistics
from src.domain.contracts import StageName
from src.export.domain.exceptions import (
    ArtifactWriteError,
    EnvelopeError,
    SessionAbortedError,
    StructureFetchError,
    StructureTimeoutError,
)
from src.export.domain.interfaces import IOutboundChannel
from src.export.infrastructure.artifact_store import ArtifactStore
from src.export.session.controller import CONFLICT_MESSAGE, ExportSessionController
from src.reorganization.infrastructure.classification_rules import ClassificationRules
from src.reorganization.pipeline import ReorganizationPipeline


STRUCTURE = {
    "id": "0:0",
    "name": "Document",
    "type": "DOCUMENT",
    "children": [{
        "id": "0:1",
        "name": "Page 1",
        "type": "CANVAS",
        "children": [{
            "id": "1:1",
            "name": "Screen",
            "type": "FRAME",
            "absoluteBoundingBox": {"x": 0, "y": 0, "width": 375, "height": 812},
            "children": [
                {"id": "1:2", "name": "Title", "type": "TEXT", "characters": "Hello"},
                {"id": "1:3", "name": "Primary Button", "type": "INSTANCE",
                 "children": [{"id": "I1:3;4:5", "name": "Label", "type": "TEXT"}]},
            ],
        }],
    }],
}

# Ответы get_nodes_info; у 1:3 в батче есть потомок, которого нет в структуре
BATCH_DOCUMENTS = {
    "0:0": {"id": "0:0", "name": "Document", "type": "DOCUMENT"},
    "0:1": {"id": "0:1", "name": "Page 1", "type": "CANVAS"},
    "1:1": {"id": "1:1", "name": "Screen", "type": "FRAME",
            "fills": [{"type": "SOLID", "color": {"r": 1, "g": 1, "b": 1}}]},
    "1:2": {"id": "1:2", "name": "Title", "type": "TEXT",
            "style": {"fontFamily": "Inter", "fontSize": 24}},
    "1:3": {"id": "1:3", "name": "Primary Button", "type": "INSTANCE",
            "children": [{"id": "9:9", "name": "Hidden Label", "type": "TEXT"}]},
    "9:9": {"id": "9:9", "name": "Hidden Label", "type": "TEXT"},
}


def plugin_result(command: str, params: dict):
    """Ответ плагина на команду."""
    if command == "read_my_design":
        return STRUCTURE
    if command == "get_nodes_info":
        return [{"nodeId": node_id, "document": BATCH_DOCUMENTS[node_id]} for node_id in params["nodeIds"]]
    if command == "get_styles":
        return {"colors": [{"id": "S:1", "name": "Brand/Red"}], "textStyles": []}
    if command == "get_local_components":
        return {"components": [{"id": "5:1", "name": "Button"}]}
    if command == "get_document_info":
        return {"name": "Test file"}
    if command == "get_annotations":
        return None
    if command == "scan_text_nodes":
        return {"textNodes": [{"id": "1:2", "characters": "Hello"}]}
    if command == "get_selection":
        return {"selection": [{"id": "1:1", "name": "Screen"}]}
    if command == "export_node_as_image":
        return {"imageData": "iVBORw0KGgo=", "mimeType": "image/png"}
    return []


class FakePlugin(IOutboundChannel):
    """Исходящий канал, запоминающий всё отправленное."""

    def __init__(self):
        self.sent = []

    async def send(self, payload):
        self.sent.append(payload)

    @property
    def commands(self):
        return [m for m in self.sent if m.get("type") == "message"]


async def answer_all(controller, plugin, responder=plugin_result):
    """Отвечает на команды по одной, пока сессия активна."""
    answered = 0
    while controller.is_active and answered < len(plugin.commands):
        envelope = plugin.commands[answered]
        answered += 1
        message = envelope["message"]
        await controller.on_response({
            "type": "message",
            "id": envelope["id"],
            "channel": envelope["channel"],
            "message": {
                "id": message["id"],
                "command": message["command"],
                "result": responder(message["command"], message.get("params") or {}),
            },
        })


def make_reorganizer():
    reorganizer = MagicMock()
    reorganizer.run.return_value = ReorganizationResult(
        success=True, statistics=ReorganizationStatistics()
    )
    return reorganizer


def read_json(path):
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


class TestFullSession:
    """Сессия от join до IDLE."""

    def run_session(self, controller):
        plugin = FakePlugin()

        async def scenario():
            result = await controller.on_join(plugin, "figma")
            assert result.accepted
            await answer_all(controller, plugin)
            return await controller.wait_finished()

        return plugin, asyncio.run(scenario())

    def test_command_sequence(self, tmp_path):
        controller = ExportSessionController(ArtifactStore(tmp_path), make_reorganizer(), batch_size=2)

        plugin, _ = self.run_session(controller)

        assert plugin.sent[0] == {
            "type": "system",
            "channel": "figma",
            "message": {"type": "system", "result": True, "channel": "figma"},
        }
        assert [m["message"]["command"] for m in plugin.commands] == [
            "read_my_design",
            "get_styles", "get_local_components", "get_document_info", "get_annotations",
            "get_nodes_info", "get_nodes_info", "get_nodes_info",
            "scan_text_nodes", "scan_nodes_by_types", "get_reactions",
            "get_instance_overrides", "create_connections",
            "get_selection", "export_node_as_image",
            "get_nodes_info",
        ]

    def test_batches_and_rescan(self, tmp_path):
        """Вложенные слои инстансов не запрашиваются; новые ID уходят в пересканирование."""
        controller = ExportSessionController(ArtifactStore(tmp_path), make_reorganizer(), batch_size=2)

        plugin, summary = self.run_session(controller)

        batches = [m for m in plugin.commands if m["message"]["command"] == "get_nodes_info"]
        assert [m["message"]["params"]["nodeIds"] for m in batches] == [
            ["0:0", "0:1"], ["1:1", "1:2"], ["1:3"], ["9:9"],
        ]
        assert [m["id"].split("-")[0] for m in batches] == ["stage4", "stage4", "stage4", "stage6"]
        assert summary.statistics.total_processed_nodes == 6
        assert summary.statistics.rescan_rounds == 1
        assert summary.statistics.node_queue_length == 0
        assert len(list((tmp_path / "batches").glob("*.json"))) == 4

    def test_artifacts_written(self, tmp_path):
        controller = ExportSessionController(ArtifactStore(tmp_path), make_reorganizer(), batch_size=2)

        _, summary = self.run_session(controller)

        assert read_json(tmp_path / "structure" / "document_structure.json") == STRUCTURE
        assert read_json(tmp_path / "styles" / "colors.json") == [{"id": "S:1", "name": "Brand/Red"}]
        assert read_json(tmp_path / "styles" / "typography.json") == []
        assert not (tmp_path / "styles" / "effects.json").exists()
        assert read_json(tmp_path / "components" / "local_components.json")["components"][0]["id"] == "5:1"
        assert read_json(tmp_path / "annotations" / "all_annotations.json") is None
        assert read_json(tmp_path / "nodes" / "text_nodes.json")["textNodes"][0]["id"] == "1:2"
        assert read_json(tmp_path / "images" / "image_1_1.json")["mimeType"] == "image/png"

        statistics = read_json(tmp_path / "metadata" / "export_statistics.json")
        assert statistics["totalProcessedNodes"] == 6
        assert "get_nodes_info" in statistics["commandsUsed"]

        report = read_json(tmp_path / "metadata" / "validation_report.json")
        assert report["structureValidation"]["valid"]
        assert report["fileValidation"]["invalidJsonFiles"] == 0
        assert summary.validation_report["dataAnalysis"]["images"]

    def test_overrides_requested_for_all_document_ids(self, tmp_path):
        controller = ExportSessionController(ArtifactStore(tmp_path), make_reorganizer(), batch_size=2)

        plugin, _ = self.run_session(controller)

        overrides = next(m for m in plugin.commands if m["message"]["command"] == "get_instance_overrides")
        assert overrides["message"]["params"]["nodeIds"] == ["0:0", "0:1", "1:1", "1:2", "1:3", "I1:3;4:5"]

    def test_session_returns_to_idle(self, tmp_path):
        reorganizer = make_reorganizer()
        controller = ExportSessionController(ArtifactStore(tmp_path), reorganizer, batch_size=2)

        _, summary = self.run_session(controller)

        assert not controller.is_active
        assert controller.session.stage == StageName.IDLE
        reorganizer.run.assert_called_once_with(tmp_path)
        assert summary.reorganization.success

    def test_rescan_disabled(self, tmp_path):
        controller = ExportSessionController(
            ArtifactStore(tmp_path), make_reorganizer(), batch_size=2, max_rescan_rounds=0
        )

        plugin, summary = self.run_session(controller)

        assert plugin.commands[-1]["message"]["command"] == "export_node_as_image"
        assert summary.statistics.node_queue_length == 1
        assert summary.statistics.rescan_rounds == 0

    def test_with_reorganization(self, tmp_path):
        """Экспорт и реорганизация одним проходом."""
        ClassificationRules.clear_cache()
        controller = ExportSessionController(ArtifactStore(tmp_path), ReorganizationPipeline(), batch_size=2)

        _, summary = self.run_session(controller)

        assert summary.reorganization.success
        layer_dir = tmp_path / "reorganized" / "layers" / "layer-screen"
        components = read_json(layer_dir / "components.json")
        assert [c["id"] for c in components["buttons"]] == ["1:3"]
        assert (tmp_path / "reorganized" / "reorganization_report.json").is_file()

    def test_rerun_clears_previous_session(self, tmp_path):
        stale = tmp_path / "batches" / "batch_old.json"
        stale.parent.mkdir(parents=True)
        stale.write_text("[]", encoding="utf-8")
        controller = ExportSessionController(ArtifactStore(tmp_path), None, batch_size=2)

        _, summary = self.run_session(controller)

        assert not stale.exists()
        assert summary.reorganization is None


class TestSessionConflicts:
    def test_second_join_rejected(self, tmp_path):
        controller = ExportSessionController(ArtifactStore(tmp_path), None)
        first, second = FakePlugin(), FakePlugin()

        async def scenario():
            await controller.on_join(first, "figma")
            return await controller.on_join(second, "other")

        result = asyncio.run(scenario())

        assert not result.accepted
        assert second.sent == [{"type": "system", "channel": "other", "message": CONFLICT_MESSAGE}]
        assert controller.is_active
        assert controller.session.channel_name == "figma"

    def test_unknown_correlation_id_ignored(self, tmp_path):
        controller = ExportSessionController(ArtifactStore(tmp_path), None)
        plugin = FakePlugin()

        async def scenario():
            await controller.on_join(plugin, "figma")
            await controller.on_response({"type": "message", "message": {"id": "stage9-late-000042", "result": 1}})

        asyncio.run(scenario())

        assert controller.is_active
        assert controller.session.stage == StageName.STRUCTURE_FETCH
        assert len(plugin.commands) == 1


class TestFatalErrors:
    """Фатальные ошибки переводят сессию в IDLE."""

    def test_malformed_envelope(self, tmp_path):
        controller = ExportSessionController(ArtifactStore(tmp_path), None)
        plugin = FakePlugin()

        async def scenario():
            await controller.on_join(plugin, "figma")
            await controller.on_response({"type": "message", "message": {"result": "no id"}})
            with pytest.raises(EnvelopeError):
                await controller.wait_finished()

        asyncio.run(scenario())

        assert not controller.is_active
        assert plugin.sent[-1]["message"].startswith("Export failed:")

    def test_unreadable_message(self, tmp_path):
        controller = ExportSessionController(ArtifactStore(tmp_path), None)
        plugin = FakePlugin()

        async def scenario():
            await controller.on_join(plugin, "figma")
            await controller.on_malformed("{oops", ValueError("bad json"))
            with pytest.raises(EnvelopeError):
                await controller.wait_finished()

        asyncio.run(scenario())

        assert controller.session.stage == StageName.IDLE

    def test_empty_structure_is_fatal(self, tmp_path):
        controller = ExportSessionController(ArtifactStore(tmp_path), None)
        plugin = FakePlugin()

        async def scenario():
            await controller.on_join(plugin, "figma")
            await answer_all(controller, plugin, responder=lambda command, params: None)
            with pytest.raises(StructureFetchError):
                await controller.wait_finished()

        asyncio.run(scenario())

        assert len(plugin.commands) == 1

    def test_structure_timeout(self, tmp_path):
        controller = ExportSessionController(ArtifactStore(tmp_path), None, structure_timeout=0.01)
        plugin = FakePlugin()

        async def scenario():
            await controller.on_join(plugin, "figma")
            with pytest.raises(StructureTimeoutError):
                await asyncio.wait_for(controller.wait_finished(), timeout=2)

        asyncio.run(scenario())

        assert not controller.is_active

    def test_disconnect_aborts(self, tmp_path):
        controller = ExportSessionController(ArtifactStore(tmp_path), None)
        plugin, stranger = FakePlugin(), FakePlugin()

        async def scenario():
            await controller.on_join(plugin, "figma")
            await controller.on_disconnect(stranger)
            assert controller.is_active
            await controller.on_disconnect(plugin)
            with pytest.raises(SessionAbortedError):
                await controller.wait_finished()

        asyncio.run(scenario())

        assert not controller.is_active
        # Записанные до разрыва папки остаются
        assert (tmp_path / "structure").is_dir()

    def test_new_session_after_abort(self, tmp_path):
        controller = ExportSessionController(ArtifactStore(tmp_path), None, batch_size=2)
        plugin = FakePlugin()

        async def scenario():
            await controller.on_join(plugin, "figma")
            await controller.abort("user cancelled")
            retry = FakePlugin()
            result = await controller.on_join(retry, "figma")
            await answer_all(controller, retry)
            return result, await controller.wait_finished()

        result, summary = asyncio.run(scenario())

        assert result.accepted
        assert summary.statistics.total_processed_nodes == 6

    def test_store_reset_failure(self, tmp_path):
        """Папку экспорта не удалось подготовить: подключение отклонено, сессия в IDLE."""

        class LockedStore(ArtifactStore):
            def reset(self):
                raise ArtifactWriteError(message="export dir is read-only", component="Test")

        controller = ExportSessionController(LockedStore(tmp_path), None)
        plugin = FakePlugin()

        async def scenario():
            result = await controller.on_join(plugin, "figma")
            with pytest.raises(ArtifactWriteError):
                await controller.wait_finished()
            return result

        result = asyncio.run(scenario())

        assert not result.accepted
        assert "read-only" in result.message
        assert not controller.is_active
        assert controller.session.stage == StageName.IDLE
        assert plugin.commands == []
        assert plugin.sent[-1]["message"].startswith("Export failed:")

    def test_unrecognized_structure_saved_before_failure(self, tmp_path):
        """Нераспознанный ответ структуры всё равно записывается на диск."""
        controller = ExportSessionController(ArtifactStore(tmp_path), None)
        plugin = FakePlugin()

        async def scenario():
            await controller.on_join(plugin, "figma")
            await answer_all(controller, plugin, responder=lambda command, params: "oops")
            with pytest.raises(StructureFetchError):
                await controller.wait_finished()

        asyncio.run(scenario())

        assert read_json(tmp_path / "structure" / "document_structure.json") == "oops"
        assert controller.session.stage == StageName.IDLE
        assert len(plugin.commands) == 1


class TestArtifactPersistence:
    """Каждый ответ записывается до того, как учитывается трекером."""

    def test_write_failure_mid_session(self, tmp_path):
        class FailingStore(ArtifactStore):
            def save(self, category, name, data):
                if name == "document_info.json":
                    raise ArtifactWriteError(message="disk full", component="Test")
                return super().save(category, name, data)

        controller = ExportSessionController(FailingStore(tmp_path), make_reorganizer(), batch_size=2)
        plugin = FakePlugin()

        async def scenario():
            await controller.on_join(plugin, "figma")
            await answer_all(controller, plugin)
            with pytest.raises(ArtifactWriteError):
                await controller.wait_finished()

        asyncio.run(scenario())

        assert not controller.is_active
        assert controller.session.stage == StageName.IDLE
        assert plugin.sent[-1]["message"].startswith("Export failed:")
        # Уже записанные артефакты остаются на диске
        assert read_json(tmp_path / "structure" / "document_structure.json") == STRUCTURE
        assert read_json(tmp_path / "styles" / "colors.json") == [{"id": "S:1", "name": "Brand/Red"}]
        assert not (tmp_path / "metadata" / "document_info.json").exists()
        assert not (tmp_path / "annotations" / "all_annotations.json").exists()
        assert not list((tmp_path / "batches").glob("*.json"))

    def test_save_precedes_every_count(self, tmp_path):
        events = []

        class RecordingStore(ArtifactStore):
            def save(self, category, name, data):
                path = super().save(category, name, data)
                events.append(("save", name))
                return path

        controller = ExportSessionController(RecordingStore(tmp_path), None, batch_size=2)
        plugin = FakePlugin()

        async def scenario():
            await controller.on_join(plugin, "figma")
            tracker = controller.session.tracker
            record_response = tracker.record_response

            def counting(stage):
                events.append(("count", stage))
                return record_response(stage)

            tracker.record_response = counting
            await answer_all(controller, plugin)
            return await controller.wait_finished()

        asyncio.run(scenario())

        counts = [i for i, (kind, _) in enumerate(events) if kind == "count"]
        assert len(counts) == len(plugin.commands)
        for index in counts:
            assert events[index - 1][0] == "save"
        assert events[:2] == [("save", "document_structure.json"), ("count", StageName.STRUCTURE_FETCH)]


class TestReorganizationFailures:
    """Сбой реорганизации не мешает сессии завершиться."""

    def test_style_reference_string(self, tmp_path):
        """Нода со ссылкой на стиль документа вместо объекта стиля."""
        ClassificationRules.clear_cache()
        controller = ExportSessionController(ArtifactStore(tmp_path), ReorganizationPipeline(), batch_size=2)
        plugin = FakePlugin()

        def responder(command, params):
            result = plugin_result(command, params)
            if command == "get_nodes_info":
                for entry in result:
                    if entry["nodeId"] == "1:2":
                        entry["document"] = dict(entry["document"], style="S:abc123,")
            return result

        async def scenario():
            await controller.on_join(plugin, "figma")
            await answer_all(controller, plugin, responder=responder)
            summary = await controller.wait_finished()
            retry = await controller.on_join(FakePlugin(), "figma")
            await controller.abort("test done")
            return summary, retry

        summary, retry = asyncio.run(scenario())

        assert summary.reorganization.success
        assert summary.warnings == []
        assert read_json(tmp_path / "reorganized" / "design-tokens" / "typography.json") == []
        assert retry.accepted

    def test_reorganizer_exception(self, tmp_path):
        reorganizer = MagicMock()
        reorganizer.run.side_effect = RuntimeError("boom")
        controller = ExportSessionController(ArtifactStore(tmp_path), reorganizer, batch_size=2)
        plugin = FakePlugin()

        async def scenario():
            await controller.on_join(plugin, "figma")
            await answer_all(controller, plugin)
            summary = await controller.wait_finished()
            retry = await controller.on_join(FakePlugin(), "figma")
            await controller.abort("test done")
            return summary, retry

        summary, retry = asyncio.run(scenario())

        assert not summary.reorganization.success
        assert "boom" in summary.reorganization.errors[0]
        assert summary.warnings == ["Реорганизация завершилась с ошибкой"]
        assert (tmp_path / "metadata" / "export_statistics.json").is_file()
        assert retry.accepted
