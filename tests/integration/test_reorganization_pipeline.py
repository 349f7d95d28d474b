"""
Integration тесты: ReorganizationPipeline на папке экспорта.

Проверяет:
1. Слои, токены и отчёт в reorganized/
2. Счётчики статистики и предупреждение о потере нод
3. Идемпотентность повторного запуска
4. Сырые артефакты не изменяются
"""

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from src.reorganization.domain.exceptions import ReorganizationWriteError
from src.reorganization.infrastructure.classification_rules import ClassificationRules
from src.reorganization.infrastructure.file_manager import ReorganizationFileManager
from src.reorganization.pipeline import ReorganizationPipeline

RED = {"r": 1, "g": 0, "b": 0, "a": 1}

STRUCTURE = {
    "id": "0:0",
    "name": "Document",
    "type": "DOCUMENT",
    "children": [{
        "id": "0:1",
        "name": "Page 1",
        "type": "CANVAS",
        "children": [
            {
                "id": "1:1",
                "name": "Login Screen",
                "type": "FRAME",
                "absoluteBoundingBox": {"x": 0, "y": 0, "width": 375, "height": 812},
                "children": [
                    {"id": "1:2", "name": "Submit Button", "type": "INSTANCE"},
                    {"id": "1:3", "name": "Email Input", "type": "FRAME",
                     "children": [{"id": "1:4", "name": "Email Label", "type": "TEXT"}]},
                ],
            },
            {"id": "2:1", "name": "Empty Card", "type": "FRAME"},
        ],
    }],
}

BATCH = [
    {"nodeId": "1:2", "document": {
        "id": "1:2",
        "name": "Submit Button",
        "type": "INSTANCE",
        "fills": [{"type": "SOLID", "color": RED}],
        "cornerRadius": 8,
        "children": [{"id": "1:5", "name": "Caption", "type": "TEXT"}],
    }},
    {"nodeId": "1:5", "document": {
        "id": "1:5",
        "name": "Caption",
        "type": "TEXT",
        "style": {"fontFamily": "Inter", "fontSize": 14},
    }},
]


def write_json(path: Path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def read_json(path: Path):
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def snapshot(directory: Path) -> dict:
    """Содержимое всех файлов дерева: относительный путь -> байты."""
    return {
        path.relative_to(directory).as_posix(): path.read_bytes()
        for path in sorted(directory.rglob("*")) if path.is_file()
    }


@pytest.fixture
def export_dir(tmp_path):
    write_json(tmp_path / "structure" / "document_structure.json", STRUCTURE)
    write_json(tmp_path / "batches" / "batch_stage4-nodes-000006.json", BATCH)
    write_json(tmp_path / "styles" / "colors.json", [{"id": "S:1", "name": "Brand/Red"}])
    write_json(tmp_path / "images" / "image_1_1.json", {"imageData": "iVBORw0KGgo="})
    return tmp_path


@pytest.fixture
def pipeline():
    ClassificationRules.clear_cache()
    return ReorganizationPipeline()


class TestPipelineOutput:
    """Вывод полного прохода."""

    def test_success_and_statistics(self, pipeline, export_dir):
        result = pipeline.run(export_dir)

        assert result.success
        assert result.errors == []
        stats = result.statistics
        assert stats.original_nodes == 8
        assert stats.saved_nodes == 3
        assert stats.data_loss == 5
        # layers/ + 2 слоя, design-tokens/ + components/ + 3 категории
        assert stats.created_folders == 8
        assert stats.created_files == 17
        assert stats.total_size > 0
        assert any("5" in warning for warning in result.warnings)
        assert pipeline.last_trace.stages_completed == 7

    def test_layers(self, pipeline, export_dir):
        pipeline.run(export_dir)
        layers_dir = export_dir / "reorganized" / "layers"

        assert sorted(p.name for p in layers_dir.iterdir()) == ["layer-empty-card", "layer-login-screen"]

        login = layers_dir / "layer-login-screen"
        structure = read_json(login / "structure.json")
        assert structure["hierarchy"] == {"1:1": ["1:2", "1:3"], "1:2": ["1:5"], "1:3": ["1:4"]}

        components = read_json(login / "components.json")
        assert [c["id"] for c in components["buttons"]] == ["1:2"]
        assert [c["id"] for c in components["inputs"]] == ["1:3"]
        assert components["buttons"][0]["detailedFills"] == [{"type": "SOLID", "color": RED}]
        assert components["buttons"][0]["cornerRadius"] == 8

        content = read_json(login / "content.json")
        assert [n["id"] for n in content["labels"]] == ["1:4"]

        metadata = read_json(login / "metadata.json")
        assert metadata["nodeCount"] == 5
        assert metadata["dimensions"]["width"] == 375
        assert metadata["dimensions"]["height"] == 812

    def test_tokens_and_components(self, pipeline, export_dir):
        pipeline.run(export_dir)
        reorganized = export_dir / "reorganized"

        assert read_json(reorganized / "design-tokens" / "colors.json") == [RED]
        assert read_json(reorganized / "design-tokens" / "typography.json") == [
            {"fontFamily": "Inter", "fontSize": 14}
        ]
        assert sorted(p.name for p in (reorganized / "components").iterdir() if p.is_dir()) == [
            "buttons", "cards", "inputs",
        ]
        assert [c["id"] for c in read_json(reorganized / "components" / "cards" / "cards.json")] == ["2:1"]

    def test_critical_files_copied(self, pipeline, export_dir):
        pipeline.run(export_dir)
        reorganized = export_dir / "reorganized"

        assert read_json(reorganized / "structure" / "document_structure.json") == STRUCTURE
        assert (reorganized / "styles" / "colors.json").is_file()
        assert (reorganized / "styles" / "extracted_styles.json").is_file()
        assert (reorganized / "images" / "image_1_1.json").is_file()

    def test_report(self, pipeline, export_dir):
        result = pipeline.run(export_dir)

        report = read_json(export_dir / "reorganized" / "reorganization_report.json")
        assert report["success"]
        assert report["statistics"]["dataLoss"] == 5
        assert report["sizeAnalysis"]["originalSize"] == result.size_analysis.original_size
        assert len(report["sizeAnalysis"]["largestFiles"]) <= 10


class TestRerun:
    """Повторный запуск над тем же экспортом."""

    def test_layers_and_tokens_are_byte_identical(self, pipeline, export_dir):
        pipeline.run(export_dir)
        reorganized = export_dir / "reorganized"
        first = {name: snapshot(reorganized / name) for name in ("layers", "design-tokens", "components")}

        pipeline.run(export_dir)
        second = {name: snapshot(reorganized / name) for name in ("layers", "design-tokens", "components")}

        assert first == second

    def test_raw_artifacts_untouched(self, pipeline, export_dir):
        raw_files = [
            "structure/document_structure.json",
            "batches/batch_stage4-nodes-000006.json",
            "styles/colors.json",
            "images/image_1_1.json",
        ]
        before = {name: (export_dir / name).read_bytes() for name in raw_files}

        pipeline.run(export_dir)
        pipeline.run(export_dir)

        assert {name: (export_dir / name).read_bytes() for name in raw_files} == before

    def test_stale_output_removed(self, pipeline, export_dir):
        stale = export_dir / "reorganized" / "layers" / "layer-old" / "metadata.json"
        write_json(stale, {})

        pipeline.run(export_dir)

        assert not stale.exists()


class TestEdgeCases:
    def test_empty_export(self, pipeline, tmp_path):
        """Нет ни структуры, ни батчей: пустые layers/ и токены."""
        result = pipeline.run(tmp_path)

        assert result.success
        assert result.statistics.original_nodes == 0
        assert result.statistics.data_loss == 0
        # layers/, design-tokens/, components/
        assert result.statistics.created_folders == 3
        assert result.statistics.created_files == 4
        assert list((tmp_path / "reorganized" / "layers").iterdir()) == []

    def test_write_failure_reported(self, export_dir):
        """Ошибка записи не пробрасывается: success=False со списком ошибок."""
        ClassificationRules.clear_cache()

        class FailingFileManager(ReorganizationFileManager):
            def save_json(self, data, file_path):
                if "reorganized" in file_path.parts:
                    raise ReorganizationWriteError(message=f"disk full: {file_path}", component="Test")
                return super().save_json(data, file_path)

        result = ReorganizationPipeline(file_manager=FailingFileManager()).run(export_dir)

        assert not result.success
        assert result.errors
        assert "disk full" in result.errors[0]

    def test_unexpected_stage_error_reported(self, export_dir):
        """Непредвиденное исключение этапа тоже превращается в success=False."""
        ClassificationRules.clear_cache()
        catalog_stage = MagicMock()
        catalog_stage.process.side_effect = RuntimeError("boom")

        result = ReorganizationPipeline(catalog_stage=catalog_stage).run(export_dir)

        assert not result.success
        assert len(result.errors) == 1
        assert "1/7" in result.errors[0]
        assert "boom" in result.errors[0]

    def test_style_reference_string(self, pipeline, export_dir):
        """Ссылка на стиль документа вместо объекта стиля не прерывает проход."""
        batch = [dict(entry) for entry in BATCH]
        batch[1] = {"nodeId": "1:5", "document": {
            "id": "1:5", "name": "Caption", "type": "TEXT", "style": "S:abc123,",
        }}
        write_json(export_dir / "batches" / "batch_stage4-nodes-000006.json", batch)

        result = pipeline.run(export_dir)

        assert result.success
        assert result.statistics.original_nodes == 8
        assert read_json(export_dir / "reorganized" / "design-tokens" / "typography.json") == []
