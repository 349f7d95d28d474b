"""
Unit-тесты для ArtifactStore и отчёта валидации экспорта.
"""

import json
from unittest.mock import patch

import pytest

from src.domain.contracts import ArtifactCategory
from src.export.domain.exceptions import ArtifactWriteError
from src.export.infrastructure.artifact_store import ArtifactStore, sanitize_filename
from src.export.session.finalizer import build_validation_report


@pytest.fixture
def store(tmp_path):
    store = ArtifactStore(tmp_path / "export")
    store.reset()
    return store


def read_json(path):
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


class TestReset:
    """Подготовка таксономии папок."""

    def test_creates_all_categories(self, store):
        for category in ArtifactCategory:
            assert store.category_dir(category).is_dir()

    def test_clears_previous_session_but_keeps_log(self, store):
        store.save_document_info({"name": "old"})
        log_file = store.export_dir / "export_log.txt"
        log_file.write_text("log", encoding="utf-8")
        (store.export_dir / "reorganized" / "layers").mkdir(parents=True)

        store.reset()

        assert not store.path_for(ArtifactCategory.METADATA, "document_info.json").exists()
        assert not (store.export_dir / "reorganized").exists()
        assert log_file.read_text(encoding="utf-8") == "log"


class TestSave:
    """Запись именованных артефактов."""

    def test_utf8_indent_two(self, store):
        path = store.save_document_info({"name": "Макет"})

        text = path.read_text(encoding="utf-8")
        assert "Макет" in text
        assert text.startswith('{\n  "name"')

    def test_none_is_saved_as_null(self, store):
        path = store.save_reactions(None)

        assert read_json(path) is None

    def test_batch_and_image_names(self, store):
        batch = store.save_batch("stage4-nodes-000007", [])
        image = store.save_node_image("1:2", {"imageData": "..."})

        assert batch.name == "batch_stage4-nodes-000007.json"
        assert image.name == "image_1_2.json"
        assert image.parent.name == "images"

    def test_unserializable_data_raises(self, store):
        with pytest.raises(ArtifactWriteError):
            store.save_document_info({"bad": object()})

    def test_os_error_raises(self, store):
        with patch("builtins.open", side_effect=OSError("disk full")):
            with pytest.raises(ArtifactWriteError) as exc_info:
                store.save_annotations([])

        assert exc_info.value.component == "ArtifactStore"
        assert isinstance(exc_info.value.original_error, OSError)


class TestSaveStyles:
    """Разделение ответа get_styles."""

    def test_split_into_files(self, store):
        paths = store.save_styles({
            "colors": [{"name": "Primary"}],
            "textStyles": [{"name": "H1"}],
            "effectStyles": [],
            "gridStyles": [{"name": "Grid"}],
        })

        assert sorted(p.name for p in paths) == ["colors.json", "effects.json", "grids.json", "typography.json"]
        assert read_json(store.path_for(ArtifactCategory.STYLES, "colors.json")) == [{"name": "Primary"}]

    def test_missing_groups_skipped(self, store):
        paths = store.save_styles({"colors": []})

        assert [p.name for p in paths] == ["colors.json"]

    def test_empty_response(self, store):
        assert store.save_styles(None) == []


class TestSanitize:
    def test_replaces_reserved_characters(self):
        assert sanitize_filename('a<b>c:d"e/f\\g|h?i*j') == "a_b_c_d_e_f_g_h_i_j"


class TestValidationReport:
    """Отчёт валидации экспорта."""

    def test_counts_valid_and_invalid_files(self, store):
        store.save_document_structure({"id": "0:0"})
        store.save_text_nodes({"textNodes": [{"id": "1"}, {"id": "2"}]})
        store.save_batch("stage4-nodes-000001", [{"nodeId": "1:1"}])
        broken = store.path_for(ArtifactCategory.NODES, "broken.json")
        broken.write_text("{not json", encoding="utf-8")

        report = build_validation_report(store)

        assert report["structureValidation"]["valid"] is True
        assert report["structureValidation"]["missingDirs"] == []
        assert report["fileValidation"]["totalFiles"] == 4
        assert report["fileValidation"]["validJsonFiles"] == 3
        assert report["fileValidation"]["invalidJsonFiles"] == 1
        assert report["dataAnalysis"]["documentStructure"] is True
        assert report["dataAnalysis"]["batches"] is True
        assert report["dataAnalysis"]["annotations"] is False
        assert report["statistics"]["elementsByType"]["textNodes"] == 2
        assert report["statistics"]["totalElements"] == 1

    def test_missing_directory(self, store):
        store.category_dir(ArtifactCategory.IMAGES).rmdir()

        report = build_validation_report(store)

        assert report["structureValidation"]["missingDirs"] == ["images"]
        assert report["structureValidation"]["valid"] is False
