"""
Unit-тесты для извлечения ID нод и нормализации структуры документа.
"""

import pytest

from src.domain.contracts import StructureShape
from src.export.domain.exceptions import StructureFetchError
from src.export.session.node_id_extractor import (
    collect_fragment_node_ids,
    extract_node_ids,
    extract_structure_node_ids,
    is_fetchable_node_id,
    normalize_structure,
)


class TestExtractNodeIds:
    """Обход дерева через children."""

    def test_root_with_child(self):
        """Корень и ребёнок дают ровно два ID."""
        node = {"id": "0:1", "children": [{"id": "1:2", "children": []}]}

        assert extract_node_ids(node) == ["0:1", "1:2"]

    def test_preorder_and_no_duplicates(self):
        """Порядок pre-order, повторный ID не дублируется."""
        tree = {
            "id": "0:1",
            "children": [
                {"id": "1:1", "children": [{"id": "2:1"}]},
                {"id": "1:2", "children": [{"id": "2:1"}]},
            ],
        }

        assert extract_node_ids(tree) == ["0:1", "1:1", "2:1", "1:2"]

    def test_none_and_missing_fields(self):
        """None, узлы без id и не-списковые children пропускаются."""
        assert extract_node_ids(None) == []
        assert extract_node_ids({"name": "no id", "children": [{"id": "5:5"}]}) == ["5:5"]
        assert extract_node_ids({"id": "1:1", "children": None}) == ["1:1"]
        assert extract_node_ids({"id": 42}) == []

    def test_deep_tree(self):
        """Глубокое дерево обходится без переполнения стека."""
        root = {"id": "n0"}
        current = root
        for i in range(1, 5000):
            child = {"id": f"n{i}"}
            current["children"] = [child]
            current = child

        ids = extract_node_ids(root)

        assert len(ids) == 5000
        assert ids[-1] == "n4999"


class TestNormalizeStructure:
    """Три формы ответа чтения структуры."""

    def test_root_document(self):
        payload = {"id": "0:0", "type": "DOCUMENT", "children": [{"id": "0:1"}]}

        structure = normalize_structure(payload)

        assert structure.shape == StructureShape.ROOT_DOCUMENT
        assert extract_structure_node_ids(payload) == ["0:0", "0:1"]

    def test_node_id_list(self):
        """Элементы: document-обёртка, nodeId-ссылка, прямой id."""
        payload = [
            {"nodeId": "1:1", "document": {"id": "1:1", "children": [{"id": "1:2"}]}},
            {"nodeId": "2:1"},
            {"id": "3:1"},
        ]

        structure = normalize_structure(payload)

        assert structure.shape == StructureShape.NODE_ID_LIST
        assert structure.node_refs == ["2:1"]
        assert extract_structure_node_ids(payload) == ["1:1", "1:2", "3:1", "2:1"]

    def test_indexed_map_sorted_numerically(self):
        """Числовые ключи сортируются как числа, а не строки."""
        payload = {
            "10": {"id": "c"},
            "2": {"id": "b"},
            "0": {"document": {"id": "a"}},
        }

        structure = normalize_structure(payload)

        assert structure.shape == StructureShape.INDEXED_MAP
        assert extract_structure_node_ids(payload) == ["a", "b", "c"]

    def test_none_is_fatal(self):
        with pytest.raises(StructureFetchError):
            normalize_structure(None)

    def test_unrecognized_shape(self):
        with pytest.raises(StructureFetchError):
            normalize_structure({"name": "no id", "foo": 1})
        with pytest.raises(StructureFetchError):
            normalize_structure("document")


class TestFetchableIds:
    """Фильтр ID для очереди батчей."""

    @pytest.mark.parametrize("node_id, expected", [
        ("1:2", True),
        ("123:456", True),
        ("I1:2;3:4", False),
        ("1:2;3:4", False),
        ("I5:6", False),
        ("", False),
    ])
    def test_is_fetchable(self, node_id, expected):
        assert is_fetchable_node_id(node_id) is expected


class TestCollectFragmentNodeIds:
    """ID из ответа get_nodes_info."""

    def test_fragment_children(self):
        payload = [{"nodeId": "1:1", "document": {"id": "1:1", "children": [{"id": "1:5"}]}}]

        assert collect_fragment_node_ids(payload) == ["1:1", "1:5"]

    def test_empty_or_unrecognized_is_not_an_error(self):
        assert collect_fragment_node_ids(None) == []
        assert collect_fragment_node_ids([]) == []
        assert collect_fragment_node_ids({"unexpected": True}) == []
