"""
Извлечение ID нод из ответа плагина.

Ответ на чтение структуры приходит в одной из трёх форм:
  - корневой документ: { id, children: [...] }
  - массив элементов: [ {document: ...} | {nodeId: ...} | {id: ...}, ... ]
  - объект с числовыми ключами: { "0": {...}, "1": {...} }

Форма определяется один раз в normalize_structure(), дальше
обход работает только с NormalizedStructure.
"""

from typing import Any, Dict, Iterable, List, Tuple

from src.domain.contracts import NormalizedStructure, StructureShape
from ..domain.exceptions import StructureFetchError


def extract_node_ids(value: Any) -> List[str]:
    """
    Собирает все уникальные ID, достижимые через children (DFS, pre-order).

    ID записывается, если у узла есть строковое поле id. Спуск идёт
    только в списки children; None и отсутствующие поля пропускаются.

    Args:
        value: Узел, список узлов или None

    Returns:
        Список ID без повторов в порядке обхода
    """
    found: Dict[str, None] = {}
    _collect(value, found)
    return list(found)


def _collect(value: Any, found: Dict[str, None]) -> None:
    # Обход без рекурсии: глубина дерева произвольная
    stack = list(reversed(value)) if isinstance(value, list) else [value]
    while stack:
        node = stack.pop()
        if not isinstance(node, dict):
            continue
        node_id = node.get("id")
        if isinstance(node_id, str):
            found.setdefault(node_id, None)
        children = node.get("children")
        if isinstance(children, list):
            stack.extend(reversed(children))


def _is_indexed_map(payload: Dict[str, Any]) -> bool:
    return all(_is_number(key) for key in payload)


def _is_number(key: str) -> bool:
    try:
        float(key)
    except (TypeError, ValueError):
        return False
    return True


def _split_elements(elements: Iterable[Any]) -> Tuple[List[Dict[str, Any]], List[str]]:
    """Для каждого элемента: document-обёртка, затем nodeId-обёртка, затем прямой id."""
    roots: List[Dict[str, Any]] = []
    node_refs: List[str] = []
    for item in elements:
        if not isinstance(item, dict):
            continue
        if isinstance(item.get("document"), dict):
            roots.append(item["document"])
        elif isinstance(item.get("nodeId"), str) and item["nodeId"]:
            node_refs.append(item["nodeId"])
        elif item.get("id"):
            roots.append(item)
    return roots, node_refs


def normalize_structure(payload: Any) -> NormalizedStructure:
    """
    Приводит ответ чтения структуры к NormalizedStructure.

    Args:
        payload: Десериализованный result ответа

    Returns:
        NormalizedStructure с формой, корнями обхода и голыми ссылками

    Raises:
        StructureFetchError: Если ответ отсутствует или не похож ни на одну форму
    """
    if payload is None:
        raise StructureFetchError(
            message="Ответ на чтение структуры пуст",
            component="NodeIdExtractor"
        )

    if isinstance(payload, list):
        roots, node_refs = _split_elements(payload)
        return NormalizedStructure(shape=StructureShape.NODE_ID_LIST, roots=roots, node_refs=node_refs)

    if isinstance(payload, dict):
        if payload.get("id"):
            return NormalizedStructure(shape=StructureShape.ROOT_DOCUMENT, roots=[payload])
        if _is_indexed_map(payload):
            ordered = sorted(payload.items(), key=lambda kv: float(kv[0]))
            roots, node_refs = _split_elements(value for _, value in ordered)
            return NormalizedStructure(shape=StructureShape.INDEXED_MAP, roots=roots, node_refs=node_refs)

    raise StructureFetchError(
        message=f"Нераспознанная форма структуры документа: {type(payload).__name__}",
        component="NodeIdExtractor"
    )


def extract_structure_node_ids(payload: Any) -> List[str]:
    """Нормализует ответ структуры и возвращает все ID документа."""
    structure = normalize_structure(payload)
    found: Dict[str, None] = {}
    for root in structure.roots:
        _collect(root, found)
    for node_ref in structure.node_refs:
        found.setdefault(node_ref, None)
    return list(found)


def is_fetchable_node_id(node_id: str) -> bool:
    """
    Можно ли запросить ноду через get_nodes_info.

    ID вложенных слоёв инстансов ("I1:2;3:4") плагин по отдельности не отдаёт.
    """
    return bool(node_id) and ";" not in node_id and not node_id.startswith("I")


def collect_fragment_node_ids(payload: Any) -> List[str]:
    """
    ID нод из ответа get_nodes_info ({nodeId, document} элементы).

    В отличие от extract_structure_node_ids не бросает исключений:
    пустой или нераспознанный ответ означает "новых ID нет".
    """
    if payload is None:
        return []
    try:
        return extract_structure_node_ids(payload)
    except StructureFetchError:
        return []
