"""
Общие доменные контракты (contracts) для экспорта и реорганизации.

Каждый контракт гарантирует:
  1. Правильный тип данных (type safety)
  2. Обязательные поля (completeness)
  3. Неизменяемость там, где объект передаётся между компонентами (frozen)

Все модели используют Pydantic v2 с Field validators.
"""

from enum import Enum
from typing import List, Optional, Dict, Any, Union
from pydantic import BaseModel, Field, field_validator, ConfigDict


# ============================================================================
# СТАДИИ СЕССИИ ЭКСПОРТА
# ============================================================================

class StageName(str, Enum):
    """Стадии сессии экспорта в порядке выполнения."""
    INIT = "init"
    STRUCTURE_FETCH = "structure_fetch"
    METADATA_FANOUT = "metadata_fanout"
    RECURSIVE_NODE_BATCHES = "recursive_node_batches"
    SPECIALIZED_SCANS = "specialized_scans"
    SELECTION_AND_IMAGES = "selection_and_images"
    RECURSIVE_RESCAN = "recursive_rescan"
    FINALIZING = "finalizing"
    IDLE = "idle"


# Строгий порядок стадий. IDLE одновременно терминальное и исходное состояние.
STAGE_ORDER: List[StageName] = [
    StageName.INIT,
    StageName.STRUCTURE_FETCH,
    StageName.METADATA_FANOUT,
    StageName.RECURSIVE_NODE_BATCHES,
    StageName.SPECIALIZED_SCANS,
    StageName.SELECTION_AND_IMAGES,
    StageName.RECURSIVE_RESCAN,
    StageName.FINALIZING,
    StageName.IDLE,
]


class Command(str, Enum):
    """Фиксированный словарь команд плагина Figma."""
    READ_MY_DESIGN = "read_my_design"
    GET_STYLES = "get_styles"
    GET_LOCAL_COMPONENTS = "get_local_components"
    GET_DOCUMENT_INFO = "get_document_info"
    GET_ANNOTATIONS = "get_annotations"
    SCAN_TEXT_NODES = "scan_text_nodes"
    SCAN_NODES_BY_TYPES = "scan_nodes_by_types"
    GET_REACTIONS = "get_reactions"
    GET_INSTANCE_OVERRIDES = "get_instance_overrides"
    CREATE_CONNECTIONS = "create_connections"
    GET_SELECTION = "get_selection"
    GET_NODES_INFO = "get_nodes_info"
    EXPORT_NODE_AS_IMAGE = "export_node_as_image"


class PendingCommand(BaseModel):
    """
    Отправленная команда, ожидающая ответа.

    Регистрируется по correlation id; ответ ищется в реестре без busy-wait.
    """

    model_config = ConfigDict(frozen=True)

    correlation_id: str = Field(..., min_length=1, description="ID для сопоставления ответа")
    stage: StageName = Field(..., description="Стадия, которой принадлежит команда")
    command: Command = Field(..., description="Команда плагина")
    kind: str = Field(..., min_length=1, description="Подкоманда для маршрутизации (styles, nodes, ...)")
    params: Dict[str, Any] = Field(default_factory=dict, description="Параметры команды")


class Batch(BaseModel):
    """
    Батч ID нод, отправляемый одним запросом get_nodes_info.

    В каждой стадии одновременно может быть не более одного батча в полёте.
    """

    model_config = ConfigDict(frozen=True)

    correlation_id: str = Field(..., min_length=1, description="ID для сопоставления ответа")
    node_ids: List[str] = Field(..., min_length=1, description="ID нод в порядке очереди")

    @field_validator('node_ids')
    @classmethod
    def no_duplicate_ids(cls, v: List[str]) -> List[str]:
        """В батче не должно быть дублей."""
        if len(v) != len(set(v)):
            raise ValueError(f"Найдены дублирующиеся ID в батче: {v}")
        return v


# ============================================================================
# СТРУКТУРА ДОКУМЕНТА (три формы ответа read_my_design)
# ============================================================================

class StructureShape(str, Enum):
    """Форма ответа на команду чтения структуры."""
    ROOT_DOCUMENT = "root_document"   # Один объект с id/children
    NODE_ID_LIST = "node_id_list"     # Массив элементов
    INDEXED_MAP = "indexed_map"       # Объект с числовыми ключами


class NormalizedStructure(BaseModel):
    """
    Нормализованная структура документа.

    Форма определяется один раз сразу после десериализации.
    roots - деревья для обхода, node_refs - голые ссылки {nodeId: ...}.
    """

    model_config = ConfigDict(frozen=True)

    shape: StructureShape
    roots: List[Dict[str, Any]] = Field(default_factory=list)
    node_refs: List[str] = Field(default_factory=list)


# ============================================================================
# АРТЕФАКТЫ
# ============================================================================

class ArtifactCategory(str, Enum):
    """Фиксированная таксономия папок экспорта."""
    METADATA = "metadata"
    STRUCTURE = "structure"
    STYLES = "styles"
    COMPONENTS = "components"
    NODES = "nodes"
    INTERACTIONS = "interactions"
    OVERRIDES = "overrides"
    ANNOTATIONS = "annotations"
    BATCHES = "batches"
    IMAGES = "images"


# ============================================================================
# НОДЫ
# ============================================================================

class NodeRecord(BaseModel):
    """
    Плоская запись ноды документа.

    Идентификатор неизменяем после назначения плагином; запись адресуется
    только по нему. Лишние поля плагина сохраняются как есть (extra="allow").
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., min_length=1, description="Глобально уникальный ID ноды")
    name: str = Field("", description="Отображаемое имя")
    type: str = Field("", description="Тип ноды (FRAME, TEXT, INSTANCE, ...)")
    node_id: Optional[str] = Field(None, alias="nodeId")
    parent_id: Optional[str] = Field(None, alias="parentId", description="Обратная ссылка на родителя")
    absolute_bounding_box: Optional[Dict[str, Any]] = Field(None, alias="absoluteBoundingBox")
    fills: Optional[List[Any]] = None
    strokes: Optional[List[Any]] = None
    characters: Optional[str] = None
    # Объект стиля текста или ссылка на стиль документа ("S:abc123,")
    style: Optional[Union[Dict[str, Any], str]] = None
    # Строка - маркер смешанных значений углов
    corner_radius: Optional[Union[float, int, str]] = Field(None, alias="cornerRadius")
    children: int = Field(0, ge=0, description="Количество дочерних нод")

    @field_validator('children', mode='before')
    @classmethod
    def children_as_count(cls, v: Any) -> int:
        """Список дочерних нод сворачивается в их количество."""
        if v is None:
            return 0
        if isinstance(v, list):
            return len(v)
        return v

    @field_validator('name', 'type', mode='before')
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @classmethod
    def from_document_node(cls, node: Dict[str, Any], parent_id: Optional[str] = None) -> "NodeRecord":
        """
        Создаёт плоскую запись из узла дерева документа.

        Args:
            node: Узел дерева (с вложенными children)
            parent_id: ID родителя или None для корня

        Returns:
            NodeRecord без вложенных детей
        """
        return cls(
            id=node["id"],
            name=node.get("name"),
            type=node.get("type"),
            nodeId=node["id"],
            parentId=parent_id,
            absoluteBoundingBox=node.get("absoluteBoundingBox"),
            fills=node.get("fills"),
            strokes=node.get("strokes"),
            characters=node.get("characters"),
            style=node.get("style"),
            cornerRadius=node.get("cornerRadius"),
            children=node.get("children"),
        )

    def to_record(self) -> Dict[str, Any]:
        """Сериализует запись в JSON-совместимый dict (camelCase, без None)."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# КЛАССИФИКАЦИЯ
# ============================================================================

class ComponentCategory(str, Enum):
    """
    Семантическая группа компонента.

    Эвристическая метка (best-effort), не гарантия корректности.
    """
    BUTTONS = "buttons"
    CARDS = "cards"
    INPUTS = "inputs"
    NAVIGATION = "navigation"
    FEEDBACK = "feedback"
    UNCLASSIFIED = "unclassified"


# Категории, которые попадают в components.json слоёв и в reorganized/components/
CLASSIFIED_CATEGORIES: List[ComponentCategory] = [
    ComponentCategory.BUTTONS,
    ComponentCategory.CARDS,
    ComponentCategory.INPUTS,
    ComponentCategory.NAVIGATION,
    ComponentCategory.FEEDBACK,
]
