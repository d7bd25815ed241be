"""Diff 操作值对象

请求里的每个操作是 {"type": "...", ...} 字典，parse_operation() 把它转成强类型的
dataclass；字段缺失或类型不对时抛 InvalidOperationError，由引擎记为该操作的失败。

操作分三类：
- 节点操作：addNode / removeNode / updateNode / moveNode / enableNode / disableNode
- 连接操作：addConnection / removeConnection / rewireConnection / replaceConnections /
  cleanStaleConnections
- 元数据操作：updateName / addTag / removeTag / updateSettings
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from workflow_guard.domain.exceptions import InvalidOperationError
from workflow_guard.domain.value_objects.connection import ConnectionChannel


class OperationType(str, Enum):
    ADD_NODE = "addNode"
    REMOVE_NODE = "removeNode"
    UPDATE_NODE = "updateNode"
    MOVE_NODE = "moveNode"
    ENABLE_NODE = "enableNode"
    DISABLE_NODE = "disableNode"

    ADD_CONNECTION = "addConnection"
    REMOVE_CONNECTION = "removeConnection"
    REWIRE_CONNECTION = "rewireConnection"
    REPLACE_CONNECTIONS = "replaceConnections"
    CLEAN_STALE_CONNECTIONS = "cleanStaleConnections"

    UPDATE_NAME = "updateName"
    ADD_TAG = "addTag"
    REMOVE_TAG = "removeTag"
    UPDATE_SETTINGS = "updateSettings"

    @property
    def is_node_operation(self) -> bool:
        return self in NODE_OPERATION_TYPES


NODE_OPERATION_TYPES = frozenset(
    {
        OperationType.ADD_NODE,
        OperationType.REMOVE_NODE,
        OperationType.UPDATE_NODE,
        OperationType.MOVE_NODE,
        OperationType.ENABLE_NODE,
        OperationType.DISABLE_NODE,
    }
)


# --- 字段读取 -----------------------------------------------------------


def _str_field(data: dict[str, Any], key: str, *, required: bool = False) -> str | None:
    value = data.get(key)
    if value is None:
        if required:
            raise InvalidOperationError(f'Missing required field "{key}"', details={"field": key})
        return None
    if not isinstance(value, str) or (required and not value.strip()):
        raise InvalidOperationError(f'Field "{key}" must be a non-empty string', details={"field": key})
    return value


def _index_field(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidOperationError(
            f'Field "{key}" must be a non-negative integer, got {value!r}', details={"field": key}
        )
    return value


def _dict_field(data: dict[str, Any], key: str, *, aliases: tuple[str, ...] = ()) -> dict[str, Any]:
    for candidate in (key, *aliases):
        if candidate in data:
            value = data[candidate]
            if not isinstance(value, dict):
                raise InvalidOperationError(f'Field "{candidate}" must be an object', details={"field": candidate})
            return value
    raise InvalidOperationError(f'Missing required field "{key}"', details={"field": key})


def _bool_field(data: dict[str, Any], key: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise InvalidOperationError(f'Field "{key}" must be a boolean', details={"field": key})
    return value


# --- 操作定义 -----------------------------------------------------------


@dataclass(frozen=True, kw_only=True)
class DiffOperation:
    """所有操作的基类；description 只是备注，不影响语义"""

    type: ClassVar[OperationType]
    description: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DiffOperation:
        raise NotImplementedError


@dataclass(frozen=True, kw_only=True)
class NodeReferenceOperation(DiffOperation):
    """通过 nodeId 或 nodeName 定位节点的操作"""

    node_id: str | None = None
    node_name: str | None = None

    @property
    def reference(self) -> str:
        return self.node_id or self.node_name or ""

    @staticmethod
    def _reference_fields(data: dict[str, Any]) -> dict[str, Any]:
        node_id = _str_field(data, "nodeId")
        node_name = _str_field(data, "nodeName")
        if not node_id and not node_name:
            raise InvalidOperationError("Either nodeId or nodeName is required")
        return {"node_id": node_id, "node_name": node_name, "description": data.get("description")}


@dataclass(frozen=True, kw_only=True)
class AddNodeOperation(DiffOperation):
    type: ClassVar[OperationType] = OperationType.ADD_NODE
    node: dict[str, Any]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AddNodeOperation:
        return cls(node=_dict_field(data, "node"), description=data.get("description"))


@dataclass(frozen=True, kw_only=True)
class RemoveNodeOperation(NodeReferenceOperation):
    type: ClassVar[OperationType] = OperationType.REMOVE_NODE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoveNodeOperation:
        return cls(**cls._reference_fields(data))


@dataclass(frozen=True, kw_only=True)
class UpdateNodeOperation(NodeReferenceOperation):
    """updates 的键是点路径，如 "parameters.url"、"name"；也接受旧字段名 changes"""

    type: ClassVar[OperationType] = OperationType.UPDATE_NODE
    updates: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UpdateNodeOperation:
        updates = _dict_field(data, "updates", aliases=("changes",))
        if not updates:
            raise InvalidOperationError("updateNode requires at least one update")
        return cls(updates=updates, **cls._reference_fields(data))


@dataclass(frozen=True, kw_only=True)
class MoveNodeOperation(NodeReferenceOperation):
    type: ClassVar[OperationType] = OperationType.MOVE_NODE
    position: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MoveNodeOperation:
        if "position" not in data:
            raise InvalidOperationError('Missing required field "position"', details={"field": "position"})
        return cls(position=data["position"], **cls._reference_fields(data))


@dataclass(frozen=True, kw_only=True)
class EnableNodeOperation(NodeReferenceOperation):
    type: ClassVar[OperationType] = OperationType.ENABLE_NODE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EnableNodeOperation:
        return cls(**cls._reference_fields(data))


@dataclass(frozen=True, kw_only=True)
class DisableNodeOperation(NodeReferenceOperation):
    type: ClassVar[OperationType] = OperationType.DISABLE_NODE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DisableNodeOperation:
        return cls(**cls._reference_fields(data))


@dataclass(frozen=True, kw_only=True)
class AddConnectionOperation(DiffOperation):
    """branch / case 是 smart parameter，由引擎按源节点类型解析成槽位"""

    type: ClassVar[OperationType] = OperationType.ADD_CONNECTION
    source: str
    target: str
    source_output: str = ConnectionChannel.MAIN.value
    target_input: str | None = None
    source_index: int | None = None
    target_index: int = 0
    branch: Any = None
    case: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AddConnectionOperation:
        return cls(
            source=_str_field(data, "source", required=True),
            target=_str_field(data, "target", required=True),
            source_output=_str_field(data, "sourceOutput") or ConnectionChannel.MAIN.value,
            target_input=_str_field(data, "targetInput"),
            source_index=_index_field(data, "sourceIndex"),
            target_index=_index_field(data, "targetIndex") or 0,
            branch=data.get("branch"),
            case=data.get("case"),
            description=data.get("description"),
        )


@dataclass(frozen=True, kw_only=True)
class RemoveConnectionOperation(DiffOperation):
    type: ClassVar[OperationType] = OperationType.REMOVE_CONNECTION
    source: str
    target: str
    source_output: str = ConnectionChannel.MAIN.value
    target_input: str | None = None
    source_index: int | None = None
    branch: Any = None
    case: Any = None
    ignore_errors: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoveConnectionOperation:
        return cls(
            source=_str_field(data, "source", required=True),
            target=_str_field(data, "target", required=True),
            source_output=_str_field(data, "sourceOutput") or ConnectionChannel.MAIN.value,
            target_input=_str_field(data, "targetInput"),
            source_index=_index_field(data, "sourceIndex"),
            branch=data.get("branch"),
            case=data.get("case"),
            ignore_errors=_bool_field(data, "ignoreErrors"),
            description=data.get("description"),
        )


@dataclass(frozen=True, kw_only=True)
class RewireConnectionOperation(DiffOperation):
    """把 source 某个槽位上指向 from_node 的连接改成指向 to_node，槽位不变"""

    type: ClassVar[OperationType] = OperationType.REWIRE_CONNECTION
    source: str
    from_node: str
    to_node: str
    source_output: str = ConnectionChannel.MAIN.value
    source_index: int | None = None
    branch: Any = None
    case: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RewireConnectionOperation:
        return cls(
            source=_str_field(data, "source", required=True),
            from_node=_str_field(data, "from", required=True),
            to_node=_str_field(data, "to", required=True),
            source_output=_str_field(data, "sourceOutput") or ConnectionChannel.MAIN.value,
            source_index=_index_field(data, "sourceIndex"),
            branch=data.get("branch"),
            case=data.get("case"),
            description=data.get("description"),
        )


@dataclass(frozen=True, kw_only=True)
class ReplaceConnectionsOperation(DiffOperation):
    type: ClassVar[OperationType] = OperationType.REPLACE_CONNECTIONS
    connections: dict[str, Any]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReplaceConnectionsOperation:
        return cls(connections=_dict_field(data, "connections"), description=data.get("description"))


@dataclass(frozen=True, kw_only=True)
class CleanStaleConnectionsOperation(DiffOperation):
    type: ClassVar[OperationType] = OperationType.CLEAN_STALE_CONNECTIONS
    dry_run: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CleanStaleConnectionsOperation:
        return cls(dry_run=_bool_field(data, "dryRun"), description=data.get("description"))


@dataclass(frozen=True, kw_only=True)
class UpdateNameOperation(DiffOperation):
    type: ClassVar[OperationType] = OperationType.UPDATE_NAME
    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UpdateNameOperation:
        return cls(name=_str_field(data, "name", required=True), description=data.get("description"))


@dataclass(frozen=True, kw_only=True)
class AddTagOperation(DiffOperation):
    type: ClassVar[OperationType] = OperationType.ADD_TAG
    tag: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AddTagOperation:
        return cls(tag=_str_field(data, "tag", required=True), description=data.get("description"))


@dataclass(frozen=True, kw_only=True)
class RemoveTagOperation(DiffOperation):
    type: ClassVar[OperationType] = OperationType.REMOVE_TAG
    tag: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoveTagOperation:
        return cls(tag=_str_field(data, "tag", required=True), description=data.get("description"))


@dataclass(frozen=True, kw_only=True)
class UpdateSettingsOperation(DiffOperation):
    type: ClassVar[OperationType] = OperationType.UPDATE_SETTINGS
    settings: dict[str, Any]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UpdateSettingsOperation:
        return cls(settings=_dict_field(data, "settings"), description=data.get("description"))


_OPERATION_CLASSES: dict[OperationType, type[DiffOperation]] = {
    cls.type: cls
    for cls in (
        AddNodeOperation,
        RemoveNodeOperation,
        UpdateNodeOperation,
        MoveNodeOperation,
        EnableNodeOperation,
        DisableNodeOperation,
        AddConnectionOperation,
        RemoveConnectionOperation,
        RewireConnectionOperation,
        ReplaceConnectionsOperation,
        CleanStaleConnectionsOperation,
        UpdateNameOperation,
        AddTagOperation,
        RemoveTagOperation,
        UpdateSettingsOperation,
    )
}


def parse_operation(data: Any) -> DiffOperation:
    """字典 -> 强类型操作

    抛出：
        InvalidOperationError: 不是对象、type 未知、字段缺失或类型不对
    """
    if isinstance(data, DiffOperation):
        return data
    if not isinstance(data, dict):
        raise InvalidOperationError(f"Operation must be an object, got {type(data).__name__}")

    raw_type = data.get("type")
    try:
        operation_type = OperationType(raw_type)
    except ValueError:
        raise InvalidOperationError(
            f"Unknown operation type: {raw_type!r}",
            code="UNKNOWN_OPERATION_TYPE",
            details={"type": raw_type},
        ) from None

    description = data.get("description")
    if description is not None and not isinstance(description, str):
        raise InvalidOperationError('Field "description" must be a string', details={"field": "description"})
    return _OPERATION_CLASSES[operation_type].from_dict(data)
