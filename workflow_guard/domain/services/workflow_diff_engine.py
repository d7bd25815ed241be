"""WorkflowDiffEngine - 基于操作列表的增量修改（Domain Service）

职责：
1. 把请求里的操作字典解析成强类型操作
2. 在工作流副本上按模式应用操作（atomic / continue_on_error / validate_only）
3. 把每个失败转换成 OperationFailure，OperationError 永远不会逃出 apply()
4. 有校验器时，对结果文档做一次完整校验

不变式：
- 输入的 Workflow 永远不会被修改
- 连接槽位绝不重新编号；删除后只裁掉末尾空槽位
- atomic 模式先应用全部节点操作，再应用连接 / 元数据操作，
  所以同一批次里"先连再加节点"也能成功
"""

from __future__ import annotations

import copy
import logging
import time
from collections.abc import Callable, Sequence
from typing import Any
from uuid import uuid4

from workflow_guard.domain.entities.connection_map import ConnectionMap
from workflow_guard.domain.entities.node import WorkflowNode
from workflow_guard.domain.entities.workflow import Workflow, tag_name
from workflow_guard.domain.exceptions import (
    ConnectionNotFoundError,
    DomainError,
    DuplicateNodeNameError,
    InvalidOperationError,
    NodeNotFoundError,
    OperationError,
)
from workflow_guard.domain.services.node_type_normalizer import (
    BASE_PREFIX,
    LANGCHAIN_PREFIX,
    normalize_node_type,
    to_workflow_format,
)
from workflow_guard.domain.services.workflow_validator import WorkflowValidator
from workflow_guard.domain.value_objects.connection import ConnectionTarget
from workflow_guard.domain.value_objects.diff_operation import (
    AddConnectionOperation,
    AddNodeOperation,
    AddTagOperation,
    CleanStaleConnectionsOperation,
    DiffOperation,
    DisableNodeOperation,
    EnableNodeOperation,
    MoveNodeOperation,
    NodeReferenceOperation,
    OperationType,
    RemoveConnectionOperation,
    RemoveNodeOperation,
    RemoveTagOperation,
    ReplaceConnectionsOperation,
    RewireConnectionOperation,
    UpdateNameOperation,
    UpdateNodeOperation,
    UpdateSettingsOperation,
    parse_operation,
)
from workflow_guard.domain.value_objects.diff_result import DiffMode, DiffResult, OperationFailure
from workflow_guard.domain.value_objects.node_type import KnownNodeType
from workflow_guard.domain.value_objects.position import Position

logger = logging.getLogger(__name__)

DEFAULT_MAX_OPERATIONS = 100

_IF_TYPE = KnownNodeType.IF.value
_SWITCH_TYPE = KnownNodeType.SWITCH.value
_BRANCH_SLOTS = {True: 0, False: 1, "true": 0, "false": 1}

Note = dict[str, Any] | None


# --- smart parameters ----------------------------------------------------


def _switch_output_count(node: WorkflowNode) -> int | None:
    """Switch 节点的输出数；无法从参数推断时返回 None（不做越界检查）"""
    if node.str_param("mode") == "expression":
        outputs = node.param("numberOutputs")
        return outputs if isinstance(outputs, int) and not isinstance(outputs, bool) else None

    rules = node.param("rules.values")
    if not isinstance(rules, list):
        rules = node.param("rules.rules")
    if not isinstance(rules, list):
        return None
    extra = 1 if node.str_param("options.fallbackOutput") == "extra" else 0
    return len(rules) + extra


def resolve_source_index(
    source: WorkflowNode,
    *,
    source_index: int | None = None,
    branch: Any = None,
    case: Any = None,
) -> int:
    """smart parameter -> 输出槽位下标

    规则：
    - 显式 sourceIndex 优先
    - IF 节点：branch=true -> 0，branch=false -> 1
    - Switch 节点：case=N -> N（负数或越界报错）
    - 其它类型上的 branch / case 被忽略，返回 0

    抛出：
        InvalidOperationError: branch / case 取值不合法
    """
    if source_index is not None:
        return source_index

    node_type = normalize_node_type(source.type)
    if branch is not None and node_type == _IF_TYPE:
        key = branch.lower() if isinstance(branch, str) else branch
        if isinstance(key, bool) or key in ("true", "false"):
            return _BRANCH_SLOTS[key]
        raise InvalidOperationError(
            f'Invalid branch value {branch!r} for IF node "{source.name}". Use true or false.',
            details={"branch": branch},
        )

    if case is not None and node_type == _SWITCH_TYPE:
        if isinstance(case, bool) or not isinstance(case, int):
            raise InvalidOperationError(
                f'Invalid case value {case!r} for Switch node "{source.name}". Use a non-negative integer.',
                details={"case": case},
            )
        if case < 0:
            raise InvalidOperationError(
                f'Negative case {case} is not allowed for Switch node "{source.name}"',
                details={"case": case},
            )
        outputs = _switch_output_count(source)
        if outputs is not None and case >= outputs:
            raise InvalidOperationError(
                f'Switch node "{source.name}" has {outputs} outputs; case {case} is out of range',
                details={"case": case, "outputs": outputs},
            )
        return case

    return 0


def _set_by_path(target: dict[str, Any], path: str, value: Any) -> None:
    """点路径赋值；value 为 None 时删除该键"""
    parts = path.split(".")
    if not all(parts):
        raise InvalidOperationError(f"Invalid update path: {path!r}", details={"path": path})

    current = target
    for part in parts[:-1]:
        child = current.get(part)
        if child is None:
            if value is None:
                return
            child = current[part] = {}
        elif not isinstance(child, dict):
            raise InvalidOperationError(
                f'Cannot set "{path}": "{part}" is not an object', details={"path": path}
            )
        current = child

    if value is None:
        current.pop(parts[-1], None)
    else:
        current[parts[-1]] = copy.deepcopy(value)


# --- engine --------------------------------------------------------------


class WorkflowDiffEngine:
    """Diff 引擎

    参数：
        validator: 结果文档校验器（可选）
        max_operations: 单次请求允许的最大操作数
    """

    def __init__(
        self,
        validator: WorkflowValidator | None = None,
        max_operations: int = DEFAULT_MAX_OPERATIONS,
    ):
        self.validator = validator
        self.max_operations = max_operations
        self._appliers: dict[OperationType, Callable[[Workflow, Any], Note]] = {
            OperationType.ADD_NODE: self._add_node,
            OperationType.REMOVE_NODE: self._remove_node,
            OperationType.UPDATE_NODE: self._update_node,
            OperationType.MOVE_NODE: self._move_node,
            OperationType.ENABLE_NODE: self._enable_node,
            OperationType.DISABLE_NODE: self._disable_node,
            OperationType.ADD_CONNECTION: self._add_connection,
            OperationType.REMOVE_CONNECTION: self._remove_connection,
            OperationType.REWIRE_CONNECTION: self._rewire_connection,
            OperationType.REPLACE_CONNECTIONS: self._replace_connections,
            OperationType.CLEAN_STALE_CONNECTIONS: self._clean_stale_connections,
            OperationType.UPDATE_NAME: self._update_name,
            OperationType.ADD_TAG: self._add_tag,
            OperationType.REMOVE_TAG: self._remove_tag,
            OperationType.UPDATE_SETTINGS: self._update_settings,
        }

    def apply(
        self,
        workflow: Workflow,
        operations: Sequence[dict[str, Any] | DiffOperation],
        mode: DiffMode = DiffMode.ATOMIC,
    ) -> DiffResult:
        started = time.perf_counter()

        if len(operations) > self.max_operations:
            failure = OperationFailure(
                index=-1,
                type=None,
                code="TOO_MANY_OPERATIONS",
                message=f"Too many operations: {len(operations)} (maximum {self.max_operations})",
                details={"count": len(operations), "maximum": self.max_operations},
            )
            return self._finish(
                DiffResult(success=False, mode=mode, workflow=workflow.copy(), failed=[failure], message=failure.message),
                started,
            )

        if mode is DiffMode.CONTINUE_ON_ERROR:
            result = self._apply_continue_on_error(workflow, operations)
        else:
            result = self._apply_all_or_nothing(workflow, operations, mode)

        if result.success and self.validator is not None:
            result.validation = self.validator.validate(result.workflow)
        return self._finish(result, started)

    # --- 模式 ----------------------------------------------------------

    def _apply_all_or_nothing(
        self,
        workflow: Workflow,
        operations: Sequence[dict[str, Any] | DiffOperation],
        mode: DiffMode,
    ) -> DiffResult:
        parsed: list[tuple[int, DiffOperation]] = []
        for index, raw in enumerate(operations):
            try:
                parsed.append((index, parse_operation(raw)))
            except OperationError as exc:
                return self._rejected(workflow, mode, self._failure(index, raw, exc))

        # 两遍：节点操作在前，连接 / 元数据操作在后；各自保持请求中的相对顺序
        ordered = [item for item in parsed if item[1].type.is_node_operation]
        ordered += [item for item in parsed if not item[1].type.is_node_operation]

        scratch = workflow.copy()
        notes: list[dict[str, Any]] = []
        for index, operation in ordered:
            try:
                note = self._apply_one(scratch, operation)
            except OperationError as exc:
                return self._rejected(workflow, mode, self._failure(index, operation, exc))
            if note:
                notes.append({"index": index, "type": operation.type.value, **note})

        applied = [index for index, _ in parsed]
        message = (
            f"Validation successful. {len(applied)} operations would be applied."
            if mode is DiffMode.VALIDATE_ONLY
            else f"Applied {len(applied)} operations"
        )
        return DiffResult(
            success=True,
            mode=mode,
            workflow=scratch,
            applied=applied,
            notes=notes,
            message=message,
        )

    def _apply_continue_on_error(
        self,
        workflow: Workflow,
        operations: Sequence[dict[str, Any] | DiffOperation],
    ) -> DiffResult:
        current = workflow.copy()
        applied: list[int] = []
        failed: list[OperationFailure] = []
        notes: list[dict[str, Any]] = []

        for index, raw in enumerate(operations):
            operation: DiffOperation | None = None
            # 每个操作在候选副本上执行，失败时不会留下半截修改
            candidate = current.copy()
            try:
                operation = parse_operation(raw)
                note = self._apply_one(candidate, operation)
            except OperationError as exc:
                failed.append(self._failure(index, operation or raw, exc))
                continue
            current = candidate
            applied.append(index)
            if note:
                notes.append({"index": index, "type": operation.type.value, **note})

        success = bool(applied) or not failed
        return DiffResult(
            success=success,
            mode=DiffMode.CONTINUE_ON_ERROR,
            workflow=current,
            applied=applied,
            failed=failed,
            notes=notes,
            message=f"Applied {len(applied)} operations, {len(failed)} failed",
        )

    def _apply_one(self, workflow: Workflow, operation: DiffOperation) -> Note:
        return self._appliers[operation.type](workflow, operation)

    @staticmethod
    def _rejected(workflow: Workflow, mode: DiffMode, failure: OperationFailure) -> DiffResult:
        return DiffResult(
            success=False,
            mode=mode,
            workflow=workflow.copy(),
            failed=[failure],
            message=f"Operation {failure.index} failed: {failure.message}",
        )

    @staticmethod
    def _failure(index: int, operation: Any, exc: OperationError) -> OperationFailure:
        if isinstance(operation, DiffOperation):
            op_type: str | None = operation.type.value
        elif isinstance(operation, dict):
            op_type = operation.get("type") if isinstance(operation.get("type"), str) else None
        else:
            op_type = None
        exc.operation_index = index
        return OperationFailure(
            index=index,
            type=op_type,
            code=exc.code,
            message=exc.message,
            details=exc.details or None,
        )

    def _finish(self, result: DiffResult, started: float) -> DiffResult:
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        extra = {
            "workflow_id": result.workflow.id,
            "mode": result.mode.value,
            "applied_count": len(result.applied),
            "failed_count": len(result.failed),
            "diff_ms": elapsed_ms,
        }
        if result.success:
            logger.info("workflow_diff_applied", extra=extra)
        else:
            logger.warning("workflow_diff_rejected", extra={**extra, "error": result.message})
        return result

    # --- 查找 ----------------------------------------------------------

    @staticmethod
    def _find_node(workflow: Workflow, operation: NodeReferenceOperation) -> WorkflowNode:
        node = workflow.find_node(operation.node_id, operation.node_name)
        if node is None:
            raise NodeNotFoundError(operation.reference)
        return node

    @staticmethod
    def _resolve_endpoint(workflow: Workflow, reference: str, role: str) -> WorkflowNode:
        node = workflow.resolve_reference(reference)
        if node is None:
            raise NodeNotFoundError(reference, role=role)
        return node

    # --- 节点操作 ------------------------------------------------------

    def _add_node(self, workflow: Workflow, operation: AddNodeOperation) -> Note:
        data = copy.deepcopy(operation.node)
        name = data.get("name")
        node_type = data.get("type")
        if not isinstance(name, str) or not name.strip():
            raise InvalidOperationError('addNode requires a non-empty "name"')
        if not isinstance(node_type, str) or not node_type.strip():
            raise InvalidOperationError(f'addNode "{name}" requires a "type"')
        if "position" not in data:
            raise InvalidOperationError(f'addNode "{name}" requires a "position"')

        if node_type.startswith((BASE_PREFIX, LANGCHAIN_PREFIX)):
            raise InvalidOperationError(
                f'Invalid node type "{node_type}". Use the full form "{to_workflow_format(node_type)}"',
                details={"type": node_type, "suggestion": to_workflow_format(node_type)},
            )
        if "." not in node_type:
            raise InvalidOperationError(
                f'Invalid node type "{node_type}": missing package prefix (e.g. "n8n-nodes-base.{node_type}")',
                details={"type": node_type},
            )
        if workflow.has_node_name(name):
            raise DuplicateNodeNameError(name)

        data.setdefault("typeVersion", 1)
        if not data.get("id"):
            data["id"] = str(uuid4())
        elif workflow.get_node_by_id(str(data["id"])) is not None:
            raise InvalidOperationError(
                f'Node ID "{data["id"]}" already exists', code="DUPLICATE_NODE_ID", details={"id": data["id"]}
            )
        data.setdefault("parameters", {})

        try:
            node = WorkflowNode.from_dict(data)
        except DomainError as exc:
            raise InvalidOperationError(str(exc)) from exc
        workflow.nodes.append(node)
        return None

    def _remove_node(self, workflow: Workflow, operation: RemoveNodeOperation) -> Note:
        node = self._find_node(workflow, operation)
        workflow.remove_node(node)
        return None

    def _update_node(self, workflow: Workflow, operation: UpdateNodeOperation) -> Note:
        node = self._find_node(workflow, operation)
        document = node.to_dict()
        for path, value in operation.updates.items():
            _set_by_path(document, path, value)

        new_name = document.get("name")
        if not isinstance(new_name, str) or not new_name.strip():
            raise InvalidOperationError(f'Node "{node.name}" cannot have an empty name')
        if new_name != node.name and workflow.has_node_name(new_name):
            raise DuplicateNodeNameError(new_name)
        if document.get("id") != node.id:
            raise InvalidOperationError(f'Node ID of "{node.name}" cannot be changed')

        try:
            updated = WorkflowNode.from_dict(document)
        except DomainError as exc:
            raise InvalidOperationError(str(exc)) from exc

        old_name = node.name
        position = next(i for i, existing in enumerate(workflow.nodes) if existing is node)
        workflow.nodes[position] = updated
        if updated.name != old_name:
            workflow.connections.rename_node(old_name, updated.name)
        return None

    def _move_node(self, workflow: Workflow, operation: MoveNodeOperation) -> Note:
        node = self._find_node(workflow, operation)
        try:
            node.position = Position.from_list(operation.position)
        except DomainError as exc:
            raise InvalidOperationError(str(exc), details={"position": operation.position}) from exc
        return None

    def _enable_node(self, workflow: Workflow, operation: EnableNodeOperation) -> Note:
        self._find_node(workflow, operation).disabled = False
        return None

    def _disable_node(self, workflow: Workflow, operation: DisableNodeOperation) -> Note:
        self._find_node(workflow, operation).disabled = True
        return None

    # --- 连接操作 ------------------------------------------------------

    def _add_connection(self, workflow: Workflow, operation: AddConnectionOperation) -> Note:
        source = self._resolve_endpoint(workflow, operation.source, "Source node")
        target = self._resolve_endpoint(workflow, operation.target, "Target node")
        slot_index = resolve_source_index(
            source, source_index=operation.source_index, branch=operation.branch, case=operation.case
        )
        target_input = operation.target_input or operation.source_output

        if workflow.connections.has_connection(
            source.name,
            target.name,
            channel=operation.source_output,
            slot_index=slot_index,
            target_type=target_input,
            target_index=operation.target_index,
        ):
            raise InvalidOperationError(
                f'Connection from "{source.name}" to "{target.name}" already exists '
                f"({operation.source_output}[{slot_index}])",
                code="DUPLICATE_CONNECTION",
            )
        workflow.connections.add(
            source.name,
            operation.source_output,
            slot_index,
            ConnectionTarget(node=target.name, type=target_input, index=operation.target_index),
        )
        return None

    def _remove_connection(self, workflow: Workflow, operation: RemoveConnectionOperation) -> Note:
        connections = workflow.connections
        source = workflow.resolve_reference(operation.source)
        target = workflow.resolve_reference(operation.target)
        # 悬空连接的端点已不是节点，但仍可以按名称删除
        source_name = source.name if source else operation.source
        target_name = target.name if target else operation.target

        if source is None and source_name not in connections.sources():
            if operation.ignore_errors:
                return None
            raise NodeNotFoundError(operation.source, role="Source node")
        if target is None and not connections.references(target_name):
            if operation.ignore_errors:
                return None
            raise NodeNotFoundError(operation.target, role="Target node")

        slot_index = None
        if source is not None and (
            operation.source_index is not None or operation.branch is not None or operation.case is not None
        ):
            slot_index = resolve_source_index(
                source, source_index=operation.source_index, branch=operation.branch, case=operation.case
            )
        elif operation.source_index is not None:
            slot_index = operation.source_index

        removed = connections.remove(
            source_name,
            target_name,
            channel=operation.source_output,
            slot_index=slot_index,
            target_type=operation.target_input,
        )
        if removed == 0 and not operation.ignore_errors:
            raise ConnectionNotFoundError(
                f'No connection from "{source_name}" to "{target_name}" on {operation.source_output}',
                details={"source": source_name, "target": target_name, "sourceOutput": operation.source_output},
            )
        return None

    def _rewire_connection(self, workflow: Workflow, operation: RewireConnectionOperation) -> Note:
        source = self._resolve_endpoint(workflow, operation.source, "Source node")
        from_node = workflow.resolve_reference(operation.from_node)
        from_name = from_node.name if from_node else operation.from_node
        to_node = self._resolve_endpoint(workflow, operation.to_node, "Target node")
        channel = operation.source_output
        slots = workflow.connections.slots(source.name, channel)

        if operation.source_index is not None or operation.branch is not None or operation.case is not None:
            slot_index = resolve_source_index(
                source, source_index=operation.source_index, branch=operation.branch, case=operation.case
            )
        else:
            slot_index = next(
                (index for index, slot in enumerate(slots) if any(t.node == from_name for t in slot)),
                0,
            )

        slot = slots[slot_index] if slot_index < len(slots) else []
        existing = next((t for t in slot if t.node == from_name), None)
        if existing is None:
            raise ConnectionNotFoundError(
                f'No connection from "{source.name}" to "{from_name}" on {channel}[{slot_index}]',
                details={"source": source.name, "from": from_name, "sourceIndex": slot_index},
            )
        if to_node.name != from_name and any(t.node == to_node.name for t in slot):
            raise InvalidOperationError(
                f'"{source.name}" is already connected to "{to_node.name}" on {channel}[{slot_index}]',
                code="DUPLICATE_CONNECTION",
            )

        workflow.connections.replace_target(
            source.name,
            channel,
            slot_index,
            from_name,
            ConnectionTarget(node=to_node.name, type=existing.type, index=existing.index),
        )
        return None

    def _replace_connections(self, workflow: Workflow, operation: ReplaceConnectionsOperation) -> Note:
        try:
            connections = ConnectionMap.from_dict(operation.connections)
        except (DomainError, ValueError, TypeError) as exc:
            raise InvalidOperationError(f"Invalid connections: {exc}") from exc

        names = workflow.node_names()
        for source in connections.sources():
            if source not in names:
                raise NodeNotFoundError(source, role="Source node")
        for _source, _channel, _slot, target in connections.iter_connections():
            if target.node not in names:
                raise NodeNotFoundError(target.node, role="Target node")
        workflow.connections = connections
        return None

    def _clean_stale_connections(self, workflow: Workflow, operation: CleanStaleConnectionsOperation) -> Note:
        names = workflow.node_names()
        stale = [
            {"source": source, "target": target.node, "sourceOutput": channel, "sourceIndex": slot_index}
            for source, channel, slot_index, target in workflow.connections.iter_connections()
            if source not in names or target.node not in names
        ]
        if not operation.dry_run:
            for source in [s for s in workflow.connections.sources() if s not in names]:
                workflow.connections.drop_source(source)
            workflow.connections.filter_targets(lambda _s, _c, target: target.node in names)
        return {"dryRun": operation.dry_run, "removedConnections": stale}

    # --- 元数据操作 ----------------------------------------------------

    def _update_name(self, workflow: Workflow, operation: UpdateNameOperation) -> Note:
        workflow.name = operation.name
        return None

    def _add_tag(self, workflow: Workflow, operation: AddTagOperation) -> Note:
        if operation.tag not in workflow.tag_names():
            workflow.tags = [*(workflow.tags or []), operation.tag]
        return None

    def _remove_tag(self, workflow: Workflow, operation: RemoveTagOperation) -> Note:
        if workflow.tags:
            workflow.tags = [tag for tag in workflow.tags if tag_name(tag) != operation.tag]
        return None

    def _update_settings(self, workflow: Workflow, operation: UpdateSettingsOperation) -> Note:
        workflow.settings = {**(workflow.settings or {}), **copy.deepcopy(operation.settings)}
        return None
