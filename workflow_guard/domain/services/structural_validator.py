"""StructuralValidator - 工作流图结构校验（Domain Service）

检查项：
- 悬空引用：连接的 source / target 名称必须对应现有节点（每个悬空引用恰好一条问题）
- 名称 / ID 唯一性
- 目录声明的必填参数
- 退化工作流：只有一个非触发器、且没有连接的节点
- 环、孤立节点、指向禁用节点的连接、缺少触发器等

只收集问题、不抛异常；所有问题一次性返回。
"""

from __future__ import annotations

from collections import Counter, defaultdict, deque
from dataclasses import dataclass

from workflow_guard.domain.entities.workflow import Workflow
from workflow_guard.domain.ports.node_type_catalog import NodeTypeCatalog
from workflow_guard.domain.services.node_rules.base import missing_required_parameter_issues
from workflow_guard.domain.services.node_type_normalizer import (
    BASE_PREFIX,
    LANGCHAIN_PREFIX,
    is_langchain_node,
    is_trigger_type,
    normalize_node_type,
)
from workflow_guard.domain.value_objects.connection import ConnectionChannel
from workflow_guard.domain.value_objects.node_type import LOOP_NODE_TYPES
from workflow_guard.domain.value_objects.node_type_info import NodeTypeInfo
from workflow_guard.domain.value_objects.validation_issue import IssueCategory, ValidationIssue

_FLOW_CHANNELS = frozenset({ConnectionChannel.MAIN.value, ConnectionChannel.ERROR.value})
_LOOP_TYPES = frozenset(t.value for t in LOOP_NODE_TYPES)
# 这些 AI 节点是"消费方"，其余 langchain 节点视为供应方子节点
_AI_ROOT_TYPES = frozenset(
    {"nodes-langchain.agent", "nodes-langchain.chainLlm", "nodes-langchain.chatTrigger"}
)
_STICKY_NOTE = "nodes-base.stickyNote"


def _structural_error(code: str, message: str, **kwargs) -> ValidationIssue:
    return ValidationIssue.error(code, message, IssueCategory.STRUCTURAL, **kwargs)


@dataclass(frozen=True, slots=True)
class StructuralValidator:
    catalog: NodeTypeCatalog

    def validate(self, workflow: Workflow) -> list[ValidationIssue]:
        if not workflow.nodes:
            return [_structural_error("EmptyWorkflow", "Workflow has no nodes")]

        infos = [self.catalog.lookup(normalize_node_type(node.type)) for node in workflow.nodes]

        issues: list[ValidationIssue] = []
        issues.extend(self._check_uniqueness(workflow))
        issues.extend(self._check_node_types(workflow, infos))
        issues.extend(self._check_required_parameters(workflow, infos))
        issues.extend(self._check_connections(workflow))
        issues.extend(self._check_shape(workflow, infos))
        issues.extend(self._check_cycles(workflow))
        return issues

    # --- 唯一性 ---------------------------------------------------------

    def _check_uniqueness(self, workflow: Workflow) -> list[ValidationIssue]:
        issues = []
        name_counts = Counter(node.name for node in workflow.nodes)
        for name, count in name_counts.items():
            if count > 1:
                issues.append(
                    _structural_error(
                        "DuplicateName",
                        f'Duplicate node name: "{name}" is used by {count} nodes',
                        node_name=name,
                        details={"count": count},
                    )
                )
        id_counts = Counter(node.id for node in workflow.nodes if node.id)
        for node_id, count in id_counts.items():
            if count > 1:
                issues.append(
                    _structural_error(
                        "DuplicateNodeId",
                        f'Duplicate node ID: "{node_id}"',
                        node_id=node_id,
                        details={"count": count},
                    )
                )
        return issues

    # --- 节点类型与参数 -------------------------------------------------

    def _check_node_types(self, workflow: Workflow, infos: list[NodeTypeInfo]) -> list[ValidationIssue]:
        issues = []
        for node, info in zip(workflow.nodes, infos):
            if node.is_disabled:
                continue
            if node.type.startswith((BASE_PREFIX, LANGCHAIN_PREFIX)) or "." not in node.type:
                issues.append(
                    _structural_error(
                        "InvalidNodeTypeFormat",
                        f'Invalid node type "{node.type}". Node types in workflows must use the full '
                        'package name (e.g. "n8n-nodes-base.webhook")',
                        node_name=node.name,
                        node_id=node.id or None,
                    )
                )
            elif not info.known:
                issues.append(
                    ValidationIssue.warning(
                        "UnknownNodeType",
                        f'Unknown node type "{node.type}"; node-specific checks are limited',
                        IssueCategory.STRUCTURAL,
                        node_name=node.name,
                        node_id=node.id or None,
                    )
                )
        return issues

    def _check_required_parameters(
        self, workflow: Workflow, infos: list[NodeTypeInfo]
    ) -> list[ValidationIssue]:
        issues = []
        for node, info in zip(workflow.nodes, infos):
            if node.is_disabled:
                continue
            issues.extend(missing_required_parameter_issues(node, info))
        return issues

    # --- 连接 -----------------------------------------------------------

    def _check_connections(self, workflow: Workflow) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        names = workflow.node_names()

        for source in workflow.connections.sources():
            if source not in names:
                issues.append(self._dangling(workflow, source, role="source"))
            for channel in workflow.connections.channels(source):
                if ConnectionChannel.parse(channel) is None:
                    issues.append(self._unknown_channel(source, channel))

        for source, channel, slot_index, target in workflow.connections.iter_connections():
            if target.node not in names:
                issues.append(
                    self._dangling(
                        workflow,
                        target.node,
                        role="target",
                        source=source,
                        channel=channel,
                        slot_index=slot_index,
                        target_index=target.index,
                    )
                )
                continue
            if target.index < 0:
                issues.append(
                    _structural_error(
                        "InvalidConnectionIndex",
                        f'Connection from "{source}" to "{target.node}" has negative input index {target.index}',
                        node_name=source,
                    )
                )
            target_node = workflow.get_node_by_name(target.node)
            if target_node is not None and target_node.is_disabled:
                issues.append(
                    ValidationIssue.warning(
                        "ConnectionToDisabledNode",
                        f'Connection to disabled node "{target.node}" from "{source}"',
                        IssueCategory.STRUCTURAL,
                        node_name=target.node,
                    )
                )
        return issues

    @staticmethod
    def _dangling(
        workflow: Workflow,
        reference: str,
        *,
        role: str,
        source: str | None = None,
        channel: str | None = None,
        slot_index: int | None = None,
        target_index: int | None = None,
    ) -> ValidationIssue:
        by_id = workflow.get_node_by_id(reference)
        if role == "source":
            message = f'Connection from non-existent node "{reference}"'
        else:
            # 每条悬空连接对应一条问题，消息里包含通道与下标
            message = (
                f'Connection to non-existent node "{reference}" from "{source}" '
                f"({channel}[{slot_index}] -> input {target_index})"
            )
        details: dict = {"reference": reference, "role": role}
        if role == "target":
            details.update({"channel": channel, "sourceIndex": slot_index, "targetIndex": target_index})
        if by_id is not None:
            message += f'. "{reference}" is a node ID; connections must use the node name "{by_id.name}"'
            details["suggestedName"] = by_id.name
        return _structural_error(
            "DanglingReference",
            message,
            node_name=source if role == "target" else reference,
            details=details,
        )

    @staticmethod
    def _unknown_channel(source: str, channel: str) -> ValidationIssue:
        message = f'Node "{source}" has connections on unknown channel "{channel}"'
        if channel.startswith("ai_"):
            return ValidationIssue.warning(
                "UnknownChannel", message, IssueCategory.DIRECTION, node_name=source
            )
        return ValidationIssue.error("UnknownChannel", message, IssueCategory.DIRECTION, node_name=source)

    # --- 整体形状 -------------------------------------------------------

    def _check_shape(self, workflow: Workflow, infos: list[NodeTypeInfo]) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        triggers = {
            index
            for index, (node, info) in enumerate(zip(workflow.nodes, infos))
            if info.is_trigger or info.is_webhook or is_trigger_type(node.type)
        }

        if len(workflow.nodes) == 1:
            node = workflow.nodes[0]
            connected = workflow.connections.references(node.name)
            if not connected and 0 not in triggers:
                issues.append(
                    _structural_error(
                        "DegenerateWorkflow",
                        "Single-node workflows are only valid for trigger or webhook nodes. "
                        "Add at least one more connected node.",
                        node_name=node.name,
                        node_id=node.id or None,
                    )
                )
            elif not connected:
                issues.append(
                    ValidationIssue.warning(
                        "UnconnectedTrigger",
                        f'Trigger "{node.name}" has no connections. Add nodes to process its data.',
                        IssueCategory.STRUCTURAL,
                        node_name=node.name,
                    )
                )
            return issues

        has_enabled = any(not node.is_disabled for node in workflow.nodes)
        if has_enabled and workflow.connections.is_empty():
            issues.append(
                _structural_error(
                    "NoConnections",
                    "Multi-node workflow has no connections. Nodes must be connected by name.",
                )
            )
            return issues

        connected = self._connected_names(workflow)
        for index, node in enumerate(workflow.nodes):
            if node.is_disabled or node.name in connected or index in triggers:
                continue
            normalized = normalize_node_type(node.type)
            if normalized == _STICKY_NOTE:
                continue
            # 未连接的 AI 子节点由 AI 校验器报告
            if is_langchain_node(normalized) and normalized not in _AI_ROOT_TYPES:
                continue
            issues.append(
                ValidationIssue.warning(
                    "OrphanNode",
                    f'Node "{node.name}" is not connected to any other nodes',
                    IssueCategory.STRUCTURAL,
                    node_name=node.name,
                    node_id=node.id or None,
                )
            )

        if not any(index in triggers for index, node in enumerate(workflow.nodes) if not node.is_disabled):
            issues.append(
                ValidationIssue.warning(
                    "NoTrigger",
                    "Workflow has no trigger nodes. It can only be executed manually.",
                    IssueCategory.STRUCTURAL,
                )
            )
        return issues

    @staticmethod
    def _connected_names(workflow: Workflow) -> set[str]:
        connected: set[str] = set()
        for source, _channel, _slot, target in workflow.connections.iter_connections():
            connected.add(source)
            connected.add(target.node)
        return connected

    # --- 环检测（Kahn 拓扑排序） -----------------------------------------

    def _check_cycles(self, workflow: Workflow) -> list[ValidationIssue]:
        names = workflow.node_names()
        types = {node.name: normalize_node_type(node.type) for node in workflow.nodes}

        adjacency: dict[str, set[str]] = defaultdict(set)
        for source, channel, _slot, target in workflow.connections.iter_connections():
            if channel not in _FLOW_CHANNELS or source not in names or target.node not in names:
                continue
            # SplitInBatches 的回边是合法循环
            if types.get(source) in _LOOP_TYPES or types.get(target.node) in _LOOP_TYPES:
                continue
            adjacency[source].add(target.node)

        in_degree = {name: 0 for name in names}
        for targets in adjacency.values():
            for target in targets:
                in_degree[target] += 1

        queue = deque(name for name, degree in in_degree.items() if degree == 0)
        visited = 0
        while queue:
            current = queue.popleft()
            visited += 1
            for target in adjacency.get(current, ()):
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    queue.append(target)

        if visited == len(names):
            return []
        in_cycle = sorted(name for name, degree in in_degree.items() if degree > 0)
        return [
            _structural_error(
                "CycleDetected",
                "Workflow contains a cycle (infinite loop)",
                details={"nodes": in_cycle},
            )
        ]
