"""Workflow 实体 - 工作流文档聚合根

业务定义：
- Workflow 由有序节点列表 + 连接表 + settings / tags 等元数据组成
- 连接按节点 name 引用，所以 name 在图内必须唯一

生命周期：
- 每个校验 / 变更请求都从输入文档重新构建 Workflow，请求结束即丢弃
- copy() 返回完全独立的副本，diff 引擎在副本上工作
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from workflow_guard.domain.entities.connection_map import ConnectionMap
from workflow_guard.domain.entities.node import WorkflowNode
from workflow_guard.domain.exceptions import DomainError

_MODELED_KEYS = frozenset({"id", "name", "nodes", "connections", "settings", "tags", "active"})


def tag_name(tag: Any) -> str | None:
    """tags 既可能是字符串，也可能是 {"id", "name"} 对象"""
    if isinstance(tag, str):
        return tag
    if isinstance(tag, dict) and isinstance(tag.get("name"), str):
        return tag["name"]
    return None


@dataclass
class Workflow:
    """Workflow 实体（聚合根）

    属性说明：
    - id: 工作流 ID（可为空，校验请求不要求 ID）
    - name: 工作流名称
    - nodes: 有序节点列表
    - connections: 连接表
    - settings: 工作流级设置
    - tags: 标签
    - active: 是否激活（原样透传）
    - extra: 未建模字段
    """

    id: str | None
    name: str
    nodes: list[WorkflowNode] = field(default_factory=list)
    connections: ConnectionMap = field(default_factory=ConnectionMap)
    settings: dict[str, Any] | None = None
    tags: list[Any] | None = None
    active: bool | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Workflow:
        """从工作流文档构建聚合

        抛出：
            DomainError: 文档形状不合法（nodes 不是数组、节点缺少 name/type 等）
        """
        if not isinstance(data, dict):
            raise DomainError("工作流文档必须是对象")
        raw_nodes = data.get("nodes", [])
        if not isinstance(raw_nodes, list):
            raise DomainError("nodes 必须是数组")

        settings = data.get("settings")
        tags = data.get("tags")
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            name=str(data.get("name") or ""),
            nodes=[WorkflowNode.from_dict(node) for node in raw_nodes],
            connections=ConnectionMap.from_dict(data.get("connections")),
            settings=copy.deepcopy(settings) if isinstance(settings, dict) else None,
            tags=copy.deepcopy(tags) if isinstance(tags, list) else None,
            active=data.get("active"),
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in _MODELED_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.id is not None:
            payload["id"] = self.id
        payload["name"] = self.name
        payload["nodes"] = [node.to_dict() for node in self.nodes]
        payload["connections"] = self.connections.to_dict()
        if self.settings is not None:
            payload["settings"] = copy.deepcopy(self.settings)
        if self.tags is not None:
            payload["tags"] = copy.deepcopy(self.tags)
        if self.active is not None:
            payload["active"] = self.active
        payload.update(copy.deepcopy(self.extra))
        return payload

    def copy(self) -> Workflow:
        return copy.deepcopy(self)

    # --- 节点查询 ------------------------------------------------------

    def get_node_by_name(self, name: str) -> WorkflowNode | None:
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    def get_node_by_id(self, node_id: str) -> WorkflowNode | None:
        for node in self.nodes:
            if node.id and node.id == node_id:
                return node
        return None

    def find_node(self, node_id: str | None = None, node_name: str | None = None) -> WorkflowNode | None:
        """按 id 或 name 查找节点（先 id 后 name）"""
        if node_id:
            node = self.get_node_by_id(node_id)
            if node is not None:
                return node
        if node_name:
            return self.get_node_by_name(node_name)
        return None

    def resolve_reference(self, reference: str) -> WorkflowNode | None:
        """连接端点既可以写名称也可以写 ID，名称优先"""
        return self.get_node_by_name(reference) or self.get_node_by_id(reference)

    def node_names(self) -> set[str]:
        return {node.name for node in self.nodes}

    def has_node_name(self, name: str) -> bool:
        return self.get_node_by_name(name) is not None

    # --- 节点修改 ------------------------------------------------------

    def remove_node(self, node: WorkflowNode) -> int:
        """删除节点及其所有连接，返回被删除的连接数"""
        self.nodes = [n for n in self.nodes if n is not node]
        return self.connections.remove_node_references(node.name)

    # --- 标签 ----------------------------------------------------------

    def tag_names(self) -> list[str]:
        return [name for name in (tag_name(t) for t in self.tags or []) if name is not None]
