"""NodeTypeInfo - 节点类型目录的查询结果

NodeTypeCatalog.lookup() 对未知类型返回 NodeTypeInfo.unknown(...)，而不是抛异常。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class NodeCapability(str, Enum):
    TRIGGER = "trigger"
    WEBHOOK = "webhook"
    AI_TOOL = "ai_tool"


class NodeCategory(str, Enum):
    """节点类别，用于定制错误处理建议"""

    NETWORK = "network"
    DESTRUCTIVE = "destructive"
    DATABASE = "database"
    MESSAGING = "messaging"
    SPREADSHEET = "spreadsheet"
    AI = "ai"
    TRANSFORM = "transform"
    FLOW = "flow"
    OTHER = "other"


@dataclass(frozen=True)
class RequiredParameter:
    """必填参数声明

    when 为空表示无条件必填；否则只有当所有 when 中的参数取值匹配时才必填，
    例如 {"resource": "message", "operation": ["send"]}。
    """

    name: str
    when: dict[str, tuple[Any, ...]] = field(default_factory=dict)

    def applies_to(self, parameters: dict[str, Any]) -> bool:
        for key, accepted in self.when.items():
            if parameters.get(key) not in accepted:
                return False
        return True


@dataclass(frozen=True)
class NodeTypeInfo:
    """节点类型声明

    属性说明：
    - node_type: 规范化后的类型标识（如 nodes-base.slack）
    - display_name: 展示名称
    - required_parameters: 必填参数声明
    - required_credentials: 必需的凭证类型
    - capabilities: 能力标记（trigger/webhook/ai_tool）
    - category: 节点类别
    - known: False 表示目录中没有该类型
    """

    node_type: str
    display_name: str = ""
    required_parameters: tuple[RequiredParameter, ...] = ()
    required_credentials: tuple[str, ...] = ()
    capabilities: frozenset[NodeCapability] = frozenset()
    category: NodeCategory = NodeCategory.OTHER
    known: bool = True

    @classmethod
    def unknown(cls, node_type: str) -> NodeTypeInfo:
        return cls(node_type=node_type, known=False)

    @property
    def is_trigger(self) -> bool:
        return NodeCapability.TRIGGER in self.capabilities

    @property
    def is_webhook(self) -> bool:
        return NodeCapability.WEBHOOK in self.capabilities

    @property
    def is_ai_tool(self) -> bool:
        return NodeCapability.AI_TOOL in self.capabilities

    def required_parameters_for(self, parameters: dict[str, Any]) -> list[str]:
        return [req.name for req in self.required_parameters if req.applies_to(parameters)]
