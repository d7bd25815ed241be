"""节点类型标识规范化

工作流文档里的类型是"完整形式"（n8n-nodes-base.slack、@n8n/n8n-nodes-langchain.agent），
目录和规则注册表使用"规范化形式"（nodes-base.slack、nodes-langchain.agent）。
所有按类型做分发的地方都先规范化再查表。
"""

from __future__ import annotations

from typing import Literal

BASE_PREFIX = "nodes-base."
LANGCHAIN_PREFIX = "nodes-langchain."

_WORKFLOW_BASE_PREFIX = "n8n-nodes-base."
_WORKFLOW_LANGCHAIN_PREFIX = "@n8n/n8n-nodes-langchain."
_BARE_LANGCHAIN_PREFIX = "n8n-nodes-langchain."

_TRIGGER_TYPES = frozenset(
    {
        "nodes-base.webhook",
        "nodes-base.manualTrigger",
        "nodes-base.scheduleTrigger",
        "nodes-base.formTrigger",
        "nodes-base.cron",
        "nodes-base.start",
        "nodes-langchain.chatTrigger",
        "nodes-langchain.manualChatTrigger",
    }
)

NodePackage = Literal["base", "langchain", "community", "unknown"]


def normalize_node_type(node_type: str) -> str:
    """完整形式 -> 规范化形式；已规范化或社区节点原样返回"""
    if not node_type or not isinstance(node_type, str):
        return node_type
    if node_type.startswith(_WORKFLOW_BASE_PREFIX):
        return BASE_PREFIX + node_type[len(_WORKFLOW_BASE_PREFIX) :]
    if node_type.startswith(_WORKFLOW_LANGCHAIN_PREFIX):
        return LANGCHAIN_PREFIX + node_type[len(_WORKFLOW_LANGCHAIN_PREFIX) :]
    if node_type.startswith(_BARE_LANGCHAIN_PREFIX):
        return LANGCHAIN_PREFIX + node_type[len(_BARE_LANGCHAIN_PREFIX) :]
    return node_type


def to_workflow_format(node_type: str) -> str:
    """规范化形式 -> 工作流文档使用的完整形式"""
    if node_type.startswith(BASE_PREFIX):
        return _WORKFLOW_BASE_PREFIX + node_type[len(BASE_PREFIX) :]
    if node_type.startswith(LANGCHAIN_PREFIX):
        return _WORKFLOW_LANGCHAIN_PREFIX + node_type[len(LANGCHAIN_PREFIX) :]
    return node_type


def detect_package(node_type: str) -> NodePackage:
    normalized = normalize_node_type(node_type)
    if normalized.startswith(BASE_PREFIX):
        return "base"
    if normalized.startswith(LANGCHAIN_PREFIX):
        return "langchain"
    if "." in normalized:
        return "community"
    return "unknown"


def is_base_node(node_type: str) -> bool:
    return detect_package(node_type) == "base"


def is_langchain_node(node_type: str) -> bool:
    return detect_package(node_type) == "langchain"


def short_name(node_type: str) -> str:
    """nodes-base.slack -> slack"""
    return normalize_node_type(node_type).rsplit(".", 1)[-1]


def is_trigger_type(node_type: str) -> bool:
    """按类型名判断是否为触发器（目录不可用时的兜底判断）"""
    normalized = normalize_node_type(node_type)
    if normalized in _TRIGGER_TYPES:
        return True
    return short_name(normalized).lower().endswith("trigger")
