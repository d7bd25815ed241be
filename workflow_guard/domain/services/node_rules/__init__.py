"""节点专用规则

create_rule_registry() 返回注册好全部专用规则的注册表（通用规则作为 fallback）。
"""

from workflow_guard.domain.services.node_rules import ai_tools
from workflow_guard.domain.services.node_rules.base import NodeRule, RuleContext
from workflow_guard.domain.services.node_rules.code import code_rule
from workflow_guard.domain.services.node_rules.database import SQL_NODE_TYPES, sql_rule
from workflow_guard.domain.services.node_rules.generic import generic_rule
from workflow_guard.domain.services.node_rules.http import http_request_rule, webhook_rule
from workflow_guard.domain.services.node_rules.messaging import slack_rule
from workflow_guard.domain.services.node_rules.registry import NodeRuleRegistry
from workflow_guard.domain.services.node_rules.spreadsheet import google_sheets_rule
from workflow_guard.domain.value_objects.node_type import KnownNodeType


def create_rule_registry() -> NodeRuleRegistry:
    registry = NodeRuleRegistry(fallback=generic_rule)

    for node_type in SQL_NODE_TYPES:
        registry.register(node_type, sql_rule)
    registry.register(KnownNodeType.SLACK.value, slack_rule)
    registry.register(KnownNodeType.GOOGLE_SHEETS.value, google_sheets_rule)
    registry.register(KnownNodeType.HTTP_REQUEST.value, http_request_rule)
    registry.register(KnownNodeType.WEBHOOK.value, webhook_rule)
    registry.register(KnownNodeType.CODE.value, code_rule)

    registry.register(KnownNodeType.TOOL_HTTP_REQUEST.value, ai_tools.http_request_tool_rule)
    registry.register(KnownNodeType.TOOL_CODE.value, ai_tools.code_tool_rule)
    registry.register(KnownNodeType.TOOL_VECTOR_STORE.value, ai_tools.vector_store_tool_rule)
    registry.register(KnownNodeType.TOOL_WORKFLOW.value, ai_tools.workflow_tool_rule)
    registry.register(KnownNodeType.AGENT_TOOL.value, ai_tools.agent_tool_rule)
    registry.register(KnownNodeType.MCP_CLIENT_TOOL.value, ai_tools.mcp_client_tool_rule)
    registry.register(KnownNodeType.TOOL_SEARXNG.value, ai_tools.searxng_tool_rule)
    registry.register(KnownNodeType.TOOL_WIKIPEDIA.value, ai_tools.wikipedia_tool_rule)
    for node_type in (
        KnownNodeType.TOOL_CALCULATOR,
        KnownNodeType.TOOL_THINK,
        KnownNodeType.TOOL_SERP_API,
        KnownNodeType.TOOL_WOLFRAM_ALPHA,
    ):
        registry.register(node_type.value, ai_tools.simple_tool_rule)

    return registry


__all__ = [
    "NodeRule",
    "NodeRuleRegistry",
    "RuleContext",
    "create_rule_registry",
    "generic_rule",
]
