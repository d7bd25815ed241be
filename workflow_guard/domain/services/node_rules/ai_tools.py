"""AI 工具子节点规则

工具通过 ai_tool 通道挂到 AI Agent 上，LLM 依靠 toolDescription 决定何时调用它，
所以描述缺失是 warning，各工具自己的必填项缺失是 error。
"""

from __future__ import annotations

import re
from urllib.parse import urlparse

from workflow_guard.domain.entities.node import WorkflowNode
from workflow_guard.domain.services.node_rules.base import (
    RuleContext,
    common_checks,
    is_empty_value,
    is_expression,
)
from workflow_guard.domain.value_objects.node_type import KnownNodeType
from workflow_guard.domain.value_objects.node_type_info import NodeCategory
from workflow_guard.domain.value_objects.validation_issue import IssueCategory, ValidationIssue

MIN_DESCRIPTION_LENGTH = 15
MAX_TOP_K_WARNING = 50
MAX_ITERATIONS_WARNING = 50

_PLACEHOLDER_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")
_VALID_HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")

# 这些工具自带固定语义，不强制要求描述
_SELF_DESCRIBING_TOOLS = frozenset({KnownNodeType.TOOL_CALCULATOR.value, KnownNodeType.TOOL_THINK.value})


def tool_description(node: WorkflowNode) -> str:
    return node.str_param("toolDescription") or node.str_param("description")


def tool_description_issue(node: WorkflowNode, node_type: str) -> ValidationIssue | None:
    """工具缺少描述时的 warning；AI Agent 校验也复用它（消息一致便于去重）"""
    if node_type in _SELF_DESCRIBING_TOOLS:
        return None
    if tool_description(node).strip():
        return None
    return ValidationIssue.warning(
        "MISSING_TOOL_DESCRIPTION",
        f'Tool "{node.name}" has no toolDescription. Add one so the LLM knows when to use it.',
        IssueCategory.CONDITIONAL_REQUIREMENT,
        node_name=node.name,
        node_id=node.id or None,
    )


def _description_checks(ctx: RuleContext) -> list[ValidationIssue]:
    missing = tool_description_issue(ctx.node, ctx.node_type)
    if missing is not None:
        return [missing]
    description = tool_description(ctx.node).strip()
    if description and len(description) < MIN_DESCRIPTION_LENGTH and ctx.node_type not in _SELF_DESCRIBING_TOOLS:
        return [
            ctx.info_issue(
                "SHORT_TOOL_DESCRIPTION",
                f"toolDescription is very short (minimum {MIN_DESCRIPTION_LENGTH} characters recommended)",
            )
        ]
    return []


def _positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def http_request_tool_rule(ctx: RuleContext) -> list[ValidationIssue]:
    issues = [*common_checks(ctx, NodeCategory.NETWORK), *_description_checks(ctx)]

    url = ctx.node.param("url")
    if is_empty_value(url):
        issues.append(
            ctx.error("MISSING_URL", "HTTP Request Tool has no URL", category=IssueCategory.CONDITIONAL_REQUIREMENT)
        )
    elif isinstance(url, str) and not is_expression(url) and "{" not in url:
        scheme = urlparse(url).scheme
        if scheme not in ("http", "https"):
            issues.append(ctx.error("INVALID_URL_PROTOCOL", "Use http:// or https:// only", details={"url": url}))

    if isinstance(url, str):
        used = set(_PLACEHOLDER_RE.findall(url))
        definitions = ctx.node.param("placeholderDefinitions.values") or []
        defined = {d.get("name") for d in definitions if isinstance(d, dict)}
        for placeholder in sorted(used - defined):
            issues.append(
                ctx.error(
                    "UNDEFINED_PLACEHOLDER",
                    f'Placeholder "{placeholder}" is used in the URL but not defined in placeholderDefinitions',
                )
            )

    method = ctx.node.str_param("method")
    if method and method.upper() not in _VALID_HTTP_METHODS:
        issues.append(
            ctx.error(
                "INVALID_HTTP_METHOD",
                f'Invalid HTTP method "{method}". Use one of: {", ".join(_VALID_HTTP_METHODS)}',
            )
        )
    return issues


def code_tool_rule(ctx: RuleContext) -> list[ValidationIssue]:
    issues = [*common_checks(ctx, NodeCategory.TRANSFORM), *_description_checks(ctx)]
    code = ctx.node.str_param("jsCode") or ctx.node.str_param("pythonCode") or ctx.node.str_param("code")
    if not code.strip():
        issues.append(ctx.error("MISSING_CODE", "Code Tool code is empty", category=IssueCategory.CONDITIONAL_REQUIREMENT))
    return issues


def vector_store_tool_rule(ctx: RuleContext) -> list[ValidationIssue]:
    issues = [*common_checks(ctx, NodeCategory.AI), *_description_checks(ctx)]
    top_k = ctx.node.param("topK")
    if top_k is not None:
        if not _positive_int(top_k):
            issues.append(ctx.error("INVALID_TOPK", "topK must be a positive number"))
        elif top_k > MAX_TOP_K_WARNING:
            issues.append(
                ctx.warning("LARGE_TOPK", f"topK={top_k} may overwhelm the LLM context. Consider 10 or less.")
            )
    return issues


def workflow_tool_rule(ctx: RuleContext) -> list[ValidationIssue]:
    issues = [*common_checks(ctx), *_description_checks(ctx)]
    if is_empty_value(ctx.node.param("workflowId")) and ctx.node.str_param("source") != "parameter":
        issues.append(
            ctx.error(
                "MISSING_WORKFLOW_ID",
                "Workflow Tool has no workflowId. Select a workflow to execute.",
                category=IssueCategory.CONDITIONAL_REQUIREMENT,
            )
        )
    return issues


def agent_tool_rule(ctx: RuleContext) -> list[ValidationIssue]:
    issues = [*common_checks(ctx, NodeCategory.AI), *_description_checks(ctx)]
    max_iterations = ctx.node.param("options.maxIterations")
    if max_iterations is not None:
        if not _positive_int(max_iterations):
            issues.append(ctx.error("INVALID_MAX_ITERATIONS", "maxIterations must be a positive number"))
        elif max_iterations > MAX_ITERATIONS_WARNING:
            issues.append(
                ctx.warning("HIGH_MAX_ITERATIONS", f"maxIterations={max_iterations} may lead to long execution times")
            )
    return issues


def mcp_client_tool_rule(ctx: RuleContext) -> list[ValidationIssue]:
    issues = [*common_checks(ctx, NodeCategory.NETWORK), *_description_checks(ctx)]
    if is_empty_value(ctx.node.param("sseEndpoint")) and is_empty_value(ctx.node.param("serverUrl")):
        issues.append(
            ctx.error(
                "MISSING_SERVER_URL",
                "MCP Client Tool has no server URL",
                category=IssueCategory.CONDITIONAL_REQUIREMENT,
            )
        )
    return issues


def searxng_tool_rule(ctx: RuleContext) -> list[ValidationIssue]:
    issues = [*common_checks(ctx, NodeCategory.NETWORK), *_description_checks(ctx)]
    if is_empty_value(ctx.node.param("baseUrl")) and not ctx.node.has_credentials:
        issues.append(
            ctx.error(
                "MISSING_BASE_URL",
                "SearXNG Tool has no baseUrl. Configure your SearXNG instance URL.",
                category=IssueCategory.CONDITIONAL_REQUIREMENT,
            )
        )
    return issues


def wikipedia_tool_rule(ctx: RuleContext) -> list[ValidationIssue]:
    issues = [*common_checks(ctx, NodeCategory.NETWORK), *_description_checks(ctx)]
    language = ctx.node.param("language")
    if isinstance(language, str) and not re.fullmatch(r"[a-z]{2,3}", language):
        issues.append(
            ctx.warning("INVALID_LANGUAGE_CODE", f'"{language}" is not an ISO 639 language code (e.g. "en", "fr")')
        )
    return issues


def simple_tool_rule(ctx: RuleContext) -> list[ValidationIssue]:
    """Calculator / Think / SerpApi / WolframAlpha：目录负责凭证，这里只看描述"""
    return [*common_checks(ctx, NodeCategory.NETWORK if ctx.info.required_credentials else None), *_description_checks(ctx)]
