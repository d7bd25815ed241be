"""HTTP 相关节点规则（HTTP Request / Webhook）"""

from __future__ import annotations

from workflow_guard.domain.services.node_rules.base import (
    RuleContext,
    common_checks,
    is_empty_value,
    is_expression,
)
from workflow_guard.domain.value_objects.node_type_info import NodeCategory
from workflow_guard.domain.value_objects.validation_issue import IssueCategory, ValidationIssue

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


def http_request_rule(ctx: RuleContext) -> list[ValidationIssue]:
    method = (ctx.node.str_param("method") or "GET").upper()
    issues = common_checks(ctx, NodeCategory.DESTRUCTIVE if method == "DELETE" else NodeCategory.NETWORK)

    url = ctx.node.param("url")
    if is_empty_value(url):
        issues.append(
            ctx.error(
                "MISSING_URL",
                "URL is required for HTTP requests",
                category=IssueCategory.CONDITIONAL_REQUIREMENT,
            )
        )
    elif isinstance(url, str) and not is_expression(url) and not url.startswith(("http://", "https://")):
        issues.append(
            ctx.error("INVALID_URL", "URL should start with http:// or https://", details={"url": url})
        )

    authentication = ctx.node.str_param("authentication")
    if authentication and authentication != "none" and not ctx.node.has_credentials:
        issues.append(
            ctx.warning(
                "AUTHENTICATION_WITHOUT_CREDENTIALS",
                f'authentication is set to "{authentication}" but no credentials are configured',
            )
        )

    if method in BODY_METHODS and not ctx.node.bool_param("sendBody"):
        issues.append(
            ctx.warning("MISSING_REQUEST_BODY", f"{method} requests typically include a body")
        )
    return issues


def webhook_rule(ctx: RuleContext) -> list[ValidationIssue]:
    # webhook 入口不需要"网络调用"类建议，只检查字段
    issues = common_checks(ctx, NodeCategory.OTHER)

    path = ctx.node.param("path")
    if is_empty_value(path):
        issues.append(
            ctx.error(
                "MISSING_WEBHOOK_PATH",
                "Webhook path is required",
                category=IssueCategory.CONDITIONAL_REQUIREMENT,
            )
        )
    elif isinstance(path, str) and path.startswith("/"):
        issues.append(ctx.warning("WEBHOOK_PATH_LEADING_SLASH", "Webhook path should not start with /"))

    if ctx.node.str_param("responseMode") == "responseNode" and ctx.node.error_handling_mode is None:
        issues.append(
            ctx.error(
                "RESPONSE_NODE_WITHOUT_ERROR_HANDLING",
                'responseNode mode requires onError: "continueRegularOutput" so a response is always sent',
                category=IssueCategory.CONDITIONAL_REQUIREMENT,
            )
        )
    elif ctx.node.error_handling_mode is None:
        issues.append(
            ctx.warning(
                "ERROR_HANDLING_RECOMMENDED",
                f'Webhook "{ctx.node.name}" should always send a response, even on error. '
                'Consider "onError: continueRegularOutput".',
            )
        )
    return issues
