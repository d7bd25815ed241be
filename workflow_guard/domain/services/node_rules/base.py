"""节点规则公共部分

- RuleContext：规则函数的入参（节点 + 规范化类型 + 目录声明）
- NodeRule：规则函数签名 (RuleContext) -> list[ValidationIssue]
- 通用检查片段：必填参数、凭证、错误处理建议；通用规则和专用规则都会复用
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from workflow_guard.domain.entities.node import WorkflowNode
from workflow_guard.domain.entities.workflow import Workflow
from workflow_guard.domain.value_objects.error_handling_mode import ErrorHandlingMode
from workflow_guard.domain.value_objects.node_type_info import NodeCategory, NodeTypeInfo
from workflow_guard.domain.value_objects.validation_issue import IssueCategory, ValidationIssue


def is_empty_value(value: Any) -> bool:
    """None、空白字符串、空容器都算"未填写"；0 / False 算已填写"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list | dict | tuple | set):
        return not value
    return False


def is_expression(value: Any) -> bool:
    return isinstance(value, str) and (value.startswith("=") or "{{" in value)


@dataclass(frozen=True)
class RuleContext:
    node: WorkflowNode
    node_type: str
    info: NodeTypeInfo
    workflow: Workflow

    @property
    def parameters(self) -> dict[str, Any]:
        return self.node.parameters

    @property
    def resource(self) -> str:
        return self.node.str_param("resource")

    @property
    def operation(self) -> str:
        return self.node.str_param("operation")

    def error(self, code: str, message: str, **kwargs: Any) -> ValidationIssue:
        kwargs.setdefault("category", IssueCategory.RULE_VIOLATION)
        return ValidationIssue.error(
            code, message, node_name=self.node.name, node_id=self.node.id or None, **kwargs
        )

    def warning(self, code: str, message: str, **kwargs: Any) -> ValidationIssue:
        return ValidationIssue.warning(
            code, message, node_name=self.node.name, node_id=self.node.id or None, **kwargs
        )

    def info_issue(self, code: str, message: str, **kwargs: Any) -> ValidationIssue:
        return ValidationIssue.info(
            code, message, node_name=self.node.name, node_id=self.node.id or None, **kwargs
        )

    def require(self, parameter: str, message: str, code: str = "MISSING_REQUIRED_PARAMETER") -> list[ValidationIssue]:
        if is_empty_value(self.node.param(parameter)):
            return [
                self.error(
                    code,
                    message,
                    category=IssueCategory.CONDITIONAL_REQUIREMENT,
                    details={"parameter": parameter},
                )
            ]
        return []


NodeRule = Callable[[RuleContext], list[ValidationIssue]]


# --- 通用检查片段 ------------------------------------------------------


def missing_required_parameter_issues(node: WorkflowNode, info: NodeTypeInfo) -> list[ValidationIssue]:
    """目录声明的必填参数检查（结构校验与通用规则共用，消息保持一致以便去重）"""
    issues = []
    for parameter in info.required_parameters_for(node.parameters):
        if is_empty_value(node.param(parameter)):
            issues.append(
                ValidationIssue.error(
                    "MissingRequiredParameter",
                    f'Node "{node.name}" is missing required parameter "{parameter}"',
                    IssueCategory.STRUCTURAL,
                    node_name=node.name,
                    node_id=node.id or None,
                    details={"parameter": parameter},
                )
            )
    return issues


def check_credentials(ctx: RuleContext) -> list[ValidationIssue]:
    credentials = ctx.node.credentials or {}
    issues = []
    for credential_type in ctx.info.required_credentials:
        if credential_type not in credentials:
            issues.append(
                ctx.error(
                    "MISSING_CREDENTIALS",
                    f'Node "{ctx.node.name}" requires credentials of type "{credential_type}"',
                    category=IssueCategory.CONDITIONAL_REQUIREMENT,
                    details={"credentialType": credential_type},
                )
            )
    return issues


_ERROR_HANDLING_ADVICE = {
    NodeCategory.NETWORK: (
        "calls an external service without error handling. "
        'Consider "retryOnFail: true" with a wait between tries (backoff) '
        'or "onError: continueRegularOutput" for non-critical calls.'
    ),
    NodeCategory.MESSAGING: (
        "talks to a messaging API that can rate-limit or fail transiently. "
        'Consider "retryOnFail: true" with a wait between tries (backoff).'
    ),
    NodeCategory.DESTRUCTIVE: (
        "performs a destructive operation without error handling. "
        "Require an explicit confirmation step upstream and set "
        '"onError: stopWorkflow" explicitly so failures are not ignored.'
    ),
    NodeCategory.DATABASE: (
        "runs a database operation without error handling. "
        'Consider "retryOnFail: true" for connection issues or '
        '"onError: continueRegularOutput" for non-critical queries.'
    ),
    NodeCategory.SPREADSHEET: (
        "writes to an external spreadsheet without error handling. "
        'Consider "retryOnFail: true" for quota and rate-limit errors.'
    ),
    NodeCategory.AI: (
        "calls an AI provider without error handling. "
        'Consider "retryOnFail: true" for rate limits.'
    ),
}

_ADVISORY_CATEGORIES = frozenset(_ERROR_HANDLING_ADVICE)


def advise_error_handling(ctx: RuleContext, category: NodeCategory | None = None) -> list[ValidationIssue]:
    """未声明错误处理模式时给出按类别定制的建议（warning，不阻塞）"""
    category = category or ctx.info.category
    if category not in _ADVISORY_CATEGORIES:
        return []
    if ctx.node.error_handling_mode is not None or ctx.node.retry_on_fail is True:
        return []
    return [
        ctx.warning(
            "ERROR_HANDLING_RECOMMENDED",
            f'Node "{ctx.node.name}" {_ERROR_HANDLING_ADVICE[category]}',
            details={"category": category.value},
        )
    ]


_VALID_ON_ERROR = tuple(
    mode.value for mode in ErrorHandlingMode if mode is not ErrorHandlingMode.LEGACY_CONTINUE_ON_FAIL
)


def check_error_handling_fields(ctx: RuleContext) -> list[ValidationIssue]:
    """节点级错误处理字段：onError 取值、旧版 continueOnFail、重试配置"""
    node = ctx.node
    issues: list[ValidationIssue] = []

    if node.on_error is not None and node.on_error not in _VALID_ON_ERROR:
        issues.append(
            ctx.error(
                "INVALID_ON_ERROR",
                f'Invalid onError value: "{node.on_error}". Must be one of: {", ".join(_VALID_ON_ERROR)}',
                details={"onError": node.on_error},
            )
        )
    if node.continue_on_fail is not None:
        if node.on_error is not None:
            issues.append(
                ctx.error(
                    "CONFLICTING_ERROR_HANDLING",
                    'Cannot use both "continueOnFail" and "onError". Use only "onError".',
                )
            )
        elif node.continue_on_fail is True:
            issues.append(
                ctx.warning(
                    "DEPRECATED_CONTINUE_ON_FAIL",
                    'continueOnFail is deprecated. Use "onError: continueRegularOutput" instead.',
                )
            )

    max_tries = node.extra.get("maxTries")
    if node.retry_on_fail is True and max_tries is not None:
        if isinstance(max_tries, bool) or not isinstance(max_tries, int) or max_tries < 1:
            issues.append(
                ctx.error(
                    "INVALID_MAX_TRIES",
                    "maxTries must be a positive number when retryOnFail is enabled",
                )
            )
    wait = node.extra.get("waitBetweenTries")
    if wait is not None and (isinstance(wait, bool) or not isinstance(wait, int | float) or wait < 0):
        issues.append(
            ctx.error(
                "INVALID_WAIT_BETWEEN_TRIES",
                "waitBetweenTries must be a non-negative number (milliseconds)",
            )
        )
    return issues


def common_checks(ctx: RuleContext, category: NodeCategory | None = None) -> list[ValidationIssue]:
    """所有规则都要跑的部分：目录必填参数 + 凭证 + 错误处理"""
    return [
        *missing_required_parameter_issues(ctx.node, ctx.info),
        *check_credentials(ctx),
        *check_error_handling_fields(ctx),
        *advise_error_handling(ctx, category),
    ]
