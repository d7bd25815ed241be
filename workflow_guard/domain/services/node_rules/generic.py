"""通用规则（没有专用规则的节点类型走这里）"""

from __future__ import annotations

from workflow_guard.domain.services.node_rules.base import RuleContext, common_checks
from workflow_guard.domain.value_objects.validation_issue import ValidationIssue


def generic_rule(ctx: RuleContext) -> list[ValidationIssue]:
    issues = common_checks(ctx)
    if ctx.node.extra.get("executeOnce") is True:
        issues.append(
            ctx.info_issue(
                "EXECUTE_ONCE_ENABLED",
                f'Node "{ctx.node.name}" has executeOnce enabled and will run only once regardless of input items',
            )
        )
    return issues
