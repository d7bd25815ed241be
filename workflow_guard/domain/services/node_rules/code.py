"""Code 节点规则"""

from __future__ import annotations

import re

from workflow_guard.domain.services.node_rules.base import RuleContext, common_checks
from workflow_guard.domain.value_objects.node_type_info import NodeCategory
from workflow_guard.domain.value_objects.validation_issue import ValidationIssue

_RETURN_RE = re.compile(r"\breturn\b")


def code_rule(ctx: RuleContext) -> list[ValidationIssue]:
    issues = common_checks(ctx, NodeCategory.TRANSFORM)

    language = ctx.node.str_param("language") or "javaScript"
    field_name = "pythonCode" if language.startswith("python") else "jsCode"
    code = ctx.node.str_param(field_name) or ctx.node.str_param("functionCode")

    if not code.strip():
        issues.append(ctx.error("EMPTY_CODE", "Code cannot be empty", details={"field": field_name}))
    elif not _RETURN_RE.search(code):
        issues.append(
            ctx.warning(
                "CODE_WITHOUT_RETURN",
                "Code does not return anything; the node will output no items",
            )
        )
    return issues
