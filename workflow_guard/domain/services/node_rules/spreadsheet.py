"""电子表格节点规则（Google Sheets）

写入 / 更新类操作必须给出坐标范围，并且范围要符合 A1 记法：
    Sheet1!A1:B10   Sheet1!A:B   Sheet1!1:10   'My Sheet'!A1
"""

from __future__ import annotations

import re

from workflow_guard.domain.services.node_rules.base import (
    RuleContext,
    common_checks,
    is_empty_value,
    is_expression,
)
from workflow_guard.domain.value_objects.node_type_info import NodeCategory
from workflow_guard.domain.value_objects.validation_issue import IssueCategory, ValidationIssue

_SHEET = r"(?:'(?:[^']|'')+'|[^!' ]+)"
_CELL = r"[A-Z]{1,3}[1-9]\d*"
_COLUMN = r"[A-Z]{1,3}"
_ROW = r"[1-9]\d*"
_AREA = rf"(?:{_CELL}(?::{_CELL})?|{_CELL}:{_COLUMN}|{_COLUMN}:{_COLUMN}|{_ROW}:{_ROW})"
A1_RANGE_RE = re.compile(rf"^(?:{_SHEET}!)?{_AREA}$", re.IGNORECASE)

WRITE_OPERATIONS = frozenset({"append", "update", "appendOrUpdate", "clear"})
RANGE_OPERATIONS = WRITE_OPERATIONS | {"read"}


def is_valid_a1_range(value: str) -> bool:
    value = value.strip()
    return bool(A1_RANGE_RE.match(value))


def check_range(ctx: RuleContext, value: str, *, writing: bool) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    sheet_part = value.split("!", 1)[0] if "!" in value else ""
    if " " in sheet_part and not sheet_part.startswith("'"):
        issues.append(
            ctx.error(
                "UNQUOTED_SHEET_NAME",
                "Sheet names with spaces must be quoted: 'Sheet Name'!A1:B10",
                details={"range": value},
            )
        )
        return issues

    if is_valid_a1_range(value):
        if "!" not in value:
            issues.append(ctx.info_issue("RANGE_WITHOUT_SHEET", "Range should include sheet name for clarity"))
        return issues

    message = f'Range "{value}" is not valid A1 notation (e.g. "Sheet1!A1:B10", "Sheet1!A:B", "Sheet1!1:10")'
    if writing:
        issues.append(ctx.error("INVALID_RANGE", message, details={"range": value}))
    else:
        issues.append(ctx.warning("INVALID_RANGE", message, details={"range": value}))
    return issues


def google_sheets_rule(ctx: RuleContext) -> list[ValidationIssue]:
    operation = ctx.operation or "read"
    destructive = operation in {"delete", "clear"}
    issues = common_checks(ctx, NodeCategory.DESTRUCTIVE if destructive else NodeCategory.SPREADSHEET)

    if operation != "create" and is_empty_value(ctx.node.param("documentId")) and is_empty_value(
        ctx.node.param("sheetId")
    ):
        issues.append(
            ctx.error(
                "MISSING_DOCUMENT_ID",
                "Spreadsheet ID is required",
                category=IssueCategory.CONDITIONAL_REQUIREMENT,
            )
        )

    if operation in RANGE_OPERATIONS:
        range_value = ctx.node.param("range")
        if is_empty_value(range_value) and is_empty_value(ctx.node.param("sheetName")):
            issues.append(
                ctx.error(
                    "MISSING_RANGE",
                    f"Range is required for {operation} operation",
                    category=IssueCategory.CONDITIONAL_REQUIREMENT,
                )
            )
        elif isinstance(range_value, str) and range_value.strip() and not is_expression(range_value):
            issues.extend(check_range(ctx, range_value, writing=operation in WRITE_OPERATIONS))

    if operation in {"update", "appendOrUpdate"} and is_empty_value(ctx.node.param("columnToMatchOn")):
        issues.append(
            ctx.warning(
                "MISSING_MATCH_COLUMN",
                f"{operation} should set columnToMatchOn so existing rows can be matched",
            )
        )

    if operation == "delete":
        issues.extend(ctx.require("toDelete", "Specify what to delete (rows or columns)", code="MISSING_DELETE_TARGET"))
        issues.append(ctx.warning("PERMANENT_DELETE", "Deletion is permanent. Consider backing up data first"))
    return issues
