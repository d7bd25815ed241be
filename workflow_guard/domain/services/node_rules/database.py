"""关系型数据库节点规则（Postgres / MySQL / Microsoft SQL）

关键规则：
- 没有 WHERE 的 DELETE / UPDATE 会影响整张表，直接判为 error
- DROP 判为 error，TRUNCATE 给 warning
- 用模板表达式拼 SQL 给 warning（建议使用查询参数）
"""

from __future__ import annotations

import re

from workflow_guard.domain.services.node_rules.base import RuleContext, common_checks
from workflow_guard.domain.value_objects.node_type_info import NodeCategory
from workflow_guard.domain.value_objects.validation_issue import IssueCategory, ValidationIssue

SQL_NODE_TYPES = ("nodes-base.postgres", "nodes-base.mySql", "nodes-base.microsoftSql")

_EXECUTE_OPERATIONS = frozenset({"executeQuery", "execute"})
_TABLE_OPERATIONS = frozenset({"insert", "update", "delete", "upsert", "deleteTable"})

_COMMENT_RE = re.compile(r"--[^\n]*|/\*.*?\*/", re.DOTALL)
# 字符串 / 引号标识符整体作为一个 token，其中的关键字不参与判断
_TOKEN_RE = re.compile(r"'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|`[^`]*`|\[[^\]]*\]|[()]|[A-Za-z_]\w*")
_STATEMENT_VERBS = frozenset({"select", "insert", "update", "delete", "merge", "values"})
_MUTATING_VERBS = frozenset({"update", "delete"})
_DROP_RE = re.compile(r"\bdrop\s+(table|database|schema|view|index)\b", re.IGNORECASE)
_TRUNCATE_RE = re.compile(r"\btruncate\b", re.IGNORECASE)


def _split_statements(query: str) -> list[str]:
    return [statement.strip() for statement in query.split(";") if statement.strip()]


def _leading_verb(tokens: list[str]) -> tuple[str | None, int]:
    """语句的主动词及其 token 下标；WITH 子句之后的第一个顶层动词才是主动词"""
    if not tokens:
        return None, -1
    first = tokens[0].lower()
    if first != "with":
        return first, 0
    depth = 0
    for index, token in enumerate(tokens[1:], start=1):
        if token == "(":
            depth += 1
        elif token == ")":
            depth -= 1
        elif depth == 0 and token.lower() in _STATEMENT_VERBS:
            return token.lower(), index
    return None, -1


def unfiltered_mutation(statement: str) -> str | None:
    """返回没有顶层 WHERE 的 DELETE / UPDATE 语句的动词，其它语句返回 None

    子查询（括号内）里的 WHERE 不算过滤条件。
    """
    tokens = _TOKEN_RE.findall(_COMMENT_RE.sub(" ", statement))
    verb, start = _leading_verb(tokens)
    if verb not in _MUTATING_VERBS:
        return None
    depth = 0
    for token in tokens[start + 1 :]:
        if token == "(":
            depth += 1
        elif token == ")":
            depth -= 1
        elif depth == 0 and token.lower() == "where":
            return None
    return verb


def check_sql_query(ctx: RuleContext, query: str) -> list[ValidationIssue]:
    """逐条语句检查 SQL 文本"""
    issues: list[ValidationIssue] = []

    if "{{" in query or "${" in query:
        issues.append(
            ctx.warning(
                "SQL_TEMPLATE_INTERPOLATION",
                "Query contains template expressions that might be vulnerable to SQL injection. "
                "Use query parameters instead of string interpolation.",
            )
        )

    for statement in _split_statements(query):
        verb = unfiltered_mutation(statement)
        if verb is not None:
            issues.append(
                ctx.error(
                    "UNFILTERED_MUTATING_QUERY",
                    f"{verb.upper()} query without WHERE clause will {verb} all records",
                    details={"statement": statement},
                )
            )
        if _DROP_RE.search(statement):
            issues.append(
                ctx.error(
                    "DESTRUCTIVE_DDL",
                    "DROP operations permanently delete database objects",
                    details={"statement": statement},
                )
            )
        if _TRUNCATE_RE.search(statement):
            issues.append(ctx.warning("TRUNCATE_STATEMENT", "TRUNCATE will remove all data from the table"))
    return issues


def sql_rule(ctx: RuleContext) -> list[ValidationIssue]:
    operation = ctx.operation or "executeQuery"
    destructive = operation in {"delete", "deleteTable"}
    issues = common_checks(ctx, NodeCategory.DESTRUCTIVE if destructive else NodeCategory.DATABASE)

    if operation in _EXECUTE_OPERATIONS:
        issues.extend(ctx.require("query", "SQL query is required"))
        query = ctx.node.str_param("query")
        if query:
            issues.extend(check_sql_query(ctx, query))
    elif operation in _TABLE_OPERATIONS:
        if not ctx.node.param("table"):
            issues.append(
                ctx.error(
                    "MISSING_TABLE",
                    f"Table name is required for {operation} operation",
                    category=IssueCategory.CONDITIONAL_REQUIREMENT,
                )
            )
        if operation == "update" and not (
            ctx.node.param("updateKey") or ctx.node.param("columnToMatchOn")
        ):
            issues.append(
                ctx.warning("MISSING_UPDATE_KEY", "No update key specified; rows cannot be matched")
            )
    return issues
