"""消息类节点规则（Slack）

必填项取决于 operation：
- message/send：目的地（channel 或 user）+ 消息内容（text / blocks / attachments）
- message/update：ts + channel
- message/delete：只需要 ts + channel（删除不需要内容）
- channel/create：频道名
"""

from __future__ import annotations

from workflow_guard.domain.services.node_rules.base import RuleContext, common_checks, is_empty_value
from workflow_guard.domain.value_objects.node_type_info import NodeCategory
from workflow_guard.domain.value_objects.validation_issue import IssueCategory, ValidationIssue

SLACK_TEXT_LIMIT = 40_000
SLACK_CHANNEL_NAME_LIMIT = 80

# 不同版本的 Slack 节点对频道字段命名不同
_CHANNEL_KEYS = ("channel", "channelId", "select")


def _destination(ctx: RuleContext) -> object:
    for key in _CHANNEL_KEYS:
        value = ctx.node.param(key)
        if not is_empty_value(value):
            return value
    return ctx.node.param("user")


def _has_channel(ctx: RuleContext) -> bool:
    return any(not is_empty_value(ctx.node.param(key)) for key in _CHANNEL_KEYS)


def _send_message(ctx: RuleContext) -> list[ValidationIssue]:
    issues = []
    if is_empty_value(_destination(ctx)):
        issues.append(
            ctx.error(
                "MISSING_DESTINATION",
                "Channel (or user) is required to send a message",
                category=IssueCategory.CONDITIONAL_REQUIREMENT,
            )
        )
    has_content = any(not is_empty_value(ctx.node.param(key)) for key in ("text", "blocks", "attachments", "blocksUi"))
    if not has_content:
        issues.append(
            ctx.error(
                "MISSING_MESSAGE_CONTENT",
                "Message content is required - provide text, blocks, or attachments",
                category=IssueCategory.CONDITIONAL_REQUIREMENT,
            )
        )
    text = ctx.node.param("text")
    if isinstance(text, str) and len(text) > SLACK_TEXT_LIMIT:
        issues.append(ctx.error("MESSAGE_TOO_LONG", "Message text exceeds Slack's 40,000 character limit"))
    if ctx.node.bool_param("otherOptions.reply_to_thread") and is_empty_value(
        ctx.node.param("otherOptions.thread_ts")
    ):
        issues.append(
            ctx.error(
                "MISSING_THREAD_TS",
                "Thread timestamp required when replying to thread",
                category=IssueCategory.CONDITIONAL_REQUIREMENT,
            )
        )
    return issues


def _require_ts_and_channel(ctx: RuleContext, action: str) -> list[ValidationIssue]:
    issues = ctx.require("ts", f"Message timestamp (ts) is required to {action} a message", code="MISSING_TS")
    if not _has_channel(ctx):
        issues.append(
            ctx.error(
                "MISSING_CHANNEL",
                f"Channel is required to {action} a message",
                category=IssueCategory.CONDITIONAL_REQUIREMENT,
            )
        )
    return issues


def _create_channel(ctx: RuleContext) -> list[ValidationIssue]:
    name = ctx.node.param("channelId") or ctx.node.param("name")
    if is_empty_value(name):
        return [
            ctx.error(
                "MISSING_CHANNEL_NAME",
                "Channel name is required",
                category=IssueCategory.CONDITIONAL_REQUIREMENT,
            )
        ]
    if not isinstance(name, str):
        return []
    issues = []
    if " " in name:
        issues.append(ctx.error("INVALID_CHANNEL_NAME", "Channel names cannot contain spaces"))
    if name != name.lower():
        issues.append(ctx.error("INVALID_CHANNEL_NAME", "Channel names must be lowercase"))
    if len(name) > SLACK_CHANNEL_NAME_LIMIT:
        issues.append(ctx.error("INVALID_CHANNEL_NAME", "Channel name exceeds 80 character limit"))
    return issues


def slack_rule(ctx: RuleContext) -> list[ValidationIssue]:
    resource = ctx.resource or "message"
    operation = ctx.operation
    destructive = resource == "message" and operation == "delete"
    issues = common_checks(ctx, NodeCategory.DESTRUCTIVE if destructive else NodeCategory.MESSAGING)

    if resource == "message":
        if operation in ("send", "post"):
            issues.extend(_send_message(ctx))
        elif operation == "update":
            issues.extend(_require_ts_and_channel(ctx, "update"))
        elif operation == "delete":
            issues.extend(_require_ts_and_channel(ctx, "delete"))
            issues.append(ctx.warning("PERMANENT_DELETE", "Message deletion is permanent and cannot be undone"))
    elif resource == "channel" and operation == "create":
        issues.extend(_create_channel(ctx))
    elif resource == "user" and operation == "get":
        issues.extend(
            ctx.require("user", "User identifier required - use email, user ID, or username", code="MISSING_USER")
        )
    return issues
