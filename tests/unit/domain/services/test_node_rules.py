"""节点专用规则测试（SQL / Slack / Sheets / HTTP / Webhook / Code / AI 工具 / 通用规则）"""

import pytest

from tests.builders import (
    CODE,
    GOOGLE_SHEETS,
    HTTP_REQUEST,
    POSTGRES,
    SET,
    SLACK,
    TOOL_CALCULATOR,
    TOOL_HTTP_REQUEST,
    TOOL_VECTOR_STORE,
    WEBHOOK,
    issue_codes,
    node,
)
from workflow_guard.domain.entities.node import WorkflowNode
from workflow_guard.domain.entities.workflow import Workflow
from workflow_guard.domain.services.node_rules import RuleContext, create_rule_registry, generic_rule
from workflow_guard.domain.services.node_rules.spreadsheet import is_valid_a1_range
from workflow_guard.domain.services.node_type_normalizer import normalize_node_type
from workflow_guard.domain.value_objects.validation_issue import Severity

PG_CREDENTIALS = {"postgres": {"id": "1", "name": "Postgres account"}}


@pytest.fixture(scope="module")
def registry():
    return create_rule_registry()


@pytest.fixture
def run_rule(catalog, registry):
    def _run(node_document):
        workflow_node = WorkflowNode.from_dict(node_document)
        node_type = normalize_node_type(workflow_node.type)
        ctx = RuleContext(
            node=workflow_node,
            node_type=node_type,
            info=catalog.lookup(node_type),
            workflow=Workflow(id=None, name="rules", nodes=[workflow_node]),
        )
        return registry.resolve(node_type)(ctx)

    return _run


def _severity_of(issues, code):
    return next(issue.severity for issue in issues if issue.code == code)


class TestRuleRegistry:
    """测试：注册表按规范化类型分发"""

    def test_lookup_normalizes_full_form(self, registry):
        assert registry.has("n8n-nodes-base.slack")
        assert registry.has("nodes-base.slack")

    def test_unregistered_type_falls_back_to_generic_rule(self, registry):
        assert registry.get(SET) is None
        assert registry.resolve(SET) is generic_rule

    def test_decorator_registration(self):
        local = create_rule_registry()

        @local.rule("n8n-nodes-acme.widget")
        def widget_rule(ctx):
            return []

        assert local.resolve("n8n-nodes-acme.widget") is widget_rule


class TestSqlRule:
    """测试：SQL 节点"""

    def test_delete_without_where_is_an_error(self, run_rule):
        issues = run_rule(node("DB", POSTGRES, {"query": "DELETE FROM users"}, credentials=PG_CREDENTIALS))

        assert _severity_of(issues, "UNFILTERED_MUTATING_QUERY") is Severity.ERROR

    def test_delete_with_where_passes(self, run_rule):
        issues = run_rule(
            node("DB", POSTGRES, {"query": "DELETE FROM users WHERE id = $1"}, credentials=PG_CREDENTIALS)
        )

        assert "UNFILTERED_MUTATING_QUERY" not in issue_codes(issues)

    def test_update_without_where_in_second_statement(self, run_rule):
        query = "SELECT 1 FROM users WHERE id = 1; UPDATE users SET active = false"
        issues = run_rule(node("DB", POSTGRES, {"query": query}, credentials=PG_CREDENTIALS))

        assert "UNFILTERED_MUTATING_QUERY" in issue_codes(issues)

    @pytest.mark.parametrize(
        "query",
        [
            'UPDATE "order items" SET status = 1',
            "UPDATE users AS u SET active = false",
            "UPDATE ONLY users SET active = false",
            "DELETE u FROM users u",
            "WITH stale AS (SELECT id FROM users WHERE active = false) DELETE FROM users",
            "UPDATE users SET score = (SELECT max(score) FROM scores WHERE scores.user_id = 1)",
        ],
    )
    def test_unfiltered_mutation_variants(self, run_rule, query):
        issues = run_rule(node("DB", POSTGRES, {"query": query}, credentials=PG_CREDENTIALS))

        assert _severity_of(issues, "UNFILTERED_MUTATING_QUERY") is Severity.ERROR

    @pytest.mark.parametrize(
        "query",
        [
            'UPDATE "order items" SET status = 1 WHERE id = $1',
            "WITH stale AS (SELECT id FROM users) DELETE FROM users WHERE id IN (SELECT id FROM stale)",
            "SELECT * FROM audit WHERE note = 'delete from users'",
            "-- DELETE FROM users\nSELECT 1",
        ],
    )
    def test_filtered_or_read_only_queries_pass(self, run_rule, query):
        issues = run_rule(node("DB", POSTGRES, {"query": query}, credentials=PG_CREDENTIALS))

        assert "UNFILTERED_MUTATING_QUERY" not in issue_codes(issues)

    def test_drop_and_truncate(self, run_rule):
        issues = run_rule(
            node("DB", POSTGRES, {"query": "DROP TABLE logs; TRUNCATE audit"}, credentials=PG_CREDENTIALS)
        )

        assert _severity_of(issues, "DESTRUCTIVE_DDL") is Severity.ERROR
        assert _severity_of(issues, "TRUNCATE_STATEMENT") is Severity.WARNING

    def test_template_interpolation_warning(self, run_rule):
        query = "SELECT * FROM users WHERE email = '{{ $json.email }}'"
        issues = run_rule(node("DB", POSTGRES, {"query": query}, credentials=PG_CREDENTIALS))

        assert _severity_of(issues, "SQL_TEMPLATE_INTERPOLATION") is Severity.WARNING

    def test_missing_query_and_credentials(self, run_rule):
        issues = run_rule(node("DB", POSTGRES, {"operation": "executeQuery"}))

        assert "MISSING_REQUIRED_PARAMETER" in issue_codes(issues)
        assert "MISSING_CREDENTIALS" in issue_codes(issues)

    def test_table_operations_need_table(self, run_rule):
        issues = run_rule(node("DB", POSTGRES, {"operation": "update"}, credentials=PG_CREDENTIALS))

        assert "MISSING_TABLE" in issue_codes(issues)
        assert "MISSING_UPDATE_KEY" in issue_codes(issues)


class TestSlackRule:
    """测试：Slack 必填项取决于 operation"""

    def test_send_requires_destination_and_content(self, run_rule):
        issues = run_rule(node("Slack", SLACK, {"resource": "message", "operation": "send"}))

        assert {"MISSING_DESTINATION", "MISSING_MESSAGE_CONTENT"} <= set(issue_codes(issues))

    def test_send_with_channel_and_text(self, run_rule):
        issues = run_rule(
            node("Slack", SLACK, {"resource": "message", "operation": "post", "channel": "#ops", "text": "hi"})
        )

        assert not [issue for issue in issues if issue.is_blocking]

    def test_message_too_long(self, run_rule):
        issues = run_rule(
            node("Slack", SLACK, {"operation": "send", "channel": "#ops", "text": "x" * 40_001})
        )

        assert "MESSAGE_TOO_LONG" in issue_codes(issues)

    def test_delete_needs_only_ts_and_channel(self, run_rule):
        issues = run_rule(
            node("Slack", SLACK, {"resource": "message", "operation": "delete", "ts": "1.2", "channel": "#ops"})
        )

        assert not [issue for issue in issues if issue.is_blocking]
        assert "PERMANENT_DELETE" in issue_codes(issues)
        assert "MISSING_MESSAGE_CONTENT" not in issue_codes(issues)

    def test_update_without_ts(self, run_rule):
        issues = run_rule(node("Slack", SLACK, {"operation": "update", "channel": "#ops"}))

        assert "MISSING_TS" in issue_codes(issues)

    def test_channel_name_rules(self, run_rule):
        issues = run_rule(
            node("Slack", SLACK, {"resource": "channel", "operation": "create", "channelId": "My Channel"})
        )

        assert issue_codes(issues).count("INVALID_CHANNEL_NAME") == 2


class TestGoogleSheetsRule:
    """测试：A1 范围记法"""

    @pytest.mark.parametrize(
        "value",
        ["Sheet1!A1:B10", "Sheet1!A:B", "Sheet1!1:10", "'My Sheet'!A1", "A1", "Sheet1!A2:D"],
    )
    def test_valid_ranges(self, value):
        assert is_valid_a1_range(value)

    @pytest.mark.parametrize("value", ["Sheet1!A1:", "Sheet1!", "A0", "1A"])
    def test_invalid_ranges(self, value):
        assert not is_valid_a1_range(value)

    def test_invalid_range_is_an_error_when_writing(self, run_rule):
        issues = run_rule(
            node("Sheets", GOOGLE_SHEETS, {"operation": "append", "documentId": "doc", "range": "Sheet1!A1:"})
        )

        assert _severity_of(issues, "INVALID_RANGE") is Severity.ERROR

    def test_invalid_range_is_a_warning_when_reading(self, run_rule):
        issues = run_rule(
            node("Sheets", GOOGLE_SHEETS, {"operation": "read", "documentId": "doc", "range": "Sheet1!A1:"})
        )

        assert _severity_of(issues, "INVALID_RANGE") is Severity.WARNING

    def test_unquoted_sheet_name_with_spaces(self, run_rule):
        issues = run_rule(
            node("Sheets", GOOGLE_SHEETS, {"operation": "append", "documentId": "doc", "range": "My Sheet!A1"})
        )

        assert "UNQUOTED_SHEET_NAME" in issue_codes(issues)

    def test_range_without_sheet_is_info(self, run_rule):
        issues = run_rule(
            node("Sheets", GOOGLE_SHEETS, {"operation": "update", "documentId": "doc", "range": "A1:B10"})
        )

        assert _severity_of(issues, "RANGE_WITHOUT_SHEET") is Severity.INFO
        assert "MISSING_MATCH_COLUMN" in issue_codes(issues)

    def test_missing_document_and_range(self, run_rule):
        issues = run_rule(node("Sheets", GOOGLE_SHEETS, {"operation": "append"}))

        assert {"MISSING_DOCUMENT_ID", "MISSING_RANGE"} <= set(issue_codes(issues))


class TestHttpRules:
    """测试：HTTP Request 与 Webhook"""

    def test_missing_url(self, run_rule):
        assert "MISSING_URL" in issue_codes(run_rule(node("HTTP", HTTP_REQUEST)))

    def test_non_http_url(self, run_rule):
        assert "INVALID_URL" in issue_codes(run_rule(node("HTTP", HTTP_REQUEST, {"url": "ftp://example.com"})))

    def test_expression_url_is_not_checked(self, run_rule):
        issues = run_rule(node("HTTP", HTTP_REQUEST, {"url": "={{ $json.url }}"}))

        assert "INVALID_URL" not in issue_codes(issues)

    def test_post_without_body(self, run_rule):
        issues = run_rule(node("HTTP", HTTP_REQUEST, {"url": "https://api.example.com", "method": "POST"}))

        assert _severity_of(issues, "MISSING_REQUEST_BODY") is Severity.WARNING

    def test_error_handling_advice_for_network_calls(self, run_rule):
        without = run_rule(node("HTTP", HTTP_REQUEST, {"url": "https://api.example.com"}))
        with_retry = run_rule(node("HTTP", HTTP_REQUEST, {"url": "https://api.example.com"}, retryOnFail=True))

        assert "ERROR_HANDLING_RECOMMENDED" in issue_codes(without)
        assert "ERROR_HANDLING_RECOMMENDED" not in issue_codes(with_retry)

    def test_webhook_response_node_requires_error_handling(self, run_rule):
        issues = run_rule(node("Webhook", WEBHOOK, {"path": "hook", "responseMode": "responseNode"}))

        assert "RESPONSE_NODE_WITHOUT_ERROR_HANDLING" in issue_codes(issues)

    def test_webhook_with_error_handling(self, run_rule):
        issues = run_rule(
            node(
                "Webhook",
                WEBHOOK,
                {"path": "hook", "responseMode": "responseNode"},
                onError="continueRegularOutput",
            )
        )

        assert issues == []

    def test_webhook_path(self, run_rule):
        assert "MISSING_WEBHOOK_PATH" in issue_codes(run_rule(node("Webhook", WEBHOOK)))
        assert "WEBHOOK_PATH_LEADING_SLASH" in issue_codes(run_rule(node("Webhook", WEBHOOK, {"path": "/hook"})))


class TestCodeRule:
    """测试：Code 节点"""

    def test_empty_code(self, run_rule):
        assert "EMPTY_CODE" in issue_codes(run_rule(node("Code", CODE, {"jsCode": "  "})))

    def test_python_code_field(self, run_rule):
        issues = run_rule(node("Code", CODE, {"language": "python", "jsCode": "return items"}))

        assert "EMPTY_CODE" in issue_codes(issues)

    def test_code_without_return(self, run_rule):
        issues = run_rule(node("Code", CODE, {"jsCode": "const a = 1;"}))

        assert _severity_of(issues, "CODE_WITHOUT_RETURN") is Severity.WARNING

    def test_code_with_return(self, run_rule):
        assert run_rule(node("Code", CODE, {"jsCode": "return $input.all();"})) == []


class TestAiToolRules:
    """测试：AI 工具子节点"""

    def test_missing_description(self, run_rule):
        issues = run_rule(node("Tool", TOOL_HTTP_REQUEST, {"url": "https://api.example.com"}))

        assert _severity_of(issues, "MISSING_TOOL_DESCRIPTION") is Severity.WARNING

    def test_calculator_needs_no_description(self, run_rule):
        assert "MISSING_TOOL_DESCRIPTION" not in issue_codes(run_rule(node("Calc", TOOL_CALCULATOR)))

    def test_undefined_placeholder(self, run_rule):
        issues = run_rule(
            node(
                "Weather",
                TOOL_HTTP_REQUEST,
                {"url": "https://api.example.com/{city}", "toolDescription": "Look up the weather for a city"},
            )
        )

        assert "UNDEFINED_PLACEHOLDER" in issue_codes(issues)

    def test_defined_placeholder(self, run_rule):
        issues = run_rule(
            node(
                "Weather",
                TOOL_HTTP_REQUEST,
                {
                    "url": "https://api.example.com/{city}",
                    "toolDescription": "Look up the weather for a city",
                    "placeholderDefinitions": {"values": [{"name": "city"}]},
                },
            )
        )

        assert "UNDEFINED_PLACEHOLDER" not in issue_codes(issues)

    def test_invalid_top_k(self, run_rule):
        issues = run_rule(
            node("Knowledge", TOOL_VECTOR_STORE, {"topK": 0, "toolDescription": "Search the product handbook"})
        )

        assert "INVALID_TOPK" in issue_codes(issues)

    def test_short_description_is_info(self, run_rule):
        issues = run_rule(
            node("Knowledge", TOOL_VECTOR_STORE, {"toolDescription": "Search"})
        )

        assert _severity_of(issues, "SHORT_TOOL_DESCRIPTION") is Severity.INFO


class TestGenericRule:
    """测试：通用错误处理检查"""

    def test_deprecated_continue_on_fail(self, run_rule):
        issues = run_rule(node("Set", SET, continueOnFail=True))

        assert "DEPRECATED_CONTINUE_ON_FAIL" in issue_codes(issues)

    def test_conflicting_error_handling(self, run_rule):
        issues = run_rule(node("Set", SET, continueOnFail=True, onError="stopWorkflow"))

        assert "CONFLICTING_ERROR_HANDLING" in issue_codes(issues)

    def test_invalid_on_error(self, run_rule):
        assert "INVALID_ON_ERROR" in issue_codes(run_rule(node("Set", SET, onError="explode")))

    def test_invalid_max_tries(self, run_rule):
        issues = run_rule(node("Set", SET, retryOnFail=True, maxTries=0))

        assert "INVALID_MAX_TRIES" in issue_codes(issues)

    def test_execute_once_info(self, run_rule):
        issues = run_rule(node("Set", SET, executeOnce=True))

        assert _severity_of(issues, "EXECUTE_ONCE_ENABLED") is Severity.INFO

    def test_plain_transform_node_has_no_issues(self, run_rule):
        assert run_rule(node("Set", SET)) == []
