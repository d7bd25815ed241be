"""日志格式化与配置测试"""

import json
import logging

import pytest

from workflow_guard.config import Settings
from workflow_guard.logging_config import JSONFormatter, TextFormatter, configure_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="workflow_guard.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="workflow_diff_applied",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    """测试：extra 字段进入输出"""

    def test_json_formatter_includes_extra_fields(self):
        payload = json.loads(JSONFormatter().format(_record(workflow_id="wf-1", applied_count=2)))

        assert payload["message"] == "workflow_diff_applied"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "workflow_guard.test"
        assert payload["workflow_id"] == "wf-1"
        assert payload["applied_count"] == 2
        assert "msg" not in payload

    def test_text_formatter(self):
        line = TextFormatter().format(_record(workflow_id="wf-1"))

        assert line == "[INFO   ] [workflow_guard.test] workflow_diff_applied workflow_id=wf-1"


class TestConfigureLogging:
    """测试：重复调用只保留一个 handler"""

    def test_replaces_previous_handler(self):
        root = logging.getLogger()
        original_level = root.level
        try:
            configure_logging("debug", "text")
            configure_logging("INFO", "json")

            installed = [h for h in root.handlers if getattr(h, "_workflow_guard", False)]
            assert len(installed) == 1
            assert isinstance(installed[0].formatter, JSONFormatter)
            assert root.level == logging.INFO
        finally:
            for handler in [h for h in root.handlers if getattr(h, "_workflow_guard", False)]:
                root.removeHandler(handler)
            root.setLevel(original_level)


class TestSettings:
    """测试：WORKFLOW_GUARD_ 环境变量覆盖默认值"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("WORKFLOW_GUARD_MAX_OPERATIONS_PER_REQUEST", raising=False)

        settings = Settings(_env_file=None)

        assert settings.default_diff_mode == "atomic"
        assert settings.max_operations_per_request == 100
        assert settings.node_definitions_dir is None

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("WORKFLOW_GUARD_MAX_OPERATIONS_PER_REQUEST", "5")
        monkeypatch.setenv("WORKFLOW_GUARD_DEFAULT_DIFF_MODE", "validate_only")

        settings = Settings(_env_file=None)

        assert settings.max_operations_per_request == 5
        assert settings.default_diff_mode == "validate_only"

    def test_rejects_zero_operation_limit(self, monkeypatch):
        monkeypatch.setenv("WORKFLOW_GUARD_MAX_OPERATIONS_PER_REQUEST", "0")

        with pytest.raises(ValueError):
            Settings(_env_file=None)
