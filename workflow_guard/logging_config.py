"""日志配置

Domain / Application 层只使用 logging.getLogger(__name__) 和 extra={...}，
这里负责把 extra 里的结构化字段输出出来（json 或 text 两种格式）。
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

# LogRecord 自带的属性，其余的都来自 extra={...}
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}


def _extra_fields(record: logging.LogRecord) -> dict:
    return {key: value for key, value in vars(record).items() if key not in _RESERVED_ATTRS}


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_entry.update(_extra_fields(record))
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """[LEVEL] [logger] message key=value ..."""

    def format(self, record: logging.LogRecord) -> str:
        fields = " ".join(f"{key}={value}" for key, value in _extra_fields(record).items())
        formatted = f"[{record.levelname:7}] [{record.name}] {record.getMessage()}"
        if fields:
            formatted = f"{formatted} {fields}"
        if record.exc_info:
            formatted = f"{formatted}\n{self.formatException(record.exc_info)}"
        return formatted


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """安装根 handler（重复调用会替换之前安装的 handler）"""
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_workflow_guard", False):
            root.removeHandler(existing)
    handler._workflow_guard = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level.upper())
