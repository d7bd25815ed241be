"""ErrorHandlingMode 枚举 - 节点出错后的处理方式"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorHandlingMode(str, Enum):
    """节点错误处理模式

    - STOP_WORKFLOW: 出错即停止工作流
    - CONTINUE_REGULAR_OUTPUT: 出错后继续，错误数据走常规输出
    - CONTINUE_ERROR_OUTPUT: 出错后继续，错误数据走 error 输出
    - LEGACY_CONTINUE_ON_FAIL: 旧版 continueOnFail=true 标记（已废弃）
    """

    STOP_WORKFLOW = "stopWorkflow"
    CONTINUE_REGULAR_OUTPUT = "continueRegularOutput"
    CONTINUE_ERROR_OUTPUT = "continueErrorOutput"
    LEGACY_CONTINUE_ON_FAIL = "continueOnFail"

    @classmethod
    def from_node_fields(cls, on_error: Any, continue_on_fail: Any) -> ErrorHandlingMode | None:
        """从文档字段推导模式：onError 优先，其次是旧版 continueOnFail"""
        if isinstance(on_error, str) and on_error:
            try:
                return cls(on_error)
            except ValueError:
                return None
        if continue_on_fail is True:
            return cls.LEGACY_CONTINUE_ON_FAIL
        return None
