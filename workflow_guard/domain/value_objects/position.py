"""Position 值对象 - 节点在画布上的位置

工作流文档中位置以 [x, y] 数组表示，这里提供双向转换。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from workflow_guard.domain.exceptions import DomainError


@dataclass(frozen=True)
class Position:
    """Position 值对象

    属性说明：
    - x: 横坐标（像素，允许负数）
    - y: 纵坐标（像素，允许负数）

    >>> Position.from_list([100, 200]) == Position(x=100, y=200)
    True
    """

    x: float
    y: float

    @classmethod
    def from_list(cls, value: Any) -> Position:
        if (
            not isinstance(value, list | tuple)
            or len(value) != 2
            or not all(isinstance(v, int | float) and not isinstance(v, bool) for v in value)
        ):
            raise DomainError(f"position 必须是 [x, y] 数值数组: {value!r}")
        return cls(x=value[0], y=value[1])

    def to_list(self) -> list[float]:
        return [self.x, self.y]
