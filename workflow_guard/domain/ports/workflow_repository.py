"""WorkflowRepository Port - 工作流文档的存取接口

设计原则：
- 使用 Protocol（结构化子类型，不需要显式继承）
- 只定义领域层需要的方法
- 存取的都是 Workflow 聚合，实现层负责隔离（存入 / 取出都是独立副本）
"""

from typing import Protocol

from workflow_guard.domain.entities.workflow import Workflow


class WorkflowRepository(Protocol):
    """Workflow 仓储接口

    方法命名规范：
    - save(): 保存实体（新增或更新）
    - get_by_id(): 根据 ID 获取实体（不存在抛 NotFoundError）
    - find_by_id(): 根据 ID 查找实体（不存在返回 None）
    - list_all(): 列出全部工作流
    - delete(): 删除实体
    """

    def save(self, workflow: Workflow) -> None:
        """保存 Workflow（workflow.id 不能为空）"""
        ...

    def get_by_id(self, workflow_id: str) -> Workflow:
        """根据 ID 获取 Workflow

        抛出：
            NotFoundError: 当 Workflow 不存在时
        """
        ...

    def find_by_id(self, workflow_id: str) -> Workflow | None:
        ...

    def list_all(self) -> list[Workflow]:
        ...

    def delete(self, workflow_id: str) -> None:
        """删除 Workflow

        抛出：
            NotFoundError: 当 Workflow 不存在时
        """
        ...
