"""依赖注入

节点目录和工作流仓储是进程级单例；校验器、diff 引擎和用例按请求组装（都是无状态的）。
测试里通过 app.dependency_overrides 替换这些函数。
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from workflow_guard.application.use_cases.create_workflow import CreateWorkflowUseCase
from workflow_guard.application.use_cases.update_partial_workflow import UpdatePartialWorkflowUseCase
from workflow_guard.application.use_cases.validate_workflow import ValidateWorkflowUseCase
from workflow_guard.config import Settings, settings
from workflow_guard.domain.ports.node_type_catalog import NodeTypeCatalog
from workflow_guard.domain.ports.workflow_repository import WorkflowRepository
from workflow_guard.domain.services.ai_validator import AIValidator
from workflow_guard.domain.services.workflow_diff_engine import WorkflowDiffEngine
from workflow_guard.domain.services.workflow_validator import WorkflowValidator
from workflow_guard.infrastructure.adapters.in_memory_workflow_repository import InMemoryWorkflowRepository
from workflow_guard.infrastructure.definitions.yaml_node_type_catalog import YamlNodeTypeCatalog


def get_settings() -> Settings:
    return settings


@lru_cache(maxsize=1)
def get_node_type_catalog() -> YamlNodeTypeCatalog:
    return YamlNodeTypeCatalog.from_settings(settings)


@lru_cache(maxsize=1)
def get_workflow_repository() -> WorkflowRepository:
    return InMemoryWorkflowRepository()


def create_workflow_validator(catalog: NodeTypeCatalog, app_settings: Settings) -> WorkflowValidator:
    return WorkflowValidator(
        catalog=catalog,
        ai_validator=AIValidator(
            catalog=catalog,
            fallback_min_type_version=app_settings.agent_fallback_min_type_version,
            system_message_min_length=app_settings.system_message_min_length,
            max_iterations_warning=app_settings.agent_max_iterations_warning,
        ),
    )


def get_workflow_validator(
    catalog: Annotated[NodeTypeCatalog, Depends(get_node_type_catalog)],
    app_settings: Annotated[Settings, Depends(get_settings)],
) -> WorkflowValidator:
    return create_workflow_validator(catalog, app_settings)


def get_diff_engine(
    validator: Annotated[WorkflowValidator, Depends(get_workflow_validator)],
    app_settings: Annotated[Settings, Depends(get_settings)],
) -> WorkflowDiffEngine:
    return WorkflowDiffEngine(validator=validator, max_operations=app_settings.max_operations_per_request)


def get_validate_workflow_use_case(
    validator: Annotated[WorkflowValidator, Depends(get_workflow_validator)],
) -> ValidateWorkflowUseCase:
    return ValidateWorkflowUseCase(validator)


def get_create_workflow_use_case(
    repository: Annotated[WorkflowRepository, Depends(get_workflow_repository)],
) -> CreateWorkflowUseCase:
    return CreateWorkflowUseCase(repository)


def get_update_partial_workflow_use_case(
    repository: Annotated[WorkflowRepository, Depends(get_workflow_repository)],
    diff_engine: Annotated[WorkflowDiffEngine, Depends(get_diff_engine)],
) -> UpdatePartialWorkflowUseCase:
    return UpdatePartialWorkflowUseCase(repository, diff_engine)


SettingsDep = Annotated[Settings, Depends(get_settings)]
WorkflowRepositoryDep = Annotated[WorkflowRepository, Depends(get_workflow_repository)]
WorkflowValidatorDep = Annotated[WorkflowValidator, Depends(get_workflow_validator)]
ValidateWorkflowUseCaseDep = Annotated[ValidateWorkflowUseCase, Depends(get_validate_workflow_use_case)]
CreateWorkflowUseCaseDep = Annotated[CreateWorkflowUseCase, Depends(get_create_workflow_use_case)]
UpdatePartialWorkflowUseCaseDep = Annotated[
    UpdatePartialWorkflowUseCase, Depends(get_update_partial_workflow_use_case)
]
