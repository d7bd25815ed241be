"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from workflow_guard.domain.services.workflow_diff_engine import WorkflowDiffEngine
from workflow_guard.domain.services.workflow_validator import WorkflowValidator
from workflow_guard.infrastructure.adapters.in_memory_workflow_repository import InMemoryWorkflowRepository
from workflow_guard.infrastructure.definitions.yaml_node_type_catalog import YamlNodeTypeCatalog
from workflow_guard.interfaces.api.dependencies import (
    create_workflow_validator,
    get_node_type_catalog,
    get_settings,
    get_workflow_repository,
)


@pytest.fixture(scope="session")
def catalog() -> YamlNodeTypeCatalog:
    """包内置的节点目录（只加载一次）"""
    return YamlNodeTypeCatalog()


@pytest.fixture
def validator(catalog: YamlNodeTypeCatalog) -> WorkflowValidator:
    return create_workflow_validator(catalog, get_settings())


@pytest.fixture
def diff_engine(validator: WorkflowValidator) -> WorkflowDiffEngine:
    return WorkflowDiffEngine(validator=validator)


@pytest.fixture
def repository() -> InMemoryWorkflowRepository:
    return InMemoryWorkflowRepository()


@pytest.fixture
def client(repository: InMemoryWorkflowRepository, catalog: YamlNodeTypeCatalog):
    """TestClient：每个测试使用独立的内存仓储"""
    from workflow_guard.interfaces.api.main import app

    app.dependency_overrides[get_workflow_repository] = lambda: repository
    app.dependency_overrides[get_node_type_catalog] = lambda: catalog
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
