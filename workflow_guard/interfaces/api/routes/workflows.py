"""Workflow API routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, status

from workflow_guard.application.use_cases.update_partial_workflow import UpdatePartialWorkflowInput
from workflow_guard.domain.exceptions import DomainError, NotFoundError
from workflow_guard.interfaces.api.dependencies import (
    CreateWorkflowUseCaseDep,
    SettingsDep,
    UpdatePartialWorkflowUseCaseDep,
    ValidateWorkflowUseCaseDep,
    WorkflowRepositoryDep,
    WorkflowValidatorDep,
)
from workflow_guard.interfaces.api.dto.workflow_dto import (
    WorkflowDiffRequest,
    WorkflowDocumentDTO,
    WorkflowSummary,
)

router = APIRouter(prefix="/workflows", tags=["workflows"])


def _not_found(exc: NotFoundError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{exc.entity_type} not found: {exc.entity_id}",
    )


def _bad_request(exc: DomainError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post("/validate")
def validate_workflow(
    request: WorkflowDocumentDTO,
    use_case: ValidateWorkflowUseCaseDep,
) -> dict[str, Any]:
    """Validate a full workflow document without storing it."""

    try:
        result = use_case.execute(request.to_document())
    except DomainError as exc:
        raise _bad_request(exc) from exc
    return result.to_dict()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_workflow(
    request: WorkflowDocumentDTO,
    use_case: CreateWorkflowUseCaseDep,
) -> dict[str, Any]:
    """Store a workflow document."""

    try:
        workflow = use_case.execute(request.to_document())
    except DomainError as exc:
        raise _bad_request(exc) from exc
    return workflow.to_dict()


@router.get("", response_model=list[WorkflowSummary])
def list_workflows(repository: WorkflowRepositoryDep) -> list[WorkflowSummary]:
    return [
        WorkflowSummary(
            id=workflow.id or "",
            name=workflow.name,
            nodeCount=len(workflow.nodes),
            connectionCount=len(workflow.connections),
        )
        for workflow in repository.list_all()
    ]


@router.get("/{workflow_id}")
def get_workflow(workflow_id: str, repository: WorkflowRepositoryDep) -> dict[str, Any]:
    """Return a stored workflow document."""

    try:
        workflow = repository.get_by_id(workflow_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    return workflow.to_dict()


@router.post("/{workflow_id}/validate")
def validate_stored_workflow(
    workflow_id: str,
    repository: WorkflowRepositoryDep,
    validator: WorkflowValidatorDep,
) -> dict[str, Any]:
    """Validate a stored workflow document."""

    try:
        workflow = repository.get_by_id(workflow_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    return validator.validate(workflow).to_dict()


@router.patch("/{workflow_id}/diff")
def update_partial_workflow(
    workflow_id: str,
    request: WorkflowDiffRequest,
    use_case: UpdatePartialWorkflowUseCaseDep,
    app_settings: SettingsDep,
) -> dict[str, Any]:
    """Apply a list of diff operations to a stored workflow.

    Operation failures are part of the response body (success=false), not HTTP errors.
    """

    input_data = UpdatePartialWorkflowInput(
        workflow_id=workflow_id,
        operations=request.operations,
        mode=request.resolve_mode(app_settings.default_diff_mode),
    )
    try:
        result = use_case.execute(input_data)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    except DomainError as exc:
        raise _bad_request(exc) from exc
    return result.to_dict()
