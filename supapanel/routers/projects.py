from typing import Dict, List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..database import get_db
from ..config import get_settings
from ..exceptions import (
    PanelError,
    InvalidInputError,
    ConflictError,
    ProjectNotFoundError,
)
from ..schemas import (
    Project as ProjectSchema,
    ProjectCreate,
    DomainUpdate,
    DomainInfo,
    OrchestrationResult,
    ProjectStatusResponse,
    LogsRequest,
    LogsResponse,
    DeleteResult,
)
from ..services.orchestration import get_orchestrator
from ..services.routing import get_routing_sink
from ..services.project_lifecycle import ProjectLifecycleManager, DOMAIN_TARGET_ALL

logger = logging.getLogger(__name__)

router = APIRouter()


def get_lifecycle_manager(db: AsyncSession = Depends(get_db)) -> ProjectLifecycleManager:
    settings = get_settings()
    return ProjectLifecycleManager(
        db,
        get_orchestrator(),
        get_routing_sink(),
        public_host=settings.public_host,
        port_stride=settings.project_port_stride,
        default_log_tail=settings.default_log_tail,
    )


def to_http_error(error: PanelError) -> HTTPException:
    """Map a service error onto an HTTP status code."""
    if isinstance(error, ProjectNotFoundError):
        return HTTPException(status_code=404, detail="Project not found")
    if isinstance(error, InvalidInputError):
        return HTTPException(status_code=400, detail=error.message)
    if isinstance(error, ConflictError):
        return HTTPException(status_code=409, detail=error.message)
    return HTTPException(status_code=500, detail=error.message)


@router.get("/", response_model=List[ProjectSchema])
async def list_projects(manager: ProjectLifecycleManager = Depends(get_lifecycle_manager)):
    return await manager.list_projects()


@router.post("/", response_model=ProjectSchema, status_code=201)
async def create_project(
    project: ProjectCreate,
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager)
):
    try:
        return await manager.create_project(project.name, project.description)
    except PanelError as e:
        raise to_http_error(e)


@router.get("/{project_id}", response_model=ProjectSchema)
async def get_project(
    project_id: UUID,
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager)
):
    try:
        return await manager.get_project(project_id)
    except PanelError as e:
        raise to_http_error(e)


@router.get("/{project_id}/env", response_model=Dict[str, str])
async def get_project_env(
    project_id: UUID,
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager)
):
    try:
        project = await manager.get_project(project_id)
    except PanelError as e:
        raise to_http_error(e)
    return project.env_map


@router.delete("/{project_id}", response_model=DeleteResult)
async def delete_project(
    project_id: UUID,
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager)
):
    """
    Delete a project: containers and volumes, project files, routing config, record.

    A failing step aborts the deletion with a 500 and leaves the record in place.
    """
    try:
        result = await manager.delete_project(project_id)
    except PanelError as e:
        raise to_http_error(e)

    if not result['success']:
        raise HTTPException(status_code=500, detail=result['error'])

    return DeleteResult(success=True, slug=result['slug'], message="Project deleted successfully")


# ============================================================================
# Domains
# ============================================================================

@router.get("/{project_id}/domain", response_model=DomainInfo)
async def get_project_domain(
    project_id: UUID,
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager)
):
    try:
        return await manager.get_domains(project_id)
    except PanelError as e:
        raise to_http_error(e)


@router.put("/{project_id}/domain", response_model=DomainInfo)
async def set_project_domain(
    project_id: UUID,
    update: DomainUpdate,
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager)
):
    """
    Set the API domain, the Studio domain, or both.

    DNS that does not point here yet is not an error: the domain is saved
    unverified and routed anyway so the certificate can be issued once DNS
    propagates.
    """
    try:
        return await manager.set_domains(
            project_id,
            domain=update.domain,
            studio_domain=update.studio_domain,
        )
    except PanelError as e:
        raise to_http_error(e)


@router.delete("/{project_id}/domain", response_model=DomainInfo)
async def remove_project_domain(
    project_id: UUID,
    target: str = Query(DOMAIN_TARGET_ALL, description="api, studio or all"),
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager)
):
    try:
        return await manager.remove_domains(project_id, target)
    except PanelError as e:
        raise to_http_error(e)


# ============================================================================
# Containers
# ============================================================================

@router.post("/{project_id}/deploy", response_model=OrchestrationResult)
async def deploy_project(
    project_id: UUID,
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager)
):
    """Deploy a project. A failed deployment is reported in the body, not as an HTTP error."""
    try:
        return await manager.deploy(project_id)
    except PanelError as e:
        raise to_http_error(e)


@router.post("/{project_id}/stop", response_model=OrchestrationResult)
async def stop_project(
    project_id: UUID,
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager)
):
    try:
        return await manager.stop(project_id)
    except PanelError as e:
        raise to_http_error(e)


@router.get("/{project_id}/status", response_model=ProjectStatusResponse)
async def get_project_status(
    project_id: UUID,
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager)
):
    try:
        return await manager.get_status(project_id)
    except PanelError as e:
        raise to_http_error(e)


@router.post("/{project_id}/status", response_model=LogsResponse)
async def get_project_logs(
    project_id: UUID,
    body: Optional[LogsRequest] = None,
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager)
):
    """Return the last tailLines log lines of every container of the project."""
    tail_lines = body.tail_lines if body else None
    try:
        result = await manager.get_logs(project_id, tail_lines)
    except PanelError as e:
        raise to_http_error(e)

    if not result.get('success'):
        raise HTTPException(status_code=500, detail=result.get('error') or "Failed to fetch logs")

    return LogsResponse(logs=result.get('logs', ''))
