"""
Project Lifecycle Manager

Coordinates everything that happens to a project:

    draft -> deploying -> running | failed -> stopped -> (deleted)
    failed / stopped -> deploying (retry)

Two status sources are kept apart on purpose:
- project.status: administrative (desired) state, persisted, written here
- orchestrator.get_status(): observed container state, queried on every read

Domain mutations follow a fixed order: validate format and availability,
verify DNS, persist, then re-render the routing config from the merged
(existing + new) domain set. Nothing serializes concurrent requests for the
same project; the routing file is last-write-wins.

Deletion order: containers, project directory, routing config, record. A
failure part-way leaves a harmless directory or record behind rather than
containers nobody can trace back to a project.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Awaitable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import (
    InvalidInputError,
    ConflictError,
    DomainConflictError,
    ProjectNotFoundError,
    RoutingConfigError,
)
from ..models import Project, EnvVar, ProjectStatus
from ..utils.async_fileio import rmtree_async
from ..utils.slug_generator import candidate_slugs
from .dns_verifier import verify_domain_dns
from .domain_validator import validate_domain_format, ensure_domain_available
from .orchestration.base import BaseOrchestrator, ComposeResult, DockerStatus
from .port_allocator import allocate_project_env, get_project_ports, KONG_HTTP_PORT_KEY
from .routing.base import RoutingConfigSink, RoutingSpec

logger = logging.getLogger(__name__)

MAX_SLUG_ATTEMPTS = 10

DEPLOY_STATUS_SUCCESS = "success"
DEPLOY_STATUS_FAILED = "failed"

DOMAIN_TARGET_API = "api"
DOMAIN_TARGET_STUDIO = "studio"
DOMAIN_TARGET_ALL = "all"
DOMAIN_TARGETS = (DOMAIN_TARGET_API, DOMAIN_TARGET_STUDIO, DOMAIN_TARGET_ALL)

# Persisted status -> observed statuses that move it, and where to
RECONCILE_RULES = {
    ProjectStatus.RUNNING: ({DockerStatus.STOPPED, DockerStatus.NOT_DEPLOYED}, ProjectStatus.STOPPED),
    ProjectStatus.STOPPED: ({DockerStatus.RUNNING}, ProjectStatus.RUNNING),
}

DnsVerifier = Callable[[str], Awaitable[bool]]


def effective_status(persisted_status: str, docker_status: Dict[str, Any]) -> str:
    """Displayed status: the live one when available, the persisted one otherwise."""
    live = docker_status.get('status')
    if live and live != DockerStatus.ERROR:
        return live
    return persisted_status


def reconciled_status(persisted_status: str, docker_status: Dict[str, Any]) -> Optional[str]:
    """New administrative status implied by the observed one, or None to keep it."""
    rule = RECONCILE_RULES.get(persisted_status)
    if rule is None:
        return None
    observed, target = rule
    if docker_status.get('status') in observed:
        return target
    return None


class ProjectLifecycleManager:
    """
    Top-level coordinator for project records, containers and routing.

    Args:
        db: Database session
        orchestrator: Container orchestrator
        routing_sink: Destination of routing configuration
        dns_verifier: Async domain -> bool check
        public_host: Host written into new projects' public URLs
        port_stride: Spacing between port blocks of consecutive projects
        default_log_tail: Log lines returned when the caller does not ask
    """

    def __init__(
        self,
        db: AsyncSession,
        orchestrator: BaseOrchestrator,
        routing_sink: RoutingConfigSink,
        dns_verifier: DnsVerifier = verify_domain_dns,
        public_host: str = "localhost",
        port_stride: int = 10,
        default_log_tail: int = 100
    ):
        self.db = db
        self.orchestrator = orchestrator
        self.routing_sink = routing_sink
        self.dns_verifier = dns_verifier
        self.public_host = public_host
        self.port_stride = port_stride
        self.default_log_tail = default_log_tail

    # =========================================================================
    # RECORDS
    # =========================================================================

    async def list_projects(self) -> List[Project]:
        result = await self.db.execute(select(Project).order_by(Project.created_at.desc()))
        return list(result.scalars().all())

    async def get_project(self, project_id: UUID) -> Project:
        result = await self.db.execute(select(Project).where(Project.id == project_id))
        project = result.scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    async def _slug_taken(self, slug: str) -> bool:
        result = await self.db.execute(select(Project.id).where(Project.slug == slug))
        return result.first() is not None

    async def _allocate_slug(self, name: str) -> str:
        for attempt, slug in enumerate(candidate_slugs(name)):
            if attempt >= MAX_SLUG_ATTEMPTS:
                break
            if not await self._slug_taken(slug):
                return slug
        raise ConflictError(f"Could not allocate a unique slug for '{name}'")

    async def _taken_gateway_ports(self) -> List[int]:
        result = await self.db.execute(
            select(EnvVar.value).where(EnvVar.key == KONG_HTTP_PORT_KEY)
        )
        ports = []
        for value in result.scalars().all():
            try:
                ports.append(int(value))
            except (TypeError, ValueError):
                continue
        return ports

    async def create_project(self, name: str, description: Optional[str] = None) -> Project:
        """
        Create a project record in draft state; no containers are touched.

        Raises:
            InvalidInputError: If the name is blank
            ConflictError: If no free slug could be found
        """
        if name is None or not name.strip():
            raise InvalidInputError("Project name is required")
        name = name.strip()

        slug = await self._allocate_slug(name)
        env = allocate_project_env(
            slug,
            await self._taken_gateway_ports(),
            public_host=self.public_host,
            stride=self.port_stride,
        )

        project = Project(
            name=name,
            slug=slug,
            description=description,
            status=ProjectStatus.DRAFT,
            env_vars=[EnvVar(key=key, value=value) for key, value in env.items()],
        )
        self.db.add(project)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(f"Project slug '{slug}' is already taken")
        await self.db.refresh(project)

        logger.info(f"[LIFECYCLE] Created project {slug} ({project.id})")
        return project

    # =========================================================================
    # DOMAINS
    # =========================================================================

    def _routing_spec(self, project: Project) -> RoutingSpec:
        ports = get_project_ports(project.env_map)
        return RoutingSpec(
            api_domain=project.domain,
            studio_domain=project.studio_domain,
            api_gateway_port=ports.api_gateway_port,
            studio_port=ports.studio_port,
        )

    async def _sync_routing(self, project: Project) -> str:
        """Rewrite the project's routing config from its persisted domains."""
        spec = self._routing_spec(project)
        try:
            if spec.has_domains:
                return await self.routing_sink.render(project.slug, spec)
            return await self.routing_sink.clear(project.slug)
        except OSError as e:
            logger.error(f"[LIFECYCLE] Failed to write routing config for {project.slug}: {e}")
            raise RoutingConfigError(f"Failed to write routing configuration: {e}") from e

    @staticmethod
    def domain_info(project: Project) -> Dict[str, Any]:
        return {
            'domain': project.domain,
            'verified': bool(project.domain_verified),
            'studio_domain': project.studio_domain,
            'studio_verified': bool(project.studio_domain_verified),
        }

    async def get_domains(self, project_id: UUID) -> Dict[str, Any]:
        return self.domain_info(await self.get_project(project_id))

    async def set_domains(
        self,
        project_id: UUID,
        domain: Optional[str] = None,
        studio_domain: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Set or update the API and/or Studio domain of a project.

        Only the domains passed are changed; the routing config is rendered
        from the merged set so the other domain's routes survive.

        Returns:
            Domain info plus a message reporting verified/pending per domain

        Raises:
            DomainFormatError: Malformed or empty domain
            DomainConflictError: Domain bound elsewhere
            InvalidInputError: Neither domain given
            ProjectNotFoundError: Unknown project
            RoutingConfigError: Routing config could not be written
        """
        if domain is None and studio_domain is None:
            raise InvalidInputError("Domain is required")

        project = await self.get_project(project_id)

        requested: Dict[str, str] = {}
        if domain is not None:
            requested[DOMAIN_TARGET_API] = validate_domain_format(domain)
        if studio_domain is not None:
            requested[DOMAIN_TARGET_STUDIO] = validate_domain_format(studio_domain)

        merged_api = requested.get(DOMAIN_TARGET_API, project.domain)
        merged_studio = requested.get(DOMAIN_TARGET_STUDIO, project.studio_domain)
        if merged_api and merged_studio and merged_api == merged_studio:
            raise DomainConflictError("API and Studio domains must be different")

        for value in requested.values():
            await ensure_domain_available(self.db, value, exclude_project_id=project.id)

        verified: Dict[str, bool] = {}
        for target, value in requested.items():
            verified[target] = await self.dns_verifier(value)

        if DOMAIN_TARGET_API in requested:
            project.domain = requested[DOMAIN_TARGET_API]
            project.domain_verified = verified[DOMAIN_TARGET_API]
        if DOMAIN_TARGET_STUDIO in requested:
            project.studio_domain = requested[DOMAIN_TARGET_STUDIO]
            project.studio_domain_verified = verified[DOMAIN_TARGET_STUDIO]
        await self.db.commit()

        await self._sync_routing(project)

        messages = []
        labels = {DOMAIN_TARGET_API: "API domain", DOMAIN_TARGET_STUDIO: "Studio domain"}
        for target, value in requested.items():
            if verified[target]:
                messages.append(f"{labels[target]} {value} configured and verified successfully.")
            else:
                messages.append(
                    f"{labels[target]} {value} configured. DNS verification pending - "
                    f"make sure your domain points to this server."
                )

        logger.info(f"[LIFECYCLE] Domains updated for {project.slug}: {requested}")
        info = self.domain_info(project)
        info['message'] = " ".join(messages)
        return info

    async def remove_domains(self, project_id: UUID, target: str = DOMAIN_TARGET_ALL) -> Dict[str, Any]:
        """
        Remove the API and/or Studio domain of a project.

        The routing config is re-rendered with what remains, or replaced by
        the placeholder when no domain is left.
        """
        if target not in DOMAIN_TARGETS:
            raise InvalidInputError(f"Unknown domain target: {target}")

        project = await self.get_project(project_id)

        if target in (DOMAIN_TARGET_API, DOMAIN_TARGET_ALL):
            project.domain = None
            project.domain_verified = False
        if target in (DOMAIN_TARGET_STUDIO, DOMAIN_TARGET_ALL):
            project.studio_domain = None
            project.studio_domain_verified = False
        await self.db.commit()

        await self._sync_routing(project)

        logger.info(f"[LIFECYCLE] Removed {target} domain(s) of {project.slug}")
        info = self.domain_info(project)
        info['message'] = "Domain removed successfully"
        return info

    # =========================================================================
    # CONTAINERS
    # =========================================================================

    async def _run_orchestration(self, action: str, call) -> ComposeResult:
        try:
            return await call
        except Exception as e:
            logger.error(f"[LIFECYCLE] {action} raised: {e}", exc_info=True)
            return ComposeResult(success=False, error=str(e) or e.__class__.__name__)

    async def _record_outcome(
        self,
        project: Project,
        result: ComposeResult,
        success_status: str,
        fallback_error: str
    ) -> None:
        project.last_deploy_at = datetime.now(timezone.utc)
        if result.success:
            project.status = success_status
            project.deploy_status = DEPLOY_STATUS_SUCCESS
            project.last_deploy_error = None
        else:
            project.status = ProjectStatus.FAILED
            project.deploy_status = DEPLOY_STATUS_FAILED
            project.last_deploy_error = result.error or fallback_error
        await self.db.commit()

    @staticmethod
    def _outcome(project: Project, result: ComposeResult) -> Dict[str, Any]:
        return {
            'success': result.success,
            'status': project.status,
            'deploy_status': project.deploy_status,
            'last_deploy_at': project.last_deploy_at,
            'error': project.last_deploy_error,
        }

    async def deploy(self, project_id: UUID) -> Dict[str, Any]:
        """
        Bring a project's containers up.

        Failures are recorded on the project (status failed, last_deploy_error)
        and returned, never raised.
        """
        project = await self.get_project(project_id)

        project.status = ProjectStatus.DEPLOYING
        await self.db.commit()
        logger.info(f"[LIFECYCLE] Deploying {project.slug}")

        result = await self._run_orchestration(
            f"deploy {project.slug}",
            self.orchestrator.deploy(project.slug, project.env_map),
        )
        await self._record_outcome(project, result, ProjectStatus.RUNNING, "Deployment failed")

        if result.success:
            logger.info(f"[LIFECYCLE] {project.slug} is running")
        else:
            logger.error(f"[LIFECYCLE] Deployment of {project.slug} failed: {project.last_deploy_error}")
        return self._outcome(project, result)

    async def stop(self, project_id: UUID) -> Dict[str, Any]:
        """
        Stop a project's containers; same failure handling as deploy.

        A draft project has no containers yet and is rejected before the
        orchestrator is called, leaving its status and audit fields untouched.
        """
        project = await self.get_project(project_id)
        if project.status == ProjectStatus.DRAFT:
            raise InvalidInputError("Project has not been deployed")
        logger.info(f"[LIFECYCLE] Stopping {project.slug}")

        result = await self._run_orchestration(
            f"stop {project.slug}",
            self.orchestrator.stop(project.slug),
        )
        await self._record_outcome(project, result, ProjectStatus.STOPPED, "Stop failed")
        return self._outcome(project, result)

    async def get_status(self, project_id: UUID) -> Dict[str, Any]:
        """
        Persisted audit fields overlaid with live container status.

        The response carries both vocabularies: project_status (administrative)
        and docker (observed). status is the live value when the container
        query worked, the persisted one otherwise.
        """
        project = await self.get_project(project_id)

        try:
            docker_status = await self.orchestrator.get_status(project.slug)
        except Exception as e:
            logger.error(f"[LIFECYCLE] Status query for {project.slug} raised: {e}", exc_info=True)
            docker_status = {
                'status': DockerStatus.ERROR,
                'running_count': 0,
                'total_count': 0,
                'containers': {},
                'error': str(e),
            }

        new_status = reconciled_status(project.status, docker_status)
        if new_status:
            logger.info(
                f"[LIFECYCLE] Reconciled {project.slug}: {project.status} -> {new_status} "
                f"(observed {docker_status.get('status')})"
            )
            project.status = new_status
            await self.db.commit()

        studio_url = await self.get_studio_url(project)

        return {
            'project_status': project.status,
            'deploy_status': project.deploy_status,
            'last_deploy_at': project.last_deploy_at,
            'last_deploy_error': project.last_deploy_error,
            'docker': docker_status,
            'status': effective_status(project.status, docker_status),
            'studio_url': studio_url,
        }

    async def get_studio_url(self, project: Project) -> Optional[str]:
        try:
            return await self.orchestrator.get_studio_url(
                project.slug,
                project.env_map,
                studio_domain=project.studio_domain,
                studio_domain_verified=bool(project.studio_domain_verified),
            )
        except Exception as e:
            logger.error(f"[LIFECYCLE] Studio URL lookup for {project.slug} raised: {e}", exc_info=True)
            return None

    async def get_logs(self, project_id: UUID, tail_lines: Optional[int] = None) -> Dict[str, Any]:
        project = await self.get_project(project_id)
        tail = tail_lines if tail_lines and tail_lines > 0 else self.default_log_tail

        try:
            return await self.orchestrator.get_logs(project.slug, tail)
        except Exception as e:
            logger.error(f"[LIFECYCLE] Log query for {project.slug} raised: {e}", exc_info=True)
            return {'success': False, 'error': str(e)}

    # =========================================================================
    # DELETION
    # =========================================================================

    async def delete_project(self, project_id: UUID) -> Dict[str, Any]:
        """
        Tear down containers, remove files and routing config, delete the record.

        Stops at the first failing step and reports it; the record is deleted
        last so it is still there to retry from.
        """
        project = await self.get_project(project_id)
        slug = project.slug
        logger.info(f"[LIFECYCLE] Deleting project {slug}")

        teardown = await self._run_orchestration(
            f"teardown {slug}",
            self.orchestrator.teardown(slug),
        )
        if not teardown.success:
            return {'success': False, 'error': f"Failed to remove containers: {teardown.error}"}

        try:
            await rmtree_async(self.orchestrator.get_project_path(slug))
        except OSError as e:
            logger.error(f"[LIFECYCLE] Failed to remove project directory of {slug}: {e}")
            return {'success': False, 'error': f"Failed to remove project files: {e}"}

        try:
            await self.routing_sink.clear(slug)
        except OSError as e:
            logger.error(f"[LIFECYCLE] Failed to clear routing config of {slug}: {e}")
            return {'success': False, 'error': f"Failed to clear routing configuration: {e}"}

        await self.db.delete(project)
        await self.db.commit()

        logger.info(f"[LIFECYCLE] Project {slug} deleted")
        return {'success': True, 'slug': slug}
