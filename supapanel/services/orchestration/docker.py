"""
Docker Orchestrator

Docker Compose orchestration of per-project directories:

    <projects-dir>/<slug>/docker-compose.yml   compose definition (from the core template)
    <projects-dir>/<slug>/.env                 rendered from the project's env vars

Every command runs with the project directory as working directory and the
slug as compose project name, so containers are namespaced by slug.
"""

import asyncio
import json
import logging
import os
from typing import Dict, List, Any, Optional

from .base import BaseOrchestrator, ComposeResult, DockerStatus
from .mode import PanelMode
from ..port_allocator import get_project_ports
from ...utils.async_subprocess import run_async
from ...utils.async_fileio import copy_tree_async, path_exists_async, write_file_async

logger = logging.getLogger(__name__)

COMPOSE_FILE_NAMES = (
    "docker-compose.yml",
    "docker-compose.yaml",
    "compose.yml",
    "compose.yaml",
)

STUDIO_SERVICE = "studio"

# Characters that force quoting in a .env value
_ENV_QUOTE_CHARS = set(' \t\n\r#"\'\\$`')


def format_env_value(value: str) -> str:
    """Quote a .env value when it contains whitespace, comments or quotes."""
    if value == "" or not any(c in _ENV_QUOTE_CHARS for c in value):
        return value
    escaped = (
        value.replace('\\', '\\\\')
        .replace('"', '\\"')
        .replace('\n', '\\n')
        .replace('\r', '\\r')
    )
    return f'"{escaped}"'


def render_env_file(env_vars: Dict[str, str], header: Optional[str] = None) -> str:
    """
    Render env vars as a compose .env file (sorted by key).

    Args:
        env_vars: Key -> value map
        header: Optional comment placed on top

    Returns:
        File content
    """
    lines = []
    if header:
        lines.append(f"# {header}")
    for key in sorted(env_vars):
        lines.append(f"{key}={format_env_value(str(env_vars[key]))}")
    return "\n".join(lines) + "\n"


def parse_compose_ps(output: str) -> List[Dict[str, Any]]:
    """
    Parse `docker compose ps --format json` output.

    Older Compose releases print one JSON array, newer ones one object per line.
    """
    output = output.strip()
    if not output:
        return []
    if output.startswith('['):
        return json.loads(output)
    return [json.loads(line) for line in output.splitlines() if line.strip()]


class DockerComposeOrchestrator(BaseOrchestrator):
    """
    Docker Compose orchestrator for per-project directories.

    Features:
    - .env generation from the project's env vars
    - Project directory provisioning from the core template
    - Live status from `docker compose ps`
    - Failures reported as ComposeResult / status "error", never raised
    """

    def __init__(
        self,
        projects_path: str,
        template_path: Optional[str] = None,
        mode: PanelMode = PanelMode.DEVELOPMENT,
        command_timeout: float = 600,
        query_timeout: float = 30,
        public_host: str = "localhost"
    ):
        self.projects_path = projects_path
        self.template_path = template_path
        self._mode = mode
        self.command_timeout = command_timeout
        self.query_timeout = query_timeout
        self.public_host = public_host

        logger.info(f"[DOCKER] Docker Compose orchestrator initialized ({mode})")
        logger.info(f"[DOCKER] Projects path: {self.projects_path}")

    @property
    def mode(self) -> PanelMode:
        return self._mode

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def get_project_path(self, project_slug: str) -> str:
        return os.path.join(self.projects_path, project_slug)

    def _find_compose_file(self, directory: str) -> Optional[str]:
        for name in COMPOSE_FILE_NAMES:
            path = os.path.join(directory, name)
            if os.path.isfile(path):
                return path
        return None

    async def _compose(
        self,
        project_slug: str,
        args: List[str],
        timeout: float
    ) -> ComposeResult:
        """Run a docker compose subcommand in the project directory."""
        cmd = ['docker', 'compose', '-p', project_slug] + args

        try:
            result = await run_async(
                cmd,
                timeout=timeout,
                cwd=self.get_project_path(project_slug)
            )
        except asyncio.TimeoutError:
            error_msg = f"docker compose {args[0]} timed out after {timeout}s"
            logger.error(f"[DOCKER] {project_slug}: {error_msg}")
            return ComposeResult(success=False, error=error_msg)
        except RuntimeError as e:
            logger.error(f"[DOCKER] {project_slug}: {e}")
            return ComposeResult(success=False, error=str(e))

        if not result.success:
            error_msg = result.stderr.strip() or result.stdout.strip() or f"exit code {result.returncode}"
            logger.error(f"[DOCKER] {project_slug}: docker compose {args[0]} failed: {error_msg}")
            return ComposeResult(success=False, output=result.stdout, error=error_msg)

        return ComposeResult(success=True, output=result.stdout)

    async def _prepare_project_dir(self, project_slug: str, env_vars: Dict[str, str]) -> Optional[str]:
        """
        Make sure the project directory has a compose definition and a fresh .env.

        Returns:
            Error message, or None when the directory is ready
        """
        project_path = self.get_project_path(project_slug)

        if self._find_compose_file(project_path) is None:
            if self.template_path and await path_exists_async(self.template_path):
                logger.info(f"[DOCKER] Copying core template into {project_path}")
                await copy_tree_async(self.template_path, project_path)
            else:
                return f"No compose definition found for project {project_slug}"

        if self._find_compose_file(project_path) is None:
            return f"No compose definition found for project {project_slug}"

        await write_file_async(
            os.path.join(project_path, ".env"),
            render_env_file(env_vars, header=f"Generated by SupaPanel for project {project_slug}")
        )
        return None

    async def _list_containers(self, project_slug: str) -> ComposeResult:
        return await self._compose(
            project_slug, ['ps', '--all', '--format', 'json'], self.query_timeout
        )

    # =========================================================================
    # PROJECT LIFECYCLE
    # =========================================================================

    async def deploy(self, project_slug: str, env_vars: Dict[str, str]) -> ComposeResult:
        logger.info(f"[DOCKER] Deploying project {project_slug}...")

        try:
            error = await self._prepare_project_dir(project_slug, env_vars)
        except OSError as e:
            error = f"Failed to prepare project directory: {e}"

        if error:
            logger.error(f"[DOCKER] {error}")
            return ComposeResult(success=False, error=error)

        result = await self._compose(
            project_slug, ['up', '-d', '--remove-orphans'], self.command_timeout
        )
        if result.success:
            logger.info(f"[DOCKER] Project {project_slug} started successfully")
        return result

    async def stop(self, project_slug: str) -> ComposeResult:
        project_path = self.get_project_path(project_slug)
        if self._find_compose_file(project_path) is None:
            return ComposeResult(
                success=False,
                error=f"No compose definition found for project {project_slug}"
            )

        logger.info(f"[DOCKER] Stopping project {project_slug}...")
        result = await self._compose(project_slug, ['stop'], self.command_timeout)
        if result.success:
            logger.info(f"[DOCKER] Project {project_slug} stopped")
        return result

    async def teardown(self, project_slug: str) -> ComposeResult:
        project_path = self.get_project_path(project_slug)
        if not await path_exists_async(project_path):
            logger.info(f"[DOCKER] {project_slug} was never provisioned, nothing to tear down")
            return ComposeResult(success=True)

        logger.info(f"[DOCKER] Tearing down project {project_slug}...")
        result = await self._compose(
            project_slug, ['down', '--volumes', '--remove-orphans'], self.command_timeout
        )
        if result.success:
            logger.info(f"[DOCKER] Project {project_slug} torn down")
        return result

    # =========================================================================
    # OBSERVATION
    # =========================================================================

    async def get_status(self, project_slug: str) -> Dict[str, Any]:
        if not await path_exists_async(self.get_project_path(project_slug)):
            return {
                'status': DockerStatus.NOT_DEPLOYED,
                'running_count': 0,
                'total_count': 0,
                'containers': {},
            }

        listing = await self._list_containers(project_slug)
        if not listing.success:
            return {
                'status': DockerStatus.ERROR,
                'running_count': 0,
                'total_count': 0,
                'containers': {},
                'error': listing.error,
            }

        try:
            containers = parse_compose_ps(listing.output)
        except (ValueError, TypeError) as e:
            logger.error(f"[DOCKER] Unreadable compose ps output for {project_slug}: {e}")
            return {
                'status': DockerStatus.ERROR,
                'running_count': 0,
                'total_count': 0,
                'containers': {},
                'error': f"Unreadable container listing: {e}",
            }

        states = {
            c.get('Service') or c.get('Name'): c.get('State', 'unknown')
            for c in containers
        }
        running_count = sum(1 for c in containers if c.get('State') == 'running')

        services = await self._compose(
            project_slug, ['config', '--services'], self.query_timeout
        )
        defined = [s for s in services.output.splitlines() if s.strip()] if services.success else []
        total_count = len(defined) if defined else len(containers)

        if not containers:
            status = DockerStatus.NOT_DEPLOYED
        elif running_count == 0:
            status = DockerStatus.STOPPED
        elif running_count >= total_count:
            status = DockerStatus.RUNNING
        else:
            status = DockerStatus.PARTIAL

        return {
            'status': status,
            'running_count': running_count,
            'total_count': total_count,
            'containers': states,
        }

    async def get_logs(self, project_slug: str, tail_lines: int = 100) -> Dict[str, Any]:
        """
        Recent log output of all containers, at most tail_lines lines in total.

        compose applies --tail per container, so the interleaved output is
        trimmed to its last tail_lines lines afterwards.
        """
        if not await path_exists_async(self.get_project_path(project_slug)):
            return {'success': False, 'error': f"Project {project_slug} has not been deployed"}

        result = await self._compose(
            project_slug,
            ['logs', '--no-color', '--tail', str(tail_lines)],
            self.query_timeout
        )
        if not result.success:
            return {'success': False, 'error': result.error}

        lines = result.output.splitlines(keepends=True)
        return {'success': True, 'logs': ''.join(lines[-tail_lines:])}

    async def get_studio_url(
        self,
        project_slug: str,
        env_vars: Dict[str, str],
        studio_domain: Optional[str] = None,
        studio_domain_verified: bool = False
    ) -> Optional[str]:
        if not await path_exists_async(self.get_project_path(project_slug)):
            return None

        listing = await self._list_containers(project_slug)
        if not listing.success:
            return None

        try:
            containers = parse_compose_ps(listing.output)
        except (ValueError, TypeError):
            return None

        studio_running = any(
            c.get('Service') == STUDIO_SERVICE and c.get('State') == 'running'
            for c in containers
        )
        if not studio_running:
            return None

        if studio_domain and studio_domain_verified:
            return f"https://{studio_domain}"

        ports = get_project_ports(env_vars)
        return f"http://{self.public_host}:{ports.studio_port}"
