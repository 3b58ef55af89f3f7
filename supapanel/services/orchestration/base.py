"""
Abstract Base Orchestrator

Defines the interface the lifecycle manager uses to act on a project's
containers. Every operation reports failures as values (ComposeResult,
status dicts) instead of raising: a failed deployment is an expected,
displayable outcome.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, Optional

from .mode import PanelMode


class DockerStatus:
    """Observed (live) container status of a project."""
    RUNNING = "running"
    STOPPED = "stopped"
    PARTIAL = "partial"
    NOT_DEPLOYED = "not_deployed"
    ERROR = "error"


@dataclass
class ComposeResult:
    """Outcome of a lifecycle command."""
    success: bool
    output: str = ""
    error: Optional[str] = None


class BaseOrchestrator(ABC):
    """
    Abstract base class for per-project container orchestration.

    Projects are addressed by slug; the slug names the project directory,
    the compose project and therefore every container of the project.
    """

    @property
    @abstractmethod
    def mode(self) -> PanelMode:
        """Return the panel mode this orchestrator was built for."""
        pass

    @abstractmethod
    def get_project_path(self, project_slug: str) -> str:
        """Directory holding the project's compose definition and .env file."""
        pass

    # =========================================================================
    # PROJECT LIFECYCLE
    # =========================================================================

    @abstractmethod
    async def deploy(self, project_slug: str, env_vars: Dict[str, str]) -> ComposeResult:
        """
        Bring up all services of a project.

        Args:
            project_slug: Project slug
            env_vars: Project env vars, written to the project's .env first

        Returns:
            ComposeResult
        """
        pass

    @abstractmethod
    async def stop(self, project_slug: str) -> ComposeResult:
        """Stop all services of a project, keeping containers and volumes."""
        pass

    @abstractmethod
    async def teardown(self, project_slug: str) -> ComposeResult:
        """Remove all containers, networks and volumes of a project."""
        pass

    # =========================================================================
    # OBSERVATION
    # =========================================================================

    @abstractmethod
    async def get_status(self, project_slug: str) -> Dict[str, Any]:
        """
        Get live status of a project's containers.

        Returns:
            Dictionary with:
                - status: "running", "stopped", "partial", "not_deployed" or "error"
                - running_count: Running containers
                - total_count: Defined services (or listed containers)
                - containers: Dict of service -> state
                - error: Error message (status "error" only)
        """
        pass

    @abstractmethod
    async def get_logs(self, project_slug: str, tail_lines: int = 100) -> Dict[str, Any]:
        """
        Get recent log output of a project's containers, tail_lines lines at most.

        Returns:
            {"success": True, "logs": str} or {"success": False, "error": str}
        """
        pass

    @abstractmethod
    async def get_studio_url(
        self,
        project_slug: str,
        env_vars: Dict[str, str],
        studio_domain: Optional[str] = None,
        studio_domain_verified: bool = False
    ) -> Optional[str]:
        """
        Best URL for reaching a project's Studio.

        Returns:
            https://<studio domain> when a verified Studio domain exists,
            otherwise the default host/port address; None when Studio is not running
        """
        pass
