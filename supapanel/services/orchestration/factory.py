"""
Orchestrator Factory

Builds the orchestrator once from settings (panel mode, paths, timeouts) and
caches it. Nothing downstream reads the environment to find its paths.
"""

import logging
from typing import Optional

from .base import BaseOrchestrator

logger = logging.getLogger(__name__)

# Cached orchestrator instance (singleton pattern)
_orchestrator: Optional[BaseOrchestrator] = None


class OrchestratorFactory:
    """
    Factory for the panel's orchestrator.

    Uses lazy initialization and singleton pattern - the orchestrator is
    created on first use and cached for subsequent calls.
    """

    @staticmethod
    def create_orchestrator() -> BaseOrchestrator:
        """
        Create or get the cached orchestrator.

        Returns:
            Orchestrator instance implementing BaseOrchestrator
        """
        global _orchestrator
        if _orchestrator is not None:
            return _orchestrator

        from ...config import get_settings
        from .docker import DockerComposeOrchestrator

        settings = get_settings()
        _orchestrator = DockerComposeOrchestrator(
            projects_path=settings.resolved_projects_path,
            template_path=settings.resolved_core_template_path,
            mode=settings.mode,
            command_timeout=settings.compose_command_timeout,
            query_timeout=settings.compose_query_timeout,
            public_host=settings.public_host,
        )
        logger.info(f"[ORCHESTRATOR] Created Docker Compose orchestrator ({settings.mode})")

        return _orchestrator

    @staticmethod
    def clear_cache() -> None:
        """Clear cached orchestrator instance (for testing)."""
        global _orchestrator
        _orchestrator = None
        logger.info("[ORCHESTRATOR] Cleared orchestrator cache")


def get_orchestrator() -> BaseOrchestrator:
    """
    Get the orchestrator instance.

    This is the main entry point for obtaining an orchestrator.
    """
    return OrchestratorFactory.create_orchestrator()
