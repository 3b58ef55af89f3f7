"""
Orchestration Module - container lifecycle for self-hosted Supabase projects

Architecture:
- PanelMode enum: development / production (decides on-disk locations)
- BaseOrchestrator: Abstract interface used by the lifecycle manager
- DockerComposeOrchestrator: Docker Compose implementation
- OrchestratorFactory: Builds the orchestrator from settings

Usage:
    from supapanel.services.orchestration import get_orchestrator

    orchestrator = get_orchestrator()
    result = await orchestrator.deploy(project.slug, project.env_map)
    if not result.success:
        print(result.error)
"""

from .mode import PanelMode
from .base import BaseOrchestrator, ComposeResult, DockerStatus
from .factory import get_orchestrator, OrchestratorFactory

__all__ = [
    # Enums
    "PanelMode",
    # Base class and results
    "BaseOrchestrator",
    "ComposeResult",
    "DockerStatus",
    # Factory
    "get_orchestrator",
    "OrchestratorFactory",
]
