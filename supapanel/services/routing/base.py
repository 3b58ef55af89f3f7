"""
Abstract Routing Config Sink

The lifecycle manager hands routing intents to a sink and never deals with
the transport. The file sink writes Traefik dynamic configuration to a watched
directory; an API-driven provider can implement the same interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RoutingSpec:
    """Everything needed to route a project's public hostnames."""
    api_domain: Optional[str]
    studio_domain: Optional[str]
    api_gateway_port: int
    studio_port: int

    @property
    def has_domains(self) -> bool:
        return bool(self.api_domain or self.studio_domain)


class RoutingConfigSink(ABC):
    """
    Destination for per-project (and panel) routing configuration.

    Implementations must fully replace the previous configuration on every
    call; there is no patching.
    """

    @abstractmethod
    async def render(self, slug: str, spec: RoutingSpec) -> str:
        """
        Write the routing configuration of a project.

        Args:
            slug: Project slug
            spec: Domains and ports to route

        Returns:
            Location written (file path for file-based sinks)
        """
        pass

    @abstractmethod
    async def clear(self, slug: str) -> str:
        """
        Drop all routes of a project.

        Returns:
            Location written
        """
        pass

    @abstractmethod
    async def render_panel(self, domain: str) -> str:
        """Route the panel's own domain to the panel service."""
        pass

    @abstractmethod
    async def clear_panel(self) -> str:
        """Drop the panel's custom domain route."""
        pass
