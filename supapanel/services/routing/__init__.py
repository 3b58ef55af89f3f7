"""
Routing Module - reverse-proxy configuration for project and panel domains.

Architecture:
- RoutingSpec: domains + ports to route for one project
- RoutingConfigSink: abstract destination (render / clear)
- TraefikFileSink: Traefik file-provider implementation

Usage:
    from supapanel.services.routing import get_routing_sink, RoutingSpec

    sink = get_routing_sink()
    await sink.render("demo", RoutingSpec("api.demo.test", None, 8000, 3000))
"""

import logging
from typing import Optional

from .base import RoutingConfigSink, RoutingSpec
from .traefik import TraefikFileSink, PANEL_CONFIG_NAME

logger = logging.getLogger(__name__)

_sink: Optional[RoutingConfigSink] = None


def get_routing_sink() -> RoutingConfigSink:
    """Get the process-wide routing sink, built from settings on first use."""
    global _sink
    if _sink is None:
        from ...config import get_settings
        settings = get_settings()
        _sink = TraefikFileSink(
            dynamic_config_dir=settings.resolved_traefik_dynamic_path,
            cert_resolver=settings.traefik_cert_resolver,
            panel_service_url=settings.panel_service_url,
        )
    return _sink


def clear_sink_cache() -> None:
    """Forget the cached sink (for testing)."""
    global _sink
    _sink = None


__all__ = [
    "RoutingSpec",
    "RoutingConfigSink",
    "TraefikFileSink",
    "PANEL_CONFIG_NAME",
    "get_routing_sink",
    "clear_sink_cache",
]
