"""
Services Module

Backend services behind the panel's HTTP routes.

Key Submodules:
- orchestration: Docker Compose lifecycle for per-project directories
- routing: Traefik dynamic configuration sink
- domain_validator / dns_verifier: gates in front of domain mutations
- port_allocator: ports and secrets derived from a project's env vars
- project_lifecycle: coordinator used by the routers
- panel_domain: the panel's own domain and routing config

Usage:
    from supapanel.services.orchestration import get_orchestrator
    from supapanel.services.routing import get_routing_sink
"""
