"""
Traefik File Config Sink

Writes Traefik dynamic configuration files, one per project, into the
directory watched by Traefik's file provider:

    <dynamic-config-dir>/<slug>.yml   project routes
    <dynamic-config-dir>/panel.yml    panel route

Per configured domain a project gets:
- <slug>-<kind>       websecure router, TLS via the cert resolver, priority 10
- <slug>-<kind>-http  web router redirecting to https, priority 5
- <slug>-<kind>       load balancer service pointing at http://<slug>-<container>:<port>

Files are never deleted. Removing routes overwrites the file with a
comment-only placeholder so the watcher drops the routers without tripping
over a vanished file.

Writes go to a temporary sibling first and are renamed into place. I/O errors
propagate to the caller.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiofiles
import aiofiles.os
import yaml

from .base import RoutingConfigSink, RoutingSpec

logger = logging.getLogger(__name__)

PANEL_CONFIG_NAME = "panel"
HTTPS_REDIRECT_MIDDLEWARE = "https-redirect"
SECURE_ENTRYPOINT = "websecure"
PLAIN_ENTRYPOINT = "web"

PROJECT_ROUTER_PRIORITY = 10
PROJECT_REDIRECT_PRIORITY = 5
PANEL_ROUTER_PRIORITY = 100
PANEL_REDIRECT_PRIORITY = 50

API_HEALTH_CHECK = {
    'path': '/health',
    'interval': '30s',
    'timeout': '5s',
}


def host_rule(domain: str) -> str:
    """Traefik router rule matching a single host."""
    return f"Host(`{domain}`)"


class TraefikFileSink(RoutingConfigSink):
    """
    Routing sink backed by Traefik's file provider.

    Rendering is deterministic: the same slug, domains and ports always give
    the same document; only the "Generated at" header comment changes.
    """

    def __init__(self, dynamic_config_dir: str, cert_resolver: str = "letsencrypt",
                 panel_service_url: str = "http://supapanel-panel:3000"):
        self.dynamic_config_dir = dynamic_config_dir
        self.cert_resolver = cert_resolver
        self.panel_service_url = panel_service_url

        logger.info(f"[TRAEFIK] File sink writing to {self.dynamic_config_dir}")

    # =========================================================================
    # PATHS
    # =========================================================================

    def config_path(self, slug: str) -> str:
        """Path of the dynamic config file for a project (or 'panel')."""
        return os.path.join(self.dynamic_config_dir, f"{slug}.yml")

    # =========================================================================
    # DOCUMENT BUILDING
    # =========================================================================

    def _router_pair(self, name: str, domain: str, priority: int,
                     redirect_priority: int) -> Dict[str, Any]:
        """Secure router plus its plaintext redirect twin."""
        return {
            name: {
                'rule': host_rule(domain),
                'entryPoints': [SECURE_ENTRYPOINT],
                'service': name,
                'tls': {
                    'certResolver': self.cert_resolver,
                },
                'priority': priority,
            },
            f"{name}-http": {
                'rule': host_rule(domain),
                'entryPoints': [PLAIN_ENTRYPOINT],
                'middlewares': [HTTPS_REDIRECT_MIDDLEWARE],
                'service': name,
                'priority': redirect_priority,
            },
        }

    @staticmethod
    def _service(url: str, health_check: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        load_balancer: Dict[str, Any] = {'servers': [{'url': url}]}
        if health_check:
            load_balancer['healthCheck'] = dict(health_check)
        return {'loadBalancer': load_balancer}

    @staticmethod
    def _document(routers: Dict[str, Any], services: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'http': {
                'routers': routers,
                'middlewares': {
                    HTTPS_REDIRECT_MIDDLEWARE: {
                        'redirectScheme': {
                            'scheme': 'https',
                            'permanent': True,
                        },
                    },
                },
                'services': services,
            }
        }

    def build_project_document(self, slug: str, spec: RoutingSpec) -> Dict[str, Any]:
        """
        Build the routing document of a project.

        Args:
            slug: Project slug
            spec: Domains and ports

        Returns:
            Traefik dynamic configuration as a dict
        """
        routers: Dict[str, Any] = {}
        services: Dict[str, Any] = {}

        if spec.api_domain:
            name = f"{slug}-api"
            routers.update(self._router_pair(
                name, spec.api_domain, PROJECT_ROUTER_PRIORITY, PROJECT_REDIRECT_PRIORITY
            ))
            services[name] = self._service(
                f"http://{slug}-kong:{spec.api_gateway_port}", API_HEALTH_CHECK
            )

        if spec.studio_domain:
            name = f"{slug}-studio"
            routers.update(self._router_pair(
                name, spec.studio_domain, PROJECT_ROUTER_PRIORITY, PROJECT_REDIRECT_PRIORITY
            ))
            services[name] = self._service(f"http://{slug}-studio:{spec.studio_port}")

        return self._document(routers, services)

    def build_panel_document(self, domain: str) -> Dict[str, Any]:
        """Build the routing document of the panel itself."""
        routers = self._router_pair(
            "supapanel", domain, PANEL_ROUTER_PRIORITY, PANEL_REDIRECT_PRIORITY
        )
        services = {"supapanel": self._service(self.panel_service_url)}
        return self._document(routers, services)

    @staticmethod
    def _header(lines: List[str]) -> str:
        generated_at = datetime.now(timezone.utc).isoformat()
        header = [f"# {line}" for line in lines]
        header.append(f"# Generated at: {generated_at}")
        return "\n".join(header) + "\n\n"

    @staticmethod
    def _dump(document: Dict[str, Any]) -> str:
        return yaml.safe_dump(document, default_flow_style=False, sort_keys=False, width=1000000)

    # =========================================================================
    # WRITING
    # =========================================================================

    async def _write(self, path: str, content: str) -> None:
        """Write a file by renaming a fully written temporary sibling into place."""
        await aiofiles.os.makedirs(self.dynamic_config_dir, exist_ok=True)

        tmp_path = f"{path}.tmp"
        async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
            await f.write(content)
        await aiofiles.os.replace(tmp_path, path)

    async def render(self, slug: str, spec: RoutingSpec) -> str:
        if not spec.has_domains:
            return await self.clear(slug)

        content = self._header([
            f"Auto-generated Traefik routing for project: {slug}",
            f"API Domain: {spec.api_domain or 'not configured'}",
            f"Studio Domain: {spec.studio_domain or 'not configured'}",
        ]) + self._dump(self.build_project_document(slug, spec))

        path = self.config_path(slug)
        await self._write(path, content)

        logger.info(f"[TRAEFIK] Config generated for project {slug} at {path}")
        return path

    async def clear(self, slug: str) -> str:
        content = (
            f"# SupaPanel routing for project: {slug}\n"
            f"# No custom domain configured\n"
        )

        path = self.config_path(slug)
        await self._write(path, content)

        logger.info(f"[TRAEFIK] Config cleared for project {slug} at {path}")
        return path

    async def render_panel(self, domain: str) -> str:
        content = self._header([
            "Auto-generated Traefik routing for SupaPanel",
            f"Domain: {domain}",
        ]) + self._dump(self.build_panel_document(domain))

        path = self.config_path(PANEL_CONFIG_NAME)
        await self._write(path, content)

        logger.info(f"[TRAEFIK] Panel config generated at {path}")
        return path

    async def clear_panel(self) -> str:
        content = (
            "# SupaPanel Panel Routing\n"
            "# No custom domain configured - access via IP:3000\n"
        )

        path = self.config_path(PANEL_CONFIG_NAME)
        await self._write(path, content)

        logger.info(f"[TRAEFIK] Panel config cleared at {path}")
        return path
