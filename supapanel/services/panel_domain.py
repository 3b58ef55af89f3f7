"""
Panel domain management.

The panel's own domain lives in the panel_settings key/value table:

    panel_domain           the hostname
    panel_domain_verified  "true" / "false"

and is routed through a dedicated config (panel.yml) whose routers take
precedence over project routers.
"""

import logging
from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import RoutingConfigError
from ..models import PanelSettings
from .dns_verifier import verify_domain_dns
from .domain_validator import (
    PANEL_DOMAIN_KEY,
    PANEL_DOMAIN_VERIFIED_KEY,
    validate_domain_format,
    ensure_domain_available,
)
from .routing.base import RoutingConfigSink

logger = logging.getLogger(__name__)


class PanelDomainManager:
    def __init__(self, db: AsyncSession, routing_sink: RoutingConfigSink, dns_verifier=verify_domain_dns):
        self.db = db
        self.routing_sink = routing_sink
        self.dns_verifier = dns_verifier

    async def _get_setting(self, key: str):
        result = await self.db.execute(select(PanelSettings).where(PanelSettings.key == key))
        return result.scalar_one_or_none()

    async def _put_setting(self, key: str, value: str) -> None:
        setting = await self._get_setting(key)
        if setting is None:
            self.db.add(PanelSettings(key=key, value=value))
        else:
            setting.value = value

    async def get(self) -> Dict[str, Any]:
        domain = await self._get_setting(PANEL_DOMAIN_KEY)
        verified = await self._get_setting(PANEL_DOMAIN_VERIFIED_KEY)
        return {
            'domain': domain.value if domain else None,
            'verified': bool(verified and verified.value == "true"),
        }

    async def set(self, domain: str) -> Dict[str, Any]:
        """
        Bind the panel to a domain and write its routing config.

        Raises:
            DomainFormatError: Malformed or empty domain
            DomainConflictError: Domain used by a project
            RoutingConfigError: Routing config could not be written
        """
        domain = validate_domain_format(domain)
        await ensure_domain_available(self.db, domain, check_panel=False)

        verified = await self.dns_verifier(domain)

        await self._put_setting(PANEL_DOMAIN_KEY, domain)
        await self._put_setting(PANEL_DOMAIN_VERIFIED_KEY, "true" if verified else "false")
        await self.db.commit()

        try:
            await self.routing_sink.render_panel(domain)
        except OSError as e:
            logger.error(f"[DOMAIN] Failed to write panel routing config: {e}")
            raise RoutingConfigError(f"Failed to write routing configuration: {e}") from e

        logger.info(f"[DOMAIN] Panel domain set to {domain} (verified={verified})")
        if verified:
            message = "Domain configured and verified successfully"
        else:
            message = (
                "Domain configured. DNS verification pending - "
                "make sure your domain points to this server."
            )
        return {'domain': domain, 'verified': verified, 'message': message}

    async def remove(self) -> Dict[str, Any]:
        for key in (PANEL_DOMAIN_KEY, PANEL_DOMAIN_VERIFIED_KEY):
            setting = await self._get_setting(key)
            if setting is not None:
                await self.db.delete(setting)
        await self.db.commit()

        try:
            await self.routing_sink.clear_panel()
        except OSError as e:
            logger.error(f"[DOMAIN] Failed to clear panel routing config: {e}")
            raise RoutingConfigError(f"Failed to write routing configuration: {e}") from e

        logger.info("[DOMAIN] Panel domain removed")
        return {'domain': None, 'verified': False, 'message': "Domain removed successfully"}
