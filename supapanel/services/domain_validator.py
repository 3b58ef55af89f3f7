"""
Domain validation for project and panel domains.

Two independent checks:
- format: conservative hostname grammar, shared by panel, API and Studio domains
- availability: no other project (API or Studio attribute) and not the panel

The availability check is a read-then-write guard, not a database constraint.
Two concurrent requests for the same domain can both pass it.
"""

import logging
import re
from typing import Optional
from uuid import UUID

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import DomainFormatError, DomainConflictError
from ..models import Project, PanelSettings

logger = logging.getLogger(__name__)

DOMAIN_PATTERN = re.compile(r'^[a-zA-Z0-9][a-zA-Z0-9\-_.]*\.[a-zA-Z]{2,}$')

PANEL_DOMAIN_KEY = "panel_domain"
PANEL_DOMAIN_VERIFIED_KEY = "panel_domain_verified"


def is_valid_domain(domain: Optional[str]) -> bool:
    """Return True if the value matches the hostname grammar."""
    if not domain:
        return False
    return bool(DOMAIN_PATTERN.match(domain))


def validate_domain_format(domain: Optional[str]) -> str:
    """
    Validate and normalize a candidate domain.

    Surrounding whitespace is stripped before matching; case is preserved.

    Args:
        domain: Candidate domain

    Returns:
        The normalized domain

    Raises:
        DomainFormatError: If the domain is missing or malformed
    """
    if domain is None or not domain.strip():
        raise DomainFormatError("Domain is required")

    normalized = domain.strip()
    if not is_valid_domain(normalized):
        raise DomainFormatError(f"Invalid domain format: {normalized}")

    return normalized


async def find_domain_owner(
    db: AsyncSession,
    domain: str,
    exclude_project_id: Optional[UUID] = None
) -> Optional[Project]:
    """Return the project using the domain as API or Studio domain, if any."""
    query = select(Project).where(
        or_(Project.domain == domain, Project.studio_domain == domain)
    )
    if exclude_project_id is not None:
        query = query.where(Project.id != exclude_project_id)

    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none()


async def get_panel_domain(db: AsyncSession) -> Optional[str]:
    """Return the panel's own domain, if configured."""
    result = await db.execute(
        select(PanelSettings).where(PanelSettings.key == PANEL_DOMAIN_KEY)
    )
    setting = result.scalar_one_or_none()
    return setting.value if setting else None


async def ensure_domain_available(
    db: AsyncSession,
    domain: str,
    exclude_project_id: Optional[UUID] = None,
    check_panel: bool = True
) -> None:
    """
    Check that a domain is not bound elsewhere.

    Args:
        db: Database session
        domain: Normalized domain
        exclude_project_id: Project being edited (its own domains do not conflict)
        check_panel: Also reject the panel's own domain

    Raises:
        DomainConflictError: If another project or the panel uses the domain
    """
    owner = await find_domain_owner(db, domain, exclude_project_id)
    if owner is not None:
        logger.info(f"[DOMAIN] {domain} already used by project {owner.slug}")
        raise DomainConflictError(f"Domain {domain} is already in use")

    if check_panel:
        panel_domain = await get_panel_domain(db)
        if panel_domain and panel_domain == domain:
            logger.info(f"[DOMAIN] {domain} is the panel domain")
            raise DomainConflictError(f"Domain {domain} is already used by the panel")
