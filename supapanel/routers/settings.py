from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..database import get_db
from ..exceptions import PanelError
from ..schemas import PanelDomainUpdate, PanelDomainInfo
from ..services.panel_domain import PanelDomainManager
from ..services.routing import get_routing_sink
from .projects import to_http_error

logger = logging.getLogger(__name__)

router = APIRouter()


def get_panel_domain_manager(db: AsyncSession = Depends(get_db)) -> PanelDomainManager:
    return PanelDomainManager(db, get_routing_sink())


@router.get("/panel-domain", response_model=PanelDomainInfo)
async def get_panel_domain(manager: PanelDomainManager = Depends(get_panel_domain_manager)):
    return await manager.get()


@router.put("/panel-domain", response_model=PanelDomainInfo)
async def set_panel_domain(
    update: PanelDomainUpdate,
    manager: PanelDomainManager = Depends(get_panel_domain_manager)
):
    try:
        return await manager.set(update.domain)
    except PanelError as e:
        raise to_http_error(e)


@router.delete("/panel-domain", response_model=PanelDomainInfo)
async def remove_panel_domain(manager: PanelDomainManager = Depends(get_panel_domain_manager)):
    try:
        return await manager.remove()
    except PanelError as e:
        raise to_http_error(e)
