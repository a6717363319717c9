from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_session, require_admin
from app.services import site_settings as site_settings_service
from app.services.site_settings import SiteConfig, SiteConfigUpdate

router = APIRouter(prefix="/admin/settings", tags=["admin-settings"])


@router.get("", response_model=SiteConfig)
async def read_settings(
    config: SiteConfig = Depends(site_settings_service.get_site_config),
    _: str = Depends(require_admin),
) -> SiteConfig:
    return config


@router.patch("", response_model=SiteConfig)
async def update_settings(
    payload: SiteConfigUpdate,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(require_admin),
) -> SiteConfig:
    return await site_settings_service.update_site_config(session, payload)
