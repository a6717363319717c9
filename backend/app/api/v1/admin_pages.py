from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_session, require_admin
from app.models.page import LandingPage, PageStatus
from app.schemas.page import (
    PageAdminRead,
    PageListResponse,
    PageStatusUpdate,
    PublishByFilterRequest,
    PublishByFilterResponse,
    SlugPathRefreshResponse,
)
from app.services import pages as pages_service
from app.services.page_paths import resolve_view_path
from app.services.site_settings import SiteConfig, get_site_config

router = APIRouter(prefix="/admin/pages", tags=["admin-pages"])


def _admin_row(page: LandingPage) -> PageAdminRead:
    row = PageAdminRead.model_validate(page)
    return row.model_copy(update={"view_path": resolve_view_path(page)})


@router.get("", response_model=PageListResponse)
async def list_pages(
    session: AsyncSession = Depends(get_session),
    _: str = Depends(require_admin),
    limit: int = Query(default=50, ge=1, le=100),
    cursor: str | None = Query(default=None, max_length=512),
    status_filter: PageStatus | None = Query(default=None, alias="status"),
    service: str | None = Query(default=None, max_length=80),
    county: str | None = Query(default=None, max_length=80),
    city: str | None = Query(default=None, max_length=80),
    q: str | None = Query(default=None, max_length=120),
    sort: str = Query(default="updated", pattern="^(updated|created)$"),
) -> PageListResponse:
    filters = pages_service.PageFilters(
        status=status_filter,
        service_key=(service or "").strip() or None,
        county_slug=(county or "").strip() or None,
        city_slug=(city or "").strip() or None,
        query=(q or "").strip() or None,
    )
    rows, next_cursor = await pages_service.list_pages(session, filters=filters, sort=sort, limit=limit, cursor=cursor)
    return PageListResponse(items=[_admin_row(page) for page in rows], next_cursor=next_cursor)


@router.post("/publish-by-filter", response_model=PublishByFilterResponse)
async def publish_by_filter(
    payload: PublishByFilterRequest,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(require_admin),
) -> PublishByFilterResponse:
    updated, capped = await pages_service.publish_by_filter(
        session,
        publish=payload.action == "publish",
        service_key=payload.service_key,
        county_slug=payload.county_slug,
        created_from=payload.created_from,
        created_to=payload.created_to,
        max_updates=payload.max,
    )
    return PublishByFilterResponse(updated=updated, capped=capped)


@router.post("/refresh-slug-paths", response_model=SlugPathRefreshResponse)
async def refresh_slug_paths(
    session: AsyncSession = Depends(get_session),
    _: str = Depends(require_admin),
) -> SlugPathRefreshResponse:
    changed = await pages_service.refresh_slug_paths(session)
    return SlugPathRefreshResponse(changed=changed)


@router.get("/{page_id}", response_model=PageAdminRead)
async def get_page(
    page_id: str,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(require_admin),
) -> PageAdminRead:
    page = await pages_service.get_page(session, page_id)
    if not page:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")
    return _admin_row(page)


@router.patch("/{page_id}/status", response_model=PageAdminRead)
async def update_page_status(
    page_id: str,
    payload: PageStatusUpdate,
    session: AsyncSession = Depends(get_session),
    config: SiteConfig = Depends(get_site_config),
    _: str = Depends(require_admin),
) -> PageAdminRead:
    page = await pages_service.get_page(session, page_id)
    if not page:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")
    page = await pages_service.set_page_status(session, page, payload.status, min_qa_score=config.publish_min_qa_score)
    return _admin_row(page)
