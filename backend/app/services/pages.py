from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, status
from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.sql import Select

from app.models.page import LandingPage, LocationRef, PageStatus, PlaceKind
from app.services.page_paths import build_canonical_path, resolve_view_path
from app.services.pagination import PageCursor, decode_cursor, encode_cursor

logger = logging.getLogger("app.pages")

PUBLISH_BATCH_SIZE = 500
MAX_BULK_UPDATES = 5000
DEFAULT_BULK_UPDATES = 1000
HUB_PAGE_LIMIT = 100
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_SORT_COLUMNS = {"updated": "updated_at", "created": "created_at"}


@dataclass(frozen=True)
class PageFilters:
    status: PageStatus | None = None
    service_key: str | None = None
    county_slug: str | None = None
    city_slug: str | None = None
    query: str | None = None


@dataclass(frozen=True)
class HubServiceLink:
    key: str
    name: str
    path: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def to_epoch_us(value: datetime) -> int:
    return (_as_utc(value) - _EPOCH) // timedelta(microseconds=1)


def from_epoch_us(value: int) -> datetime:
    return _EPOCH + timedelta(microseconds=value)


def published_only(page: LandingPage | None) -> LandingPage | None:
    """Drop anything that is not published, whatever the query already filtered."""
    if page is None or not page.is_published:
        return None
    return page


def _city_clause(city_slug: str):
    return or_(
        LandingPage.city_slug == city_slug,
        and_(LandingPage.place_slug == city_slug, LandingPage.place_kind == PlaceKind.city),
    )


def _location_query(location: LocationRef) -> Select | None:
    if not location.county_slug:
        return None
    stmt = select(LandingPage).where(
        LandingPage.county_slug == location.county_slug,
        LandingPage.status == PageStatus.published,
    )
    if location.zip:
        stmt = stmt.where(LandingPage.zip == location.zip)
    elif location.city_slug:
        stmt = stmt.where(_city_clause(location.city_slug))
    else:
        return None
    if location.neighborhood_slug:
        stmt = stmt.where(LandingPage.place_slug == location.neighborhood_slug)
    return stmt


async def find_by_id(session: AsyncSession, record_id: str) -> LandingPage | None:
    if not record_id:
        return None
    return published_only(await session.get(LandingPage, record_id))


async def find_by_location_and_service(
    session: AsyncSession, location: LocationRef, service_key: str
) -> LandingPage | None:
    stmt = _location_query(location)
    if stmt is None or not service_key:
        return None
    stmt = stmt.where(LandingPage.service_key == service_key).order_by(LandingPage.id).limit(1)
    result = await session.execute(stmt)
    return published_only(result.scalars().first())


async def list_hub_pages(session: AsyncSession, location: LocationRef, limit: int = HUB_PAGE_LIMIT) -> list[LandingPage]:
    stmt = _location_query(location)
    if stmt is None:
        return []
    result = await session.execute(stmt.order_by(LandingPage.service_key, LandingPage.id).limit(limit))
    return [page for page in result.scalars().all() if published_only(page)]


def hub_service_links(pages: list[LandingPage]) -> list[HubServiceLink]:
    links: list[HubServiceLink] = []
    seen: set[str] = set()
    for page in pages:
        key = page.service_key or ""
        path = resolve_view_path(page)
        if not key or not path or key in seen:
            continue
        seen.add(key)
        links.append(HubServiceLink(key=key, name=page.service_name or key, path=path))
    return links


async def get_page(session: AsyncSession, record_id: str) -> LandingPage | None:
    """Admin lookup, any status."""
    return await session.get(LandingPage, record_id)


def _apply_filters(stmt: Select, filters: PageFilters) -> Select:
    if filters.status is not None:
        stmt = stmt.where(LandingPage.status == filters.status)
    if filters.service_key:
        stmt = stmt.where(LandingPage.service_key == filters.service_key)
    if filters.county_slug:
        stmt = stmt.where(LandingPage.county_slug == filters.county_slug)
    if filters.city_slug:
        stmt = stmt.where(_city_clause(filters.city_slug))
    if filters.query:
        stmt = stmt.where(LandingPage.id.like(f"{filters.query.strip().lower()}%"))
    return stmt


async def list_pages(
    session: AsyncSession,
    *,
    filters: PageFilters | None = None,
    sort: str = "updated",
    limit: int = 50,
    cursor: str | None = None,
) -> tuple[list[LandingPage], str | None]:
    """Keyset page of the admin table ordered by ``(sort field desc, id desc)``."""
    limit = max(1, min(100, limit))
    attr = _SORT_COLUMNS.get(sort, "updated_at")
    column = getattr(LandingPage, attr)

    stmt = _apply_filters(select(LandingPage), filters or PageFilters())
    position = decode_cursor(cursor)
    if position is not None:
        after = from_epoch_us(position.t)
        stmt = stmt.where(or_(column < after, and_(column == after, LandingPage.id < position.id)))
    stmt = stmt.order_by(column.desc(), LandingPage.id.desc()).limit(limit)

    rows = list((await session.execute(stmt)).scalars().all())
    next_cursor = None
    if rows and len(rows) == limit:
        last = rows[-1]
        next_cursor = encode_cursor(PageCursor(t=to_epoch_us(getattr(last, attr)), id=last.id))
    return rows, next_cursor


def _apply_status(page: LandingPage, target: PageStatus, now: datetime) -> None:
    page.status = target
    page.updated_at = now
    if target == PageStatus.published:
        page.published_at = now
        page.slug_path = build_canonical_path(page) or page.slug_path
    else:
        page.published_at = None


async def set_page_status(
    session: AsyncSession, page: LandingPage, target: PageStatus, *, min_qa_score: int = 0
) -> LandingPage:
    if target == PageStatus.published and page.qa_score is not None and page.qa_score < min_qa_score:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"QA score {page.qa_score} is below the publish threshold {min_qa_score}",
        )
    _apply_status(page, target, _utcnow())
    await session.commit()
    await session.refresh(page)
    logger.info("page_status_changed", extra={"page_id": page.id, "status": target.value})
    return page


async def publish_by_filter(
    session: AsyncSession,
    *,
    publish: bool,
    service_key: str | None = None,
    county_slug: str | None = None,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    max_updates: int | None = None,
) -> tuple[int, bool]:
    """Publish or unpublish matching pages in id order; returns ``(updated, capped)``."""
    cap = max(1, min(MAX_BULK_UPDATES, max_updates or DEFAULT_BULK_UPDATES))
    target = PageStatus.published if publish else PageStatus.draft
    stmt = select(LandingPage)
    if service_key:
        stmt = stmt.where(LandingPage.service_key == service_key)
    if county_slug:
        stmt = stmt.where(LandingPage.county_slug == county_slug)
    if created_from:
        stmt = stmt.where(LandingPage.created_at >= created_from)
    if created_to:
        stmt = stmt.where(LandingPage.created_at <= created_to)

    now = _utcnow()
    updated = 0
    last_id: str | None = None
    while updated < cap:
        batch_stmt = stmt.order_by(LandingPage.id).limit(PUBLISH_BATCH_SIZE)
        if last_id is not None:
            batch_stmt = batch_stmt.where(LandingPage.id > last_id)
        batch = list((await session.execute(batch_stmt)).scalars().all())
        if not batch:
            break
        for page in batch[: cap - updated]:
            _apply_status(page, target, now)
            updated += 1
        await session.commit()
        last_id = batch[-1].id

    logger.info(
        "bulk_publish",
        extra={"action": "publish" if publish else "unpublish", "updated": updated, "service_key": service_key},
    )
    return updated, updated >= cap


async def refresh_slug_paths(session: AsyncSession, *, batch_size: int = PUBLISH_BATCH_SIZE) -> int:
    """Rewrite stale ``slug_path`` caches with the recomputed canonical path."""
    changed = 0
    last_id: str | None = None
    while True:
        stmt = select(LandingPage).order_by(LandingPage.id).limit(batch_size)
        if last_id is not None:
            stmt = stmt.where(LandingPage.id > last_id)
        batch = list((await session.execute(stmt)).scalars().all())
        if not batch:
            break
        for page in batch:
            canonical = build_canonical_path(page)
            if canonical and page.slug_path != canonical:
                # Leave updated_at (sitemap lastmod) untouched.
                await session.execute(
                    update(LandingPage)
                    .where(LandingPage.id == page.id)
                    .values(slug_path=canonical, updated_at=LandingPage.updated_at)
                    .execution_options(synchronize_session=False)
                )
                set_committed_value(page, "slug_path", canonical)
                changed += 1
        await session.commit()
        last_id = batch[-1].id
    logger.info("slug_paths_refreshed", extra={"changed": changed})
    return changed
