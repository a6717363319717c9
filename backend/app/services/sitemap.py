from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from xml.etree import ElementTree

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.page import LandingPage, PageStatus
from app.services.page_paths import path_parts, record_value, resolve_canonical
from app.services.pages import published_only
from app.services.routing import match_route, redirect_target
from app.services.site_settings import DEFAULT_CHUNK_SIZE, MAX_SITEMAP_URLS
from app.services.urls import (
    Scheme,
    url_neighborhood,
    url_neighborhood_service,
    url_place,
    url_place_service,
)

logger = logging.getLogger("app.sitemap")

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
SITEMAP_CACHE_CONTROL = "public, s-maxage=3600, stale-while-revalidate=86400"
_XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'
_LASTMOD_FIELDS = ("updated_at", "updatedAt", "published_at", "publishedAt", "created_at", "createdAt")
# A record expands to at most a place hub, a place+service URL, a neighborhood
# hub and a neighborhood+service URL in the hierarchical sitemap.
URLS_PER_RECORD = 4
MAX_RECORDS_PER_SHARD = MAX_SITEMAP_URLS // URLS_PER_RECORD


@dataclass(frozen=True)
class SitemapEntry:
    url: str
    last_modified: datetime | None = None


@dataclass(frozen=True)
class SitemapShard:
    index: int
    entries: list[SitemapEntry]


def clamp_chunk_size(chunk_size: int | None) -> int:
    return max(1, min(chunk_size or DEFAULT_CHUNK_SIZE, MAX_SITEMAP_URLS))


def compute_shard_count(total_published: int, chunk_size: int | None) -> int:
    return max(1, math.ceil(max(total_published, 0) / clamp_chunk_size(chunk_size)))


def shard_record_limit(chunk_size: int | None) -> int:
    """Records per hierarchical shard, small enough that its URLs stay within the protocol cap."""
    return min(clamp_chunk_size(chunk_size), MAX_RECORDS_PER_SHARD)


def shard_window(shard_index: int, chunk_size: int | None) -> tuple[int, int]:
    """``(offset, limit)`` of a shard over the storage-key ordered published set."""
    if shard_index < 0:
        raise ValueError("shard index must be >= 0")
    size = clamp_chunk_size(chunk_size)
    return shard_index * size, size


def _as_utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc) if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _to_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        try:
            return _as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def record_lastmod(record: Any) -> datetime | None:
    return _to_datetime(record_value(record, *_LASTMOD_FIELDS))


def _is_unpublished(record: Any) -> bool:
    state = record_value(record, "status")
    if state is None:
        return False
    return str(getattr(state, "value", state)) != PageStatus.published.value


def _later(candidate: datetime | None, current: datetime | None) -> bool:
    return candidate is not None and (current is None or candidate > current)


def _bump(index: dict[str, datetime | None], path: str, lastmod: datetime | None) -> None:
    if path not in index or _later(lastmod, index[path]):
        index[path] = lastmod


def _is_served(path: str) -> bool:
    match = match_route(path)
    return match is not None and match.scheme != Scheme.opaque_id and redirect_target(match) is None


def build_sitemap_entries(records: Iterable[Any], base_url: str) -> list[SitemapEntry]:
    """Hierarchical sitemap: place hubs, place+service, neighborhood hubs and neighborhood+service URLs.

    Each URL carries the newest lastmod among the records that produced it. Only
    shapes the public router serves without a redirect are emitted. Output is
    ordered by URL length, then URL.
    """
    hubs: dict[str, datetime | None] = {}
    leaves: dict[str, datetime | None] = {}
    for record in records:
        if _is_unpublished(record):
            continue
        parts = path_parts(record)
        county = parts.county_slug
        place = parts.zip or parts.city_slug
        if not county or not place:
            continue
        lastmod = record_lastmod(record)
        _bump(hubs, url_place(county, place), lastmod)
        if parts.service_key:
            _bump(hubs, url_place_service(county, place, parts.service_key), lastmod)
        if parts.neighborhood_slug:
            _bump(hubs, url_neighborhood(county, place, parts.neighborhood_slug), lastmod)
            if parts.service_key:
                _bump(leaves, url_neighborhood_service(county, place, parts.neighborhood_slug, parts.service_key), lastmod)

    merged = dict(hubs)
    for path, lastmod in leaves.items():
        _bump(merged, path, lastmod)
    paths = sorted((path for path in merged if _is_served(path)), key=lambda p: (len(p), p))
    return [SitemapEntry(url=f"{base_url}{path}", last_modified=merged[path]) for path in paths]


def build_canonical_entries(
    records: Iterable[Any], base_url: str, *, include_legacy: bool = True
) -> list[SitemapEntry]:
    """One entry per record at its canonical path, in record order. Unresolvable records are skipped."""
    entries: dict[str, datetime | None] = {}
    for record in records:
        if _is_unpublished(record):
            continue
        resolved = resolve_canonical(record)
        if resolved is None:
            continue
        if not include_legacy and resolved.scheme == Scheme.city_service:
            continue
        _bump(entries, resolved.path, record_lastmod(record))
    return [SitemapEntry(url=f"{base_url}{path}", last_modified=lastmod) for path, lastmod in entries.items()]


async def count_published(session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count()).select_from(LandingPage).where(LandingPage.status == PageStatus.published)
    )
    return int(result.scalar_one() or 0)


async def shard_count(session: AsyncSession, chunk_size: int | None) -> int:
    """Number of shards; a failed count degrades to a single shard."""
    try:
        total = await count_published(session)
    except SQLAlchemyError:
        logger.warning("Published page count failed, serving a single sitemap shard", exc_info=True)
        return 1
    return compute_shard_count(total, shard_record_limit(chunk_size))


async def fetch_published(session: AsyncSession, *, offset: int = 0, limit: int = DEFAULT_CHUNK_SIZE) -> list[LandingPage]:
    result = await session.execute(
        select(LandingPage)
        .where(LandingPage.status == PageStatus.published)
        .order_by(LandingPage.id)
        .offset(offset)
        .limit(limit)
    )
    return [page for page in result.scalars().all() if published_only(page)]


async def build_shard(
    session: AsyncSession,
    shard_index: int,
    chunk_size: int | None,
    base_url: str,
    *,
    hierarchical: bool = True,
) -> SitemapShard:
    """Entries of one shard; hierarchical shards use ``shard_record_limit`` records, like ``shard_count``."""
    size = shard_record_limit(chunk_size) if hierarchical else chunk_size
    offset, limit = shard_window(shard_index, size)
    records = await fetch_published(session, offset=offset, limit=limit)
    if hierarchical:
        entries = build_sitemap_entries(records, base_url)
    else:
        entries = build_canonical_entries(records, base_url)
    logger.info("sitemap_shard_built", extra={"shard": shard_index, "records": len(records), "entries": len(entries)})
    return SitemapShard(index=shard_index, entries=entries)


def format_lastmod(value: datetime) -> str:
    return _as_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def render_urlset(entries: Iterable[SitemapEntry]) -> str:
    root = ElementTree.Element("urlset", {"xmlns": SITEMAP_NS})
    for entry in entries:
        node = ElementTree.SubElement(root, "url")
        ElementTree.SubElement(node, "loc").text = entry.url
        if entry.last_modified is not None:
            ElementTree.SubElement(node, "lastmod").text = format_lastmod(entry.last_modified)
    return _XML_DECLARATION + ElementTree.tostring(root, encoding="unicode")


def render_sitemap_index(base_url: str, count: int) -> str:
    root = ElementTree.Element("sitemapindex", {"xmlns": SITEMAP_NS})
    for index in range(count):
        node = ElementTree.SubElement(root, "sitemap")
        ElementTree.SubElement(node, "loc").text = f"{base_url}/sitemaps/{index}"
    return _XML_DECLARATION + ElementTree.tostring(root, encoding="unicode")
