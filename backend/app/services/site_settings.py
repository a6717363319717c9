from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import Depends, Request
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, settings
from app.db.session import get_session
from app.models.site_settings import SiteSettingsRow

logger = logging.getLogger("app.site_settings")

SITE_SETTINGS_KEY = "site"
SITE_CONFIG_STATE_KEY = "site_config"
DEFAULT_CHUNK_SIZE = 5000
MAX_SITEMAP_URLS = 50_000


class SiteConfig(BaseModel):
    """Immutable per-request snapshot of the site-wide knobs."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    site_name: str = ""
    site_url: str = ""
    default_market: str = ""
    allow_indexing: bool = True
    robots_policy: Literal["index", "noindex"] = "index"
    canonical_mode: Literal["siteUrl", "requestHost"] = "siteUrl"
    include_legacy_routes: bool = True
    sitemap_chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, ge=0)
    sitemap_limit: int = Field(default=DEFAULT_CHUNK_SIZE, ge=0)
    title_template: str = ""
    meta_description_template: str = ""
    publish_min_qa_score: int = 0

    @property
    def is_indexable(self) -> bool:
        return self.allow_indexing and self.robots_policy != "noindex"

    @property
    def effective_chunk_size(self) -> int:
        return min(self.sitemap_chunk_size or DEFAULT_CHUNK_SIZE, MAX_SITEMAP_URLS)

    @property
    def plain_sitemap_limit(self) -> int:
        return min(self.sitemap_limit or DEFAULT_CHUNK_SIZE, self.effective_chunk_size)


class SiteConfigUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    site_name: str | None = Field(default=None, max_length=120)
    site_url: str | None = Field(default=None, max_length=255)
    default_market: str | None = Field(default=None, max_length=120)
    allow_indexing: bool | None = None
    robots_policy: Literal["index", "noindex"] | None = None
    canonical_mode: Literal["siteUrl", "requestHost"] | None = None
    include_legacy_routes: bool | None = None
    sitemap_chunk_size: int | None = Field(default=None, ge=1, le=MAX_SITEMAP_URLS)
    sitemap_limit: int | None = Field(default=None, ge=1, le=MAX_SITEMAP_URLS)
    title_template: str | None = Field(default=None, max_length=255)
    meta_description_template: str | None = Field(default=None, max_length=500)
    publish_min_qa_score: int | None = Field(default=None, ge=0, le=100)


def default_site_config(source: Settings = settings) -> SiteConfig:
    return SiteConfig(
        site_name=source.site_name,
        site_url=source.site_url,
        default_market=source.default_market,
        allow_indexing=source.allow_indexing,
        robots_policy=source.robots_policy,
        canonical_mode=source.canonical_mode,
        include_legacy_routes=source.include_legacy_routes,
        sitemap_chunk_size=source.sitemap_chunk_size,
        sitemap_limit=source.sitemap_limit,
        title_template=source.title_template,
        meta_description_template=source.meta_description_template,
        publish_min_qa_score=source.publish_min_qa_score,
    )


def merge_site_config(base: SiteConfig, overrides: dict[str, Any] | None) -> SiteConfig:
    if not overrides:
        return base
    try:
        return SiteConfig.model_validate({**base.model_dump(), **overrides})
    except ValidationError:
        logger.warning("Ignoring invalid stored site settings", extra={"keys": sorted(overrides)})
        return base


async def _load_row(session: AsyncSession) -> SiteSettingsRow | None:
    return await session.get(SiteSettingsRow, SITE_SETTINGS_KEY)


async def load_site_config(session: AsyncSession) -> SiteConfig:
    base = default_site_config()
    try:
        row = await _load_row(session)
    except SQLAlchemyError:
        logger.warning("Site settings unavailable, using environment defaults", exc_info=True)
        await session.rollback()
        return base
    return merge_site_config(base, row.value if row else None)


async def update_site_config(session: AsyncSession, payload: SiteConfigUpdate) -> SiteConfig:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    row = await _load_row(session)
    if row is None:
        row = SiteSettingsRow(key=SITE_SETTINGS_KEY, value={})
        session.add(row)
    row.value = {**(row.value or {}), **changes}
    await session.commit()
    return merge_site_config(default_site_config(), row.value)


async def get_site_config(request: Request, session: AsyncSession = Depends(get_session)) -> SiteConfig:
    """FastAPI dependency: the site configuration fetched once for this request.

    The snapshot is also kept on ``request.state`` so response middleware sees
    the same values as the route.
    """
    config = await load_site_config(session)
    setattr(request.state, SITE_CONFIG_STATE_KEY, config)
    return config


def resolve_base_url(config: SiteConfig, request: Request | None = None) -> str:
    if config.canonical_mode == "siteUrl" and config.site_url:
        return config.site_url.rstrip("/")
    if request is None:
        return config.site_url.rstrip("/")
    proto = request.headers.get("x-forwarded-proto") or request.url.scheme or "http"
    host = request.headers.get("x-forwarded-host") or request.headers.get("host") or request.url.netloc
    return f"{proto}://{host}".rstrip("/")
