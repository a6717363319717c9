import logging
import re

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import PlainTextResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_session
from app.models.page import LandingPage
from app.schemas.page import HubServiceRead, HubView, PageMetadataRead, PageRead, PageView
from app.services import pages as pages_service
from app.services import sitemap as sitemap_service
from app.services.page_paths import resolve_view_path
from app.services.routing import RouteMatch, match_route, redirect_target, split_path
from app.services.seo import build_page_metadata
from app.services.site_settings import SiteConfig, get_site_config, resolve_base_url
from app.services.urls import Scheme

logger = logging.getLogger("app.routing")

router = APIRouter(tags=["site"])

HUB_SCHEMES = frozenset({Scheme.zip, Scheme.zip_neighborhood, Scheme.city_neighborhood})
_SHARD_ID_RE = re.compile(r"([0-9]+)(\.xml)?")
_HUB_SERVICE_LABEL = "Home Services"


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")


def _xml_response(body: str) -> Response:
    return Response(
        content=body,
        media_type="application/xml",
        headers={"Cache-Control": sitemap_service.SITEMAP_CACHE_CONTROL},
    )


def _empty_xml() -> Response:
    return Response(content="", media_type="application/xml")


@router.get("/sitemap-index.xml", include_in_schema=False)
async def sitemap_index(
    request: Request,
    session: AsyncSession = Depends(get_session),
    config: SiteConfig = Depends(get_site_config),
) -> Response:
    if not config.is_indexable:
        return _empty_xml()
    base = resolve_base_url(config, request)
    count = await sitemap_service.shard_count(session, config.effective_chunk_size)
    return _xml_response(sitemap_service.render_sitemap_index(base, count))


@router.get("/sitemaps/{shard_id}", include_in_schema=False)
async def sitemap_shard(
    shard_id: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    config: SiteConfig = Depends(get_site_config),
) -> Response:
    if not config.is_indexable:
        return _empty_xml()
    parsed = _SHARD_ID_RE.fullmatch(shard_id)
    if not parsed:
        raise _not_found()
    base = resolve_base_url(config, request)
    shard = await sitemap_service.build_shard(session, int(parsed.group(1)), config.effective_chunk_size, base)
    return _xml_response(sitemap_service.render_urlset(shard.entries))


@router.get("/sitemap.xml", include_in_schema=False)
async def sitemap(
    request: Request,
    session: AsyncSession = Depends(get_session),
    config: SiteConfig = Depends(get_site_config),
) -> Response:
    base = resolve_base_url(config, request)
    entries = [sitemap_service.SitemapEntry(url=base)]
    if not config.is_indexable:
        return _xml_response(sitemap_service.render_urlset(entries))
    try:
        records = await sitemap_service.fetch_published(session, limit=config.plain_sitemap_limit)
    except SQLAlchemyError:
        logger.warning("Published pages unavailable, serving home-only sitemap", exc_info=True)
        records = []
    entries.extend(
        sitemap_service.build_canonical_entries(records, base, include_legacy=config.include_legacy_routes)
    )
    return _xml_response(sitemap_service.render_urlset(entries))


@router.get("/robots.txt", include_in_schema=False)
async def robots(request: Request, config: SiteConfig = Depends(get_site_config)) -> PlainTextResponse:
    lines = ["User-agent: *"]
    if config.is_indexable:
        base = resolve_base_url(config, request)
        lines += ["Allow: /", "Disallow: /admin", "Disallow: /api", f"Sitemap: {base}/sitemap-index.xml"]
    else:
        lines.append("Disallow: /")
    return PlainTextResponse("\n".join(lines) + "\n")


def _metadata(page: LandingPage | None, config: SiteConfig, base: str, path: str, **fallbacks: str) -> PageMetadataRead:
    return PageMetadataRead.model_validate(build_page_metadata(page, config, base_url=base, path=path, **fallbacks))


async def _hub_view(session: AsyncSession, match: RouteMatch, config: SiteConfig, base: str, path: str) -> HubView:
    pages = await pages_service.list_hub_pages(session, match.location)
    if not pages:
        raise _not_found()
    location = match.location
    place = location.zip or location.city_slug or ""
    first = pages[0]
    place_name = first.place_name if location.neighborhood_slug else (first.city_name or first.place_name)
    return HubView(
        scheme=match.scheme,
        canonical_path=path,
        county_slug=location.county_slug or "",
        place=place,
        neighborhood_slug=location.neighborhood_slug,
        place_name=place_name,
        services=[HubServiceRead.model_validate(link) for link in pages_service.hub_service_links(pages)],
        metadata=_metadata(
            None,
            config,
            base,
            path,
            service=_HUB_SERVICE_LABEL,
            place=place_name or location.neighborhood_slug or place,
            zip=location.zip or "",
            county=first.county_name or location.county_slug or "",
        ),
    )


async def _page_view(session: AsyncSession, match: RouteMatch, config: SiteConfig, base: str, path: str) -> PageView:
    if match.scheme == Scheme.opaque_id:
        page = await pages_service.find_by_id(session, match.record_id or "")
    else:
        page = await pages_service.find_by_location_and_service(session, match.location, match.service_key or "")
    if page is None:
        raise _not_found()
    canonical_path = resolve_view_path(page) or path
    return PageView(
        scheme=match.scheme,
        canonical_path=canonical_path,
        page=PageRead.model_validate(page),
        metadata=_metadata(page, config, base, canonical_path),
    )


@router.get("/{path:path}", response_model=None, include_in_schema=False)
async def resolve_page(
    path: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    config: SiteConfig = Depends(get_site_config),
) -> PageView | HubView | RedirectResponse:
    match = match_route(path)
    if match is None:
        raise _not_found()

    target = redirect_target(match)
    if target is not None:
        logger.info("legacy_redirect", extra={"scheme": match.scheme.value, "location": target})
        if request.url.query:
            target = f"{target}?{request.url.query}"
        return RedirectResponse(target, status_code=status.HTTP_301_MOVED_PERMANENTLY)
    if not match.is_canonical and match.scheme not in (Scheme.city_service, Scheme.opaque_id):
        raise _not_found()

    base = resolve_base_url(config, request)
    normalized = "/" + "/".join(split_path(path))
    if match.scheme in HUB_SCHEMES:
        return await _hub_view(session, match, config, base, normalized)
    return await _page_view(session, match, config, base, normalized)
