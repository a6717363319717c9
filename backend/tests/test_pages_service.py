from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from app.models.page import LandingPage, LocationRef, PageStatus, PlaceKind
from app.services import pages as pages_service

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _page(page_id: str, *, place: str = "winnetka", service: str = "roof-repair", **overrides) -> LandingPage:
    values = {
        "id": page_id,
        "county_slug": "la-county",
        "county_name": "Los Angeles County",
        "zip": "91306",
        "place_slug": place,
        "place_name": place.title(),
        "place_kind": PlaceKind.neighborhood,
        "service_key": service,
        "service_name": service.replace("-", " ").title(),
        "status": PageStatus.published,
        "created_at": T0,
        "updated_at": T0,
    }
    values.update(overrides)
    return LandingPage(**values)


@pytest.mark.anyio("asyncio")
async def test_location_lookup_only_returns_published_pages(session_factory) -> None:
    async with session_factory() as session:
        session.add_all(
            [
                _page("b-page"),
                _page("a-page", status=PageStatus.draft),
                _page("c-page", place="canoga-park", status=PageStatus.review),
            ]
        )
        await session.commit()

        location = LocationRef(county_slug="la-county", zip="91306", place_slug="winnetka", place_kind=PlaceKind.neighborhood)
        found = await pages_service.find_by_location_and_service(session, location, "roof-repair")
        assert found is not None and found.id == "b-page"

        location = LocationRef(county_slug="la-county", zip="91306", place_slug="canoga-park")
        assert await pages_service.find_by_location_and_service(session, location, "roof-repair") is None
        assert await pages_service.find_by_location_and_service(session, LocationRef(zip="91306"), "roof-repair") is None
        assert await pages_service.find_by_id(session, "a-page") is None
        assert (await pages_service.find_by_id(session, "b-page")).id == "b-page"
        assert (await pages_service.get_page(session, "a-page")).status == PageStatus.draft


@pytest.mark.anyio("asyncio")
async def test_hub_links_are_deduplicated_per_service(session_factory) -> None:
    async with session_factory() as session:
        session.add_all(
            [
                _page("p1", service="roof-repair"),
                _page("p2", place="canoga-park", service="roof-repair"),
                _page("p3", service="plumbing"),
            ]
        )
        await session.commit()
        pages = await pages_service.list_hub_pages(session, LocationRef(county_slug="la-county", zip="91306"))
        links = pages_service.hub_service_links(pages)
        assert [link.key for link in links] == ["plumbing", "roof-repair"]
        assert links[1].path == "/la-county/91306/n/winnetka/roof-repair"


@pytest.mark.anyio("asyncio")
async def test_cursor_paging_visits_every_row_once(session_factory) -> None:
    async with session_factory() as session:
        rows = [_page(f"page-{i}", updated_at=T0 + timedelta(minutes=i // 2, microseconds=7)) for i in range(7)]
        session.add_all(rows)
        await session.commit()

        expected = [
            row.id for row in sorted(rows, key=lambda row: (row.updated_at, row.id), reverse=True)
        ]
        seen: list[str] = []
        cursor = None
        for _ in range(10):
            batch, cursor = await pages_service.list_pages(session, limit=3, cursor=cursor)
            seen.extend(page.id for page in batch)
            if cursor is None:
                break
        assert seen == expected


@pytest.mark.anyio("asyncio")
async def test_list_filters_and_created_sort(session_factory) -> None:
    async with session_factory() as session:
        session.add_all(
            [
                _page("la-county__91306__winnetka__roof-repair", created_at=T0),
                _page("la-county__91306__winnetka__plumbing", service="plumbing", created_at=T0 + timedelta(days=1)),
                _page("oc__92602__tustin__plumbing", service="plumbing", county_slug="oc", status=PageStatus.draft),
            ]
        )
        await session.commit()

        filters = pages_service.PageFilters(service_key="plumbing")
        rows, _ = await pages_service.list_pages(session, filters=filters, sort="created")
        assert [row.id for row in rows] == ["la-county__91306__winnetka__plumbing", "oc__92602__tustin__plumbing"]

        filters = pages_service.PageFilters(status=PageStatus.draft)
        rows, cursor = await pages_service.list_pages(session, filters=filters)
        assert [row.id for row in rows] == ["oc__92602__tustin__plumbing"]
        assert cursor is None

        rows, _ = await pages_service.list_pages(session, filters=pages_service.PageFilters(query="LA-COUNTY__"))
        assert len(rows) == 2


@pytest.mark.anyio("asyncio")
async def test_publish_gate_and_status_changes(session_factory) -> None:
    async with session_factory() as session:
        page = _page("gated", status=PageStatus.draft, qa_score=10)
        session.add(page)
        await session.commit()

        with pytest.raises(HTTPException) as exc:
            await pages_service.set_page_status(session, page, PageStatus.published, min_qa_score=50)
        assert exc.value.status_code == 409

        page = await pages_service.set_page_status(session, page, PageStatus.published, min_qa_score=10)
        assert page.status == PageStatus.published
        assert page.published_at is not None
        assert page.slug_path == "/la-county/91306/n/winnetka/roof-repair"

        page = await pages_service.set_page_status(session, page, PageStatus.archived)
        assert page.published_at is None


@pytest.mark.anyio("asyncio")
async def test_publish_by_filter_caps_in_id_order(session_factory) -> None:
    async with session_factory() as session:
        session.add_all([_page(f"roof-{i}", status=PageStatus.draft) for i in range(7)])
        session.add_all([_page(f"plumb-{i}", service="plumbing", status=PageStatus.draft) for i in range(2)])
        await session.commit()

        updated, capped = await pages_service.publish_by_filter(
            session, publish=True, service_key="roof-repair", max_updates=5
        )
        assert (updated, capped) == (5, True)
        published = (
            await session.execute(select(LandingPage.id).where(LandingPage.status == PageStatus.published))
        ).scalars().all()
        assert sorted(published) == [f"roof-{i}" for i in range(5)]

        updated, capped = await pages_service.publish_by_filter(session, publish=False, service_key="roof-repair")
        assert (updated, capped) == (7, False)
        remaining = (
            await session.execute(select(LandingPage).where(LandingPage.status == PageStatus.published))
        ).scalars().all()
        assert remaining == []


@pytest.mark.anyio("asyncio")
async def test_publish_by_filter_respects_created_window(session_factory) -> None:
    async with session_factory() as session:
        session.add_all(
            [
                _page("old", status=PageStatus.draft, created_at=T0),
                _page("new", status=PageStatus.draft, created_at=T0 + timedelta(days=10)),
            ]
        )
        await session.commit()
        updated, _ = await pages_service.publish_by_filter(
            session, publish=True, created_from=T0 + timedelta(days=1)
        )
        assert updated == 1
        assert (await pages_service.get_page(session, "new")).status == PageStatus.published
        assert (await pages_service.get_page(session, "old")).status == PageStatus.draft


@pytest.mark.anyio("asyncio")
async def test_refresh_slug_paths_keeps_lastmod(session_factory) -> None:
    async with session_factory() as session:
        session.add_all(
            [
                _page("stale", slug_path="/la__91306__winnetka__roof-repair"),
                _page("fresh", service="plumbing", slug_path="/la-county/91306/n/winnetka/plumbing"),
                _page("orphan", county_slug=None, zip=None, slug_path="/promo/spring"),
            ]
        )
        await session.commit()
        assert await pages_service.refresh_slug_paths(session) == 1
        assert await pages_service.refresh_slug_paths(session) == 0

    async with session_factory() as session:
        stale = await session.get(LandingPage, "stale")
        orphan = await session.get(LandingPage, "orphan")
        assert stale.slug_path == "/la-county/91306/n/winnetka/roof-repair"
        assert stale.updated_at.replace(tzinfo=None) == T0.replace(tzinfo=None)
        assert orphan.slug_path == "/promo/spring"
