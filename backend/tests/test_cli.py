from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest

from app import cli
from app.models.page import LandingPage, PageStatus, PlaceKind
from app.services.site_settings import default_site_config, merge_site_config


@pytest.fixture
def seeded_store(session_factory, monkeypatch: pytest.MonkeyPatch):
    async def seed() -> None:
        async with session_factory() as session:
            for place in ("winnetka", "canoga-park", "reseda"):
                session.add(
                    LandingPage(
                        id=f"la-county__91306__{place}__roof-repair",
                        county_slug="la-county",
                        zip="91306",
                        place_slug=place,
                        place_kind=PlaceKind.neighborhood,
                        service_key="roof-repair",
                        status=PageStatus.published,
                        updated_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
                    )
                )
            await session.commit()

    asyncio.run(seed())
    monkeypatch.setattr(cli, "SessionLocal", session_factory)
    return session_factory


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])
    args = cli.build_parser().parse_args(["export-sitemaps", "out", "--base-url", "https://example.com"])
    assert args.output_dir == "out"
    assert args.base_url == "https://example.com"


def test_refresh_slug_paths_command(seeded_store, capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["refresh-slug-paths"])
    assert "Refreshed 3 slug paths" in capsys.readouterr().out

    async def read() -> str | None:
        async with seeded_store() as session:
            page = await session.get(LandingPage, "la-county__91306__reseda__roof-repair")
            return page.slug_path

    assert asyncio.run(read()) == "/la-county/91306/n/reseda/roof-repair"


def test_export_sitemaps_writes_index_and_shards(seeded_store, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = merge_site_config(default_site_config(), {"sitemap_chunk_size": 2})

    async def fake_load(session):
        return config

    monkeypatch.setattr(cli, "load_site_config", fake_load)
    cli.main(["export-sitemaps", str(tmp_path), "--base-url", "https://example.com/"])

    index = (tmp_path / "sitemap-index.xml").read_text(encoding="utf-8")
    assert "https://example.com/sitemaps/1" in index
    assert "https://example.com/sitemaps/2" not in index
    shard = (tmp_path / "sitemaps" / "0.xml").read_text(encoding="utf-8")
    assert "https://example.com/la-county/91306/n/canoga-park/roof-repair" in shard
    assert (tmp_path / "sitemaps" / "1.xml").exists()


def test_export_sitemaps_needs_a_base_url(seeded_store, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_load(session):
        return merge_site_config(default_site_config(), {"site_url": ""})

    monkeypatch.setattr(cli, "load_site_config", fake_load)
    with pytest.raises(SystemExit, match="base URL is required"):
        cli.main(["export-sitemaps", str(tmp_path)])


def test_export_sitemaps_skips_unindexable_site(
    seeded_store, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    async def fake_load(session):
        return merge_site_config(default_site_config(), {"allow_indexing": False})

    monkeypatch.setattr(cli, "load_site_config", fake_load)
    cli.main(["export-sitemaps", str(tmp_path), "--base-url", "https://example.com"])

    assert "Indexing is disabled" in capsys.readouterr().out
    assert not (tmp_path / "sitemap-index.xml").exists()
    assert not (tmp_path / "sitemaps").exists()
