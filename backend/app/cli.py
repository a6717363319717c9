import argparse
import asyncio
from pathlib import Path

from app.core.config import settings
from app.core.logging_config import configure_logging
from app.db.session import SessionLocal
from app.services import pages as pages_service
from app.services import sitemap as sitemap_service
from app.services.site_settings import load_site_config


async def refresh_slug_paths() -> int:
    async with SessionLocal() as session:
        changed = await pages_service.refresh_slug_paths(session)
    print(f"Refreshed {changed} slug paths")
    return changed


async def export_sitemaps(output_dir: str, base_url: str | None = None) -> int:
    """Write ``sitemap-index.xml`` and every shard under ``output_dir``; returns the shard count.

    Nothing is written while the site is not indexable, matching the empty HTTP sitemaps.
    """
    target = Path(output_dir)
    async with SessionLocal() as session:
        config = await load_site_config(session)
        if not config.is_indexable:
            print("Indexing is disabled, no sitemaps written")
            return 0
        base = (base_url or config.site_url or "").rstrip("/")
        if not base:
            raise SystemExit("A base URL is required (--base-url or SITE_URL)")
        chunk_size = config.effective_chunk_size
        count = await sitemap_service.shard_count(session, chunk_size)
        (target / "sitemaps").mkdir(parents=True, exist_ok=True)
        (target / "sitemap-index.xml").write_text(sitemap_service.render_sitemap_index(base, count), encoding="utf-8")
        for index in range(count):
            shard = await sitemap_service.build_shard(session, index, chunk_size, base)
            (target / "sitemaps" / f"{index}.xml").write_text(
                sitemap_service.render_urlset(shard.entries), encoding="utf-8"
            )
    print(f"Wrote {count} sitemap shards to {target}")
    return count


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Landing page maintenance commands")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("refresh-slug-paths", help="Recompute cached slug paths from location and service fields")

    export = sub.add_parser("export-sitemaps", help="Write the sitemap index and shards to a directory")
    export.add_argument("output_dir", help="Directory receiving sitemap-index.xml and sitemaps/<n>.xml")
    export.add_argument("--base-url", default=None, help="Public origin, defaults to SITE_URL")
    return parser


def main(argv: list[str] | None = None) -> None:
    configure_logging(settings.log_json)
    args = build_parser().parse_args(argv)
    if args.command == "refresh-slug-paths":
        asyncio.run(refresh_slug_paths())
    elif args.command == "export-sitemaps":
        asyncio.run(export_sitemaps(args.output_dir, args.base_url))


if __name__ == "__main__":
    main()
