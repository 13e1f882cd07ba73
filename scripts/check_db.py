"""Database sanity check: expected tables, article count, latest articles."""
import asyncio
import logging
import sys

from blogcms.config import settings
from blogcms.database import engine, async_session
from blogcms.services import stats_service

logger = logging.getLogger("check_db")


async def check_database() -> int:
    logger.info("Checking database at %s", engine.url.render_as_string(hide_password=True))

    async with engine.connect() as conn:
        missing = await stats_service.missing_tables(conn)
    if missing:
        logger.warning("Missing tables: %s (run `alembic upgrade head`)", ", ".join(missing))
        return 1
    logger.info("All tables present: %s", ", ".join(stats_service.EXPECTED_TABLES))

    async with async_session() as session:
        stats = await stats_service.get_stats(session)
        logger.info(
            "Articles: %d (%d published), comments: %d (%d pending)",
            stats["total_articles"], stats["published_articles"],
            stats["total_comments"], stats["pending_comments"],
        )
        for row in await stats_service.recent_articles_overview(session):
            logger.info("#%d %s", row["id"], row["title"])
            logger.info("    categories: %s", ", ".join(row["categories"]) or "(none)")
            logger.info("    tags: %s", ", ".join(row["tags"]) or "(none)")

    await engine.dispose()
    return 0


def main():
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(message)s")
    sys.exit(asyncio.run(check_database()))


if __name__ == "__main__":
    main()
