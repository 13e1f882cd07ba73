"""Database seeder: demo categories, tags, articles and comments."""
import argparse
import asyncio
import logging
import random
import time
from datetime import datetime, timezone, timedelta

from blogcms.database import engine, async_session, Base
from blogcms.models import Article, Category, Comment, Tag
from blogcms.slugs import slugify

logger = logging.getLogger("seed")

CATEGORIES = ["Backend", "Databases", "DevOps", "Frontend", "Career"]
TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "kubernetes",
        "react", "typescript", "testing", "performance", "security", "rest-api"]
AUTHORS = ["Ada", "Linus", "Grace", "Guido", "Margaret", "Ken"]


async def seed(small: bool = False) -> None:
    num_articles = 20 if small else 500
    max_comments = 3 if small else 8

    logger.info("Seeding %d articles (up to %d comments each)", num_articles, max_comments)
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        categories = [Category(name=name, slug=slugify(name)) for name in CATEGORIES]
        tags = [Tag(name=name, slug=slugify(name)) for name in TAGS]
        session.add_all(categories + tags)
        await session.flush()
        logger.info("Created %d categories, %d tags", len(categories), len(tags))

        total_comments = 0
        for i in range(num_articles):
            created = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365))
            topic = random.choice(TAGS)
            title = f"Article {i}: Getting started with {topic}"
            article = Article(
                title=title,
                slug=slugify(title),
                content=f"This is the full content of article {i} about {topic}.\n" * 20,
                published=random.random() > 0.1,  # 90% published
                view_count=random.randint(0, 5000),
                created_at=created,
                updated_at=created,
            )
            article.categories.extend(random.sample(categories, k=random.randint(1, 2)))
            article.tags.extend(random.sample(tags, k=random.randint(1, 4)))
            article.comments.extend(
                Comment(
                    author=random.choice(AUTHORS),
                    content=f"Thanks for writing about {topic}!",
                    approved=random.random() > 0.2,
                    created_at=created + timedelta(hours=random.randint(1, 72)),
                )
                for _ in range(random.randint(0, max_comments))
            )
            total_comments += len(article.comments)
            session.add(article)

            if i % 100 == 99:
                await session.flush()
                logger.info("  %d articles created", i + 1)

        await session.commit()

    logger.info(
        "Seeding complete in %.1fs: %d articles, %d comments",
        time.perf_counter() - start, num_articles, total_comments,
    )


def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (20 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
