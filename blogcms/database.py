from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from blogcms.cache import STALE_FLAG, cache
from blogcms.config import settings
from blogcms.middleware import install_query_counter


def install_sqlite_pragmas(engine) -> None:
    """
    Turn on foreign key enforcement for every new SQLite connection.

    SQLite ships with FK checks disabled, which would silently leave
    orphaned join rows and comments behind.  No-op for other dialects.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

install_sqlite_pragmas(engine)
# Register the per-request SQL query counter on the production engine.
install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def commit(session: AsyncSession) -> None:
    """Commit *session*, then drop cached listings if it changed any."""
    await session.commit()
    await cache.invalidate_if_stale(session)


async def get_db():
    async with async_session() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            await session.rollback()
            session.info.pop(STALE_FLAG, None)
            raise
