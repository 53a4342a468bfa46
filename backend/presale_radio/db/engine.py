import logging
import time

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from presale_radio.config import settings

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    # Poolers in front of Postgres (pgbouncer, Neon) break asyncpg's statement cache
    if "+asyncpg" in url:
        return {"statement_cache_size": 0, "prepared_statement_cache_size": 0}
    return {}


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.SQL_ECHO,
    pool_pre_ping=True,
    pool_recycle=300,
    connect_args=_connect_args(settings.DATABASE_URL),
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# Status polls hit the schedule tables many times per second; flag anything slow
@event.listens_for(engine.sync_engine, "before_cursor_execute")
def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    conn.info["query_start_time"] = time.monotonic()


@event.listens_for(engine.sync_engine, "after_cursor_execute")
def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    start = conn.info.pop("query_start_time", None)
    if start is None:
        return
    elapsed = time.monotonic() - start
    if elapsed >= settings.SLOW_QUERY_THRESHOLD_SECONDS:
        logger.warning(
            "Slow query (%.3fs): %s | params=%s",
            elapsed,
            statement[:500],
            str(parameters)[:200] if parameters else None,
        )
