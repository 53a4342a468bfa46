import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from presale_radio.config import settings
from presale_radio.core.middleware import setup_middleware
from presale_radio.db.session import get_db

logger = logging.getLogger(__name__)

_tables_created = False


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


async def ensure_tables():
    """Create DB tables if they haven't been created yet."""
    global _tables_created
    if _tables_created:
        return
    try:
        from presale_radio.db.base import Base
        from presale_radio.db.engine import engine
        import presale_radio.models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        _tables_created = True
    except Exception as e:
        logger.warning("Table creation skipped: %s", e)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Startup: create tables and start the rotation sweeper
    await ensure_tables()

    try:
        from presale_radio.services.rotation_sweeper import start_sweeper
        await start_sweeper()
    except Exception as e:
        logger.warning("Rotation sweeper failed to start: %s", e)

    yield

    # Shutdown: stop the sweeper, release the live-status cache connection
    try:
        from presale_radio.services.rotation_sweeper import stop_sweeper
        await stop_sweeper()
    except Exception as e:
        logger.warning("Rotation sweeper failed to stop: %s", e)

    from presale_radio.services.live_broadcast_bridge import get_bridge
    await get_bridge().cache.close()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Presale Radio API",
        version="0.1.0",
        description="Virtual radio schedule and live broadcast status for the vinyl presale marketplace",
        debug=settings.APP_DEBUG,
        lifespan=lifespan,
    )

    setup_middleware(app)

    @app.get("/health")
    async def health_check(db: AsyncSession = Depends(get_db)):
        try:
            await db.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning("Health check database probe failed: %s", e)
            return JSONResponse(status_code=503, content={"status": "unavailable", "database": "down"})
        return {
            "status": "ok",
            "database": "up",
            "livekit": settings.livekit_enabled,
            "youtube": settings.youtube_enabled,
            "redis": settings.redis_enabled,
        }

    # Register API routers
    from presale_radio.api.v1 import router as api_v1_router
    app.include_router(api_v1_router, prefix="/api/v1")

    return app


app = create_app()
