import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import Depends, FastAPI, HTTPException, status
from sqlalchemy import text

from .config import Settings, get_settings
from .db.monitoring import get_pool_snapshot
from .db.session import dispose_engine, get_engine
from .dependencies import get_scheduler
from .logging_config import configure_logging
from .standing_routes import router as standing_router
from .telemetry import event_counts


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    scheduler = get_scheduler() if settings.scheduler_enabled else None
    if scheduler is not None:
        scheduler.start()
        logger.info("Next reconciliation at %s", scheduler.next_run().isoformat())
    else:
        logger.info("Reconciliation scheduler disabled")
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()
        dispose_engine()


app = FastAPI(title="Academic Standing Sync", version="0.1.0", lifespan=lifespan)
app.include_router(standing_router)


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    return {
        "status": "ok",
        "portal": settings.portal_base_url,
        "scheduler_enabled": settings.scheduler_enabled,
        "events": event_counts(),
    }


@app.get("/healthz/database")
def database_health() -> Dict[str, Any]:
    try:
        engine = get_engine()
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Database health check failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {"status": "ok", "pool": get_pool_snapshot(engine)}
