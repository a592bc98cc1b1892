import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.database.db import get_db

logger = logging.getLogger(__name__)

router = APIRouter()
_STARTED_AT = datetime.now(timezone.utc)


@router.get("/health")
async def get_health():
    """
    Standard health check endpoint.
    """
    return {"status": "ok", "service": settings.APP_NAME}


@router.get("/api/v1/health")
def get_health_v1(request: Request, db: Session = Depends(get_db)):
    """
    Health check with database reachability, live room count and uptime.
    """
    now = datetime.now(timezone.utc)
    try:
        db.execute(text("SELECT 1"))
        database_ready = True
    except SQLAlchemyError:
        logger.warning("database health probe failed", exc_info=True)
        database_ready = False

    broadcaster = getattr(request.app.state, "broadcaster", None)
    return {
        "status": "ok" if database_ready else "degraded",
        "service": settings.APP_NAME,
        "server_time": now.isoformat(),
        "uptime_seconds": int((now - _STARTED_AT).total_seconds()),
        "database": {"ready": database_ready},
        "realtime": {
            "ready": broadcaster is not None and not broadcaster.closed,
            "rooms": len(broadcaster.rooms()) if broadcaster is not None else 0,
        },
    }
