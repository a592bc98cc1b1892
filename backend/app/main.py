import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.errors import StatusPageError, ValidationFailed
from app.database.db import engine, Base
from app.models import incident, maintenance, models  # noqa: F401  registers tables on Base
from app.routes import health, incidents, maintenances, notifications, organizations, public, services, teams
from app.services.broadcaster import Broadcaster

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title=settings.APP_NAME,
    description="Multi-tenant status page backend",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.APP_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include Routers
# Health check and the event socket live at the root
app.include_router(health.router, tags=["health"])
app.include_router(notifications.router, tags=["realtime"])


# V1 API Routes
app.include_router(organizations.router, prefix="/api/v1", tags=["organizations"])
app.include_router(services.router, prefix="/api/v1", tags=["services"])
app.include_router(incidents.router, prefix="/api/v1", tags=["incidents"])
app.include_router(maintenances.router, prefix="/api/v1", tags=["maintenances"])
app.include_router(teams.router, prefix="/api/v1", tags=["teams"])
app.include_router(public.router, prefix="/api/v1", tags=["public"])


@app.exception_handler(StatusPageError)
async def handle_status_page_error(request: Request, exc: StatusPageError):
    if isinstance(exc, ValidationFailed):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "Validation error", "details": exc.details},
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(SQLAlchemyError)
async def handle_database_error(request: Request, exc: SQLAlchemyError):
    logger.exception("unhandled database error", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.on_event("startup")
def start_services():
    Base.metadata.create_all(bind=engine)
    app.state.broadcaster = Broadcaster()
    logger.info("status page backend started", extra={"env": settings.APP_ENV})


@app.on_event("shutdown")
def stop_services():
    broadcaster = getattr(app.state, "broadcaster", None)
    if broadcaster is not None:
        broadcaster.close()


if __name__ == "__main__":
    import uvicorn
    # The run command recommended: uvicorn app.main:app --reload --host 0.0.0.0 --port 8000
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT, reload=settings.DEBUG)
