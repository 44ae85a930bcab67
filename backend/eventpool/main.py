"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from eventpool.config import settings
from eventpool.database import Base, engine
from eventpool.errors import (
    DuplicateEntrantError,
    EventPoolError,
    EventUnavailableError,
    GeolocationRequiredError,
    InvalidEventError,
    InvalidGeolocationError,
    InvalidTransitionError,
    NotFoundError,
    OrganizerBannedError,
    PartialBatchFailureError,
    StoreUnavailableError,
)

# Import routers
from eventpool.routers import admin, events, notifications, waitlist

# Import all models so Base.metadata knows about them
from eventpool.models.store_node import StoreNode  # noqa: F401

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateEntrantError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    GeolocationRequiredError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidGeolocationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidEventError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    OrganizerBannedError: status.HTTP_403_FORBIDDEN,
    EventUnavailableError: status.HTTP_423_LOCKED,
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    PartialBatchFailureError: status.HTTP_503_SERVICE_UNAVAILABLE,
}

app = FastAPI(
    title="Event Pool",
    description="Event waiting lists with lottery-based invitations",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(events.router, prefix="/api/events", tags=["Events"])
app.include_router(waitlist.router, prefix="/api/events/{event_id}/waitlist", tags=["Waitlist"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])


@app.exception_handler(EventPoolError)
async def eventpool_error_handler(request: Request, exc: EventPoolError) -> JSONResponse:
    """Map core errors to HTTP status codes."""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.on_event("startup")
def on_startup():
    """Create the store table on startup when the SQL store is selected."""
    if settings.STORE_BACKEND == "sql":
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok", "store": settings.STORE_BACKEND}
