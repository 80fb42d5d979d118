import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from guide_booking.api.routes import admin as admin_router
from guide_booking.api.routes import auth
from guide_booking.api.routes import bookings as bookings_router
from guide_booking.api.routes import destinations as destinations_router
from guide_booking.api.routes import guides as guides_router
from guide_booking.api.routes import notifications as notifications_router
from guide_booking.api.routes import review as review_router
from guide_booking.core.config import settings
from guide_booking.core.logging import configure_logging
from guide_booking.db.init_db import init_db
from guide_booking.services.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ServiceError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)

# most specific first; BookingStateError is caught as a permission error
ERROR_STATUS = (
    (NotFoundError, 404),
    (ConflictError, 409),
    (PermissionDeniedError, 403),
    (ValidationFailedError, 400),
)


def _status_for(exc: ServiceError) -> int:
    for error_class, status_code in ERROR_STATUS:
        if isinstance(exc, error_class):
            return status_code
    return 400


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        body = {"detail": exc.message}
        if exc.details is not None:
            body["details"] = exc.details
        return JSONResponse(status_code=_status_for(exc), content=body)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Validation error", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title=settings.app_name)

    @app.on_event("startup")
    def startup():
        init_db()

    @app.get("/")
    def root():
        return {"message": "Guide Booking Platform API running"}

    app.include_router(auth.router, prefix="/api/auth")
    app.include_router(admin_router.router)
    app.include_router(destinations_router.router)
    app.include_router(guides_router.router)
    app.include_router(bookings_router.router)
    app.include_router(review_router.router)
    app.include_router(notifications_router.router)

    register_exception_handlers(app)
    return app


app = create_app()
