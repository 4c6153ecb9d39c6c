import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

import staffbook.models  # noqa: F401 (registers all models with Base.metadata)
from staffbook.api.routes.appointments import router as appointments_router
from staffbook.api.routes.availability import router as availability_router
from staffbook.api.routes.blocked_days import router as blocked_days_router
from staffbook.api.routes.professionals import router as professionals_router
from staffbook.api.routes.specialties import router as specialties_router
from staffbook.api.routes.users import router as users_router
from staffbook.config import get_settings
from staffbook.database import create_tables, engine
from staffbook.scheduling.booking import BookingService
from staffbook.scheduling.cache import ReferenceDataCache
from staffbook.scheduling.refusals import BookingRefused
from staffbook.schemas.system import StatusResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Create tables on startup (dev convenience; migrations for production)
    await create_tables(engine)
    yield
    await engine.dispose()


async def booking_refused_handler(request: Request, exc: BookingRefused) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=503,
        content={"detail": "Temporary storage failure. Please try again."},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="StaffBook",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    cache = ReferenceDataCache(ttl_seconds=settings.reference_cache_ttl_seconds)
    app.state.reference_cache = cache
    app.state.booking_service = BookingService(cache=cache, settings=settings)

    app.add_exception_handler(BookingRefused, booking_refused_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, database_error_handler)  # type: ignore[arg-type]

    app.include_router(users_router)
    app.include_router(specialties_router)
    app.include_router(professionals_router)
    app.include_router(availability_router)
    app.include_router(blocked_days_router)
    app.include_router(appointments_router)

    @app.get("/api/system/status", response_model=StatusResponse)
    async def system_status() -> StatusResponse:
        return StatusResponse(status="ok")

    return app


app = create_app()
