from contextlib import asynccontextmanager

import asyncpg
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gatepass.api.routes import notifications, ping, tickets, verification
from gatepass.core.config import get_settings
from gatepass.core.logging import configure_logging, init_tracer, shutdown_tracer
from gatepass.errors import (
    AutomationTimeoutError,
    ConflictError,
    GatepassError,
    NotFoundError,
    NotReadyError,
    ProviderError,
    ValidationError,
)
from gatepass.notifications import BulkCoordinator, Dispatcher, Scheduler
from gatepass.notifications.channels import build_channels
from gatepass.tickets import TicketRepository, TicketService, VerificationEngine

_ERROR_STATUS: dict[type[GatepassError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    ProviderError: 502,
    NotReadyError: 503,
    AutomationTimeoutError: 504,
}


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)
    app.state.logger = logger
    app.state.tracer_provider = tracer_provider

    dispatcher = Dispatcher(build_channels(settings), phone_region=settings.phone_default_region)
    await dispatcher.start()
    scheduler = Scheduler(dispatcher, tz=settings.scheduler_timezone, phone_region=settings.phone_default_region)
    await scheduler.start()
    app.state.dispatcher = dispatcher
    app.state.bulk_coordinator = BulkCoordinator(dispatcher, delay_seconds=settings.bulk_delay_seconds)
    app.state.scheduler = scheduler

    pool = None
    app.state.ticket_service = None
    app.state.verification_engine = None
    try:
        pool = await asyncpg.create_pool(dsn=settings.postgres_dsn, min_size=1, max_size=10)
        repository = TicketRepository(pool)
        await repository.ensure_schema()
        app.state.ticket_service = TicketService(repository)
        app.state.verification_engine = VerificationEngine(repository, phone_region=settings.phone_default_region)
    except (OSError, asyncpg.PostgresError):
        logger.exception("Ticket store unavailable; ticket endpoints are disabled")
        if pool is not None:
            await pool.close()
            pool = None
    try:
        yield
    finally:
        await scheduler.stop()
        await dispatcher.stop()
        if pool is not None:
            await pool.close()
        shutdown_tracer(tracer_provider)


async def gatepass_error_handler(request: Request, exc: GatepassError) -> JSONResponse:
    status_code = next((code for kind, code in _ERROR_STATUS.items() if isinstance(exc, kind)), 500)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_exception_handler(GatepassError, gatepass_error_handler)
    app.include_router(ping.router)
    app.include_router(tickets.router)
    app.include_router(verification.router)
    app.include_router(notifications.router)
    return app


app = create_app()
