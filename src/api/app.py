"""
FastAPI application factory.

* Registers routes for scooters, rides, rider history and admin.
* Holds one ``RideLedger`` per app on ``app.state``; routes reach it
  through ``src.api.dependencies`` rather than a module-level singleton.
* Maps ``LedgerError`` subclasses to JSON error responses.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, rides, scooters
from src.api.routes import users as rider_history
from src.config import settings
from src.domain.errors import LedgerError
from src.domain.ports import PaymentGateway
from src.domain.pricing import FareEngine
from src.domain.spatial import ScooterGrid
from src.infrastructure.locks import LockRegistry, LockTimeout
from src.infrastructure.payments import MockPaymentGateway
from src.infrastructure.repositories import UserRepository
from src.services.ledger import RideLedger

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ledger: RideLedger = app.state.ledger
    logger.info(
        "Ride ledger ready: %d scooters, %d open rides",
        len(ledger.list_scooters()),
        len(ledger.open_rides()),
    )
    yield
    logger.info("Ride ledger shutting down")


async def _ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


async def _lock_timeout_handler(request: Request, exc: LockTimeout) -> JSONResponse:
    logger.error("Lock timeout on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Ledger busy, retry later"})


def build_ledger(accounts: Optional[UserRepository] = None) -> RideLedger:
    """A ledger wired with the configured fare, grid and lock settings."""
    return RideLedger(
        accounts=accounts,
        fares=FareEngine(service_fee=settings.service_fee, currency=settings.currency),
        grid=ScooterGrid(resolution=settings.h3_resolution),
        locks=LockRegistry(timeout_seconds=settings.lock_timeout_seconds),
    )


def create_app(
    ledger: Optional[RideLedger] = None,
    users: Optional[UserRepository] = None,
    gateway: Optional[PaymentGateway] = None,
) -> FastAPI:
    app = FastAPI(
        title="SwiftRide Ride Ledger API",
        description=(
            "Unlocks scooters by QR code, tracks rides through pause and "
            "resume, and bills completed rides by the minute.  Scooter "
            "availability is guarded so a scooter can never be unlocked "
            "twice at once."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    users = users if users is not None else UserRepository()
    app.state.users = users
    app.state.ledger = ledger if ledger is not None else build_ledger(users)
    app.state.gateway = (
        gateway if gateway is not None else MockPaymentGateway(users, settings.currency)
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(LedgerError, _ledger_error_handler)
    app.add_exception_handler(LockTimeout, _lock_timeout_handler)

    # Routers
    app.include_router(scooters.router, prefix="/api/v1")
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(rider_history.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
