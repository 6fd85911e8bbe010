"""
Admin / observability endpoints
===============================

GET /api/v1/admin/active-rides -- every ride that is ACTIVE or PAUSED
GET /api/v1/admin/health       -- simple health check
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_ledger
from src.api.middleware import limiter
from src.api.schemas import HealthResponse, RideResponse
from src.config import settings
from src.services.ledger import RideLedger

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/active-rides",
    response_model=list[RideResponse],
    summary="List all open rides",
)
@limiter.limit(settings.rate_limit)
def get_active_rides(
    request: Request,
    ledger: RideLedger = Depends(get_ledger),
):
    rides = sorted(ledger.open_rides(), key=lambda r: r.start_time)
    return [RideResponse.from_entity(r) for r in rides]


@router.get("/health", response_model=HealthResponse, summary="Health check")
def health(ledger: RideLedger = Depends(get_ledger)):
    return HealthResponse(
        scooters=len(ledger.list_scooters()),
        open_rides=len(ledger.open_rides()),
    )
