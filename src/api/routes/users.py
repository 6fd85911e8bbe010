"""
Rider history endpoints
=======================

GET /api/v1/users/{user_id}/rides          -- ride history, newest first
GET /api/v1/users/{user_id}/rides/summary  -- ride count, distance, spend
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from src.api.dependencies import get_ledger
from src.api.middleware import limiter
from src.api.schemas import RideResponse, RideSummaryResponse
from src.config import settings
from src.domain.enums import RideStatus
from src.services.ledger import RideLedger

router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "/{user_id}/rides",
    response_model=list[RideResponse],
    summary="List a rider's rides",
)
@limiter.limit(settings.rate_limit)
def list_rides(
    request: Request,
    user_id: str,
    status: Optional[RideStatus] = None,
    search: Optional[str] = Query(
        None, max_length=64, description="Substring of the ride or scooter id."
    ),
    ledger: RideLedger = Depends(get_ledger),
):
    rides = ledger.ride_history(user_id, status=status, search=search)
    return [RideResponse.from_entity(r) for r in rides]


@router.get(
    "/{user_id}/rides/summary",
    response_model=RideSummaryResponse,
    summary="Totals over a rider's rides",
)
@limiter.limit(settings.rate_limit)
def ride_summary(
    request: Request,
    user_id: str,
    ledger: RideLedger = Depends(get_ledger),
):
    return RideSummaryResponse.from_summary(ledger.ride_summary(user_id))
