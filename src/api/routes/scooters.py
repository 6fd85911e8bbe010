"""
Scooter endpoints
=================

GET /api/v1/scooters/nearby              -- available scooters around a point
GET /api/v1/scooters/{scooter_id}        -- scooter details
GET /api/v1/scooters/{scooter_id}/quote  -- price estimate before unlocking
"""

from fastapi import APIRouter, Depends, Query, Request

from src.api.dependencies import get_ledger
from src.api.middleware import limiter
from src.api.schemas import (
    ErrorResponse,
    FareQuoteResponse,
    NearbyScooterResponse,
    ScooterResponse,
)
from src.config import settings
from src.domain.entities import Location
from src.services.ledger import RideLedger

router = APIRouter(prefix="/scooters", tags=["scooters"])


@router.get(
    "/nearby",
    response_model=list[NearbyScooterResponse],
    summary="List available scooters within a radius, nearest first",
)
@limiter.limit(settings.rate_limit)
def nearby_scooters(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_m: float = Query(settings.default_radius_m, ge=0, le=50_000),
    ledger: RideLedger = Depends(get_ledger),
):
    hits = ledger.nearby_with_distance(Location(lat, lng), radius_m)
    return [
        NearbyScooterResponse.from_entity(scooter, distance_m=round(meters, 1))
        for scooter, meters in hits
    ]


@router.get(
    "/{scooter_id}",
    response_model=ScooterResponse,
    summary="Get scooter details",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
def get_scooter(
    request: Request,
    scooter_id: str,
    ledger: RideLedger = Depends(get_ledger),
):
    return ScooterResponse.from_entity(ledger.get_scooter(scooter_id))


@router.get(
    "/{scooter_id}/quote",
    response_model=FareQuoteResponse,
    summary="Estimate the price of a ride",
    description=(
        "Per-minute rate times the estimated minutes plus the flat service "
        "fee.  The fee only appears in quotes; completed rides are billed "
        "by the minute alone."
    ),
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
def quote_scooter(
    request: Request,
    scooter_id: str,
    minutes: int = Query(settings.quote_minutes, ge=0, le=24 * 60),
    ledger: RideLedger = Depends(get_ledger),
):
    return FareQuoteResponse.from_quote(scooter_id, ledger.quote(scooter_id, minutes))
