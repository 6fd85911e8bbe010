"""
Ride endpoints
==============

POST  /api/v1/rides                   -- unlock a scooter and start a ride
GET   /api/v1/rides/{ride_id}         -- current state, cost once finished
PATCH /api/v1/rides/{ride_id}/pause   -- ACTIVE -> PAUSED
PATCH /api/v1/rides/{ride_id}/resume  -- PAUSED -> ACTIVE
PATCH /api/v1/rides/{ride_id}/end     -- lock the scooter, compute the fare
PATCH /api/v1/rides/{ride_id}/cancel  -- abandon without charge
POST  /api/v1/rides/{ride_id}/payment -- charge a completed ride

Ledger errors are turned into responses by the handler in ``app.py``.
Handlers are plain ``def``: ledger calls may wait on a keyed lock, so
FastAPI runs them in its threadpool instead of on the event loop.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from src.api.dependencies import get_gateway, get_ledger, get_users
from src.api.middleware import limiter
from src.api.schemas import (
    CheckoutResponse,
    ErrorResponse,
    PaymentRequest,
    PaymentResponse,
    RideEndRequest,
    RideResponse,
    RideStartRequest,
)
from src.config import settings
from src.domain.entities import Location
from src.domain.enums import RideStatus
from src.domain.errors import InvalidStateTransition
from src.domain.ports import PaymentGateway
from src.infrastructure.repositories import UserRepository
from src.services.ledger import RideLedger

router = APIRouter(prefix="/rides", tags=["rides"])

_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.post(
    "",
    status_code=201,
    response_model=RideResponse,
    summary="Unlock a scooter and start a ride",
    responses={
        400: {"model": ErrorResponse, "description": "QR code does not match."},
        **_ERRORS,
    },
)
@limiter.limit(settings.rate_limit)
def start_ride(
    request: Request,
    body: RideStartRequest,
    ledger: RideLedger = Depends(get_ledger),
):
    ride = ledger.start_ride(
        body.user_id,
        body.scooter_id,
        body.qr_code,
        Location(body.lat, body.lng),
    )
    return RideResponse.from_entity(ride)


@router.get(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Get ride status and cost",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
def get_ride(
    request: Request,
    ride_id: str,
    ledger: RideLedger = Depends(get_ledger),
):
    return RideResponse.from_entity(ledger.get_ride(ride_id))


@router.patch(
    "/{ride_id}/pause",
    response_model=RideResponse,
    summary="Pause an active ride",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
def pause_ride(
    request: Request,
    ride_id: str,
    ledger: RideLedger = Depends(get_ledger),
):
    return RideResponse.from_entity(ledger.pause_ride(ride_id))


@router.patch(
    "/{ride_id}/resume",
    response_model=RideResponse,
    summary="Resume a paused ride",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
def resume_ride(
    request: Request,
    ride_id: str,
    ledger: RideLedger = Depends(get_ledger),
):
    return RideResponse.from_entity(ledger.resume_ride(ride_id))


@router.patch(
    "/{ride_id}/end",
    response_model=RideResponse,
    summary="End a ride and compute its fare",
    description=(
        "Completes an ACTIVE or PAUSED ride.  The fare is the scooter's "
        "per-minute rate times the elapsed minutes, rounded to the cent. "
        "The scooter becomes available again at the end location."
    ),
    responses={
        422: {"model": ErrorResponse, "description": "End time before start."},
        **_ERRORS,
    },
)
@limiter.limit(settings.rate_limit)
def end_ride(
    request: Request,
    ride_id: str,
    body: RideEndRequest,
    ledger: RideLedger = Depends(get_ledger),
):
    ride = ledger.end_ride(ride_id, Location(body.lat, body.lng), body.end_time)
    return RideResponse.from_entity(ride)


@router.patch(
    "/{ride_id}/cancel",
    response_model=RideResponse,
    summary="Cancel a ride",
    description=(
        "Transitions an ACTIVE or PAUSED ride to CANCELLED.  Nothing is "
        "charged and the scooter is released."
    ),
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
def cancel_ride(
    request: Request,
    ride_id: str,
    ledger: RideLedger = Depends(get_ledger),
):
    return RideResponse.from_entity(ledger.cancel_ride(ride_id))


@router.post(
    "/{ride_id}/payment",
    response_model=CheckoutResponse,
    summary="Charge a completed ride",
    responses={
        402: {"model": ErrorResponse, "description": "Charge declined."},
        403: {"model": ErrorResponse, "description": "Another rider's payment method."},
        422: {"model": ErrorResponse, "description": "No payment method."},
        **_ERRORS,
    },
)
@limiter.limit(settings.rate_limit)
def pay_ride(
    request: Request,
    ride_id: str,
    body: PaymentRequest,
    ledger: RideLedger = Depends(get_ledger),
    users: UserRepository = Depends(get_users),
    gateway: PaymentGateway = Depends(get_gateway),
):
    ride = ledger.get_ride(ride_id)
    if ride.status != RideStatus.COMPLETED:
        raise InvalidStateTransition(
            f"Ride {ride_id} is {ride.status.value}; only completed rides are paid"
        )
    if ride.payment_id is not None:
        raise InvalidStateTransition(f"Ride {ride_id} already paid by {ride.payment_id}")

    method_id = body.payment_method_id
    if method_id is None:
        method = users.default_payment_method(ride.user_id)
        if method is None:
            raise HTTPException(status_code=422, detail="No payment method on file")
        method_id = method.id
    else:
        # unknown methods go to the processor and are declined there
        owner = users.owner_of(method_id)
        if owner is not None and owner != ride.user_id:
            raise HTTPException(
                status_code=403,
                detail=f"Payment method {method_id} does not belong to {ride.user_id}",
            )

    payment = gateway.charge(
        method_id,
        ride.cost,
        ride_id=ride.id,
        description=f"Scooter ride {ride.id}",
    )
    if not payment.succeeded:
        raise HTTPException(
            status_code=402,
            detail=f"Payment {payment.id} {payment.status.value.lower()}",
        )

    ride = ledger.record_payment(ride.id, payment.id)
    return CheckoutResponse(
        ride=RideResponse.from_entity(ride),
        payment=PaymentResponse.from_entity(payment),
    )
