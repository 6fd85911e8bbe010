"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.domain.entities import Payment, Ride, Scooter
from src.domain.pricing import FareQuote
from src.services.ledger import RideSummary


# ── Requests ──────────────────────────────────────────────────────────


class RideStartRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    scooter_id: str = Field(..., min_length=1)
    qr_code: str = Field(..., description="Code read from the scooter's QR sticker.")
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class RideEndRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    end_time: Optional[datetime] = Field(
        None,
        description="When the scooter was locked; defaults to server time.",
    )


class PaymentRequest(BaseModel):
    payment_method_id: Optional[str] = Field(
        None,
        description="Defaults to the rider's default payment method.",
    )


# ── Responses ─────────────────────────────────────────────────────────


class ScooterResponse(BaseModel):
    id: str
    model: str
    battery_level: int
    is_available: bool
    lat: float
    lng: float
    hourly_rate: float
    max_speed: float
    range_km: float
    last_maintenance: datetime

    @classmethod
    def from_entity(cls, scooter: Scooter, **extra) -> "ScooterResponse":
        return cls(
            id=scooter.id,
            model=scooter.model,
            battery_level=scooter.battery_level,
            is_available=scooter.is_available,
            lat=scooter.location.latitude,
            lng=scooter.location.longitude,
            hourly_rate=scooter.hourly_rate,
            max_speed=scooter.max_speed,
            range_km=scooter.range_km,
            last_maintenance=scooter.last_maintenance,
            **extra,
        )


class NearbyScooterResponse(ScooterResponse):
    distance_m: float


class FareQuoteResponse(BaseModel):
    scooter_id: str
    rate_per_minute: float
    minutes: int
    ride_estimate: float
    service_fee: float
    total: float
    currency: str

    @classmethod
    def from_quote(cls, scooter_id: str, quote: FareQuote) -> "FareQuoteResponse":
        return cls(
            scooter_id=scooter_id,
            rate_per_minute=quote.rate_per_minute,
            minutes=quote.minutes,
            ride_estimate=quote.ride_estimate,
            service_fee=quote.service_fee,
            total=quote.total,
            currency=quote.currency,
        )


class RideResponse(BaseModel):
    id: str
    user_id: str
    scooter_id: str
    status: str
    start_time: datetime
    end_time: Optional[datetime] = None
    start_lat: float
    start_lng: float
    end_lat: Optional[float] = None
    end_lng: Optional[float] = None
    distance_km: float
    duration_seconds: float
    cost: float
    payment_id: Optional[str] = None

    @classmethod
    def from_entity(cls, ride: Ride) -> "RideResponse":
        end = ride.end_location
        return cls(
            id=ride.id,
            user_id=ride.user_id,
            scooter_id=ride.scooter_id,
            status=ride.status.value,
            start_time=ride.start_time,
            end_time=ride.end_time,
            start_lat=ride.start_location.latitude,
            start_lng=ride.start_location.longitude,
            end_lat=end.latitude if end else None,
            end_lng=end.longitude if end else None,
            distance_km=ride.distance,
            duration_seconds=ride.duration,
            cost=ride.cost,
            payment_id=ride.payment_id,
        )


class RideSummaryResponse(BaseModel):
    user_id: str
    total_rides: int
    total_distance_km: float
    total_cost: float

    @classmethod
    def from_summary(cls, summary: RideSummary) -> "RideSummaryResponse":
        return cls(
            user_id=summary.user_id,
            total_rides=summary.total_rides,
            total_distance_km=summary.total_distance_km,
            total_cost=summary.total_cost,
        )


class PaymentResponse(BaseModel):
    id: str
    ride_id: str
    amount: float
    currency: str
    status: str
    payment_method_id: str
    timestamp: datetime
    description: str

    @classmethod
    def from_entity(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            id=payment.id,
            ride_id=payment.ride_id,
            amount=payment.amount,
            currency=payment.currency,
            status=payment.status.value,
            payment_method_id=payment.payment_method_id,
            timestamp=payment.timestamp,
            description=payment.description,
        )


class CheckoutResponse(BaseModel):
    ride: RideResponse
    payment: PaymentResponse


class HealthResponse(BaseModel):
    status: str = "ok"
    scooters: int = 0
    open_rides: int = 0


class ErrorResponse(BaseModel):
    detail: str
