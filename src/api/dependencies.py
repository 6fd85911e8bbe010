"""FastAPI dependency injection helpers."""

from fastapi import Request

from src.domain.ports import PaymentGateway
from src.infrastructure.repositories import UserRepository
from src.services.ledger import RideLedger


def get_ledger(request: Request) -> RideLedger:
    """The ledger instance owned by the running app."""
    return request.app.state.ledger


def get_users(request: Request) -> UserRepository:
    return request.app.state.users


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway
