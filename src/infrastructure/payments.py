"""
Mock payment gateway.

Stands in for a card processor: a charge succeeds when the payment method
belongs to a known rider and fails otherwise.  Every attempt is kept in
``payments``.
"""

from __future__ import annotations

import logging
import threading
import uuid

from src.domain.entities import Payment, utcnow
from src.domain.enums import PaymentStatus
from src.domain.pricing import to_cents
from src.infrastructure.repositories import UserRepository

logger = logging.getLogger(__name__)


class MockPaymentGateway:
    def __init__(self, users: UserRepository, currency: str = "USD"):
        self.users = users
        self.currency = currency
        self._payments: list[Payment] = []
        self._lock = threading.Lock()

    @property
    def payments(self) -> list[Payment]:
        with self._lock:
            return list(self._payments)

    def charge(
        self,
        payment_method_id: str,
        amount: float,
        *,
        ride_id: str = "",
        description: str = "",
    ) -> Payment:
        if amount < 0:
            raise ValueError("amount must not be negative")

        owner = self.users.owner_of(payment_method_id)
        status = PaymentStatus.COMPLETED if owner else PaymentStatus.FAILED
        payment = Payment(
            id=f"pay_{uuid.uuid4().hex[:12]}",
            ride_id=ride_id,
            amount=to_cents(amount),
            currency=self.currency,
            status=status,
            payment_method_id=payment_method_id,
            timestamp=utcnow(),
            description=description,
        )
        with self._lock:
            self._payments.append(payment)

        if payment.succeeded:
            logger.info("Charged %.2f %s to %s", payment.amount, self.currency, payment_method_id)
        else:
            logger.warning("Charge declined: unknown payment method %s", payment_method_id)
        return payment
