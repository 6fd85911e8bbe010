"""
Repository Pattern -- account data the ledger refers to by id only.

``UserRepository`` keeps riders and their payment methods in memory and
implements the ``AccountDirectory`` port.  It is the single writer of
payment methods, so it is where the "at most one default per user" rule
lives.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from typing import Optional

from src.domain.entities import PaymentMethod, User
from src.domain.enums import PaymentType
from src.domain.errors import DuplicateUser, NotFound

logger = logging.getLogger(__name__)


class UserRepository:
    def __init__(self):
        self._users: dict[str, User] = {}
        self._lock = threading.Lock()

    def add(self, user: User) -> User:
        with self._lock:
            if user.id in self._users:
                raise DuplicateUser(f"User {user.id} already exists")
            record = copy.deepcopy(user)
            _normalise_defaults(record.payment_methods)
            self._users[record.id] = record
            return copy.deepcopy(record)

    def get_by_id(self, user_id: str) -> User:
        with self._lock:
            return copy.deepcopy(self._require(user_id))

    def record_completed_ride(self, user_id: str) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                logger.warning("Completed ride for unknown user %s", user_id)
                return
            user.record_completed_ride()

    # ── Payment methods ───────────────────────────────────────────────

    def add_payment_method(
        self,
        user_id: str,
        method_type: PaymentType,
        *,
        card_number: str = "",
        expiry_date: str = "",
        is_default: bool = False,
    ) -> PaymentMethod:
        if method_type.is_card and not (card_number and expiry_date):
            raise ValueError("card payment methods need a card number and expiry date")

        method = PaymentMethod(
            id=f"pm_{uuid.uuid4().hex[:12]}",
            type=method_type,
            last_four_digits=card_number[-4:] if len(card_number) >= 4 else "",
            expiry_date=expiry_date,
            is_default=is_default,
        )
        with self._lock:
            user = self._require(user_id)
            if not user.payment_methods:
                method.is_default = True
            if method.is_default:
                for existing in user.payment_methods:
                    existing.is_default = False
            user.payment_methods.append(method)
        return copy.copy(method)

    def set_default_payment_method(self, user_id: str, method_id: str) -> PaymentMethod:
        with self._lock:
            user = self._require(user_id)
            chosen = next((m for m in user.payment_methods if m.id == method_id), None)
            if chosen is None:
                raise NotFound(f"Payment method {method_id} not found for {user_id}")
            for method in user.payment_methods:
                method.is_default = method is chosen
            return copy.copy(chosen)

    def default_payment_method(self, user_id: str) -> Optional[PaymentMethod]:
        with self._lock:
            user = self._require(user_id)
            chosen = next((m for m in user.payment_methods if m.is_default), None)
            return copy.copy(chosen) if chosen else None

    def owner_of(self, method_id: str) -> Optional[str]:
        with self._lock:
            for user in self._users.values():
                if any(m.id == method_id for m in user.payment_methods):
                    return user.id
        return None

    def _require(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user


def _normalise_defaults(methods: list[PaymentMethod]) -> None:
    """Keep only the first default flag; promote the first method if none."""
    seen_default = False
    for method in methods:
        if method.is_default and not seen_default:
            seen_default = True
        else:
            method.is_default = False
    if methods and not seen_default:
        methods[0].is_default = True
