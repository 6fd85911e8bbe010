"""
Ledger error hierarchy.

Every failure is raised to the caller as one of these types and leaves
ledger state untouched.  ``status_code`` is the HTTP status the API layer
answers with.
"""


class LedgerError(Exception):
    status_code = 400


class NotFound(LedgerError):
    """Unknown scooter, ride or user id."""

    status_code = 404


class InvalidCode(LedgerError):
    """The presented QR code does not match the scooter."""

    status_code = 400


class ScooterUnavailable(LedgerError):
    """The scooter is already referenced by an open ride."""

    status_code = 409


class InvalidStateTransition(LedgerError):
    """Raised when a ride status change violates the state machine."""

    status_code = 409


class InvalidTime(LedgerError):
    """End time precedes the ride's start time."""

    status_code = 422


class DuplicateScooter(LedgerError):
    status_code = 409


class DuplicateUser(LedgerError):
    status_code = 409
