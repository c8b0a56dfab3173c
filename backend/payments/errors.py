"""Error codes for payment reconciliation."""

from enum import Enum


class ErrorCode(Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    BOOKING_NOT_FOUND = "BOOKING_NOT_FOUND"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    INTEGRITY_VIOLATION = "INTEGRITY_VIOLATION"


class PaymentError(Exception):
    """Base error with a code and a user-safe message."""

    code: ErrorCode

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class StorageUnavailable(PaymentError):
    """The ledger, booking or invoice tables could not be written. Retryable."""

    code = ErrorCode.STORAGE_UNAVAILABLE


class IntegrityViolation(PaymentError):
    """A transition would break the status/payment invariant."""

    code = ErrorCode.INTEGRITY_VIOLATION

    def __init__(self, booking_id: int, status: str, payment_status: str) -> None:
        super().__init__(
            f"Booking {booking_id} cannot be {payment_status} while {status}"
        )
        self.booking_id = booking_id
        self.status = status
        self.payment_status = payment_status
