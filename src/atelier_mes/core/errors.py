"""Error taxonomy for the shop-floor core.

Every error carries an ``ErrorKind`` so that callers collecting results (the
bulk coordinator, the production validator) can report the kind without
keeping the exception object around.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum


class ErrorKind(str, Enum):
    """Stable identifiers for recoverable error conditions."""

    INVALID_REQUEST = "invalid_request"
    INVALID_TRANSITION = "invalid_transition"
    MISSING_BREAK_CODE = "missing_break_code"
    UNKNOWN_BREAK_CODE = "unknown_break_code"
    CORRUPT_LOG = "corrupt_log"
    DUPLICATE_ACTIVITY = "duplicate_activity"
    QUANTITY_EXCEEDED = "quantity_exceeded"
    INVALID_QUANTITY = "invalid_quantity"
    CONFIRMATION_REQUIRED = "confirmation_required"
    UNKNOWN_SESSION = "unknown_session"
    STATION_NOT_AUTHORIZED = "station_not_authorized"
    UNKNOWN_STATION = "unknown_station"
    SEQUENCE_EXHAUSTED = "sequence_exhausted"
    RECEIPT_POSTING_FAILED = "receipt_posting_failed"
    INTERNAL = "internal"


class ShopfloorError(RuntimeError):
    """Base exception for all recoverable shop-floor failures."""

    kind: ErrorKind = ErrorKind.INTERNAL


class InvalidActivityRequestError(ShopfloorError):
    """Raised when an activity request is malformed (ids, machine code)."""

    kind = ErrorKind.INVALID_REQUEST


class InvalidTransitionError(ShopfloorError):
    """Raised when an action is not permitted from the worker's derived state."""

    kind = ErrorKind.INVALID_TRANSITION


class MissingBreakCodeError(ShopfloorError):
    """Raised when a stop action carries no break reason."""

    kind = ErrorKind.MISSING_BREAK_CODE


class UnknownBreakCodeError(ShopfloorError):
    """Raised when a stop action names a break reason that does not exist."""

    kind = ErrorKind.UNKNOWN_BREAK_CODE


class CorruptActivityLogError(ShopfloorError):
    """Raised when the activity log holds an event the resolver cannot read."""

    kind = ErrorKind.CORRUPT_LOG


class DuplicateActivityError(ShopfloorError):
    """Raised when an event identifier is appended twice."""

    kind = ErrorKind.DUPLICATE_ACTIVITY


class QuantityExceededError(ShopfloorError):
    """Raised when a production entry exceeds the remaining quantity."""

    kind = ErrorKind.QUANTITY_EXCEEDED

    def __init__(self, message: str, *, remaining_qty: Decimal) -> None:
        super().__init__(message)
        self.remaining_qty = remaining_qty


class InvalidQuantityError(ShopfloorError):
    """Raised for negative or all-zero production quantities."""

    kind = ErrorKind.INVALID_QUANTITY


class ConfirmationRequiredError(ShopfloorError):
    """Raised when a large production entry is committed without confirmation."""

    kind = ErrorKind.CONFIRMATION_REQUIRED


class UnknownSessionError(ShopfloorError):
    """Raised when a token does not map to a live session."""

    kind = ErrorKind.UNKNOWN_SESSION


class StationNotAuthorizedError(ShopfloorError):
    """Raised when a worker selects a station they are not authorized for."""

    kind = ErrorKind.STATION_NOT_AUTHORIZED


class UnknownStationError(ShopfloorError):
    """Raised when a station code is not known to the station directory."""

    kind = ErrorKind.UNKNOWN_STATION


class SequenceExhaustedError(ShopfloorError):
    """Raised when a day's batch sequence space is used up."""

    kind = ErrorKind.SEQUENCE_EXHAUSTED


class ReceiptPostingError(ShopfloorError):
    """Raised when the reject receipt fails after the accepted one was posted.

    The batch number stays issued because a receipt already carries it.
    """

    kind = ErrorKind.RECEIPT_POSTING_FAILED

    def __init__(self, message: str, *, batch_number: str, accepted_receipt: str | None) -> None:
        super().__init__(message)
        self.batch_number = batch_number
        self.accepted_receipt = accepted_receipt
