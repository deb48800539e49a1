"""Production quantity entry: validation, batch numbering and commit.

Batch numbers have the form ``{prefix}{YYYYMMDD}{sequence}``, for example
``ANS20261218042`` for the 42nd batch of 18 December 2026. Sequences restart
at 1 every day and are issued under a per-day lock, so concurrent entries
never receive the same number.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Protocol
from zoneinfo import ZoneInfo

from atelier_mes.core.errors import (
    ConfirmationRequiredError,
    ErrorKind,
    InvalidQuantityError,
    QuantityExceededError,
    ReceiptPostingError,
    SequenceExhaustedError,
)
from atelier_mes.core.settings import settings
from atelier_mes.db.time import Clock, utcnow
from atelier_mes.schemas.production import (
    BatchNumber,
    ProductionEntryResult,
    ProductionEntryValidation,
    ReceiptLine,
    WorkOrderQuantitySnapshot,
)
from atelier_mes.services.locks import KeyedLockTable

__all__ = [
    "BatchSequencer",
    "ProductionEntryService",
    "ProductionEntryValidator",
    "ReceiptPoster",
]

logger = logging.getLogger(__name__)

_DATE_KEY = re.compile(r"^\d{8}$")

Quantity = int | float | Decimal


def _as_decimal(value: Quantity) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class ProductionEntryValidator:
    """Check accepted/rejected quantities against a work order snapshot."""

    def __init__(
        self,
        *,
        confirmation_ratio: Quantity | None = None,
        confirmation_min_qty: Quantity | None = None,
    ) -> None:
        if confirmation_ratio is None:
            confirmation_ratio = settings.confirmation_ratio
        if confirmation_min_qty is None:
            confirmation_min_qty = settings.confirmation_min_qty
        self.confirmation_ratio = _as_decimal(confirmation_ratio)
        self.confirmation_min_qty = (
            _as_decimal(confirmation_min_qty) if confirmation_min_qty is not None else None
        )

    def validate(
        self,
        snapshot: WorkOrderQuantitySnapshot,
        accepted_qty: Quantity,
        rejected_qty: Quantity,
    ) -> ProductionEntryValidation:
        """Return whether the entry may be committed and whether it needs confirmation.

        Nothing is mutated; an invalid entry only reports its errors together
        with the remaining quantity so the caller can correct the input.
        """
        accepted = _as_decimal(accepted_qty)
        rejected = _as_decimal(rejected_qty)
        remaining = snapshot.remaining_qty

        # NaN does not compare, so it has to be caught before any ordering check.
        if not (accepted.is_finite() and rejected.is_finite()):
            return ProductionEntryValidation(
                is_valid=False,
                errors=["Accepted and rejected quantities must be finite numbers"],
                error_kind=ErrorKind.INVALID_QUANTITY,
                remaining_qty=remaining,
            )

        errors: list[str] = []
        error_kind: ErrorKind | None = None
        if accepted < 0:
            errors.append("Accepted quantity cannot be negative")
            error_kind = ErrorKind.INVALID_QUANTITY
        if rejected < 0:
            errors.append("Rejected quantity cannot be negative")
            error_kind = ErrorKind.INVALID_QUANTITY
        if accepted == 0 and rejected == 0:
            errors.append("Accepted or rejected quantity must be greater than zero")
            error_kind = ErrorKind.INVALID_QUANTITY

        total = accepted + rejected
        if total > remaining:
            errors.append(f"Total quantity ({total}) exceeds remaining quantity ({remaining})")
            error_kind = ErrorKind.QUANTITY_EXCEEDED

        if errors:
            return ProductionEntryValidation(
                is_valid=False,
                errors=errors,
                error_kind=error_kind,
                remaining_qty=remaining,
            )

        requires_confirmation = accepted > remaining * self.confirmation_ratio
        if self.confirmation_min_qty is not None and accepted >= self.confirmation_min_qty:
            requires_confirmation = True

        return ProductionEntryValidation(
            is_valid=True,
            remaining_qty=remaining,
            new_remaining_qty=remaining - total,
            requires_confirmation=requires_confirmation,
            confirmation_message=(
                f"You are about to report {accepted} accepted units against a remaining "
                f"quantity of {remaining}. Are you sure?"
                if requires_confirmation
                else None
            ),
        )


class BatchSequencer:
    """Issue gap-free, duplicate-free batch numbers per calendar day."""

    def __init__(
        self,
        *,
        prefix: str | None = None,
        width: int | None = None,
        timezone: str | None = None,
        clock: Clock = utcnow,
        seed: Callable[[str], int] | None = None,
    ) -> None:
        """Initialize the sequencer.

        Args:
            prefix: Fixed batch prefix (default ``settings.batch_prefix``).
            width: Zero-padded width of the sequence part.
            timezone: Plant time zone used to pick the date of "today".
            clock: Source of the current moment.
            seed: Returns the highest sequence already used for a date key
                outside this process; consulted once per date key.
        """
        self.prefix = prefix if prefix is not None else settings.batch_prefix
        self.width = width if width is not None else settings.batch_sequence_width
        self.limit = 10**self.width - 1
        self._zone = ZoneInfo(timezone or settings.plant_timezone)
        self._clock = clock
        self._seed = seed
        self._counters: dict[str, int] = {}
        self._locks = KeyedLockTable()

    def date_key_for(self, moment: date | datetime) -> str:
        """Return the ``YYYYMMDD`` key of ``moment`` in the plant time zone."""
        if isinstance(moment, datetime):
            moment = moment.astimezone(self._zone).date()
        return moment.strftime("%Y%m%d")

    def last_issued(self, date_key: str) -> int:
        """Return the last sequence issued for ``date_key`` (0 if none)."""
        return self._counters.get(date_key, 0)

    @contextmanager
    def reserve(self, date_key: str | date | None = None) -> Iterator[BatchNumber]:
        """Hold the next sequence for ``date_key`` while the block runs.

        The sequence is committed only when the block exits normally; if it
        raises, the number is handed out again to the next caller. Other
        reservations for the same day wait until the block finishes.

        Raises:
            SequenceExhaustedError: if the day's sequence space is used up.
        """
        key = self._normalize(date_key)
        with self._locks.hold(key):
            current = self._counters.get(key)
            if current is None:
                current = self._seed(key) if self._seed is not None else 0
                self._counters[key] = current
            sequence = current + 1
            if sequence > self.limit:
                logger.warning("Batch sequence exhausted for %s", key)
                raise SequenceExhaustedError(
                    f"Batch sequence for {key} exhausted after {self.limit} batches"
                )
            batch = BatchNumber(
                value=f"{self.prefix}{key}{sequence:0{self.width}d}",
                date_key=key,
                sequence=sequence,
            )
            yield batch
            self._counters[key] = sequence
        logger.info("Issued batch number %s", batch.value)

    def issue(self, date_key: str | date | None = None) -> BatchNumber:
        """Atomically take the next sequence for ``date_key`` (default: today).

        Raises:
            SequenceExhaustedError: if the day's sequence space is used up.
        """
        with self.reserve(date_key) as batch:
            return batch

    def _normalize(self, date_key: str | date | None) -> str:
        if date_key is None:
            return self.date_key_for(self._clock())
        if isinstance(date_key, date):
            return self.date_key_for(date_key)
        if not _DATE_KEY.match(date_key):
            raise ValueError(f"Invalid batch date key: {date_key!r}")
        return date_key


class ReceiptPoster(Protocol):
    """Supplied writer of goods receipts; returns the created document reference."""

    def post_receipt(self, line: ReceiptLine) -> str | None: ...


class ProductionEntryService:
    """Validate and commit production entries."""

    def __init__(
        self,
        sequencer: BatchSequencer,
        *,
        validator: ProductionEntryValidator | None = None,
        poster: ReceiptPoster | None = None,
        accepted_warehouse: str | None = None,
        reject_warehouse: str | None = None,
    ) -> None:
        self.sequencer = sequencer
        self.validator = validator or ProductionEntryValidator()
        self.poster = poster
        self.accepted_warehouse = accepted_warehouse or settings.accepted_warehouse
        self.reject_warehouse = reject_warehouse or settings.reject_warehouse

    def validate(
        self,
        snapshot: WorkOrderQuantitySnapshot,
        accepted_qty: Quantity,
        rejected_qty: Quantity,
    ) -> ProductionEntryValidation:
        return self.validator.validate(snapshot, accepted_qty, rejected_qty)

    def report(
        self,
        snapshot: WorkOrderQuantitySnapshot,
        accepted_qty: Quantity,
        rejected_qty: Quantity,
        *,
        confirmed: bool = False,
        date_key: str | date | None = None,
    ) -> ProductionEntryResult:
        """Commit an entry: one batch number shared by the accepted and rejected receipts.

        Raises:
            QuantityExceededError: if the entry exceeds the remaining quantity.
            InvalidQuantityError: for negative or all-zero quantities.
            ConfirmationRequiredError: if confirmation is needed and ``confirmed`` is false.
            ReceiptPostingError: if the reject receipt fails after the accepted one
                was posted; the batch number stays issued.

        Any other posting failure propagates unchanged and leaves the batch
        number free for the next entry.
        """
        validation = self.validator.validate(snapshot, accepted_qty, rejected_qty)
        if not validation.is_valid:
            message = ". ".join(validation.errors)
            if validation.error_kind is ErrorKind.QUANTITY_EXCEEDED:
                raise QuantityExceededError(message, remaining_qty=validation.remaining_qty)
            raise InvalidQuantityError(message)
        if validation.requires_confirmation and not confirmed:
            raise ConfirmationRequiredError(validation.confirmation_message or "Confirmation required")

        accepted = _as_decimal(accepted_qty)
        rejected = _as_decimal(rejected_qty)
        accepted_receipt = None
        rejected_receipt = None
        accepted_posted = False
        posting_error: Exception | None = None
        # A failure before any receipt exists gives the batch number back.
        with self.sequencer.reserve(date_key) as batch:
            if self.poster is not None and accepted > 0:
                accepted_receipt = self.poster.post_receipt(
                    ReceiptLine(
                        work_order_id=snapshot.work_order_id,
                        quantity=accepted,
                        warehouse_code=self.accepted_warehouse,
                        batch_number=batch.value,
                        transaction_type="C",
                    )
                )
                accepted_posted = True
            if self.poster is not None and rejected > 0:
                try:
                    rejected_receipt = self.poster.post_receipt(
                        ReceiptLine(
                            work_order_id=snapshot.work_order_id,
                            quantity=rejected,
                            warehouse_code=self.reject_warehouse,
                            batch_number=batch.value,
                            transaction_type="R",
                        )
                    )
                except Exception as exc:
                    if not accepted_posted:
                        raise
                    # The accepted receipt already carries this batch, so keep it issued.
                    posting_error = exc

        if posting_error is not None:
            logger.error(
                "Reject receipt failed for batch %s after accepted receipt %s was posted",
                batch.value,
                accepted_receipt,
            )
            raise ReceiptPostingError(
                f"Reject receipt for batch {batch.value} failed: {posting_error}",
                batch_number=batch.value,
                accepted_receipt=accepted_receipt,
            ) from posting_error

        updated = snapshot.model_copy(
            update={
                "completed_qty": snapshot.completed_qty + accepted,
                "rejected_qty": snapshot.rejected_qty + rejected,
            }
        )
        logger.info(
            "Production entry on work order %s: accepted=%s rejected=%s batch=%s",
            snapshot.work_order_id,
            accepted,
            rejected,
            batch.value,
        )
        return ProductionEntryResult(
            batch_number=batch,
            accepted_receipt=accepted_receipt,
            rejected_receipt=rejected_receipt,
            snapshot=updated,
        )
