"""Production entry schemas."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from atelier_mes.core.errors import ErrorKind


class WorkOrderQuantitySnapshot(BaseModel):
    """Quantities of a work order at the time an entry is checked."""

    work_order_id: int = Field(..., gt=0)
    planned_qty: Decimal = Field(..., ge=0)
    completed_qty: Decimal = Field(default=Decimal("0"), ge=0)
    rejected_qty: Decimal = Field(default=Decimal("0"), ge=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _within_plan(self) -> WorkOrderQuantitySnapshot:
        if self.completed_qty + self.rejected_qty > self.planned_qty:
            raise ValueError("completed and rejected quantities exceed the planned quantity")
        return self

    @property
    def remaining_qty(self) -> Decimal:
        return self.planned_qty - self.completed_qty - self.rejected_qty


class ProductionEntryValidation(BaseModel):
    """Result of checking a production entry against a snapshot."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    error_kind: ErrorKind | None = None
    remaining_qty: Decimal
    new_remaining_qty: Decimal | None = None
    requires_confirmation: bool = False
    confirmation_message: str | None = None


class BatchNumber(BaseModel):
    """Batch identifier issued for one production entry."""

    value: str
    date_key: str = Field(..., pattern=r"^\d{8}$")
    sequence: int = Field(..., gt=0)

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return self.value


class ReceiptLine(BaseModel):
    """Goods receipt line handed to the receipt poster."""

    work_order_id: int
    quantity: Decimal = Field(..., gt=0)
    warehouse_code: str
    batch_number: str
    # C = complete (accepted goods), R = reject
    transaction_type: Literal["C", "R"]


class ProductionEntryResult(BaseModel):
    """Outcome of a committed production entry."""

    success: bool = True
    batch_number: BatchNumber
    accepted_receipt: str | None = None
    rejected_receipt: str | None = None
    snapshot: WorkOrderQuantitySnapshot

    @property
    def progress_percent(self) -> int:
        planned = self.snapshot.planned_qty
        if planned <= 0:
            return 0
        ratio = self.snapshot.completed_qty / planned * 100
        return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
