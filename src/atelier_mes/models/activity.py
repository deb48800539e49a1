# src/atelier_mes/models/activity.py
"""SQLAlchemy model for the append-only activity log."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from atelier_mes.db.session import Base


class ActivityRecord(Base):
    """One worker action on a work order.

    Rows are written once and never updated; current worker state is always
    derived from the latest row for a (work order, worker) pair.
    """

    __tablename__ = "activity_event"

    # Insertion order; breaks ties between rows sharing the same timestamp.
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    work_order_id: Mapped[int] = mapped_column(Integer, nullable=False)
    machine_code: Mapped[str] = mapped_column(String(64), nullable=False)
    worker_id: Mapped[int] = mapped_column(Integer, nullable=False)
    # Process code: BAS / DUR / DEV / BIT.
    process_type: Mapped[str] = mapped_column(String(8), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    break_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


Index(
    "ix_activity_event_order_worker",
    ActivityRecord.work_order_id,
    ActivityRecord.worker_id,
    ActivityRecord.occurred_at,
)
Index(
    "ix_activity_event_machine_time",
    ActivityRecord.machine_code,
    ActivityRecord.occurred_at,
)
