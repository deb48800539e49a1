"""Break reason catalog used when workers stop work."""

from __future__ import annotations

from collections.abc import Iterable

from atelier_mes.schemas.team import BreakReason

__all__ = ["BreakReasonCatalog"]


class BreakReasonCatalog:
    """Read-only set of break reasons keyed by code.

    Stop events store the reason code, never its display name.
    """

    def __init__(self, reasons: Iterable[BreakReason]) -> None:
        self._reasons: dict[str, BreakReason] = {}
        for reason in reasons:
            self._reasons[reason.code] = reason

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code in self._reasons

    def __len__(self) -> int:
        return len(self._reasons)

    def all(self) -> list[BreakReason]:
        """Return every reason in insertion order."""
        return list(self._reasons.values())

    def find(self, code: str) -> BreakReason | None:
        return self._reasons.get(code.strip())

    def search(self, text: str) -> list[BreakReason]:
        """Return reasons whose name contains ``text``, ignoring case."""
        needle = text.strip().casefold()
        if not needle:
            return self.all()
        return [reason for reason in self._reasons.values() if needle in reason.name.casefold()]
