"""Diagnostics accumulator passed through one evaluation."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from trust_market.diagnostic_keys import (
    INVARIANT_VIOLATION,
    LOW_CONFIDENCE_FAVORITE,
    PROVENANCE_MISMATCH,
)
from trust_market.models import (
    DiagnosticEvent,
    Diagnostics,
    MismatchRecord,
    Violation,
)


def _context(values: dict[str, Any]) -> tuple[tuple[str, Any], ...]:
    return tuple(sorted(values.items()))


class DiagnosticsCollector:
    """Mutable per-evaluation sink; frozen into `Diagnostics` at the end."""

    def __init__(self) -> None:
        self.events: list[DiagnosticEvent] = []
        self.provenance_mismatches: list[str] = []
        self.mismatches: list[MismatchRecord] = []
        self.violations: list[Violation] = []
        self.snapshot_id: str | None = None
        self.favorite_source: str | None = None
        self.model_spread_reason: str | None = None
        self.model_total_reason: str | None = None
        self.model_total_unit_failure: str | None = None

    def event(self, code: str, message: str, **context: Any) -> None:
        self.events.append(DiagnosticEvent(code=code, message=message, context=_context(context)))

    def provenance_mismatch(self, message: str, **context: Any) -> None:
        self.provenance_mismatches.append(message)
        self.event(PROVENANCE_MISMATCH, message, **context)

    def mismatch(self, record: MismatchRecord) -> None:
        self.mismatches.append(record)

    def violation(self, check: str, message: str, **context: Any) -> Violation:
        item = Violation(check=check, message=message, context=_context(context))
        self.violations.append(item)
        return item

    def has(self, code: str) -> bool:
        return any(event.code == code for event in self.events)

    def freeze(self) -> Diagnostics:
        return Diagnostics(
            snapshot_id=self.snapshot_id,
            violations=tuple(self.violations),
            provenance_mismatches=tuple(self.provenance_mismatches),
            mismatches=tuple(self.mismatches),
            events=tuple(self.events),
            favorite_source=self.favorite_source,
            low_confidence_favorite=self.has(LOW_CONFIDENCE_FAVORITE),
            model_spread_reason=self.model_spread_reason,
            model_total_reason=self.model_total_reason,
            model_total_unit_failure=self.model_total_unit_failure,
        )


def with_violations(diagnostics: Diagnostics, violations: tuple[Violation, ...]) -> Diagnostics:
    """Attach audit failures, each mirrored as an `invariant_violation` event."""
    events = tuple(
        DiagnosticEvent(code=INVARIANT_VIOLATION, message=item.message, context=item.context)
        for item in violations
    )
    return replace(
        diagnostics,
        violations=diagnostics.violations + violations,
        events=diagnostics.events + events,
    )
