"""Sanity gates for model spread/total predictions."""

from __future__ import annotations

import math
from dataclasses import dataclass

from trust_market.diagnostic_keys import MODEL_INVALID, TOTAL_PLAUSIBILITY
from trust_market.diagnostics import DiagnosticsCollector
from trust_market.models import ModelCheck, ModelPrediction
from trust_market.settings import EngineSettings

MISSING_INPUTS = "missing_inputs"
UNIT_MISMATCH = "unit_mismatch"
COMPUTATION_FAILURE = "computation_failure"

INCONSISTENT_SCORES_REASON = "computation failed: inconsistent implied scores."


@dataclass(frozen=True)
class ValidatedModel:
    spread: ModelCheck
    total: ModelCheck
    implied_home_points: float | None = None
    implied_away_points: float | None = None
    plausibility_warning: str | None = None


def _invalid(kind: str, reason: str) -> ModelCheck:
    return ModelCheck(value=None, valid=False, reason=reason, failure_kind=kind)


def check_spread(spread: float | None, settings: EngineSettings) -> ModelCheck:
    if spread is None:
        return _invalid(MISSING_INPUTS, "missing inputs: model spread unavailable")
    if not math.isfinite(spread):
        return _invalid(COMPUTATION_FAILURE, "computation failed: model spread is not finite")
    if abs(spread) > settings.spread_abs_max:
        return _invalid(
            UNIT_MISMATCH,
            f"unit mismatch: model spread {spread:g} exceeds "
            f"±{settings.spread_abs_max:g} points",
        )
    return ModelCheck(value=float(spread), valid=True)


def check_total(total: float | None, settings: EngineSettings) -> ModelCheck:
    if total is None:
        return _invalid(MISSING_INPUTS, "missing inputs: model total unavailable")
    if not math.isfinite(total):
        return _invalid(COMPUTATION_FAILURE, "computation failed: model total is not finite")
    if not settings.total_units_min < total < settings.total_units_max:
        return _invalid(
            UNIT_MISMATCH,
            f"unit mismatch (likely a rate, not points): model total {total:g} outside "
            f"({settings.total_units_min:g}, {settings.total_units_max:g})",
        )
    return ModelCheck(value=float(total), valid=True)


def implied_scores(spread: float, total: float) -> tuple[float, float]:
    """Implied (home, away) points; `spread` is home minus away (positive = home favored)."""
    return (total + spread) / 2.0, (total - spread) / 2.0


def validate_model(
    prediction: ModelPrediction,
    settings: EngineSettings,
    diagnostics: DiagnosticsCollector,
) -> ValidatedModel:
    """Validate a raw model prediction and record every rejection reason."""
    spread = check_spread(prediction.spread, settings)
    total = check_total(prediction.total, settings)
    home_points: float | None = None
    away_points: float | None = None
    warning: str | None = None

    if spread.valid and total.valid and spread.value is not None and total.value is not None:
        home_points, away_points = implied_scores(spread.value, total.value)
        drift = abs(home_points + away_points - total.value)
        if not math.isfinite(drift) or drift > settings.implied_score_tolerance:
            total = _invalid(COMPUTATION_FAILURE, INCONSISTENT_SCORES_REASON)
            home_points = away_points = None

    if total.valid and total.value is not None:
        if not settings.total_plausible_min <= total.value <= settings.total_plausible_max:
            warning = (
                f"model total {total.value:g} outside plausible band "
                f"[{settings.total_plausible_min:g}, {settings.total_plausible_max:g}]"
            )
            diagnostics.event(TOTAL_PLAUSIBILITY, warning, model_total=total.value)

    for market, check in (("spread", spread), ("total", total)):
        if check.valid:
            continue
        diagnostics.event(
            MODEL_INVALID,
            check.reason or "",
            market=market,
            failure_kind=check.failure_kind,
        )
    diagnostics.model_spread_reason = spread.reason
    diagnostics.model_total_reason = total.reason
    if total.failure_kind == UNIT_MISMATCH:
        diagnostics.model_total_unit_failure = total.reason

    return ValidatedModel(
        spread=spread,
        total=total,
        implied_home_points=home_points,
        implied_away_points=away_points,
        plausibility_warning=warning,
    )
