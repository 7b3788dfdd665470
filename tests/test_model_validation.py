from __future__ import annotations

import pytest

from trust_market.diagnostic_keys import MODEL_INVALID, TOTAL_PLAUSIBILITY
from trust_market.diagnostics import DiagnosticsCollector
from trust_market.model_validation import (
    COMPUTATION_FAILURE,
    INCONSISTENT_SCORES_REASON,
    MISSING_INPUTS,
    UNIT_MISMATCH,
    check_spread,
    check_total,
    implied_scores,
    validate_model,
)
from trust_market.models import ModelPrediction
from trust_market.settings import EngineSettings

SETTINGS = EngineSettings(_env_file=None)


@pytest.mark.parametrize(
    ("spread", "valid", "kind"),
    [
        (-10.0, True, None),
        (50.0, True, None),
        (-50.5, False, UNIT_MISMATCH),
        (None, False, MISSING_INPUTS),
        (float("nan"), False, COMPUTATION_FAILURE),
        (float("inf"), False, COMPUTATION_FAILURE),
    ],
)
def test_check_spread(spread: float | None, valid: bool, kind: str | None) -> None:
    check = check_spread(spread, SETTINGS)

    assert check.valid is valid
    assert check.failure_kind == kind


@pytest.mark.parametrize(
    ("total", "valid", "kind"),
    [
        (55.0, True, None),
        (15.0, False, UNIT_MISMATCH),
        (120.0, False, UNIT_MISMATCH),
        (1.3, False, UNIT_MISMATCH),
        (None, False, MISSING_INPUTS),
        (float("nan"), False, COMPUTATION_FAILURE),
    ],
)
def test_check_total(total: float | None, valid: bool, kind: str | None) -> None:
    check = check_total(total, SETTINGS)

    assert check.valid is valid
    assert check.failure_kind == kind


def test_rate_total_reason_names_the_unit_problem() -> None:
    check = check_total(1.3, SETTINGS)

    assert check.value is None
    assert "unit mismatch (likely a rate, not points)" in (check.reason or "")


def test_implied_scores_use_home_minus_away_spread() -> None:
    home, away = implied_scores(7.0, 51.0)

    assert home == pytest.approx(29.0)
    assert away == pytest.approx(22.0)


def test_validate_model_records_reasons_and_unit_failure() -> None:
    diagnostics = DiagnosticsCollector()

    validated = validate_model(ModelPrediction(spread=-7.0, total=1.3), SETTINGS, diagnostics)

    assert validated.spread.valid is True
    assert validated.total.valid is False
    assert validated.implied_home_points is None
    assert diagnostics.model_spread_reason is None
    assert diagnostics.model_total_unit_failure == validated.total.reason
    assert diagnostics.has(MODEL_INVALID)


def test_validate_model_computes_implied_points() -> None:
    diagnostics = DiagnosticsCollector()

    validated = validate_model(ModelPrediction(spread=-3.0, total=45.0), SETTINGS, diagnostics)

    assert validated.implied_home_points == pytest.approx(21.0)
    assert validated.implied_away_points == pytest.approx(24.0)
    assert diagnostics.events == []


def test_validate_model_flags_implausible_total_without_rejecting() -> None:
    diagnostics = DiagnosticsCollector()

    validated = validate_model(ModelPrediction(spread=-3.0, total=101.0), SETTINGS, diagnostics)

    assert validated.total.valid is True
    assert validated.plausibility_warning is not None
    assert diagnostics.has(TOTAL_PLAUSIBILITY)
    assert not diagnostics.has(MODEL_INVALID)


def test_inconsistent_implied_scores_invalidate_total() -> None:
    settings = EngineSettings(_env_file=None, implied_score_tolerance=-1.0)
    diagnostics = DiagnosticsCollector()

    validated = validate_model(ModelPrediction(spread=-3.0, total=50.0), settings, diagnostics)

    assert validated.total.valid is False
    assert validated.total.reason == INCONSISTENT_SCORES_REASON
    assert validated.total.failure_kind == COMPUTATION_FAILURE
