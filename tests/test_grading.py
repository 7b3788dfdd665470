from __future__ import annotations

from datetime import UTC, datetime

import pytest

from trust_market.grading import (
    bet_range,
    build_spread_recommendation,
    build_total_recommendation,
    grade_for_magnitude,
)
from trust_market.models import MarketSnapshot, Overlay, Provenance, TeamRef
from trust_market.overlay import compute_overlay
from trust_market.settings import EngineSettings, GradeThresholds

SETTINGS = EngineSettings(_env_file=None)
FAVORITE = TeamRef(team_id="georgia", name="Georgia")
UNDERDOG = TeamRef(team_id="auburn", name="Auburn")
GRADES = {None: 0, "C": 1, "B": 2, "A": 3}


def _snapshot(favorite_line: float = -7.0, total: float | None = 49.5) -> MarketSnapshot:
    return MarketSnapshot(
        favorite=FAVORITE,
        underdog=UNDERDOG,
        favorite_line=favorite_line,
        underdog_line=-favorite_line,
        total=total,
        moneyline_favorite=None,
        moneyline_underdog=None,
        provenance=Provenance(
            provider="cfbd", book="Caesars", timestamp=datetime(2025, 10, 4, tzinfo=UTC)
        ),
        snapshot_id="snap-test",
        favorite_source="single_tagged",
        favorite_is_home=True,
    )


def _overlay(market: str, market_value: float | None, model: float | None) -> Overlay:
    return compute_overlay(
        market=market,
        market_value=market_value,
        model_value=model,
        lambda_=SETTINGS.lambda_spread,
        cap=SETTINGS.cap_spread,
        edge_floor=SETTINGS.edge_floor,
        large_disagreement_threshold=SETTINGS.large_disagreement_threshold,
    )


@pytest.mark.parametrize(
    ("magnitude", "degraded", "expected"),
    [
        (4.0, False, "A"),
        (-3.2, False, "B"),
        (2.0, False, "C"),
        (1.99, False, None),
        (4.5, True, "B"),
        (3.0, True, "C"),
        (2.5, True, None),
    ],
)
def test_grade_for_magnitude(magnitude: float, degraded: bool, expected: str | None) -> None:
    assert grade_for_magnitude(magnitude, GradeThresholds(), degraded=degraded) == expected


def test_grade_is_monotonic_in_magnitude() -> None:
    steps = [index / 10 for index in range(0, 60)]
    ranks = [GRADES[grade_for_magnitude(step, GradeThresholds())] for step in steps]

    assert ranks == sorted(ranks)


@pytest.mark.parametrize(
    ("value", "actionable", "expected"),
    [
        (-3.0, True, (-9.0, -5.0)),
        (2.5, True, (-5.0, -9.0)),
        (-1.0, False, (None, None)),
    ],
)
def test_bet_range(
    value: float, actionable: bool, expected: tuple[float | None, float | None]
) -> None:
    assert bet_range(-7.0, value, 2.0, actionable=actionable) == expected


def test_spread_recommendation_on_favorite() -> None:
    rec = build_spread_recommendation(_snapshot(), _overlay("spread", -7.0, -17.0), SETTINGS)

    assert rec.side == FAVORITE.team_id
    assert rec.side_label == "Georgia"
    assert rec.line == -7.0
    assert rec.headline_value == -7.0
    assert rec.grade == "C"
    assert rec.bet_to == pytest.approx(-9.0)
    assert rec.flip == pytest.approx(-5.0)
    assert rec.suppressed is False


def test_spread_recommendation_on_underdog_uses_underdog_line() -> None:
    rec = build_spread_recommendation(_snapshot(), _overlay("spread", -7.0, 3.0), SETTINGS)

    assert rec.side == UNDERDOG.team_id
    assert rec.line == 7.0
    assert rec.grade == "C"
    assert rec.bet_to == pytest.approx(-5.0)


def test_spread_recommendation_without_model_keeps_market_headline() -> None:
    rec = build_spread_recommendation(_snapshot(), _overlay("spread", -7.0, None), SETTINGS)

    assert rec.side is None
    assert rec.headline_value == -7.0
    assert rec.reasoning.startswith("model unavailable")


def test_total_recommendation_over_and_under() -> None:
    over = build_total_recommendation(_snapshot(), _overlay("total", 49.5, 60.0), SETTINGS)
    under = build_total_recommendation(_snapshot(), _overlay("total", 49.5, 40.0), SETTINGS)

    assert over.side == "over"
    assert over.headline_value == 49.5
    assert over.bet_to == pytest.approx(51.5)
    assert under.side == "under"
    assert under.bet_to == pytest.approx(47.5)
    assert under.flip == pytest.approx(51.5)


def test_total_recommendation_without_market_total() -> None:
    rec = build_total_recommendation(
        _snapshot(total=None), _overlay("total", None, 50.0), SETTINGS
    )

    assert rec.side is None
    assert rec.headline_value is None
    assert rec.reasoning == "market total unavailable"


def test_degraded_c_is_an_ungraded_lean() -> None:
    spread = build_spread_recommendation(_snapshot(), _overlay("spread", -7.0, -18.0), SETTINGS)
    total = build_total_recommendation(_snapshot(), _overlay("total", 49.5, 38.5), SETTINGS)

    assert spread.side == FAVORITE.team_id
    assert spread.grade is None
    assert "Ungraded lean" in spread.reasoning
    assert total.side == "under"
    assert total.grade is None
    assert "Ungraded lean" in total.reasoning


def test_graded_pick_has_no_ungraded_note() -> None:
    rec = build_spread_recommendation(_snapshot(), _overlay("spread", -7.0, -20.0), SETTINGS)

    assert rec.grade == "C"
    assert "Ungraded lean" not in rec.reasoning
