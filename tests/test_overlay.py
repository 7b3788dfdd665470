from __future__ import annotations

import pytest

from trust_market.models import Overlay
from trust_market.overlay import compute_overlay, extreme_favorite_guard


def _spread_overlay(market: float, model: float | None, **kwargs: object) -> Overlay:
    values: dict[str, object] = {
        "market": "spread",
        "market_value": market,
        "model_value": model,
        "lambda_": 0.25,
        "cap": 3.0,
        "edge_floor": 2.0,
        "large_disagreement_threshold": 10.0,
    }
    values.update(kwargs)
    return compute_overlay(**values)  # type: ignore[arg-type]


def test_small_disagreement_stays_inside_floor() -> None:
    overlay = _spread_overlay(-7.0, -10.0)

    assert overlay.raw_disagreement == pytest.approx(3.0)
    assert overlay.overlay_raw == pytest.approx(-0.75)
    assert overlay.value_used == pytest.approx(-0.75)
    assert overlay.final_value == pytest.approx(-7.75)
    assert overlay.actionable is False
    assert overlay.confidence_degraded is False
    assert overlay.available is True


def test_large_disagreement_is_clamped_and_degraded() -> None:
    overlay = _spread_overlay(-7.0, -20.0)

    assert overlay.overlay_raw == pytest.approx(-3.25)
    assert overlay.value_used == pytest.approx(-3.0)
    assert overlay.final_value == pytest.approx(-10.0)
    assert overlay.actionable is True
    assert overlay.confidence_degraded is True


@pytest.mark.parametrize("model", [-80.0, -30.0, -7.0, 0.0, 12.0, 45.0])
@pytest.mark.parametrize("lam", [0.0, 0.25, 1.0])
def test_value_used_never_exceeds_cap(model: float, lam: float) -> None:
    overlay = _spread_overlay(-7.0, model, lambda_=lam)

    assert abs(overlay.value_used) <= overlay.cap
    assert overlay.actionable == (abs(overlay.value_used) >= overlay.edge_floor)


def test_missing_model_yields_zero_overlay_with_reason() -> None:
    overlay = _spread_overlay(-7.0, None, unavailable_reason="unit mismatch: too big")

    assert overlay.value_used == 0.0
    assert overlay.actionable is False
    assert overlay.final_value == -7.0
    assert overlay.reason == "model unavailable: unit mismatch: too big"
    assert overlay.available is False


def test_missing_market_total_is_reported() -> None:
    overlay = compute_overlay(
        market="total",
        market_value=None,
        model_value=55.0,
        lambda_=0.25,
        cap=3.0,
        edge_floor=2.0,
        large_disagreement_threshold=10.0,
    )

    assert overlay.reason == "market total unavailable"
    assert overlay.final_value is None


@pytest.mark.parametrize(
    ("market", "model", "expected"),
    [
        (-24.0, -14.0, True),
        (-21.0, -10.0, True),
        (-24.0, -34.0, False),
        (-20.5, -10.0, False),
    ],
)
def test_extreme_favorite_guard(market: float, model: float, expected: bool) -> None:
    overlay = _spread_overlay(market, model)

    assert extreme_favorite_guard(overlay, 21.0) is expected
