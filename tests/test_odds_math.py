from __future__ import annotations

import pytest

from trust_market.odds_math import (
    decimal_to_american,
    fair_american_from_prob,
    favorite_win_prob,
    implied_prob_from_american,
    normal_cdf,
)


@pytest.mark.parametrize(
    ("price", "expected"),
    [
        (+100, 0.5),
        (+150, 0.4),
        (-150, 0.6),
        (None, None),
        (0, None),
    ],
)
def test_implied_prob_from_american(price: int | None, expected: float | None) -> None:
    assert implied_prob_from_american(price) == expected


@pytest.mark.parametrize(
    ("decimal_odds", "expected"),
    [
        (2.5, 150),
        (1.5, -200),
        (None, None),
        (1.0, None),
    ],
)
def test_decimal_to_american(decimal_odds: float | None, expected: int | None) -> None:
    assert decimal_to_american(decimal_odds) == expected


@pytest.mark.parametrize(
    ("probability", "expected"),
    [
        (0.5, 100),
        (0.75, -300),
        (0.2, 400),
        (0.0, None),
        (1.0, None),
        (None, None),
    ],
)
def test_fair_american_from_prob(probability: float | None, expected: int | None) -> None:
    assert fair_american_from_prob(probability) == expected


def test_normal_cdf_reference_points() -> None:
    assert normal_cdf(0.0) == pytest.approx(0.5)
    assert normal_cdf(1.0) == pytest.approx(0.841344746, abs=1e-9)
    assert normal_cdf(-1.0) == pytest.approx(1.0 - normal_cdf(1.0))


def test_favorite_win_prob_follows_spread_sign() -> None:
    assert favorite_win_prob(0.0, 14.0) == pytest.approx(0.5)
    assert favorite_win_prob(-14.0, 14.0) == pytest.approx(normal_cdf(1.0))
    assert favorite_win_prob(-7.0, 14.0) > 0.5 > favorite_win_prob(3.0, 14.0)
