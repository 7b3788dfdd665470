"""Shared odds conversion and win-probability helpers."""

from __future__ import annotations

import math


def implied_prob_from_american(price: int | None) -> float | None:
    """Convert American odds to implied probability."""
    if price is None:
        return None
    if price > 0:
        return 100.0 / (price + 100.0)
    if price < 0:
        value = -price
        return value / (value + 100.0)
    return None


def decimal_to_american(decimal_odds: float | None) -> int | None:
    """Convert decimal odds to American odds."""
    if decimal_odds is None or decimal_odds <= 1.0:
        return None
    if decimal_odds >= 2.0:
        return int(round((decimal_odds - 1.0) * 100.0))
    return int(round(-100.0 / (decimal_odds - 1.0)))


def fair_american_from_prob(probability: float | None) -> int | None:
    """No-vig American price for a win probability."""
    if probability is None or probability <= 0 or probability >= 1:
        return None
    return decimal_to_american(1.0 / probability)


def normal_cdf(x: float) -> float:
    return 0.5 * (1.0 + math.erf(x / math.sqrt(2.0)))


def favorite_win_prob(final_spread: float, sigma: float) -> float:
    """Win probability for the side laying `final_spread` (negative = favored)."""
    return normal_cdf(-final_spread / max(1e-9, sigma))
