"""Moneyline pairing and value comparison against the model win curve."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from trust_market.diagnostic_keys import MONEYLINE_OUTSIDE_WINDOW, MONEYLINE_SIDE_CONFLICT
from trust_market.diagnostics import DiagnosticsCollector
from trust_market.grading import grade_for_magnitude
from trust_market.models import (
    MONEYLINE,
    Contest,
    MarketSnapshot,
    MoneylineRecommendation,
    Quote,
    TeamRef,
)
from trust_market.odds_math import (
    fair_american_from_prob,
    favorite_win_prob,
    implied_prob_from_american,
)
from trust_market.settings import EngineSettings
from trust_market.time_utils import iso_z, seconds_between


def _nearest(
    quotes: Sequence[Quote], anchor: datetime, window_seconds: float
) -> tuple[Quote | None, float | None]:
    if not quotes:
        return None, None

    def key(quote: Quote) -> tuple[bool, float, bool, float, float]:
        distance = seconds_between(quote.timestamp, anchor)
        return (
            distance > window_seconds,
            distance,
            quote.closing_value is None,
            -quote.timestamp.timestamp(),
            quote.effective_value,
        )

    best = min(quotes, key=key)
    return best, seconds_between(best.timestamp, anchor)


def _price(quote: Quote | None) -> int | None:
    return int(round(quote.effective_value)) if quote is not None else None


def pair_moneyline_quotes(
    quotes: Sequence[Quote],
    *,
    anchor: datetime,
    window_seconds: float,
    contest: Contest,
    favorite: TeamRef,
    diagnostics: DiagnosticsCollector,
) -> tuple[int | None, int | None]:
    """Return `(favorite_price, underdog_price)` nearest in time to `anchor`.

    Prices are assigned by sign: the negative price belongs to the spread
    favorite whatever its side tag says.
    """
    moneylines = [quote for quote in quotes if quote.line_type == MONEYLINE]
    negative, neg_distance = _nearest(
        [quote for quote in moneylines if quote.effective_value < 0], anchor, window_seconds
    )
    positive, pos_distance = _nearest(
        [quote for quote in moneylines if quote.effective_value > 0], anchor, window_seconds
    )

    for quote, distance, role in (
        (negative, neg_distance, "favorite"),
        (positive, pos_distance, "underdog"),
    ):
        if quote is None or distance is None:
            continue
        if distance > window_seconds:
            diagnostics.event(
                MONEYLINE_OUTSIDE_WINDOW,
                f"{role} moneyline {quote.effective_value:+g} observed {distance:g}s from "
                f"the spread quote (window {window_seconds:g}s)",
                role=role,
                quote_timestamp=iso_z(quote.timestamp),
                spread_timestamp=iso_z(anchor),
            )
        tagged = contest.team(quote.side) if quote.is_tagged else None
        if tagged is None:
            continue
        if (role == "favorite") != (tagged == favorite):
            diagnostics.event(
                MONEYLINE_SIDE_CONFLICT,
                f"{role} moneyline {quote.effective_value:+g} is tagged {tagged.team_id}; "
                f"spread favorite is {favorite.team_id}",
                role=role,
                tagged_team_id=tagged.team_id,
                favorite_team_id=favorite.team_id,
            )
    return _price(negative), _price(positive)


def _fmt_prob(value: float) -> str:
    return f"{value * 100:.1f}%"


def resolve_moneyline(
    *,
    snapshot: MarketSnapshot,
    final_spread: float | None,
    settings: EngineSettings,
    unavailable_reason: str | None = None,
) -> MoneylineRecommendation:
    """Compare market and model win probabilities and pick a moneyline side.

    `final_spread` is the overlay-adjusted favorite-centric line, or None when
    the model spread is unusable.
    """
    fav_price = snapshot.moneyline_favorite
    dog_price = snapshot.moneyline_underdog
    market_fav = implied_prob_from_american(fav_price)
    market_dog = implied_prob_from_american(dog_price)

    base = {
        "final_spread": final_spread,
        "market_prob_favorite": market_fav,
        "market_prob_underdog": market_dog,
    }

    if final_spread is None:
        reason = unavailable_reason or "model spread unavailable"
        return MoneylineRecommendation(
            side=None,
            side_label=None,
            price=None,
            is_underdog=None,
            value=None,
            grade=None,
            model_prob_favorite=None,
            model_prob_underdog=None,
            fair_ml_favorite=None,
            fair_ml_underdog=None,
            informational_only=fav_price is None and dog_price is None,
            reasoning=f"model unavailable: {reason}",
            **base,
        )

    model_fav = favorite_win_prob(final_spread, settings.moneyline_sigma)
    model_dog = 1.0 - model_fav
    fair = {
        "model_prob_favorite": model_fav,
        "model_prob_underdog": model_dog,
        "fair_ml_favorite": fair_american_from_prob(model_fav),
        "fair_ml_underdog": fair_american_from_prob(model_dog),
    }
    curve = (
        f"final spread {final_spread:+g} gives {snapshot.favorite.name} "
        f"{_fmt_prob(model_fav)} (sigma {settings.moneyline_sigma:g})"
    )

    if fav_price is None and dog_price is None:
        return MoneylineRecommendation(
            side=None,
            side_label=None,
            price=None,
            is_underdog=None,
            value=None,
            grade=None,
            informational_only=True,
            reasoning=f"No moneyline quotes; {curve}. Fair prices are informational only.",
            **base,
            **fair,
        )

    limit = settings.moneyline_max_abs_final_spread
    if limit is not None and abs(final_spread) > limit:
        reason = f"final spread {final_spread:+g} is wider than {limit:g}; moneyline skipped"
        return MoneylineRecommendation(
            side=None,
            side_label=None,
            price=None,
            is_underdog=None,
            value=None,
            grade=None,
            informational_only=False,
            reasoning=f"{curve}; {reason}.",
            suppressed=True,
            suppression_reason=reason,
            **base,
            **fair,
        )

    sides = []
    if fav_price is not None and market_fav is not None:
        sides.append((snapshot.favorite, fav_price, model_fav - market_fav))
    if dog_price is not None and market_dog is not None:
        sides.append((snapshot.underdog, dog_price, model_dog - market_dog))

    eligible = []
    blocked: list[str] = []
    for team, price, value in sides:
        if value <= settings.moneyline_min_value:
            continue
        required = (
            settings.longshot_min_value(price) if price > 0 else settings.moneyline_min_value
        )
        if required is None:
            blocked.append(f"{team.name} {price:+d} is beyond +{settings.moneyline_max_price}")
        elif value <= required:
            blocked.append(
                f"{team.name} {price:+d} needs more than {_fmt_prob(required)} value "
                f"(has {_fmt_prob(value)})"
            )
        else:
            eligible.append((team, price, value))

    if not eligible:
        suppressed = bool(blocked)
        reason = "; ".join(blocked) if blocked else None
        detail = f"; {reason}" if reason else "; no side shows positive value"
        return MoneylineRecommendation(
            side=None,
            side_label=None,
            price=None,
            is_underdog=None,
            value=None,
            grade=None,
            informational_only=False,
            reasoning=f"{curve}{detail}.",
            suppressed=suppressed,
            suppression_reason=reason,
            **base,
            **fair,
        )

    team, price, value = max(eligible, key=lambda item: item[2])
    grade = grade_for_magnitude(value, settings.moneyline_grade_thresholds)
    return MoneylineRecommendation(
        side=team.team_id,
        side_label=team.name,
        price=price,
        is_underdog=price > 0,
        value=value,
        grade=grade,
        informational_only=False,
        reasoning=(
            f"{curve}; {team.name} {price:+d} carries {_fmt_prob(value)} value over the "
            "market-implied probability."
        ),
        **base,
        **fair,
    )
