"""Favorite resolution independent of home/away position.

Signals, most to least authoritative:

1. ``both_tagged``: both teams carry side-tagged spread prices of opposite sign.
2. ``single_tagged``: only the canonical spread quote carries a tag; the other
   side is its negation.
3. ``power_rating``: no usable tags; power ratings plus home-field advantage
   decide who should be favored. ``model_spread`` is the same tier driven by the
   validated model line when ratings are missing. Both are low-confidence and
   are always reported as such.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from trust_market.diagnostic_keys import LOW_CONFIDENCE_FAVORITE, SIDE_TAG_CONFLICT
from trust_market.diagnostics import DiagnosticsCollector
from trust_market.errors import UnresolvableFavorite
from trust_market.models import CanonicalQuote, Contest, FavoriteResolution, Quote, TeamRef

logger = logging.getLogger(__name__)

BOTH_TAGGED = "both_tagged"
SINGLE_TAGGED = "single_tagged"
POWER_RATING = "power_rating"
MODEL_SPREAD = "model_spread"


def _latest_price(quotes: Sequence[Quote]) -> float | None:
    if not quotes:
        return None
    best = max(quotes, key=lambda quote: (quote.closing_value is not None, quote.timestamp))
    return best.effective_value


def _tagged_prices(
    contest: Contest, quotes: Sequence[Quote]
) -> tuple[float | None, float | None]:
    home: list[Quote] = []
    away: list[Quote] = []
    for quote in quotes:
        team = contest.team(quote.side) if quote.is_tagged else None
        if team == contest.home:
            home.append(quote)
        elif team == contest.away:
            away.append(quote)
    return _latest_price(home), _latest_price(away)


def _resolution(
    contest: Contest,
    favorite: TeamRef,
    favorite_line: float,
    source: str,
    *,
    home_price: float | None = None,
    away_price: float | None = None,
) -> FavoriteResolution:
    return FavoriteResolution(
        favorite=favorite,
        underdog=contest.opponent(favorite),
        favorite_line=favorite_line,
        source=source,
        home_price=home_price,
        away_price=away_price,
    )


def _from_strength(
    contest: Contest,
    magnitude: float,
    *,
    model_spread: float | None,
    home_field_advantage: float,
    diagnostics: DiagnosticsCollector,
) -> FavoriteResolution:
    favorite: TeamRef | None = None
    source = POWER_RATING
    strength: float | None = None
    if contest.home_rating is not None and contest.away_rating is not None:
        hfa = 0.0 if contest.neutral_site else home_field_advantage
        strength = contest.home_rating - contest.away_rating + hfa
        if strength > 0:
            favorite = contest.home
        elif strength < 0:
            favorite = contest.away
    if favorite is None and model_spread is not None and model_spread != 0:
        source = MODEL_SPREAD
        favorite = contest.home if model_spread > 0 else contest.away
    if favorite is None:
        raise UnresolvableFavorite(
            f"{contest.contest_id}: spread quotes carry no side tags and no rating "
            "or model signal is available"
        )

    message = (
        f"favorite {favorite.name} inferred from {source.replace('_', ' ')}; "
        "needs re-ingestion with side tags"
    )
    diagnostics.event(
        LOW_CONFIDENCE_FAVORITE,
        message,
        contest_id=contest.contest_id,
        favorite_team_id=favorite.team_id,
        source=source,
        strength=strength,
        model_spread=model_spread,
    )
    logger.warning("%s: %s", contest.contest_id, message)
    return _resolution(contest, favorite, -abs(magnitude), source)


def resolve_favorite(
    *,
    contest: Contest,
    spread: CanonicalQuote,
    spread_quotes: Sequence[Quote],
    model_spread: float | None,
    home_field_advantage: float,
    diagnostics: DiagnosticsCollector,
) -> FavoriteResolution:
    """Return the favorite and its negative line from the winning group's quotes."""
    home_price, away_price = _tagged_prices(contest, spread_quotes)
    if home_price is not None and away_price is not None:
        if home_price < 0 < away_price:
            return _resolution(
                contest,
                contest.home,
                home_price,
                BOTH_TAGGED,
                home_price=home_price,
                away_price=away_price,
            )
        if away_price < 0 < home_price:
            return _resolution(
                contest,
                contest.away,
                away_price,
                BOTH_TAGGED,
                home_price=home_price,
                away_price=away_price,
            )
        diagnostics.event(
            SIDE_TAG_CONFLICT,
            f"tagged spread prices share a sign (home {home_price}, away {away_price})",
            contest_id=contest.contest_id,
            home_price=home_price,
            away_price=away_price,
        )

    tagged_team = contest.team(spread.side)
    if tagged_team is not None:
        price = spread.value
        is_home = tagged_team == contest.home
        observed = {"home_price": price} if is_home else {"away_price": price}
        if price > 0:
            return _resolution(
                contest, contest.opponent(tagged_team), -price, SINGLE_TAGGED, **observed
            )
        return _resolution(contest, tagged_team, price, SINGLE_TAGGED, **observed)

    return _from_strength(
        contest,
        spread.value,
        model_spread=model_spread,
        home_field_advantage=home_field_advantage,
        diagnostics=diagnostics,
    )
