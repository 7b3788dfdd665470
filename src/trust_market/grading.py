"""Letter grades, bet ranges and per-market recommendations."""

from __future__ import annotations

from trust_market.models import OVER, SPREAD, TOTAL, UNDER, MarketSnapshot, Overlay, Recommendation
from trust_market.overlay import extreme_favorite_guard
from trust_market.settings import EngineSettings, GradeThresholds

GRADE_ORDER: tuple[str, ...] = ("A", "B", "C")


def grade_for_magnitude(
    magnitude: float, thresholds: GradeThresholds, *, degraded: bool = False
) -> str | None:
    """Map an edge magnitude to A/B/C; a degraded grade drops one tier (C drops out)."""
    value = abs(magnitude)
    if value >= thresholds.A:
        index = 0
    elif value >= thresholds.B:
        index = 1
    elif value >= thresholds.C:
        index = 2
    else:
        return None
    if degraded:
        index += 1
    return GRADE_ORDER[index] if index < len(GRADE_ORDER) else None


def _sign(value: float) -> float:
    if value > 0:
        return 1.0
    if value < 0:
        return -1.0
    return 0.0


def bet_range(
    market: float | None, value: float, edge_floor: float, *, actionable: bool
) -> tuple[float | None, float | None]:
    """Return `(bet_to, flip)`: the worst line still worth taking and the flip point."""
    if not actionable or market is None:
        return None, None
    direction = _sign(value)
    return market + direction * edge_floor, market - direction * edge_floor


def _fmt_line(value: float) -> str:
    return f"{value:+g}"


def _ungraded_note(grade: str | None) -> str:
    if grade is not None:
        return ""
    return " Ungraded lean: degraded confidence drops it below grade C; not a graded pick."


def _degraded_note(overlay: Overlay) -> str:
    if not overlay.confidence_degraded:
        return ""
    return f" Confidence degraded: model and market differ by {overlay.raw_disagreement:g}."


def build_spread_recommendation(
    snapshot: MarketSnapshot, overlay: Overlay, settings: EngineSettings
) -> Recommendation:
    """Spread pick from a favorite-centric overlay; negative favors the favorite."""
    market = snapshot.favorite_line
    bet_to, flip = bet_range(
        overlay.market_value, overlay.value_used, settings.edge_floor, actionable=overlay.actionable
    )
    if not overlay.available:
        return Recommendation(
            market=SPREAD,
            side=None,
            side_label=None,
            line=market,
            headline_value=market,
            grade=None,
            bet_to=None,
            flip=None,
            reasoning=overlay.reason or "model unavailable",
        )

    on_favorite = overlay.value_used < 0
    team = snapshot.favorite if on_favorite else snapshot.underdog
    team_line = snapshot.favorite_line if on_favorite else snapshot.underdog_line
    summary = (
        f"Market {snapshot.favorite.name} {_fmt_line(market)}, model "
        f"{_fmt_line(overlay.model_value or 0.0)}; overlay {overlay.value_used:+.2f} "
        f"(raw {overlay.overlay_raw:+.2f}, cap ±{overlay.cap:g})"
    )
    if not overlay.actionable:
        return Recommendation(
            market=SPREAD,
            side=None,
            side_label=None,
            line=market,
            headline_value=market,
            grade=None,
            bet_to=None,
            flip=None,
            reasoning=f"{summary}; below the {settings.edge_floor:g}-point edge floor, no pick.",
        )

    if extreme_favorite_guard(overlay, settings.extreme_favorite_threshold):
        reason = (
            f"{snapshot.favorite.name} is favored by {abs(market):g} "
            f"(>= {settings.extreme_favorite_threshold:g}); underdog value is not recommended"
        )
        return Recommendation(
            market=SPREAD,
            side=None,
            side_label=None,
            line=market,
            headline_value=market,
            grade=None,
            bet_to=bet_to,
            flip=flip,
            reasoning=f"{summary}; {reason}.",
            suppressed=True,
            suppression_reason=reason,
        )

    grade = grade_for_magnitude(
        overlay.value_used, settings.grade_thresholds, degraded=overlay.confidence_degraded
    )
    degraded = _degraded_note(overlay)
    return Recommendation(
        market=SPREAD,
        side=team.team_id,
        side_label=team.name,
        line=team_line,
        headline_value=market,
        grade=grade,
        bet_to=bet_to,
        flip=flip,
        reasoning=(
            f"{summary}; value on {team.name} {_fmt_line(team_line)}."
            f"{degraded}{_ungraded_note(grade)}"
        ),
    )


def build_total_recommendation(
    snapshot: MarketSnapshot, overlay: Overlay, settings: EngineSettings
) -> Recommendation:
    """Over/under pick; the headline is always the market total."""
    market = snapshot.total
    if not overlay.available or market is None:
        return Recommendation(
            market=TOTAL,
            side=None,
            side_label=None,
            line=market,
            headline_value=market,
            grade=None,
            bet_to=None,
            flip=None,
            reasoning=overlay.reason or "market total unavailable",
        )

    summary = (
        f"Market total {market:g}, model {overlay.model_value or 0.0:g}; "
        f"overlay {overlay.value_used:+.2f} (raw {overlay.overlay_raw:+.2f}, cap ±{overlay.cap:g})"
    )
    if not overlay.actionable:
        return Recommendation(
            market=TOTAL,
            side=None,
            side_label=None,
            line=market,
            headline_value=market,
            grade=None,
            bet_to=None,
            flip=None,
            reasoning=f"{summary}; below the {settings.edge_floor:g}-point edge floor, no pick.",
        )

    side = OVER if overlay.value_used > 0 else UNDER
    bet_to, flip = bet_range(market, overlay.value_used, settings.edge_floor, actionable=True)
    grade = grade_for_magnitude(
        overlay.value_used, settings.grade_thresholds, degraded=overlay.confidence_degraded
    )
    degraded = _degraded_note(overlay)
    return Recommendation(
        market=TOTAL,
        side=side,
        side_label=f"{side.title()} {market:g}",
        line=market,
        headline_value=market,
        grade=grade,
        bet_to=bet_to,
        flip=flip,
        reasoning=f"{summary}; value on the {side}.{degraded}{_ungraded_note(grade)}",
    )
