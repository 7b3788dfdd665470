"""End-to-end evaluation of one contest."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import asdict
from datetime import datetime
from typing import Any

from trust_market.audit import enforce
from trust_market.diagnostic_keys import describe
from trust_market.diagnostics import DiagnosticsCollector
from trust_market.errors import TrustMarketError
from trust_market.favorite import resolve_favorite
from trust_market.grading import build_spread_recommendation, build_total_recommendation
from trust_market.model_validation import validate_model
from trust_market.models import (
    MONEYLINE,
    SPREAD,
    TOTAL,
    Contest,
    Decision,
    DiagnosticEvent,
    ModelPrediction,
    ModelView,
    Quote,
)
from trust_market.moneyline import pair_moneyline_quotes, resolve_moneyline
from trust_market.odds_math import favorite_win_prob
from trust_market.overlay import compute_overlay
from trust_market.quote_selection import choose_provider_group
from trust_market.settings import EngineSettings
from trust_market.snapshot import build_snapshot
from trust_market.time_utils import iso_z

logger = logging.getLogger(__name__)


def evaluate(
    contest: Contest,
    quotes: Sequence[Quote],
    prediction: ModelPrediction,
    settings: EngineSettings | None = None,
    *,
    input_events: Sequence[DiagnosticEvent] = (),
) -> Decision:
    """Evaluate one contest into a `Decision`.

    `input_events` are diagnostics raised while normalizing raw quote rows; they
    lead the decision's event list.

    Raises `MissingMandatoryMarket`, `UnresolvableFavorite`, or (strict mode)
    `InvariantViolation`; every other problem lands in `decision.diagnostics`.
    """
    active = settings if settings is not None else EngineSettings()
    try:
        return _evaluate(contest, quotes, prediction, active, input_events)
    except TrustMarketError as exc:
        logger.error("%s: evaluation aborted: %s", contest.contest_id, exc)
        raise


def _evaluate(
    contest: Contest,
    quotes: Sequence[Quote],
    prediction: ModelPrediction,
    settings: EngineSettings,
    input_events: Sequence[DiagnosticEvent],
) -> Decision:
    diagnostics = DiagnosticsCollector()
    diagnostics.events.extend(input_events)
    selection = choose_provider_group(quotes, diagnostics)
    spread_quote = selection.spread
    if spread_quote is None:
        raise ValueError("provider group resolved without a spread")

    validated = validate_model(prediction, settings, diagnostics)
    resolution = resolve_favorite(
        contest=contest,
        spread=spread_quote,
        spread_quotes=selection.spread_quotes,
        model_spread=validated.spread.value,
        home_field_advantage=settings.home_field_advantage,
        diagnostics=diagnostics,
    )

    pool = selection.moneyline_quotes or tuple(
        quote for quote in quotes if quote.line_type == MONEYLINE
    )
    favorite_price, underdog_price = pair_moneyline_quotes(
        pool,
        anchor=spread_quote.timestamp,
        window_seconds=settings.moneyline_window_seconds,
        contest=contest,
        favorite=resolution.favorite,
        diagnostics=diagnostics,
    )
    snapshot = build_snapshot(
        contest=contest,
        selection=selection,
        resolution=resolution,
        moneyline_favorite=favorite_price,
        moneyline_underdog=underdog_price,
        settings=settings,
        diagnostics=diagnostics,
    )

    model_favorite_line: float | None = None
    if validated.spread.value is not None:
        margin = validated.spread.value
        model_favorite_line = -margin if snapshot.favorite_is_home else margin

    spread_overlay = compute_overlay(
        market=SPREAD,
        market_value=snapshot.favorite_line,
        model_value=model_favorite_line,
        lambda_=settings.lambda_spread,
        cap=settings.cap_spread,
        edge_floor=settings.edge_floor,
        large_disagreement_threshold=settings.large_disagreement_threshold,
        unavailable_reason=validated.spread.reason,
    )
    total_overlay = compute_overlay(
        market=TOTAL,
        market_value=snapshot.total,
        model_value=validated.total.value,
        lambda_=settings.lambda_total,
        cap=settings.cap_total,
        edge_floor=settings.edge_floor,
        large_disagreement_threshold=settings.large_disagreement_threshold,
        unavailable_reason=validated.total.reason,
    )

    final_spread = spread_overlay.final_value if spread_overlay.available else None
    final_total = total_overlay.final_value if total_overlay.available else None
    favorite_prob: float | None = None
    if final_spread is not None:
        favorite_prob = favorite_win_prob(final_spread, settings.moneyline_sigma)
    model_view = ModelView(
        spread=validated.spread,
        total=validated.total,
        model_favorite_line=model_favorite_line,
        implied_home_points=validated.implied_home_points,
        implied_away_points=validated.implied_away_points,
        final_spread=final_spread,
        final_total=final_total,
        favorite_win_prob=favorite_prob,
        underdog_win_prob=None if favorite_prob is None else 1.0 - favorite_prob,
        total_plausibility_warning=validated.plausibility_warning,
    )

    decision = Decision(
        contest=contest,
        snapshot=snapshot,
        model_view=model_view,
        spread_overlay=spread_overlay,
        total_overlay=total_overlay,
        spread=build_spread_recommendation(snapshot, spread_overlay, settings),
        total=build_total_recommendation(snapshot, total_overlay, settings),
        moneyline=resolve_moneyline(
            snapshot=snapshot,
            final_spread=final_spread,
            settings=settings,
            unavailable_reason=validated.spread.reason,
        ),
        diagnostics=diagnostics.freeze(),
    )
    logger.debug(
        "%s: snapshot=%s favorite=%s line=%s spread_overlay=%s total_overlay=%s",
        contest.contest_id,
        snapshot.snapshot_id,
        snapshot.favorite.team_id,
        snapshot.favorite_line,
        spread_overlay.value_used,
        total_overlay.value_used,
    )
    return enforce(decision, settings)


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return iso_z(value)
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def decision_to_dict(decision: Decision) -> dict[str, Any]:
    """JSON-safe mapping of a decision; datetimes render as ISO-8601 with Z."""
    payload = _jsonable(asdict(decision))
    diagnostics = payload["diagnostics"]
    for key in ("events", "violations"):
        for item in diagnostics[key]:
            item["context"] = {name: _jsonable(val) for name, val in item["context"]}
    codes = sorted(set(decision.diagnostics.codes()))
    payload["diagnostic_key"] = {code: describe(code) for code in codes}
    return payload
