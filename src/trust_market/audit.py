"""Post-hoc consistency checks over a finished decision."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from trust_market.diagnostics import with_violations
from trust_market.errors import InvariantViolation
from trust_market.models import OVER, Decision, Overlay, Recommendation, Violation
from trust_market.overlay import extreme_favorite_guard
from trust_market.settings import EngineSettings
from trust_market.snapshot import make_snapshot_id

logger = logging.getLogger(__name__)

TOLERANCE = 1e-6


class _Checks:
    def __init__(self) -> None:
        self.items: list[Violation] = []

    def expect(self, ok: bool, check: str, message: str, **context: Any) -> None:
        if not ok:
            self.items.append(
                Violation(check=check, message=message, context=tuple(sorted(context.items())))
            )


def _audit_overlay(checks: _Checks, overlay: Overlay) -> None:
    market = overlay.market
    checks.expect(
        abs(overlay.value_used) <= overlay.cap + TOLERANCE,
        "overlay_within_cap",
        f"{market} overlay {overlay.value_used} exceeds cap {overlay.cap}",
        market=market,
        value_used=overlay.value_used,
        cap=overlay.cap,
    )
    if not overlay.available:
        checks.expect(
            overlay.value_used == 0.0 and not overlay.actionable,
            "overlay_zero_without_model",
            f"{market} overlay is {overlay.value_used} although {overlay.reason}",
            market=market,
            value_used=overlay.value_used,
            reason=overlay.reason,
        )
        return
    if overlay.market_value is None or overlay.final_value is None:
        return
    checks.expect(
        abs(overlay.final_value - (overlay.market_value + overlay.value_used)) <= TOLERANCE,
        "final_equals_market_plus_overlay",
        f"{market} final {overlay.final_value} != market {overlay.market_value} "
        f"+ overlay {overlay.value_used}",
        market=market,
        final_value=overlay.final_value,
        market_value=overlay.market_value,
        value_used=overlay.value_used,
    )
    checks.expect(
        overlay.actionable == (abs(overlay.value_used) >= overlay.edge_floor),
        "actionable_matches_floor",
        f"{market} actionable={overlay.actionable} disagrees with |{overlay.value_used}| "
        f"vs floor {overlay.edge_floor}",
        market=market,
        value_used=overlay.value_used,
        edge_floor=overlay.edge_floor,
    )


def _audit_recommendation(checks: _Checks, overlay: Overlay, rec: Recommendation) -> None:
    market = rec.market
    expected_side = overlay.actionable and not rec.suppressed
    checks.expect(
        (rec.side is not None) == expected_side,
        "side_iff_actionable",
        f"{market} side {rec.side!r} with actionable={overlay.actionable} "
        f"suppressed={rec.suppressed}",
        market=market,
        side=rec.side,
        actionable=overlay.actionable,
        suppressed=rec.suppressed,
    )
    checks.expect(
        rec.grade is None or rec.side is not None,
        "grade_requires_side",
        f"{market} grade {rec.grade} without a side",
        market=market,
        grade=rec.grade,
    )
    has_range = rec.bet_to is not None and rec.flip is not None
    checks.expect(
        has_range == overlay.actionable,
        "bet_range_iff_actionable",
        f"{market} bet_to/flip {rec.bet_to}/{rec.flip} with actionable={overlay.actionable}",
        market=market,
        bet_to=rec.bet_to,
        flip=rec.flip,
        actionable=overlay.actionable,
    )


def audit_decision(decision: Decision, settings: EngineSettings) -> tuple[Violation, ...]:
    """Re-derive every invariant from `decision`; empty means consistent."""
    checks = _Checks()
    snapshot = decision.snapshot

    checks.expect(
        snapshot.favorite_line < 0 < snapshot.underdog_line,
        "line_signs",
        f"favorite/underdog lines {snapshot.favorite_line}/{snapshot.underdog_line} "
        "are not negative/positive",
        favorite_line=snapshot.favorite_line,
        underdog_line=snapshot.underdog_line,
    )
    checks.expect(
        abs(snapshot.underdog_line + snapshot.favorite_line) <= TOLERANCE,
        "line_mirror",
        f"underdog line {snapshot.underdog_line} is not -({snapshot.favorite_line})",
        favorite_line=snapshot.favorite_line,
        underdog_line=snapshot.underdog_line,
    )
    if snapshot.home_price is not None and snapshot.away_price is not None:
        checks.expect(
            abs(snapshot.home_price + snapshot.away_price) <= settings.zero_sum_tolerance,
            "zero_sum",
            f"home/away prices {snapshot.home_price}/{snapshot.away_price} are not zero-sum",
            home_price=snapshot.home_price,
            away_price=snapshot.away_price,
            provider=snapshot.provenance.provider,
            book=snapshot.provenance.book,
        )
    checks.expect(
        make_snapshot_id(snapshot.provenance) == snapshot.snapshot_id,
        "snapshot_id",
        f"snapshot id {snapshot.snapshot_id} does not match its provenance",
        snapshot_id=snapshot.snapshot_id,
    )

    spread_overlay = decision.spread_overlay
    _audit_overlay(checks, spread_overlay)
    _audit_overlay(checks, decision.total_overlay)
    _audit_recommendation(checks, spread_overlay, decision.spread)
    _audit_recommendation(checks, decision.total_overlay, decision.total)

    checks.expect(
        not decision.spread.suppressed
        or extreme_favorite_guard(spread_overlay, settings.extreme_favorite_threshold),
        "extreme_favorite_guard",
        "spread suppressed without an extreme favorite pointing at the underdog",
        favorite_line=snapshot.favorite_line,
        value_used=spread_overlay.value_used,
    )
    if decision.spread.side is not None:
        on_favorite = decision.spread.side == snapshot.favorite.team_id
        checks.expect(
            on_favorite == (spread_overlay.value_used < 0),
            "spread_pick_direction",
            f"spread pick {decision.spread.side} disagrees with overlay "
            f"{spread_overlay.value_used}",
            side=decision.spread.side,
            value_used=spread_overlay.value_used,
        )
    if decision.total.side is not None:
        checks.expect(
            (decision.total.side == OVER) == (decision.total_overlay.value_used > 0),
            "total_pick_direction",
            f"total pick {decision.total.side} disagrees with overlay "
            f"{decision.total_overlay.value_used}",
            side=decision.total.side,
            value_used=decision.total_overlay.value_used,
        )

    moneyline = decision.moneyline
    if moneyline.side is not None and moneyline.price is not None:
        checks.expect(
            moneyline.price <= settings.moneyline_max_price,
            "moneyline_max_price",
            f"moneyline pick at {moneyline.price:+d} beyond +{settings.moneyline_max_price}",
            side=moneyline.side,
            price=moneyline.price,
        )
    if moneyline.model_prob_favorite is not None and moneyline.fair_ml_favorite is not None:
        checks.expect(
            (moneyline.model_prob_favorite > 0.5) == (moneyline.fair_ml_favorite < 0),
            "fair_price_direction",
            f"favorite probability {moneyline.model_prob_favorite:.6f} with fair price "
            f"{moneyline.fair_ml_favorite:+d}",
            model_prob_favorite=moneyline.model_prob_favorite,
            fair_ml_favorite=moneyline.fair_ml_favorite,
        )
    return tuple(checks.items)


def enforce(decision: Decision, settings: EngineSettings) -> Decision:
    """Audit `decision`; strict mode raises, lenient mode attaches the violations."""
    violations = audit_decision(decision, settings)
    if not violations:
        return decision
    log = logger.error if settings.strict_mode else logger.warning
    for violation in violations:
        log(
            "%s: invariant %s failed: %s context=%s snapshot=%s",
            decision.contest.contest_id,
            violation.check,
            violation.message,
            dict(violation.context),
            decision.snapshot,
        )
    if settings.strict_mode:
        raise InvariantViolation(
            f"{decision.contest.contest_id}: {len(violations)} invariant(s) failed: "
            + "; ".join(violation.check for violation in violations),
            violations,
        )
    return replace(decision, diagnostics=with_violations(decision.diagnostics, violations))
