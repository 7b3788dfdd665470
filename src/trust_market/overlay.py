"""Capped linear blend of a model number against the market baseline."""

from __future__ import annotations

from trust_market.models import Overlay


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def compute_overlay(
    *,
    market: str,
    market_value: float | None,
    model_value: float | None,
    lambda_: float,
    cap: float,
    edge_floor: float,
    large_disagreement_threshold: float,
    unavailable_reason: str | None = None,
) -> Overlay:
    """Blend `model_value` into `market_value`.

    Spread inputs are favorite-centric, so a negative overlay is value on the
    favorite and a positive one is value on the underdog. Totals: positive is
    over, negative is under. Decisions read `value_used`; `final_value` is
    exposed for audit and the moneyline curve.
    """
    if market_value is None or model_value is None:
        if market_value is None:
            reason = f"market {market} unavailable"
        else:
            detail = f": {unavailable_reason}" if unavailable_reason else ""
            reason = f"model unavailable{detail}"
        return Overlay(
            market=market,
            market_value=market_value,
            model_value=model_value,
            raw_disagreement=None,
            lambda_=lambda_,
            cap=cap,
            edge_floor=edge_floor,
            overlay_raw=0.0,
            value_used=0.0,
            final_value=market_value,
            confidence_degraded=False,
            actionable=False,
            reason=reason,
        )

    delta = model_value - market_value
    raw_disagreement = round(abs(delta), 6)
    overlay_raw = round(lambda_ * delta, 6)
    value_used = _clamp(overlay_raw, -cap, cap)
    return Overlay(
        market=market,
        market_value=market_value,
        model_value=model_value,
        raw_disagreement=raw_disagreement,
        lambda_=lambda_,
        cap=cap,
        edge_floor=edge_floor,
        overlay_raw=overlay_raw,
        value_used=value_used,
        final_value=round(market_value + value_used, 6),
        confidence_degraded=raw_disagreement > large_disagreement_threshold,
        actionable=abs(value_used) >= edge_floor,
    )


def extreme_favorite_guard(overlay: Overlay, threshold: float) -> bool:
    """True when a huge favorite's overlay points at the underdog."""
    if overlay.market_value is None:
        return False
    return abs(overlay.market_value) >= threshold and overlay.value_used > 0
