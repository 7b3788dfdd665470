"""Human-readable descriptions for stable diagnostic codes."""

from __future__ import annotations

PROVENANCE_MISMATCH = "provenance_mismatch"
LOW_CONFIDENCE_FAVORITE = "low_confidence_favorite"
MODEL_INVALID = "model_invalid"
INVARIANT_WARNING = "invariant_warning"
INVARIANT_VIOLATION = "invariant_violation"
PRICE_LEAK_DROPPED = "price_leak_dropped"
NON_FINITE_DROPPED = "non_finite_dropped"
MONEYLINE_OUTSIDE_WINDOW = "moneyline_outside_window"
MONEYLINE_SIDE_CONFLICT = "moneyline_side_conflict"
TOTAL_PLAUSIBILITY = "total_plausibility"
SIDE_TAG_CONFLICT = "side_tag_conflict"

DIAGNOSTIC_KEY = {
    PROVENANCE_MISMATCH: (
        "Total or moneyline was sourced from a different provider/book than the winning spread."
    ),
    LOW_CONFIDENCE_FAVORITE: (
        "Favorite inferred from power ratings or model spread; quotes need re-ingestion "
        "with side tags."
    ),
    MODEL_INVALID: "Model spread or total failed validity checks; that market has no pick.",
    INVARIANT_WARNING: "Snapshot invariant broken in lenient mode; evaluation continued.",
    INVARIANT_VIOLATION: "Finished decision failed a consistency assertion.",
    PRICE_LEAK_DROPPED: "Spread/total quote value looked like an American price and was dropped.",
    NON_FINITE_DROPPED: "Quote with a non-finite value was dropped.",
    MONEYLINE_OUTSIDE_WINDOW: (
        "Moneyline quote used for pairing was observed outside the spread timestamp window."
    ),
    MONEYLINE_SIDE_CONFLICT: "Moneyline side tag disagrees with the resolved spread favorite.",
    TOTAL_PLAUSIBILITY: "Model total is outside the plausible band; kept, but flagged.",
    SIDE_TAG_CONFLICT: "Tagged spread prices for both sides share a sign; tag tier skipped.",
}


def describe(code: str) -> str:
    return DIAGNOSTIC_KEY.get(code, "")
