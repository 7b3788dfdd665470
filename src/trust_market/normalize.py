"""Normalization of raw quote rows and evaluation payloads."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from trust_market.diagnostic_keys import NON_FINITE_DROPPED, PRICE_LEAK_DROPPED
from trust_market.diagnostics import DiagnosticsCollector
from trust_market.errors import QuoteContractError
from trust_market.models import (
    MONEYLINE,
    SPREAD,
    TOTAL,
    Contest,
    ModelPrediction,
    Quote,
    TeamRef,
)
from trust_market.time_utils import as_utc, parse_iso_z

LINE_TYPE_ALIASES = {
    "spread": SPREAD,
    "spreads": SPREAD,
    "total": TOTAL,
    "totals": TOTAL,
    "moneyline": MONEYLINE,
    "h2h": MONEYLINE,
    "ml": MONEYLINE,
}

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "line_type": ("line_type", "lineType", "market"),
    "value": ("value", "lineValue", "line_value"),
    "closing_value": ("closing_value", "closingLine", "closing_line"),
    "side": ("side", "teamId", "team_id"),
    "provider": ("provider", "source"),
    "book": ("book", "bookName", "book_name"),
    "timestamp": ("timestamp", "observedAt", "observed_at"),
}


def _field(row: Mapping[str, Any], name: str) -> Any:
    for key in FIELD_ALIASES[name]:
        if key in row and row[key] is not None:
            return row[key]
    return None


def _number(raw: Any, context: str) -> float:
    if isinstance(raw, bool):
        raise QuoteContractError(f"{context} must be a number")
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise QuoteContractError(f"{context} must be a number, got {raw!r}") from exc


def _optional_number(raw: Any, context: str) -> float | None:
    if raw is None or raw == "":
        return None
    return _number(raw, context)


def _timestamp(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return as_utc(raw)
    if isinstance(raw, str):
        parsed = parse_iso_z(raw)
        if parsed is not None:
            return parsed
    raise QuoteContractError(f"quote timestamp must be ISO-8601, got {raw!r}")


def _text(raw: Any, context: str) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise QuoteContractError(f"{context} must be a non-empty string")
    return raw.strip()


def quote_from_row(row: Mapping[str, Any]) -> Quote:
    """Build a `Quote` from a snake_case or camelCase row."""
    if not isinstance(row, Mapping):
        raise QuoteContractError("quote row must be an object")
    raw_type = _field(row, "line_type")
    line_type = LINE_TYPE_ALIASES.get(str(raw_type or "").strip().lower())
    if line_type is None:
        raise QuoteContractError(f"unsupported quote line type: {raw_type!r}")
    value = _field(row, "value")
    if value is None:
        raise QuoteContractError("quote value is required")
    side = _field(row, "side")
    return Quote(
        line_type=line_type,
        value=_number(value, "quote value"),
        provider=_text(_field(row, "provider"), "quote provider"),
        book=_text(_field(row, "book"), "quote book"),
        timestamp=_timestamp(_field(row, "timestamp")),
        closing_value=_optional_number(_field(row, "closing_value"), "quote closing value"),
        side=(str(side).strip() or None) if side is not None else None,
    )


PRICE_LEAK_FLOORS = {SPREAD: 50.0, TOTAL: 100.0}


def looks_like_price_leak(value: float, floor: float = 50.0) -> bool:
    """True for line values that are really American prices (-110, +150).

    Prices are whole multiples of 5; points carry half or quarter steps.
    """
    magnitude = abs(value)
    return magnitude >= floor and magnitude % 5 == 0


def normalize_quotes(
    rows: Iterable[Mapping[str, Any]], diagnostics: DiagnosticsCollector
) -> list[Quote]:
    """Parse rows and drop quotes no line could be built from."""
    quotes: list[Quote] = []
    for row in rows:
        quote = quote_from_row(row)
        numbers = [quote.value] + ([quote.closing_value] if quote.closing_value is not None else [])
        if not all(math.isfinite(number) for number in numbers):
            diagnostics.event(
                NON_FINITE_DROPPED,
                f"{quote.line_type} quote from {quote.provider}/{quote.book} is not finite",
                provider=quote.provider,
                book=quote.book,
                line_type=quote.line_type,
            )
            continue
        floor = PRICE_LEAK_FLOORS.get(quote.line_type)
        if floor is not None and looks_like_price_leak(quote.effective_value, floor):
            diagnostics.event(
                PRICE_LEAK_DROPPED,
                f"{quote.line_type} {quote.effective_value:g} from {quote.provider}/{quote.book} "
                "looks like an American price",
                provider=quote.provider,
                book=quote.book,
                line_type=quote.line_type,
                value=quote.effective_value,
            )
            continue
        quotes.append(quote)
    return quotes


def _team(payload: Any, context: str) -> TeamRef:
    if isinstance(payload, str):
        team_id = _text(payload, context)
        return TeamRef(team_id=team_id, name=team_id)
    if not isinstance(payload, Mapping):
        raise QuoteContractError(f"{context} must be an object or team id")
    team_id = _text(payload.get("team_id") or payload.get("teamId") or payload.get("id"), context)
    name = payload.get("name")
    return TeamRef(team_id=team_id, name=str(name).strip() if name else team_id)


def contest_from_payload(payload: Mapping[str, Any]) -> Contest:
    if not isinstance(payload, Mapping):
        raise QuoteContractError("contest payload must be an object")
    contest_id = payload.get("contest_id") or payload.get("contestId") or payload.get("id")
    return Contest(
        contest_id=_text(contest_id, "contest id"),
        home=_team(payload.get("home"), "home team"),
        away=_team(payload.get("away"), "away team"),
        neutral_site=bool(payload.get("neutral_site", payload.get("neutralSite", False))),
        home_rating=_optional_number(
            payload.get("home_rating", payload.get("homeRating")), "home rating"
        ),
        away_rating=_optional_number(
            payload.get("away_rating", payload.get("awayRating")), "away rating"
        ),
    )


def prediction_from_payload(payload: Mapping[str, Any] | None) -> ModelPrediction:
    if not payload:
        return ModelPrediction()
    spread = payload.get("spread", payload.get("modelSpread"))
    total = payload.get("total", payload.get("modelTotal"))
    return ModelPrediction(
        spread=_optional_number(spread, "model spread"),
        total=_optional_number(total, "model total"),
    )
