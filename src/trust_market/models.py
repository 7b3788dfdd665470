"""Value objects shared by the snapshot, overlay and recommendation stages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

SPREAD = "spread"
TOTAL = "total"
MONEYLINE = "moneyline"
LINE_TYPES: tuple[str, ...] = (SPREAD, TOTAL, MONEYLINE)

OVER = "over"
UNDER = "under"


@dataclass(frozen=True)
class TeamRef:
    team_id: str
    name: str


@dataclass(frozen=True)
class Contest:
    """One game: identities plus the optional power-rating strength signal."""

    contest_id: str
    home: TeamRef
    away: TeamRef
    neutral_site: bool = False
    home_rating: float | None = None
    away_rating: float | None = None

    def team(self, team_id: str | None) -> TeamRef | None:
        if team_id is None:
            return None
        key = team_id.strip().lower()
        if key == self.home.team_id.strip().lower():
            return self.home
        if key == self.away.team_id.strip().lower():
            return self.away
        return None

    def opponent(self, team: TeamRef) -> TeamRef:
        return self.away if team == self.home else self.home


@dataclass(frozen=True)
class Quote:
    """One observed market price from one provider/book."""

    line_type: str
    value: float
    provider: str
    book: str
    timestamp: datetime
    closing_value: float | None = None
    side: str | None = None

    @property
    def effective_value(self) -> float:
        return self.closing_value if self.closing_value is not None else self.value

    @property
    def group_key(self) -> tuple[str, str]:
        return (self.provider.strip().lower(), self.book.strip().lower())

    @property
    def is_tagged(self) -> bool:
        return bool(self.side and self.side.strip())


@dataclass(frozen=True)
class CanonicalQuote:
    """The single quote selected for one line type of one provider group."""

    quote: Quote
    used_closing: bool

    @property
    def value(self) -> float:
        return self.quote.effective_value

    @property
    def timestamp(self) -> datetime:
        return self.quote.timestamp

    @property
    def side(self) -> str | None:
        return self.quote.side if self.quote.is_tagged else None

    @property
    def provider(self) -> str:
        return self.quote.provider

    @property
    def book(self) -> str:
        return self.quote.book


@dataclass(frozen=True)
class ProviderGroup:
    provider: str
    book: str
    spread: tuple[Quote, ...] = ()
    total: tuple[Quote, ...] = ()
    moneyline: tuple[Quote, ...] = ()

    @property
    def key(self) -> tuple[str, str]:
        return (self.provider.strip().lower(), self.book.strip().lower())

    def quotes_for(self, line_type: str) -> tuple[Quote, ...]:
        if line_type == SPREAD:
            return self.spread
        if line_type == TOTAL:
            return self.total
        if line_type == MONEYLINE:
            return self.moneyline
        raise ValueError(f"unknown line type: {line_type}")


@dataclass(frozen=True)
class GroupSelection:
    """Winning provider group with one canonical quote per line type."""

    provider: str
    book: str
    spread: CanonicalQuote | None
    total: CanonicalQuote | None
    moneyline: CanonicalQuote | None
    coverage_score: int
    latest_timestamp: datetime | None
    tagged_pass: bool
    spread_quotes: tuple[Quote, ...] = ()
    moneyline_quotes: tuple[Quote, ...] = ()
    total_fallback: bool = False
    moneyline_fallback: bool = False


@dataclass(frozen=True)
class Provenance:
    provider: str
    book: str
    timestamp: datetime


@dataclass(frozen=True)
class FavoriteResolution:
    favorite: TeamRef
    underdog: TeamRef
    favorite_line: float
    source: str
    home_price: float | None = None
    away_price: float | None = None

    @property
    def low_confidence(self) -> bool:
        return self.source in {"power_rating", "model_spread"}


@dataclass(frozen=True)
class MarketSnapshot:
    """Canonical favorite-centric market view; never mutated after construction."""

    favorite: TeamRef
    underdog: TeamRef
    favorite_line: float
    underdog_line: float
    total: float | None
    moneyline_favorite: int | None
    moneyline_underdog: int | None
    provenance: Provenance
    snapshot_id: str
    favorite_source: str
    favorite_is_home: bool
    home_price: float | None = None
    away_price: float | None = None
    used_closing: bool = False
    invariant_warning: bool = False

    def market_spread_home(self) -> float:
        """Market line in the home convention (negative = home favored)."""
        return self.favorite_line if self.favorite_is_home else self.underdog_line


@dataclass(frozen=True)
class ModelPrediction:
    """Raw model output; `spread` is home minus away (positive = home favored)."""

    spread: float | None = None
    total: float | None = None


@dataclass(frozen=True)
class ModelCheck:
    value: float | None
    valid: bool
    reason: str | None = None
    failure_kind: str | None = None


@dataclass(frozen=True)
class ModelView:
    """Validated, favorite-centric view of the model."""

    spread: ModelCheck
    total: ModelCheck
    model_favorite_line: float | None = None
    implied_home_points: float | None = None
    implied_away_points: float | None = None
    final_spread: float | None = None
    final_total: float | None = None
    favorite_win_prob: float | None = None
    underdog_win_prob: float | None = None
    total_plausibility_warning: str | None = None


@dataclass(frozen=True)
class Overlay:
    market: str
    market_value: float | None
    model_value: float | None
    raw_disagreement: float | None
    lambda_: float
    cap: float
    edge_floor: float
    overlay_raw: float
    value_used: float
    final_value: float | None
    confidence_degraded: bool
    actionable: bool
    reason: str | None = None

    @property
    def available(self) -> bool:
        return self.reason is None


@dataclass(frozen=True)
class Recommendation:
    market: str
    side: str | None
    side_label: str | None
    line: float | None
    headline_value: float | None
    grade: str | None
    bet_to: float | None
    flip: float | None
    reasoning: str
    suppressed: bool = False
    suppression_reason: str | None = None


@dataclass(frozen=True)
class MoneylineRecommendation:
    side: str | None
    side_label: str | None
    price: int | None
    is_underdog: bool | None
    value: float | None
    grade: str | None
    final_spread: float | None
    model_prob_favorite: float | None
    model_prob_underdog: float | None
    market_prob_favorite: float | None
    market_prob_underdog: float | None
    fair_ml_favorite: int | None
    fair_ml_underdog: int | None
    informational_only: bool
    reasoning: str
    suppressed: bool = False
    suppression_reason: str | None = None


@dataclass(frozen=True)
class DiagnosticEvent:
    code: str
    message: str
    context: tuple[tuple[str, Any], ...] = ()


@dataclass(frozen=True)
class MismatchRecord:
    """Structured record of a snapshot whose prices break an invariant."""

    provider: str
    book: str
    home_team_id: str
    away_team_id: str
    home_price: float | None
    away_price: float | None
    favorite_team_id: str
    favorite_line: float
    message: str


@dataclass(frozen=True)
class Violation:
    check: str
    message: str
    context: tuple[tuple[str, Any], ...] = ()


@dataclass(frozen=True)
class Diagnostics:
    snapshot_id: str | None
    violations: tuple[Violation, ...] = ()
    provenance_mismatches: tuple[str, ...] = ()
    mismatches: tuple[MismatchRecord, ...] = ()
    events: tuple[DiagnosticEvent, ...] = ()
    favorite_source: str | None = None
    low_confidence_favorite: bool = False
    model_spread_reason: str | None = None
    model_total_reason: str | None = None
    model_total_unit_failure: str | None = None

    def codes(self) -> tuple[str, ...]:
        return tuple(event.code for event in self.events)


@dataclass(frozen=True)
class Decision:
    contest: Contest
    snapshot: MarketSnapshot
    model_view: ModelView
    spread_overlay: Overlay
    total_overlay: Overlay
    spread: Recommendation
    total: Recommendation
    moneyline: MoneylineRecommendation
    diagnostics: Diagnostics
