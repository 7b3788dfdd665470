"""Canonical favorite-centric market snapshot assembly."""

from __future__ import annotations

import hashlib
import json
import logging

from trust_market.diagnostic_keys import INVARIANT_WARNING
from trust_market.diagnostics import DiagnosticsCollector
from trust_market.errors import InvariantViolation
from trust_market.models import (
    Contest,
    FavoriteResolution,
    GroupSelection,
    MarketSnapshot,
    MismatchRecord,
    Provenance,
)
from trust_market.settings import EngineSettings
from trust_market.time_utils import iso_z

logger = logging.getLogger(__name__)


def make_snapshot_id(provenance: Provenance) -> str:
    """Stable id for idempotent re-reads of the same provider/book snapshot."""
    payload = {
        "provider": provenance.provider.strip().lower(),
        "book": provenance.book.strip().lower(),
        "timestamp": iso_z(provenance.timestamp),
    }
    serialized = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return "snap-" + hashlib.sha256(serialized.encode("utf-8")).hexdigest()[:20]


def check_snapshot_invariants(
    *,
    favorite_line: float,
    underdog_line: float,
    home_price: float | None,
    away_price: float | None,
    zero_sum_tolerance: float,
) -> list[str]:
    """Return human-readable failures of the sign and pricing invariants."""
    failures: list[str] = []
    if not favorite_line < 0:
        failures.append(f"favorite line must be negative (got {favorite_line})")
    if not underdog_line > 0:
        failures.append(f"underdog line must be positive (got {underdog_line})")
    if underdog_line != -favorite_line:
        failures.append(
            f"underdog line {underdog_line} is not the mirror of favorite line {favorite_line}"
        )
    if home_price is not None and away_price is not None:
        if abs(home_price + away_price) > zero_sum_tolerance:
            failures.append(
                f"home/away prices {home_price}/{away_price} are not near zero-sum "
                f"(tolerance {zero_sum_tolerance})"
            )
    return failures


def build_snapshot(
    *,
    contest: Contest,
    selection: GroupSelection,
    resolution: FavoriteResolution,
    moneyline_favorite: int | None,
    moneyline_underdog: int | None,
    settings: EngineSettings,
    diagnostics: DiagnosticsCollector,
) -> MarketSnapshot:
    """Assemble the snapshot and enforce its invariants.

    Strict mode raises `InvariantViolation`; lenient mode records a mismatch
    and returns a snapshot flagged with `invariant_warning`.
    """
    spread = selection.spread
    if spread is None:
        raise ValueError("selection has no spread quote")
    stamps = [pick.timestamp for pick in (spread, selection.total, selection.moneyline) if pick]
    provenance = Provenance(
        provider=selection.provider,
        book=selection.book,
        timestamp=max(stamps),
    )
    snapshot_id = make_snapshot_id(provenance)
    diagnostics.snapshot_id = snapshot_id
    diagnostics.favorite_source = resolution.source

    favorite_line = resolution.favorite_line
    underdog_line = -favorite_line
    failures = check_snapshot_invariants(
        favorite_line=favorite_line,
        underdog_line=underdog_line,
        home_price=resolution.home_price,
        away_price=resolution.away_price,
        zero_sum_tolerance=settings.zero_sum_tolerance,
    )
    if failures:
        record = MismatchRecord(
            provider=selection.provider,
            book=selection.book,
            home_team_id=contest.home.team_id,
            away_team_id=contest.away.team_id,
            home_price=resolution.home_price,
            away_price=resolution.away_price,
            favorite_team_id=resolution.favorite.team_id,
            favorite_line=favorite_line,
            message="; ".join(failures),
        )
        diagnostics.mismatch(record)
        if settings.strict_mode:
            logger.error("%s: snapshot rejected: %s", contest.contest_id, record)
            raise InvariantViolation(f"snapshot invariant violated: {record.message}", (record,))
        diagnostics.event(
            INVARIANT_WARNING,
            record.message,
            contest_id=contest.contest_id,
            provider=selection.provider,
            book=selection.book,
        )
        logger.warning("%s: snapshot invariant warning: %s", contest.contest_id, record)

    return MarketSnapshot(
        favorite=resolution.favorite,
        underdog=resolution.underdog,
        favorite_line=favorite_line,
        underdog_line=underdog_line,
        total=selection.total.value if selection.total is not None else None,
        moneyline_favorite=moneyline_favorite,
        moneyline_underdog=moneyline_underdog,
        provenance=provenance,
        snapshot_id=snapshot_id,
        favorite_source=resolution.source,
        favorite_is_home=resolution.favorite == contest.home,
        home_price=resolution.home_price,
        away_price=resolution.away_price,
        used_closing=spread.used_closing,
        invariant_warning=bool(failures),
    )
