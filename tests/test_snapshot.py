from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from trust_market.diagnostic_keys import INVARIANT_WARNING
from trust_market.diagnostics import DiagnosticsCollector
from trust_market.errors import InvariantViolation
from trust_market.models import (
    CanonicalQuote,
    Contest,
    FavoriteResolution,
    GroupSelection,
    Provenance,
    Quote,
    TeamRef,
)
from trust_market.settings import EngineSettings
from trust_market.snapshot import build_snapshot, check_snapshot_invariants, make_snapshot_id

T0 = datetime(2025, 9, 13, 23, 30, tzinfo=UTC)
HOME = TeamRef(team_id="lsu", name="LSU")
AWAY = TeamRef(team_id="florida", name="Florida")
CONTEST = Contest(contest_id="lsu-uf", home=HOME, away=AWAY)


def _canonical(line_type: str, value: float, minutes: int = 0) -> CanonicalQuote:
    quote = Quote(
        line_type=line_type,
        value=value,
        provider="cfbd",
        book="BetMGM",
        timestamp=T0 + timedelta(minutes=minutes),
    )
    return CanonicalQuote(quote=quote, used_closing=False)


def _selection() -> GroupSelection:
    return GroupSelection(
        provider="cfbd",
        book="BetMGM",
        spread=_canonical("spread", -4.5),
        total=_canonical("total", 47.5, minutes=15),
        moneyline=_canonical("moneyline", -190, minutes=5),
        coverage_score=111,
        latest_timestamp=T0 + timedelta(minutes=15),
        tagged_pass=False,
    )


def test_snapshot_id_is_stable_and_case_insensitive() -> None:
    left = make_snapshot_id(Provenance(provider="CFBD", book="BetMGM ", timestamp=T0))
    right = make_snapshot_id(Provenance(provider="cfbd", book="betmgm", timestamp=T0))

    assert left == right
    assert left.startswith("snap-")
    assert len(left) == len("snap-") + 20


def test_snapshot_id_changes_with_timestamp() -> None:
    first = make_snapshot_id(Provenance(provider="cfbd", book="betmgm", timestamp=T0))
    later = make_snapshot_id(
        Provenance(provider="cfbd", book="betmgm", timestamp=T0 + timedelta(seconds=1))
    )

    assert first != later


def test_check_snapshot_invariants_accepts_mirrored_lines() -> None:
    failures = check_snapshot_invariants(
        favorite_line=-4.5,
        underdog_line=4.5,
        home_price=-4.5,
        away_price=4.5,
        zero_sum_tolerance=0.5,
    )

    assert failures == []


def test_check_snapshot_invariants_reports_each_failure() -> None:
    failures = check_snapshot_invariants(
        favorite_line=0.0,
        underdog_line=1.0,
        home_price=-3.0,
        away_price=4.0,
        zero_sum_tolerance=0.5,
    )

    assert len(failures) == 3


def test_build_snapshot_uses_latest_timestamp_for_provenance() -> None:
    diagnostics = DiagnosticsCollector()
    resolution = FavoriteResolution(
        favorite=HOME, underdog=AWAY, favorite_line=-4.5, source="single_tagged"
    )

    snapshot = build_snapshot(
        contest=CONTEST,
        selection=_selection(),
        resolution=resolution,
        moneyline_favorite=-190,
        moneyline_underdog=160,
        settings=EngineSettings(_env_file=None),
        diagnostics=diagnostics,
    )

    assert snapshot.provenance.timestamp == T0 + timedelta(minutes=15)
    assert snapshot.snapshot_id == make_snapshot_id(snapshot.provenance)
    assert snapshot.favorite_is_home is True
    assert snapshot.market_spread_home() == -4.5
    assert snapshot.total == 47.5
    assert diagnostics.snapshot_id == snapshot.snapshot_id
    assert snapshot.invariant_warning is False


def test_build_snapshot_lenient_mode_flags_zero_sum_break() -> None:
    diagnostics = DiagnosticsCollector()
    resolution = FavoriteResolution(
        favorite=AWAY,
        underdog=HOME,
        favorite_line=-4.5,
        source="both_tagged",
        home_price=3.5,
        away_price=-4.5,
    )

    snapshot = build_snapshot(
        contest=CONTEST,
        selection=_selection(),
        resolution=resolution,
        moneyline_favorite=None,
        moneyline_underdog=None,
        settings=EngineSettings(_env_file=None),
        diagnostics=diagnostics,
    )

    assert snapshot.invariant_warning is True
    assert snapshot.market_spread_home() == 4.5
    assert diagnostics.has(INVARIANT_WARNING)
    record = diagnostics.mismatches[0]
    assert record.favorite_team_id == AWAY.team_id
    assert record.home_team_id == HOME.team_id
    assert "zero-sum" in record.message


def test_build_snapshot_strict_mode_raises() -> None:
    resolution = FavoriteResolution(
        favorite=AWAY,
        underdog=HOME,
        favorite_line=-4.5,
        source="both_tagged",
        home_price=3.5,
        away_price=-4.5,
    )

    with pytest.raises(InvariantViolation) as excinfo:
        build_snapshot(
            contest=CONTEST,
            selection=_selection(),
            resolution=resolution,
            moneyline_favorite=None,
            moneyline_underdog=None,
            settings=EngineSettings(_env_file=None, strict_mode=True),
            diagnostics=DiagnosticsCollector(),
        )

    assert len(excinfo.value.violations) == 1
