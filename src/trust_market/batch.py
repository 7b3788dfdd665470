"""Slate evaluation fan-out and tabular decision output."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import polars as pl

from trust_market.diagnostics import DiagnosticsCollector
from trust_market.engine import evaluate
from trust_market.errors import QuoteContractError, TrustMarketError
from trust_market.models import Contest, Decision, DiagnosticEvent, ModelPrediction, Quote
from trust_market.normalize import contest_from_payload, normalize_quotes, prediction_from_payload
from trust_market.settings import EngineSettings
from trust_market.time_utils import iso_z

logger = logging.getLogger(__name__)

DECISION_SCHEMA: list[tuple[str, Any]] = [
    ("contest_id", pl.Utf8),
    ("status", pl.Utf8),
    ("error", pl.Utf8),
    ("snapshot_id", pl.Utf8),
    ("provider", pl.Utf8),
    ("book", pl.Utf8),
    ("snapshot_timestamp", pl.Utf8),
    ("favorite_team_id", pl.Utf8),
    ("underdog_team_id", pl.Utf8),
    ("favorite_line", pl.Float64),
    ("favorite_source", pl.Utf8),
    ("market_total", pl.Float64),
    ("moneyline_favorite", pl.Int64),
    ("moneyline_underdog", pl.Int64),
    ("spread_overlay", pl.Float64),
    ("spread_side", pl.Utf8),
    ("spread_line", pl.Float64),
    ("spread_grade", pl.Utf8),
    ("spread_bet_to", pl.Float64),
    ("spread_flip", pl.Float64),
    ("spread_suppressed", pl.Boolean),
    ("total_overlay", pl.Float64),
    ("total_side", pl.Utf8),
    ("total_grade", pl.Utf8),
    ("total_bet_to", pl.Float64),
    ("total_flip", pl.Float64),
    ("moneyline_side", pl.Utf8),
    ("moneyline_price", pl.Int64),
    ("moneyline_value", pl.Float64),
    ("moneyline_grade", pl.Utf8),
    ("fair_ml_favorite", pl.Int64),
    ("fair_ml_underdog", pl.Int64),
    ("diagnostic_codes", pl.Utf8),
    ("violation_count", pl.Int64),
]


@dataclass(frozen=True)
class ContestInput:
    contest: Contest
    quotes: tuple[Quote, ...]
    prediction: ModelPrediction = field(default_factory=ModelPrediction)
    events: tuple[DiagnosticEvent, ...] = ()


@dataclass(frozen=True)
class BatchOutcome:
    contest_id: str
    decision: Decision | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.decision is not None


def contest_input_from_payload(payload: dict[str, Any]) -> ContestInput:
    """Parse one `{"contest": ..., "quotes": [...], "model": ...}` payload."""
    if not isinstance(payload, dict):
        raise QuoteContractError("contest input must be an object")
    rows = payload.get("quotes", [])
    if not isinstance(rows, list):
        raise QuoteContractError("quotes must be a list")
    contest = contest_from_payload(payload.get("contest", {}))
    dropped = DiagnosticsCollector()
    quotes = normalize_quotes(rows, dropped)
    for event in dropped.events:
        logger.warning("%s: %s", contest.contest_id, event.message)
    return ContestInput(
        contest=contest,
        quotes=tuple(quotes),
        prediction=prediction_from_payload(payload.get("model")),
        events=tuple(dropped.events),
    )


def load_contest_inputs(path: Path) -> list[ContestInput]:
    """Read a JSONL slate, one contest input per non-blank line."""
    inputs: list[ContestInput] = []
    for number, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        raw = line.strip()
        if not raw:
            continue
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise QuoteContractError(f"{path}:{number}: invalid JSON") from exc
        inputs.append(contest_input_from_payload(payload))
    return inputs


def _evaluate_one(item: ContestInput, settings: EngineSettings) -> BatchOutcome:
    contest_id = item.contest.contest_id
    try:
        decision = evaluate(
            item.contest, item.quotes, item.prediction, settings, input_events=item.events
        )
    except TrustMarketError as exc:
        return BatchOutcome(contest_id=contest_id, error=f"{type(exc).__name__}: {exc}")
    return BatchOutcome(contest_id=contest_id, decision=decision)


def evaluate_batch(
    inputs: Sequence[ContestInput],
    settings: EngineSettings | None = None,
    *,
    max_workers: int = 4,
) -> list[BatchOutcome]:
    """Evaluate contests concurrently; outcomes come back in input order."""
    active = settings if settings is not None else EngineSettings()
    if not inputs:
        return []
    results: list[BatchOutcome | None] = [None] * len(inputs)
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = {
            executor.submit(_evaluate_one, item, active): index for index, item in enumerate(inputs)
        }
        for future in as_completed(futures):
            results[futures[future]] = future.result()
    outcomes = [outcome for outcome in results if outcome is not None]
    failed = sum(1 for outcome in outcomes if not outcome.ok)
    logger.info("evaluated %d contests (%d failed)", len(outcomes), failed)
    return outcomes


def decision_row(decision: Decision) -> dict[str, Any]:
    """Flatten one decision into a single table row."""
    snapshot = decision.snapshot
    spread = decision.spread
    total = decision.total
    moneyline = decision.moneyline
    return {
        "contest_id": decision.contest.contest_id,
        "status": "ok",
        "error": None,
        "snapshot_id": snapshot.snapshot_id,
        "provider": snapshot.provenance.provider,
        "book": snapshot.provenance.book,
        "snapshot_timestamp": iso_z(snapshot.provenance.timestamp),
        "favorite_team_id": snapshot.favorite.team_id,
        "underdog_team_id": snapshot.underdog.team_id,
        "favorite_line": snapshot.favorite_line,
        "favorite_source": snapshot.favorite_source,
        "market_total": snapshot.total,
        "moneyline_favorite": snapshot.moneyline_favorite,
        "moneyline_underdog": snapshot.moneyline_underdog,
        "spread_overlay": decision.spread_overlay.value_used,
        "spread_side": spread.side,
        "spread_line": spread.line,
        "spread_grade": spread.grade,
        "spread_bet_to": spread.bet_to,
        "spread_flip": spread.flip,
        "spread_suppressed": spread.suppressed,
        "total_overlay": decision.total_overlay.value_used,
        "total_side": total.side,
        "total_grade": total.grade,
        "total_bet_to": total.bet_to,
        "total_flip": total.flip,
        "moneyline_side": moneyline.side,
        "moneyline_price": moneyline.price,
        "moneyline_value": moneyline.value,
        "moneyline_grade": moneyline.grade,
        "fair_ml_favorite": moneyline.fair_ml_favorite,
        "fair_ml_underdog": moneyline.fair_ml_underdog,
        "diagnostic_codes": ",".join(sorted(set(decision.diagnostics.codes()))),
        "violation_count": len(decision.diagnostics.violations),
    }


def _enforce_schema(frame: pl.DataFrame) -> pl.DataFrame:
    working = frame
    for name, dtype in DECISION_SCHEMA:
        if name not in working.columns:
            working = working.with_columns(pl.lit(None).cast(dtype).alias(name))
        else:
            working = working.with_columns(pl.col(name).cast(dtype, strict=False))
    return working.select([name for name, _ in DECISION_SCHEMA])


def decisions_frame(outcomes: Sequence[BatchOutcome]) -> pl.DataFrame:
    rows: list[dict[str, Any]] = []
    for outcome in outcomes:
        if outcome.decision is not None:
            rows.append(decision_row(outcome.decision))
        else:
            rows.append(
                {"contest_id": outcome.contest_id, "status": "error", "error": outcome.error}
            )
    if not rows:
        return pl.DataFrame(schema=dict(DECISION_SCHEMA))
    frame = _enforce_schema(pl.DataFrame(rows, infer_schema_length=None))
    return frame.sort("contest_id")


def write_decisions(frame: pl.DataFrame, path: Path) -> Path:
    """Write parquet (zstd) or CSV depending on the suffix."""
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()
    if suffix == ".parquet":
        frame.write_parquet(path, compression="zstd")
    elif suffix == ".csv":
        frame.write_csv(path)
    else:
        raise ValueError(f"unsupported output format: {path.suffix or '(none)'}")
    return path
