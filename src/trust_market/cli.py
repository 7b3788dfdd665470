"""CLI entrypoint for trust-market."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from trust_market.batch import (
    contest_input_from_payload,
    decisions_frame,
    evaluate_batch,
    load_contest_inputs,
    write_decisions,
)
from trust_market.engine import decision_to_dict, evaluate
from trust_market.errors import TrustMarketError
from trust_market.runtime_config import load_engine_settings
from trust_market.settings import EngineSettings


class CLIError(RuntimeError):
    """User-facing CLI error."""


def _settings(args: argparse.Namespace) -> EngineSettings:
    config_path = Path(args.config).expanduser() if args.config else None
    settings = load_engine_settings(config_path)
    if args.strict:
        settings = settings.model_copy(update={"strict_mode": True})
    return settings


def _cmd_evaluate(args: argparse.Namespace) -> int:
    path = Path(args.input).expanduser()
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise CLIError(f"invalid JSON in {path}: {exc}") from exc
    item = contest_input_from_payload(payload)
    decision = evaluate(
        item.contest,
        item.quotes,
        item.prediction,
        _settings(args),
        input_events=item.events,
    )
    print(json.dumps(decision_to_dict(decision), indent=2, sort_keys=True))
    return 0


def _cmd_batch(args: argparse.Namespace) -> int:
    inputs = load_contest_inputs(Path(args.input).expanduser())
    if args.workers < 1:
        raise CLIError("--workers must be >= 1")
    outcomes = evaluate_batch(inputs, _settings(args), max_workers=args.workers)
    output = write_decisions(decisions_frame(outcomes), Path(args.output).expanduser())
    failed = [outcome for outcome in outcomes if not outcome.ok]
    for outcome in failed:
        print(f"{outcome.contest_id}: {outcome.error}", file=sys.stderr)
    print(f"decisions={len(outcomes)} failed={len(failed)} output={output}")
    return 1 if failed else 0


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default="", help="Engine TOML config path")
    parser.add_argument("--strict", action="store_true", help="Abort on invariant violations")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trust-market")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for engine diagnostics",
    )
    subparsers = parser.add_subparsers(dest="command")

    evaluate_parser = subparsers.add_parser("evaluate", help="Evaluate one contest JSON file")
    evaluate_parser.add_argument("--input", required=True, help="Contest JSON path")
    _add_common(evaluate_parser)
    evaluate_parser.set_defaults(func=_cmd_evaluate)

    batch_parser = subparsers.add_parser("batch", help="Evaluate a JSONL slate")
    batch_parser.add_argument("--input", required=True, help="Slate JSONL path")
    batch_parser.add_argument("--output", required=True, help="Output .parquet or .csv path")
    batch_parser.add_argument("--workers", type=int, default=4)
    _add_common(batch_parser)
    batch_parser.set_defaults(func=_cmd_batch)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return 0
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return int(func(args))
    except (CLIError, TrustMarketError, RuntimeError, FileNotFoundError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
