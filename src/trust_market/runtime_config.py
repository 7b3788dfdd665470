"""Engine configuration loader (config file first, environment overrides)."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from trust_market.settings import EngineSettings

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "engine.toml"
DEFAULT_LOCAL_OVERRIDE_PATH = Path(__file__).resolve().parents[2] / "config" / "engine.local.toml"

ENV_PREFIX = "TRUST_MARKET_"

SECTION_KEYS: dict[str, tuple[str, ...]] = {
    "overlay": (
        "lambda_spread",
        "lambda_total",
        "cap_spread",
        "cap_total",
        "edge_floor",
        "large_disagreement_threshold",
        "extreme_favorite_threshold",
    ),
    "snapshot": ("strict_mode", "home_field_advantage", "zero_sum_tolerance"),
    "model": (
        "spread_abs_max",
        "total_units_min",
        "total_units_max",
        "total_plausible_min",
        "total_plausible_max",
        "implied_score_tolerance",
    ),
    "moneyline": (
        "moneyline_sigma",
        "moneyline_window_seconds",
        "moneyline_max_price",
        "moneyline_min_value",
        "moneyline_max_abs_final_spread",
    ),
}


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for key, value in overlay.items():
        existing = out.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            out[key] = _deep_merge(existing, value)
        else:
            out[key] = value
    return out


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        payload = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RuntimeError(f"failed reading engine config: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise RuntimeError(f"invalid engine config TOML: {path}") from exc
    if not isinstance(payload, dict):
        raise RuntimeError(f"engine config root must be a table: {path}")
    return payload


def _as_table(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise RuntimeError(f"engine config section [{key}] must be a table")
    return value


def _longshot_guards(raw: Any) -> tuple[tuple[int, float], ...]:
    if not isinstance(raw, list):
        raise RuntimeError("[moneyline] longshot_guards must be a list of [price, min_value]")
    guards: list[tuple[int, float]] = []
    for item in raw:
        if not isinstance(item, list) or len(item) != 2:
            raise RuntimeError(f"invalid longshot guard entry: {item!r}")
        guards.append((int(item[0]), float(item[1])))
    return tuple(guards)


def settings_values(payload: dict[str, Any]) -> dict[str, Any]:
    """Flatten config sections into `EngineSettings` keyword values."""
    values: dict[str, Any] = {}
    for section, keys in SECTION_KEYS.items():
        table = _as_table(payload, section)
        for key in keys:
            short = key.removeprefix("moneyline_") if section == "moneyline" else key
            if short in table:
                values[key] = table[short]
            elif key in table:
                values[key] = table[key]
    overlay = _as_table(payload, "overlay")
    grades = _as_table(overlay, "grade_thresholds")
    if grades:
        values["grade_thresholds"] = grades
    moneyline = _as_table(payload, "moneyline")
    if "longshot_guards" in moneyline:
        values["moneyline_longshot_guards"] = _longshot_guards(moneyline["longshot_guards"])
    ml_grades = _as_table(moneyline, "grade_thresholds")
    if ml_grades:
        values["moneyline_grade_thresholds"] = ml_grades
    return values


def _env_overridden(key: str) -> bool:
    prefix = f"{ENV_PREFIX}{key.upper()}"
    return any(name == prefix or name.startswith(f"{prefix}__") for name in os.environ)


def load_engine_settings(config_path: Path | None = None) -> EngineSettings:
    """Load settings from `config/engine.toml` plus optional local override.

    A missing default file yields pure defaults; an explicit path must exist.
    Environment variables (``TRUST_MARKET_*``) win over file values.
    """
    source = (config_path or DEFAULT_CONFIG_PATH).expanduser().resolve()
    if not source.exists():
        if config_path is not None:
            raise RuntimeError(f"engine config file not found: {source}")
        return EngineSettings()

    payload = _read_toml(source)
    if source == DEFAULT_CONFIG_PATH and DEFAULT_LOCAL_OVERRIDE_PATH.exists():
        payload = _deep_merge(payload, _read_toml(DEFAULT_LOCAL_OVERRIDE_PATH))

    values = {
        key: value for key, value in settings_values(payload).items() if not _env_overridden(key)
    }
    return EngineSettings(**values)
