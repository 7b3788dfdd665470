import pytest
from pydantic import ValidationError

from trust_market.settings import EngineSettings, GradeThresholds


def test_settings_defaults() -> None:
    settings = EngineSettings(_env_file=None)

    assert settings.lambda_spread == 0.25
    assert settings.lambda_total == 0.25
    assert settings.cap_spread == 3.0
    assert settings.edge_floor == 2.0
    assert settings.large_disagreement_threshold == 10.0
    assert settings.grade_thresholds == GradeThresholds(A=4.0, B=3.0, C=2.0)
    assert settings.extreme_favorite_threshold == 21.0
    assert settings.strict_mode is False
    assert settings.moneyline_sigma == 14.0
    assert settings.moneyline_max_price == 2000
    assert settings.moneyline_max_abs_final_spread is None


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRUST_MARKET_EDGE_FLOOR", "2.5")
    monkeypatch.setenv("TRUST_MARKET_STRICT_MODE", "true")
    monkeypatch.setenv("TRUST_MARKET_GRADE_THRESHOLDS__A", "5")

    settings = EngineSettings(_env_file=None)

    assert settings.edge_floor == 2.5
    assert settings.strict_mode is True
    assert settings.grade_thresholds.A == 5.0
    assert settings.grade_thresholds.B == 3.0


def test_settings_reject_unordered_grade_thresholds() -> None:
    with pytest.raises(ValidationError):
        EngineSettings(_env_file=None, grade_thresholds={"A": 2.0, "B": 3.0, "C": 1.0})


@pytest.mark.parametrize(
    "overrides",
    [
        {"cap_spread": 0.0},
        {"cap_total": -1.0},
        {"lambda_spread": 1.5},
        {"moneyline_sigma": 0.0},
        {"total_units_min": 130.0},
    ],
)
def test_settings_reject_invalid_values(overrides: dict[str, float]) -> None:
    with pytest.raises(ValidationError):
        EngineSettings(_env_file=None, **overrides)


@pytest.mark.parametrize(
    ("price", "expected"),
    [
        (150, 0.0),
        (500, 0.0),
        (650, 0.10),
        (1200, 0.25),
        (2000, 0.25),
        (2001, None),
    ],
)
def test_longshot_min_value(price: int, expected: float | None) -> None:
    assert EngineSettings(_env_file=None).longshot_min_value(price) == expected
