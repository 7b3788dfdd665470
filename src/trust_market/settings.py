"""Engine settings for the Trust-Market overlay."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GradeThresholds(BaseModel):
    """Minimum magnitude for each letter grade."""

    A: float = 4.0
    B: float = 3.0
    C: float = 2.0

    @model_validator(mode="after")
    def _ordered(self) -> GradeThresholds:
        if not (self.A >= self.B >= self.C >= 0.0):
            raise ValueError("grade thresholds must satisfy A >= B >= C >= 0")
        return self


class EngineSettings(BaseSettings):
    """Overlay, grading and sanity-gate parameters for one evaluation."""

    model_config = SettingsConfigDict(
        env_prefix="TRUST_MARKET_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    lambda_spread: float = Field(default=0.25, ge=0.0, le=1.0)
    lambda_total: float = Field(default=0.25, ge=0.0, le=1.0)
    cap_spread: float = 3.0
    cap_total: float = 3.0
    edge_floor: float = Field(default=2.0, ge=0.0)
    large_disagreement_threshold: float = 10.0
    grade_thresholds: GradeThresholds = GradeThresholds()
    extreme_favorite_threshold: float = 21.0
    strict_mode: bool = False

    home_field_advantage: float = 2.5
    zero_sum_tolerance: float = 0.5

    spread_abs_max: float = 50.0
    total_units_min: float = 15.0
    total_units_max: float = 120.0
    total_plausible_min: float = 25.0
    total_plausible_max: float = 95.0
    implied_score_tolerance: float = 0.5

    moneyline_sigma: float = Field(default=14.0, gt=0.0)
    moneyline_window_seconds: float = 10.0
    moneyline_longshot_guards: tuple[tuple[int, float], ...] = ((500, 0.10), (1000, 0.25))
    moneyline_max_price: int = 2000
    moneyline_min_value: float = 0.0
    moneyline_grade_thresholds: GradeThresholds = GradeThresholds(A=0.10, B=0.05, C=0.0)
    moneyline_max_abs_final_spread: float | None = None

    @model_validator(mode="after")
    def _positive_caps(self) -> EngineSettings:
        if self.cap_spread <= 0 or self.cap_total <= 0:
            raise ValueError("overlay caps must be positive")
        if self.total_units_min >= self.total_units_max:
            raise ValueError("total_units_min must be below total_units_max")
        return self

    def longshot_min_value(self, price: int) -> float | None:
        """Required value for an underdog price; None when the price is never bettable."""
        if price > self.moneyline_max_price:
            return None
        required = self.moneyline_min_value
        for threshold, min_value in sorted(self.moneyline_longshot_guards):
            if price > threshold:
                required = max(required, min_value)
        return required
