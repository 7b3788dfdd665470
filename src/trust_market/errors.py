"""Errors raised while evaluating a contest."""

from __future__ import annotations

from typing import Any


class TrustMarketError(Exception):
    """Base error for engine evaluation."""


class MissingMandatoryMarket(TrustMarketError):
    """Raised when no spread quote is available for the contest."""


class UnresolvableFavorite(TrustMarketError):
    """Raised when no tag, rating or model signal can identify the favorite."""


class InvariantViolation(TrustMarketError):
    """Raised in strict mode when a snapshot or decision invariant is broken."""

    def __init__(self, message: str, violations: tuple[Any, ...] = ()) -> None:
        super().__init__(message)
        self.violations = violations


class QuoteContractError(ValueError):
    """Raised when raw quote or payload rows fail validation."""
