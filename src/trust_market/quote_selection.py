"""Canonical quote selection and provider/book grouping."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import datetime

from trust_market.diagnostics import DiagnosticsCollector
from trust_market.errors import MissingMandatoryMarket
from trust_market.models import (
    LINE_TYPES,
    MONEYLINE,
    SPREAD,
    TOTAL,
    CanonicalQuote,
    GroupSelection,
    ProviderGroup,
    Quote,
)

COVERAGE_WEIGHTS = {SPREAD: 100, TOTAL: 10, MONEYLINE: 1}


def _selection_key(quote: Quote) -> tuple[bool, datetime, float, str]:
    return (
        quote.closing_value is not None,
        quote.timestamp,
        -quote.effective_value,
        quote.side or "",
    )


def select_canonical_quote(quotes: Sequence[Quote], line_type: str) -> CanonicalQuote | None:
    """Pick the single canonical quote for one line type.

    Spread candidates are narrowed to the favorite's negative price when one
    exists. Remaining ties prefer a closing value, then the latest timestamp.
    """
    candidates = [quote for quote in quotes if quote.line_type == line_type]
    if not candidates:
        return None
    if line_type == SPREAD:
        negative = [quote for quote in candidates if quote.effective_value < 0]
        if negative:
            candidates = negative
    best = max(candidates, key=_selection_key)
    return CanonicalQuote(quote=best, used_closing=best.closing_value is not None)


def group_quotes(quotes: Iterable[Quote]) -> list[ProviderGroup]:
    """Group quotes by lower-cased (provider, book), sorted by key."""
    buckets: dict[tuple[str, str], dict[str, list[Quote]]] = {}
    labels: dict[tuple[str, str], tuple[str, str]] = {}
    for quote in quotes:
        if quote.line_type not in LINE_TYPES:
            continue
        key = quote.group_key
        labels.setdefault(key, (quote.provider.strip(), quote.book.strip()))
        bucket = buckets.setdefault(key, {line_type: [] for line_type in LINE_TYPES})
        bucket[quote.line_type].append(quote)

    groups: list[ProviderGroup] = []
    for key in sorted(buckets):
        provider, book = labels[key]
        bucket = buckets[key]
        groups.append(
            ProviderGroup(
                provider=provider,
                book=book,
                spread=tuple(bucket[SPREAD]),
                total=tuple(bucket[TOTAL]),
                moneyline=tuple(bucket[MONEYLINE]),
            )
        )
    return groups


def _tagged_view(group: ProviderGroup) -> ProviderGroup | None:
    tagged_spread = tuple(quote for quote in group.spread if quote.is_tagged)
    if not tagged_spread:
        return None

    def prefer_tagged(quotes: tuple[Quote, ...]) -> tuple[Quote, ...]:
        tagged = tuple(quote for quote in quotes if quote.is_tagged)
        return tagged or quotes

    return ProviderGroup(
        provider=group.provider,
        book=group.book,
        spread=tagged_spread,
        total=prefer_tagged(group.total),
        moneyline=prefer_tagged(group.moneyline),
    )


def score_group(group: ProviderGroup, *, tagged_pass: bool = False) -> GroupSelection:
    """Select per line type and score the group by coverage and recency."""
    selected = {
        line_type: select_canonical_quote(group.quotes_for(line_type), line_type)
        for line_type in LINE_TYPES
    }
    coverage = sum(
        COVERAGE_WEIGHTS[line_type] for line_type, pick in selected.items() if pick is not None
    )
    latest = max(
        (pick.timestamp for pick in selected.values() if pick is not None),
        default=None,
    )
    return GroupSelection(
        provider=group.provider,
        book=group.book,
        spread=selected[SPREAD],
        total=selected[TOTAL],
        moneyline=selected[MONEYLINE],
        coverage_score=coverage,
        latest_timestamp=latest,
        tagged_pass=tagged_pass,
        spread_quotes=group.spread,
        moneyline_quotes=group.moneyline,
    )


def _rank(selection: GroupSelection) -> tuple[int, float]:
    stamp = selection.latest_timestamp.timestamp() if selection.latest_timestamp else float("-inf")
    return (selection.coverage_score, stamp)


def best_group(groups: Sequence[ProviderGroup]) -> GroupSelection | None:
    """Best-covered group, searching side-tagged quotes first.

    `groups` must be sorted by key; exact ties keep the first group.
    """
    tagged: list[GroupSelection] = []
    for group in groups:
        view = _tagged_view(group)
        if view is None:
            continue
        selection = score_group(view, tagged_pass=True)
        if selection.spread is not None:
            # Moneyline pairing ignores tags, so keep the full moneyline set.
            tagged.append(replace(selection, moneyline_quotes=group.moneyline))
    if tagged:
        return max(tagged, key=_rank)
    scored = [score_group(group) for group in groups]
    if not scored:
        return None
    return max(scored, key=_rank)


def _fallback(
    selection: GroupSelection,
    quotes: Sequence[Quote],
    line_type: str,
    diagnostics: DiagnosticsCollector,
) -> CanonicalQuote | None:
    pick = select_canonical_quote(quotes, line_type)
    if pick is None:
        return None
    diagnostics.provenance_mismatch(
        f"{line_type} sourced from {pick.provider}/{pick.book}; "
        f"spread group is {selection.provider}/{selection.book}",
        line_type=line_type,
        spread_provider=selection.provider,
        spread_book=selection.book,
        fallback_provider=pick.provider,
        fallback_book=pick.book,
    )
    return pick


def choose_provider_group(
    quotes: Sequence[Quote], diagnostics: DiagnosticsCollector
) -> GroupSelection:
    """Resolve the winning provider group for one contest.

    Raises `MissingMandatoryMarket` when no spread can be selected. Missing
    total or moneyline is filled from all quotes and reported as a provenance
    mismatch.
    """
    selection = best_group(group_quotes(quotes))
    if selection is None or selection.spread is None:
        raise MissingMandatoryMarket("no spread quote available for contest")

    total = selection.total
    total_fallback = False
    if total is None:
        total = _fallback(selection, quotes, TOTAL, diagnostics)
        total_fallback = total is not None

    moneyline = selection.moneyline
    moneyline_fallback = False
    if moneyline is None:
        moneyline = _fallback(selection, quotes, MONEYLINE, diagnostics)
        moneyline_fallback = moneyline is not None

    return replace(
        selection,
        total=total,
        moneyline=moneyline,
        total_fallback=total_fallback,
        moneyline_fallback=moneyline_fallback,
    )
