"""Trade activity and cash-flow aggregation over the trade log."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Optional

from backtest_pipeline.core.enums import ActionKind

from .points import TradeEvent


@dataclass(frozen=True)
class TradeActivity:
    """Aggregates over one run's trade log.

    Attributes:
        selling_count: Events whose kind is selling-like.
        counts_by_kind: Event count per kind, in declaration order, zeros
            omitted.
        selling_cash_total: Cash generated by selling-like events.
        selling_cash_average: ``selling_cash_total / selling_count``
            (0.0 without selling events).
        cash_event_count: Events of any kind with positive cash.
        cash_total: Cash generated by those events.
        largest_cash_event: First event carrying the highest cash amount.
        monthly_cash: ``YYYY-MM`` -> cash from positive-cash events, sorted.
    """

    event_count: int = 0
    selling_count: int = 0
    counts_by_kind: dict[ActionKind, int] = field(default_factory=dict)
    selling_cash_total: float = 0.0
    selling_cash_average: float = 0.0
    cash_event_count: int = 0
    cash_total: float = 0.0
    largest_cash_event: Optional[TradeEvent] = None
    monthly_cash: dict[str, float] = field(default_factory=dict)


def aggregate_trades(events: Sequence[TradeEvent]) -> TradeActivity:
    counts = {kind: 0 for kind in ActionKind}
    selling_count = 0
    selling_cash = 0.0
    cash_events = 0
    cash_total = 0.0
    largest: Optional[TradeEvent] = None
    monthly: dict[str, float] = {}

    for event in events:
        counts[event.action] += 1
        if event.action.is_selling:
            selling_count += 1
            selling_cash += event.cash

        if event.cash > 0:
            cash_events += 1
            cash_total += event.cash
            # Strict comparison keeps the first of equal maxima.
            if largest is None or event.cash > largest.cash:
                largest = event
            month = event.logged_at.strftime("%Y-%m")
            monthly[month] = monthly.get(month, 0.0) + event.cash

    return TradeActivity(
        event_count=len(events),
        selling_count=selling_count,
        counts_by_kind={kind: n for kind, n in counts.items() if n},
        selling_cash_total=selling_cash,
        selling_cash_average=selling_cash / selling_count if selling_count else 0.0,
        cash_event_count=cash_events,
        cash_total=cash_total,
        largest_cash_event=largest,
        monthly_cash=dict(sorted(monthly.items())),
    )
