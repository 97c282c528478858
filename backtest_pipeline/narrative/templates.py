"""Plain-text rendering of an ``AnalysisBundle``.

The same text serves two purposes: it is the data section of the prompt
sent to the narrative model, and it is the report itself when no API key
is configured. Output is sectioned ASCII -- no prose, no filler words.
"""

from __future__ import annotations

from datetime import datetime, timezone

from backtest_pipeline.analytics import AnalysisBundle
from backtest_pipeline.analytics.consistency import SUSTAINED_DOWNTREND, SUSTAINED_UPTREND

_RULE = "=" * 55


def _money(value: float | None) -> str:
    if value is None:
        return "n/a"
    return f"{value:,.0f}"


def _pct(value: float | None, digits: int = 2) -> str:
    if value is None:
        return "n/a"
    return f"{value:.{digits}f}%"


def render_backtest_brief(bundle: AnalysisBundle, source: str | None = None) -> str:
    """Render every section of ``bundle`` as multi-line text.

    Args:
        bundle: Analysis of one completed run.
        source: Optional header line naming where the text came from.

    Returns:
        The rendered report body.
    """
    lines: list[str] = []

    # ------------------------------------------------------------------
    # Header
    # ------------------------------------------------------------------
    lines.append(f"BACKTEST REPORT -- {bundle.title or 'untitled'}")
    if source:
        lines.append(f"Source: {source}")
    lines.append(_RULE)
    if bundle.period is not None:
        lines.append(
            f"Period: {bundle.period.first_date.isoformat()} .. "
            f"{bundle.period.last_date.isoformat()}"
        )
    if bundle.execution_seconds is not None:
        lines.append(f"Execution time: {bundle.execution_seconds:.2f}s")
    lines.append("")

    # ------------------------------------------------------------------
    # Benchmark
    # ------------------------------------------------------------------
    lines.append("BENCHMARK")
    benchmark = bundle.benchmark
    if benchmark.benchmark_code:
        lines.append(f"  Index: {benchmark.benchmark_code}")
    if benchmark.metrics is not None:
        m = benchmark.metrics
        lines.append(f"  Total return:  {_pct(m.benchmark_total_return)}")
        lines.append(f"  Volatility:    {_pct(m.benchmark_volatility)}")
        lines.append(f"  Period high:   {_money(m.benchmark_max_price)}")
        lines.append(f"  Period low:    {_money(m.benchmark_min_price)}")
        lines.append(f"  Alpha:         {_pct(m.alpha)}")
        if m.benchmark_daily_average:
            lines.append(f"  Daily average: {_pct(m.benchmark_daily_average, 3)}")
    lines.append(f"  -> {benchmark.interpretation}")
    lines.append("")

    # ------------------------------------------------------------------
    # Performance metrics
    # ------------------------------------------------------------------
    lines.append("PERFORMANCE METRICS")
    if bundle.metrics is None:
        lines.append("  No metrics reported.")
    else:
        m = bundle.metrics
        rows = [
            ("Total return", _pct(m.total_return)),
            ("Annualized return", _pct(m.annualized_return)),
            ("Volatility", _pct(m.volatility)),
            ("Sharpe ratio", f"{m.sharpe_ratio:.2f}"),
            ("Max drawdown", _pct(m.max_drawdown)),
            ("VaR 95 / 99", f"{_pct(m.var_95)} / {_pct(m.var_99)}"),
            ("CVaR 95 / 99", f"{_pct(m.cvar_95)} / {_pct(m.cvar_99)}"),
            ("Win rate", _pct(m.win_rate)),
            ("Profit/loss ratio", f"{m.profit_loss_ratio:.2f}"),
        ]
        label_w = max(len(label) for label, _ in rows)
        for label, value in rows:
            lines.append(f"  {label:<{label_w}}  {value}")
    lines.append("")

    # ------------------------------------------------------------------
    # Portfolio value trend
    # ------------------------------------------------------------------
    lines.append("PORTFOLIO VALUE")
    period = bundle.period
    if period is None:
        lines.append("  No daily data.")
    else:
        lines.append(
            f"  Start: {period.first_date.isoformat()}  {_money(period.first_total)}"
        )
        lines.append(
            f"  End:   {period.last_date.isoformat()}  {_money(period.last_total)}"
        )
        lines.append(
            f"  Return: {_pct(period.total_return_pct)} over {period.day_count} days"
        )
    lines.append("")

    allocation = bundle.allocation
    lines.append("ASSET ALLOCATION")
    if allocation is None:
        lines.append("  No allocation data.")
    else:
        for label, snap in (("Start", allocation.first), ("End", allocation.last)):
            if snap is not None:
                lines.append(
                    f"  {label}: stock {snap.stock_ratio:.1f}% ({_money(snap.stock_value)}), "
                    f"cash {snap.cash_ratio:.1f}% ({_money(snap.cash_balance)})"
                )
        if allocation.stock_change_pct is not None or allocation.cash_change_pct is not None:
            lines.append(
                f"  Change: stock {_pct(allocation.stock_change_pct)}, "
                f"cash {_pct(allocation.cash_change_pct)}"
            )
        if allocation.cash_average is None:
            lines.append("  No cash data.")
        else:
            lines.append(
                f"  Cash: min {_money(allocation.cash_min)}, "
                f"max {_money(allocation.cash_max)}, "
                f"avg {_money(allocation.cash_average)}"
            )
        if allocation.average_cash_ratio is not None:
            lines.append(f"  Average cash ratio: {allocation.average_cash_ratio:.1f}%")
    lines.append("")

    consistency = bundle.consistency
    lines.append("CONSISTENCY")
    lines.append(f"  Pattern: {consistency.description}")
    lines.append(f"  Mean daily change: {consistency.mean_daily_return * 100:.3f}%")
    if consistency.pattern in (SUSTAINED_UPTREND, SUSTAINED_DOWNTREND):
        lines.append("  Direction held throughout the period.")
    lines.append("")

    lines.append("TREND CHANGES")
    if not bundle.trend_changes:
        lines.append("  No clear trend change detected.")
    for change in bundle.trend_changes:
        lines.append(
            f"  {change.end_date.isoformat()}: turned {change.new_direction} "
            f"after {change.duration_days} days"
        )
        lines.append(
            f"    segment from {change.segment_start_date.isoformat()}: "
            f"{_money(change.segment_start_value)} -> {_money(change.segment_end_value)} "
            f"({change.segment_return * 100:.2f}%)"
        )
    lines.append("")

    lines.append("INSTRUMENTS")
    if not bundle.instruments:
        lines.append("  No per-instrument data.")
    else:
        code_w = max(len(r.code) for r in bundle.instruments)
        for r in bundle.instruments:
            lines.append(
                f"  {r.code:<{code_w}}  {r.return_pct:>8.2f}%  "
                f"({_money(r.first_value)} -> {_money(r.last_value)})"
            )
    lines.append("")

    # ------------------------------------------------------------------
    # Trading activity
    # ------------------------------------------------------------------
    trades = bundle.trades
    lines.append("TRADING ACTIVITY")
    if trades.event_count == 0:
        lines.append("  No trades recorded.")
    else:
        lines.append(f"  Events: {trades.event_count}")
        for kind, count in trades.counts_by_kind.items():
            lines.append(f"  - {kind.label}: {count}")
        if trades.selling_count:
            lines.append(
                f"  Selling: {trades.selling_count} events, "
                f"cash {_money(trades.selling_cash_total)}, "
                f"avg {_money(trades.selling_cash_average)}"
            )
        else:
            lines.append("  No selling activity.")
    lines.append("")

    lines.append("CASH FLOW")
    if trades.cash_event_count == 0:
        lines.append("  No cash-generating activity.")
    else:
        lines.append(
            f"  Generated: {_money(trades.cash_total)} "
            f"over {trades.cash_event_count} events"
        )
        largest = trades.largest_cash_event
        if largest is not None:
            lines.append(
                f"  Largest: {_money(largest.cash)} "
                f"({largest.logged_at.date().isoformat()}, {largest.action.label})"
            )
        for month, amount in trades.monthly_cash.items():
            lines.append(f"  {month}: {_money(amount)}")
    lines.append("")

    lines.append(f"Generated: {datetime.now(timezone.utc):%Y-%m-%dT%H:%M:%SZ}")
    return "\n".join(lines)
