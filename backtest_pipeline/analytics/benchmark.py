"""Benchmark comparison and its interpretation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from backtest_pipeline.completion.payload import BenchmarkMetrics

OUTPERFORMED = "portfolio outperformed benchmark"
UNDERPERFORMED = "portfolio underperformed"
SIMILAR = "performance similar to benchmark"
NO_BENCHMARK_DATA = "no benchmark data"
NO_BENCHMARK_CONFIGURED = "no benchmark configured"


@dataclass(frozen=True)
class BenchmarkComparison:
    benchmark_code: Optional[str]
    metrics: Optional[BenchmarkMetrics]
    interpretation: str

    @property
    def has_data(self) -> bool:
        return self.metrics is not None


def interpret_alpha(alpha: Optional[float]) -> str:
    if alpha is not None and alpha > 0:
        return OUTPERFORMED
    if alpha is not None and alpha < 0:
        return UNDERPERFORMED
    return SIMILAR


def compare_benchmark(
    benchmark: Optional[BenchmarkMetrics],
    benchmark_code: Optional[str] = None,
) -> BenchmarkComparison:
    """Interpret ``benchmark`` for a run tracked against ``benchmark_code``.

    Passing ``benchmark_code=None`` with metrics present still interprets
    the metrics; only a blank code with no metrics reads as unconfigured.
    """
    code = benchmark_code.strip() if benchmark_code else None
    if benchmark is None:
        marker = NO_BENCHMARK_DATA if code else NO_BENCHMARK_CONFIGURED
        return BenchmarkComparison(code, None, marker)
    return BenchmarkComparison(code, benchmark, interpret_alpha(benchmark.alpha))
