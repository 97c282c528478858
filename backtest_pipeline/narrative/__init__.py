"""Narrative report package.

Exports:
    NarrativeGenerator    -- Claude API / template narrative builder.
    NarrativeBrief        -- Dataclass for generated narrative output.
    render_backtest_brief -- Plain-text rendering of an analysis bundle.
    normalize_report      -- Coerces generator output into valid JSON text.
    ReportService         -- Builds, generates and attaches a report.
"""

from backtest_pipeline.narrative.envelope import normalize_report
from backtest_pipeline.narrative.generator import NarrativeBrief, NarrativeGenerator
from backtest_pipeline.narrative.report_service import ReportService
from backtest_pipeline.narrative.templates import render_backtest_brief

__all__ = [
    "NarrativeGenerator",
    "NarrativeBrief",
    "render_backtest_brief",
    "normalize_report",
    "ReportService",
]
