"""Pydantic v2 models for the engine's completion callback.

The engine posts camelCase JSON; every model here accepts both the
camelCase wire names and the snake_case attribute names. Older engine
builds used different container names (``portfolioSnapshot``,
``resultSummary``, ``stocks``), which are accepted as aliases.

``MetricsDocument`` is the versioned, typed form of the metrics blob stored
on a result snapshot. It is built once at the persistence boundary and
parsed once on the read side.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from backtest_pipeline.core.exceptions import PayloadValidationError
from backtest_pipeline.core.utils.parsing import parse_date, parse_timestamp

METRICS_DOCUMENT_VERSION = 1


class _EngineModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------
class BacktestMetrics(_EngineModel):
    """Headline performance figures reported by the engine (percent units)."""

    total_return: float = 0.0
    annualized_return: float = 0.0
    volatility: float = 0.0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0
    var_95: float = 0.0
    var_99: float = 0.0
    cvar_95: float = 0.0
    cvar_99: float = 0.0
    win_rate: float = 0.0
    profit_loss_ratio: float = 0.0


class BenchmarkMetrics(_EngineModel):
    """Benchmark figures over the backtest window.

    Returns, volatility, alpha and daily average are percentages; the
    max/min fields are index price levels.
    """

    benchmark_total_return: Optional[float] = None
    benchmark_volatility: Optional[float] = None
    benchmark_max_price: Optional[float] = None
    benchmark_min_price: Optional[float] = None
    alpha: Optional[float] = None
    benchmark_daily_average: Optional[float] = None


class MetricsDocument(BaseModel):
    """Versioned metrics blob persisted on ``result_snapshots.metrics``."""

    version: int = METRICS_DOCUMENT_VERSION
    metrics: BacktestMetrics = Field(default_factory=BacktestMetrics)
    benchmark: Optional[BenchmarkMetrics] = None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def parse(cls, blob: dict[str, Any] | str | None) -> Optional["MetricsDocument"]:
        """Parse a stored blob; returns None when nothing is stored.

        Unversioned blobs (flat metric keys with an optional ``benchmark``
        sub-object) are read as version 1.
        """
        if blob is None:
            return None
        if isinstance(blob, str):
            return cls.model_validate_json(blob)
        if "version" in blob:
            return cls.model_validate(blob)
        flat = dict(blob)
        benchmark = flat.pop("benchmark", None)
        return cls(
            metrics=BacktestMetrics.model_validate(flat),
            benchmark=BenchmarkMetrics.model_validate(benchmark) if benchmark else None,
        )


# ---------------------------------------------------------------------------
# Callback body
# ---------------------------------------------------------------------------
class ResultSnapshotInput(_EngineModel):
    base_value: Optional[float] = None
    current_value: Optional[float] = None
    start_at: Optional[str] = None
    end_at: Optional[str] = None
    execution_time_seconds: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices(
            "executionTimeSeconds", "executionTime", "execution_time_seconds"
        ),
    )


class TradeLogInput(_EngineModel):
    """One engine trade-log event.

    ``action`` stays a raw string here; it is mapped onto ``ActionKind``
    during phase-2 persistence, where an unknown value aborts the batch.
    """

    logged_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("date", "logged_at")
    )
    action: str
    category: Optional[str] = None
    trigger_value: Optional[float] = None
    threshold_value: Optional[float] = None
    reason: Optional[str] = None
    portfolio_value: Optional[float] = None
    sold_stocks: Optional[dict[str, int]] = None
    cash_generated: Optional[float] = None

    @field_validator("logged_at", mode="before")
    @classmethod
    def _parse_logged_at(cls, value: Any) -> Optional[datetime]:
        return parse_timestamp(value)


class InstrumentDayInput(_EngineModel):
    code: str = Field(validation_alias=AliasChoices("code", "stockCode"))
    close_price: Optional[float] = None
    quantity: Optional[int] = None
    value: Optional[float] = None
    weight: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("weight", "portfolioWeight")
    )
    contribution: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("contribution", "portfolioContribution"),
    )
    daily_return: Optional[float] = None


class DailyResultInput(_EngineModel):
    as_of: date = Field(validation_alias=AliasChoices("date", "as_of"))
    per_instrument: list[InstrumentDayInput] = Field(
        default_factory=list,
        validation_alias=AliasChoices("perInstrument", "stocks", "per_instrument"),
    )
    portfolio_value: Optional[float] = None
    stock_value: Optional[float] = None
    cash_balance: Optional[float] = None
    quantities: Optional[dict[str, int]] = None

    @field_validator("as_of", mode="before")
    @classmethod
    def _trim_time(cls, value: Any) -> Any:
        parsed = parse_date(value)
        if parsed is None:
            raise ValueError(f"unparseable daily result date: {value!r}")
        return parsed

    @field_validator("per_instrument", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class MissingDataRange(_EngineModel):
    code: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("code", "stockCode")
    )
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class EngineError(_EngineModel):
    error_type: Optional[str] = None
    message: Optional[str] = None
    missing_data: list[MissingDataRange] = Field(default_factory=list)
    requested_period: Optional[str] = None
    total_stocks: Optional[int] = None
    missing_stocks_count: Optional[int] = None


class CallbackPayload(_EngineModel):
    """Typed success-or-failure signal from the engine."""

    job_id: str
    success: bool
    result_snapshot: Optional[ResultSnapshotInput] = Field(
        default=None,
        validation_alias=AliasChoices(
            "resultSnapshot", "portfolioSnapshot", "result_snapshot"
        ),
    )
    metrics: Optional[BacktestMetrics] = None
    benchmark_metrics: Optional[BenchmarkMetrics] = None
    execution_logs: list[TradeLogInput] = Field(default_factory=list)
    daily_result_summary: list[DailyResultInput] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "dailyResultSummary", "resultSummary", "daily_result_summary"
        ),
    )
    error: Optional[EngineError] = None
    error_message: Optional[str] = None
    execution_time: Optional[float] = None
    timestamp: Optional[str] = None

    @field_validator("execution_logs", "daily_result_summary", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _success_needs_snapshot(self) -> "CallbackPayload":
        if self.success and self.result_snapshot is None:
            raise ValueError("successful callback carries no result snapshot")
        return self

    @classmethod
    def parse(cls, raw: dict[str, Any] | str) -> "CallbackPayload":
        """Validate a raw callback body.

        Raises:
            PayloadValidationError: If the body is malformed.
        """
        try:
            if isinstance(raw, str):
                return cls.model_validate_json(raw)
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise PayloadValidationError(f"Malformed callback payload: {exc}") from exc

    def metrics_document(self) -> MetricsDocument:
        return MetricsDocument(
            metrics=self.metrics or BacktestMetrics(),
            benchmark=self.benchmark_metrics,
        )

    @property
    def failure_reason(self) -> str:
        if self.error is not None and self.error.message:
            if self.error.error_type:
                return f"{self.error.error_type}: {self.error.message}"
            return self.error.message
        return self.error_message or "engine reported failure"
