"""NarrativeGenerator -- backtest report via Claude API or plain template.

Turns an ``AnalysisBundle`` into report text. When an Anthropic API key is
configured, the rendered analysis is sent to Claude with instructions to
answer with a JSON report. Otherwise the rendered analysis itself is the
report (ASCII sections, no prose).

Unlike a best-effort fallback, an API failure is not papered over with the
template: it raises ``ReportGenerationError`` so the caller can leave the
report absent.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone

import anthropic
import structlog

from backtest_pipeline.analytics import AnalysisBundle
from backtest_pipeline.core.exceptions import ReportGenerationError
from backtest_pipeline.narrative.templates import render_backtest_brief

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# NarrativeBrief dataclass
# ---------------------------------------------------------------------------
@dataclass
class NarrativeBrief:
    """Output container for a generated backtest report.

    Attributes:
        content: The report text (model output or rendered template).
        source: ``"llm"`` or ``"template"``.
        model: Claude model identifier (None for template).
        generated_at: UTC datetime of generation.
        word_count: Number of whitespace-delimited words in *content*.
    """

    content: str
    source: str
    model: str | None
    generated_at: datetime
    word_count: int = field(init=False)

    def __post_init__(self) -> None:
        self.word_count = len(self.content.split())


# ---------------------------------------------------------------------------
# System & user prompt constants
# ---------------------------------------------------------------------------
_SYSTEM_PROMPT = (
    "You are a quantitative portfolio analyst. Write a professional "
    "investment strategy report on a completed portfolio backtest."
)

_USER_INSTRUCTIONS = (
    "Using only the data above, write a report covering: performance "
    "summary (returns and risk metrics), effectiveness of the trading "
    "activity, risk management, performance against the market and the "
    "benchmark, and concrete improvement recommendations.\n\n"
    "Answer with a single JSON object with the string fields "
    '"summary", "performance", "trading", "risk", "benchmark" and '
    '"recommendations". Do not add text outside the JSON object.'
)


# ---------------------------------------------------------------------------
# NarrativeGenerator
# ---------------------------------------------------------------------------
class NarrativeGenerator:
    """Generate a backtest report using Claude API or the plain template.

    Args:
        api_key: Anthropic API key.  If *None*, reads from
            ``settings.anthropic_api_key``.  If empty string, the template
            is used.
        model: Claude model id (default ``settings.report_model``).
        timeout_seconds: Upper bound for one API call
            (default ``settings.report_timeout_seconds``).
        client: Pre-built Anthropic client (tests).
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
        max_tokens: int | None = None,
        client: anthropic.Anthropic | None = None,
    ) -> None:
        from backtest_pipeline.core.config import settings

        if api_key is None:
            api_key = settings.anthropic_api_key

        self.model = model or settings.report_model
        self.max_tokens = max_tokens or settings.report_max_tokens
        self.timeout_seconds = timeout_seconds or settings.report_timeout_seconds
        self._has_api_key = bool(api_key) or client is not None

        if client is not None:
            self._client = client
        elif self._has_api_key:
            self._client = anthropic.Anthropic(
                api_key=api_key, timeout=self.timeout_seconds, max_retries=1
            )
        else:
            self._client = None

    @property
    def uses_llm(self) -> bool:
        return self._has_api_key

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------
    def generate(self, bundle: AnalysisBundle) -> NarrativeBrief:
        """Generate a report for one analysed run.

        Raises:
            ReportGenerationError: If the API call fails, times out, or
                returns no text.
        """
        if self._has_api_key:
            return self._generate_llm(bundle)
        return self._generate_template(bundle)

    # ------------------------------------------------------------------
    # LLM path
    # ------------------------------------------------------------------
    def _generate_llm(self, bundle: AnalysisBundle) -> NarrativeBrief:
        document = json.dumps(bundle.to_dict(), indent=2, ensure_ascii=False)
        user_message = (
            f"BACKTEST DATA:\n{render_backtest_brief(bundle)}\n\n"
            f"ANALYSIS DOCUMENT (JSON):\n{document}\n\n"
            f"{_USER_INSTRUCTIONS}"
        )

        try:
            response = self._client.messages.create(  # type: ignore[union-attr]
                model=self.model,
                max_tokens=self.max_tokens,
                system=_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": user_message}],
                timeout=self.timeout_seconds,
            )
        except anthropic.APITimeoutError as exc:
            logger.warning("report_generation_timed_out", timeout=self.timeout_seconds)
            raise ReportGenerationError(
                f"Narrative generation timed out after {self.timeout_seconds}s"
            ) from exc
        except anthropic.APIError as exc:
            logger.warning("report_generation_failed", error=str(exc))
            raise ReportGenerationError(f"Narrative generation failed: {exc}") from exc

        text = "".join(
            getattr(block, "text", "") for block in response.content or []
        ).strip()
        if not text:
            raise ReportGenerationError("Narrative generator returned no text")

        return NarrativeBrief(
            content=text,
            source="llm",
            model=self.model,
            generated_at=datetime.now(timezone.utc),
        )

    # ------------------------------------------------------------------
    # Template path
    # ------------------------------------------------------------------
    def _generate_template(self, bundle: AnalysisBundle) -> NarrativeBrief:
        content = render_backtest_brief(
            bundle, source="Template (no LLM API key configured)"
        )
        return NarrativeBrief(
            content=content,
            source="template",
            model=None,
            generated_at=datetime.now(timezone.utc),
        )
