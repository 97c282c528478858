"""HTTP client for submitting runs to the simulation engine.

The engine accepts a run at ``POST /backtest/start`` and answers with a job
id; the result arrives later on the configured callback URL.

Retries on: 5xx responses, httpx.ConnectError, httpx.TimeoutException.
A 4xx answer fails at once.
Backoff: exponential with jitter (initial=1s, max=30s, jitter=5s).

Usage::

    with EngineClient() as client:
        job_id = client.submit(backtest_id, request)
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from backtest_pipeline.core.config import settings
from backtest_pipeline.core.exceptions import EngineSubmissionError

START_PATH = "/backtest/start"


def _is_retryable(exc: BaseException) -> bool:
    """Transport failures and server errors are retried; client errors are not."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, (httpx.ConnectError, httpx.TimeoutException))


class HoldingRequest(BaseModel):
    code: str
    quantity: int


class EngineRunRequest(BaseModel):
    """Body of a run submission.

    ``callback_url`` defaults to ``settings.engine_callback_url`` when left
    empty.
    """

    start: datetime
    end: datetime
    holdings: list[HoldingRequest]
    rebalance_frequency: str = "daily"
    callback_url: str = ""
    rules: dict[str, Any] | None = None


class _StartResponse(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    job_id: str = Field(min_length=1)


class EngineClient:
    """Sync httpx client for the engine with tenacity retries.

    Args:
        base_url: Engine root URL (default ``settings.engine_base_url``).
        timeout_seconds: Per-request timeout.
        max_retries: Attempts before giving up.
        transport: Optional httpx transport (tests).
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        max_retries: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.engine_base_url
        self.max_retries = max_retries or settings.engine_max_retries
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds or settings.engine_timeout_seconds),
            transport=transport,
        )
        self.log = structlog.get_logger().bind(component="engine_client")

    def __enter__(self) -> "EngineClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def submit(self, backtest_id: int, request: EngineRunRequest) -> str:
        """Submit one run and return the engine's job id.

        Raises:
            EngineSubmissionError: If the engine is unreachable after retries,
                answers with an error status, or returns no job id.
        """
        body = request.model_dump(mode="json")
        if not body["callback_url"]:
            body["callback_url"] = settings.engine_callback_url
        body["backtest_id"] = backtest_id

        try:
            response = self._post_with_retry(START_PATH, body)
        except (httpx.HTTPError, RetryError) as exc:
            self.log.error(
                "engine_submit_failed", backtest_id=backtest_id, error=str(exc)
            )
            raise EngineSubmissionError(
                f"Engine rejected or did not answer run for backtest {backtest_id}"
            ) from exc

        try:
            job_id = _StartResponse.model_validate(response.json()).job_id
        except (ValueError, ValidationError) as exc:
            raise EngineSubmissionError(
                f"Engine returned no job id for backtest {backtest_id}"
            ) from exc

        self.log.info("engine_run_submitted", backtest_id=backtest_id, job_id=job_id)
        return job_id

    def _post_with_retry(self, url: str, body: dict[str, Any]) -> httpx.Response:
        for attempt in Retrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential_jitter(initial=1, max=30, jitter=5),
            reraise=True,
        ):
            with attempt:
                self.log.debug(
                    "http_request",
                    method="POST",
                    url=url,
                    attempt=attempt.retry_state.attempt_number,
                )
                response = self._client.post(url, json=body)
                response.raise_for_status()
                return response

        raise EngineSubmissionError("Request failed after retries")  # pragma: no cover
