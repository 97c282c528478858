"""Task queue and worker pool for completion signals.

The transport that receives engine callbacks only calls
``accept_callback``: the body is validated, the job id is resolved to a
backtest id, and a ``WorkItem`` is queued. Worker threads pull items and
run the full orchestrator pass for that backtest; an item is acknowledged
(``task_done``) only after that pass, compensation included, has finished.

Usage::

    dispatcher = CompletionDispatcher(build_orchestrator(), mapping)
    dispatcher.start()
    dispatcher.accept_callback(request_body)
    ...
    dispatcher.shutdown()
"""

from __future__ import annotations

import queue
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Optional

import structlog

from backtest_pipeline.core.config import settings

from .job_mapping import JobMappingStore
from .orchestrator import CompletionOrchestrator
from .payload import CallbackPayload

logger = structlog.get_logger(__name__)

SUCCESS = "success"
FAILURE = "failure"


@dataclass(frozen=True)
class WorkItem:
    """One completion signal, already routed to its backtest."""

    backtest_id: int
    kind: str
    payload: Optional[CallbackPayload] = None
    reason: str = ""

    @classmethod
    def from_payload(cls, backtest_id: int, payload: CallbackPayload) -> "WorkItem":
        if payload.success:
            return cls(backtest_id, SUCCESS, payload=payload)
        return cls(backtest_id, FAILURE, payload=payload, reason=payload.failure_reason)


_STOP = object()


class CompletionDispatcher:
    """Queue consumer pool in front of a ``CompletionOrchestrator``.

    Args:
        orchestrator: Handles each signal.
        job_mapping: Resolves engine job ids; required by ``accept_callback``.
        workers: Worker thread count (default ``settings.completion_workers``).
    """

    def __init__(
        self,
        orchestrator: CompletionOrchestrator,
        job_mapping: Optional[JobMappingStore] = None,
        workers: Optional[int] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.job_mapping = job_mapping
        self.workers = workers or settings.completion_workers
        self._queue: queue.Queue[Any] = queue.Queue()
        self._executor: Optional[ThreadPoolExecutor] = None

    def __enter__(self) -> "CompletionDispatcher":
        self.start()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        if self._executor is not None:
            return
        self._executor = ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="completion"
        )
        for _ in range(self.workers):
            self._executor.submit(self._worker_loop)
        logger.info("dispatcher_started", workers=self.workers)

    def drain(self) -> None:
        """Block until every queued item has been fully handled."""
        self._queue.join()

    def shutdown(self, wait: bool = True) -> None:
        """Stop all workers after the items already queued."""
        if self._executor is None:
            return
        for _ in range(self.workers):
            self._queue.put(_STOP)
        self._executor.shutdown(wait=wait)
        self._executor = None
        logger.info("dispatcher_stopped")

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------
    def submit(self, item: WorkItem) -> None:
        if self._executor is None:
            self.start()
        self._queue.put(item)

    def accept_callback(self, raw: dict[str, Any] | str) -> Optional[WorkItem]:
        """Validate an engine callback body and queue it.

        Returns:
            The queued item, or None when the job id is unknown or expired.

        Raises:
            PayloadValidationError: If the body is malformed.
        """
        payload = CallbackPayload.parse(raw)
        if self.job_mapping is None:
            raise RuntimeError("accept_callback requires a job mapping store")

        backtest_id = self.job_mapping.resolve_and_clear(payload.job_id)
        if backtest_id is None:
            logger.warning("callback_unknown_job", job_id=payload.job_id)
            return None

        item = WorkItem.from_payload(backtest_id, payload)
        self.submit(item)
        logger.info(
            "callback_queued",
            job_id=payload.job_id,
            backtest_id=backtest_id,
            kind=item.kind,
        )
        return item

    # ------------------------------------------------------------------
    # Handling
    # ------------------------------------------------------------------
    def handle(self, item: WorkItem) -> None:
        """Run the orchestrator for one item in the calling thread.

        Exceptions from ``on_success`` propagate to the caller.
        """
        if item.kind == SUCCESS:
            self.orchestrator.on_success(item.backtest_id, item.payload)
        else:
            self.orchestrator.on_failure(item.backtest_id, item.reason)

    def _worker_loop(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self.handle(item)
            except Exception:
                logger.error(
                    "completion_handling_failed",
                    backtest_id=item.backtest_id,
                    exc_info=True,
                )
            finally:
                self._queue.task_done()
