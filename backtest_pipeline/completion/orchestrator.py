"""Completion orchestrator -- the backtest status state machine.

    CREATED --start--> RUNNING --on_success(persist ok)--> COMPLETED
                               --on_success(persist fails)--> FAILED
                               --on_failure--> FAILED

``on_success`` ignores backtests that are already COMPLETED or FAILED. It
runs the two persistence phases in order, compensates phase 1 when phase 2
fails, marks the backtest COMPLETED (compensating both phases if that write
fails), and then makes a best-effort attempt at the narrative report. A
report failure is logged and never changes the COMPLETED status.

Every public method binds ``backtest_id`` to the structlog context for the
duration of the call.
"""

from __future__ import annotations

from typing import Optional

import structlog

from backtest_pipeline.core.database import Stores, get_stores
from backtest_pipeline.core.exceptions import CompensationError, EngineSubmissionError
from backtest_pipeline.core.utils.logging_config import bound_backtest
from backtest_pipeline.narrative.generator import NarrativeGenerator
from backtest_pipeline.narrative.report_service import ReportService

from .batch_writer import BatchWriter
from .engine_client import EngineClient, EngineRunRequest
from .job_mapping import JobMappingStore
from .payload import CallbackPayload
from .persistence import PersistenceCoordinator
from .repositories import HistoryRepository, SnapshotRepository
from .status import BacktestStatusManager

logger = structlog.get_logger(__name__)


class CompletionOrchestrator:
    """Drives one backtest from submission to a terminal status.

    Args:
        persistence: Two-phase persistence coordinator.
        status: Status transition writer.
        report_service: Optional report builder; None disables reports.
        engine_client: Optional engine client used by ``start``.
        job_mapping: Optional job-id mapping written by ``start``.
    """

    def __init__(
        self,
        persistence: PersistenceCoordinator,
        status: BacktestStatusManager,
        report_service: Optional[ReportService] = None,
        engine_client: Optional[EngineClient] = None,
        job_mapping: Optional[JobMappingStore] = None,
    ) -> None:
        self.persistence = persistence
        self.status = status
        self.report_service = report_service
        self.engine_client = engine_client
        self.job_mapping = job_mapping

    # ------------------------------------------------------------------
    # start
    # ------------------------------------------------------------------
    def start(
        self, backtest_id: int, request: Optional[EngineRunRequest] = None
    ) -> Optional[str]:
        """Move CREATED -> RUNNING and, when configured, submit the run.

        Returns:
            The engine job id, or None when nothing was submitted.

        Raises:
            InvalidStatusTransitionError: If the backtest is not CREATED.
            EngineSubmissionError: If submission fails (status is FAILED).
        """
        with bound_backtest(backtest_id):
            self.status.mark_running(backtest_id)
            logger.info("backtest_started")

            if self.engine_client is None or request is None:
                return None

            try:
                job_id = self.engine_client.submit(backtest_id, request)
            except EngineSubmissionError:
                logger.error("backtest_submission_failed", exc_info=True)
                self._force_failed(backtest_id)
                raise

            if self.job_mapping is not None:
                self.job_mapping.save(job_id, backtest_id)
            return job_id

    # ------------------------------------------------------------------
    # on_success
    # ------------------------------------------------------------------
    def on_success(self, backtest_id: int, payload: CallbackPayload) -> Optional[int]:
        """Persist a successful run and mark it COMPLETED.

        A backtest already COMPLETED or FAILED ignores the signal and
        nothing is written.

        Returns:
            The new snapshot id, or None when the signal was ignored or
            phase 1 failed (the backtest is then FAILED and nothing was
            written).

        Raises:
            NotFoundError: If the backtest does not exist.
            Exception: Whatever made phase 2 or the COMPLETED write fail,
                after compensation and the FAILED status write.
        """
        with bound_backtest(backtest_id, job_id=payload.job_id):
            current = self.status.get_status(backtest_id)
            if current.is_terminal:
                logger.warning("late_success_ignored", status=current.value)
                return None

            try:
                snapshot_id = self.persistence.save_aggregate(backtest_id, payload)
            except Exception:
                logger.error("phase1_failed", exc_info=True)
                self._force_failed(backtest_id)
                return None

            try:
                self.persistence.save_children(snapshot_id, payload)
            except Exception:
                logger.error("phase2_failed", snapshot_id=snapshot_id, exc_info=True)
                self._compensate(backtest_id, snapshot_id)
                self._force_failed(backtest_id)
                raise

            try:
                self.status.mark_completed(backtest_id)
            except Exception:
                logger.error(
                    "completion_status_failed", snapshot_id=snapshot_id, exc_info=True
                )
                self._compensate(backtest_id, snapshot_id, children_written=True)
                self._force_failed(backtest_id)
                raise
            logger.info("backtest_completed", snapshot_id=snapshot_id)

            self._generate_report(backtest_id, snapshot_id)
            return snapshot_id

    # ------------------------------------------------------------------
    # on_failure
    # ------------------------------------------------------------------
    def on_failure(self, backtest_id: int, reason: str) -> None:
        """Record an engine-reported failure. Never raises."""
        with bound_backtest(backtest_id):
            logger.warning("backtest_failed_by_engine", reason=reason)
            self._force_failed(backtest_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _compensate(
        self, backtest_id: int, snapshot_id: int, children_written: bool = False
    ) -> None:
        try:
            if children_written:
                self.persistence.discard_children(snapshot_id)
            self.persistence.rollback(backtest_id, snapshot_id)
        except CompensationError:
            logger.critical(
                "compensation_failed",
                snapshot_id=snapshot_id,
                operator_alert=True,
                exc_info=True,
            )

    def _force_failed(self, backtest_id: int) -> None:
        try:
            self.status.mark_failed(backtest_id)
        except Exception:
            logger.error("status_update_failed", status="FAILED", exc_info=True)

    def _generate_report(self, backtest_id: int, snapshot_id: int) -> None:
        if self.report_service is None:
            return
        try:
            self.report_service.generate_and_attach(backtest_id, snapshot_id)
        except Exception:
            logger.warning(
                "report_generation_skipped", snapshot_id=snapshot_id, exc_info=True
            )


def build_orchestrator(
    stores: Optional[Stores] = None,
    generator: Optional[NarrativeGenerator] = None,
    engine_client: Optional[EngineClient] = None,
    job_mapping: Optional[JobMappingStore] = None,
) -> CompletionOrchestrator:
    """Wire an orchestrator against ``stores`` (default: configured stores)."""
    from backtest_pipeline.core.config import settings

    stores = stores or get_stores()
    return CompletionOrchestrator(
        persistence=PersistenceCoordinator(
            stores, batch_writer=BatchWriter(settings.batch_chunk_size)
        ),
        status=BacktestStatusManager(stores),
        report_service=ReportService(
            SnapshotRepository(stores), HistoryRepository(stores), generator
        ),
        engine_client=engine_client,
        job_mapping=job_mapping,
    )
