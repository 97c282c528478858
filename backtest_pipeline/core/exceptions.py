"""Exception hierarchy for the completion pipeline.

- PipelineError: base for all pipeline errors
- NotFoundError: referenced backtest or snapshot absent
- PayloadValidationError: malformed signal
  - UnknownActionKindError: trade-log action outside the closed set
- PersistenceError: a store rejected a write
  - AggregatePersistenceError: phase 1 (nothing to compensate)
  - ChildPersistenceError: phase 2 (phase 1 must be compensated)
- CompensationError: the compensating delete itself failed
- ReportGenerationError: narrative generation failed or timed out
- InvalidStatusTransitionError: a status write would break monotonicity
- EngineSubmissionError: the simulation engine refused or was unreachable
"""


class PipelineError(Exception):
    """Base exception for all completion pipeline errors."""


class NotFoundError(PipelineError):
    """Raised when a referenced backtest or snapshot does not exist."""


class PayloadValidationError(PipelineError):
    """Raised when a completion signal cannot be interpreted."""


class UnknownActionKindError(PayloadValidationError):
    """Raised when a trade-log entry carries an unrecognized action kind."""


class PersistenceError(PipelineError):
    """Raised when a store is unavailable or rejects a write."""


class AggregatePersistenceError(PersistenceError):
    """Raised when the phase-1 aggregate write fails."""


class ChildPersistenceError(PersistenceError):
    """Raised when the phase-2 bulk writes fail."""


class CompensationError(PipelineError):
    """Raised when the compensating delete of phase 1 fails.

    Orphaned data may exist; an operator must be alerted.
    """


class ReportGenerationError(PipelineError):
    """Raised when the narrative generator is unreachable, times out, or errors."""


class InvalidStatusTransitionError(PipelineError):
    """Raised when a status write would move a backtest backwards."""


class EngineSubmissionError(PipelineError):
    """Raised when a run cannot be submitted to the simulation engine."""
