"""Shared enumerations used across models and modules.

All enums use the (str, Enum) mixin pattern so their values are
serializable strings, compatible with database storage and JSON output.
"""

from enum import Enum


class BacktestStatus(str, Enum):
    """Lifecycle of a backtest as seen by other subsystems.

    CREATED -> RUNNING -> COMPLETED | FAILED. COMPLETED and FAILED are
    terminal for the completion pipeline.
    """

    CREATED = "CREATED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (BacktestStatus.COMPLETED, BacktestStatus.FAILED)


class ActionKind(str, Enum):
    """Closed set of trade-log action kinds reported by the engine."""

    BUY = "BUY"
    SELL = "SELL"
    STOP_LOSS = "STOP_LOSS"
    TAKE_PROFIT = "TAKE_PROFIT"
    REBALANCE = "REBALANCE"
    LIQUIDATION = "LIQUIDATION"

    @classmethod
    def parse(cls, raw: str | None) -> "ActionKind":
        """Map the engine's action string (case-insensitive) to a kind.

        Raises:
            UnknownActionKindError: For anything outside the closed set.
        """
        from .exceptions import UnknownActionKindError

        if raw is not None:
            try:
                return cls(raw.strip().upper())
            except ValueError:
                pass
        raise UnknownActionKindError(f"Unknown action type: {raw!r}")

    @property
    def is_selling(self) -> bool:
        """SELL, STOP_LOSS and TAKE_PROFIT turn holdings into cash."""
        match self:
            case ActionKind.SELL | ActionKind.STOP_LOSS | ActionKind.TAKE_PROFIT:
                return True
            case ActionKind.BUY | ActionKind.REBALANCE | ActionKind.LIQUIDATION:
                return False

    @property
    def label(self) -> str:
        match self:
            case ActionKind.BUY:
                return "buy"
            case ActionKind.SELL:
                return "sell"
            case ActionKind.STOP_LOSS:
                return "stop-loss"
            case ActionKind.TAKE_PROFIT:
                return "take-profit"
            case ActionKind.REBALANCE:
                return "rebalance"
            case ActionKind.LIQUIDATION:
                return "liquidation"


class HoldingKind(str, Enum):
    """Discriminator for per-day holding rows."""

    INSTRUMENT = "INSTRUMENT"
    PORTFOLIO_DAILY = "PORTFOLIO_DAILY"
