"""Backtest completion pipeline: callback intake, two-phase persistence,
status transitions and report triggering.

Modules are imported directly (``backtest_pipeline.completion.orchestrator``
etc.); the analytics package depends on ``completion.payload``, so this
package does not re-export anything.
"""
