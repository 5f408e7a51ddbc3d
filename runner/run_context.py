"""
Run Context
===========

Accounting state owned by the controller for the lifetime of one run.

Passed explicitly through the controller rather than held in module globals,
so several runs can execute in one process (tests do this).
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from runner.config import RunConfig
from runner.exceptions import EventChannelError, RunStopped
from runner.tool_tracker import ToolUsageTracker

DEFAULT_STOP_REASON = "Run stopped"


@dataclass
class RunContext:
    """
    Mutable per-run state.

    Attributes:
        config: The run's immutable configuration
        total_cost: Running sum of per-iteration costs (USD)
        stories_completed: Stories flipped to passing during this run
        iteration: Current 1-based iteration index (0 before the first)
        started_at: time.monotonic() at run start
        tools: Tool usage tracker for the current iteration
    """
    config: RunConfig
    total_cost: float = 0.0
    stories_completed: int = 0
    iteration: int = 0
    started_at: float = field(default_factory=lambda: time.monotonic())
    tools: ToolUsageTracker = field(default_factory=ToolUsageTracker)
    _stop_reason: Optional[str] = field(default=None, repr=False)
    _channel_error: Optional[EventChannelError] = field(default=None, repr=False)

    @property
    def run_id(self) -> str:
        return self.config.run_id

    def add_cost(self, cost: float) -> None:
        self.total_cost += cost

    def elapsed_secs(self) -> int:
        """Whole seconds since the run started."""
        return round(time.monotonic() - self.started_at)

    def request_stop(self, reason: str = DEFAULT_STOP_REASON) -> None:
        """
        Ask the run to stop.

        The controller aborts the current agent session at its next streamed
        message and ends the run with run_failed. The first reason wins.
        """
        if self._stop_reason is None:
            self._stop_reason = reason

    @property
    def stop_requested(self) -> bool:
        return self._stop_reason is not None

    @property
    def stop_reason(self) -> Optional[str]:
        return self._stop_reason

    def record_channel_error(self, error: EventChannelError) -> None:
        """Remember an event channel failure raised where it cannot propagate (SDK hooks)."""
        if self._channel_error is None:
            self._channel_error = error

    def check_interrupted(self) -> None:
        """
        Raise if the run must not continue.

        Raises:
            EventChannelError: A recorded event channel failure
            RunStopped: A stop was requested
        """
        if self._channel_error is not None:
            raise self._channel_error
        if self._stop_reason is not None:
            raise RunStopped(self._stop_reason)
