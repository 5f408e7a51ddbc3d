"""
Story Runner Core
=================

Core services for the autonomous story loop:
- prd_store: Requirements document loading, progress and story selection
- tool_tracker: Per-iteration tool usage counts
- events: NDJSON event protocol and emitter
- run_context: Per-run accounting state
- config: Run configuration and environment lookups
"""

from runner.config import RunConfig
from runner.events import EventEmitter
from runner.exceptions import (
    ConfigurationError,
    DocumentUnreadable,
    EventChannelError,
    RunnerError,
    RunStopped,
)
from runner.prd_store import PrdDocument, Progress, Story, load_prd, progress, select_next
from runner.run_context import RunContext
from runner.tool_tracker import ToolUsageTracker

__all__ = [
    "ConfigurationError",
    "DocumentUnreadable",
    "EventChannelError",
    "EventEmitter",
    "PrdDocument",
    "Progress",
    "RunConfig",
    "RunContext",
    "RunnerError",
    "RunStopped",
    "Story",
    "ToolUsageTracker",
    "load_prd",
    "progress",
    "select_next",
]
