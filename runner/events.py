"""
Run Event Protocol
==================

Event kinds and the emitter for the NDJSON event channel.

Every event is one compact JSON object on its own line, written to stdout and
flushed immediately. The monitoring service reads the runner's stdout line by
line and parses each line as one complete record, so a record must never be
split across writes.

Event kinds (the `type` key):
- run_started: run_id, total_stories, completed_stories
- run_completed: run_id, total_cost, stories_completed, duration_secs
- run_failed: run_id, error
- iteration_started: iteration, story_id, story_title
- iteration_completed: iteration, story_id, cost, duration_secs, tools
- iteration_failed: iteration, story_id, error
- agent_text: text
- agent_tool: tool, detail
- branch_created: branch
- story_completed: story_id, passed, total

Ordering:
- run_started precedes every other event of the run
- iteration_started(k) precedes agent_text/agent_tool of iteration k, which
  precede iteration_completed(k) / iteration_failed(k)
- story_completed follows the iteration_completed that produced it
- exactly one of run_completed / run_failed is the last event

Usage:
    from runner.events import EventEmitter, IterationStarted

    emitter = EventEmitter()
    emitter.emit(IterationStarted(iteration=1, story_id="US-001", story_title="Login"))
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, TextIO, Union

from runner.exceptions import EventChannelError

# Diagnostic channel (stderr via logging), distinct from the event channel
_logger = logging.getLogger(__name__)


# =============================================================================
# Event Payloads
# =============================================================================

@dataclass(frozen=True)
class _Event:
    """Base for all event payloads. Subclasses set `event_type`."""

    event_type: ClassVar[str] = ""

    def to_message(self) -> dict[str, Any]:
        """
        Convert to wire format.

        Returns:
            Dict with the `type` key first, followed by the declared fields
            in declaration order
        """
        message: dict[str, Any] = {"type": self.event_type}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, dict):
                value = dict(value)
            message[f.name] = value
        return message


@dataclass(frozen=True)
class RunStarted(_Event):
    event_type: ClassVar[str] = "run_started"

    run_id: str
    total_stories: int
    completed_stories: int


@dataclass(frozen=True)
class RunCompleted(_Event):
    event_type: ClassVar[str] = "run_completed"

    run_id: str
    total_cost: float
    stories_completed: int
    duration_secs: int


@dataclass(frozen=True)
class RunFailed(_Event):
    event_type: ClassVar[str] = "run_failed"

    run_id: str
    error: str


@dataclass(frozen=True)
class IterationStarted(_Event):
    event_type: ClassVar[str] = "iteration_started"

    iteration: int
    story_id: str
    story_title: str


@dataclass(frozen=True)
class IterationCompleted(_Event):
    """
    Emitted after an iteration's session ends.

    Attributes:
        iteration: 1-based iteration index
        story_id: Story the iteration worked on
        cost: Cost reported by the agent for this iteration (USD)
        duration_secs: Wall-clock duration of the iteration, whole seconds
        tools: Tool name -> invocation count for this iteration only
    """
    event_type: ClassVar[str] = "iteration_completed"

    iteration: int
    story_id: str
    cost: float
    duration_secs: int
    tools: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class IterationFailed(_Event):
    event_type: ClassVar[str] = "iteration_failed"

    iteration: int
    story_id: str
    error: str


@dataclass(frozen=True)
class AgentText(_Event):
    event_type: ClassVar[str] = "agent_text"

    text: str


@dataclass(frozen=True)
class AgentTool(_Event):
    event_type: ClassVar[str] = "agent_tool"

    tool: str
    detail: str


@dataclass(frozen=True)
class BranchCreated(_Event):
    event_type: ClassVar[str] = "branch_created"

    branch: str


@dataclass(frozen=True)
class StoryCompleted(_Event):
    event_type: ClassVar[str] = "story_completed"

    story_id: str
    passed: int
    total: int


RunEvent = Union[
    RunStarted,
    RunCompleted,
    RunFailed,
    IterationStarted,
    IterationCompleted,
    IterationFailed,
    AgentText,
    AgentTool,
    BranchCreated,
    StoryCompleted,
]

EVENT_TYPES = frozenset(
    cls.event_type for cls in RunEvent.__args__  # type: ignore[attr-defined]
)


def serialize_event(event: RunEvent) -> str:
    """Serialize an event to one line of compact JSON (no trailing newline)."""
    return json.dumps(event.to_message(), ensure_ascii=False, separators=(",", ":"))


# =============================================================================
# Emitter
# =============================================================================

class EventEmitter:
    """
    Writes events to the event channel, one JSON line per event.

    Each record is written with a single write() call and flushed before
    emit() returns. A lock keeps records whole if a hook callback ever emits
    from another thread.

    Attributes:
        stream: Text stream for the event channel (defaults to sys.stdout)
        count: Number of events written so far
    """

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream
        self._lock = threading.Lock()
        self.count = 0

    @property
    def stream(self) -> TextIO:
        # Resolved lazily so pytest's capsys replacement of sys.stdout is honored
        return self._stream if self._stream is not None else sys.stdout

    def emit(self, event: RunEvent) -> None:
        """
        Write one event record and flush.

        Raises:
            EventChannelError: If the write or flush fails
        """
        line = serialize_event(event) + "\n"
        with self._lock:
            try:
                self.stream.write(line)
                self.stream.flush()
            except (OSError, ValueError) as e:
                # ValueError: write to a closed file
                raise EventChannelError(
                    f"Failed to write {event.event_type} event: {e}",
                    details={"event_type": event.event_type},
                ) from e
            self.count += 1

    def log(self, message: str, *args: Any) -> None:
        """Write a human-readable line to the diagnostic channel."""
        _logger.info(message, *args)
