"""
Tool Usage Tracker
==================

Per-iteration tool invocation counts, fed by the PreToolUse hook.
"""

from __future__ import annotations


class ToolUsageTracker:
    """
    Counts tool invocations by tool name for the current iteration.

    reset() is called once at the start of every iteration. record() runs
    inside the agent's hook callback, so it only touches an in-memory dict.
    """

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}

    def reset(self) -> None:
        """Clear all counts."""
        self._counts.clear()

    def record(self, tool_name: str) -> None:
        """Increment the count for tool_name, starting at 1."""
        self._counts[tool_name] = self._counts.get(tool_name, 0) + 1

    def snapshot(self) -> dict[str, int]:
        """Return an independent copy of the current counts."""
        return dict(self._counts)

    def __len__(self) -> int:
        return len(self._counts)
