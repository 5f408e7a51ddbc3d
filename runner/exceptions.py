"""
Runner Error Taxonomy
=====================

Exception classes for the story runner.

Error classes:
- ConfigurationError: Invalid arguments, missing credential, bad paths (exit 2, no events)
- DocumentUnreadable: PRD missing or malformed (run_failed, exit 1)
- EventChannelError: Event channel write failed (exit 1, no further events)
- RunStopped: Stop requested by signal (run_failed, exit 1)

Iteration-level failures are not exceptions at this level: they are recovered
inside the controller and surfaced as iteration_failed events.
"""

from typing import Any

# Maximum length of an error message carried on the event channel
MAX_ERROR_MESSAGE_LENGTH = 1000


class RunnerError(Exception):
    """
    Base class for all runner exceptions.

    Attributes:
        message: Human-readable error message
        details: Optional additional context for diagnostics
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(RunnerError):
    """Raised when the run cannot start because of its configuration."""


class DocumentUnreadable(RunnerError):
    """
    Raised when the requirements document cannot be loaded.

    Covers a missing file, an I/O error, invalid JSON, and schema violations.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(
            f"Requirements document unreadable: {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class EventChannelError(RunnerError):
    """Raised when an event cannot be written to the output channel."""


class RunStopped(RunnerError):
    """Raised when a stop was requested (SIGTERM/SIGINT) while the run was active."""


def format_error(exc: BaseException) -> str:
    """Render an exception as "<Type>: <message>" for the event channel."""
    text = f"{type(exc).__name__}: {exc}"
    return text[:MAX_ERROR_MESSAGE_LENGTH]
