"""
Run Configuration
=================

Immutable per-run configuration and environment lookups.

Environment variables (a .env file in the working directory is honored):
- CLAUDE_CODE_OAUTH_TOKEN / ANTHROPIC_API_KEY / ANTHROPIC_AUTH_TOKEN: credential (one required)
- ANTHROPIC_DEFAULT_SONNET_MODEL: default model
- STORY_RUNNER_LOG_LEVEL: diagnostic log level (default INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from runner.exceptions import ConfigurationError

# Load environment variables from .env file if present
load_dotenv()

DEFAULT_MAX_ITERATIONS = 10

DEFAULT_MAX_TURNS = 1000

DEFAULT_MODEL = "claude-sonnet-4-20250514"

DEFAULT_LOG_LEVEL = "INFO"

# Any one of these satisfies the credential requirement
CREDENTIAL_ENV_VARS = [
    "CLAUDE_CODE_OAUTH_TOKEN",
    "ANTHROPIC_API_KEY",
    "ANTHROPIC_AUTH_TOKEN",
]


def get_default_model() -> str:
    """Model from ANTHROPIC_DEFAULT_SONNET_MODEL, falling back to DEFAULT_MODEL."""
    return os.getenv("ANTHROPIC_DEFAULT_SONNET_MODEL") or DEFAULT_MODEL


def get_log_level() -> str:
    return os.getenv("STORY_RUNNER_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()


def has_credentials() -> bool:
    """True if any supported credential variable is set and non-empty."""
    return any(os.getenv(var, "").strip() for var in CREDENTIAL_ENV_VARS)


def require_credentials() -> None:
    """
    Raises:
        ConfigurationError: If no credential variable is set
    """
    if not has_credentials():
        raise ConfigurationError(
            "No Claude credential found. Set one of: " + ", ".join(CREDENTIAL_ENV_VARS),
            details={"checked": list(CREDENTIAL_ENV_VARS)},
        )


@dataclass(frozen=True)
class RunConfig:
    """
    Configuration for one run. Built once at startup, never mutated.

    Attributes:
        run_id: Identifier echoed on run-level events
        project_dir: Working directory for the agent
        prd_path: Location of the requirements document
        max_iterations: Upper bound on iterations (positive)
        system_prompt_path: Optional file overriding the agent's instruction preamble
        model: Claude model name
        checkout_branch: If True, check out the PRD's branchName before iterating
        max_turns: Per-session turn limit passed to the agent
    """
    run_id: str
    project_dir: Path
    prd_path: Path
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    system_prompt_path: Optional[Path] = None
    model: str = DEFAULT_MODEL
    checkout_branch: bool = False
    max_turns: int = DEFAULT_MAX_TURNS

    def validate(self) -> None:
        """
        Check the configuration before the run starts.

        The PRD itself is not checked here: an unreadable document is a
        run failure, reported on the event channel.

        Raises:
            ConfigurationError: On the first invalid value found
        """
        if not self.run_id or not self.run_id.strip():
            raise ConfigurationError("run_id must not be empty")

        if self.max_iterations < 1:
            raise ConfigurationError(
                f"max_iterations must be a positive integer, got {self.max_iterations}",
                details={"max_iterations": self.max_iterations},
            )

        if self.max_turns < 1:
            raise ConfigurationError(
                f"max_turns must be a positive integer, got {self.max_turns}",
                details={"max_turns": self.max_turns},
            )

        if not self.project_dir.is_dir():
            raise ConfigurationError(
                f"Project directory does not exist: {self.project_dir}",
                details={"project_dir": str(self.project_dir)},
            )

        if self.system_prompt_path is not None and not self.system_prompt_path.is_file():
            raise ConfigurationError(
                f"System prompt file not found: {self.system_prompt_path}",
                details={"system_prompt_path": str(self.system_prompt_path)},
            )
