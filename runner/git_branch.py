"""
Git Branch Checkout
===================

Checks out (or creates) the PRD's working branch in the project directory.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

_logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 30


def _git(project_dir: Path, *args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", *args],
        cwd=str(project_dir),
        capture_output=True,
        text=True,
        timeout=GIT_TIMEOUT_SECONDS,
    )


def is_git_repo(project_dir: Path) -> bool:
    try:
        result = _git(project_dir, "rev-parse", "--is-inside-work-tree")
    except (OSError, subprocess.TimeoutExpired):
        return False
    return result.returncode == 0 and result.stdout.strip() == "true"


def current_branch(project_dir: Path) -> str:
    result = _git(project_dir, "branch", "--show-current")
    return result.stdout.strip() if result.returncode == 0 else ""


def ensure_on_branch(project_dir: Path, branch: str) -> bool:
    """
    Check out `branch`, creating it from HEAD if it does not exist.

    Args:
        project_dir: Git working tree
        branch: Target branch name

    Returns:
        True if the branch is checked out afterwards, False on any git failure
        (failures are logged, not raised)
    """
    if not branch:
        return False

    try:
        if not is_git_repo(project_dir):
            _logger.warning("Not a git repository, skipping branch checkout: %s", project_dir)
            return False

        if current_branch(project_dir) == branch:
            _logger.info("Already on branch %s", branch)
            return True

        exists = _git(project_dir, "show-ref", "--verify", "--quiet", f"refs/heads/{branch}")
        if exists.returncode == 0:
            result = _git(project_dir, "checkout", branch)
        else:
            result = _git(project_dir, "checkout", "-b", branch)
    except (OSError, subprocess.TimeoutExpired) as e:
        _logger.warning("git checkout of %s failed: %s", branch, e)
        return False

    if result.returncode != 0:
        _logger.warning(
            "git checkout of %s failed (exit %d): %s",
            branch, result.returncode, result.stderr.strip()[:500],
        )
        return False

    _logger.info("Checked out branch %s", branch)
    return True
