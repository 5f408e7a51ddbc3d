"""
Tests for branch checkout (git calls are mocked)
"""

import subprocess
from unittest.mock import patch

from runner.git_branch import ensure_on_branch, is_git_repo


def _completed(args, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=args, returncode=returncode, stdout=stdout, stderr=stderr)


class FakeGit:
    """Answers git subcommands from a table and records the calls."""

    def __init__(self, inside=True, current="main", existing=(), checkout_rc=0):
        self.inside = inside
        self.current = current
        self.existing = set(existing)
        self.checkout_rc = checkout_rc
        self.calls = []

    def __call__(self, cmd, **kwargs):
        args = cmd[1:]
        self.calls.append(args)
        if args[0] == "rev-parse":
            return _completed(cmd, 0 if self.inside else 128, "true\n" if self.inside else "")
        if args[0] == "branch":
            return _completed(cmd, stdout=self.current + "\n")
        if args[0] == "show-ref":
            ref = args[-1].removeprefix("refs/heads/")
            return _completed(cmd, 0 if ref in self.existing else 1)
        if args[0] == "checkout":
            return _completed(cmd, self.checkout_rc, stderr="error: pathspec" if self.checkout_rc else "")
        raise AssertionError(f"unexpected git call: {cmd}")


class TestEnsureOnBranch:

    def test_creates_missing_branch(self, tmp_path):
        git = FakeGit()
        with patch("runner.git_branch.subprocess.run", side_effect=git):
            assert ensure_on_branch(tmp_path, "agent/acme") is True
        assert ["checkout", "-b", "agent/acme"] in git.calls

    def test_checks_out_existing_branch(self, tmp_path):
        git = FakeGit(existing={"agent/acme"})
        with patch("runner.git_branch.subprocess.run", side_effect=git):
            assert ensure_on_branch(tmp_path, "agent/acme") is True
        assert ["checkout", "agent/acme"] in git.calls

    def test_already_on_branch(self, tmp_path):
        git = FakeGit(current="agent/acme")
        with patch("runner.git_branch.subprocess.run", side_effect=git):
            assert ensure_on_branch(tmp_path, "agent/acme") is True
        assert not any(call[0] == "checkout" for call in git.calls)

    def test_not_a_repository(self, tmp_path):
        git = FakeGit(inside=False)
        with patch("runner.git_branch.subprocess.run", side_effect=git):
            assert ensure_on_branch(tmp_path, "agent/acme") is False

    def test_checkout_failure_returns_false(self, tmp_path, caplog):
        git = FakeGit(checkout_rc=1)
        with patch("runner.git_branch.subprocess.run", side_effect=git):
            assert ensure_on_branch(tmp_path, "agent/acme") is False
        assert "git checkout of agent/acme failed" in caplog.text

    def test_git_missing(self, tmp_path):
        with patch("runner.git_branch.subprocess.run", side_effect=FileNotFoundError("git")):
            assert is_git_repo(tmp_path) is False
            assert ensure_on_branch(tmp_path, "agent/acme") is False

    def test_empty_branch_name(self, tmp_path):
        with patch("runner.git_branch.subprocess.run") as mock_run:
            assert ensure_on_branch(tmp_path, "") is False
        mock_run.assert_not_called()
