"""
Tests for the process boundary (autonomous_agent.py)
====================================================

Test Coverage:
- Required arguments and exit status 2 on configuration errors
- No events on stdout for pre-protocol failures
- Exit status 0 / 1 mapping for completed, failed and stopped runs
- SIGTERM/SIGINT handlers
"""

import json
import signal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import autonomous_agent
from runner.config import CREDENTIAL_ENV_VARS, RunConfig
from runner.exceptions import DocumentUnreadable, EventChannelError, RunStopped
from runner.run_context import RunContext


@pytest.fixture
def credentials(monkeypatch):
    for var in CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("CLAUDE_CODE_OAUTH_TOKEN", "test-token")


@pytest.fixture
def argv(tmp_path):
    prd = tmp_path / "prd.json"
    prd.write_text(json.dumps({"userStories": [{"id": "A", "title": "A", "passes": True}]}))
    return [
        "--project-dir", str(tmp_path),
        "--prd", str(prd),
        "--run-id", "run-42",
        "--max-iterations", "2",
    ]


class TestParseArgs:

    def test_defaults(self, argv):
        args = autonomous_agent.parse_args(argv[:6])
        assert args.max_iterations == 10
        assert args.system_prompt is None
        assert args.checkout_branch is False

    @pytest.mark.parametrize("missing", ["--project-dir", "--prd", "--run-id"])
    def test_required_arguments(self, argv, missing):
        index = argv.index(missing)
        trimmed = argv[:index] + argv[index + 2:]
        with pytest.raises(SystemExit) as exc_info:
            autonomous_agent.parse_args(trimmed)
        assert exc_info.value.code == 2


class TestMain:

    def test_missing_credential_exits_2_without_events(self, argv, monkeypatch, capsys):
        for var in CREDENTIAL_ENV_VARS:
            monkeypatch.delenv(var, raising=False)

        with patch("autonomous_agent.run_autonomous_agent", new_callable=AsyncMock) as mock_run:
            code = autonomous_agent.main(argv)

        assert code == autonomous_agent.EXIT_CONFIG_ERROR
        mock_run.assert_not_called()
        assert capsys.readouterr().out == ""

    def test_invalid_max_iterations_exits_2(self, argv, credentials, capsys):
        argv[argv.index("--max-iterations") + 1] = "0"
        assert autonomous_agent.main(argv) == autonomous_agent.EXIT_CONFIG_ERROR
        assert capsys.readouterr().out == ""

    def test_missing_project_dir_exits_2(self, argv, credentials, tmp_path):
        argv[argv.index("--project-dir") + 1] = str(tmp_path / "gone")
        assert autonomous_agent.main(argv) == autonomous_agent.EXIT_CONFIG_ERROR

    def test_completed_run_exits_0(self, argv, credentials):
        with patch("autonomous_agent.run_autonomous_agent", new_callable=AsyncMock) as mock_run:
            code = autonomous_agent.main(argv)

        assert code == autonomous_agent.EXIT_OK
        config = mock_run.call_args[0][0]
        assert config.run_id == "run-42"
        assert config.max_iterations == 2

    def test_failed_run_exits_1(self, argv, credentials):
        with patch(
            "autonomous_agent.run_autonomous_agent",
            new_callable=AsyncMock,
            side_effect=DocumentUnreadable("prd.json", "invalid JSON"),
        ):
            assert autonomous_agent.main(argv) == autonomous_agent.EXIT_RUN_FAILED

    def test_event_channel_failure_exits_1(self, argv, credentials):
        with patch(
            "autonomous_agent.run_autonomous_agent",
            new_callable=AsyncMock,
            side_effect=EventChannelError("stdout closed"),
        ):
            assert autonomous_agent.main(argv) == autonomous_agent.EXIT_RUN_FAILED

    def test_end_to_end_all_passing(self, argv, credentials, capsys):
        """With every story passing no agent is started; stdout carries the events."""
        assert autonomous_agent.main(argv) == autonomous_agent.EXIT_OK

        lines = capsys.readouterr().out.splitlines()
        events = [json.loads(line) for line in lines]
        assert [e["type"] for e in events] == ["run_started", "run_completed"]
        assert events[0]["run_id"] == "run-42"


class TestStopHandlers:
    """SIGTERM/SIGINT stop the run and cancel the in-flight session."""

    def _install(self, tmp_path, loop):
        ctx = RunContext(config=RunConfig(run_id="r", project_dir=tmp_path, prd_path=tmp_path / "prd.json"))
        task = MagicMock()
        with patch("autonomous_agent.asyncio.get_running_loop", return_value=loop):
            autonomous_agent.install_stop_handlers(ctx, task)
        return ctx, task

    def test_registers_sigterm_and_sigint(self, tmp_path):
        loop = MagicMock()
        self._install(tmp_path, loop)

        registered = [c.args[0] for c in loop.add_signal_handler.call_args_list]
        assert registered == [signal.SIGTERM, signal.SIGINT]

    def test_signal_requests_stop_and_cancels_once(self, tmp_path):
        loop = MagicMock()
        ctx, task = self._install(tmp_path, loop)
        handler, sig = loop.add_signal_handler.call_args_list[0].args[1:]

        handler(sig)
        handler(sig)

        assert ctx.stop_requested is True
        assert ctx.stop_reason == "Run stopped by SIGTERM"
        task.cancel.assert_called_once_with()

    def test_unsupported_loop_is_tolerated(self, tmp_path):
        loop = MagicMock()
        loop.add_signal_handler.side_effect = NotImplementedError
        ctx, task = self._install(tmp_path, loop)
        assert ctx.stop_requested is False

    def test_stopped_run_exits_1(self, argv, credentials):
        with patch(
            "autonomous_agent.run_autonomous_agent",
            new_callable=AsyncMock,
            side_effect=RunStopped("Run stopped by SIGTERM"),
        ):
            assert autonomous_agent.main(argv) == autonomous_agent.EXIT_RUN_FAILED
