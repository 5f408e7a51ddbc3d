#!/usr/bin/env python3
"""
Autonomous Story Runner
=======================

Works through the stories of a PRD one iteration at a time, delegating each
story to a Claude agent and streaming NDJSON events on stdout for a
monitoring service. Diagnostics go to stderr.

Example Usage:
    python autonomous_agent.py --project-dir ./my-app --prd ./prd.json --run-id r1
    python autonomous_agent.py --project-dir ./my-app --prd ./prd.json --run-id r1 \\
        --max-iterations 5 --system-prompt ./preamble.md --checkout-branch

Exit status:
    0  run completed (including "max iterations reached")
    1  run failed after startup (run_failed emitted), stopped by SIGTERM/SIGINT,
       or event channel failure
    2  configuration error (no events emitted)
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from agent import run_autonomous_agent
from runner.config import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_TURNS,
    RunConfig,
    get_default_model,
    get_log_level,
    require_credentials,
)
from runner.events import EventEmitter
from runner.exceptions import ConfigurationError, EventChannelError, RunStopped
from runner.run_context import RunContext

_logger = logging.getLogger("autonomous_agent")

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_CONFIG_ERROR = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Autonomous story runner - works through a PRD with a Claude agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Events are written to stdout as NDJSON, one event per line.\n"
            "Requires CLAUDE_CODE_OAUTH_TOKEN, ANTHROPIC_API_KEY or ANTHROPIC_AUTH_TOKEN."
        ),
    )
    parser.add_argument("--project-dir", type=Path, required=True,
                        help="Directory of the project the agent works in")
    parser.add_argument("--prd", type=Path, required=True,
                        help="Path to the PRD JSON document")
    parser.add_argument("--run-id", required=True,
                        help="Run identifier echoed on run-level events")
    parser.add_argument("--max-iterations", type=int, default=DEFAULT_MAX_ITERATIONS,
                        help=f"Maximum number of iterations (default: {DEFAULT_MAX_ITERATIONS})")
    parser.add_argument("--system-prompt", type=Path, default=None,
                        help="File overriding the agent's instruction preamble")
    parser.add_argument("--model", default=None,
                        help="Claude model (default: ANTHROPIC_DEFAULT_SONNET_MODEL or built-in)")
    parser.add_argument("--max-turns", type=int, default=DEFAULT_MAX_TURNS,
                        help=f"Per-session turn limit (default: {DEFAULT_MAX_TURNS})")
    parser.add_argument("--checkout-branch", action="store_true",
                        help="Check out the PRD's branchName before the first iteration")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> RunConfig:
    """
    Build and validate the run configuration from parsed arguments.

    Raises:
        ConfigurationError: On invalid arguments or missing credential
    """
    config = RunConfig(
        run_id=args.run_id,
        project_dir=args.project_dir,
        prd_path=args.prd,
        max_iterations=args.max_iterations,
        system_prompt_path=args.system_prompt,
        model=args.model or get_default_model(),
        checkout_branch=args.checkout_branch,
        max_turns=args.max_turns,
    )
    config.validate()
    require_credentials()
    return config


def configure_logging() -> None:
    # stdout is the event channel; all diagnostics go to stderr
    logging.basicConfig(
        stream=sys.stderr,
        level=get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


STOP_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def install_stop_handlers(ctx: RunContext, task: asyncio.Task) -> None:
    """
    Stop the run on SIGTERM/SIGINT.

    The first signal records the stop on the context and cancels the run
    task, which aborts the in-flight agent session. The controller then
    emits iteration_failed and run_failed. Later signals are ignored so the
    client can shut down.
    """
    loop = asyncio.get_running_loop()

    def on_signal(sig: signal.Signals) -> None:
        if ctx.stop_requested:
            return
        _logger.warning("Received %s, stopping run %s", sig.name, ctx.run_id)
        ctx.request_stop(f"Run stopped by {sig.name}")
        task.cancel()

    for sig in STOP_SIGNALS:
        try:
            loop.add_signal_handler(sig, on_signal, sig)
        except (NotImplementedError, RuntimeError):
            # Windows event loops do not support signal handlers
            _logger.debug("%s handler not installed", sig.name)


async def _run(config: RunConfig) -> RunContext:
    ctx = RunContext(config=config)
    install_stop_handlers(ctx, asyncio.current_task())
    return await run_autonomous_agent(config, emitter=EventEmitter(), ctx=ctx)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging()

    try:
        config = build_config(args)
    except ConfigurationError as e:
        _logger.error("Configuration error: %s", e.message)
        return EXIT_CONFIG_ERROR

    try:
        asyncio.run(_run(config))
    except EventChannelError as e:
        _logger.error("Event channel unavailable: %s", e.message)
        return EXIT_RUN_FAILED
    except RunStopped as e:
        _logger.info("%s", e.message)
        return EXIT_RUN_FAILED
    except Exception:
        # run_failed has already been emitted by the controller
        return EXIT_RUN_FAILED

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
