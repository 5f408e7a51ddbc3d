"""
Agent Session Logic
===================

Core iteration loop for working through a PRD's stories with the Claude Agent SDK.

Each iteration:
1. SELECT     - re-read the PRD and pick the next non-passing story
2. INVOKE     - reset tool counts, emit iteration_started, start a fresh client
3. STREAM     - relay agent text and tool calls as events, capture the result
4. RECONCILE  - account cost and duration, emit iteration_completed, re-read
                the PRD to see whether the agent marked the story as passing

The loop ends when no story is left or max_iterations is reached. Both are a
normal end (run_completed). Errors inside INVOKE/STREAM only fail the
iteration; errors outside it (unreadable PRD) fail the run (run_failed).
A stop request aborts the current session at its next streamed message and
also fails the run, so a stopped run is never reported as completed.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from client import ToolUseCallback, create_client
from prompts import get_story_prompt, get_system_prompt
from runner.config import RunConfig
from runner.events import (
    AgentText,
    AgentTool,
    BranchCreated,
    EventEmitter,
    IterationCompleted,
    IterationFailed,
    IterationStarted,
    RunCompleted,
    RunFailed,
    RunStarted,
    StoryCompleted,
)
from runner.exceptions import EventChannelError, RunStopped, format_error
from runner.git_branch import ensure_on_branch
from runner.prd_store import PrdDocument, Story, find_story, load_prd, progress, select_next
from runner.run_context import RunContext
from runner.tool_summary import summarize_tool_input

_logger = logging.getLogger(__name__)

# (config, system_prompt, on_tool_use) -> async context manager client
ClientFactory = Callable[[RunConfig, str, ToolUseCallback], Any]

# Result subtype reported by the agent on success
RESULT_SUBTYPE_SUCCESS = "success"


@dataclass
class SessionResult:
    """
    Outcome of one agent session.

    Attributes:
        success: True if the agent reported a successful result
        cost: Cost reported by the agent (USD), 0.0 if none
        error: Joined error text when success is False
    """
    success: bool
    cost: float = 0.0
    error: str = ""


def _result_error_text(msg: Any) -> str:
    errors = getattr(msg, "errors", None)
    if errors:
        return "; ".join(str(e) for e in errors)
    result_text = getattr(msg, "result", None)
    if result_text:
        return str(result_text)
    return f"Agent session ended with {getattr(msg, 'subtype', 'unknown')}"


async def run_agent_session(
    client: Any,
    message: str,
    emitter: EventEmitter,
    ctx: Optional[RunContext] = None,
) -> SessionResult:
    """
    Run a single agent session and relay its narration as events.

    Args:
        client: Connected Claude SDK client
        message: The prompt to send
        emitter: Event channel for agent_text events
        ctx: Run context checked before each streamed message; a stop
            request or a channel failure recorded by the tool hook ends
            the session there

    Returns:
        SessionResult built from the session's ResultMessage. A stream that
        ends without one counts as a failed session.

    Raises:
        RunStopped: If a stop was requested mid-session
        EventChannelError: If the event channel failed mid-session
    """
    await client.query(message)

    result: Optional[SessionResult] = None
    async for msg in client.receive_response():
        if ctx is not None:
            ctx.check_interrupted()
        msg_type = type(msg).__name__

        if msg_type == "AssistantMessage" and hasattr(msg, "content"):
            for block in msg.content:
                if type(block).__name__ == "TextBlock" and getattr(block, "text", ""):
                    emitter.emit(AgentText(text=block.text))

        elif msg_type == "ResultMessage":
            cost = getattr(msg, "total_cost_usd", None) or 0.0
            is_error = getattr(msg, "is_error", False)
            subtype = getattr(msg, "subtype", RESULT_SUBTYPE_SUCCESS)
            if is_error or subtype != RESULT_SUBTYPE_SUCCESS:
                result = SessionResult(
                    success=False,
                    cost=float(cost),
                    error=_result_error_text(msg),
                )
            else:
                result = SessionResult(success=True, cost=float(cost))

    if result is None:
        return SessionResult(success=False, error="Agent session ended without a result")
    return result


async def run_iteration(
    ctx: RunContext,
    prd: PrdDocument,
    story: Story,
    emitter: EventEmitter,
    client_factory: ClientFactory,
    system_prompt: str,
) -> None:
    """
    Run one INVOKE -> STREAM -> RECONCILE pass for `story`.

    Exceptions from INVOKE/STREAM are reported as iteration_failed and
    swallowed so the run can continue. Event channel failures and PRD load
    failures during RECONCILE propagate to the run. A stop request (or the
    task being cancelled after one) closes the iteration with
    iteration_failed and raises RunStopped.
    """
    config = ctx.config
    iteration = ctx.iteration

    ctx.tools.reset()
    emitter.emit(IterationStarted(iteration=iteration, story_id=story.id, story_title=story.title))
    emitter.log("Iteration %d/%d: %s - %s", iteration, config.max_iterations, story.id, story.title)
    started = time.monotonic()

    def on_tool_use(tool_name: str, tool_input: dict[str, Any]) -> None:
        ctx.tools.record(tool_name)
        try:
            emitter.emit(AgentTool(tool=tool_name, detail=summarize_tool_input(tool_name, tool_input)))
        except EventChannelError as e:
            # The SDK turns hook exceptions into hook errors, so keep it for the stream loop
            ctx.record_channel_error(e)
            raise

    try:
        prompt = get_story_prompt(story, prd, config.prd_path, config.project_dir)
        client = client_factory(config, system_prompt, on_tool_use)
        async with client:
            result = await run_agent_session(client, prompt, emitter, ctx)
        ctx.check_interrupted()
    except EventChannelError:
        raise
    except (RunStopped, asyncio.CancelledError):
        if not ctx.stop_requested:
            raise
        _logger.warning("Iteration %d (%s) aborted: %s", iteration, story.id, ctx.stop_reason)
        emitter.emit(IterationFailed(iteration=iteration, story_id=story.id, error=ctx.stop_reason))
        raise RunStopped(ctx.stop_reason) from None
    except Exception as e:
        _logger.error(
            "Iteration %d (%s) raised %s: %s",
            iteration, story.id, type(e).__name__, str(e)[:500],
        )
        emitter.emit(IterationFailed(iteration=iteration, story_id=story.id, error=format_error(e)))
        return

    if not result.success:
        _logger.warning("Iteration %d (%s) reported failure: %s", iteration, story.id, result.error[:500])
        emitter.emit(IterationFailed(iteration=iteration, story_id=story.id, error=result.error))

    # RECONCILE
    ctx.add_cost(result.cost)
    duration_secs = round(time.monotonic() - started)
    emitter.emit(IterationCompleted(
        iteration=iteration,
        story_id=story.id,
        cost=result.cost,
        duration_secs=duration_secs,
        tools=ctx.tools.snapshot(),
    ))

    reloaded = load_prd(config.prd_path)
    updated = find_story(reloaded, story.id)
    if updated is not None and updated.passes:
        ctx.stories_completed += 1
        done = progress(reloaded)
        emitter.emit(StoryCompleted(story_id=story.id, passed=done.completed, total=done.total))
        emitter.log("Story %s completed (%d/%d)", story.id, done.completed, done.total)


async def run_autonomous_agent(
    config: RunConfig,
    emitter: Optional[EventEmitter] = None,
    client_factory: ClientFactory = create_client,
    ctx: Optional[RunContext] = None,
) -> RunContext:
    """
    Run the autonomous story loop.

    Args:
        config: Validated run configuration
        emitter: Event channel (defaults to stdout)
        client_factory: Builds the agent client for each iteration
        ctx: Optional pre-built run context (lets callers request a stop)

    Returns:
        The run context with final accounting

    Raises:
        EventChannelError: If the event channel fails (no terminal event)
        RunStopped: If a stop was requested, re-raised after run_failed is emitted
        Exception: Any run-level failure, re-raised after run_failed is emitted
    """
    emitter = emitter or EventEmitter()
    ctx = ctx or RunContext(config=config)

    try:
        system_prompt = get_system_prompt(config.system_prompt_path)

        prd = load_prd(config.prd_path)
        initial = progress(prd)
        emitter.emit(RunStarted(
            run_id=config.run_id,
            total_stories=initial.total,
            completed_stories=initial.completed,
        ))
        emitter.log(
            "Run %s started: %d/%d stories passing, max %d iterations",
            config.run_id, initial.completed, initial.total, config.max_iterations,
        )

        if config.checkout_branch and prd.branch_name:
            if ensure_on_branch(config.project_dir, prd.branch_name):
                emitter.emit(BranchCreated(branch=prd.branch_name))

        for iteration in range(1, config.max_iterations + 1):
            ctx.check_interrupted()

            prd = load_prd(config.prd_path)
            story = select_next(prd)
            if story is None:
                emitter.log("All stories are passing. Nothing left to do.")
                break

            ctx.iteration = iteration
            await run_iteration(ctx, prd, story, emitter, client_factory, system_prompt)
        else:
            emitter.log("Reached max iterations (%d)", config.max_iterations)

        final = progress(load_prd(config.prd_path))
        emitter.log(
            "Run %s complete: %d/%d stories passing, %d completed this run, $%.4f",
            config.run_id, final.completed, final.total, ctx.stories_completed, ctx.total_cost,
        )
        emitter.emit(RunCompleted(
            run_id=config.run_id,
            total_cost=ctx.total_cost,
            stories_completed=ctx.stories_completed,
            duration_secs=ctx.elapsed_secs(),
        ))

    except EventChannelError:
        _logger.error("Event channel failed, aborting run %s", config.run_id)
        raise
    except asyncio.CancelledError:
        if not ctx.stop_requested:
            raise
        stopped = RunStopped(ctx.stop_reason)
        _logger.warning("Run %s stopped: %s", config.run_id, ctx.stop_reason)
        emitter.emit(RunFailed(run_id=config.run_id, error=format_error(stopped)))
        raise stopped from None
    except Exception as e:
        _logger.error("Run %s failed: %s", config.run_id, format_error(e))
        emitter.emit(RunFailed(run_id=config.run_id, error=format_error(e)))
        raise

    return ctx
