"""
Claude SDK Client Configuration
===============================

Functions for creating and configuring the Claude Agent SDK client used for
one iteration.
"""

import logging
import os
import shutil
from typing import Any, Callable

from claude_agent_sdk import ClaudeAgentOptions, ClaudeSDKClient
from claude_agent_sdk.types import HookContext, HookInput, HookMatcher, SyncHookJSONOutput

from runner.config import RunConfig

_logger = logging.getLogger(__name__)

# Callback invoked for every tool call: (tool_name, tool_input)
ToolUseCallback = Callable[[str, dict[str, Any]], None]

# Environment variables to pass through to Claude CLI for API configuration
# These allow using alternative API endpoints without affecting the user's
# global Claude Code settings
API_ENV_VARS = [
    "ANTHROPIC_BASE_URL",              # Custom API endpoint
    "ANTHROPIC_AUTH_TOKEN",            # API authentication token
    "ANTHROPIC_API_KEY",               # API key
    "CLAUDE_CODE_OAUTH_TOKEN",         # OAuth token handed over by the monitoring service
    "API_TIMEOUT_MS",                  # Request timeout in milliseconds
    "ANTHROPIC_DEFAULT_SONNET_MODEL",  # Model override for Sonnet
    "ANTHROPIC_DEFAULT_OPUS_MODEL",    # Model override for Opus
    "ANTHROPIC_DEFAULT_HAIKU_MODEL",   # Model override for Haiku
]

# Built-in tools granted to every iteration
BUILTIN_TOOLS = [
    "Read",
    "Write",
    "Edit",
    "MultiEdit",
    "Glob",
    "Grep",
    "Bash",
    "Task",
    "TodoWrite",
    "WebFetch",
    "WebSearch",
]


def get_sdk_env() -> dict[str, str]:
    """Collect the API configuration overrides present in the environment."""
    sdk_env = {}
    for var in API_ENV_VARS:
        value = os.getenv(var)
        if value:
            sdk_env[var] = value
    return sdk_env


def create_client(
    config: RunConfig,
    system_prompt: str,
    on_tool_use: ToolUseCallback,
) -> ClaudeSDKClient:
    """
    Create a Claude Agent SDK client for one iteration.

    Args:
        config: Run configuration (project dir, model, turn limit)
        system_prompt: Instruction preamble for the agent
        on_tool_use: Called with (tool_name, tool_input) before every tool call

    Returns:
        Configured ClaudeSDKClient (from claude_agent_sdk)

    The agent runs unattended: all built-in tools are allowed and permission
    prompts are bypassed. cwd is the project directory.
    """
    project_dir = config.project_dir.resolve()

    # Use system Claude CLI instead of bundled one when available
    system_cli = shutil.which("claude")
    if system_cli:
        _logger.debug("Using system CLI: %s", system_cli)

    sdk_env = get_sdk_env()
    if sdk_env:
        _logger.debug("API overrides: %s", ", ".join(sorted(sdk_env.keys())))

    # PreToolUse hook with no matcher fires for every tool. It only records
    # the call; returning an empty output lets the tool proceed.
    async def tool_use_hook(
        input_data: HookInput,
        tool_use_id: str | None,
        context: HookContext,
    ) -> SyncHookJSONOutput:
        tool_name = input_data.get("tool_name", "unknown")
        tool_input = input_data.get("tool_input") or {}
        on_tool_use(tool_name, tool_input)
        return SyncHookJSONOutput()

    return ClaudeSDKClient(
        options=ClaudeAgentOptions(
            model=config.model,
            cli_path=system_cli,
            system_prompt=system_prompt,
            setting_sources=["project"],  # Enable skills, commands, and CLAUDE.md from project dir
            allowed_tools=list(BUILTIN_TOOLS),
            permission_mode="bypassPermissions",
            hooks={
                "PreToolUse": [
                    HookMatcher(hooks=[tool_use_hook]),
                ],
            },
            max_turns=config.max_turns,
            cwd=str(project_dir),
            env=sdk_env,
        )
    )
