"""
Tool Call Summaries
===================

Derives the short `detail` string shown next to each agent_tool event.

Examples:
    summarize_tool_input("Bash", {"command": "npm test"})        -> "npm test"
    summarize_tool_input("Edit", {"file_path": "/p/src/app.py"})  -> "/p/src/app.py"
    summarize_tool_input("Grep", {"pattern": "TODO", "path": "src"}) -> "TODO in src"
"""

from __future__ import annotations

import json
from typing import Any

# Maximum length for a detail string (with ellipsis)
DETAIL_MAX_LENGTH = 120

ELLIPSIS = "..."

# Tool name -> input key holding the most descriptive value
PRIMARY_INPUT_KEYS: dict[str, str] = {
    "Bash": "command",
    "Read": "file_path",
    "Write": "file_path",
    "Edit": "file_path",
    "MultiEdit": "file_path",
    "NotebookEdit": "notebook_path",
    "Glob": "pattern",
    "Grep": "pattern",
    "WebFetch": "url",
    "WebSearch": "query",
    "Task": "description",
    "TodoWrite": "todos",
}


def truncate(text: str, max_length: int = DETAIL_MAX_LENGTH) -> str:
    """Collapse whitespace onto one line and truncate with an ellipsis."""
    text = " ".join(text.split())
    if len(text) <= max_length:
        return text
    return text[: max_length - len(ELLIPSIS)].rstrip() + ELLIPSIS


def summarize_tool_input(tool_name: str, tool_input: dict[str, Any] | None) -> str:
    """
    Build a one-line human-readable summary of a tool call.

    Args:
        tool_name: Name of the invoked tool
        tool_input: Tool arguments as passed by the agent

    Returns:
        Detail string, empty when there is nothing useful to show
    """
    if not tool_input:
        return ""

    key = PRIMARY_INPUT_KEYS.get(tool_name)

    if tool_name == "TodoWrite" and isinstance(tool_input.get("todos"), list):
        return f"{len(tool_input['todos'])} todos"

    if tool_name in ("Glob", "Grep") and tool_input.get("path"):
        return truncate(f"{tool_input.get(key, '')} in {tool_input['path']}")

    if key and tool_input.get(key):
        return truncate(str(tool_input[key]))

    # Unknown or MCP tool: show the compact argument JSON
    try:
        rendered = json.dumps(tool_input, ensure_ascii=False, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        rendered = str(tool_input)
    return truncate(rendered)
