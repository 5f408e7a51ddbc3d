"""
Prompt Loading Utilities
========================

Functions for building the per-story prompt and the agent's system preamble.

Fallback chain for the story prompt template:
1. Project-specific: {project_dir}/prompts/story_prompt.md
2. Built-in: STORY_PROMPT_TEMPLATE

Templates use $name placeholders (string.Template): $story_id, $story_title,
$story_description, $acceptance_criteria, $notes, $epic, $priority, $project,
$prd_path and $story_json (the story as camelCase JSON). Unknown placeholders
are left as-is.
"""

import json
import logging
from pathlib import Path
from string import Template

from runner.prd_store import PrdDocument, Story

_logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are an autonomous software engineer working through a backlog of user "
    "stories in an existing project. Work on exactly one story per session, "
    "verify it against its acceptance criteria, and record the result in the "
    "requirements document."
)

STORY_PROMPT_TEMPLATE = """## ASSIGNED STORY: $story_id

**$story_title**

Project: $project
Epic: $epic
Priority: $priority

### Description

$story_description

### Acceptance criteria

$acceptance_criteria

### Notes from previous iterations

$notes

### Your workflow

1. Read the requirements document at `$prd_path` for overall context.
2. Implement ONLY story $story_id. Other stories will be handled in later sessions.
3. Verify every acceptance criterion (run the project's checks and tests).
4. Commit your work.
5. When all acceptance criteria are met, edit `$prd_path` and set `"passes": true`
   on story $story_id. Leave a short summary in its `"notes"` field for future sessions.
6. If you cannot finish, leave `"passes": false` and explain the blocker in `"notes"`.

Do not modify any other story in the requirements document.
"""


def get_project_prompts_dir(project_dir: Path) -> Path:
    """Get the prompts directory for a specific project."""
    return project_dir / "prompts"


def load_prompt(name: str, default: str, project_dir: Path | None = None) -> str:
    """
    Load a prompt template, preferring a project-specific override.

    Args:
        name: The prompt name (without extension), e.g. "story_prompt"
        default: Built-in template used when no override exists
        project_dir: Optional project directory for project-specific prompts

    Returns:
        The template content as a string
    """
    if project_dir:
        project_path = get_project_prompts_dir(project_dir) / f"{name}.md"
        if project_path.exists():
            try:
                return project_path.read_text(encoding="utf-8")
            except (OSError, PermissionError) as e:
                _logger.warning("Could not read %s: %s", project_path, e)
    return default


def _format_criteria(criteria: tuple[str, ...]) -> str:
    if not criteria:
        return "- (none listed)"
    return "\n".join(f"- {item}" for item in criteria)


def get_story_prompt(
    story: Story,
    prd: PrdDocument,
    prd_path: Path,
    project_dir: Path | None = None,
) -> str:
    """
    Build the prompt for one iteration working on `story`.

    Args:
        story: The story selected for this iteration
        prd: The document snapshot the story was selected from
        prd_path: Where the agent should read and update the document
        project_dir: Optional project directory for a template override

    Returns:
        The rendered prompt
    """
    template = load_prompt("story_prompt", STORY_PROMPT_TEMPLATE, project_dir)
    return Template(template).safe_substitute(
        story_id=story.id,
        story_title=story.title,
        story_description=story.description or "(no description)",
        acceptance_criteria=_format_criteria(story.acceptance_criteria),
        notes=story.notes or "(none)",
        epic=story.epic or "(none)",
        priority=story.priority,
        project=prd.project or "(unnamed)",
        prd_path=str(prd_path),
        story_json=json.dumps(story.model_dump(by_alias=True), indent=2),
    )


def get_system_prompt(system_prompt_path: Path | None = None) -> str:
    """
    Load the agent's instruction preamble.

    Args:
        system_prompt_path: Optional override file; DEFAULT_SYSTEM_PROMPT otherwise

    Raises:
        OSError: If the override file cannot be read
    """
    if system_prompt_path is None:
        return DEFAULT_SYSTEM_PROMPT
    return system_prompt_path.read_text(encoding="utf-8")
