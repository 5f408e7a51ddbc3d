"""
Requirements Document Store
===========================

Loads the PRD (requirements document) from disk and selects the next story.

The document is owned by the agent: it rewrites prd.json between (and during)
iterations to flip a story's `passes` flag and leave notes. This module never
writes it and never caches it. Every call to load_prd() returns a fresh,
immutable snapshot of whatever is on disk at that moment.

On-disk format (camelCase keys, stories under `userStories` or `stories`):

    {
        "project": "Acme",
        "branchName": "agent/acme-onboarding",
        "userStories": [
            {"id": "US-001", "title": "...", "priority": 10, "passes": false, ...}
        ]
    }

Selection policy:
    Among stories with passes == false, the highest `priority` value wins;
    ties go to the story that appears first in the document.

Usage:
    from runner.prd_store import load_prd, progress, select_next

    prd = load_prd(Path("prd.json"))
    story = select_next(prd)
    done = progress(prd)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import NamedTuple, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from runner.exceptions import DocumentUnreadable

_logger = logging.getLogger(__name__)


class Story(BaseModel):
    """One backlog requirement with acceptance criteria and a completion flag."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    title: str
    description: str = ""
    acceptance_criteria: tuple[str, ...] = Field(
        default=(),
        alias="acceptanceCriteria",
    )
    epic: str = ""
    priority: int = 0
    passes: bool = False
    notes: str = ""


class PrdDocument(BaseModel):
    """Immutable snapshot of the requirements document."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    project: str = ""
    source_document: str = Field(default="", alias="sourceDocument")
    branch_name: str = Field(default="", alias="branchName")
    description: str = ""
    stories: tuple[Story, ...] = Field(
        default=(),
        validation_alias=AliasChoices("userStories", "stories"),
    )


class Progress(NamedTuple):
    """Completion counts for a document. completed <= total always holds."""

    completed: int
    total: int


def load_prd(path: Path | str) -> PrdDocument:
    """
    Load the requirements document from disk.

    Args:
        path: Location of the persisted document (JSON)

    Returns:
        A fresh immutable PrdDocument snapshot

    Raises:
        DocumentUnreadable: If the file is missing, unreadable, not JSON,
            or does not match the document schema
    """
    prd_path = Path(path)
    try:
        raw = prd_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise DocumentUnreadable(str(prd_path), "file not found") from None
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentUnreadable(str(prd_path), f"{type(e).__name__}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DocumentUnreadable(str(prd_path), f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DocumentUnreadable(
            str(prd_path),
            f"expected a JSON object, got {type(data).__name__}",
        )

    try:
        prd = PrdDocument.model_validate(data)
    except ValidationError as e:
        raise DocumentUnreadable(
            str(prd_path),
            f"schema validation failed: {e.error_count()} error(s): {e.errors()[0]['msg']}",
        ) from e

    _logger.debug(
        "Loaded PRD %s: project=%r, %d stories",
        prd_path, prd.project, len(prd.stories),
    )
    return prd


def progress(prd: PrdDocument) -> Progress:
    """Count passing stories against the total."""
    completed = sum(1 for story in prd.stories if story.passes)
    return Progress(completed=completed, total=len(prd.stories))


def select_next(prd: PrdDocument) -> Optional[Story]:
    """
    Pick the next story to work on.

    Returns the non-passing story with the highest priority, earliest in
    document order on ties, or None when every story passes.
    """
    best: Optional[Story] = None
    for story in prd.stories:
        if story.passes:
            continue
        # Strict comparison keeps the earliest story on equal priority
        if best is None or story.priority > best.priority:
            best = story
    return best


def find_story(prd: PrdDocument, story_id: str) -> Optional[Story]:
    """Return the first story with the given id (ids are not enforced unique)."""
    for story in prd.stories:
        if story.id == story_id:
            return story
    return None
