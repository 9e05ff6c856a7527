"""
Story assembly and rendering.

assemble() is a pure composition of title, acceptance criteria, tasks and
aggregated facts into a Draft StoryArtifact. It refuses any fact that is
neither cited nor the no-guidance sentinel, so an uncited sentence can
never reach a story.

render_story_markdown() renders the artifact into the story template;
every template section is always present, with a placeholder when empty.
"""

import logging
from typing import Iterable, Optional

from storyprep.errors import UncitedFactError
from storyprep.lib.constants import NO_GUIDANCE_SENTINEL
from storyprep.lib.templates import StoryTemplate
from storyprep.story.models import (
    CATEGORY_ORDER,
    CitedFact,
    StoryArtifact,
    StoryRef,
    StoryStatus,
    StoryTypeClassification,
    Task,
)

logger = logging.getLogger(__name__)

TESTING_DOCUMENT = "testing-conventions"


def check_facts(facts: Iterable[CitedFact]) -> None:
    """Raise UncitedFactError for the first fact that is neither cited nor the sentinel."""
    for fact in facts:
        if not fact.is_well_formed:
            raise UncitedFactError(
                f"{fact.category.value} fact has no source and is not the sentinel: {fact.text[:60]!r}"
            )


def group_facts(facts: Iterable[CitedFact]) -> list[CitedFact]:
    """Order facts by category render order, keeping order within a category."""
    facts = list(facts)
    return [f for category in CATEGORY_ORDER for f in facts if f.category == category]


def default_tasks(acceptance_criteria: list[str]) -> list[Task]:
    """One task per criterion, plus a testing task covering all of them."""
    tasks = [Task(description=f"Implement: {ac}", ac_refs=[i]) for i, ac in enumerate(acceptance_criteria, 1)]
    if acceptance_criteria:
        tasks.append(Task(
            description="Write tests covering the acceptance criteria",
            ac_refs=list(range(1, len(acceptance_criteria) + 1)),
        ))
    return tasks


def assemble(
    story_ref: StoryRef,
    title: str,
    acceptance_criteria: list[str],
    tasks: list[Task],
    facts: list[CitedFact],
    statement: str = "",
    classifications: Optional[list[StoryTypeClassification]] = None,
    created: str = "",
) -> StoryArtifact:
    """Compose a Draft story.

    Raises:
        UncitedFactError: if a fact has no source and is not the sentinel
    """
    facts = list(facts)
    check_facts(facts)
    ordered = group_facts(facts)

    if classifications is None:
        present = {f.category for f in ordered}
        classifications = [c for c in CATEGORY_ORDER if c in present]

    change_log = []
    if created:
        change_log.append({"date": created[:10], "version": "1.0", "description": "Story drafted"})

    artifact = StoryArtifact(
        ref=story_ref,
        status=StoryStatus.DRAFT,
        title=title,
        statement=statement,
        created=created,
        acceptance_criteria=list(acceptance_criteria),
        tasks=[Task(t.description, list(t.ac_refs), list(t.subtasks), t.done) for t in tasks],
        dev_notes=ordered,
        classifications=list(classifications),
        change_log=change_log,
    )
    logger.info(
        f"[ASSEMBLE] Story {story_ref}: {len(artifact.acceptance_criteria)} AC, "
        f"{len(artifact.tasks)} task(s), {len(artifact.dev_notes)} fact(s)"
    )
    return artifact


def render_ac_links(ac_refs: list[int]) -> str:
    if not ac_refs:
        return ""
    return f" (AC: {', '.join(str(i) for i in ac_refs)})"


def _render_tasks(artifact: StoryArtifact) -> list[str]:
    lines = []
    for task in artifact.tasks:
        box = "x" if task.done else " "
        lines.append(f"- [{box}] {task.description}{render_ac_links(task.ac_refs)}")
        for sub in task.subtasks:
            lines.append(f"  - [ ] {sub}")
    return lines


def _render_dev_notes(artifact: StoryArtifact) -> list[str]:
    lines = []
    categories = [c for c in CATEGORY_ORDER if c in artifact.classifications or artifact.facts_for(c)]
    for category in categories:
        lines.extend([f"### {category.value}", ""])
        facts = artifact.facts_for(category)
        if not facts:
            lines.extend([NO_GUIDANCE_SENTINEL, ""])
            continue
        for fact in facts:
            lines.extend([fact.render(), ""])
    return lines[:-1] if lines else lines


def _render_testing(artifact: StoryArtifact) -> list[str]:
    return [
        f"- {fact.source.render()}"
        for fact in artifact.dev_notes
        if fact.source is not None and fact.source.document_id == TESTING_DOCUMENT
    ]


def _render_change_log(artifact: StoryArtifact) -> list[str]:
    if not artifact.change_log:
        return []
    lines = ["| Date | Version | Description | Author |", "|------|---------|-------------|--------|"]
    for entry in artifact.change_log:
        lines.append(
            f"| {entry.get('date', '')} | {entry.get('version', '')} | "
            f"{entry.get('description', '')} | {entry.get('author', '')} |"
        )
    return lines


def _render_dev_agent_record(artifact: StoryArtifact) -> list[str]:
    record = artifact.dev_agent_record
    if not record:
        return []
    lines = ["### Agent Model Used", "", record.get("agent_model") or "_Not recorded._", ""]
    for key, title in (
        ("debug_log", "Debug Log References"),
        ("completion_notes", "Completion Notes List"),
        ("file_list", "File List"),
    ):
        lines.extend([f"### {title}", ""])
        entries = record.get(key) or []
        lines.extend(f"- {e}" for e in entries)
        if not entries:
            lines.append("_None._")
        lines.append("")
    return lines[:-1]


def _render_acceptance_criteria(artifact: StoryArtifact) -> list[str]:
    return [f"{i}. {ac}" for i, ac in enumerate(artifact.acceptance_criteria, 1)]


SECTION_RENDERERS = {
    "status": lambda a: [a.status.value],
    "story": lambda a: [a.statement] if a.statement else [],
    "acceptance_criteria": _render_acceptance_criteria,
    "tasks": _render_tasks,
    "dev_notes": _render_dev_notes,
    "testing": _render_testing,
    "change_log": _render_change_log,
    "dev_agent_record": _render_dev_agent_record,
}


def render_story_markdown(artifact: StoryArtifact, template: Optional[StoryTemplate] = None) -> str:
    """Render a story into the template skeleton."""
    template = template or StoryTemplate()
    lines = [f"# Story {artifact.ref}: {artifact.title}", ""]
    for section in template.sections:
        renderer = SECTION_RENDERERS.get(section.id)
        body = renderer(artifact) if renderer else []
        lines.extend([f"## {section.title}", ""])
        lines.extend(body or [section.placeholder])
        lines.append("")
    return "\n".join(lines)
