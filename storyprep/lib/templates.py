"""
Story template skeleton.

The rendered story is a fixed sequence of sections. Defaults live here;
a project may override section titles and placeholders, or add extra
sections, with a YAML file:

    sections:
      - id: testing
        title: Testing Requirements
        placeholder: "Follow the project testing conventions."
      - id: risks
        title: Risks
        after: dev_notes

Required sections cannot be removed: a story with a missing section is not
well-formed, so overrides only ever change how a section is presented.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

EMPTY_PLACEHOLDER = "_None._"


@dataclass
class TemplateSection:
    """One section of the story skeleton."""
    id: str
    title: str
    placeholder: str = EMPTY_PLACEHOLDER


# Ordered by position in the rendered story.
DEFAULT_SECTIONS = [
    TemplateSection("status", "Status"),
    TemplateSection("story", "Story", "_Story statement not provided._"),
    TemplateSection("acceptance_criteria", "Acceptance Criteria", "_No acceptance criteria defined._"),
    TemplateSection("tasks", "Tasks / Subtasks", "_No tasks defined._"),
    TemplateSection("dev_notes", "Dev Notes"),
    TemplateSection("testing", "Testing", "_See testing conventions cited in Dev Notes._"),
    TemplateSection("change_log", "Change Log", "_No changes recorded._"),
    TemplateSection("dev_agent_record", "Dev Agent Record", "_To be completed during implementation._"),
    TemplateSection("qa_results", "QA Results", "_Pending review._"),
]

REQUIRED_SECTION_IDS = [s.id for s in DEFAULT_SECTIONS]


@dataclass
class StoryTemplate:
    """Ordered story sections."""
    sections: list[TemplateSection] = field(
        default_factory=lambda: [TemplateSection(s.id, s.title, s.placeholder) for s in DEFAULT_SECTIONS]
    )

    def get(self, section_id: str) -> Optional[TemplateSection]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None


def _apply_overrides(template: StoryTemplate, entries: list) -> StoryTemplate:
    for entry in entries:
        if not isinstance(entry, dict) or "id" not in entry:
            raise ValueError(f"Template section needs an 'id': {entry!r}")
        existing = template.get(entry["id"])
        if existing:
            existing.title = str(entry.get("title", existing.title))
            existing.placeholder = str(entry.get("placeholder", existing.placeholder))
            continue

        section = TemplateSection(
            id=str(entry["id"]),
            title=str(entry.get("title", entry["id"])),
            placeholder=str(entry.get("placeholder", EMPTY_PLACEHOLDER)),
        )
        after = entry.get("after")
        anchor = template.get(after) if after else None
        if anchor:
            template.sections.insert(template.sections.index(anchor) + 1, section)
        else:
            template.sections.append(section)
    return template


def load_story_template(path: Optional[Path]) -> StoryTemplate:
    """Load a story template override; returns defaults if path is None or missing."""
    if path is None or not path.exists():
        return StoryTemplate()

    try:
        data = yaml.safe_load(path.read_text()) or {}
        return _apply_overrides(StoryTemplate(), data.get("sections", []))
    except (yaml.YAMLError, ValueError, AttributeError) as e:
        logger.warning(f"Failed to parse {path}: {e}; using default story template")
        return StoryTemplate()
