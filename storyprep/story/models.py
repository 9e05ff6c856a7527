"""
Data models for story preparation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from storyprep.lib.constants import (
    CODE_FENCES,
    NO_GUIDANCE_SENTINEL,
    STATUS_APPROVED,
    STATUS_DONE,
    STATUS_DRAFT,
    STATUS_IN_PROGRESS,
)


@dataclass(frozen=True, order=True)
class StoryRef:
    """(epic, story) ordinal pair. Ordered by epic, then story."""
    epic: int
    story: int

    def __post_init__(self):
        for name in ("epic", "story"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"StoryRef.{name} must be a positive integer, got {value!r}")

    def __str__(self) -> str:
        return f"{self.epic}.{self.story}"

    @classmethod
    def parse(cls, text: str) -> "StoryRef":
        """Parse '1.2' into StoryRef(1, 2)."""
        epic, sep, story = text.strip().partition(".")
        if not sep:
            raise ValueError(f"Invalid story reference: {text!r} (expected EPIC.STORY)")
        try:
            return cls(int(epic), int(story))
        except ValueError:
            raise ValueError(f"Invalid story reference: {text!r} (expected EPIC.STORY)") from None

    def next_in_epic(self) -> "StoryRef":
        return StoryRef(self.epic, self.story + 1)

    def first_of_next_epic(self) -> "StoryRef":
        return StoryRef(self.epic + 1, 1)


class StoryStatus(Enum):
    """Story lifecycle. Values are the persisted status tokens."""

    DRAFT = STATUS_DRAFT
    APPROVED = STATUS_APPROVED
    IN_PROGRESS = STATUS_IN_PROGRESS
    DONE = STATUS_DONE

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    @classmethod
    def parse(cls, token: str) -> "StoryStatus":
        for status in cls:
            if status.value == token:
                return status
        raise ValueError(f"Unknown story status: {token!r}")


_STATUS_ORDER = [StoryStatus.DRAFT, StoryStatus.APPROVED, StoryStatus.IN_PROGRESS, StoryStatus.DONE]


class StoryTypeClassification(Enum):
    """Story types. Each maps to a fixed set of architecture documents."""

    GENERIC = "Generic"
    GAMEPLAY = "Gameplay"
    UI = "UI"
    BACKEND = "Backend"
    GRAPHICS = "Graphics"
    AUDIO = "Audio"

    @classmethod
    def parse(cls, text: str) -> "StoryTypeClassification":
        lowered = text.strip().lower()
        for item in cls:
            if item.value.lower() == lowered:
                return item
        raise ValueError(f"Unknown story type: {text!r}")


# Fixed render order for Dev Notes categories
CATEGORY_ORDER = list(StoryTypeClassification)


@dataclass(frozen=True)
class DocumentLocator:
    """Where a fact was read from."""
    document_id: str
    section_anchor: Optional[str] = None

    def render(self) -> str:
        if self.section_anchor is None:
            return f"[Source: {self.document_id}]"
        return f"[Source: {self.document_id}#{self.section_anchor}]"


@dataclass(frozen=True)
class CitedFact:
    """A technical fact for Dev Notes, always traceable to its source.

    source is None only for the no-guidance sentinel.
    """
    category: StoryTypeClassification
    text: str
    source: Optional[DocumentLocator] = None

    @classmethod
    def no_guidance(cls, category: StoryTypeClassification) -> "CitedFact":
        return cls(category=category, text=NO_GUIDANCE_SENTINEL, source=None)

    @property
    def is_sentinel(self) -> bool:
        return self.source is None and self.text == NO_GUIDANCE_SENTINEL

    @property
    def is_well_formed(self) -> bool:
        """Either cited, or exactly the sentinel. There is no third option."""
        if self.source is None:
            return self.text == NO_GUIDANCE_SENTINEL
        return bool(self.text.strip())

    def render(self) -> str:
        if self.source is None:
            return self.text
        if self.text.rstrip().endswith(CODE_FENCES):
            # Trailing text would keep the fence open
            return f"{self.text.rstrip()}\n{self.source.render()}"
        return f"{self.text} {self.source.render()}"


@dataclass
class Task:
    """A task entry; ac_refs are 1-based acceptance-criteria indices."""
    description: str
    ac_refs: list[int] = field(default_factory=list)
    subtasks: list[str] = field(default_factory=list)
    done: bool = False


@dataclass
class StoryArtifact:
    """A drafted story: the unit handed to the implementing developer."""
    ref: StoryRef
    status: StoryStatus
    title: str
    acceptance_criteria: list[str] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    dev_notes: list[CitedFact] = field(default_factory=list)
    classifications: list[StoryTypeClassification] = field(default_factory=list)
    statement: str = ""
    created: str = ""
    change_log: list[dict] = field(default_factory=list)
    dev_agent_record: dict = field(default_factory=dict)

    def facts_for(self, category: StoryTypeClassification) -> list[CitedFact]:
        return [f for f in self.dev_notes if f.category == category]

    def to_dict(self) -> dict:
        return {
            "epic": self.ref.epic,
            "story": self.ref.story,
            "status": self.status.value,
            "title": self.title,
            "statement": self.statement,
            "created": self.created,
            "classifications": [c.value for c in self.classifications],
            "acceptance_criteria": list(self.acceptance_criteria),
            "tasks": [
                {
                    "description": t.description,
                    "ac_refs": list(t.ac_refs),
                    "subtasks": list(t.subtasks),
                    "done": t.done,
                }
                for t in self.tasks
            ],
            "dev_notes": [
                {
                    "category": f.category.value,
                    "text": f.text,
                    "source": None if f.source is None else {
                        "document_id": f.source.document_id,
                        "section_anchor": f.source.section_anchor,
                    },
                }
                for f in self.dev_notes
            ],
            "change_log": [dict(entry) for entry in self.change_log],
            "dev_agent_record": dict(self.dev_agent_record),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StoryArtifact":
        facts = []
        for item in data.get("dev_notes", []):
            source = item.get("source")
            facts.append(CitedFact(
                category=StoryTypeClassification.parse(item["category"]),
                text=item["text"],
                source=None if source is None else DocumentLocator(
                    source["document_id"], source.get("section_anchor"),
                ),
            ))
        return cls(
            ref=StoryRef(data["epic"], data["story"]),
            status=StoryStatus.parse(data["status"]),
            title=data["title"],
            statement=data.get("statement", ""),
            created=data.get("created", ""),
            classifications=[StoryTypeClassification.parse(c) for c in data.get("classifications", [])],
            acceptance_criteria=list(data.get("acceptance_criteria", [])),
            tasks=[Task(**t) for t in data.get("tasks", [])],
            dev_notes=facts,
            change_log=list(data.get("change_log", [])),
            dev_agent_record=dict(data.get("dev_agent_record", {})),
        )
