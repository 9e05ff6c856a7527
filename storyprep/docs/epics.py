"""
Epic listing parser.

Epics are read from one document (monolithic or sharded) that declares
epics and their stories as headings:

    ## Epic 1: Core Movement
    ### Story 1.1: Player Jump
    As a player, I want to jump, so that I can reach ledges.

    #### Acceptance Criteria
    1. `PlayerController` applies jump impulse on input
    2. Jump plays `jump.wav`

The acceptance-criteria list may also follow a plain or bold
"Acceptance Criteria:" line.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from storyprep.docs.markdown import HEADING_RE, list_items
from storyprep.errors import MissingSourceDocument
from storyprep.story.models import StoryRef

logger = logging.getLogger(__name__)

EPIC_RE = re.compile(r'^Epic\s+(\d+)\s*(?:[:.\-–—]\s*(.*))?$', re.IGNORECASE)
STORY_RE = re.compile(r'^Story\s+(\d+)\.(\d+)\s*(?:[:.\-–—]\s*(.*))?$', re.IGNORECASE)
AC_MARKER_RE = re.compile(r'^\s*(?:\*\*|__)?Acceptance Criteria:?(?:\*\*|__)?:?\s*$', re.IGNORECASE)


@dataclass
class EpicStory:
    ref: StoryRef
    title: str
    statement: str = ""
    acceptance_criteria: list[str] = field(default_factory=list)
    body: str = ""


@dataclass
class Epic:
    number: int
    title: str
    stories: list[EpicStory] = field(default_factory=list)

    @property
    def last_story_number(self) -> int:
        return max((s.ref.story for s in self.stories), default=0)


def _split_story_body(lines: list[str]) -> tuple[str, list[str]]:
    """Return (statement, acceptance criteria) from a story's body lines."""
    statement_lines = []
    ac_lines = []
    in_ac = False
    for line in lines:
        heading = HEADING_RE.match(line)
        if heading:
            in_ac = AC_MARKER_RE.match(heading.group(2)) is not None
            continue
        if AC_MARKER_RE.match(line):
            in_ac = True
            continue
        if in_ac:
            ac_lines.append(line)
        else:
            statement_lines.append(line)
    statement = " ".join(l.strip() for l in statement_lines if l.strip())
    return statement, list_items("\n".join(ac_lines))


def parse_epics(text: str) -> list[Epic]:
    """Parse epic and story headings out of an epic listing."""
    epics: dict[int, Epic] = {}
    current_epic: Optional[Epic] = None
    story: Optional[EpicStory] = None
    story_level = 0
    body: list[str] = []

    def close_story():
        if story is not None:
            story.body = "\n".join(body).strip()
            story.statement, story.acceptance_criteria = _split_story_body(body)

    for line in text.splitlines():
        heading = HEADING_RE.match(line)
        if heading:
            level = len(heading.group(1))
            title = heading.group(2).strip()
            epic_match = EPIC_RE.match(title)
            story_match = STORY_RE.match(title)

            if epic_match or story_match or (story is not None and level <= story_level):
                close_story()
                story = None
                body = []

            if epic_match:
                number = int(epic_match.group(1))
                current_epic = epics.setdefault(number, Epic(number, (epic_match.group(2) or "").strip()))
                continue
            if story_match:
                try:
                    ref = StoryRef(int(story_match.group(1)), int(story_match.group(2)))
                except ValueError:
                    logger.warning(f"[EPICS] Skipping malformed story heading: {title}")
                    continue
                epic = epics.get(ref.epic)
                if epic is None:
                    epic = epics.setdefault(ref.epic, Epic(ref.epic, ""))
                if current_epic is not None and current_epic.number != ref.epic:
                    logger.warning(f"[EPICS] Story {ref} declared under Epic {current_epic.number}")
                story = EpicStory(ref=ref, title=(story_match.group(3) or "").strip())
                epic.stories.append(story)
                story_level = level
                continue
        if story is not None:
            body.append(line)
    close_story()

    for epic in epics.values():
        epic.stories.sort(key=lambda s: s.ref)
    return [epics[n] for n in sorted(epics)]


def load_epics(store, document_id: str) -> list[Epic]:
    """Read and parse the epic listing from the document store.

    Raises:
        MissingSourceDocument: if the epic listing does not exist
    """
    text = store.read_document(document_id)
    if text is None:
        raise MissingSourceDocument(document_id, "epics")
    epics = parse_epics(text)
    logger.debug(f"[EPICS] {document_id}: {len(epics)} epic(s)")
    return epics


def find_story(epics: list[Epic], ref: StoryRef) -> Optional[EpicStory]:
    for epic in epics:
        if epic.number == ref.epic:
            for story in epic.stories:
                if story.ref == ref:
                    return story
    return None


def is_last_story_in_epic(epics: list[Epic], ref: StoryRef) -> bool:
    """True when ref is the final declared story of its epic.

    An epic missing from the listing counts as complete, so the sequencer
    asks before moving on rather than guessing.
    """
    for epic in epics:
        if epic.number == ref.epic:
            return ref.story >= epic.last_story_number
    return True
