"""
File-backed story repository.

Stories are stored as JSON + markdown pairs in the configured stories dir:
  <stories>/1.2.story.json   (source of truth, schema-validated)
  <stories>/1.2.story.md     (rendered for humans and coding agents)
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from storyprep.errors import (
    InvalidStatusTransition,
    RepositoryUnavailable,
    WriteFailed,
)
from storyprep.lib.constants import STORY_FILE_PATTERN
from storyprep.lib.templates import StoryTemplate
from storyprep.lib.validate import ValidationError, validate_before_write, validate_file
from storyprep.story.models import StoryArtifact, StoryRef, StoryStatus

logger = logging.getLogger(__name__)

DEV_RECORD_FIELDS = ("agent_model", "debug_log", "completion_notes", "file_list")


def story_basename(ref: StoryRef) -> str:
    return f"{ref.epic}.{ref.story}.story"


class FileStoryRepository:
    """Flat collection of story artifacts keyed by StoryRef."""

    def __init__(self, stories_dir: Path, template: Optional[StoryTemplate] = None):
        self.stories_dir = Path(stories_dir)
        self.template = template

    def json_path(self, ref: StoryRef) -> Path:
        return self.stories_dir / f"{story_basename(ref)}.json"

    def markdown_path(self, ref: StoryRef) -> Path:
        return self.stories_dir / f"{story_basename(ref)}.md"

    def _story_files(self) -> list[Path]:
        if not self.stories_dir.exists():
            return []
        if not self.stories_dir.is_dir():
            raise RepositoryUnavailable(str(self.stories_dir), "not a directory")
        try:
            return sorted(p for p in self.stories_dir.iterdir() if STORY_FILE_PATTERN.match(p.name))
        except OSError as e:
            raise RepositoryUnavailable(str(self.stories_dir), str(e)) from None

    def list_story_refs(self) -> list[tuple[StoryRef, StoryStatus]]:
        """List (ref, status) for every readable story, ordered by ref.

        Raises:
            RepositoryUnavailable: if the stories directory cannot be listed
        """
        entries = []
        for path in self._story_files():
            match = STORY_FILE_PATTERN.match(path.name)
            try:
                ref = StoryRef(int(match.group(1)), int(match.group(2)))
                data = json.loads(path.read_text())
                status = StoryStatus.parse(data["status"])
            except (ValueError, KeyError, TypeError, OSError) as e:
                logger.warning(f"[REPO] Skipping malformed story file {path.name}: {e}")
                continue
            entries.append((ref, status))
        entries.sort(key=lambda entry: entry[0])
        return entries

    def exists(self, ref: StoryRef) -> bool:
        return self.json_path(ref).exists()

    def load(self, ref: StoryRef) -> Optional[StoryArtifact]:
        """Load a story by ref, or None if it doesn't exist or is unreadable."""
        path = self.json_path(ref)
        if not path.exists():
            return None
        try:
            return StoryArtifact.from_dict(validate_file(path, "story"))
        except (ValidationError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"[REPO] Failed to load story {ref}: {e}")
            return None

    def list_stories(self) -> list[StoryArtifact]:
        stories = []
        for ref, _ in self.list_story_refs():
            story = self.load(ref)
            if story is not None:
                stories.append(story)
        return stories

    def _persist(self, artifact: StoryArtifact) -> Path:
        # Imported here: assembler renders stories and imports the models this module shares
        from storyprep.workflow.assembler import render_story_markdown

        data = artifact.to_dict()
        json_path = self.json_path(artifact.ref)
        try:
            validate_before_write(data, "story", json_path)
        except ValidationError as e:
            raise WriteFailed(json_path, str(e)) from e

        try:
            self.stories_dir.mkdir(parents=True, exist_ok=True)
            json_path.write_text(json.dumps(data, indent=2) + "\n")
            self.markdown_path(artifact.ref).write_text(render_story_markdown(artifact, self.template))
        except OSError as e:
            raise WriteFailed(json_path, str(e)) from e
        return json_path

    def write_artifact(self, artifact: StoryArtifact) -> Path:
        """Persist a new story. Never overwrites an existing one.

        Raises:
            WriteFailed: if the story exists, fails schema validation, or IO fails
        """
        if self.exists(artifact.ref):
            raise WriteFailed(self.json_path(artifact.ref), f"story {artifact.ref} already exists")
        path = self._persist(artifact)
        logger.info(f"[REPO] Wrote story {artifact.ref} to {path}")
        return path

    def advance_status(self, ref: StoryRef, to_status: StoryStatus, author: str = "") -> StoryArtifact:
        """Move a story's status forward and record it in the change log.

        Raises:
            WriteFailed: if the story doesn't exist
            InvalidStatusTransition: if to_status is not after the current status
        """
        story = self.load(ref)
        if story is None:
            raise WriteFailed(self.json_path(ref), f"story {ref} not found")
        if to_status.rank <= story.status.rank:
            raise InvalidStatusTransition(ref, story.status, to_status)

        entry = {
            "date": datetime.now().date().isoformat(),
            "version": f"1.{len(story.change_log)}",
            "description": f"Status {story.status.value} -> {to_status.value}",
        }
        if author:
            entry["author"] = author
        story.change_log.append(entry)
        logger.info(f"[REPO] {ref}: {story.status.value} -> {to_status.value}")
        story.status = to_status
        self._persist(story)
        return story

    def append_dev_record(self, ref: StoryRef, field_name: str, entries: list[str]) -> StoryArtifact:
        """Append to a Dev Agent Record field (agent_model is replaced, lists are extended).

        Raises:
            ValueError: for an unknown field
            WriteFailed: if the story doesn't exist
        """
        if field_name not in DEV_RECORD_FIELDS:
            raise ValueError(f"Unknown dev record field '{field_name}' (expected one of {DEV_RECORD_FIELDS})")
        story = self.load(ref)
        if story is None:
            raise WriteFailed(self.json_path(ref), f"story {ref} not found")

        if field_name == "agent_model":
            story.dev_agent_record["agent_model"] = entries[-1] if entries else ""
        else:
            story.dev_agent_record.setdefault(field_name, []).extend(entries)
        self._persist(story)
        return story
