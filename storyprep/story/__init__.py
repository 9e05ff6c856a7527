"""
Story artifacts and their repository.

Stories are identified by (epic, story) ordinals and carry acceptance
criteria, tasks, and cited Dev Notes.
"""

from storyprep.story.models import (
    CATEGORY_ORDER,
    CitedFact,
    DocumentLocator,
    StoryArtifact,
    StoryRef,
    StoryStatus,
    StoryTypeClassification,
    Task,
)
from storyprep.story.repository import FileStoryRepository

__all__ = [
    "CATEGORY_ORDER",
    "CitedFact",
    "DocumentLocator",
    "StoryArtifact",
    "StoryRef",
    "StoryStatus",
    "StoryTypeClassification",
    "Task",
    "FileStoryRepository",
]
