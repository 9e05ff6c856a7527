"""Progress scanner: where does the story sequence currently stand?"""

import logging
from typing import Optional

from storyprep.story.models import StoryRef, StoryStatus

logger = logging.getLogger(__name__)


def scan(repository) -> Optional[tuple[StoryRef, StoryStatus]]:
    """Return the highest (epic, story) in the repository with its status.

    Returns None for an empty repository. Pure read.

    Raises:
        RepositoryUnavailable: if the repository cannot be listed
    """
    entries = repository.list_story_refs()
    if not entries:
        logger.info("[SCAN] No stories found")
        return None

    ref, status = max(entries, key=lambda entry: entry[0])
    logger.info(f"[SCAN] Latest story {ref} ({status.value})")
    return ref, status
