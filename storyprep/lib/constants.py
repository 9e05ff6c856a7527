"""Shared constants for storyprep."""

import re

# Written into Dev Notes when a required category yielded nothing
NO_GUIDANCE_SENTINEL = "No specific guidance found in architecture docs"

# Markdown code fence markers
CODE_FENCES = ("```", "~~~")

# Status tokens persisted in story artifacts
STATUS_DRAFT = "Draft"
STATUS_APPROVED = "Approved"
STATUS_IN_PROGRESS = "InProgress"
STATUS_DONE = "Done"

# Story files: 1.2.story.json / 1.2.story.md
STORY_FILE_PATTERN = re.compile(r'^(\d+)\.(\d+)\.story\.json$')

# CLI exit codes
EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_MISSING_DOCUMENT = 3
EXIT_WRITE_FAILED = 4
