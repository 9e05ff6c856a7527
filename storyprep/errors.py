"""
Error taxonomy for story preparation.

Structural and IO errors (RepositoryUnavailable, MissingSourceDocument,
DocumentReadFailed, WriteFailed) abort a run and name the resource that
failed. Validation findings are collected into reports instead of being
raised, except when a caller asks for strict behavior via ChecklistFailure.
"""


class StoryPrepError(Exception):
    """Base class for all storyprep errors."""


class RepositoryUnavailable(StoryPrepError):
    """The story repository (or the config locating it) cannot be read."""

    def __init__(self, resource: str, reason: str = ""):
        self.resource = resource
        self.reason = reason
        super().__init__(
            f"Story repository unavailable: {resource}"
            + (f" ({reason})" if reason else "")
        )


class MissingSourceDocument(StoryPrepError):
    """A document required by a story category does not exist at all."""

    def __init__(self, document_id: str, category: str):
        self.document_id = document_id
        self.category = category
        super().__init__(f"Missing source document '{document_id}' required by {category}")


class DocumentReadFailed(StoryPrepError):
    """A source document exists but could not be read or decoded."""

    def __init__(self, document_id: str, path, reason: str):
        self.document_id = document_id
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read source document '{document_id}' at {path}: {reason}")


class IncompleteStoryOverrideRequired(StoryPrepError):
    """Latest story is not Done; an explicit override decision is required.

    Control-flow signal rather than a failure: raised when a caller asks for
    the next story without supplying a decision callback.
    """

    def __init__(self, ref, status):
        self.ref = ref
        self.status = status
        super().__init__(
            f"Story {ref} is {status.value}, not Done; confirm override to draft the next story"
        )


class ChecklistFailure(StoryPrepError):
    """One or more checklist rules failed."""

    def __init__(self, failures: list):
        self.failures = failures
        ids = ", ".join(f.rule_id for f in failures)
        super().__init__(f"Checklist failed: {ids}")


class WriteFailed(StoryPrepError):
    """A story artifact could not be persisted."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write {path}: {reason}")


class InvalidDecision(StoryPrepError):
    """A decision was supplied that the sequencer cannot accept."""


class InvalidStatusTransition(StoryPrepError):
    """Story status can only move forward Draft -> Approved -> InProgress -> Done."""

    def __init__(self, ref, from_status, to_status):
        self.ref = ref
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition for {ref}: {from_status.value} -> {to_status.value}"
        )


class UncitedFactError(StoryPrepError, ValueError):
    """A fact without a source that is not the no-guidance sentinel."""


class EpicChoiceRequired(StoryPrepError):
    """Latest story closed its epic; the caller must choose where to go next."""

    def __init__(self, ref):
        self.ref = ref
        super().__init__(
            f"Story {ref} completed epic {ref.epic}; choose the next epic, a specific story, or cancel"
        )
