"""Story preparation workflow.

Runs the stages in order, each consuming the previous one's output:

    scan -> sequence -> aggregate -> assemble -> checklist -> write

The caller gets either an outcome (a written Draft story plus its checklist
report, or a cancellation) or a single error naming the resource that
failed: RepositoryUnavailable, MissingSourceDocument or WriteFailed.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from storyprep.docs.epics import Epic, find_story, is_last_story_in_epic, load_epics
from storyprep.docs.store import FileDocumentStore
from storyprep.lib.config import ProjectConfig
from storyprep.lib.templates import load_story_template
from storyprep.story.models import StoryArtifact, StoryRef, StoryStatus, StoryTypeClassification
from storyprep.story.repository import FileStoryRepository
from storyprep.workflow.aggregator import ContextAggregator, classify_story, normalize_classifications
from storyprep.workflow.assembler import assemble, default_tasks
from storyprep.workflow.checklist import ChecklistReport, Rule, load_ruleset, run_checklist
from storyprep.workflow.scanner import scan
from storyprep.workflow.sequencer import DecisionCallback, resolve_next_story

logger = logging.getLogger(__name__)

OUTCOME_CREATED = "created"
OUTCOME_CANCELLED = "cancelled"


@dataclass
class WorkflowOutcome:
    status: str
    ref: Optional[StoryRef] = None
    artifact: Optional[StoryArtifact] = None
    report: Optional[ChecklistReport] = None
    path: Optional[Path] = None

    @property
    def created(self) -> bool:
        return self.status == OUTCOME_CREATED


@dataclass
class StoryWorkflow:
    """Wires the document store, story repository and stage settings together."""
    store: object
    repository: object
    epics_doc: str = "epics"
    ruleset: Optional[list[Rule]] = None
    fetch_workers: int = 4
    extra_scope_terms: list[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: ProjectConfig) -> "StoryWorkflow":
        template = load_story_template(config.template_path)
        return cls(
            store=FileDocumentStore(config.docs_path, exclude=[config.stories_path]),
            repository=FileStoryRepository(config.stories_path, template=template),
            epics_doc=config.epics_doc,
            ruleset=load_ruleset(config.checklist_path),
            fetch_workers=config.fetch_workers,
            extra_scope_terms=list(config.scope_terms),
        )

    def progress(self) -> tuple[Optional[tuple[StoryRef, StoryStatus]], list[Epic], bool]:
        """(scanner output, epics, whether the latest story closes its epic)."""
        last = scan(self.repository)
        epics = load_epics(self.store, self.epics_doc)
        closes = is_last_story_in_epic(epics, last[0]) if last else False
        return last, epics, closes

    def draft(
        self,
        ref: StoryRef,
        epics: list[Epic],
        classifications: Optional[list[StoryTypeClassification]] = None,
        created: str = "",
    ) -> tuple[StoryArtifact, ChecklistReport]:
        """Aggregate, assemble and check a story without writing it.

        Raises:
            MissingSourceDocument: if a required architecture document is missing
        """
        epic_story = find_story(epics, ref)
        if epic_story is None:
            logger.warning(f"Story {ref} is not declared in '{self.epics_doc}'; drafting without epic details")
            title, statement, criteria, body = f"Story {ref}", "", [], ""
        else:
            title = epic_story.title or f"Story {ref}"
            statement, criteria, body = epic_story.statement, epic_story.acceptance_criteria, epic_story.body

        story_text = "\n".join([title, statement, body])
        if classifications is None:
            classifications = classify_story(story_text)
        classifications = normalize_classifications(classifications)
        logger.info(f"Story {ref} classified as {', '.join(c.value for c in classifications)}")

        aggregator = ContextAggregator(self.store, self.fetch_workers, self.extra_scope_terms)
        result = aggregator.aggregate(ref, classifications, story_text)
        result.raise_for_missing()

        artifact = assemble(
            ref,
            title,
            criteria,
            default_tasks(criteria),
            result.facts,
            statement=statement,
            classifications=classifications,
            created=created,
        )
        return artifact, run_checklist(artifact, self.ruleset)

    def prepare_next_story(
        self,
        decide: Optional[DecisionCallback] = None,
        classifications: Optional[list[StoryTypeClassification]] = None,
        write: bool = True,
    ) -> WorkflowOutcome:
        """Draft the next story in sequence.

        Raises:
            RepositoryUnavailable: if stories can't be listed
            MissingSourceDocument: if the epic listing or a required document is missing
            IncompleteStoryOverrideRequired / EpicChoiceRequired: a decision is needed and decide is None
            WriteFailed: if the story can't be persisted
        """
        last, epics, closes = self.progress()
        ref = resolve_next_story(last, closes, decide)
        if ref is None:
            logger.info("Story preparation cancelled")
            return WorkflowOutcome(status=OUTCOME_CANCELLED)

        created = datetime.now().isoformat(timespec="seconds")
        artifact, report = self.draft(ref, epics, classifications, created)

        path = self.repository.write_artifact(artifact) if write else None
        return WorkflowOutcome(status=OUTCOME_CREATED, ref=ref, artifact=artifact, report=report, path=path)
