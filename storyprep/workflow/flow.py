"""Prefect flow for story preparation.

Wraps the workflow stages as Prefect tasks for observability. Stages never
retry: a missing document or unreadable repository is reported, not
retried. Waiting sequencer states suspend the flow run until a
SequencerDecision is supplied through the Prefect API, unless a decision
was passed in up front.

The underlying stage functions remain plain and are tested directly.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

from prefect import flow, get_run_logger, suspend_flow_run, task

from storyprep.lib.config import load_project_config
from storyprep.story.models import StoryTypeClassification
from storyprep.workflow.engine import OUTCOME_CANCELLED, OUTCOME_CREATED, StoryWorkflow
from storyprep.workflow.sequencer import DecisionRequest, SequencerDecision, resolve_next_story

# Waiting for a human to choose can take a while
DECISION_TIMEOUT_SECONDS = 86400 * 7


@task(retries=0, name="scan", description="Find the latest story and epic progress")
def task_progress(workflow: StoryWorkflow):
    return workflow.progress()


@task(retries=0, name="draft", description="Aggregate cited context, assemble and check the story")
def task_draft(workflow: StoryWorkflow, ref, epics, classifications, created: str):
    return workflow.draft(ref, epics, classifications, created)


@task(retries=0, name="write", description="Persist the drafted story")
def task_write(workflow: StoryWorkflow, artifact) -> str:
    return str(workflow.repository.write_artifact(artifact))


def make_decider(preset: Optional[SequencerDecision] = None):
    """Decision callback: use the preset decision once, then suspend for input."""
    remaining = [preset] if preset else []

    def decide(request: DecisionRequest) -> SequencerDecision:
        if remaining:
            return remaining.pop()
        prefect_logger = get_run_logger()
        prefect_logger.info(f"Suspending for decision: {request.message}")
        decision: SequencerDecision = suspend_flow_run(
            wait_for_input=SequencerDecision,
            timeout=DECISION_TIMEOUT_SECONDS,
        )
        prefect_logger.info(f"Resumed with decision: {decision.action}")
        return decision

    return decide


@flow(name="prepare-story", persist_result=True, retries=0)
def prepare_story_flow(
    project_dir: str,
    decision: Optional[SequencerDecision] = None,
    classifications: Optional[list[str]] = None,
) -> dict:
    """Draft the next story for the project in project_dir.

    Returns:
        Dict with status ("created" or "cancelled"), ref, path and failed checklist rules
    """
    log = get_run_logger()
    workflow = StoryWorkflow.from_config(load_project_config(Path(project_dir)))

    last, epics, closes = task_progress(workflow)
    ref = resolve_next_story(last, closes, make_decider(decision))
    if ref is None:
        log.info("Story preparation cancelled")
        return {"status": OUTCOME_CANCELLED, "ref": None, "path": None, "failed_rules": []}

    parsed = [StoryTypeClassification.parse(c) for c in classifications] if classifications else None
    created = datetime.now().isoformat(timespec="seconds")
    artifact, report = task_draft(workflow, ref, epics, parsed, created)
    path = task_write(workflow, artifact)

    log.info(f"Drafted story {ref} at {path}")
    return {
        "status": OUTCOME_CREATED,
        "ref": str(ref),
        "path": path,
        "failed_rules": [r.rule_id for r in report.failures],
    }
