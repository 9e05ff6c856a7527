"""
storyprep next - Draft the next story in sequence.
"""

import sys

from storyprep.errors import EpicChoiceRequired, IncompleteStoryOverrideRequired
from storyprep.lib.config import ProjectConfig
from storyprep.lib.constants import EXIT_FAILED, EXIT_OK
from storyprep.story.models import StoryRef, StoryTypeClassification
from storyprep.workflow.engine import StoryWorkflow
from storyprep.workflow.sequencer import AWAITING_OVERRIDE, DecisionRequest, SequencerDecision


def decision_from_args(args) -> SequencerDecision | None:
    """Build a preset decision from --decision/--story, or None."""
    if args.story:
        ref = StoryRef.parse(args.story)
        return SequencerDecision(action="choose_story", epic=ref.epic, story=ref.story)
    if args.decision:
        return SequencerDecision(action=args.decision)
    return None


def prompt_decision(request: DecisionRequest) -> SequencerDecision:
    """Ask on the terminal until a usable answer is given."""
    print(request.message)
    if request.state == AWAITING_OVERRIDE:
        while True:
            answer = input("Proceed? [y/N]: ").strip().lower()
            if answer in ("y", "yes"):
                return SequencerDecision(action="confirm")
            if answer in ("", "n", "no"):
                return SequencerDecision(action="decline")

    next_epic = request.last_ref.epic + 1
    print(f"  1. Start epic {next_epic} (story {next_epic}.1)")
    print("  2. Draft a specific story")
    print("  3. Cancel")
    while True:
        answer = input("Choice [1-3]: ").strip()
        if answer == "1":
            return SequencerDecision(action="next_epic")
        if answer == "3" or answer == "":
            return SequencerDecision(action="cancel")
        if answer == "2":
            raw = input("Story (EPIC.STORY): ").strip()
            try:
                ref = StoryRef.parse(raw)
            except ValueError as e:
                print(f"  {e}")
                continue
            return SequencerDecision(action="choose_story", epic=ref.epic, story=ref.story)


def make_decider(preset: SequencerDecision | None, interactive: bool):
    def decide(request: DecisionRequest) -> SequencerDecision:
        if preset is not None:
            return preset
        if interactive:
            return prompt_decision(request)
        if request.state == AWAITING_OVERRIDE:
            raise IncompleteStoryOverrideRequired(request.last_ref, request.last_status)
        raise EpicChoiceRequired(request.last_ref)
    return decide


def cmd_next(args, config: ProjectConfig) -> int:
    """Draft the next story and print its checklist report."""
    preset = decision_from_args(args)
    classifications = [StoryTypeClassification.parse(t) for t in args.type] if args.type else None

    if args.flow:
        from storyprep.workflow.flow import prepare_story_flow

        types = [c.value for c in classifications] if classifications else None
        result = prepare_story_flow(str(config.project_dir), preset, types)
        if result["status"] != "created":
            print("Cancelled: no story drafted.")
            return EXIT_FAILED
        print(f"Created: {result['ref']} -> {result['path']}")
        if result["failed_rules"]:
            print(f"Checklist failures: {', '.join(result['failed_rules'])}")
            return EXIT_FAILED if args.strict else EXIT_OK
        return EXIT_OK

    workflow = StoryWorkflow.from_config(config)
    interactive = preset is None and sys.stdin.isatty()
    try:
        outcome = workflow.prepare_next_story(
            decide=make_decider(preset, interactive),
            classifications=classifications,
            write=not args.dry_run,
        )
    except (IncompleteStoryOverrideRequired, EpicChoiceRequired) as e:
        print(f"ERROR: {e}")
        print("  Re-run with --decision (confirm/decline/next_epic/cancel) or --story EPIC.STORY")
        return EXIT_FAILED

    if not outcome.created:
        print("Cancelled: no story drafted.")
        return EXIT_FAILED

    artifact = outcome.artifact
    print(f"Story {artifact.ref}: {artifact.title}")
    print(f"Types: {', '.join(c.value for c in artifact.classifications)}")
    print()
    print("Checklist")
    print("-" * 60)
    print(outcome.report.format())
    print()
    if outcome.path:
        print(f"Saved: {outcome.path}")
    else:
        print("Dry run: story not written.")

    if args.strict and not outcome.report.passed:
        return EXIT_FAILED
    return EXIT_OK
