"""
storyprep status/list/show/validate/advance/record - Inspect and update stories.
"""

from storyprep.lib.config import ProjectConfig
from storyprep.lib.constants import EXIT_FAILED, EXIT_OK
from storyprep.story.models import StoryRef, StoryStatus
from storyprep.story.repository import FileStoryRepository
from storyprep.lib.templates import load_story_template
from storyprep.workflow.checklist import load_ruleset, run_checklist
from storyprep.workflow.engine import StoryWorkflow
from storyprep.workflow.sequencer import AWAITING_EPIC_CHOICE, AWAITING_OVERRIDE, Sequencer


def _repository(config: ProjectConfig) -> FileStoryRepository:
    return FileStoryRepository(config.stories_path, template=load_story_template(config.template_path))


def cmd_status(args, config: ProjectConfig) -> int:
    """Show where the story sequence stands and what 'next' would do."""
    workflow = StoryWorkflow.from_config(config)
    last, epics, closes = workflow.progress()

    print(f"Project: {config.name}")
    print("=" * 60)
    print(f"Epics declared: {len(epics)}")
    if last is None:
        print("Latest story: none")
    else:
        ref, status = last
        print(f"Latest story: {ref} ({status.value})")

    seq = Sequencer(last, closes)
    seq.evaluate()
    print()
    if seq.state == AWAITING_OVERRIDE:
        print(f"Next: story {last[0]} is not Done; 'next' will ask before drafting {last[0].next_in_epic()}")
    elif seq.state == AWAITING_EPIC_CHOICE:
        print(f"Next: epic {last[0].epic} is complete; 'next' will ask which epic or story to draft")
    else:
        print(f"Next: story {seq.resolved_ref}")
    return EXIT_OK


def cmd_list(args, config: ProjectConfig) -> int:
    stories = _repository(config).list_stories()
    if not stories:
        print("Stories: none")
        print()
        print("Get started:")
        print("  storyprep next    - Draft story 1.1")
        return EXIT_OK

    print("Stories")
    print("-" * 60)
    for story in stories:
        title = story.title[:40] + "..." if len(story.title) > 40 else story.title
        print(f"  {str(story.ref):<8} {story.status.value:<12} {title}")
    print()
    print(f"{len(stories)} story(s)")
    return EXIT_OK


def _load(config: ProjectConfig, raw_ref: str):
    repo = _repository(config)
    ref = StoryRef.parse(raw_ref)
    story = repo.load(ref)
    if story is None:
        print(f"ERROR: Story {ref} not found in {config.stories_path}")
    return repo, story


def cmd_show(args, config: ProjectConfig) -> int:
    repo, story = _load(config, args.ref)
    if story is None:
        return EXIT_FAILED
    from storyprep.workflow.assembler import render_story_markdown

    print(render_story_markdown(story, repo.template))
    return EXIT_OK


def cmd_validate(args, config: ProjectConfig) -> int:
    """Run the checklist against a stored story."""
    _, story = _load(config, args.ref)
    if story is None:
        return EXIT_FAILED
    report = run_checklist(story, load_ruleset(config.checklist_path))
    print(f"Checklist for story {story.ref}")
    print("-" * 60)
    print(report.format())
    return EXIT_OK if report.passed else EXIT_FAILED


def cmd_advance(args, config: ProjectConfig) -> int:
    """Move a story's status forward."""
    repo = _repository(config)
    story = repo.advance_status(StoryRef.parse(args.ref), StoryStatus.parse(args.status), author=args.author or "")
    print(f"Story {story.ref} is now {story.status.value}")
    return EXIT_OK


def cmd_record(args, config: ProjectConfig) -> int:
    """Append to a story's Dev Agent Record."""
    repo = _repository(config)
    story = repo.append_dev_record(StoryRef.parse(args.ref), args.field, args.entries)
    print(f"Story {story.ref}: updated {args.field}")
    return EXIT_OK
