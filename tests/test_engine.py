"""End-to-end tests for storyprep.workflow.engine over a fixture project."""

import json

import pytest

from storyprep.errors import IncompleteStoryOverrideRequired, MissingSourceDocument, EpicChoiceRequired
from storyprep.lib.config import load_project_config
from storyprep.story.models import StoryRef, StoryStatus, StoryTypeClassification as T
from storyprep.workflow.engine import OUTCOME_CANCELLED, OUTCOME_CREATED, StoryWorkflow
from storyprep.workflow.sequencer import SequencerDecision

from conftest import add_story


@pytest.fixture
def workflow(store, repo):
    return StoryWorkflow(store=store, repository=repo)


def always(action, **kwargs):
    requests = []

    def decide(request):
        requests.append(request)
        return SequencerDecision(action=action, **kwargs)

    decide.requests = requests
    return decide


class TestFirstStory:
    """Empty repository drafts 1.1."""

    def test_drafts_and_writes_story_one(self, workflow, repo):
        outcome = workflow.prepare_next_story()
        assert outcome.status == OUTCOME_CREATED
        assert outcome.ref == StoryRef(1, 1)
        assert outcome.path == repo.json_path(StoryRef(1, 1))

        artifact = outcome.artifact
        assert artifact.title == "Player Jump"
        assert artifact.status == StoryStatus.DRAFT
        assert artifact.classifications == [T.GENERIC, T.GAMEPLAY]
        assert outcome.report.passed
        assert artifact.change_log[0]["description"] == "Story drafted"

    def test_written_story_is_cited(self, workflow, repo):
        workflow.prepare_next_story()
        data = json.loads(repo.json_path(StoryRef(1, 1)).read_text())
        assert all(note["source"] is not None for note in data["dev_notes"])

        md = repo.markdown_path(StoryRef(1, 1)).read_text()
        assert md.startswith("# Story 1.1: Player Jump")
        assert "[Source: physics-config#jumping]" in md
        assert "[Source: systems-architecture#movement]" in md
        assert "(AC: 1, 2)" in md

    def test_dry_run_writes_nothing(self, workflow, repo):
        outcome = workflow.prepare_next_story(write=False)
        assert outcome.created
        assert outcome.path is None
        assert not repo.exists(StoryRef(1, 1))

    def test_classification_override(self, workflow):
        """Scenario: Audio forced on a story the audio docs say nothing about."""
        outcome = workflow.prepare_next_story(classifications=[T.AUDIO])
        artifact = outcome.artifact
        assert artifact.classifications == [T.GENERIC, T.AUDIO]
        assert [f.is_sentinel for f in artifact.facts_for(T.AUDIO)] == [True]
        assert outcome.report.passed


class TestSequencing:
    """Progression through the repository."""

    def test_next_in_epic_after_done(self, workflow, repo):
        add_story(repo, StoryRef(1, 1), StoryStatus.DONE)
        add_story(repo, StoryRef(1, 2), StoryStatus.DONE)
        decide = always("cancel")
        outcome = workflow.prepare_next_story(decide)
        assert outcome.ref == StoryRef(1, 3)
        assert decide.requests == []

    def test_incomplete_latest_needs_decision(self, workflow, repo):
        add_story(repo, StoryRef(1, 1), StoryStatus.IN_PROGRESS)
        with pytest.raises(IncompleteStoryOverrideRequired):
            workflow.prepare_next_story()
        assert not repo.exists(StoryRef(1, 2))

    def test_override_confirmed(self, workflow, repo):
        add_story(repo, StoryRef(1, 1), StoryStatus.APPROVED)
        outcome = workflow.prepare_next_story(always("confirm"))
        assert outcome.ref == StoryRef(1, 2)
        assert outcome.artifact.classifications == [T.GENERIC, T.GAMEPLAY, T.AUDIO]
        sources = [f.source.document_id for f in outcome.artifact.facts_for(T.AUDIO)]
        assert sources == ["audio-architecture", "audio-mixing", "sound-banks"]

    def test_override_declined(self, workflow, repo):
        add_story(repo, StoryRef(1, 1))
        outcome = workflow.prepare_next_story(always("decline"))
        assert outcome.status == OUTCOME_CANCELLED
        assert not outcome.created
        assert not repo.exists(StoryRef(1, 2))

    def test_epic_boundary_needs_choice(self, workflow, repo):
        add_story(repo, StoryRef(1, 3), StoryStatus.DONE)
        with pytest.raises(EpicChoiceRequired):
            workflow.prepare_next_story()

    def test_epic_boundary_next_epic(self, workflow, repo):
        """Scenario: 1.3 Done closes epic 1, user starts epic 2."""
        add_story(repo, StoryRef(1, 3), StoryStatus.DONE)
        decide = always("next_epic")
        outcome = workflow.prepare_next_story(decide)
        assert outcome.ref == StoryRef(2, 1)
        assert outcome.artifact.title == "Spike Traps"
        assert len(decide.requests) == 1

    def test_chosen_story_not_in_epics(self, workflow, repo, caplog):
        add_story(repo, StoryRef(1, 3), StoryStatus.DONE)
        outcome = workflow.prepare_next_story(always("choose_story", epic=2, story=5))
        assert outcome.artifact.title == "Story 2.5"
        assert "not declared" in caplog.text
        failed = [r.rule_id for r in outcome.report.failures]
        assert "has-acceptance-criteria" in failed
        assert "tasks-present" in failed
        assert repo.exists(StoryRef(2, 5))


class TestFailures:
    """Fatal errors abort before anything is written."""

    def test_missing_architecture_document(self, docs_dir, repo):
        (docs_dir / "physics-config.md").unlink()
        from storyprep.docs.store import FileDocumentStore

        workflow = StoryWorkflow(store=FileDocumentStore(docs_dir), repository=repo)
        with pytest.raises(MissingSourceDocument) as exc_info:
            workflow.prepare_next_story()
        assert exc_info.value.document_id == "physics-config"
        assert exc_info.value.category == "Gameplay"
        assert not repo.exists(StoryRef(1, 1))

    def test_missing_epic_listing(self, store, repo):
        workflow = StoryWorkflow(store=store, repository=repo, epics_doc="roadmap")
        with pytest.raises(MissingSourceDocument, match="roadmap"):
            workflow.prepare_next_story()


class TestFromConfig:
    def test_builds_from_project_env(self, project_dir):
        (project_dir / "checklist.yaml").write_text("rules:\n  category-has-fact: false\n")
        (project_dir / "project.env").write_text(
            "PROJECT_NAME=space-hopper\nCHECKLIST_PATH=checklist.yaml\nSCOPE_TERMS=SfxBus\n"
        )
        workflow = StoryWorkflow.from_config(load_project_config(project_dir))
        assert "category-has-fact" not in [r.rule_id for r in workflow.ruleset]
        assert workflow.extra_scope_terms == ["SfxBus"]

        last, epics, closes = workflow.progress()
        assert last is None
        assert len(epics) == 2
        assert closes is False

    def test_stories_are_not_documents(self, project_dir):
        workflow = StoryWorkflow.from_config(load_project_config(project_dir))
        workflow.prepare_next_story()
        rebuilt = StoryWorkflow.from_config(load_project_config(project_dir))
        assert not rebuilt.store.has_document("1.1.story")
