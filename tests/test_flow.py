"""Tests for storyprep.workflow.flow (Prefect wrappers, Prefect itself mocked)."""

from unittest.mock import MagicMock, patch

from storyprep.story.models import StoryRef, StoryStatus
from storyprep.workflow import flow
from storyprep.workflow.sequencer import AWAITING_EPIC_CHOICE, DecisionRequest, SequencerDecision

from conftest import add_story


def run_tasks_inline():
    """Patch the Prefect tasks so they call through to their plain functions."""
    return (
        patch.object(flow, "task_progress", side_effect=flow.task_progress.fn),
        patch.object(flow, "task_draft", side_effect=flow.task_draft.fn),
        patch.object(flow, "task_write", side_effect=flow.task_write.fn),
        patch.object(flow, "get_run_logger", return_value=MagicMock()),
    )


class TestMakeDecider:
    """Decision callback used inside the flow."""

    REQUEST = DecisionRequest(AWAITING_EPIC_CHOICE, StoryRef(1, 3), StoryStatus.DONE, ["next_epic"])

    def test_preset_used_once_then_suspends(self):
        preset = SequencerDecision(action="next_epic")
        resumed = SequencerDecision(action="cancel")
        decide = flow.make_decider(preset)

        with patch.object(flow, "suspend_flow_run", return_value=resumed) as mock_suspend, \
             patch.object(flow, "get_run_logger", return_value=MagicMock()):
            assert decide(self.REQUEST) is preset
            mock_suspend.assert_not_called()
            assert decide(self.REQUEST) is resumed

        mock_suspend.assert_called_once_with(
            wait_for_input=SequencerDecision,
            timeout=flow.DECISION_TIMEOUT_SECONDS,
        )

    def test_no_preset_suspends_immediately(self):
        decide = flow.make_decider()
        with patch.object(flow, "suspend_flow_run", return_value=SequencerDecision(action="next_epic")) as mock_suspend, \
             patch.object(flow, "get_run_logger", return_value=MagicMock()):
            assert decide(self.REQUEST).action == "next_epic"
        mock_suspend.assert_called_once()


class TestPrepareStoryFlow:
    """The flow body, run without a Prefect server."""

    def test_creates_first_story(self, project_dir):
        p1, p2, p3, p4 = run_tasks_inline()
        with p1, p2, p3, p4:
            result = flow.prepare_story_flow.fn(str(project_dir))

        assert result["status"] == "created"
        assert result["ref"] == "1.1"
        assert result["failed_rules"] == []
        assert (project_dir / "docs" / "stories" / "1.1.story.json").exists()

    def test_preset_decision_crosses_epic(self, project_dir, repo):
        add_story(repo, StoryRef(1, 3), StoryStatus.DONE)
        p1, p2, p3, p4 = run_tasks_inline()
        with p1, p2, p3, p4, patch.object(flow, "suspend_flow_run") as mock_suspend:
            result = flow.prepare_story_flow.fn(str(project_dir), SequencerDecision(action="next_epic"))

        assert result["ref"] == "2.1"
        mock_suspend.assert_not_called()

    def test_cancelled(self, project_dir, repo):
        add_story(repo, StoryRef(1, 1))
        p1, p2, p3, p4 = run_tasks_inline()
        with p1, p2, p3, p4:
            result = flow.prepare_story_flow.fn(str(project_dir), SequencerDecision(action="decline"))

        assert result == {"status": "cancelled", "ref": None, "path": None, "failed_rules": []}
        assert not repo.exists(StoryRef(1, 2))

    def test_classification_names(self, project_dir):
        p1, p2, p3, p4 = run_tasks_inline()
        with p1, p2, p3, p4 as mock_logger:
            flow.prepare_story_flow.fn(str(project_dir), None, ["audio"])
        story = (project_dir / "docs" / "stories" / "1.1.story.json").read_text()
        assert '"Audio"' in story
        assert mock_logger.called
