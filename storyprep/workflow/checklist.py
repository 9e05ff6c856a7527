"""
Story draft checklist.

Each rule is a stateless check over an assembled StoryArtifact returning
pass/fail plus evidence. Failures are reported, never raised; callers that
want a hard stop use ChecklistReport.raise_for_failures().

Rules can be switched off per project with a YAML file:

    rules:
      ac-covered-by-task: false
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

import yaml

from storyprep.errors import ChecklistFailure
from storyprep.story.models import StoryArtifact, StoryStatus, StoryTypeClassification

logger = logging.getLogger(__name__)


@dataclass
class RuleResult:
    rule_id: str
    passed: bool
    evidence: str


@dataclass
class Rule:
    rule_id: str
    description: str
    check: Callable[[StoryArtifact], tuple[bool, str]]


def _status_is_draft(a: StoryArtifact) -> tuple[bool, str]:
    return a.status == StoryStatus.DRAFT, f"status is {a.status.value}"


def _title_present(a: StoryArtifact) -> tuple[bool, str]:
    return bool(a.title.strip()), f"title {a.title!r}"


def _has_acceptance_criteria(a: StoryArtifact) -> tuple[bool, str]:
    return bool(a.acceptance_criteria), f"{len(a.acceptance_criteria)} acceptance criteria"


def _tasks_present(a: StoryArtifact) -> tuple[bool, str]:
    return bool(a.tasks), f"{len(a.tasks)} task(s)"


def _tasks_reference_ac(a: StoryArtifact) -> tuple[bool, str]:
    unlinked = [i for i, t in enumerate(a.tasks, 1) if not t.ac_refs]
    if unlinked:
        return False, f"tasks without AC links: {', '.join(map(str, unlinked))}"
    return True, "every task links at least one AC"


def _task_ac_refs_valid(a: StoryArtifact) -> tuple[bool, str]:
    n = len(a.acceptance_criteria)
    bad = sorted({r for t in a.tasks for r in t.ac_refs if not 1 <= r <= n})
    if bad:
        return False, f"AC indices out of range 1..{n}: {', '.join(map(str, bad))}"
    return True, f"all AC links within 1..{n}"


def _ac_covered_by_task(a: StoryArtifact) -> tuple[bool, str]:
    linked = {r for t in a.tasks for r in t.ac_refs}
    uncovered = [i for i in range(1, len(a.acceptance_criteria) + 1) if i not in linked]
    if uncovered:
        return False, f"AC without tasks: {', '.join(map(str, uncovered))}"
    return True, "every AC has a task"


def _generic_included(a: StoryArtifact) -> tuple[bool, str]:
    ok = StoryTypeClassification.GENERIC in a.classifications
    return ok, "Generic category present" if ok else "Generic category missing"


def _category_has_fact(a: StoryArtifact) -> tuple[bool, str]:
    empty = [c.value for c in a.classifications if not a.facts_for(c)]
    if empty:
        return False, f"categories without facts: {', '.join(empty)}"
    return True, f"{len(a.classifications)} categor{'y' if len(a.classifications) == 1 else 'ies'} covered"


def _facts_cited(a: StoryArtifact) -> tuple[bool, str]:
    bad = [i for i, f in enumerate(a.dev_notes, 1) if not f.is_well_formed]
    if bad:
        return False, f"uncited facts: {', '.join(map(str, bad))}"
    sentinels = sum(1 for f in a.dev_notes if f.is_sentinel)
    return True, f"{len(a.dev_notes) - sentinels} cited, {sentinels} sentinel"


DEFAULT_RULES = [
    Rule("status-draft", "Status field equals Draft", _status_is_draft),
    Rule("title-present", "Story has a title", _title_present),
    Rule("has-acceptance-criteria", "Story has acceptance criteria", _has_acceptance_criteria),
    Rule("tasks-present", "Story has tasks", _tasks_present),
    Rule("tasks-reference-ac", "Every task references at least one AC", _tasks_reference_ac),
    Rule("task-ac-refs-valid", "Task AC references point at existing AC", _task_ac_refs_valid),
    Rule("ac-covered-by-task", "Every AC is covered by a task", _ac_covered_by_task),
    Rule("generic-included", "Generic category is always consulted", _generic_included),
    Rule("category-has-fact", "Every category has at least one CitedFact", _category_has_fact),
    Rule("facts-cited", "Every fact is cited or the no-guidance sentinel", _facts_cited),
]


@dataclass
class ChecklistReport:
    results: list[RuleResult] = field(default_factory=list)

    @property
    def failures(self) -> list[RuleResult]:
        return [r for r in self.results if not r.passed]

    @property
    def passed(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        if self.failures:
            raise ChecklistFailure(self.failures)

    def format(self) -> str:
        lines = []
        for r in self.results:
            mark = "PASS" if r.passed else "FAIL"
            lines.append(f"  [{mark}] {r.rule_id:<24} {r.evidence}")
        return "\n".join(lines)


def validate(artifact: StoryArtifact, ruleset: Optional[list[Rule]] = None) -> list[RuleResult]:
    """Evaluate every rule in order."""
    results = []
    for rule in ruleset if ruleset is not None else DEFAULT_RULES:
        passed, evidence = rule.check(artifact)
        results.append(RuleResult(rule.rule_id, passed, evidence))
        if not passed:
            logger.info(f"[CHECK] Story {artifact.ref}: {rule.rule_id} failed ({evidence})")
    return results


def run_checklist(artifact: StoryArtifact, ruleset: Optional[list[Rule]] = None) -> ChecklistReport:
    return ChecklistReport(validate(artifact, ruleset))


def load_ruleset(path: Optional[Path]) -> list[Rule]:
    """Default rules, minus any disabled in the YAML file at path."""
    if path is None or not path.exists():
        return list(DEFAULT_RULES)

    try:
        data = yaml.safe_load(path.read_text()) or {}
        toggles = data.get("rules", {}) or {}
        if not isinstance(toggles, dict):
            raise ValueError("'rules' must map rule ids to true/false")
    except (yaml.YAMLError, AttributeError, ValueError) as e:
        logger.warning(f"Failed to parse {path}: {e}; using default checklist")
        return list(DEFAULT_RULES)

    known = {r.rule_id for r in DEFAULT_RULES}
    for rule_id in toggles:
        if rule_id not in known:
            logger.warning(f"Unknown checklist rule '{rule_id}' in {path}")
    return [r for r in DEFAULT_RULES if toggles.get(r.rule_id, True) is not False]
