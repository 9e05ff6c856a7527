"""Story sequencer: decides which story to draft next.

State machine on the transitions library:

    start --evaluate--> resolved                         (no stories yet: 1.1)
    start --evaluate--> awaiting_override_confirmation   (latest story not Done)
    start --evaluate--> awaiting_epic_advance_choice     (latest story closed its epic)
    start --evaluate--> resolved                         (next story in the same epic)

    awaiting_override_confirmation --confirm_override--> resolved (epic, story + 1)
    awaiting_override_confirmation --decline_override--> cancelled
    awaiting_epic_advance_choice   --next_epic--------> resolved (epic + 1, 1)
    awaiting_epic_advance_choice   --choose_story-----> resolved (caller's ref)
    awaiting_epic_advance_choice   --cancel-----------> cancelled

Crossing an epic boundary always goes through awaiting_epic_advance_choice;
there is no transition that does it silently.

Usage:
    seq = Sequencer(scan(repo), last_closes_epic=True)
    seq.evaluate()
    if seq.is_waiting:
        seq.apply(SequencerDecision(action="next_epic"))
    seq.resolved_ref
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Literal, Optional

from pydantic import BaseModel, model_validator
from transitions import Machine, MachineError

from storyprep.errors import EpicChoiceRequired, IncompleteStoryOverrideRequired, InvalidDecision
from storyprep.story.models import StoryRef, StoryStatus

logger = logging.getLogger(__name__)

START = "start"
AWAITING_OVERRIDE = "awaiting_override_confirmation"
AWAITING_EPIC_CHOICE = "awaiting_epic_advance_choice"
RESOLVED = "resolved"
CANCELLED = "cancelled"

STATES = [START, AWAITING_OVERRIDE, AWAITING_EPIC_CHOICE, RESOLVED, CANCELLED]
TERMINAL_STATES = (RESOLVED, CANCELLED)

# Order matters for "evaluate": the first transition whose conditions pass wins.
TRANSITIONS = [
    {"trigger": "evaluate", "source": START, "dest": RESOLVED,
     "conditions": "_no_history", "after": "_resolve_first"},
    {"trigger": "evaluate", "source": START, "dest": AWAITING_OVERRIDE,
     "unless": "_last_done"},
    {"trigger": "evaluate", "source": START, "dest": AWAITING_EPIC_CHOICE,
     "conditions": "_last_closes_epic"},
    {"trigger": "evaluate", "source": START, "dest": RESOLVED,
     "after": "_resolve_next_in_epic"},

    {"trigger": "confirm_override", "source": AWAITING_OVERRIDE, "dest": RESOLVED,
     "after": "_resolve_next_in_epic"},
    {"trigger": "decline_override", "source": AWAITING_OVERRIDE, "dest": CANCELLED},

    {"trigger": "next_epic", "source": AWAITING_EPIC_CHOICE, "dest": RESOLVED,
     "after": "_resolve_next_epic"},
    {"trigger": "choose_story", "source": AWAITING_EPIC_CHOICE, "dest": RESOLVED,
     "before": "_check_choice", "after": "_resolve_chosen"},
    {"trigger": "cancel", "source": AWAITING_EPIC_CHOICE, "dest": CANCELLED},
]

# Decision action -> trigger, per waiting state
DECISION_TRIGGERS = {
    AWAITING_OVERRIDE: {"confirm": "confirm_override", "decline": "decline_override"},
    AWAITING_EPIC_CHOICE: {"next_epic": "next_epic", "choose_story": "choose_story", "cancel": "cancel"},
}


class SequencerDecision(BaseModel):
    """External decision resolving a waiting sequencer state."""
    action: Literal["confirm", "decline", "next_epic", "choose_story", "cancel"]
    epic: Optional[int] = None
    story: Optional[int] = None

    @model_validator(mode="after")
    def _ref_for_choice(self):
        if self.action == "choose_story" and (self.epic is None or self.story is None):
            raise ValueError("choose_story requires epic and story")
        return self

    @property
    def ref(self) -> Optional[StoryRef]:
        if self.epic is None or self.story is None:
            return None
        return StoryRef(self.epic, self.story)


@dataclass
class DecisionRequest:
    """What the sequencer is waiting on, for whoever supplies the decision."""
    state: str
    last_ref: StoryRef
    last_status: StoryStatus
    options: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.state == AWAITING_OVERRIDE:
            return (
                f"Story {self.last_ref} is {self.last_status.value}, not Done. "
                f"Draft story {self.last_ref.next_in_epic()} anyway?"
            )
        return (
            f"Story {self.last_ref} was the last story of epic {self.last_ref.epic}. "
            f"Start epic {self.last_ref.epic + 1}, pick a specific story, or cancel?"
        )


class Sequencer:
    """Next-story state machine.

    Args:
        last: scanner output, (ref, status) of the highest story or None
        last_closes_epic: whether last ref is the final story of its epic
        on_transition: optional callback(from_state, to_state, trigger)
    """

    def __init__(
        self,
        last: Optional[tuple[StoryRef, StoryStatus]],
        last_closes_epic: bool = False,
        on_transition: Callable[[str, str, str], None] | None = None,
    ):
        self.last_ref, self.last_status = last if last else (None, None)
        self.last_closes_epic = last_closes_epic
        self.on_transition = on_transition
        self.resolved_ref: Optional[StoryRef] = None

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial=START,
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    # Conditions

    def _no_history(self, event) -> bool:
        return self.last_ref is None

    def _last_done(self, event) -> bool:
        return self.last_status == StoryStatus.DONE

    def _last_closes_epic(self, event) -> bool:
        return self.last_closes_epic

    def _check_choice(self, event) -> None:
        ref = event.kwargs.get("ref")
        if not isinstance(ref, StoryRef):
            raise InvalidDecision("choose_story requires a StoryRef")
        if ref.epic > self.last_ref.epic + 1:
            raise InvalidDecision(
                f"Story {ref} skips past epic {self.last_ref.epic + 1}; "
                f"at most one epic beyond {self.last_ref.epic} may be started"
            )

    # Resolutions

    def _resolve_first(self, event) -> None:
        self.resolved_ref = StoryRef(1, 1)

    def _resolve_next_in_epic(self, event) -> None:
        self.resolved_ref = self.last_ref.next_in_epic()

    def _resolve_next_epic(self, event) -> None:
        self.resolved_ref = self.last_ref.first_of_next_epic()

    def _resolve_chosen(self, event) -> None:
        self.resolved_ref = event.kwargs["ref"]

    def on_state_change(self, event) -> None:
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name
        detail = f" -> story {self.resolved_ref}" if to_state == RESOLVED else ""
        logger.info(f"[SEQ] {from_state} -> {to_state} ({trigger}){detail}")
        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_waiting(self) -> bool:
        return self.state in DECISION_TRIGGERS

    def request(self) -> Optional[DecisionRequest]:
        """Describe the pending decision, or None if nothing is pending."""
        if not self.is_waiting:
            return None
        return DecisionRequest(
            state=self.state,
            last_ref=self.last_ref,
            last_status=self.last_status,
            options=list(DECISION_TRIGGERS[self.state]),
        )

    def apply(self, decision: SequencerDecision) -> str:
        """Apply an external decision to a waiting state; returns the new state.

        Raises:
            InvalidDecision: if the decision doesn't fit the current state
        """
        triggers = DECISION_TRIGGERS.get(self.state)
        if triggers is None or decision.action not in triggers:
            raise InvalidDecision(f"Decision '{decision.action}' not accepted in state '{self.state}'")

        trigger = getattr(self, triggers[decision.action])
        try:
            if decision.action == "choose_story":
                trigger(ref=decision.ref)
            else:
                trigger()
        except MachineError as e:
            raise InvalidDecision(str(e)) from e
        return self.state


DecisionCallback = Callable[[DecisionRequest], SequencerDecision]


def resolve_next_story(
    last: Optional[tuple[StoryRef, StoryStatus]],
    last_closes_epic: bool,
    decide: Optional[DecisionCallback] = None,
) -> Optional[StoryRef]:
    """Run the sequencer to a terminal state.

    `decide` is called (and may block) for every waiting state. Returns the
    resolved ref, or None when cancelled.

    Raises:
        IncompleteStoryOverrideRequired: latest story not Done and no decide callback
        EpicChoiceRequired: latest story closed its epic and no decide callback
        InvalidDecision: decide returned an unacceptable decision
    """
    seq = Sequencer(last, last_closes_epic)
    seq.evaluate()
    while not seq.is_terminal:
        if decide is None:
            if seq.state == AWAITING_OVERRIDE:
                raise IncompleteStoryOverrideRequired(seq.last_ref, seq.last_status)
            raise EpicChoiceRequired(seq.last_ref)
        seq.apply(decide(seq.request()))
    return seq.resolved_ref
