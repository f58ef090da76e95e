"""
Dialogue phases for the slot-filling agents.

Agents do not store a phase; it is derived every turn from what the session
already holds. ``resolve_phase`` is the single decision tree all three agents
share, so "which question comes next" is deterministic and testable without
running an agent.

    greeting -> collecting(field) -> confirming -> completed

``completed`` is terminal for the side effect. The agent keeps answering in
that phase, but never triggers the side effect again.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence


class DialoguePhase(str, Enum):
    """All phases an agent can be in for one turn."""
    GREETING = "greeting"
    COLLECTING = "collecting"
    CONFIRMING = "confirming"
    COMPLETED = "completed"


@dataclass(frozen=True)
class DialogueState:
    """Resolved phase plus the field being asked for, if any."""
    phase: DialoguePhase
    missing_field: Optional[str] = None

    def describe(self) -> str:
        if self.phase == DialoguePhase.COLLECTING:
            return f"collecting({self.missing_field})"
        return self.phase.value


def resolve_phase(
    missing_fields: Sequence[str],
    *,
    completed: bool = False,
    first_turn: bool = False,
    needs_confirmation: bool = False,
) -> DialogueState:
    """Pick the phase for this turn.

    Args:
        missing_fields: required fields still empty, in the order to ask.
        completed: the side effect already succeeded.
        first_turn: the agent has not spoken yet and nothing was extracted.
        needs_confirmation: every field is present but the caller has not
            confirmed the read-back.
    """
    if completed:
        return DialogueState(DialoguePhase.COMPLETED)
    if first_turn:
        return DialogueState(DialoguePhase.GREETING)
    if missing_fields:
        return DialogueState(DialoguePhase.COLLECTING, missing_fields[0])
    if needs_confirmation:
        return DialogueState(DialoguePhase.CONFIRMING)
    return DialogueState(DialoguePhase.COMPLETED)
