"""Tests for dialogue phase resolution."""

from concierge.conversation.state_machine import DialoguePhase, DialogueState, resolve_phase


class TestResolvePhase:
    def test_completed_wins_over_everything(self):
        state = resolve_phase(["name"], completed=True, first_turn=True)
        assert state.phase == DialoguePhase.COMPLETED

    def test_greeting_on_first_turn(self):
        state = resolve_phase(["party_size", "date_time", "name"], first_turn=True)
        assert state == DialogueState(DialoguePhase.GREETING)

    def test_collecting_asks_first_missing_field(self):
        state = resolve_phase(["date_time", "name"])
        assert state.phase == DialoguePhase.COLLECTING
        assert state.missing_field == "date_time"
        assert state.describe() == "collecting(date_time)"

    def test_confirming_when_everything_is_present(self):
        state = resolve_phase([], needs_confirmation=True)
        assert state.phase == DialoguePhase.CONFIRMING
        assert state.describe() == "confirming"

    def test_completed_without_confirmation_step(self):
        assert resolve_phase([]).phase == DialoguePhase.COMPLETED
