"""Tests for final polish."""

from render import extract_next_step_hint, polish_text
from schemas import ContentPlan, Slot


class TestPolish:
    def test_strips_axis_labels_and_meta_lines(self):
        raw = "depth_stage: I2\nYou have been carrying this (Q3) for a while.\n\n\n\nIt matters."
        assert polish_text(raw) == "You have been carrying this for a while.\n\nIt matters."

    def test_idempotent(self):
        raw = "  It has been a long week.   \n\n\nYou kept going anyway. "
        once = polish_text(raw, affect="Q3")
        assert polish_text(once, affect="Q3") == once

    def test_comfort_phrase_for_anxious_affect(self):
        out = polish_text("It has been a long week.", affect="Q3")
        assert out == "Let's slow down for a moment.\nIt has been a long week."

    def test_no_comfort_for_other_affects_or_lists(self):
        assert polish_text("It has been a long week.", affect="Q2") == "It has been a long week."
        assert polish_text("Take a walk\nCall a friend", affect="Q4", list_contract=True) == "Take a walk\nCall a friend"

    def test_locked_spans_untouched(self):
        span = "Step  S2   stays   exactly  like this."
        out = polish_text(f"Intro line.\n[[LOCK]]{span}[[/LOCK]]", locked_spans=[span])
        assert span in out
        assert "[[LOCK]]" not in out

    def test_verbatim_only_unwraps(self):
        assert polish_text("  …  ", verbatim=True) == "…"


class TestNextStepHint:
    def test_from_notes(self):
        assert extract_next_step_hint({"next_step": "  write one line tonight "}) == "write one line tonight"

    def test_from_json_note(self):
        assert extract_next_step_hint({"next": '{"hint": "call your sister"}'}) == "call your sister"

    def test_from_plan_slot(self):
        plan = ContentPlan(slots=[Slot(key="CORE", text="body"), Slot(key="NEXT_HINT", text="@NEXT_HINT rest early")])
        assert extract_next_step_hint(None, plan) == "rest early"

    def test_none_when_absent(self):
        assert extract_next_step_hint({}, None) is None
