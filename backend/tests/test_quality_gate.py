"""Tests for the layered output contracts and deterministic repairs."""

import pytest

from locked_spans import (
    extract_locked_spans,
    merge_spans,
    protect_spans,
    repair_locked_spans,
    restore_spans,
    strip_lock_delimiters,
)
from quality_gate import (
    CANDIDATE_LIST_SHAPE_REJECT,
    INTERNAL_MARKER_LEAKED,
    LOCKED_SPAN_LOST,
    OK_TOO_SHORT,
    OUT_EMPTY,
    RECALL_GUARD_REJECT,
    GateContext,
    classify_turn,
    has_question,
    is_directive_only,
    min_ok_len,
    strip_internal_markers,
    validate_output,
    validate_with_repair,
)
from schemas import ContentPlan, SignalCandidates, Slot, SlotPolicy, VerdictLevel

BODY = "It sounds like the week pressed on you from every side, and you kept showing up anyway."


def _recall_plan():
    return ContentPlan(
        policy=SlotPolicy.FINAL,
        slots=[
            Slot(key="RESTORE", text="the argument with your sister"),
            Slot(key="Q", text="what did it leave behind"),
        ],
    )


class TestContracts:
    def test_empty_is_fatal(self):
        v = validate_output("   ", GateContext())
        assert v.level == VerdictLevel.FATAL
        assert v.reasons == [OUT_EMPTY]

    def test_marker_leak(self):
        v = validate_output("@TASK mirror first\n" + BODY, GateContext())
        assert v.reasons == [INTERNAL_MARKER_LEAKED]

    def test_locked_span_lost(self):
        v = validate_output(BODY, GateContext(locked_spans=["Breathe in for four."]))
        assert v.reasons == [LOCKED_SPAN_LOST]

    def test_recall_guard_needs_restore_and_question(self):
        ctx = GateContext(plan=_recall_plan())
        assert validate_output(BODY, ctx).reasons == [RECALL_GUARD_REJECT]
        ok = validate_output(
            "Earlier you mentioned the argument with your sister and how long it stayed with you. "
            "What did it leave behind?",
            ctx,
        )
        assert ok.level == VerdictLevel.OK

    def test_recall_guard_without_question_budget(self):
        """When no question is allowed, bringing the earlier point back is enough."""
        ctx = GateContext(plan=_recall_plan(), max_questions=0)
        assert validate_output(BODY, ctx).reasons == [RECALL_GUARD_REJECT]
        ok = validate_output(
            "Earlier you mentioned the argument with your sister and how long it stayed with you.",
            ctx,
        )
        assert ok.level == VerdictLevel.OK

    def test_list_shape(self):
        v = validate_output(BODY, GateContext(list_contract=True))
        assert v.reasons == [CANDIDATE_LIST_SHAPE_REJECT]

    def test_contracts_run_before_content_guard(self):
        v = validate_output("@OBS x\nWhat? Why?", GateContext())
        assert v.reasons == [INTERNAL_MARKER_LEAKED]


class TestLengthPolicy:
    @pytest.mark.parametrize(
        "kwargs,expected",
        [
            ({"signals": SignalCandidates(micro=True)}, "micro"),
            ({"signals": SignalCandidates(), "list_contract": True}, "candidate_list"),
            ({"signals": SignalCandidates(), "directive": "concretize"}, "concretize"),
            ({"signals": SignalCandidates()}, "chat"),
            ({"signals": SignalCandidates(), "plan": ContentPlan(slots=[Slot(key="CORE", text="x")])}, "planned"),
        ],
    )
    def test_classify(self, kwargs, expected):
        assert classify_turn(**kwargs) == expected

    def test_minimums(self):
        assert min_ok_len("micro") == 0
        assert min_ok_len("candidate_list") == 0
        assert min_ok_len("concretize") == 24
        assert min_ok_len("chat") == 40
        assert min_ok_len("planned") == 80

    def test_short_reply_warns(self):
        v = validate_output("That sounds heavy.", GateContext(min_len=80))
        assert v.level == VerdictLevel.WARN
        assert OK_TOO_SHORT in v.reasons

    def test_forward_marker_exempts_short_reply(self):
        assert validate_output("Let's take the next step tomorrow.", GateContext(min_len=80)).ok


class TestRepairs:
    def test_marker_strip(self):
        text, v, repaired = validate_with_repair("@TASK mirror first\n" + BODY, GateContext())
        assert text == BODY
        assert v.ok
        assert repaired is True

    def test_locked_span_appended(self):
        span = "Breathe in for four."
        text, v, repaired = validate_with_repair(BODY, GateContext(locked_spans=[span]))
        assert text.endswith("\n" + span)
        assert v.ok
        assert repaired

    def test_list_salvaged(self):
        prose = "Maybe you could take a short walk after lunch. You could also call your sister for 10 minutes."
        text, v, repaired = validate_with_repair(prose, GateContext(list_contract=True))
        assert text == "Take a short walk after lunch\nCall your sister for 10 minutes"
        assert v.ok

    def test_unrepairable_stays_fatal(self):
        text, v, repaired = validate_with_repair(BODY, GateContext(plan=_recall_plan()))
        assert v.level == VerdictLevel.FATAL
        assert repaired is False
        assert text == BODY


class TestMarkers:
    def test_strip_internal_markers(self):
        assert strip_internal_markers("@TASK do x\nHello there\nBACKGROUND (internal, never quote):") == "Hello there"

    def test_directive_only(self):
        assert is_directive_only("@TASK x\n@NEXT y")
        assert not is_directive_only("@TASK x\nHello")


class TestLockedSpans:
    def test_extract_and_merge(self):
        spans = extract_locked_spans("a [[LOCK]]keep me[[/LOCK]] b", "[[LOCK]]keep me[[/LOCK]]")
        assert spans == ["keep me"]
        assert merge_spans(["x"], spans, ["x"]) == ["x", "keep me"]

    def test_strip_delimiters(self):
        assert strip_lock_delimiters("a [[LOCK]]b[[/LOCK]] c [[/LOCK]]") == "a b c "

    def test_protect_restore(self):
        protected, table = protect_spans("say Q3 here", ["Q3 here"])
        assert "Q3" not in protected
        assert restore_spans(protected, table) == "say Q3 here"

    def test_repair_appends_only_missing(self):
        assert repair_locked_spans("keep me", ["keep me"]) == "keep me"
        assert repair_locked_spans("", ["keep me"]) == "keep me"


class TestQuestionDetection:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Where does it sit in you?", True),
            ("What stays with you from that day", True),
            ("I hear you. So, what stays with you from that day", True),
            ("I know what you mean.", False),
            ("Tell me when you feel ready, there is no hurry.", False),
            ("That is who you were back then.", False),
        ],
    )
    def test_interrogative_only_opens_a_clause(self, text, expected):
        assert has_question(text) is expected
