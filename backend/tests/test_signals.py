"""Tests for lexical signal extraction."""

import pytest

from errors import SignalExtractionDegraded
from signals import (
    detect_depth,
    detect_explicit_affect,
    detect_keyword_affect,
    detect_phase,
    detect_risk_flags,
    detect_structural_affect,
    detect_topic,
    empty_signals,
    extract_signals,
    is_greeting,
    is_micro,
)


class TestDepthCandidate:
    """Most specific trigger table wins."""

    def test_existential_i3_is_strong(self):
        assert detect_depth("What is the meaning of my life, honestly") == ("I3", True)

    def test_i2_beats_i1(self):
        """'my purpose' is I2 even though 'purpose' alone is I1."""
        assert detect_depth("I keep looking for my purpose") == ("I2", True)

    def test_relational(self):
        assert detect_depth("I argued with my boss again") == ("R1", False)

    def test_action(self):
        assert detect_depth("The deadline for the project is close") == ("C1", False)

    def test_self_care(self):
        assert detect_depth("I'm so tired lately") == ("S2", False)

    def test_no_trigger(self):
        assert detect_depth("nice weather outside") == (None, False)


class TestAffectCandidate:
    """Explicit code first, then structural signals, then a keyword scan."""

    def test_explicit_code(self):
        assert detect_explicit_affect("honestly this feels like q4 today") == "Q4"

    def test_incident_with_freeze(self):
        assert detect_structural_affect("There was an incident at work and I froze") == "Q4"

    def test_urgency_with_blocked(self):
        assert detect_structural_affect("It's urgent and I'm stuck") == "Q3"

    def test_emptiness_alone(self):
        assert detect_structural_affect("Everything feels hollow") == "Q5"

    def test_incident_alone_is_not_forced(self):
        assert detect_structural_affect("I made a mistake yesterday") is None

    def test_keyword_needs_two_hits(self):
        assert detect_keyword_affect("I'm anxious") is None
        assert detect_keyword_affect("I'm anxious and worried about the future") == "Q3"

    def test_explicit_marks_candidate(self):
        s = extract_signals("Q2, I think")
        assert s.affect == "Q2"
        assert s.affect_explicit is True


class TestPhaseTopicRisk:
    def test_both_directions_is_inner(self):
        assert detect_phase("I feel bad about how they treated me") == "Inner"

    def test_outward_only(self):
        assert detect_phase("they never listen") == "Outer"

    def test_topic_bucket(self):
        assert detect_topic("my boss yelled at work") == "work"
        assert detect_topic("the sky is grey") == "other"

    def test_risk_flags_include_caller_flags(self):
        flags = detect_risk_flags("sometimes I want to die", ["Panic"])
        assert flags == ["suicide_risk", "panic"]


class TestInputClasses:
    def test_micro(self):
        assert is_micro("ok")
        assert is_micro("...")
        assert not is_micro("I had a long day")

    def test_greeting(self):
        assert is_greeting("hello")
        assert is_greeting("hi there")
        assert not is_greeting("I said hello to my boss and he ignored me")


class TestExtractSignals:
    def test_empty_text_degrades(self):
        with pytest.raises(SignalExtractionDegraded):
            extract_signals("   ")

    def test_non_text_degrades(self):
        with pytest.raises(SignalExtractionDegraded):
            extract_signals(None)

    def test_counts_and_flags(self):
        s = extract_signals("I hate myself. Why? Why?! I have no time")
        assert s.self_attack == 1
        assert s.question_marks == 2
        assert s.time_pressure is True

    def test_boundary_request_is_about_probing(self):
        assert extract_signals("Please stop asking, just leave me alone.").boundary_request is True
        assert extract_signals("I need to step back and think about it.").boundary_request is False
        assert extract_signals("Not now, I am cooking.").boundary_request is False

    def test_empty_signals_move_nothing(self):
        s = empty_signals(["self_harm"])
        assert s.depth is None
        assert s.affect is None
        assert s.risk_flags == ["self_harm"]
