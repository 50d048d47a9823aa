"""Tests for the rotation rule table (SRI/TCF loops and the descent gate)."""

import itertools

import pytest

from rotation import ROTATION_RULES, RotationInputs, decide_rotation, matching_rules
from schemas import DescentGate, RotationLoop


def _inp(**kw):
    base = {"loop": RotationLoop.SRI, "gate": DescentGate.CLOSED, "depth": "I2", "self_acceptance": 0.5}
    base.update(kw)
    return RotationInputs(**base)


class TestInterlocks:
    """Safety interlocks hold everything, even with a consent signal."""

    def test_stay_request(self):
        d = decide_rotation(_inp(stay_requested=True, action_explicit=True))
        assert d.rule == "stay_requested"
        assert d.loop == RotationLoop.SRI
        assert d.gate == DescentGate.CLOSED
        assert d.depth == "I2"

    def test_low_self_acceptance(self):
        d = decide_rotation(_inp(self_acceptance=0.2, action_explicit=True))
        assert d.rule == "low_self_accept"
        assert d.loop == RotationLoop.SRI

    def test_severe_risk_flag(self):
        d = decide_rotation(_inp(risk_flags=["suicide_risk"], user_accepted=True))
        assert d.rule == "risk_flag"

    def test_mild_flag_does_not_hold(self):
        d = decide_rotation(_inp(risk_flags=["mild_worry"], user_accepted=True))
        assert d.rule == "descend"

    def test_interlock_order(self):
        inp = _inp(stay_requested=True, self_acceptance=0.1, risk_flags=["self_harm"])
        assert matching_rules(inp)[:3] == ["stay_requested", "low_self_accept", "risk_flag"]
        assert decide_rotation(inp).rule == "stay_requested"


class TestDescentGate:
    def test_explicit_action_descends_to_t1(self):
        d = decide_rotation(_inp(action_explicit=True))
        assert d.rule == "descend"
        assert d.loop == RotationLoop.TCF
        assert d.gate == DescentGate.ACCEPTED
        assert d.depth == "T1"
        assert d.override is True

    def test_user_accepted_from_offered(self):
        d = decide_rotation(_inp(gate=DescentGate.OFFERED, user_accepted=True))
        assert d.gate == DescentGate.ACCEPTED
        assert d.loop == RotationLoop.TCF

    def test_weak_action_in_i_band_offers(self):
        d = decide_rotation(_inp(action_weak=True))
        assert d.rule == "offer"
        assert d.gate == DescentGate.OFFERED
        assert d.loop == RotationLoop.SRI
        assert d.depth == "I2"

    def test_weak_action_outside_i_t_does_nothing(self):
        d = decide_rotation(_inp(depth="R1", action_weak=True))
        assert d.rule == "hold"
        assert d.gate == DescentGate.CLOSED

    def test_boundary_offers_a_closed_gate(self):
        d = decide_rotation(_inp(boundary_requested=True))
        assert d.rule == "boundary"
        assert d.gate == DescentGate.OFFERED
        assert d.loop == RotationLoop.SRI
        assert d.depth == "I2"

    def test_boundary_keeps_a_consented_descent(self):
        """Inside TCF a boundary request pauses the advance; it never reverts to SRI."""
        d = decide_rotation(_inp(loop=RotationLoop.TCF, gate=DescentGate.ACCEPTED, depth="C1", boundary_requested=True))
        assert d.rule == "boundary"
        assert d.gate == DescentGate.ACCEPTED
        assert d.loop == RotationLoop.TCF
        assert d.depth == "C1"
        assert d.moved is False


class TestTCFLoop:
    @pytest.mark.parametrize(
        "depth,expected",
        [("T1", "C1"), ("T3", "C1"), ("C1", "F1"), ("C2", "F1")],
    )
    def test_advance_one_stage(self, depth, expected):
        d = decide_rotation(_inp(loop=RotationLoop.TCF, gate=DescentGate.ACCEPTED, depth=depth))
        assert d.rule == "tcf_advance"
        assert d.depth == expected
        assert d.override is True

    def test_f1_is_terminal(self):
        d = decide_rotation(_inp(loop=RotationLoop.TCF, gate=DescentGate.ACCEPTED, depth="F1"))
        assert d.rule == "tcf_terminal"
        assert d.depth == "F1"
        assert d.moved is False

    def test_tcf_is_monotonic(self):
        """Repeated turns walk T -> C -> F and never go back."""
        depth, seen = "T1", []
        for _ in range(5):
            d = decide_rotation(_inp(loop=RotationLoop.TCF, gate=DescentGate.ACCEPTED, depth=depth))
            depth = d.depth
            seen.append(depth)
        assert seen == ["C1", "F1", "F1", "F1", "F1"]

    def test_revert_without_accepted_gate(self):
        d = decide_rotation(_inp(loop=RotationLoop.TCF, gate=DescentGate.OFFERED, depth="C1"))
        assert d.rule == "tcf_revert"
        assert d.loop == RotationLoop.SRI
        assert d.depth == "C1"


class TestSRIAdvance:
    def test_q3_streak_moves_s_to_r1(self):
        d = decide_rotation(
            _inp(depth="S2", affect="Q3", last_goal_kind="uncover", goal_streak=2)
        )
        assert d.rule == "sri_advance"
        assert d.depth == "R1"
        assert d.loop == RotationLoop.SRI

    def test_short_streak_holds(self):
        d = decide_rotation(_inp(depth="S2", affect="Q3", last_goal_kind="uncover", goal_streak=1))
        assert d.rule == "hold"
        assert d.depth == "S2"

    def test_other_goal_kind_holds(self):
        d = decide_rotation(_inp(depth="S2", affect="Q3", last_goal_kind="enableAction", goal_streak=3))
        assert d.rule == "hold"


class TestInvariants:
    def test_tcf_only_with_accepted_gate(self):
        """Whatever the signals, a TCF decision always carries gate=accepted."""
        states = [(RotationLoop.SRI, g) for g in DescentGate] + [(RotationLoop.TCF, DescentGate.ACCEPTED)]
        flags = ("stay_requested", "boundary_requested", "action_weak", "action_explicit", "delegation", "user_accepted")
        for (loop, gate), depth, bits in itertools.product(states, ("S2", "I2", "T1", "C1"), itertools.product((False, True), repeat=len(flags))):
            inp = _inp(loop=loop, gate=gate, depth=depth, **dict(zip(flags, bits)))
            d = decide_rotation(inp)
            if d.loop == RotationLoop.TCF:
                assert d.gate == DescentGate.ACCEPTED, (inp, d)

    def test_every_rule_has_a_name(self):
        names = [name for name, _, _ in ROTATION_RULES]
        assert len(names) == len(set(names))
