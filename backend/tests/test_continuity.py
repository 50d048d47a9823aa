"""Tests for depth/affect continuity smoothing."""

from axes import DEPTH_ORDER, band_distance, is_band
from continuity import advance_streak, affect_strength, resolve_affect, resolve_depth
from schemas import Streak


class TestResolveDepth:
    def test_first_turn_adopts_candidate(self):
        res = resolve_depth(None, "R1", first_turn=True)
        assert res.depth == "R1"
        assert res.reason == "first_turn"

    def test_no_candidate_holds(self):
        assert resolve_depth("R2", None).depth == "R2"

    def test_within_range(self):
        res = resolve_depth("S2", "R1")
        assert res.depth == "R1"
        assert res.reason == "within_range"

    def test_long_jump_is_smoothed(self):
        res = resolve_depth("S1", "C3")
        assert res.depth == "S2"
        assert res.reason == "smoothed_one_step"

    def test_strong_trigger_jumps(self):
        res = resolve_depth("S1", "I3", strong=True)
        assert res.depth == "I3"
        assert res.jumped is True

    def test_i_band_holds_against_weak_candidate(self):
        res = resolve_depth("I2", "S2")
        assert res.depth == "I2"
        assert res.reason == "i_band_hold"

    def test_strong_inside_i_only_deepens(self):
        assert resolve_depth("I3", "I1", strong=True).depth == "I3"
        assert resolve_depth("I1", "I3", strong=True).depth == "I3"

    def test_weak_moves_stay_within_one_band(self):
        """Without a strong trigger depth never moves more than one band per turn."""
        for prev in DEPTH_ORDER:
            for cand in DEPTH_ORDER:
                res = resolve_depth(prev, cand, strong=False)
                assert band_distance(prev, res.depth) <= 1, (prev, cand, res.depth)
                if is_band(prev, "I") and not is_band(cand, "I"):
                    assert res.depth == prev


class TestResolveAffect:
    def test_no_previous_adopts(self):
        res = resolve_affect(None, "Q3")
        assert res.affect == "Q3"
        assert res.reason == "no_previous"

    def test_no_candidate_holds(self):
        assert resolve_affect("Q2", None).affect == "Q2"

    def test_explicit_always_wins(self):
        assert resolve_affect("Q1", "Q3", explicit=True, strength=0.0).affect == "Q3"

    def test_weak_signal_holds(self):
        res = resolve_affect("Q1", "Q3", strength=0.2)
        assert res.affect == "Q1"
        assert res.reason == "weak_signal_hold"

    def test_strong_signal_switches(self):
        assert resolve_affect("Q1", "Q3", strength=0.31).affect == "Q3"

    def test_threshold_itself_holds(self):
        strength = affect_strength(-0.15, 1.0)
        assert strength == 0.3
        assert resolve_affect("Q1", "Q3", strength=strength).affect == "Q1"


class TestStreak:
    def test_start_extend_switch_reset(self):
        s = advance_streak(None, "uncover")
        assert s == Streak(value="uncover", length=1)
        s = advance_streak(s, "uncover")
        assert s.length == 2
        s = advance_streak(s, "stabilize")
        assert s == Streak(value="stabilize", length=1)
        assert advance_streak(s, None).length == 0
