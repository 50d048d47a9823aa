"""Affect estimation: self-acceptance, volatility, slack, polarity, stability."""

from typing import Optional

from axes import band_of, normalize_affect
from config import (
    POLARITY_BAND,
    SA_ACCEPTANCE_DELTA,
    SA_DEFAULT,
    SA_DELTA_CAP,
    SA_INNER_I_MULTIPLIER,
    SA_SELF_ATTACK_DELTA,
    VOLATILITY_HYSTERESIS,
)
from schemas import SignalCandidates
from text_utils import clamp, clamp01

AFFECT_POLARITY_BIAS = {"Q1": -0.10, "Q2": 0.05, "Q3": -0.10, "Q4": -0.15, "Q5": 0.05}
AFFECT_VOLATILITY = {"Q1": 0.5, "Q2": 1.0, "Q3": 1.0, "Q4": 1.0, "Q5": 0.5}


def _round_half_up(x: float) -> int:
    return int(x + 0.5) if x >= 0 else -int(-x + 0.5)


def _clamp_level(x: float) -> int:
    return int(clamp(_round_half_up(x), 0, 3))


# ---------------------------------------------------------------------------
# Self-acceptance
# ---------------------------------------------------------------------------

def self_acceptance_delta(signals: SignalCandidates) -> float:
    """Raw text delta before the depth/phase intensity multiplier."""
    delta = 0.0
    if signals.self_attack > 0:
        delta += SA_SELF_ATTACK_DELTA
    if signals.self_acceptance > 0:
        delta += SA_ACCEPTANCE_DELTA
    return delta


def intensity_multiplier(depth: Optional[str], phase: Optional[str]) -> float:
    if band_of(depth) == "I" and phase == "Inner":
        return SA_INNER_I_MULTIPLIER
    return 1.0


def estimate_self_acceptance(
    previous: Optional[float],
    signals: SignalCandidates,
    depth: Optional[str],
    phase: Optional[str],
) -> float:
    base = SA_DEFAULT if previous is None else float(previous)
    delta = self_acceptance_delta(signals) * intensity_multiplier(depth, phase)
    delta = clamp(delta, -SA_DELTA_CAP, SA_DELTA_CAP)
    return round(clamp01(base + delta), 4)


# ---------------------------------------------------------------------------
# Volatility / slack
# ---------------------------------------------------------------------------

def volatility_text_score(signals: SignalCandidates) -> float:
    score = 0.0
    if signals.distress > 0:
        score += 2.0
    elif signals.anxiety > 0:
        score += 1.0
    if signals.question_marks >= 2:
        score += 1.0
    if signals.exclamations >= 2:
        score += 0.5
    if signals.char_length > 240 and (signals.distress or signals.anxiety or signals.exclamations):
        score += 0.5
    return score


def _sa_volatility(sa: Optional[float]) -> float:
    if sa is None:
        return 0.0
    if sa < 0.2:
        return 1.5
    if sa < 0.4:
        return 1.0
    if sa < 0.6:
        return 0.5
    return 0.0


def _sa_slack(sa: Optional[float]) -> float:
    if sa is None:
        return 0.0
    if sa < 0.2:
        return -1.0
    if sa < 0.4:
        return -0.5
    if sa < 0.6:
        return 0.0
    if sa < 0.8:
        return 0.5
    return 1.0


def _with_hysteresis(raw: float, previous: Optional[int]) -> int:
    raw = clamp(raw, 0.0, 3.0)
    if previous is None:
        return _clamp_level(raw)
    blended = (1.0 - VOLATILITY_HYSTERESIS) * raw + VOLATILITY_HYSTERESIS * float(previous)
    return _clamp_level(blended)


def volatility_score(
    signals: SignalCandidates,
    affect: Optional[str],
    depth: Optional[str],
    self_acceptance: Optional[float],
) -> float:
    score = volatility_text_score(signals)
    score += AFFECT_VOLATILITY.get(normalize_affect(affect) or "", 0.0)
    if band_of(depth) == "I":
        score += 0.5
    score += _sa_volatility(self_acceptance)
    return score


def estimate_volatility(
    previous: Optional[int],
    signals: SignalCandidates,
    affect: Optional[str],
    depth: Optional[str],
    self_acceptance: Optional[float],
) -> int:
    return _with_hysteresis(volatility_score(signals, affect, depth, self_acceptance), previous)


def slack_score(
    signals: SignalCandidates,
    depth: Optional[str],
    self_acceptance: Optional[float],
) -> float:
    score = 1.0
    if signals.time_pressure:
        score -= 1.0
    if signals.slow_down:
        score += 0.5
    score += _sa_slack(self_acceptance)
    if band_of(depth) in ("C", "I"):
        score += 0.25
    return score


def estimate_slack(
    previous: Optional[int],
    signals: SignalCandidates,
    depth: Optional[str],
    self_acceptance: Optional[float],
) -> int:
    return _with_hysteresis(slack_score(signals, depth, self_acceptance), previous)


# ---------------------------------------------------------------------------
# Polarity / stability
# ---------------------------------------------------------------------------

def estimate_polarity(self_acceptance: Optional[float], affect: Optional[str]) -> tuple[float, str]:
    sa = SA_DEFAULT if self_acceptance is None else self_acceptance
    score = sa * 2.0 - 1.0
    score += AFFECT_POLARITY_BIAS.get(normalize_affect(affect) or "", 0.0)
    score = round(clamp(score, -1.0, 1.0), 4)
    if score <= -POLARITY_BAND:
        return score, "negative"
    if score >= POLARITY_BAND:
        return score, "positive"
    return score, "neutral"


def estimate_stability(volatility: Optional[int], self_acceptance: Optional[float]) -> str:
    if volatility is None:
        if self_acceptance is None:
            return "mixed"
        if self_acceptance >= 0.7:
            return "stable"
        if self_acceptance <= 0.3:
            return "unstable"
        return "mixed"
    if volatility >= 3:
        return "unstable"
    if volatility == 2:
        return "mixed"
    if self_acceptance is None or self_acceptance >= 0.6:
        return "stable"
    return "mixed"
