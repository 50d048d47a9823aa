"""Continuity smoothing of depth and affect against the previous turn."""

from typing import Optional

from pydantic import BaseModel

from axes import deeper_of, is_band, normalize_affect, normalize_depth, stage_distance, step_toward
from config import AFFECT_SWITCH_STRENGTH, CONTINUITY_MAX_JUMP
from schemas import SignalCandidates, Streak


class DepthResolution(BaseModel):
    depth: Optional[str] = None
    reason: str
    jumped: bool = False


class AffectResolution(BaseModel):
    affect: Optional[str] = None
    reason: str
    strength: float = 0.0


def resolve_depth(
    previous: Optional[str],
    candidate: Optional[str],
    strong: bool = False,
    first_turn: bool = False,
) -> DepthResolution:
    prev = normalize_depth(previous)
    cand = normalize_depth(candidate)

    if cand is None:
        return DepthResolution(depth=prev, reason="no_candidate_hold")
    if prev is None or first_turn:
        return DepthResolution(depth=cand, reason="first_turn", jumped=prev is not None and cand != prev)
    if strong:
        # inside I, a strong trigger can only go deeper
        if is_band(prev, "I") and is_band(cand, "I"):
            return DepthResolution(depth=deeper_of(prev, cand), reason="strong_trigger_in_i", jumped=True)
        return DepthResolution(depth=cand, reason="strong_trigger", jumped=cand != prev)
    if is_band(prev, "I") and not is_band(cand, "I"):
        return DepthResolution(depth=prev, reason="i_band_hold")
    if stage_distance(prev, cand) <= CONTINUITY_MAX_JUMP:
        return DepthResolution(depth=cand, reason="within_range")
    return DepthResolution(depth=step_toward(prev, cand), reason="smoothed_one_step")


def affect_strength(sa_delta: float, volatility_text_score: float) -> float:
    return round(abs(sa_delta) + 0.15 * max(0.0, volatility_text_score), 4)


def resolve_affect(
    previous: Optional[str],
    candidate: Optional[str],
    explicit: bool = False,
    strength: float = 0.0,
    threshold: float = AFFECT_SWITCH_STRENGTH,
) -> AffectResolution:
    prev = normalize_affect(previous)
    cand = normalize_affect(candidate)

    if cand is None:
        return AffectResolution(affect=prev, reason="no_candidate_hold", strength=strength)
    if explicit:
        return AffectResolution(affect=cand, reason="explicit_mention", strength=strength)
    if prev is None:
        return AffectResolution(affect=cand, reason="no_previous", strength=strength)
    if cand == prev:
        return AffectResolution(affect=prev, reason="same_as_previous", strength=strength)
    if strength > threshold:
        return AffectResolution(affect=cand, reason="strength_over_threshold", strength=strength)
    return AffectResolution(affect=prev, reason="weak_signal_hold", strength=strength)


def advance_streak(streak: Optional[Streak], value: Optional[str]) -> Streak:
    if value is None:
        return Streak(value=None, length=0)
    if streak is not None and streak.value == value:
        return Streak(value=value, length=streak.length + 1)
    return Streak(value=value, length=1)


def resolve_continuity(
    previous_depth: Optional[str],
    previous_affect: Optional[str],
    signals: SignalCandidates,
    first_turn: bool,
    strength: float,
) -> tuple[DepthResolution, AffectResolution]:
    depth = resolve_depth(previous_depth, signals.depth, signals.depth_strong, first_turn)
    affect = resolve_affect(previous_affect, signals.affect, signals.affect_explicit, strength)
    return depth, affect
