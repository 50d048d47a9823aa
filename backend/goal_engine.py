"""Goal selection: an ordered decision list, first match wins."""

from typing import Callable, Optional

from pydantic import BaseModel

from axes import band_of, normalize_affect, normalize_depth
from config import ROTATION_MIN_STREAK
from schemas import Goal, GoalKind, SignalCandidates

KIND_BY_BAND = {
    "S": GoalKind.STABILIZE,
    "R": GoalKind.SHIFT_RELATION,
    "C": GoalKind.ENABLE_ACTION,
    "I": GoalKind.REFRAME_INTENTION,
    "T": GoalKind.REFRAME_INTENTION,
    "F": GoalKind.REFRAME_INTENTION,
}


class GoalInputs(BaseModel):
    signals: SignalCandidates
    depth: Optional[str] = None
    affect: Optional[str] = None
    polarity_band: str = "neutral"
    affect_streak: int = 0
    requested_goal: Optional[GoalKind] = None
    requested_depth: Optional[str] = None
    requested_affect: Optional[str] = None


# target-depth choosers per goal kind
def target_for_stabilize(depth: Optional[str]) -> Optional[str]:
    if band_of(depth) in ("T", "F", "I", "C"):
        return "S3"
    return normalize_depth(depth) or "S2"


def target_for_relation(depth: Optional[str]) -> str:
    band = band_of(depth)
    if band is None or band == "S":
        return "R1"
    if band == "R":
        return normalize_depth(depth)
    return "R2"


def target_for_action(depth: Optional[str]) -> str:
    if band_of(depth) in ("C", "I"):
        return normalize_depth(depth)
    return "C1"


def target_for_intention(depth: Optional[str]) -> str:
    if band_of(depth) in ("I", "T", "F"):
        return normalize_depth(depth)
    return "I1"


def _goal(kind: GoalKind, target: Optional[str], inp: GoalInputs, reason: str) -> Goal:
    target_affect = normalize_affect(inp.requested_affect) or normalize_affect(inp.affect)
    return Goal(kind=kind, target_depth=target, target_affect=target_affect, reason=reason)


def _rule_requested(inp: GoalInputs) -> Optional[Goal]:
    req_depth = normalize_depth(inp.requested_depth)
    if inp.requested_goal is not None:
        return _goal(inp.requested_goal, req_depth or normalize_depth(inp.depth), inp, "caller_request:goal")
    if req_depth:
        return _goal(KIND_BY_BAND[req_depth[0]], req_depth, inp, "caller_request:depth")
    if normalize_affect(inp.requested_affect):
        kind = KIND_BY_BAND.get(band_of(inp.depth) or "S", GoalKind.UNCOVER)
        return _goal(kind, normalize_depth(inp.depth), inp, "caller_request:affect")
    return None


def _rule_delegation(inp: GoalInputs) -> Optional[Goal]:
    if inp.signals.delegation:
        return _goal(GoalKind.ENABLE_ACTION, target_for_action(inp.depth), inp, "delegation")
    return None


def _rule_stress(inp: GoalInputs) -> Optional[Goal]:
    if inp.signals.stress or (inp.polarity_band == "negative" and inp.signals.self_attack > 0):
        return _goal(GoalKind.STABILIZE, target_for_stabilize(inp.depth), inp, "stress_or_negative")
    return None


def _rule_rotation_bias(inp: GoalInputs) -> Optional[Goal]:
    if (
        band_of(inp.depth) == "S"
        and normalize_affect(inp.affect) == "Q3"
        and inp.affect_streak >= ROTATION_MIN_STREAK
    ):
        return _goal(GoalKind.SHIFT_RELATION, "R1", inp, f"rotation_bias:q3_streak={inp.affect_streak}")
    return None


def _rule_relational(inp: GoalInputs) -> Optional[Goal]:
    if inp.signals.relational:
        return _goal(GoalKind.SHIFT_RELATION, target_for_relation(inp.depth), inp, "relational")
    return None


def _rule_action(inp: GoalInputs) -> Optional[Goal]:
    if inp.signals.action or inp.signals.action_explicit:
        return _goal(GoalKind.ENABLE_ACTION, target_for_action(inp.depth), inp, "action")
    return None


def _rule_introspective(inp: GoalInputs) -> Optional[Goal]:
    if inp.signals.introspective:
        return _goal(GoalKind.REFRAME_INTENTION, target_for_intention(inp.depth), inp, "introspective")
    return None


GOAL_RULES: list[Callable[[GoalInputs], Optional[Goal]]] = [
    _rule_requested,
    _rule_delegation,
    _rule_stress,
    _rule_rotation_bias,
    _rule_relational,
    _rule_action,
    _rule_introspective,
]


def decide_goal(inp: GoalInputs) -> Goal:
    for rule in GOAL_RULES:
        goal = rule(inp)
        if goal is not None:
            return goal
    return _goal(GoalKind.UNCOVER, normalize_depth(inp.depth) or "S2", inp, "default")


def reconcile_target_depth(goal: Goal, rotation_depth: Optional[str], rotation_moved: bool) -> Goal:
    """Rotation output wins over the goal's own target once rotation has moved depth."""
    if not rotation_moved or not rotation_depth:
        return goal
    if normalize_depth(goal.target_depth) == normalize_depth(rotation_depth):
        return goal
    return goal.model_copy(
        update={
            "target_depth": normalize_depth(rotation_depth),
            "reason": f"{goal.reason}|rotation_target",
        }
    )
