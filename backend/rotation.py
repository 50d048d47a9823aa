"""Rotation state machine: (rotation_loop, descent_gate) plus depth moves.

The machine is an ordered rule table. Each rule is a guard predicate and an
action; the first guard that matches produces the decision for the turn and
names itself in `rule`, so every transition can be audited from telemetry.

    rule                guard                                         effect
    ------------------  --------------------------------------------  ------------------------------
    stay_requested      explicit stay request                         hold
    low_self_accept     self_acceptance < floor                       hold
    risk_flag           severe risk flag present                      hold
    boundary            request to stop probing                       gate closed -> offered, else hold
    descend             explicit action/delegation or user_accepted,  gate accepted; first time:
                        gate closed|offered                           loop TCF, depth T1
    offer               weak action/delegation, band I|T, gate closed gate offered
    tcf_advance         loop TCF, gate accepted                       T -> C -> F, one per turn
    tcf_revert          loop TCF, gate not accepted                   loop SRI, depth unchanged
    sri_advance         loop SRI, band S, Q3, last goal uncover|       depth R1
                        stabilize, goal streak >= min
    hold                otherwise                                     hold
"""

from typing import Callable, Optional

from pydantic import BaseModel, Field

from axes import band_of, normalize_affect, normalize_depth
from config import ROTATION_MIN_STREAK, ROTATION_SA_FLOOR
from lexicons import SEVERE_RISK_FLAGS
from schemas import DescentGate, GoalKind, RotationLoop

TCF_NEXT = {"T": "C1", "C": "F1", "F": "F1"}
SRI_NEXT = {"S": "R1"}
SRI_TRIGGER_GOALS = (GoalKind.UNCOVER.value, GoalKind.STABILIZE.value)


class RotationInputs(BaseModel):
    loop: RotationLoop = RotationLoop.SRI
    gate: DescentGate = DescentGate.CLOSED
    depth: Optional[str] = None
    affect: Optional[str] = None
    self_acceptance: Optional[float] = None
    last_goal_kind: Optional[str] = None
    goal_streak: int = 0
    stay_requested: bool = False
    boundary_requested: bool = False
    action_weak: bool = False
    action_explicit: bool = False
    delegation: bool = False
    user_accepted: bool = False
    risk_flags: list[str] = Field(default_factory=list)


class RotationDecision(BaseModel):
    rule: str
    reason: str
    loop: RotationLoop
    gate: DescentGate
    depth: Optional[str] = None
    moved: bool = False
    override: bool = False


def _hold(inp: RotationInputs, rule: str, reason: str) -> RotationDecision:
    return RotationDecision(rule=rule, reason=reason, loop=inp.loop, gate=inp.gate, depth=inp.depth)


def _severe_flags(inp: RotationInputs) -> list[str]:
    return [f for f in inp.risk_flags if f in SEVERE_RISK_FLAGS]


# guards
def _is_stay(inp: RotationInputs) -> bool:
    return inp.stay_requested


def _is_low_sa(inp: RotationInputs) -> bool:
    return inp.self_acceptance is not None and inp.self_acceptance < ROTATION_SA_FLOOR


def _is_risk(inp: RotationInputs) -> bool:
    return bool(_severe_flags(inp))


def _is_boundary(inp: RotationInputs) -> bool:
    return inp.boundary_requested


def _is_accept(inp: RotationInputs) -> bool:
    consent = inp.action_explicit or inp.delegation or inp.user_accepted
    if not consent:
        return False
    if inp.gate in (DescentGate.CLOSED, DescentGate.OFFERED):
        return True
    # gate already accepted but the loop never switched (e.g. restored state)
    return inp.gate == DescentGate.ACCEPTED and inp.loop != RotationLoop.TCF


def _is_offer(inp: RotationInputs) -> bool:
    return inp.action_weak and band_of(inp.depth) in ("I", "T") and inp.gate == DescentGate.CLOSED


def _is_tcf_advance(inp: RotationInputs) -> bool:
    return inp.loop == RotationLoop.TCF and inp.gate == DescentGate.ACCEPTED


def _is_tcf_revert(inp: RotationInputs) -> bool:
    return inp.loop == RotationLoop.TCF and inp.gate != DescentGate.ACCEPTED


def _is_sri_advance(inp: RotationInputs) -> bool:
    return (
        inp.loop == RotationLoop.SRI
        and band_of(inp.depth) == "S"
        and normalize_affect(inp.affect) == "Q3"
        and inp.last_goal_kind in SRI_TRIGGER_GOALS
        and inp.goal_streak >= ROTATION_MIN_STREAK
    )


# actions
def _act_stay(inp: RotationInputs) -> RotationDecision:
    return _hold(inp, "stay_requested", "explicit stay request")


def _act_low_sa(inp: RotationInputs) -> RotationDecision:
    return _hold(inp, "low_self_accept", f"self_acceptance={inp.self_acceptance:.2f}<{ROTATION_SA_FLOOR}")


def _act_risk(inp: RotationInputs) -> RotationDecision:
    return _hold(inp, "risk_flag", "risk:" + ",".join(_severe_flags(inp)))


def _act_boundary(inp: RotationInputs) -> RotationDecision:
    # never closes the gate or leaves TCF
    if inp.gate == DescentGate.CLOSED:
        return RotationDecision(
            rule="boundary",
            reason="boundary request offers the gate",
            loop=inp.loop,
            gate=DescentGate.OFFERED,
            depth=inp.depth,
        )
    return _hold(inp, "boundary", f"boundary request holds gate={inp.gate.value}")


def _act_accept(inp: RotationInputs) -> RotationDecision:
    source = "user_accepted" if inp.user_accepted else ("delegation" if inp.delegation else "explicit_action")
    if inp.loop != RotationLoop.TCF:
        return RotationDecision(
            rule="descend",
            reason=f"{source}: gate accepted, descending to T1",
            loop=RotationLoop.TCF,
            gate=DescentGate.ACCEPTED,
            depth="T1",
            moved=normalize_depth(inp.depth) != "T1",
            override=True,
        )
    return RotationDecision(
        rule="descend",
        reason=f"{source}: gate re-accepted inside TCF",
        loop=RotationLoop.TCF,
        gate=DescentGate.ACCEPTED,
        depth=inp.depth,
    )


def _act_offer(inp: RotationInputs) -> RotationDecision:
    return RotationDecision(
        rule="offer",
        reason="weak action signal in upper band",
        loop=inp.loop,
        gate=DescentGate.OFFERED,
        depth=inp.depth,
    )


def _act_tcf_advance(inp: RotationInputs) -> RotationDecision:
    band = band_of(inp.depth) or "T"
    nxt = TCF_NEXT.get(band, "T1")
    if band == "F":
        return _hold(inp, "tcf_terminal", "F is terminal")
    return RotationDecision(
        rule="tcf_advance",
        reason=f"{band}->{nxt[0]}",
        loop=RotationLoop.TCF,
        gate=DescentGate.ACCEPTED,
        depth=nxt,
        moved=True,
        override=True,
    )


def _act_tcf_revert(inp: RotationInputs) -> RotationDecision:
    return RotationDecision(
        rule="tcf_revert",
        reason=f"gate={inp.gate.value}, back to SRI",
        loop=RotationLoop.SRI,
        gate=inp.gate,
        depth=inp.depth,
    )


def _act_sri_advance(inp: RotationInputs) -> RotationDecision:
    nxt = SRI_NEXT[band_of(inp.depth)]
    return RotationDecision(
        rule="sri_advance",
        reason=f"S band Q3 after {inp.goal_streak}x {inp.last_goal_kind}",
        loop=RotationLoop.SRI,
        gate=inp.gate,
        depth=nxt,
        moved=True,
        override=True,
    )


Rule = tuple[str, Callable[[RotationInputs], bool], Callable[[RotationInputs], RotationDecision]]

ROTATION_RULES: list[Rule] = [
    ("stay_requested", _is_stay, _act_stay),
    ("low_self_accept", _is_low_sa, _act_low_sa),
    ("risk_flag", _is_risk, _act_risk),
    ("boundary", _is_boundary, _act_boundary),
    ("descend", _is_accept, _act_accept),
    ("offer", _is_offer, _act_offer),
    ("tcf_advance", _is_tcf_advance, _act_tcf_advance),
    ("tcf_revert", _is_tcf_revert, _act_tcf_revert),
    ("sri_advance", _is_sri_advance, _act_sri_advance),
]


def decide_rotation(inp: RotationInputs) -> RotationDecision:
    for _name, guard, action in ROTATION_RULES:
        if guard(inp):
            return action(inp)
    return _hold(inp, "hold", "no rule matched")


def matching_rules(inp: RotationInputs) -> list[str]:
    """All rule names whose guard holds, in table order (for diagnostics)."""
    return [name for name, guard, _ in ROTATION_RULES if guard(inp)]
