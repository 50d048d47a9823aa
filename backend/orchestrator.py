"""
One conversational turn, end to end.

    extract -> continuity -> rotation -> affect -> goal/priority
      -> gateway -> rewrite pipeline -> render

Every stage is a plain function of its inputs except the backend call.
The incoming ConversationState is never mutated; a new one is returned.
"""

import sys
from typing import Optional

from pydantic import BaseModel

from affect import (
    estimate_polarity,
    estimate_self_acceptance,
    estimate_slack,
    estimate_stability,
    estimate_volatility,
    intensity_multiplier,
    self_acceptance_delta,
    volatility_text_score,
)
from axes import normalize_affect, normalize_depth
from continuity import advance_streak, affect_strength, resolve_continuity
from errors import SignalExtractionDegraded
from goal_engine import GoalInputs, decide_goal, reconcile_target_depth
from llm_gate import (
    SILENCE_TEXT,
    build_background,
    build_draft_material,
    build_output_contract,
    build_request_messages,
    decide_gateway,
)
from locked_spans import extract_locked_spans, merge_spans, repair_locked_spans, strip_lock_delimiters
from priority import compute_priority
from quality_gate import GateContext, classify_turn, min_ok_len, recall_needles
from render import extract_next_step_hint, polish_text
from rewrite_pipeline import Backend, RewriteRequest, run_rewrite_pipeline
from rotation import RotationInputs, decide_rotation
from schemas import (
    ConversationState,
    GatewayEntry,
    IntentAnchor,
    RotationLoop,
    SignalCandidates,
    TurnMeta,
    TurnRequest,
    Verdict,
    VerdictLevel,
)
from signals import empty_signals, extract_signals
from telemetry import append_turn_telemetry
from text_utils import normalize_whitespace, truncate_words

SUMMARY_MAX_CHARS = 160
ANCHOR_MAX_CHARS = 200


class TurnResult(BaseModel):
    text: str
    state: ConversationState
    meta: TurnMeta


def _extract(request: TurnRequest) -> tuple[SignalCandidates, bool]:
    try:
        return extract_signals(request.text, request.risk_flags), False
    except SignalExtractionDegraded as exc:
        print(f"[turn] signal extraction degraded: {exc}")
        return empty_signals(request.risk_flags), True


def _next_anchor(previous: Optional[IntentAnchor], request: TurnRequest) -> Optional[IntentAnchor]:
    text = normalize_whitespace(request.intent_anchor or "")
    if not text:
        return previous
    if previous is not None and previous.fixed and not request.fix_intent_anchor:
        # a pinned anchor only moves when the caller pins a new one
        return previous
    return IntentAnchor(text=text[:ANCHOR_MAX_CHARS], fixed=bool(request.fix_intent_anchor))


def _list_contract(request: TurnRequest) -> bool:
    plan = request.content_plan
    return plan is not None and (plan.shape or "").strip().lower() == "candidate_list"


async def run_turn(state: ConversationState, request: TurnRequest, backend: Backend) -> TurnResult:
    prev = state
    first_turn = prev.turn_count == 0
    signals, degraded = _extract(request)

    # continuity
    sa_raw_delta = self_acceptance_delta(signals) * intensity_multiplier(prev.depth_stage, signals.phase or prev.phase)
    strength = affect_strength(sa_raw_delta, volatility_text_score(signals))
    depth_res, affect_res = resolve_continuity(prev.depth_stage, prev.affect_code, signals, first_turn, strength)
    depth = depth_res.depth
    in_tcf = prev.rotation_loop == RotationLoop.TCF and normalize_depth(prev.depth_stage) is not None
    if in_tcf:
        # inside TCF only the rotation machine moves depth, caller requests included
        depth = normalize_depth(prev.depth_stage)
    elif request.requested_depth and normalize_depth(request.requested_depth):
        depth = normalize_depth(request.requested_depth)
    affect = affect_res.affect
    if request.requested_affect and normalize_affect(request.requested_affect):
        affect = normalize_affect(request.requested_affect)
    phase = signals.phase or prev.phase

    # rotation
    rotation = decide_rotation(
        RotationInputs(
            loop=prev.rotation_loop,
            gate=prev.descent_gate,
            depth=depth,
            affect=affect,
            self_acceptance=prev.self_acceptance,
            last_goal_kind=prev.goal_streak.value,
            goal_streak=prev.goal_streak.length,
            stay_requested=signals.stay_request,
            boundary_requested=signals.boundary_request,
            action_weak=signals.action_weak,
            action_explicit=signals.action_explicit,
            delegation=signals.delegation,
            user_accepted=request.user_accepted,
            risk_flags=signals.risk_flags,
        )
    )
    depth = rotation.depth or depth

    # affect
    sa = estimate_self_acceptance(prev.self_acceptance, signals, depth, phase)
    volatility = estimate_volatility(prev.volatility, signals, affect, depth, sa)
    slack = estimate_slack(prev.slack, signals, depth, sa)
    polarity_score, polarity_band = estimate_polarity(sa, affect)
    stability = estimate_stability(volatility, sa)
    affect_streak = advance_streak(prev.affect_streak, affect)

    # goal and priority
    goal = decide_goal(
        GoalInputs(
            signals=signals,
            depth=depth,
            affect=affect,
            polarity_band=polarity_band,
            affect_streak=affect_streak.length,
            requested_goal=request.requested_goal,
            requested_depth=None if in_tcf else request.requested_depth,
            requested_affect=request.requested_affect,
        )
    )
    goal = reconcile_target_depth(goal, rotation.depth, rotation.moved)
    priority = compute_priority(goal, depth, phase, polarity_band, request.mode, affect)
    goal_streak = advance_streak(prev.goal_streak, goal.kind.value)

    # generation
    plan = request.content_plan
    list_contract = _list_contract(request)
    plan_texts = [s.text for s in plan.slots] if plan is not None else []
    locked = merge_spans(request.locked_spans, extract_locked_spans(request.text, *plan_texts))
    min_len = min_ok_len(classify_turn(signals, list_contract, request.directive, plan))
    anchor = _next_anchor(prev.intent_anchor, request)

    gateway = decide_gateway(request.allow_llm, request.silence, plan, max_questions=priority.max_questions)
    slot_keys = plan.keys() if plan is not None else []
    attempts = 0
    if gateway.entry == GatewayEntry.CALL_LLM:
        restore_needle, question_needle = recall_needles(plan)
        contract = build_output_contract(
            priority,
            list_contract=list_contract,
            locked_spans=locked,
            min_len=min_len,
            recall=restore_needle is not None or question_needle is not None,
        )
        background = build_background(
            depth, affect, phase, sa, volatility, slack, goal, priority,
            topic=signals.topic, intent_anchor=anchor.text if anchor else None,
        )
        messages = build_request_messages(
            contract, background, request.text or "", build_draft_material(plan, priority.max_questions)
        )
        ctx = GateContext(
            plan=plan,
            locked_spans=locked,
            list_contract=list_contract,
            max_questions=priority.max_questions,
            min_len=min_len,
        )
        outcome = await run_rewrite_pipeline(backend, RewriteRequest(messages=messages, ctx=ctx, seed_text=gateway.seed_text))
        body, verdict, tag, attempts = outcome.text, outcome.verdict, outcome.tag.value, outcome.attempts
        slot_keys = outcome.slot_keys
    elif gateway.entry == GatewayEntry.SKIP_SILENCE:
        body = gateway.resolved_text or SILENCE_TEXT
        verdict = Verdict(ok=True, level=VerdictLevel.OK, reasons=[])
        tag = gateway.entry.value
    else:
        body = repair_locked_spans(strip_lock_delimiters(gateway.resolved_text or ""), locked)
        verdict = Verdict(ok=True, level=VerdictLevel.OK, reasons=[])
        tag = gateway.entry.value

    text = polish_text(
        body,
        affect=affect,
        list_contract=list_contract,
        locked_spans=locked,
        verbatim=gateway.entry == GatewayEntry.SKIP_SILENCE,
    )
    if not normalize_whitespace(text):
        # polish can only strip labels; never hand back an empty reply
        text = normalize_whitespace(strip_lock_delimiters(body)) or gateway.resolved_text or SILENCE_TEXT

    topic = signals.topic if signals.topic and signals.topic != "other" else prev.situation_topic
    summary = prev.situation_summary
    if not degraded and not signals.micro and not signals.greeting:
        summary = truncate_words(strip_lock_delimiters(request.text), SUMMARY_MAX_CHARS) or summary

    new_state = ConversationState(
        depth_stage=normalize_depth(depth),
        affect_code=normalize_affect(affect),
        phase=phase,
        self_acceptance=sa,
        volatility=volatility,
        slack=slack,
        rotation_loop=rotation.loop,
        descent_gate=rotation.gate,
        affect_streak=affect_streak,
        goal_streak=goal_streak,
        intent_anchor=anchor,
        situation_summary=summary,
        situation_topic=topic,
        turn_count=prev.turn_count + 1,
    )

    meta = TurnMeta(
        depth_stage=new_state.depth_stage,
        affect_code=new_state.affect_code,
        phase=phase,
        self_acceptance=sa,
        volatility=volatility,
        slack=slack,
        polarity_score=polarity_score,
        polarity_band=polarity_band,
        stability=stability,
        topic=signals.topic,
        goal=goal,
        priority=priority,
        rotation_loop=rotation.loop,
        descent_gate=rotation.gate,
        rotation_rule=rotation.rule,
        rotation_reason=rotation.reason,
        depth_override=rotation.override or depth_res.jumped,
        gateway_entry=gateway.entry,
        gateway_reason=gateway.reason,
        verdict=verdict,
        rewrite_tag=tag,
        attempts=attempts,
        slot_keys=slot_keys,
        next_step_hint=extract_next_step_hint(request.notes, plan),
        degraded=degraded,
    )

    append_turn_telemetry(
        "turn_complete",
        {
            "turn": new_state.turn_count,
            "depth": new_state.depth_stage,
            "affect": new_state.affect_code,
            "goal": goal.kind.value,
            "rotation_rule": rotation.rule,
            "loop": rotation.loop.value,
            "gate": rotation.gate.value,
            "gateway": gateway.entry.value,
            "rewrite_tag": tag,
            "attempts": attempts,
            "degraded": degraded,
        },
    )
    if verdict.level == VerdictLevel.FATAL:
        print(f"[turn] fallback text used tag={tag} reasons={verdict.reasons}", file=sys.stderr)

    return TurnResult(text=text, state=new_state, meta=meta)


def build_state_delta(previous: ConversationState, new: ConversationState) -> dict:
    """Fields this turn produced (non-None) that differ from the previous state."""
    before = previous.model_dump(mode="json")
    after = new.model_dump(mode="json")
    delta = {}
    for key, value in after.items():
        if value is None:
            continue
        if before.get(key) != value:
            delta[key] = value
    return delta
