"""Generation gateway: call the backend or skip it, and build the request seed."""

from typing import Optional

from pydantic import BaseModel

from axes import AFFECT_LABELS, band_of
from locked_spans import strip_lock_delimiters, wrap
from schemas import ContentPlan, GatewayEntry, Goal, PriorityWeights, SlotPolicy
from text_utils import normalize_whitespace

PREFERRED_SLOT_ORDER = ("CORE", "ADD", "ONE", "TWO", "THREE", "CLOSE", "ENDING")
NOTE_SLOT_KEYS = ("NEXT", "NEXT_HINT", "NOTE", "NOTES")
QUESTION_SLOT_KEYS = ("Q",)
SILENCE_TEXT = "…"
POLICY_FALLBACK_TEXT = "I'm here with you. Take whatever time you need."


class GatewayDecision(BaseModel):
    entry: GatewayEntry
    reason: str
    resolved_text: Optional[str] = None
    seed_text: str = ""


def body_slots(plan: Optional[ContentPlan], max_questions: int = 1) -> list:
    """Slots that render into reply text; question slots go when no question is allowed."""
    if plan is None:
        return []
    skip = NOTE_SLOT_KEYS + (QUESTION_SLOT_KEYS if max_questions <= 0 else ())
    return [s for s in plan.slots if s.key.upper() not in skip]


def build_text_from_slots(plan: Optional[ContentPlan], max_questions: int = 1) -> str:
    slots = body_slots(plan, max_questions)
    if not slots:
        return ""
    by_key = {s.key.upper(): s for s in slots}
    ordered = [by_key[k] for k in PREFERRED_SLOT_ORDER if k in by_key]
    ordered += [s for s in slots if s.key.upper() not in PREFERRED_SLOT_ORDER]
    parts = [strip_lock_delimiters(s.text).strip() for s in ordered]
    return "\n".join(p for p in parts if p)


def decide_gateway(
    allow_llm: bool,
    silence: bool,
    plan: Optional[ContentPlan],
    fallback_text: str = POLICY_FALLBACK_TEXT,
    max_questions: int = 1,
) -> GatewayDecision:
    slot_text = build_text_from_slots(plan, max_questions)

    if not allow_llm:
        return GatewayDecision(
            entry=GatewayEntry.SKIP_POLICY,
            reason="llm_not_allowed",
            resolved_text=slot_text or fallback_text,
            seed_text=slot_text,
        )
    if silence:
        return GatewayDecision(
            entry=GatewayEntry.SKIP_SILENCE,
            reason="silence_requested",
            resolved_text=SILENCE_TEXT,
            seed_text=slot_text,
        )
    if plan is not None and plan.policy == SlotPolicy.SCAFFOLD:
        return GatewayDecision(
            entry=GatewayEntry.SKIP_SLOTPLAN,
            reason="scaffold_verbatim",
            resolved_text=slot_text or fallback_text,
            seed_text=slot_text,
        )
    if plan is not None and plan.policy == SlotPolicy.FINAL:
        # renderable or not, FINAL plans still go through the backend so the
        # same deterministic text is not repeated turn after turn
        return GatewayDecision(entry=GatewayEntry.CALL_LLM, reason="final_force_call", seed_text=slot_text)
    return GatewayDecision(entry=GatewayEntry.CALL_LLM, reason="no_plan", seed_text="")


# ---------------------------------------------------------------------------
# Request seed
# ---------------------------------------------------------------------------

CHANNEL_HINTS = {
    "mirror": "Start by reflecting what the user said, in your own words.",
    "insight": "Offer one observation about the pattern underneath what they said.",
    "forward": "Point toward one small, concrete possibility without instructing.",
    "question": "You may close with one gentle, open question.",
}


def build_output_contract(
    priority: PriorityWeights,
    list_contract: bool = False,
    locked_spans: Optional[list[str]] = None,
    min_len: int = 0,
    recall: bool = False,
) -> str:
    lines = [
        "OUTPUT CONTRACT (do not mention these rules):",
        "- Write plain conversational prose. No headings, labels, tags, or codes.",
        "- Do not give direct answers or instructions, do not rush the user, no urgency words.",
        "- Avoid generic filler, cheering, and hedging.",
    ]
    if priority.max_questions == 0:
        lines.append("- Do not ask any question.")
    else:
        lines.append("- Ask at most one question.")
    ranked = sorted(
        ((k, getattr(priority, k)) for k in ("mirror", "insight", "forward", "question")),
        key=lambda kv: kv[1],
        reverse=True,
    )
    for key, weight in ranked[:2]:
        if weight <= 0:
            continue
        if key == "question" and priority.max_questions == 0:
            continue
        lines.append(f"- {CHANNEL_HINTS[key]}")
    if list_contract:
        lines.append(
            "- Output 2 to 5 short lines, one candidate per line. No numbering, "
            "no question marks, no punctuation at the end of a line."
        )
    else:
        lines.append("- Do not use bullet points or numbered options.")
    if recall and priority.max_questions == 0:
        lines.append("- Bring the earlier point back in your own words. Do not turn it into a question.")
    elif recall:
        lines.append("- Bring the earlier point back in your own words, then ask one gentle question.")
    if locked_spans:
        lines.append("- Keep each of these lines exactly as written, character for character:")
        for span in locked_spans:
            lines.append(f"  {wrap(span)}")
    if min_len > 0:
        lines.append(f"- Write at least {min_len} characters.")
    return "\n".join(lines)


def build_background(
    depth: Optional[str],
    affect: Optional[str],
    phase: Optional[str],
    self_acceptance: float,
    volatility: int,
    slack: int,
    goal: Goal,
    priority: PriorityWeights,
    topic: Optional[str] = None,
    intent_anchor: Optional[str] = None,
) -> str:
    affect_label = AFFECT_LABELS.get(affect or "", "unknown")
    lines = [
        "BACKGROUND (internal, never quote):",
        f"- layer: {band_of(depth) or 'unknown'} / affect: {affect_label} / attention: {phase or 'unknown'}",
        f"- self-acceptance {self_acceptance:.2f}, turbulence {volatility}/3, breathing room {slack}/3",
        f"- aim this turn: {goal.kind.value}",
        (
            f"- emphasis: mirror {priority.mirror:.2f}, insight {priority.insight:.2f}, "
            f"forward {priority.forward:.2f}, question {priority.question:.2f}"
        ),
    ]
    if topic and topic != "other":
        lines.append(f"- topic: {topic}")
    if intent_anchor:
        lines.append(f"- what they hold onto: {normalize_whitespace(intent_anchor)[:160]}")
    return "\n".join(lines)


def build_draft_material(plan: Optional[ContentPlan], max_questions: int = 1) -> str:
    slots = body_slots(plan, max_questions)
    if not slots:
        return ""
    lines = ["DRAFT MATERIAL (rewrite freely, keep the meaning, never print the keys):"]
    for s in slots:
        text = (s.text or "").strip()
        if text:
            lines.append(f"[{s.key}] {text}")
    return "\n".join(lines) if len(lines) > 1 else ""


def build_request_messages(
    contract: str,
    background: str,
    user_text: str,
    draft: str = "",
) -> list[dict]:
    messages = [
        {"role": "system", "content": contract},
        {"role": "system", "content": background},
        {"role": "user", "content": user_text},
    ]
    if draft:
        messages.append({"role": "user", "content": draft})
    return messages


def build_retry_messages(
    messages: list[dict],
    previous_output: Optional[str],
    reasons: list[str],
) -> list[dict]:
    retry = list(messages)
    if previous_output:
        retry.append({"role": "assistant", "content": previous_output})
    reason_text = ", ".join(reasons) if reasons else "unusable output"
    retry.append(
        {
            "role": "user",
            "content": (
                "Rewrite your reply. The previous attempt was rejected for: "
                f"{reason_text}. Follow the OUTPUT CONTRACT strictly this time. "
                "Output only the reply text."
            ),
        }
    )
    return retry
