"""Layered validation of generated text.

Checks run in a fixed order and stop at the first failure:

    OUT_EMPTY -> INTERNAL_MARKER_LEAKED -> LOCKED_SPAN_LOST
      -> RECALL_GUARD_REJECT -> CANDIDATE_LIST_SHAPE_REJECT -> content guard

Hard contract failures surface as ContractViolation and become FATAL
verdicts; `repair_output` knows the deterministic fix for some of them.
"""

import re
from typing import Optional

from pydantic import BaseModel, Field

import lexicons as lx
from candidate_list import check_candidate_list, salvage_candidate_list
from config import (
    MIN_LEN_CANDIDATE_LIST,
    MIN_LEN_CHAT,
    MIN_LEN_CONCRETIZE,
    MIN_LEN_MICRO,
    MIN_LEN_PLANNED,
)
from content_guard import score_content
from errors import ContractViolation
from locked_spans import missing_locked_spans, repair_locked_spans, strip_lock_delimiters
from schemas import ContentPlan, SignalCandidates, Verdict, VerdictLevel
from text_utils import (
    extract_json_object,
    has_any,
    normalize_whitespace,
    shared_token_count,
)

OUT_EMPTY = "OUT_EMPTY"
INTERNAL_MARKER_LEAKED = "INTERNAL_MARKER_LEAKED"
LOCKED_SPAN_LOST = "LOCKED_SPAN_LOST"
RECALL_GUARD_REJECT = "RECALL_GUARD_REJECT"
CANDIDATE_LIST_SHAPE_REJECT = "CANDIDATE_LIST_SHAPE_REJECT"
OK_TOO_SHORT = "OK_TOO_SHORT"

CONTRACT_REASONS = (
    OUT_EMPTY,
    INTERNAL_MARKER_LEAKED,
    LOCKED_SPAN_LOST,
    RECALL_GUARD_REJECT,
    CANDIDATE_LIST_SHAPE_REJECT,
)

DIRECTIVE_LINE_REGEX = re.compile(
    r"^\s*@(CONSTRAINTS|OBS|TASK|SHIFT|NEXT(?:_HINT)?|SAFE|ACK|RESTORE|Q|DRAFT)\b"
)
INTERNAL_MARKER_PATTERNS = (
    r"@[A-Z_]+_SLOT\b",
    r"(?m)^\s*@(?:CONSTRAINTS|OBS|TASK|SHIFT|NEXT(?:_HINT)?|SAFE|ACK|RESTORE|Q|DRAFT)\b",
    r"\bOUTPUT CONTRACT\b",
    r"\bDRAFT MATERIAL\b",
    r"\bBACKGROUND \(internal",
    r"\[(?:CORE|ADD|ONE|TWO|THREE|CLOSE|ENDING|RESTORE|Q|NEXT|NEXT_HINT|OBS|TASK)\]",
    r"\b(?:depthStage|depth_stage|selfAcceptance|self_acceptance|rotationLoop|descentGate|affectCode|qCode)\b",
)
BANNED_LINE_PREFIXES = (
    "output contract", "background (internal", "draft material", "- layer:",
    "- aim this turn:", "- emphasis:", "- self-acceptance", "- what they hold onto:",
)

RESTORE_KEYS = ("last", "summary", "head", "topic")
QUESTION_KEYS = ("ask", "q", "question")


class GateContext(BaseModel):
    plan: Optional[ContentPlan] = None
    locked_spans: list[str] = Field(default_factory=list)
    list_contract: bool = False
    max_questions: int = 1
    min_len: int = 0


# ---------------------------------------------------------------------------
# Internal markers
# ---------------------------------------------------------------------------

def has_internal_markers(text: str) -> bool:
    return any(re.search(p, text or "") for p in INTERNAL_MARKER_PATTERNS)


def is_directive_only(text: str) -> bool:
    lines = [ln.strip() for ln in (text or "").splitlines() if ln.strip()]
    return bool(lines) and all(DIRECTIVE_LINE_REGEX.match(ln) for ln in lines)


def strip_internal_markers(text: str) -> str:
    raw = str(text or "")
    if not raw:
        return ""
    cleaned_lines: list[str] = []
    for ln in raw.splitlines():
        s = ln.strip()
        low = s.lower()
        if not s:
            cleaned_lines.append("")
            continue
        if DIRECTIVE_LINE_REGEX.match(s):
            continue
        if any(low.startswith(bp) for bp in BANNED_LINE_PREFIXES):
            continue
        cleaned_lines.append(ln.rstrip())
    out = "\n".join(cleaned_lines)
    out = re.sub(r"@[A-Z_]+_SLOT\b", "", out)
    out = re.sub(r"\[(?:CORE|ADD|ONE|TWO|THREE|CLOSE|ENDING|RESTORE|Q|NEXT|NEXT_HINT|OBS|TASK)\]\s*", "", out)
    out = re.sub(
        r"\b(?:depthStage|depth_stage|selfAcceptance|self_acceptance|rotationLoop|descentGate|affectCode|qCode)\b\s*[:=]?\s*\S*",
        "",
        out,
    )
    out = re.sub(r"[ \t]{2,}", " ", out)
    return out.strip()


# ---------------------------------------------------------------------------
# Recall guard
# ---------------------------------------------------------------------------

def _slot_needle(text: str, keys: tuple) -> Optional[str]:
    obj = extract_json_object(text)
    if obj:
        for k in keys:
            v = obj.get(k)
            if isinstance(v, str) and len(v.strip()) >= 4:
                return v.strip()
    raw = strip_lock_delimiters(text or "")
    raw = re.sub(r"^\s*@\w+\s*", "", raw)
    raw = normalize_whitespace(raw)
    if len(raw) < 4:
        return None
    return raw if len(raw) <= 40 else raw[:40]


def recall_needles(plan: Optional[ContentPlan]) -> tuple[Optional[str], Optional[str]]:
    """Return (restore needle, question needle) when the plan carries both slots."""
    if plan is None:
        return None, None
    restore, question = plan.get("RESTORE"), plan.get("Q")
    if restore is None or question is None:
        return None, None
    return _slot_needle(restore.text, RESTORE_KEYS), _slot_needle(question.text, QUESTION_KEYS)


def has_restore(text: str, needle: Optional[str]) -> bool:
    if not needle:
        return True
    body = normalize_whitespace(text).lower()
    n = normalize_whitespace(needle).lower()
    if n in body:
        return True
    if len(n) >= 6 and n[:10] in body:
        return True
    for quoted in re.findall(r"[\"“「](.+?)[\"”」]", needle):
        q = normalize_whitespace(quoted).lower()
        if len(q) >= 2 and q in body:
            return True
    return shared_token_count(body, n, min_len=4) >= 2


CLAUSE_BREAK_REGEX = re.compile(r"[.!?;:,\n]+")


def opens_with_interrogative(clause: str) -> bool:
    c = normalize_whitespace(clause).lower()
    return any(c == w or c.startswith(w + " ") for w in lx.INTERROGATIVES)


def has_question(text: str) -> bool:
    if "?" in (text or "") or "？" in (text or ""):
        return True
    # "what" in "I know what you mean" is not a question
    return any(opens_with_interrogative(c) for c in CLAUSE_BREAK_REGEX.split(text or ""))


# ---------------------------------------------------------------------------
# Minimum length policy
# ---------------------------------------------------------------------------

def classify_turn(
    signals: Optional[SignalCandidates],
    list_contract: bool = False,
    directive: Optional[str] = None,
    plan: Optional[ContentPlan] = None,
) -> str:
    if signals is not None and (signals.micro or signals.greeting):
        return "micro"
    if list_contract:
        return "candidate_list"
    if (directive or "").strip().lower() == "concretize" or (plan is not None and plan.get("CONCRETIZE")):
        return "concretize"
    if plan is None or not plan.slots:
        return "chat"
    return "planned"


MIN_LEN_BY_CLASS = {
    "micro": MIN_LEN_MICRO,
    "candidate_list": MIN_LEN_CANDIDATE_LIST,
    "concretize": MIN_LEN_CONCRETIZE,
    "chat": MIN_LEN_CHAT,
    "planned": MIN_LEN_PLANNED,
}


def min_ok_len(turn_class: str) -> int:
    return MIN_LEN_BY_CLASS.get(turn_class, MIN_LEN_PLANNED)


def has_forward_markers(text: str) -> bool:
    return has_any(text, lx.FORWARD_MARKERS)


def is_too_short(text: str, min_len: int) -> bool:
    n = len(normalize_whitespace(text))
    return 0 < n < min_len and not has_forward_markers(text)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def check_contracts(text: str, ctx: GateContext) -> None:
    """Raise ContractViolation on the first hard contract the text breaks."""
    body = strip_lock_delimiters(text or "")
    if not normalize_whitespace(body):
        raise ContractViolation(OUT_EMPTY)
    if has_internal_markers(body):
        raise ContractViolation(INTERNAL_MARKER_LEAKED)
    missing = missing_locked_spans(body, ctx.locked_spans)
    if missing:
        raise ContractViolation(LOCKED_SPAN_LOST, f"{len(missing)} span(s) missing")
    restore_needle, question_needle = recall_needles(ctx.plan)
    if restore_needle is not None or question_needle is not None:
        if not has_restore(body, restore_needle):
            raise ContractViolation(RECALL_GUARD_REJECT, "restore missing")
        if ctx.max_questions > 0 and not has_question(body):
            raise ContractViolation(RECALL_GUARD_REJECT, "question missing")
    if ctx.list_contract:
        fails = check_candidate_list(body)
        if fails:
            raise ContractViolation(CANDIDATE_LIST_SHAPE_REJECT, ",".join(fails))


def validate_output(text: str, ctx: GateContext) -> Verdict:
    try:
        check_contracts(text, ctx)
    except ContractViolation as exc:
        return Verdict(ok=False, level=VerdictLevel.FATAL, reasons=[exc.reason])

    body = strip_lock_delimiters(text)
    verdict = score_content(body, max_questions=ctx.max_questions, list_contract=ctx.list_contract)
    if verdict.level == VerdictLevel.OK and not ctx.list_contract and is_too_short(body, ctx.min_len):
        return Verdict(ok=False, level=VerdictLevel.WARN, reasons=verdict.reasons + [OK_TOO_SHORT])
    return verdict


def contract_reason(verdict: Verdict) -> Optional[str]:
    for r in verdict.reasons:
        if r in CONTRACT_REASONS:
            return r
    return None


def repair_output(text: str, reason: str, ctx: GateContext) -> Optional[str]:
    """Deterministic fix for one contract failure, or None when there is none."""
    if reason == INTERNAL_MARKER_LEAKED:
        fixed = strip_internal_markers(text)
        return fixed if fixed and fixed != text else None
    if reason == LOCKED_SPAN_LOST:
        return repair_locked_spans(strip_lock_delimiters(text), ctx.locked_spans)
    if reason == CANDIDATE_LIST_SHAPE_REJECT:
        return salvage_candidate_list(strip_lock_delimiters(text))
    return None


def validate_with_repair(text: str, ctx: GateContext, max_rounds: int = 3) -> tuple[str, Verdict, bool]:
    """Validate, applying deterministic repairs while they make progress.

    Returns (text, verdict, repaired).
    """
    current = text
    repaired = False
    verdict = validate_output(current, ctx)
    for _ in range(max_rounds):
        reason = contract_reason(verdict)
        if reason is None:
            break
        fixed = repair_output(current, reason, ctx)
        if not fixed or fixed == current:
            break
        current = fixed
        repaired = True
        verdict = validate_output(current, ctx)
    return current, verdict, repaired
