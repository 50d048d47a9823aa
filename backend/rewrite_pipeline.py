"""Draft -> Validate -> {Accept, Retry -> Validate -> {Accept, Fallback}}.

At most one primary backend call and one retry. The fallback chain always
ends in non-empty text:

    passing retry -> seed (unless directive-only) -> best candidate -> static line
"""

import sys
from enum import Enum
from typing import Optional, Protocol

from pydantic import BaseModel, Field

from candidate_list import salvage_candidate_list
from config import GEN_MAX_TOKENS, GEN_RETRY_TEMPERATURE, GEN_TEMPERATURE
from errors import BackendError, ContractViolation, GuardRejection
from llm_gate import build_retry_messages
from locked_spans import repair_locked_spans, strip_lock_delimiters
from quality_gate import (
    OK_TOO_SHORT,
    GateContext,
    contract_reason,
    is_directive_only,
    strip_internal_markers,
    validate_with_repair,
)
from schemas import Verdict, VerdictLevel
from telemetry import append_turn_telemetry
from text_utils import normalize_whitespace

STATIC_FALLBACK_TEXT = "I'm still here with what you shared. We can stay with it a little longer."
QCOUNT_TOO_MANY = "QCOUNT_TOO_MANY"


class Backend(Protocol):
    async def generate(self, messages: list[dict], temperature: Optional[float] = None, max_tokens: Optional[int] = None) -> str:
        ...


class PipelineStage(str, Enum):
    DRAFT = "DRAFT"
    VALIDATE = "VALIDATE"
    RETRY = "RETRY"
    ACCEPT = "ACCEPT"
    FALLBACK = "FALLBACK"


class RewriteTag(str, Enum):
    ACCEPTED = "ACCEPTED"
    ACCEPTED_REPAIRED = "ACCEPTED_REPAIRED"
    ACCEPTED_RETRY = "ACCEPTED_RETRY"
    FALLBACK_SEED = "FALLBACK_SEED"
    FALLBACK_CANDIDATE = "FALLBACK_CANDIDATE"
    FALLBACK_STATIC = "FALLBACK_STATIC"


class Attempt(BaseModel):
    raw: Optional[str] = None
    text: Optional[str] = None
    verdict: Optional[Verdict] = None
    repaired: bool = False
    error: Optional[str] = None

    @property
    def reasons(self) -> list[str]:
        if self.error:
            return [f"BACKEND_{self.error.upper()}"]
        return list(self.verdict.reasons) if self.verdict else []


class RewriteRequest(BaseModel):
    messages: list[dict]
    ctx: GateContext
    seed_text: str = ""
    temperature: float = GEN_TEMPERATURE
    retry_temperature: float = GEN_RETRY_TEMPERATURE
    max_tokens: int = GEN_MAX_TOKENS


class RewriteOutcome(BaseModel):
    tag: RewriteTag
    text: str
    verdict: Verdict
    attempts: int = 0
    trace: list[str] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)
    slot_keys: list[str] = Field(default_factory=list)


async def _call_backend(backend: Backend, messages: list[dict], temperature: float, max_tokens: int, ctx: GateContext) -> Attempt:
    try:
        raw = await backend.generate(messages, temperature=temperature, max_tokens=max_tokens)
    except BackendError as exc:
        print(f"[rewrite] backend error: {exc}", file=sys.stderr)
        append_turn_telemetry("backend_error", {"kind": exc.kind, "detail": exc.detail[:200]})
        return Attempt(error=exc.kind)
    text, verdict, repaired = validate_with_repair(raw or "", ctx)
    if not verdict.ok:
        append_turn_telemetry("rewrite_reject", {"level": verdict.level.value, "reasons": verdict.reasons})
    return Attempt(raw=raw, text=text, verdict=verdict, repaired=repaired)


def _check_attempt(att: Attempt, first: Optional[Attempt]) -> None:
    """Raise the matching error when an attempt cannot be accepted as-is."""
    if att.error:
        raise BackendError(att.error)
    verdict = att.verdict
    if verdict is None:
        raise GuardRejection(Verdict(ok=False, level=VerdictLevel.FATAL, reasons=["NO_VERDICT"]))
    if verdict.level == VerdictLevel.OK:
        return
    reason = contract_reason(verdict)
    if reason:
        raise ContractViolation(reason)
    # a retry that only fixed "too many questions" may stay short
    if (
        first is not None
        and OK_TOO_SHORT in verdict.reasons
        and verdict.level == VerdictLevel.WARN
        and QCOUNT_TOO_MANY in first.reasons
        and not any(r for r in verdict.reasons if r not in (OK_TOO_SHORT, "QUESTION_PRESENT"))
    ):
        return
    raise GuardRejection(verdict)


LEVEL_RANK = {VerdictLevel.OK: 0, VerdictLevel.WARN: 1, VerdictLevel.FATAL: 2}


def _candidate_rank(index: int, att: Attempt) -> tuple:
    verdict = att.verdict
    level = LEVEL_RANK.get(verdict.level, 2) if verdict else 2
    contract = 1 if verdict and contract_reason(verdict) else 0
    reasons = len(verdict.reasons) if verdict else 99
    # later attempts win ties
    return (contract, level, reasons, -index)


def _finish_text(text: str, ctx: GateContext) -> str:
    out = strip_internal_markers(strip_lock_delimiters(text))
    if ctx.list_contract:
        salvaged = salvage_candidate_list(out)
        if salvaged:
            out = salvaged
    return repair_locked_spans(out, ctx.locked_spans)


def _fallback(req: RewriteRequest, attempts: list[Attempt], trace: list[str]) -> tuple[RewriteTag, str, Verdict]:
    seed = (req.seed_text or "").strip()
    if seed and not is_directive_only(seed):
        text = _finish_text(seed, req.ctx)
        if normalize_whitespace(text):
            trace.append("FALLBACK:seed")
            return RewriteTag.FALLBACK_SEED, text, Verdict(ok=False, level=VerdictLevel.WARN, reasons=["FALLBACK_SEED"])

    usable = [(i, a) for i, a in enumerate(attempts) if a.text and normalize_whitespace(a.text)]
    if usable:
        _, best = min(usable, key=lambda ia: _candidate_rank(*ia))
        text = _finish_text(best.text, req.ctx)
        if normalize_whitespace(text):
            trace.append("FALLBACK:candidate")
            return RewriteTag.FALLBACK_CANDIDATE, text, best.verdict

    trace.append("FALLBACK:static")
    text = repair_locked_spans(STATIC_FALLBACK_TEXT, req.ctx.locked_spans)
    return RewriteTag.FALLBACK_STATIC, text, Verdict(ok=False, level=VerdictLevel.FATAL, reasons=["FALLBACK_STATIC"])


async def run_rewrite_pipeline(backend: Backend, req: RewriteRequest) -> RewriteOutcome:
    attempts: list[Attempt] = []
    trace: list[str] = []
    reasons: list[str] = []
    stage = PipelineStage.DRAFT

    while True:
        trace.append(stage.value)

        if stage == PipelineStage.DRAFT:
            attempts.append(await _call_backend(backend, req.messages, req.temperature, req.max_tokens, req.ctx))
            stage = PipelineStage.VALIDATE

        elif stage == PipelineStage.VALIDATE:
            current = attempts[-1]
            first = attempts[0] if len(attempts) > 1 else None
            try:
                _check_attempt(current, first)
                stage = PipelineStage.ACCEPT
            except (BackendError, ContractViolation, GuardRejection) as exc:
                reasons.extend(current.reasons)
                trace.append(f"REJECT:{type(exc).__name__}")
                stage = PipelineStage.RETRY if len(attempts) < 2 else PipelineStage.FALLBACK

        elif stage == PipelineStage.RETRY:
            first = attempts[0]
            if first.error:
                messages = req.messages
            else:
                messages = build_retry_messages(req.messages, first.raw, first.reasons)
            attempts.append(await _call_backend(backend, messages, req.retry_temperature, req.max_tokens, req.ctx))
            stage = PipelineStage.VALIDATE

        elif stage == PipelineStage.ACCEPT:
            current = attempts[-1]
            if len(attempts) > 1:
                tag = RewriteTag.ACCEPTED_RETRY
            elif current.repaired:
                tag = RewriteTag.ACCEPTED_REPAIRED
            else:
                tag = RewriteTag.ACCEPTED
            return RewriteOutcome(
                tag=tag,
                text=current.text,
                verdict=current.verdict,
                attempts=len(attempts),
                trace=trace,
                reasons=reasons,
                slot_keys=req.ctx.plan.keys() if req.ctx.plan else [],
            )

        else:
            tag, text, verdict = _fallback(req, attempts, trace)
            return RewriteOutcome(
                tag=tag,
                text=text,
                verdict=verdict,
                attempts=len(attempts),
                trace=trace,
                reasons=reasons,
                slot_keys=req.ctx.plan.keys() if req.ctx.plan else [],
            )
