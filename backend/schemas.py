from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RotationLoop(str, Enum):
    SRI = "SRI"
    TCF = "TCF"


class DescentGate(str, Enum):
    CLOSED = "closed"
    OFFERED = "offered"
    ACCEPTED = "accepted"


class GoalKind(str, Enum):
    STABILIZE = "stabilize"
    UNCOVER = "uncover"
    SHIFT_RELATION = "shiftRelation"
    ENABLE_ACTION = "enableAction"
    REFRAME_INTENTION = "reframeIntention"


class VerdictLevel(str, Enum):
    OK = "OK"
    WARN = "WARN"
    FATAL = "FATAL"


class SlotPolicy(str, Enum):
    SCAFFOLD = "SCAFFOLD"
    FINAL = "FINAL"


class GatewayEntry(str, Enum):
    SKIP_POLICY = "SKIP_POLICY"
    SKIP_SILENCE = "SKIP_SILENCE"
    SKIP_SLOTPLAN = "SKIP_SLOTPLAN"
    CALL_LLM = "CALL_LLM"


# Conversation state
class Streak(BaseModel):
    value: Optional[str] = None
    length: int = 0


class IntentAnchor(BaseModel):
    text: str
    fixed: bool = False


class ConversationState(BaseModel):
    """Persisted per-user axes. Only a completed turn produces a new one."""

    model_config = ConfigDict(protected_namespaces=())

    depth_stage: Optional[str] = None
    affect_code: Optional[str] = None
    phase: Optional[str] = None
    self_acceptance: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    volatility: Optional[int] = Field(default=None, ge=0, le=3)
    slack: Optional[int] = Field(default=None, ge=0, le=3)
    rotation_loop: RotationLoop = RotationLoop.SRI
    descent_gate: DescentGate = DescentGate.CLOSED
    affect_streak: Streak = Field(default_factory=Streak)
    goal_streak: Streak = Field(default_factory=Streak)
    intent_anchor: Optional[IntentAnchor] = None
    situation_summary: Optional[str] = None
    situation_topic: Optional[str] = None
    turn_count: int = 0


# Signals
class SignalCandidates(BaseModel):
    depth: Optional[str] = None
    depth_strong: bool = False
    affect: Optional[str] = None
    affect_explicit: bool = False
    phase: Optional[str] = None
    topic: str = "other"

    self_attack: int = 0
    self_acceptance: int = 0
    distress: int = 0
    anxiety: int = 0
    question_marks: int = 0
    exclamations: int = 0
    char_length: int = 0
    time_pressure: bool = False
    slow_down: bool = False

    stay_request: bool = False
    boundary_request: bool = False
    action_weak: bool = False
    action_explicit: bool = False
    delegation: bool = False
    relational: bool = False
    action: bool = False
    introspective: bool = False
    stress: bool = False
    risk_flags: list[str] = Field(default_factory=list)
    micro: bool = False
    greeting: bool = False


# Goal / priority
class Goal(BaseModel):
    kind: GoalKind
    target_depth: Optional[str] = None
    target_affect: Optional[str] = None
    reason: str = ""


class PriorityWeights(BaseModel):
    mirror: float = Field(ge=0.0, le=1.0)
    insight: float = Field(ge=0.0, le=1.0)
    forward: float = Field(ge=0.0, le=1.0)
    question: float = Field(ge=0.0, le=1.0)
    max_questions: int = Field(default=0, ge=0, le=1)


class Verdict(BaseModel):
    ok: bool
    level: VerdictLevel
    reasons: list[str] = Field(default_factory=list)


# Content plans
class Slot(BaseModel):
    key: str
    text: str = ""


class ContentPlan(BaseModel):
    policy: SlotPolicy = SlotPolicy.FINAL
    slots: list[Slot] = Field(default_factory=list)
    shape: Optional[str] = None  # "candidate_list" turns on the list contract

    def keys(self) -> list[str]:
        return [s.key for s in self.slots]

    def get(self, key: str) -> Optional[Slot]:
        want = key.upper()
        for s in self.slots:
            if s.key.upper() == want:
                return s
        return None


# API
class TurnRequest(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    text: str
    allow_llm: bool = True
    silence: bool = False
    content_plan: Optional[ContentPlan] = None
    requested_depth: Optional[str] = None
    requested_affect: Optional[str] = None
    requested_goal: Optional[GoalKind] = None
    mode: Optional[str] = None
    directive: Optional[str] = None  # e.g. "concretize"
    user_accepted: bool = False
    risk_flags: list[str] = Field(default_factory=list)
    locked_spans: list[str] = Field(default_factory=list)
    notes: dict[str, str] = Field(default_factory=dict)
    intent_anchor: Optional[str] = None
    fix_intent_anchor: bool = False


class TurnMeta(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    depth_stage: Optional[str] = None
    affect_code: Optional[str] = None
    phase: Optional[str] = None
    self_acceptance: float
    volatility: int
    slack: int
    polarity_score: float
    polarity_band: str
    stability: str
    topic: Optional[str] = None
    goal: Goal
    priority: PriorityWeights
    rotation_loop: RotationLoop
    descent_gate: DescentGate
    rotation_rule: str
    rotation_reason: str
    depth_override: bool = False
    gateway_entry: GatewayEntry
    gateway_reason: str
    verdict: Verdict
    rewrite_tag: str
    attempts: int = 0
    slot_keys: list[str] = Field(default_factory=list)
    next_step_hint: Optional[str] = None
    degraded: bool = False


class TurnResponse(BaseModel):
    text: str
    meta: TurnMeta
    state: ConversationState
    state_saved: bool = True
