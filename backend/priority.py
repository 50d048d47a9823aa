"""Channel weights (mirror / insight / forward / question) for a resolved goal."""

from typing import Optional

from axes import band_of, normalize_affect, stage_index
from config import PRIORITY_ACTION_FORWARD_FLOOR, PRIORITY_QUESTION_CUTOFF
from schemas import Goal, GoalKind, PriorityWeights
from text_utils import clamp01

BASE_WEIGHTS = {
    GoalKind.STABILIZE: {"mirror": 0.95, "insight": 0.40, "forward": 0.20, "question": 0.15},
    GoalKind.UNCOVER: {"mirror": 0.80, "insight": 0.50, "forward": 0.25, "question": 0.40},
    GoalKind.SHIFT_RELATION: {"mirror": 0.80, "insight": 0.70, "forward": 0.35, "question": 0.35},
    GoalKind.ENABLE_ACTION: {"mirror": 0.60, "insight": 0.70, "forward": 0.90, "question": 0.30},
    GoalKind.REFRAME_INTENTION: {"mirror": 0.70, "insight": 0.90, "forward": 0.60, "question": 0.30},
}

# no interrogation at the intention layer
I_LAYER_WEIGHTS = {"mirror": 0.25, "insight": 0.50, "forward": 0.90, "question": 0.0}

ACTION_ORIENTED = (GoalKind.ENABLE_ACTION, GoalKind.REFRAME_INTENTION)


def _scale(w: dict, key: str, factor: float) -> None:
    w[key] = w[key] * factor


def apply_sentiment(w: dict, polarity_band: str) -> None:
    if polarity_band == "negative":
        _scale(w, "forward", 0.7)
        _scale(w, "question", 0.6)
        _scale(w, "mirror", 1.1)
    elif polarity_band == "positive":
        _scale(w, "forward", 1.15)


def apply_depth(w: dict, depth: Optional[str]) -> None:
    band = band_of(depth)
    if band == "S":
        _scale(w, "mirror", 1.1)
        _scale(w, "forward", 0.85)
    elif band == "R":
        _scale(w, "insight", 1.1)
    elif band == "C":
        _scale(w, "forward", 1.15)
    elif band == "I":
        _scale(w, "insight", 1.15)
        _scale(w, "mirror", 0.9)


def apply_phase(w: dict, phase: Optional[str], kind: GoalKind) -> None:
    if phase == "Inner":
        _scale(w, "mirror", 1.1)
        if kind in ACTION_ORIENTED:
            w["forward"] = max(w["forward"], PRIORITY_ACTION_FORWARD_FLOOR)
        else:
            _scale(w, "forward", 0.7)
    elif phase == "Outer":
        _scale(w, "forward", 1.2)
        _scale(w, "mirror", 0.9)


def apply_mode(w: dict, mode: Optional[str]) -> None:
    m = (mode or "").strip().lower()
    if m == "structured":
        _scale(w, "insight", 1.2)
        _scale(w, "mirror", 0.9)
    elif m in ("counsel", "consult"):
        _scale(w, "mirror", 1.15)
        _scale(w, "forward", 0.8)
    elif m in ("diagnosis", "resonate"):
        _scale(w, "insight", 1.2)
        _scale(w, "question", 1.1)


def apply_target_bias(
    w: dict,
    current_depth: Optional[str],
    target_depth: Optional[str],
    current_affect: Optional[str],
    target_affect: Optional[str],
) -> None:
    ic, it = stage_index(current_depth), stage_index(target_depth)
    if ic >= 0 and it >= 0:
        if it > ic:
            _scale(w, "insight", 1.1)
            _scale(w, "forward", 1.1)
        elif it < ic:
            _scale(w, "mirror", 1.1)
            _scale(w, "forward", 0.9)
    ca, ta = normalize_affect(current_affect), normalize_affect(target_affect)
    if ca and ta:
        if ca == ta:
            _scale(w, "mirror", 1.1)
            _scale(w, "question", 0.85)
        else:
            _scale(w, "insight", 1.1)


def compute_priority(
    goal: Goal,
    depth: Optional[str],
    phase: Optional[str] = None,
    polarity_band: str = "neutral",
    mode: Optional[str] = None,
    affect: Optional[str] = None,
) -> PriorityWeights:
    w = dict(BASE_WEIGHTS[goal.kind])
    apply_sentiment(w, polarity_band)
    apply_depth(w, depth)
    apply_phase(w, phase, goal.kind)
    apply_mode(w, mode)
    apply_target_bias(w, depth, goal.target_depth, affect, goal.target_affect)

    if band_of(goal.target_depth) == "I" or band_of(depth) == "I":
        w = dict(I_LAYER_WEIGHTS)

    w = {k: round(clamp01(v), 4) for k, v in w.items()}
    max_q = 1 if w["question"] > PRIORITY_QUESTION_CUTOFF else 0
    return PriorityWeights(max_questions=max_q, **w)
