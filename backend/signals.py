"""Signal extraction: user text -> candidate depth / affect / phase / topic.

Purely lexical. Every candidate here is a suggestion; the continuity layer
decides what actually moves.
"""

import re
from typing import Iterable, Optional

import lexicons as lx
from errors import SignalExtractionDegraded
from schemas import SignalCandidates
from text_utils import (
    count_hits,
    has_any,
    normalize_newlines,
    normalize_whitespace,
    visible_length,
    word_count,
)

EXPLICIT_AFFECT_REGEX = re.compile(r"(?<![A-Za-z0-9])[Qq]([1-5])(?![0-9])")


def detect_depth(text: str) -> tuple[Optional[str], bool]:
    """Return (depth candidate, strong). Existential triggers are always strong."""
    if has_any(text, lx.EXISTENTIAL_I3):
        return "I3", True
    if has_any(text, lx.EXISTENTIAL_I2):
        return "I2", True
    if has_any(text, lx.EXISTENTIAL_I1):
        return "I1", True
    if has_any(text, lx.RELATIONAL):
        return "R1", False
    if has_any(text, lx.ACTION):
        return "C1", False
    if has_any(text, lx.SELF_CARE):
        return "S2", False
    return None, False


def detect_explicit_affect(text: str) -> Optional[str]:
    m = EXPLICIT_AFFECT_REGEX.search(text or "")
    return f"Q{m.group(1)}" if m else None


def detect_structural_affect(text: str) -> Optional[str]:
    incident = has_any(text, lx.INCIDENT)
    freeze = has_any(text, lx.FREEZE)
    blocked = has_any(text, lx.BLOCKED)
    urgency = has_any(text, lx.URGENCY)
    emptiness = has_any(text, lx.EMPTINESS)

    if incident and (freeze or blocked):
        return "Q4"
    if urgency and blocked:
        return "Q3"
    if emptiness and not (incident or freeze or blocked or urgency):
        return "Q5"
    return None


def detect_keyword_affect(text: str) -> Optional[str]:
    best_code, best_score = None, 0
    for code, words in lx.AFFECT_KEYWORDS.items():
        score = count_hits(text, words)
        if score > best_score:
            best_code, best_score = code, score
    # a single stray keyword is not enough to name an affect
    if best_score < 2:
        return None
    return best_code


def detect_phase(text: str) -> Optional[str]:
    inward = has_any(text, lx.INWARD)
    outward = has_any(text, lx.OUTWARD)
    if inward:
        return "Inner"
    if outward:
        return "Outer"
    return None


def detect_topic(text: str) -> str:
    for topic, words in lx.TOPICS:
        if has_any(text, words):
            return topic
    return "other"


def detect_risk_flags(text: str, extra: Optional[Iterable[str]] = None) -> list[str]:
    flags = [name for name, words in lx.RISK_FLAGS.items() if has_any(text, words)]
    for f in extra or ():
        f = normalize_whitespace(str(f)).lower()
        if f and f not in flags:
            flags.append(f)
    return flags


def is_greeting(text: str) -> bool:
    low = normalize_whitespace(text).lower().strip(" .!?,~")
    if low in lx.GREETINGS:
        return True
    return word_count(low) <= 4 and any(low.startswith(g + " ") for g in lx.GREETINGS)


def is_micro(text: str) -> bool:
    s = normalize_whitespace(text).lower()
    if visible_length(s) <= 3:
        return True
    if s.strip(" .!?,~") in lx.MICRO_WORDS:
        return True
    if not re.search(r"[a-z0-9]", s):
        return True
    words = [w.strip(" .!?,~") for w in s.split()]
    return len(words) <= 2 and all(w in lx.MICRO_WORDS for w in words if w)


def extract_signals(text: str, risk_flags: Optional[Iterable[str]] = None) -> SignalCandidates:
    if not isinstance(text, str):
        raise SignalExtractionDegraded("input is not text")
    raw = normalize_newlines(text).strip()
    if not raw:
        raise SignalExtractionDegraded("empty input")

    depth, strong = detect_depth(raw)

    explicit = detect_explicit_affect(raw)
    if explicit:
        affect, affect_explicit = explicit, True
    else:
        affect = detect_structural_affect(raw) or detect_keyword_affect(raw)
        affect_explicit = False

    return SignalCandidates(
        depth=depth,
        depth_strong=strong,
        affect=affect,
        affect_explicit=affect_explicit,
        phase=detect_phase(raw),
        topic=detect_topic(raw),
        self_attack=count_hits(raw, lx.SELF_ATTACK),
        self_acceptance=count_hits(raw, lx.SELF_ACCEPTANCE),
        distress=count_hits(raw, lx.DISTRESS),
        anxiety=count_hits(raw, lx.ANXIETY),
        question_marks=raw.count("?"),
        exclamations=raw.count("!"),
        char_length=len(raw),
        time_pressure=has_any(raw, lx.TIME_PRESSURE),
        slow_down=has_any(raw, lx.SLOW_DOWN),
        stay_request=has_any(raw, lx.STAY_REQUEST),
        boundary_request=has_any(raw, lx.BOUNDARY_REQUEST),
        action_weak=has_any(raw, lx.ACTION_WEAK),
        action_explicit=has_any(raw, lx.ACTION_EXPLICIT),
        delegation=has_any(raw, lx.DELEGATION),
        relational=has_any(raw, lx.RELATIONAL),
        action=has_any(raw, lx.ACTION),
        introspective=has_any(raw, lx.INTROSPECTIVE),
        stress=has_any(raw, lx.STRESS) or count_hits(raw, lx.DISTRESS) > 0,
        risk_flags=detect_risk_flags(raw, risk_flags),
        micro=is_micro(raw),
        greeting=is_greeting(raw),
    )


def empty_signals(risk_flags: Optional[Iterable[str]] = None) -> SignalCandidates:
    """Candidate set used when extraction degrades: nothing moves."""
    return SignalCandidates(risk_flags=detect_risk_flags("", risk_flags))
