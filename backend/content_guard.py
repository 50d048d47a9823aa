"""Heuristic content-quality guard.

Scores a reply for the habits we never want in this product: answering for
the user, instructing, rushing, interrogating, listing options, and bland
filler (cheering, hedging, generic advice). Fatal points outrank warn
points; a reply is FATAL once fatal points reach GUARD_FATAL_THRESHOLD.
"""

import re
from typing import Optional

import lexicons as lx
from config import GUARD_FATAL_THRESHOLD, GUARD_SHORT_TEXT_CHARS, GUARD_WARN_THRESHOLD
from schemas import Verdict, VerdictLevel
from text_utils import LIST_HEAD_REGEX, count_hits, non_empty_lines, normalize_whitespace, split_sentences

STRICT_QUESTION_OPENERS = (
    "do you", "did you", "could you", "would you", "can you", "are you", "have you",
    "is it", "shall we", "what do you", "how do you", "how about",
)
# question-shaped openers count even without a question mark
_OPENER_REGEX = re.compile(r"^(?:" + "|".join(re.escape(o) for o in STRICT_QUESTION_OPENERS) + r")\b", re.IGNORECASE)
FLAGSHIP_SIGNS = (
    "sounds like", "it seems", "i notice", "i hear", "underneath", "part of you",
    "what stands out", "the way you",
)


def count_questions(text: str) -> int:
    n = 0
    for sent in split_sentences(normalize_whitespace(text)):
        s = sent.strip()
        if not s:
            continue
        if "?" in s or "？" in s:
            n += 1
        elif _OPENER_REGEX.search(s):
            n += 1
    return n


def count_list_lines(text: str) -> int:
    return sum(1 for ln in non_empty_lines(text) if re.match(LIST_HEAD_REGEX, ln, flags=re.IGNORECASE))


def content_counts(text: str) -> dict:
    return {
        "questions": count_questions(text),
        "directives": count_hits(text, lx.DIRECTIVE_PATTERNS),
        "urgency": count_hits(text, lx.URGENCY_PATTERNS),
        "list_lines": count_list_lines(text),
        "cheer": count_hits(text, lx.CHEER_PATTERNS),
        "hedge": count_hits(text, lx.HEDGE_PATTERNS),
        "generic": count_hits(text, lx.GENERIC_PATTERNS),
        "signs": count_hits(text, FLAGSHIP_SIGNS),
    }


def score_content(
    text: str,
    max_questions: int = 1,
    list_contract: bool = False,
    warn_threshold: Optional[int] = None,
) -> Verdict:
    c = content_counts(text)
    fatal = 0
    warn = 0
    reasons: list[str] = []

    if c["questions"] >= 2:
        fatal += 2
        reasons.append("QCOUNT_TOO_MANY")
    elif c["questions"] == 1 and max_questions == 0:
        warn += 2
        reasons.append("QUESTION_NOT_ALLOWED")
    elif c["questions"] == 1:
        warn += 1
        reasons.append("QUESTION_PRESENT")

    if c["directives"] >= 2:
        fatal += 2
        reasons.append("DIRECTIVE_TOO_MANY")
    elif c["directives"] == 1:
        warn += 1
        reasons.append("DIRECTIVE_PRESENT")

    if c["urgency"] >= 2:
        fatal += 2
        reasons.append("URGENCY_TOO_MUCH")
    elif c["urgency"] == 1:
        warn += 2
        reasons.append("URGENCY_PRESENT")

    if c["list_lines"] >= 2 and not list_contract:
        warn += 1
        reasons.append("OPTION_LIST")

    for key, reason in (("cheer", "CHEER_PRESENT"), ("hedge", "HEDGE_PRESENT"), ("generic", "GENERIC_PRESENT")):
        if c[key] >= 2:
            warn += 2
            reasons.append(reason)
        elif c[key] == 1:
            warn += 1
            reasons.append(reason)

    bland = c["cheer"] + c["hedge"] + c["generic"]
    if bland >= 2 and len(normalize_whitespace(text)) <= GUARD_SHORT_TEXT_CHARS and c["signs"] == 0:
        fatal += 2
        reasons.append("GENERIC_SHORT")
    elif bland >= 4 and c["signs"] == 0:
        fatal += 2
        reasons.append("GENERIC_DOMINANT")

    threshold = GUARD_WARN_THRESHOLD if warn_threshold is None else warn_threshold
    if fatal >= GUARD_FATAL_THRESHOLD:
        level = VerdictLevel.FATAL
    elif warn >= threshold:
        level = VerdictLevel.WARN
    else:
        level = VerdictLevel.OK
    return Verdict(ok=level == VerdictLevel.OK, level=level, reasons=reasons)
