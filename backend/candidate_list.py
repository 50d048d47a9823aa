"""Candidate-list contract: 2-5 short lines, no questions, no closing punctuation.

Also holds the deterministic salvage that turns prose into a compliant list.
"""

import re
from typing import Optional

import lexicons as lx
from config import (
    CANDIDATE_LINE_MAX_CHARS,
    CANDIDATE_LINE_MIN_CHARS,
    CANDIDATE_LIST_MAX_LINES,
    CANDIDATE_LIST_MIN_LINES,
)
from text_utils import (
    contains_word_or_phrase,
    non_empty_lines,
    normalize_whitespace,
    split_clauses,
    split_sentences,
    strip_list_head,
    truncate_words,
)

TERMINAL_PUNCT = ".!?。！？;:…,"
LEADING_CONNECTIVES = ("and", "or", "then", "so", "but", "also", "just", "even")


def candidate_lines(text: str) -> list[str]:
    return [strip_list_head(ln) for ln in non_empty_lines(text) if strip_list_head(ln)]


def check_candidate_list(text: str) -> list[str]:
    """Return contract failures; an empty list means the text complies."""
    lines = candidate_lines(text)
    fails: list[str] = []
    if not (CANDIDATE_LIST_MIN_LINES <= len(lines) <= CANDIDATE_LIST_MAX_LINES):
        fails.append(f"line_count={len(lines)}")
    if any("?" in ln or "？" in ln for ln in lines):
        fails.append("question_mark")
    if any(ln[-1] in TERMINAL_PUNCT for ln in lines):
        fails.append("terminal_punctuation")
    if any(not (CANDIDATE_LINE_MIN_CHARS <= len(ln) <= CANDIDATE_LINE_MAX_CHARS) for ln in lines):
        fails.append("line_length")
    return fails


def specificity_score(line: str) -> float:
    score = 0.0
    if re.search(r"\d", line):
        score += 2.0
    time_hits = sum(1 for w in lx.SPECIFIC_TIME_WORDS if contains_word_or_phrase(line, w))
    score += min(time_hits, 2) * 1.5
    score += min(len(line.split()) / 4.0, 1.5)
    if '"' in line or "“" in line:
        score += 0.5
    return round(score, 3)


def move_most_specific_last(lines: list[str]) -> list[str]:
    if len(lines) < 2:
        return list(lines)
    scores = [specificity_score(ln) for ln in lines]
    best = max(range(len(lines)), key=lambda i: (scores[i], i))
    out = [ln for i, ln in enumerate(lines) if i != best]
    out.append(lines[best])
    return out


def _strip_prefixes(piece: str) -> str:
    s = piece
    changed = True
    while changed and s:
        changed = False
        low = s.lower()
        for p in lx.LIST_FILLER_PREFIXES + ("i could", "i might", "i can", "we could", "we can"):
            if low == p:
                return ""
            if low.startswith(p + " "):
                s = s[len(p) + 1 :].lstrip(" ,")
                changed = True
                break
        else:
            first = low.split(" ", 1)[0] if low else ""
            if first in LEADING_CONNECTIVES and " " in s:
                s = s.split(" ", 1)[1].lstrip(" ,")
                changed = True
    return s


def _strip_hedge_suffixes(piece: str) -> str:
    s = piece.rstrip(" " + TERMINAL_PUNCT)
    changed = True
    while changed and s:
        changed = False
        low = s.lower()
        for h in lx.LIST_HEDGE_SUFFIXES:
            if low.endswith(" " + h) or low.endswith("," + h):
                s = s[: -len(h)].rstrip(" ," + TERMINAL_PUNCT)
                changed = True
                break
    return s


def _normalize_head(piece: str) -> str:
    words = piece.split(" ", 1)
    first = words[0].lower()
    if first in lx.ACTION_VERBS:
        return piece[0].upper() + piece[1:]
    head = piece if piece.startswith("I ") else piece[0].lower() + piece[1:]
    return f"Try {head}"


def to_candidate_line(piece: str) -> Optional[str]:
    s = normalize_whitespace(strip_list_head(piece)).strip("\"'“”‘’ ")
    if not s or "?" in s or "？" in s:
        return None
    s = re.sub(lx.LIST_SITUATIONAL_PREFIX, "", s, flags=re.IGNORECASE)
    s = _strip_prefixes(s)
    s = _strip_hedge_suffixes(s)
    s = s.rstrip(" " + TERMINAL_PUNCT).strip()
    if not s:
        return None
    s = _normalize_head(s)
    s = truncate_words(s, CANDIDATE_LINE_MAX_CHARS).rstrip(" " + TERMINAL_PUNCT)
    if len(s) < CANDIDATE_LINE_MIN_CHARS or len(s.split()) < 2:
        return None
    return s


def _pieces(text: str) -> list[str]:
    lines = candidate_lines(text)
    pieces: list[str] = []
    for ln in lines:
        pieces.extend(split_sentences(ln))
    if len(pieces) >= CANDIDATE_LIST_MIN_LINES:
        return pieces
    return split_clauses(" ".join(lines))


def salvage_candidate_list(text: str) -> Optional[str]:
    """Rewrite arbitrary prose into a compliant candidate list, or None."""
    seen: set[str] = set()
    lines: list[str] = []
    for piece in _pieces(text):
        line = to_candidate_line(piece)
        if not line:
            continue
        key = line.lower()
        if key in seen:
            continue
        seen.add(key)
        lines.append(line)

    if len(lines) < CANDIDATE_LIST_MIN_LINES:
        return None
    if len(lines) > CANDIDATE_LIST_MAX_LINES:
        ranked = sorted(range(len(lines)), key=lambda i: specificity_score(lines[i]), reverse=True)
        keep = sorted(ranked[:CANDIDATE_LIST_MAX_LINES])
        lines = [lines[i] for i in keep]

    out = "\n".join(move_most_specific_last(lines))
    if check_candidate_list(out):
        return None
    return out
