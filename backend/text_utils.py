"""Low-level text helpers used across the turn engine.

No dependency on schemas, models, or any other project module.
"""

import json
import re
from typing import Iterable, Optional

LIST_HEAD_REGEX = r"^\s*(?:[-*•・]\s*|\(?\d{1,2}\s*[\.\):]\s*|\(?[a-eA-E]\s*[\.\)]\s+|(?:option|step)\s+\d+\s*[:.)-]\s*)"


def split_sentences(text: str) -> list[str]:
    parts = []
    current = ""
    for ch in text or "":
        current += ch
        if ch in ".!?\n":
            if current.strip():
                parts.append(current.strip())
            current = ""
    if current.strip():
        parts.append(current.strip())
    return parts


def split_clauses(text: str) -> list[str]:
    parts = re.split(r"\s*(?:[,;:]|\band then\b|\bthen\b|\band\b|\bor\b)\s*", text or "", flags=re.IGNORECASE)
    return [p.strip() for p in parts if p and p.strip()]


def normalize_whitespace(text: str) -> str:
    return " ".join((text or "").split()).strip()


def normalize_newlines(text: str) -> str:
    return (text or "").replace("\r\n", "\n").replace("\r", "\n")


def non_empty_lines(text: str) -> list[str]:
    return [ln.strip() for ln in normalize_newlines(text).split("\n") if ln.strip()]


def strip_list_head(line: str) -> str:
    return re.sub(LIST_HEAD_REGEX, "", line or "", flags=re.IGNORECASE).strip()


def word_count(text: str) -> int:
    return len([w for w in (text or "").replace("\n", " ").split(" ") if w.strip()])


def visible_length(text: str) -> int:
    """Character count ignoring whitespace."""
    return len(re.sub(r"\s+", "", text or ""))


def contains_word_or_phrase(text: str, token: str) -> bool:
    low = normalize_whitespace(text or "").lower()
    tok = normalize_whitespace(token or "").lower()
    if not low or not tok:
        return False
    return bool(re.search(rf"(?<![\w']){re.escape(tok)}(?![\w'])", low))


def count_hits(text: str, phrases: Iterable[str]) -> int:
    return sum(1 for p in phrases if contains_word_or_phrase(text, p))


def has_any(text: str, phrases: Iterable[str]) -> bool:
    return any(contains_word_or_phrase(text, p) for p in phrases)


def normalize_for_similarity(text: str, min_len: int = 4) -> list[str]:
    cleaned = []
    for token in (text or "").lower().replace("\n", " ").split():
        t = token.strip(" ,.;:!?()[]{}\"'")
        if len(t) >= min_len:
            cleaned.append(t)
    return cleaned


def shared_token_count(a: str, b: str, min_len: int = 3) -> int:
    return len(set(normalize_for_similarity(a, min_len)) & set(normalize_for_similarity(b, min_len)))


def extract_json_object(text: str) -> Optional[dict]:
    raw = (text or "").strip()
    if not raw:
        return None
    try:
        obj = json.loads(raw)
        return obj if isinstance(obj, dict) else None
    except Exception:
        pass

    start = raw.find("{")
    end = raw.rfind("}")
    if start >= 0 and end > start:
        chunk = raw[start : end + 1]
        try:
            obj = json.loads(chunk)
            return obj if isinstance(obj, dict) else None
        except Exception:
            return None
    return None


def truncate_words(text: str, max_chars: int) -> str:
    s = normalize_whitespace(text)
    if len(s) <= max_chars:
        return s
    cut = s[:max_chars]
    if " " in cut:
        cut = cut[: cut.rfind(" ")]
    return cut.rstrip(" ,;:-")


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def clamp01(value: float) -> float:
    return clamp(value, 0.0, 1.0)
