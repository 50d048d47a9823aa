"""Final polish of reply text before it leaves the service."""

import re
from typing import Iterable, Optional

from config import RENDER_COMFORT_ENABLED
from lexicons import COMFORT_PHRASES
from locked_spans import protect_spans, restore_spans, strip_lock_delimiters
from quality_gate import strip_internal_markers
from schemas import ContentPlan
from text_utils import extract_json_object, normalize_newlines, normalize_whitespace

META_DUMP_LINE = re.compile(
    r"^\s*(?:phase|depth|depth_stage|depthstage|goal|priority|self_?acceptance|affect|"
    r"affect_code|qcode|q|rotation|rotation_loop|loop|gate|descent_gate|volatility|"
    r"slack|stability|polarity|intent_anchor)\s*[:=]",
    re.IGNORECASE,
)
AXIS_LABEL = re.compile(r"(?<![\w-])(?:[SRCITF][1-3]|Q[1-5])(?![\w-])")
NEXT_NOTE_KEYS = ("next_step", "next", "next_hint", "hint")


def strip_meta_dump(text: str) -> str:
    return "\n".join(ln for ln in normalize_newlines(text).split("\n") if not META_DUMP_LINE.match(ln))


def strip_axis_labels(text: str) -> str:
    out = AXIS_LABEL.sub("", text)
    out = re.sub(r"\(\s*\)|\[\s*\]", "", out)
    out = re.sub(r"[ \t]+([,.;:!?])", r"\1", out)
    return out


def normalize_spacing(text: str) -> str:
    lines = [re.sub(r"[ \t]+", " ", ln).strip() for ln in normalize_newlines(text).split("\n")]
    out = "\n".join(lines)
    out = re.sub(r"\n{3,}", "\n\n", out)
    return out.strip()


def comfort_phrase_for(affect: Optional[str]) -> Optional[str]:
    if not RENDER_COMFORT_ENABLED:
        return None
    return COMFORT_PHRASES.get(affect or "")


def polish_text(
    text: str,
    affect: Optional[str] = None,
    list_contract: bool = False,
    locked_spans: Iterable[str] = (),
    verbatim: bool = False,
) -> str:
    raw = strip_lock_delimiters(text or "")
    if verbatim:
        return raw.strip()

    body, table = protect_spans(raw, locked_spans)
    body = strip_meta_dump(body)
    body = strip_internal_markers(body)
    body = strip_axis_labels(body)
    body = normalize_spacing(body)

    phrase = None if list_contract else comfort_phrase_for(affect)
    if phrase and body and not body.startswith(phrase):
        body = f"{phrase}\n{body}"
    return restore_spans(body, table)


def extract_next_step_hint(notes: Optional[dict] = None, plan: Optional[ContentPlan] = None) -> Optional[str]:
    """Pull an optional next-step hint out of auxiliary notes; it never enters the body."""
    candidates: list[str] = []
    for key in NEXT_NOTE_KEYS:
        v = (notes or {}).get(key)
        if isinstance(v, str) and v.strip():
            candidates.append(v)
    if plan is not None:
        for key in ("NEXT_HINT", "NEXT"):
            slot = plan.get(key)
            if slot is not None and slot.text.strip():
                candidates.append(slot.text)
    for raw in candidates:
        obj = extract_json_object(raw)
        if obj:
            for k in ("hint", "text", "next"):
                if isinstance(obj.get(k), str) and obj[k].strip():
                    raw = obj[k]
                    break
        cleaned = re.sub(r"^\s*@NEXT(?:_HINT)?\b\s*", "", strip_lock_delimiters(raw))
        cleaned = normalize_whitespace(cleaned)
        if cleaned:
            return cleaned[:160]
    return None
